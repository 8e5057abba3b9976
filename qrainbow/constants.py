"""
Rainbow Option Constants
========================

Immutable constants table shared by every circuit evaluation.

The probability tables, decay rate and below-strike rotation angle are
calibrated offline against a specific option (volatility, maturity, strike)
and are preserved literally. Changing the option's parameters requires
recomputing them outside this package; nothing here derives them.

Register layout:
----------------
- x1, x2 : 2 qubits each (unsigned, integer grid 0..3)
- max    : 5 qubits, 2 fractional bits (payoff register)
- ref    : 5 qubits mirroring the payoff register (reference for the
           exponential comparison, drawn from the ancilla pool)
- ind    : 1 indicator qubit

The max register, the strike flag and every scratch register live in
the ancilla pool; only x1, x2 and ind are declared registers.

Author: QRainbow Research Team
"""

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from qrainbow.exceptions import ValidationError


PROBABILITY_TOLERANCE = 1e-9

# Symmetric four-point discretisation of each asset's log-price
ASSET_PROBABILITIES: Tuple[float, ...] = (0.0656, 0.4344, 0.4344, 0.0656)

# max(x1, 0.75·x1 + 0.75·x2 − 1.25) as (coeff_x1, coeff_x2, offset)
AFFINE_FORMS: Tuple[Tuple[float, float, float], ...] = (
    (1.0, 0.0, 0.0),
    (0.75, 0.75, -1.25),
)

STRIKE = 1.5

# Exponential decay of the reference distribution, per unit of the max value
DECAY_RATE = 0.3627

# RY angle encoding the closed-form below-strike contribution
BELOW_STRIKE_ANGLE = 0.4315


@dataclass(frozen=True)
class RegisterLayout:
    """Widths of the registers making up the rainbow circuit."""
    asset_width: int = 2
    asset_fraction_bits: int = 0
    max_width: int = 5
    max_fraction_bits: int = 2
    reference_width: int = 5
    indicator_width: int = 1


@dataclass(frozen=True)
class RainbowConstants:
    """Calibrated constants of the rainbow option circuit.

    Attributes
    ----------
    asset_probabilities : tuple of tuple
        Probability table loaded on each asset register
    affine_forms : tuple
        The two (coeff_x1, coeff_x2, offset) forms whose maximum is taken
    strike : float
        Strike threshold on the decoded max register
    decay_rate : float
        Decay constant of the reference distribution
    below_strike_angle : float
        RY angle applied to the indicator below the strike
    layout : RegisterLayout
        Register widths
    """
    asset_probabilities: Tuple[Tuple[float, ...], ...] = (
        ASSET_PROBABILITIES,
        ASSET_PROBABILITIES,
    )
    affine_forms: Tuple[Tuple[float, float, float], ...] = AFFINE_FORMS
    strike: float = STRIKE
    decay_rate: float = DECAY_RATE
    below_strike_angle: float = BELOW_STRIKE_ANGLE
    layout: RegisterLayout = field(default_factory=RegisterLayout)

    def validate(self) -> None:
        """Check table shapes and normalisation; raise ValidationError."""
        if len(self.asset_probabilities) != 2:
            raise ValidationError(
                f"Rainbow option needs exactly 2 asset tables, got {len(self.asset_probabilities)}"
            )
        for i, table in enumerate(self.asset_probabilities):
            probs = np.asarray(table, dtype=float)
            if len(probs) > 2 ** self.layout.asset_width:
                raise ValidationError(
                    f"Asset table {i} has {len(probs)} entries; "
                    f"{self.layout.asset_width} qubits index at most {2 ** self.layout.asset_width}"
                )
            if np.any(probs < 0):
                raise ValidationError(f"Asset table {i} has negative entries")
            if abs(probs.sum() - 1.0) > PROBABILITY_TOLERANCE:
                raise ValidationError(
                    f"Asset table {i} sums to {probs.sum():.12f}, expected 1"
                )
        if len(self.affine_forms) != 2:
            raise ValidationError("Affine max needs exactly two forms")
        if self.decay_rate <= 0:
            raise ValidationError(f"decay_rate must be positive, got {self.decay_rate}")


DEFAULT_CONSTANTS = RainbowConstants()


__all__ = [
    'PROBABILITY_TOLERANCE',
    'ASSET_PROBABILITIES',
    'AFFINE_FORMS',
    'STRIKE',
    'DECAY_RATE',
    'BELOW_STRIKE_ANGLE',
    'RegisterLayout',
    'RainbowConstants',
    'DEFAULT_CONSTANTS',
]
