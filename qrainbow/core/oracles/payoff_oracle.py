"""
Payoff Oracle
=============

Loads the payoff factor of the rainbow option onto the indicator qubit:

    |m⟩|geq⟩|0⟩_ind → |m⟩|geq⟩(√(1-p)|0⟩ + √p|1⟩)

Mathematical Foundation:
------------------------
Above the strike (geq = 1) the factor is an exponential integral. A
reference register r of m qubits is loaded with

    p(r) ∝ exp(-λ·r),   λ = decay_rate · 2^(-f)

(f = fractional bits of the max register) and the indicator is flipped
when unsigned(max) ≥ r. For raw max value u this gives

    P(ind = 1 | u) = (1 - exp(-λ(u+1))) / (1 - exp(-λ·2^m))

the inverse-CDF sampling of the decay function up to u.

Below the strike (geq = 0) the integral has a closed form, loaded as a
single RY(θ_below) on the indicator: P(ind = 1) = sin²(θ_below / 2).

Both branches are controlled on the value of geq, so a superposed geq
selects them coherently.

Author: QRainbow Research Team
"""

import logging
from enum import Enum
from typing import Optional

import numpy as np
from qiskit import QuantumCircuit
from qiskit.circuit import Qubit

from qrainbow.constants import DECAY_RATE, BELOW_STRIKE_ANGLE
from qrainbow.exceptions import ValidationError
from qrainbow.core.registers import AncillaPool, ScopedAncilla
from qrainbow.core.arithmetic.fixed_point import FixedPointValue
from qrainbow.core.arithmetic.comparators import compare_registers
from qrainbow.core.state_prep.invertible_prep import (
    DistributionLoader,
    exponential_distribution,
)

logger = logging.getLogger(__name__)


class PayoffBranch(Enum):
    """Payoff branch selected by the strike comparator bit."""
    ABOVE_STRIKE = 1
    BELOW_STRIKE = 0

    @property
    def ctrl_state(self) -> int:
        """Value of the comparator bit selecting this branch."""
        return self.value


class PayoffIntegrator:
    """
    Exponential payoff factor via comparison against a reference register.

    Parameters
    ----------
    decay_rate : float
        Decay constant per unit of the decoded max value
    reference_width : int
        Width of the reference register; must equal the max register's
    """

    def __init__(self, decay_rate: float = DECAY_RATE, reference_width: int = 5):
        if decay_rate <= 0:
            raise ValidationError(f"decay_rate must be positive, got {decay_rate}")
        if reference_width < 1:
            raise ValidationError(f"reference_width must be >= 1, got {reference_width}")
        self.decay_rate = float(decay_rate)
        self.reference_width = reference_width

    def rate(self, fraction_bits: int) -> float:
        """λ in units of the raw register value."""
        return self.decay_rate * 2.0 ** -fraction_bits

    def loader(self, fraction_bits: int) -> DistributionLoader:
        table = exponential_distribution(self.rate(fraction_bits), self.reference_width)
        return DistributionLoader(table, self.reference_width)

    def validate(self, x: FixedPointValue) -> None:
        if x.width != self.reference_width:
            raise ValidationError(
                f"Reference register has {self.reference_width} qubits, "
                f"max register has {x.width}"
            )

    def num_work_qubits(self) -> int:
        """Reference register plus the comparator carry."""
        return self.reference_width + 1

    def conditional_probability(self, raw: int, fraction_bits: int) -> float:
        """P(res = 1) for unsigned raw value ``raw`` of the max register."""
        lam = self.rate(fraction_bits)
        span = 2 ** self.reference_width
        return float(-np.expm1(-lam * (raw + 1)) / -np.expm1(-lam * span))

    def apply(
        self,
        qc: QuantumCircuit,
        x: FixedPointValue,
        res: Qubit,
        pool: AncillaPool,
        control: Optional[Qubit] = None,
        ctrl_state: int = 1
    ) -> None:
        """
        res ^= unsigned(x) ≥ r over the loaded reference distribution.

        The reference register is unloaded by the inverse of its loader but
        stays entangled with ``res``; its qubits are retired from the pool.
        """
        self.validate(x)
        unsigned_x = x.as_unsigned()
        loader = self.loader(x.fraction_bits)
        controls = [control] if control is not None else []

        with ScopedAncilla(
            qc, pool, self.reference_width,
            prepare=loader.apply, name='reference', verify=False
        ) as reference:
            compare_registers(
                qc, unsigned_x.qubits, reference, res, pool,
                strict=False, controls=controls,
                ctrl_state=ctrl_state if controls else None,
                name='reference_carry'
            )


class ConditionalPayoffLoader:
    """
    Loads the payoff factor onto ``ind`` under control of the strike bit.

    Parameters
    ----------
    integrator : PayoffIntegrator
        Above-strike branch
    below_strike_angle : float
        RY angle of the below-strike branch (calibrated offline)
    """

    def __init__(
        self,
        integrator: Optional[PayoffIntegrator] = None,
        below_strike_angle: float = BELOW_STRIKE_ANGLE
    ):
        self.integrator = integrator or PayoffIntegrator()
        self.below_strike_angle = float(below_strike_angle)

    def num_work_qubits(self) -> int:
        return self.integrator.num_work_qubits()

    def apply(
        self,
        qc: QuantumCircuit,
        geq: Qubit,
        x: FixedPointValue,
        ind: Qubit,
        pool: AncillaPool
    ) -> None:
        for branch in PayoffBranch:
            self.apply_branch(branch, qc, geq, x, ind, pool)

    def apply_branch(
        self,
        branch: PayoffBranch,
        qc: QuantumCircuit,
        geq: Qubit,
        x: FixedPointValue,
        ind: Qubit,
        pool: AncillaPool
    ) -> None:
        if branch is PayoffBranch.ABOVE_STRIKE:
            self.integrator.apply(qc, x, ind, pool, control=geq, ctrl_state=branch.ctrl_state)
        elif branch is PayoffBranch.BELOW_STRIKE:
            qc.cry(self.below_strike_angle, geq, ind, ctrl_state=branch.ctrl_state)
        else:
            raise ValidationError(f"Unknown payoff branch {branch!r}")

    def branch_probability(self, branch: PayoffBranch, raw: int, fraction_bits: int) -> float:
        """P(ind = 1) contributed by ``branch`` for raw max value ``raw``."""
        if branch is PayoffBranch.ABOVE_STRIKE:
            return self.integrator.conditional_probability(raw, fraction_bits)
        if branch is PayoffBranch.BELOW_STRIKE:
            return float(np.sin(self.below_strike_angle / 2) ** 2)
        raise ValidationError(f"Unknown payoff branch {branch!r}")


__all__ = [
    'PayoffBranch',
    'PayoffIntegrator',
    'ConditionalPayoffLoader',
]
