"""
Classical reference for the rainbow circuit: brute-force enumeration of the
discrete price grid with the same rounding and payoff factors.
"""

import itertools
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from qrainbow.constants import DEFAULT_CONSTANTS, RainbowConstants
from qrainbow.core.arithmetic.affine import AffineForm
from qrainbow.core.arithmetic.fixed_point import floor_raw
from qrainbow.core.oracles.payoff_oracle import (
    ConditionalPayoffLoader,
    PayoffBranch,
    PayoffIntegrator,
)


@dataclass(frozen=True)
class PayoffCell:
    """One grid point (x1, x2) and its contribution."""
    x1: int
    x2: int
    weight: float
    max_value: float
    max_raw: int
    branch: PayoffBranch
    indicator_probability: float


def payoff_cells(constants: Optional[RainbowConstants] = None) -> List[PayoffCell]:
    constants = constants or DEFAULT_CONSTANTS
    layout = constants.layout
    frac = layout.max_fraction_bits
    forms = [AffineForm.from_tuple(f) for f in constants.affine_forms]
    loader = ConditionalPayoffLoader(
        PayoffIntegrator(constants.decay_rate, layout.reference_width),
        constants.below_strike_angle,
    )
    threshold = floor_raw(constants.strike, frac)
    scale = 2 ** layout.asset_fraction_bits
    p1, p2 = (np.asarray(t, dtype=float) for t in constants.asset_probabilities)

    cells = []
    for i, j in itertools.product(range(len(p1)), range(len(p2))):
        v1, v2 = i / scale, j / scale
        raw = max(f.raw(v1, v2, frac) for f in forms)
        branch = PayoffBranch.ABOVE_STRIKE if raw > threshold else PayoffBranch.BELOW_STRIKE
        cells.append(PayoffCell(
            x1=i,
            x2=j,
            weight=float(p1[i] * p2[j]),
            max_value=raw / 2 ** frac,
            max_raw=raw,
            branch=branch,
            indicator_probability=loader.branch_probability(branch, raw, frac),
        ))
    return cells


def expected_indicator_probability(constants: Optional[RainbowConstants] = None) -> float:
    """Exact P(ind = 1) of the rainbow state preparation."""
    return float(sum(c.weight * c.indicator_probability for c in payoff_cells(constants)))


def probability_above_strike(constants: Optional[RainbowConstants] = None) -> float:
    return float(sum(
        c.weight for c in payoff_cells(constants) if c.branch is PayoffBranch.ABOVE_STRIKE
    ))


__all__ = [
    'PayoffCell',
    'payoff_cells',
    'expected_indicator_probability',
    'probability_above_strike',
]
