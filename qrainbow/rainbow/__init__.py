"""
Rainbow option state preparation and its classical reference.
"""

from .builder import RainbowCircuit, RainbowCircuitBuilder
from .classical import (
    PayoffCell,
    payoff_cells,
    expected_indicator_probability,
    probability_above_strike,
)

__all__ = [
    'RainbowCircuit',
    'RainbowCircuitBuilder',
    'PayoffCell',
    'payoff_cells',
    'expected_indicator_probability',
    'probability_above_strike',
]
