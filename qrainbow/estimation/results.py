"""
Amplitude estimation results.
"""

from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass
class AmplitudeEstimationResult:
    """Result of an amplitude estimation run.

    Attributes
    ----------
    estimation : float
        Point estimate of the amplitude a = P(objective = 1)
    confidence_interval : Tuple[float, float]
        Interval on a at the requested confidence level
    oracle_queries : int
        Grover operator applications summed over all shots
    powers : List[int]
        Grover power k used in each round
    ones_counts : List[int]
        Number of '1' outcomes per round
    shots : List[int]
        Shots per round
    alpha : float
        Failure probability of the interval
    """
    estimation: float
    confidence_interval: Tuple[float, float]
    oracle_queries: int
    powers: List[int] = field(default_factory=list)
    ones_counts: List[int] = field(default_factory=list)
    shots: List[int] = field(default_factory=list)
    alpha: float = 0.05

    @property
    def num_rounds(self) -> int:
        return len(self.powers)

    @property
    def total_shots(self) -> int:
        return sum(self.shots)

    @property
    def half_width(self) -> float:
        lo, hi = self.confidence_interval
        return (hi - lo) / 2

    def contains(self, a: float) -> bool:
        lo, hi = self.confidence_interval
        return lo <= a <= hi


__all__ = ['AmplitudeEstimationResult']
