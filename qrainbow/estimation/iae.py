"""
Iterative Quantum Amplitude Estimation (IQAE)
=============================================

Adaptive choice of Grover powers with interval tracking on the angle.

Mathematical Foundation:
------------------------
Write a = sin²(2πθ) with θ ∈ [0, 1/4]. After k iterations the objective
probability is sin²((4k+2)·πθ), so measuring at power k reveals θ scaled
by 4k+2 modulo the half circle. Each round:

1. Pick the largest k (scaling 4k+2 ≥ min_ratio times the previous one)
   for which the scaled θ interval lies in one half circle
2. Sample the objective bit; aggregate consecutive rounds at the same k
3. Confidence interval on the scaled probability (Clopper-Pearson or
   Chernoff) at level alpha / T, T = ⌈log(min_ratio·π / (8ε)) / log(min_ratio)⌉
4. Map it back to θ and intersect

Stop once θ_u - θ_l ≤ ε/π, i.e. the interval on a has half-width ≤ ε.

Reference: Grinko, Gacon, Zoufal, Woerner, "Iterative Quantum Amplitude
Estimation", npj Quantum Information 7, 52 (2021), arXiv:1912.05559

Author: QRainbow Research Team
"""

import logging
from typing import List, Optional, Tuple

import numpy as np
from scipy.stats import beta

from qrainbow.config import EstimationConfig
from qrainbow.exceptions import DidNotConverge, ValidationError
from qrainbow.estimation.results import AmplitudeEstimationResult

logger = logging.getLogger(__name__)


def clopper_pearson_interval(counts: int, shots: int, alpha: float) -> Tuple[float, float]:
    """Exact binomial (Clopper-Pearson) interval at confidence 1 - alpha."""
    lower, upper = 0.0, 1.0
    if counts != 0:
        lower = float(beta.ppf(alpha / 2, counts, shots - counts + 1))
    if counts != shots:
        upper = float(beta.ppf(1 - alpha / 2, counts + 1, shots - counts))
    return lower, upper


def chernoff_interval(
    probability: float,
    shots: int,
    max_rounds: int,
    alpha: float
) -> Tuple[float, float]:
    """Hoeffding/Chernoff interval at level alpha / max_rounds."""
    eps = np.sqrt(np.log(2 * max_rounds / alpha) / (2 * shots))
    return max(0.0, probability - eps), min(1.0, probability + eps)


def find_next_k(
    k: int,
    upper_half_circle: bool,
    theta_interval: Tuple[float, float],
    min_ratio: float = 2.0
) -> Tuple[int, bool]:
    """
    Largest admissible Grover power for the current θ interval.

    Returns the previous power (and half-circle flag) when no larger
    scaling keeps the scaled interval inside one half circle.
    """
    theta_l, theta_u = theta_interval
    old_scaling = 4 * k + 2

    max_scaling = int(1 / (2 * (theta_u - theta_l)))
    scaling = max_scaling - (max_scaling - 2) % 4

    while scaling >= min_ratio * old_scaling:
        theta_min = scaling * theta_l - int(scaling * theta_l)
        theta_max = scaling * theta_u - int(scaling * theta_u)

        if theta_min <= theta_max <= 0.5 and theta_min <= 0.5:
            return int((scaling - 2) / 4), True
        if theta_max >= 0.5 and theta_max >= theta_min >= 0.5:
            return int((scaling - 2) / 4), False
        scaling -= 4

    return int(k), upper_half_circle


class IterativeAmplitudeEstimation:
    """
    Iterative amplitude estimation driver.

    Parameters
    ----------
    epsilon_target : float
        Target half-width of the interval on a, in (0, 0.5]
    alpha : float
        Failure probability, in (0, 1)
    shots : int, default=100
        Shots per round
    confint_method : str, default='beta'
        'beta' (Clopper-Pearson) or 'chernoff'
    min_ratio : float, default=2.0
        Minimal growth of the scaling 4k+2 between distinct powers
    max_rounds : int, optional
        Round budget (default: 50·T)
    max_power : int, optional
        Largest allowed Grover power

    Examples
    --------
    >>> iae = IterativeAmplitudeEstimation(epsilon_target=0.01, alpha=0.05)
    >>> result = iae.estimate(problem, seed=7)
    >>> result.confidence_interval
    """

    def __init__(
        self,
        epsilon_target: float = 0.01,
        alpha: float = 0.05,
        shots: int = 100,
        confint_method: str = 'beta',
        min_ratio: float = 2.0,
        max_rounds: Optional[int] = None,
        max_power: Optional[int] = None
    ):
        self.config = EstimationConfig(
            epsilon=epsilon_target,
            alpha=alpha,
            shots=shots,
            confint_method=confint_method,
            min_ratio=min_ratio,
            max_rounds=max_rounds,
            max_power=max_power,
        )

    @classmethod
    def from_config(cls, config: EstimationConfig) -> 'IterativeAmplitudeEstimation':
        return cls(
            config.epsilon, config.alpha, config.shots, config.confint_method,
            config.min_ratio, config.max_rounds, config.max_power,
        )

    @property
    def num_confidence_rounds(self) -> int:
        """T: upper bound on the number of distinct powers."""
        cfg = self.config
        return int(
            np.log(cfg.min_ratio * np.pi / 8 / cfg.epsilon) / np.log(cfg.min_ratio)
        ) + 1

    def _interval(self, ones: int, shots: int) -> Tuple[float, float]:
        cfg = self.config
        T = self.num_confidence_rounds
        if cfg.confint_method == 'chernoff':
            return chernoff_interval(ones / shots, shots, T, cfg.alpha)
        if cfg.confint_method == 'beta':
            return clopper_pearson_interval(ones, shots, cfg.alpha / T)
        raise ValidationError(f"Unknown confint_method {cfg.confint_method!r}")

    def estimate(self, problem, seed: Optional[int] = None) -> AmplitudeEstimationResult:
        """
        Run the estimation loop on ``problem`` (anything with ``sample(k, shots, seed)``).

        Raises
        ------
        DidNotConverge
            When the round budget or the power cap is exceeded
        """
        cfg = self.config
        rng = np.random.default_rng(seed)
        round_budget = cfg.max_rounds if cfg.max_rounds is not None \
            else 50 * self.num_confidence_rounds

        theta_interval = (0.0, 0.25)
        a_interval = (0.0, 1.0)
        powers: List[int] = [0]
        ones_counts: List[int] = []
        upper_half_circle = True
        oracle_queries = 0

        while theta_interval[1] - theta_interval[0] > cfg.epsilon / np.pi:
            rounds = len(ones_counts)
            if rounds >= round_budget:
                raise DidNotConverge(
                    f"IAE exhausted {round_budget} rounds with interval {a_interval}",
                    rounds=rounds,
                    last_interval=a_interval,
                )

            k, upper_half_circle = find_next_k(
                powers[-1], upper_half_circle, theta_interval, cfg.min_ratio
            )
            if cfg.max_power is not None and k > cfg.max_power:
                raise DidNotConverge(
                    f"IAE needs Grover power {k} > max_power {cfg.max_power}",
                    rounds=rounds,
                    last_interval=a_interval,
                )
            powers.append(k)
            ones = problem.sample(k, cfg.shots, int(rng.integers(2 ** 31)))
            ones_counts.append(ones)
            oracle_queries += cfg.shots * k

            # aggregate consecutive rounds at the same power
            round_shots, round_ones = cfg.shots, ones
            i = len(ones_counts)
            j = 1
            while i - j >= 1 and powers[i - j] == k:
                round_shots += cfg.shots
                round_ones += ones_counts[i - j - 1]
                j += 1

            a_min, a_max = self._interval(round_ones, round_shots)
            if upper_half_circle:
                theta_min_i = np.arccos(1 - 2 * a_min) / 2 / np.pi
                theta_max_i = np.arccos(1 - 2 * a_max) / 2 / np.pi
            else:
                theta_min_i = 1 - np.arccos(1 - 2 * a_max) / 2 / np.pi
                theta_max_i = 1 - np.arccos(1 - 2 * a_min) / 2 / np.pi

            scaling = 4 * k + 2
            theta_u = (int(scaling * theta_interval[1]) + theta_max_i) / scaling
            theta_l = (int(scaling * theta_interval[0]) + theta_min_i) / scaling
            theta_interval = (float(theta_l), float(theta_u))

            a_interval = (
                float(np.sin(2 * np.pi * theta_l) ** 2),
                float(np.sin(2 * np.pi * theta_u) ** 2),
            )
            logger.debug(
                f"Round {i}: k={k}, ones={ones}/{cfg.shots}, "
                f"a ∈ [{a_interval[0]:.6f}, {a_interval[1]:.6f}]"
            )

        estimate = float(np.mean(a_interval))
        logger.info(
            f"IAE estimate a = {estimate:.6f}, CI [{a_interval[0]:.6f}, {a_interval[1]:.6f}] "
            f"after {len(ones_counts)} rounds, {oracle_queries} oracle queries"
        )
        return AmplitudeEstimationResult(
            estimation=estimate,
            confidence_interval=a_interval,
            oracle_queries=oracle_queries,
            powers=powers[1:],
            ones_counts=ones_counts,
            shots=[cfg.shots] * len(ones_counts),
            alpha=cfg.alpha,
        )


__all__ = [
    'clopper_pearson_interval',
    'chernoff_interval',
    'find_next_k',
    'IterativeAmplitudeEstimation',
]
