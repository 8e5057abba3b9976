"""
Configuration
=============

Dataclass configurations for the statevector engine, the sampling backends
and the amplitude estimation drivers.

Author: QRainbow Research Team
"""

from dataclasses import dataclass, field
from typing import Optional

from qrainbow.exceptions import ValidationError


BYTES_PER_COMPLEX128 = 16  # numpy complex128


@dataclass
class StatevectorBudget:
    """Upper bounds on the dense statevector a single engine may allocate."""
    max_qubits: int = 24
    max_bytes: int = 512 * 1024 * 1024  # 512 MB


@dataclass
class EngineConfig:
    """Configuration for :class:`~qrainbow.core.engine.StatevectorEngine`.

    Attributes
    ----------
    tolerance : float
        Allowed drift of the squared norm from 1, and allowed residual
        probability outside |0⟩ at ancilla checkpoints
    check_normalization : bool
        Verify the norm after every applied operation
    check_scopes : bool
        Verify ancilla checkpoints emitted by scoped blocks
    max_support : int
        Largest number of non-zero amplitudes the engine may hold
    prune_threshold : float
        Amplitudes with squared magnitude at or below this are dropped
    budget : StatevectorBudget
        Memory guard for dense exports
    """
    tolerance: float = 1e-9
    check_normalization: bool = True
    check_scopes: bool = True
    max_support: int = 1 << 22
    prune_threshold: float = 1e-30
    budget: StatevectorBudget = field(default_factory=StatevectorBudget)


@dataclass
class SamplingConfig:
    """Retry policy for sampling backends.

    A failed attempt is retried after ``backoff_seconds``, multiplied by
    ``backoff_factor`` for every further attempt.
    """
    max_retries: int = 3
    backoff_seconds: float = 0.5
    backoff_factor: float = 2.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValidationError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.backoff_seconds < 0 or self.backoff_factor < 1:
            raise ValidationError(
                f"Invalid backoff ({self.backoff_seconds}, x{self.backoff_factor})"
            )


@dataclass
class EstimationConfig:
    """Configuration for the amplitude estimation drivers.

    Attributes
    ----------
    epsilon : float
        Target half-width of the confidence interval, in (0, 0.5]
    alpha : float
        Failure probability of the interval, in (0, 1)
    shots : int
        Shots per round
    confint_method : str
        'beta' (Clopper-Pearson) or 'chernoff'
    min_ratio : float
        Minimal growth factor of the Grover power between rounds
    max_rounds : int, optional
        Round budget; None derives it from epsilon
    max_power : int, optional
        Largest allowed Grover power k
    """
    epsilon: float = 0.01
    alpha: float = 0.05
    shots: int = 100
    confint_method: str = 'beta'
    min_ratio: float = 2.0
    max_rounds: Optional[int] = None
    max_power: Optional[int] = None

    def __post_init__(self):
        validate_accuracy(self.epsilon, self.alpha)
        if self.shots < 1:
            raise ValidationError(f"shots must be positive, got {self.shots}")
        if self.confint_method not in ('beta', 'chernoff'):
            raise ValidationError(
                f"confint_method must be 'beta' or 'chernoff', got {self.confint_method!r}"
            )
        if self.min_ratio <= 1:
            raise ValidationError(f"min_ratio must be > 1, got {self.min_ratio}")


def validate_accuracy(epsilon: float, alpha: float) -> None:
    """Reject accuracy parameters outside their declared domains."""
    if not 0 < epsilon <= 0.5:
        raise ValidationError(f"epsilon must be in (0, 0.5], got {epsilon}")
    if not 0 < alpha < 1:
        raise ValidationError(f"alpha must be in (0, 1), got {alpha}")


__all__ = [
    'BYTES_PER_COMPLEX128',
    'StatevectorBudget',
    'EngineConfig',
    'SamplingConfig',
    'EstimationConfig',
    'validate_accuracy',
]
