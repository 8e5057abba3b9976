"""
QRainbow: Quantum Amplitude Estimation for Rainbow Options
==========================================================

Builds and evaluates the quantum circuit estimating the expected payoff of
a two-asset rainbow option with Grover-accelerated amplitude estimation.

Key Features:
- Invertible Grover-Rudolph distribution loading
- Reversible fixed-point arithmetic with scoped, verified uncomputation
- Reference-register payoff integration
- Grover amplification and iterative / maximum-likelihood QAE
- Sparse statevector engine with norm and ancilla checkpoints

Author: QRainbow Research Team
"""

__version__ = "1.0.0"

from .exceptions import (
    QRainbowError,
    ValidationError,
    PreconditionError,
    InvariantViolation,
    UncomputeError,
    TransientBackendError,
    ExecutionError,
    DidNotConverge,
)
from .config import EngineConfig, SamplingConfig, EstimationConfig, StatevectorBudget
from .constants import DEFAULT_CONSTANTS, RainbowConstants, RegisterLayout
from .core.engine import StatevectorEngine
from .core.state_prep import DistributionLoader
from .core.grover import GroverAmplifier
from .rainbow import RainbowCircuitBuilder, expected_indicator_probability
from .estimation import (
    EstimationProblem,
    RainbowEstimationProblem,
    IterativeAmplitudeEstimation,
    MaximumLikelihoodAmplitudeEstimation,
    AmplitudeEstimationResult,
)

__all__ = [
    'QRainbowError',
    'ValidationError',
    'PreconditionError',
    'InvariantViolation',
    'UncomputeError',
    'TransientBackendError',
    'ExecutionError',
    'DidNotConverge',
    'EngineConfig',
    'SamplingConfig',
    'EstimationConfig',
    'StatevectorBudget',
    'DEFAULT_CONSTANTS',
    'RainbowConstants',
    'RegisterLayout',
    'StatevectorEngine',
    'DistributionLoader',
    'GroverAmplifier',
    'RainbowCircuitBuilder',
    'expected_indicator_probability',
    'EstimationProblem',
    'RainbowEstimationProblem',
    'IterativeAmplitudeEstimation',
    'MaximumLikelihoodAmplitudeEstimation',
    'AmplitudeEstimationResult',
]
