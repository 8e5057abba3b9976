"""
Amplitude estimation: problems, sampling backends and drivers.
"""

from .results import AmplitudeEstimationResult
from .sampling import (
    Counts,
    with_measurements,
    EngineBackend,
    QiskitStatevectorBackend,
    AerBackend,
    execute_with_retry,
)
from .problem import EstimationProblem, RainbowEstimationProblem
from .iae import (
    clopper_pearson_interval,
    chernoff_interval,
    find_next_k,
    IterativeAmplitudeEstimation,
)
from .mlae import (
    ml_log_likelihood,
    fisher_information,
    MaximumLikelihoodAmplitudeEstimation,
)

__all__ = [
    'AmplitudeEstimationResult',
    'Counts',
    'with_measurements',
    'EngineBackend',
    'QiskitStatevectorBackend',
    'AerBackend',
    'execute_with_retry',
    'EstimationProblem',
    'RainbowEstimationProblem',
    'clopper_pearson_interval',
    'chernoff_interval',
    'find_next_k',
    'IterativeAmplitudeEstimation',
    'ml_log_likelihood',
    'fisher_information',
    'MaximumLikelihoodAmplitudeEstimation',
]
