"""
Tests for amplitude estimation: interval helpers, the IAE and ML-QAE
drivers on a one-qubit problem with known amplitude, sampling backends
and the retry policy.
"""

import numpy as np
import pytest
from qiskit import QuantumCircuit

from qrainbow.cli import main
from qrainbow.config import EstimationConfig, SamplingConfig
from qrainbow.core.grover import expected_probability
from qrainbow.estimation import (
    AerBackend,
    AmplitudeEstimationResult,
    EngineBackend,
    EstimationProblem,
    IterativeAmplitudeEstimation,
    MaximumLikelihoodAmplitudeEstimation,
    QiskitStatevectorBackend,
    chernoff_interval,
    clopper_pearson_interval,
    execute_with_retry,
    find_next_k,
    fisher_information,
    ml_log_likelihood,
    with_measurements,
)
from qrainbow.exceptions import (
    DidNotConverge,
    ExecutionError,
    TransientBackendError,
    ValidationError,
)

TRUE_A = 0.3


class FlakyBackend:
    """Fails ``failures`` times with a transient error, then delegates."""

    def __init__(self, failures, error=TransientBackendError):
        self.failures = failures
        self.error = error
        self.calls = 0
        self.inner = EngineBackend()

    def run(self, circuit, qubits, shots, seed=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error('backend unavailable')
        return self.inner.run(circuit, qubits, shots, seed)


def no_backoff(max_retries=3):
    return SamplingConfig(max_retries=max_retries, backoff_seconds=0.0)


class TestIntervals:
    """Binomial interval helpers."""

    def test_clopper_pearson_edges(self):
        lo, hi = clopper_pearson_interval(0, 10, 0.05)
        assert lo == 0.0 and 0 < hi < 1
        lo, hi = clopper_pearson_interval(10, 10, 0.05)
        assert hi == 1.0 and 0 < lo < 1

    def test_clopper_pearson_contains_mle(self):
        lo, hi = clopper_pearson_interval(30, 100, 0.05)
        assert lo < 0.3 < hi

    def test_chernoff(self):
        lo, hi = chernoff_interval(0.5, 100, 5, 0.05)
        assert hi - 0.5 == pytest.approx(0.5 - lo)
        assert chernoff_interval(0.0, 100, 5, 0.05)[0] == 0.0

    def test_find_next_k_first_round(self):
        assert find_next_k(0, True, (0.0, 0.25)) == (0, True)

    def test_find_next_k_grows(self):
        k, _ = find_next_k(0, True, (0.09, 0.1))
        assert k >= 1


class TestIterativeAmplitudeEstimation:
    """IAE on the one-qubit RY problem."""

    def test_estimate_within_target(self, synthetic_problem):
        iae = IterativeAmplitudeEstimation(epsilon_target=0.01, alpha=0.05, shots=100)
        result = iae.estimate(synthetic_problem, seed=11)
        assert isinstance(result, AmplitudeEstimationResult)
        assert result.half_width <= 0.01 + 1e-12
        assert abs(result.estimation - TRUE_A) < 0.05
        assert result.oracle_queries == sum(k * n for k, n in zip(result.powers, result.shots))
        assert result.powers[0] == 0
        assert result.total_shots == 100 * result.num_rounds

    def test_coverage(self, synthetic_problem):
        iae = IterativeAmplitudeEstimation(epsilon_target=0.02, alpha=0.1, shots=100)
        hits = sum(iae.estimate(synthetic_problem, seed=seed).contains(TRUE_A) for seed in range(30))
        assert hits >= 27

    def test_chernoff_intervals(self, synthetic_problem):
        iae = IterativeAmplitudeEstimation(
            epsilon_target=0.02, alpha=0.05, shots=200, confint_method='chernoff'
        )
        result = iae.estimate(synthetic_problem, seed=5)
        assert result.half_width <= 0.02 + 1e-12

    def test_seeded_runs_repeat(self, synthetic_problem):
        iae = IterativeAmplitudeEstimation(epsilon_target=0.02, alpha=0.05)
        first = iae.estimate(synthetic_problem, seed=3)
        second = iae.estimate(synthetic_problem, seed=3)
        assert first.estimation == second.estimation
        assert first.powers == second.powers

    def test_round_budget(self, synthetic_problem):
        iae = IterativeAmplitudeEstimation(epsilon_target=0.001, alpha=0.05, max_rounds=1)
        with pytest.raises(DidNotConverge) as info:
            iae.estimate(synthetic_problem, seed=1)
        assert info.value.rounds == 1
        assert info.value.last_interval is not None

    def test_power_cap(self, synthetic_problem):
        iae = IterativeAmplitudeEstimation(epsilon_target=0.001, alpha=0.05, max_power=1)
        with pytest.raises(DidNotConverge):
            iae.estimate(synthetic_problem, seed=1)

    @pytest.mark.parametrize('kwargs', [
        {'epsilon_target': 0.0},
        {'epsilon_target': 0.6},
        {'alpha': 0.0},
        {'alpha': 1.0},
        {'shots': 0},
        {'confint_method': 'wald'},
        {'min_ratio': 1.0},
    ])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValidationError):
            IterativeAmplitudeEstimation(**kwargs)

    def test_from_config(self):
        iae = IterativeAmplitudeEstimation.from_config(EstimationConfig(epsilon=0.05, shots=50))
        assert iae.config.shots == 50
        assert iae.num_confidence_rounds >= 1


class TestMaximumLikelihoodAmplitudeEstimation:
    """ML-QAE on the one-qubit RY problem."""

    def test_estimate(self, synthetic_problem):
        mlae = MaximumLikelihoodAmplitudeEstimation([0, 1, 2, 4, 8], shots=200)
        result = mlae.estimate(synthetic_problem, seed=5)
        assert abs(result.estimation - TRUE_A) < 0.03
        lo, hi = result.confidence_interval
        assert lo <= result.estimation <= hi
        assert result.oracle_queries == 200 * 15

    def test_likelihood_peaks_at_truth(self):
        theta = np.arcsin(np.sqrt(TRUE_A))
        powers, shots = [0, 1, 2], [1000] * 3
        ones = [int(round(1000 * expected_probability(TRUE_A, k))) for k in powers]
        mlae = MaximumLikelihoodAmplitudeEstimation(powers)
        assert mlae.compute_mle(powers, ones, shots) == pytest.approx(theta, abs=0.01)
        assert ml_log_likelihood(theta, powers, ones, shots) > \
            ml_log_likelihood(theta + 0.1, powers, ones, shots)

    def test_fisher_information(self):
        assert fisher_information([0, 1], [10, 10]) == 4 * 10 * 1 + 4 * 10 * 9

    @pytest.mark.parametrize('kwargs', [
        {'evaluation_schedule': []},
        {'evaluation_schedule': [-1, 0]},
        {'evaluation_schedule': [0, 1.5]},
        {'shots': 0},
        {'alpha': 1.5},
    ])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValidationError):
            MaximumLikelihoodAmplitudeEstimation(**kwargs)


class TestEstimationProblem:
    """Building and sampling Grover circuits."""

    def test_exact_probabilities(self, synthetic_problem):
        for k in range(4):
            assert synthetic_problem.indicator_probability(k) == \
                pytest.approx(expected_probability(TRUE_A, k), abs=1e-9)

    def test_measure_keys(self, synthetic_problem):
        counts = synthetic_problem.measure(synthetic_problem.build(0), 100, seed=1)
        assert set(counts) == {'0', '1'}
        assert counts['0'] + counts['1'] == 100

    def test_measure_depths(self, synthetic_problem):
        results = synthetic_problem.measure_depths([0, 1, 2], shots=50, seed=2)
        assert sorted(results) == [0, 1, 2]
        assert all(sum(c.values()) == 50 for c in results.values())

    def test_measure_depths_propagates_failure(self):
        qc = QuantumCircuit(1)
        qc.x(0)
        problem = EstimationProblem(qc, 0, backend=FlakyBackend(100), sampling_config=no_backoff(0))
        with pytest.raises(ExecutionError):
            problem.measure_depths([0, 1], shots=10)


class TestRetry:
    """Transient sampling failures are retried with backoff."""

    def test_recovers_after_transient_failures(self):
        qc = QuantumCircuit(1)
        qc.x(0)
        backend = FlakyBackend(2)
        problem = EstimationProblem(qc, 0, backend=backend, sampling_config=no_backoff())
        assert problem.measure(qc, 10) == {'0': 0, '1': 10}
        assert backend.calls == 3

    def test_gives_up_after_budget(self):
        qc = QuantumCircuit(1)
        backend = FlakyBackend(10)
        problem = EstimationProblem(qc, 0, backend=backend, sampling_config=no_backoff(2))
        with pytest.raises(ExecutionError):
            problem.measure(qc, 10)
        assert backend.calls == 3

    def test_non_transient_errors_propagate(self):
        qc = QuantumCircuit(1)
        backend = FlakyBackend(1, error=ValueError)
        problem = EstimationProblem(qc, 0, backend=backend, sampling_config=no_backoff())
        with pytest.raises(ValueError):
            problem.measure(qc, 10)
        assert backend.calls == 1

    def test_exponential_backoff(self):
        delays = []

        def failing():
            raise TransientBackendError('down')

        config = SamplingConfig(max_retries=3, backoff_seconds=0.5, backoff_factor=2.0)
        with pytest.raises(ExecutionError):
            execute_with_retry(failing, config, sleep=delays.append)
        assert delays == [0.5, 1.0, 2.0]

    def test_invalid_config(self):
        with pytest.raises(ValidationError):
            SamplingConfig(max_retries=-1)
        with pytest.raises(ValidationError):
            SamplingConfig(backoff_factor=0.5)


class TestBackends:
    """Qiskit reference backends on small circuits."""

    def bell(self):
        qc = QuantumCircuit(2)
        qc.x(0)
        qc.cx(0, 1)
        return qc

    def test_with_measurements(self):
        measured = with_measurements(self.bell(), [1])
        assert measured.num_clbits == 1
        assert measured.cregs[0].name == 'meas'

    @pytest.mark.parametrize('backend_cls', [EngineBackend, QiskitStatevectorBackend, AerBackend])
    def test_deterministic_counts(self, backend_cls):
        counts = backend_cls().run(self.bell(), [0, 1], shots=64, seed=7)
        assert counts == {'11': 64}

    @pytest.mark.parametrize('backend_cls', [QiskitStatevectorBackend, AerBackend])
    def test_sampled_problem(self, backend_cls, synthetic_problem):
        problem = EstimationProblem(synthetic_problem.state_preparation, 0, backend=backend_cls())
        counts = problem.measure(problem.build(1), 200, seed=3)
        assert counts['0'] + counts['1'] == 200

    def test_rejects_bad_requests(self):
        with pytest.raises(ValidationError):
            EngineBackend().run(self.bell(), [0], shots=0)
        with pytest.raises(ValidationError):
            EngineBackend().run(self.bell(), [5], shots=10)

    def test_dense_backends_guard_width(self):
        with pytest.raises(MemoryError):
            QiskitStatevectorBackend().run(QuantumCircuit(30), [0], shots=1)


class TestRainbowEstimation:
    """End-to-end estimation on the rainbow circuit at power 0."""

    def test_cli_mlae(self, capsys):
        assert main(['--method', 'mlae', '--schedule', '0', '--shots', '50', '--seed', '1']) == 0
        out = capsys.readouterr().out
        assert 'estimate' in out and 'exact' in out

    def test_cli_reports_errors(self):
        assert main(['--epsilon', '0.9']) == 1
