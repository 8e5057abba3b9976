"""
Sampling Backends
=================

Measure a subset of qubits of a unitary circuit ``shots`` times.

Backends:
- EngineBackend: the in-package statevector engine (default; handles the
  many-ancilla rainbow circuit)
- QiskitStatevectorBackend: ``qiskit.primitives.StatevectorSampler``
- AerBackend: ``qiskit_aer.AerSimulator`` after transpilation

All backends return counts keyed by qiskit-ordered bitstrings (the last
character is the first measured qubit). Transient failures are retried by
:func:`execute_with_retry` with exponential backoff.

Author: QRainbow Research Team
"""

import logging
import time
from typing import Callable, Dict, Optional, Sequence

from qiskit import ClassicalRegister, QuantumCircuit, transpile
from qiskit.primitives import StatevectorSampler
from qiskit_aer import AerSimulator

from qrainbow.config import EngineConfig, SamplingConfig, StatevectorBudget
from qrainbow.exceptions import ExecutionError, TransientBackendError, ValidationError
from qrainbow.core.engine.runtime_guard import DEFAULT_BUDGET, ensure_statevector_ok
from qrainbow.core.engine.statevector import StatevectorEngine

logger = logging.getLogger(__name__)

Counts = Dict[str, int]


def _validate_request(circuit: QuantumCircuit, qubits: Sequence[int], shots: int) -> None:
    if shots < 1:
        raise ValidationError(f"shots must be positive, got {shots}")
    if not qubits:
        raise ValidationError("No qubits to measure")
    for q in qubits:
        if not 0 <= q < circuit.num_qubits:
            raise ValidationError(f"Qubit {q} outside {circuit.num_qubits}-qubit circuit")


def with_measurements(circuit: QuantumCircuit, qubits: Sequence[int]) -> QuantumCircuit:
    """Copy of ``circuit`` measuring ``qubits`` into a fresh register 'meas'."""
    creg = ClassicalRegister(len(qubits), 'meas')
    measured = QuantumCircuit(*circuit.qregs, creg, name=circuit.name)
    measured.compose(circuit, inplace=True)
    for j, q in enumerate(qubits):
        measured.measure(q, creg[j])
    return measured


class EngineBackend:
    """Samples from an exact simulation with :class:`StatevectorEngine`."""

    name = 'engine'

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def probabilities(self, circuit: QuantumCircuit, qubits: Sequence[int]):
        engine = StatevectorEngine.from_circuit(circuit, self.config)
        return engine.probabilities(list(qubits))

    def run(
        self,
        circuit: QuantumCircuit,
        qubits: Sequence[int],
        shots: int,
        seed: Optional[int] = None
    ) -> Counts:
        _validate_request(circuit, qubits, shots)
        engine = StatevectorEngine.from_circuit(circuit, self.config)
        return engine.sample_counts(list(qubits), shots, seed)


class QiskitStatevectorBackend:
    """Samples with qiskit's reference ``StatevectorSampler`` (small circuits)."""

    name = 'statevector_sampler'

    def __init__(self, budget: StatevectorBudget = DEFAULT_BUDGET):
        self.budget = budget

    def run(
        self,
        circuit: QuantumCircuit,
        qubits: Sequence[int],
        shots: int,
        seed: Optional[int] = None
    ) -> Counts:
        _validate_request(circuit, qubits, shots)
        ensure_statevector_ok(circuit, self.budget)
        sampler = StatevectorSampler(seed=seed)
        job = sampler.run([with_measurements(circuit, qubits)], shots=shots)
        result = job.result()
        return dict(result[0].data.meas.get_counts())


class AerBackend:
    """Samples with ``AerSimulator`` after transpiling to its basis gates."""

    name = 'aer_simulator'

    def __init__(
        self,
        optimization_level: int = 1,
        budget: StatevectorBudget = DEFAULT_BUDGET
    ):
        self.optimization_level = optimization_level
        self.budget = budget

    def run(
        self,
        circuit: QuantumCircuit,
        qubits: Sequence[int],
        shots: int,
        seed: Optional[int] = None
    ) -> Counts:
        _validate_request(circuit, qubits, shots)
        ensure_statevector_ok(circuit, self.budget)
        options = {'method': 'statevector'}
        if seed is not None:
            options['seed_simulator'] = seed
        simulator = AerSimulator(**options)
        measured = with_measurements(circuit, qubits)
        transpiled = transpile(
            measured, simulator, optimization_level=self.optimization_level
        )
        result = simulator.run(transpiled, shots=shots).result()
        if not result.success:
            raise TransientBackendError(f"Aer run failed: {result.status}")
        return dict(result.get_counts())


def execute_with_retry(
    run: Callable[[], Counts],
    config: Optional[SamplingConfig] = None,
    sleep: Callable[[float], None] = time.sleep
) -> Counts:
    """
    Call ``run`` until it succeeds or the retry budget is spent.

    Only TransientBackendError is retried. Counts of a failed attempt are
    never merged with later attempts.

    Raises
    ------
    ExecutionError
        After ``max_retries`` retries all failed
    """
    config = config or SamplingConfig()
    delay = config.backoff_seconds
    attempts = config.max_retries + 1

    for attempt in range(1, attempts + 1):
        try:
            return run()
        except TransientBackendError as e:
            if attempt == attempts:
                raise ExecutionError(
                    f"Sampling failed after {attempts} attempts: {e}"
                ) from e
            logger.warning(
                f"Sampling attempt {attempt}/{attempts} failed ({e}); "
                f"retrying in {delay:.2f}s"
            )
            sleep(delay)
            delay *= config.backoff_factor


__all__ = [
    'Counts',
    'with_measurements',
    'EngineBackend',
    'QiskitStatevectorBackend',
    'AerBackend',
    'execute_with_retry',
]
