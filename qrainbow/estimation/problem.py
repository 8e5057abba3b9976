"""
Estimation Problems
===================

The interface an amplitude estimation driver consumes:

- ``build(k)``: SP followed by k Grover iterations
- ``measure(circuit, shots)``: counts of the objective bit ('0' / '1')

The driver owns the choice of k, the accuracy accounting and the
confidence intervals; a problem only knows how to build and sample.

Author: QRainbow Research Team
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence

from qiskit import QuantumCircuit

from qrainbow.config import EngineConfig, SamplingConfig
from qrainbow.constants import RainbowConstants
from qrainbow.core.engine.statevector import StatevectorEngine
from qrainbow.core.grover.amplifier import GroverAmplifier
from qrainbow.estimation.sampling import Counts, EngineBackend, execute_with_retry
from qrainbow.rainbow.builder import RainbowCircuit, RainbowCircuitBuilder

logger = logging.getLogger(__name__)


class EstimationProblem:
    """
    Amplitude estimation problem over a state preparation.

    Parameters
    ----------
    state_preparation : QuantumCircuit
        Unitary SP
    objective_qubit : int
        Qubit whose probability of reading 1 is the amplitude
    backend : optional
        Object with ``run(circuit, qubits, shots, seed) -> counts``
        (default: EngineBackend)
    sampling_config : SamplingConfig, optional
        Retry policy for ``measure``
    engine_config : EngineConfig, optional
        Configuration for exact evaluations
    """

    def __init__(
        self,
        state_preparation: QuantumCircuit,
        objective_qubit: int,
        backend=None,
        sampling_config: Optional[SamplingConfig] = None,
        engine_config: Optional[EngineConfig] = None
    ):
        self.amplifier = GroverAmplifier(state_preparation, objective_qubit)
        self.objective_qubit = objective_qubit
        self.engine_config = engine_config or EngineConfig()
        self.backend = backend or EngineBackend(self.engine_config)
        self.sampling_config = sampling_config or SamplingConfig()

    @property
    def state_preparation(self) -> QuantumCircuit:
        return self.amplifier.state_preparation

    def build(self, k: int) -> QuantumCircuit:
        return self.amplifier.build(k)

    def measure(
        self,
        circuit: QuantumCircuit,
        shots: int,
        seed: Optional[int] = None
    ) -> Counts:
        """Sample the objective bit; returns counts with keys '0' and '1'."""
        counts = execute_with_retry(
            lambda: self.backend.run(circuit, [self.objective_qubit], shots, seed),
            self.sampling_config,
        )
        return {'0': int(counts.get('0', 0)), '1': int(counts.get('1', 0))}

    def sample(self, k: int, shots: int, seed: Optional[int] = None) -> int:
        """Number of '1' outcomes in ``shots`` measurements at power k."""
        return self.measure(self.build(k), shots, seed)['1']

    def indicator_probability(self, k: int = 0) -> float:
        """Exact P(objective = 1) after k Grover iterations."""
        engine = StatevectorEngine.from_circuit(self.build(k), self.engine_config)
        return engine.probability_of_one(self.objective_qubit)

    def measure_depths(
        self,
        depths: Sequence[int],
        shots: int,
        seed: Optional[int] = None,
        max_workers: Optional[int] = None
    ) -> Dict[int, Counts]:
        """
        Measure several Grover powers concurrently.

        Each depth gets its own circuit and simulation. If one evaluation
        fails, pending ones are cancelled and the error propagates.
        """
        depths = list(depths)
        results: Dict[int, Counts] = {}
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                k: executor.submit(
                    self.measure, self.build(k), shots,
                    None if seed is None else seed + i
                )
                for i, k in enumerate(depths)
            }
            try:
                for k, future in futures.items():
                    results[k] = future.result()
            except BaseException:
                for future in futures.values():
                    future.cancel()
                raise
        return results


class RainbowEstimationProblem(EstimationProblem):
    """
    Estimation problem over the rainbow option state preparation.

    Examples
    --------
    >>> problem = RainbowEstimationProblem()
    >>> problem.indicator_probability(0)
    """

    def __init__(
        self,
        constants: Optional[RainbowConstants] = None,
        backend=None,
        sampling_config: Optional[SamplingConfig] = None,
        engine_config: Optional[EngineConfig] = None
    ):
        self.rainbow: RainbowCircuit = RainbowCircuitBuilder(constants).build()
        super().__init__(
            self.rainbow.circuit,
            self.rainbow.objective_qubit,
            backend=backend,
            sampling_config=sampling_config,
            engine_config=engine_config,
        )

    def indicator_probabilities(self, depths: Sequence[int]) -> List[float]:
        return [self.indicator_probability(k) for k in depths]


__all__ = [
    'EstimationProblem',
    'RainbowEstimationProblem',
]
