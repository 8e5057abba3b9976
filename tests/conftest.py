"""
Shared fixtures: the rainbow circuit is built and simulated once per session.
"""

import numpy as np
import pytest
from qiskit import QuantumCircuit

from qrainbow.core.engine import StatevectorEngine
from qrainbow.estimation.problem import EstimationProblem
from qrainbow.rainbow.builder import RainbowCircuitBuilder


@pytest.fixture(scope='session')
def rainbow_builder():
    return RainbowCircuitBuilder()


@pytest.fixture(scope='session')
def rainbow(rainbow_builder):
    return rainbow_builder.build()


@pytest.fixture(scope='session')
def rainbow_engine(rainbow):
    """Engine holding SP|0⟩ of the rainbow circuit."""
    return StatevectorEngine.from_circuit(rainbow.circuit)


@pytest.fixture
def synthetic_problem():
    """Estimation problem with known amplitude a = 0.3."""
    qc = QuantumCircuit(1, name='ry_sp')
    qc.ry(2 * np.arcsin(np.sqrt(0.3)), 0)
    return EstimationProblem(qc, objective_qubit=0)
