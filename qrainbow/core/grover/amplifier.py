"""
Grover Amplitude Amplification
==============================

Builds SP followed by k Grover iterations for amplitude estimation.

Mathematical Foundation:
------------------------
Given SP with SP|0⟩ = sin(θ)|ψ_good⟩ + cos(θ)|ψ_bad⟩ where "good" means
the objective qubit reads 1, the Grover operator

    G = SP · S₀ · SP⁻¹ · S_f

(S_f = Z on the objective qubit, S₀ = phase flip of |0...0⟩ over every
qubit) rotates by 2θ in the good/bad plane, so

    P(objective = 1 after G^k SP) = sin²((2k+1)θ)

SP⁻¹ is ``SP.inverse()``, the reversed gate sequence with inverted gates.

Query Complexity:
-----------------
- k=0: 1 application of SP
- k: 2k+1 applications of SP or SP⁻¹

Author: QRainbow Research Team
"""

import logging
from typing import Optional

import numpy as np
from qiskit import QuantumCircuit

from qrainbow.exceptions import ValidationError

logger = logging.getLogger(__name__)


def zero_reflection(num_qubits: int) -> QuantumCircuit:
    """S₀: phase flip of the all-zero state over ``num_qubits`` qubits."""
    qc = QuantumCircuit(num_qubits, name='S0')
    target = num_qubits - 1
    qc.x(target)
    if num_qubits == 1:
        qc.z(target)
    else:
        qc.h(target)
        qc.mcx(list(range(num_qubits - 1)), target, ctrl_state=0)
        qc.h(target)
    qc.x(target)
    return qc


def expected_probability(a: float, k: int) -> float:
    """sin²((2k+1)·asin(√a)): objective probability after k iterations."""
    theta = np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))
    return float(np.sin((2 * k + 1) * theta) ** 2)


class GroverAmplifier:
    """
    Amplifies the objective-qubit amplitude of a state preparation.

    Parameters
    ----------
    state_preparation : QuantumCircuit
        Unitary SP (no measurements, no resets)
    objective_qubit : int
        Qubit marking good states (value 1)

    Examples
    --------
    >>> qc = QuantumCircuit(1)
    >>> qc.ry(2 * np.arcsin(np.sqrt(0.1)), 0)
    >>> amp = GroverAmplifier(qc, objective_qubit=0)
    >>> circuit = amp.build(3)
    """

    def __init__(self, state_preparation: QuantumCircuit, objective_qubit: int):
        if not 0 <= objective_qubit < state_preparation.num_qubits:
            raise ValidationError(
                f"Objective qubit {objective_qubit} outside "
                f"{state_preparation.num_qubits}-qubit circuit"
            )
        if state_preparation.num_clbits:
            raise ValidationError("State preparation must not contain measurements")
        self.state_preparation = state_preparation
        self.objective_qubit = objective_qubit
        self._grover_op: Optional[QuantumCircuit] = None

    @property
    def num_qubits(self) -> int:
        return self.state_preparation.num_qubits

    def grover_operator(self) -> QuantumCircuit:
        """G = SP · S₀ · SP⁻¹ · S_f (S_f applied first)."""
        if self._grover_op is None:
            sp = self.state_preparation
            Q = QuantumCircuit(*sp.qregs, name='G')

            # S_f: phase flip on good states
            Q.z(self.objective_qubit)
            Q.compose(sp.inverse(), inplace=True)
            Q.compose(zero_reflection(self.num_qubits), inplace=True)
            Q.compose(sp, inplace=True)
            self._grover_op = Q
        return self._grover_op

    def build(self, k: int) -> QuantumCircuit:
        """SP followed by ``k`` Grover iterations; k = 0 returns SP itself."""
        if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k < 0:
            raise ValidationError(f"Grover power must be a non-negative integer, got {k!r}")
        if k == 0:
            return self.state_preparation
        qc = self.state_preparation.copy(name=f'grover_k{k}')
        grover = self.grover_operator()
        for _ in range(k):
            qc.compose(grover, inplace=True)
        logger.debug(f"Built Grover circuit k={k} ({len(qc.data)} instructions)")
        return qc

    @staticmethod
    def oracle_calls(k: int) -> int:
        return 2 * k + 1


__all__ = [
    'zero_reflection',
    'expected_probability',
    'GroverAmplifier',
]
