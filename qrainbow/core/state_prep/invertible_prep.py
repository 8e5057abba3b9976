"""
Invertible Distribution Loading
===============================

Grover-Rudolph amplitude encoding built from RY and multi-controlled RY
gates only, so ``inverse()`` is exact and the loader can sit inside a
Grover operator.

Mathematical Foundation:
------------------------
For a table {p_0, ..., p_{2^n - 1}} over an n-qubit register, build a
binary tree over the index bits, most significant bit first:

Level 0: RY(θ) on the MSB splitting the table into halves
Level l: RY(θ_node) on bit n-1-l, controlled on the l higher bits
         holding the node's prefix

Each rotation is:
    θ = 2·arcsin(√(p_right / p_total))

Afterwards the register holds Σ_i √p_i |i⟩ (qiskit little-endian: qubit q
is bit q of i).

Reference: Grover & Rudolph, arXiv:quant-ph/0208112

Author: QRainbow Research Team
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
from qiskit import QuantumCircuit, QuantumRegister
from qiskit.circuit import Qubit
from qiskit.circuit.library import RYGate

from qrainbow.constants import PROBABILITY_TOLERANCE
from qrainbow.exceptions import ValidationError

logger = logging.getLogger(__name__)


def compute_rotation_angles_tree(
    target_probs: np.ndarray,
    min_prob: float = 1e-15
) -> List[List[float]]:
    """
    Compute RY rotation angles for binary tree decomposition.

    Parameters
    ----------
    target_probs : np.ndarray, shape (2^n,)
        Normalised probability table
    min_prob : float, default=1e-15
        Subtrees with less total mass get a zero rotation

    Returns
    -------
    angles : List[List[float]]
        angles[l][j] is the rotation for node j (prefix value j) at level l.

    Examples
    --------
    >>> angles = compute_rotation_angles_tree(np.array([0.25, 0.25, 0.25, 0.25]))
    >>> # angles[0] = [π/2]; angles[1] = [π/2, π/2]
    """
    target_probs = np.asarray(target_probs, dtype=float)
    n = int(np.log2(len(target_probs))) if len(target_probs) else 0
    if len(target_probs) == 0 or 2 ** n != len(target_probs):
        raise ValidationError(
            f"Probabilities length must be a power of 2, got {len(target_probs)}"
        )

    angles = []
    for level in range(n):
        level_angles = []
        states_per_node = 2 ** (n - level)

        for node_idx in range(2 ** level):
            start = node_idx * states_per_node
            mid = start + states_per_node // 2
            end = start + states_per_node

            p_total = np.sum(target_probs[start:end])
            if p_total < min_prob:
                theta = 0.0
            else:
                p_right = np.sum(target_probs[mid:end])
                ratio = min(max(p_right / p_total, 0.0), 1.0)
                theta = 2 * np.arcsin(np.sqrt(ratio))
            level_angles.append(float(theta))

        angles.append(level_angles)

    return angles


def validate_distribution(probabilities: Sequence[float], width: int) -> np.ndarray:
    """
    Check a probability table against a register width and pad it.

    Raises ValidationError for negative entries, a sum away from 1 by more
    than 1e-9, or a table longer than the register can index.
    """
    probs = np.asarray(probabilities, dtype=float)
    if probs.ndim != 1 or len(probs) == 0:
        raise ValidationError("Probability table must be a non-empty 1-D sequence")
    if width < 1:
        raise ValidationError(f"Register width must be >= 1, got {width}")
    if len(probs) > 2 ** width:
        raise ValidationError(
            f"Table of {len(probs)} entries needs {int(np.ceil(np.log2(len(probs))))} "
            f"qubits, register has {width}"
        )
    if np.any(probs < 0) or not np.all(np.isfinite(probs)):
        raise ValidationError("Probability table has negative or non-finite entries")
    total = probs.sum()
    if abs(total - 1.0) > PROBABILITY_TOLERANCE:
        raise ValidationError(f"Probabilities sum to {total:.12f}, expected 1")
    padded = np.zeros(2 ** width)
    padded[:len(probs)] = probs
    return padded


def exponential_distribution(rate: float, width: int) -> np.ndarray:
    """
    Normalised table p(r) ∝ exp(-rate·r) for r = 0 .. 2^width - 1.
    """
    if rate <= 0:
        raise ValidationError(f"Decay rate must be positive, got {rate}")
    r = np.arange(2 ** width)
    weights = np.exp(-rate * r)
    return weights / weights.sum()


class DistributionLoader:
    """
    Loads a probability table onto a register as amplitudes √p_i.

    Parameters
    ----------
    probabilities : sequence of float
        Table summing to 1 within 1e-9; zero padded to 2^width
    width : int, optional
        Register width (default: smallest width indexing the table)

    Examples
    --------
    >>> loader = DistributionLoader([0.0656, 0.4344, 0.4344, 0.0656])
    >>> qc = loader.build()
    >>> qc_inv = loader.inverse_circuit()
    """

    def __init__(self, probabilities: Sequence[float], width: Optional[int] = None):
        n_entries = len(probabilities)
        if width is None:
            width = max(1, int(np.ceil(np.log2(max(n_entries, 1)))))
        self.width = width
        self.probabilities = validate_distribution(probabilities, width)
        self.angles = compute_rotation_angles_tree(self.probabilities)

    @property
    def num_rotations(self) -> int:
        return sum(1 for level in self.angles for theta in level if theta != 0.0)

    def apply(self, circuit: QuantumCircuit, qubits: Sequence[Qubit]) -> None:
        """Append the rotation tree acting on ``qubits`` (qubits[0] = LSB)."""
        qubits = list(qubits)
        if len(qubits) != self.width:
            raise ValidationError(
                f"Loader built for {self.width} qubits, got {len(qubits)}"
            )
        n = self.width
        for level, level_angles in enumerate(self.angles):
            target = qubits[n - 1 - level]
            # Ascending order: bit j of node_idx is controls[j]
            controls = qubits[n - level:]
            for node_idx, theta in enumerate(level_angles):
                if theta == 0.0:
                    continue
                if level == 0:
                    circuit.ry(theta, target)
                else:
                    gate = RYGate(theta).control(
                        level, ctrl_state=node_idx, annotated=False
                    )
                    circuit.append(gate, controls + [target])

    def build(self, name: str = 'load') -> QuantumCircuit:
        """Standalone circuit on a fresh register."""
        register = QuantumRegister(self.width, name)
        circuit = QuantumCircuit(register, name=name)
        self.apply(circuit, register)
        return circuit

    def inverse_circuit(self, name: str = 'load') -> QuantumCircuit:
        """Literal inverse of :meth:`build`."""
        return self.build(name).inverse()

    def apply_in_place(self, engine, qubit_indices: Sequence[int]) -> None:
        """
        Load the table onto engine qubits assumed to be in |0...0⟩.

        Raises PreconditionError if the register holds anything else.
        """
        qubit_indices = list(qubit_indices)
        engine.require_zero(qubit_indices, what=f"{self.width}-qubit loader register")
        engine.run(self.build(), qubit_indices)
        logger.debug(f"Loaded {len(self.probabilities)}-entry table in place")

    def verify_statevector(self, amplitudes: np.ndarray) -> float:
        """Max deviation between |amplitude|² and the table."""
        return float(np.max(np.abs(np.abs(amplitudes) ** 2 - self.probabilities)))


__all__ = [
    'compute_rotation_angles_tree',
    'validate_distribution',
    'exponential_distribution',
    'DistributionLoader',
]
