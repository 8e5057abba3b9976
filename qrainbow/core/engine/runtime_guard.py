"""
Runtime Guard Utilities
=======================

Helpers to prevent pathological memory blow-ups when allocating statevectors.
"""
from __future__ import annotations

from typing import Union

from qiskit import QuantumCircuit

from qrainbow.config import BYTES_PER_COMPLEX128, StatevectorBudget


DEFAULT_BUDGET = StatevectorBudget()


def estimate_statevector_bytes(num_qubits: int) -> int:
    """
    Estimate memory (bytes) for a complex128 statevector with `num_qubits` qubits.
    """
    amps = 1 << num_qubits  # 2**n
    return amps * BYTES_PER_COMPLEX128


def ensure_statevector_ok(
    circuit_or_qubits: Union[QuantumCircuit, int],
    budget: StatevectorBudget = DEFAULT_BUDGET
) -> None:
    """
    Raise MemoryError if a statevector for `circuit_or_qubits` would exceed budget.
    """
    if isinstance(circuit_or_qubits, QuantumCircuit):
        n = circuit_or_qubits.num_qubits
    else:
        n = int(circuit_or_qubits)
    if n > budget.max_qubits:
        raise MemoryError(
            f"Circuit has {n} qubits; exceeds safety cap of {budget.max_qubits}. "
            "Use fewer qubits or a sampler backend."
        )
    bytes_needed = estimate_statevector_bytes(n)
    if bytes_needed > budget.max_bytes:
        raise MemoryError(
            f"Statevector would need {bytes_needed/1024/1024:.1f} MB (> {budget.max_bytes/1024/1024:.1f} MB)."
        )
