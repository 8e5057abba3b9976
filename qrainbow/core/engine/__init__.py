"""
Statevector engine: gate-by-gate simulation with invariant checks.
"""

from .statevector import (
    SCOPE_CHECK_PREFIX,
    GateKind,
    GateOperation,
    StatevectorEngine,
    decode_basis_index,
    decode_basis_values,
    MAX_ENGINE_QUBITS,
)
from .runtime_guard import (
    DEFAULT_BUDGET,
    estimate_statevector_bytes,
    ensure_statevector_ok,
)

__all__ = [
    'SCOPE_CHECK_PREFIX',
    'GateKind',
    'GateOperation',
    'StatevectorEngine',
    'decode_basis_index',
    'decode_basis_values',
    'MAX_ENGINE_QUBITS',
    'DEFAULT_BUDGET',
    'estimate_statevector_bytes',
    'ensure_statevector_ok',
]
