"""
Statevector Engine
==================

Statevector simulator that executes qiskit circuits gate by gate while
enforcing the invariants the amplitude estimation pipeline relies on:

- the squared norm stays 1 (within tolerance) after every operation
- ancilla checkpoints emitted by scoped blocks find their qubits in |0...0⟩

Ordering follows qiskit (little-endian): bit q of a basis index is qubit q.

Representation:
---------------
Amplitudes are kept over the state's support only, as two parallel numpy
arrays (basis indices, complex amplitudes). Reversible arithmetic permutes
basis states and never grows the support, so circuits with many scratch
qubits stay cheap as long as few basis states are populated. ``to_dense()``
exports the full 2^n vector under the dense memory budget.

Author: QRainbow Research Team
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from qiskit import QuantumCircuit
from qiskit.circuit import ControlledGate, Gate, Operation
from qiskit.quantum_info import Operator

from qrainbow.config import EngineConfig
from qrainbow.exceptions import (
    InvariantViolation,
    PreconditionError,
    UncomputeError,
    ValidationError,
)
from qrainbow.core.engine.runtime_guard import ensure_statevector_ok

logger = logging.getLogger(__name__)

# Barrier labels starting with this prefix mark a scoped-ancilla exit
SCOPE_CHECK_PREFIX = 'uncompute:'

# Basis indices are int64
MAX_ENGINE_QUBITS = 62


class GateKind(Enum):
    """Closed set of gate kinds the engine dispatches on."""
    X = 'x'
    Z = 'z'
    MATRIX = 'matrix'


@dataclass(frozen=True, eq=False)
class GateOperation:
    """
    A unitary on target qubits, optionally controlled on a register value.

    Attributes
    ----------
    kind : GateKind
        X permutes basis states, Z flips signs, MATRIX applies ``matrix``
    targets : tuple of int
        Target qubit indices; for MATRIX, qubit ``targets[j]`` is bit j of
        the matrix index (qiskit convention)
    controls : tuple of int
        Control qubit indices
    ctrl_state : int
        Value the controls must decode to (bit j refers to ``controls[j]``)
    matrix : np.ndarray, optional
        Unitary of shape (2^k, 2^k) for MATRIX gates
    name : str
        Name used in diagnostics
    """
    kind: GateKind
    targets: Tuple[int, ...]
    controls: Tuple[int, ...] = ()
    ctrl_state: int = 0
    matrix: Optional[np.ndarray] = None
    name: str = ''

    @classmethod
    def from_operation(cls, operation: Operation, qubits: Sequence[int]) -> 'GateOperation':
        """Translate a qiskit gate acting on ``qubits`` into a GateOperation."""
        if not isinstance(operation, Gate):
            raise ValidationError(
                f"Operation '{operation.name}' is not unitary and cannot be simulated"
            )
        qubits = tuple(int(q) for q in qubits)
        if isinstance(operation, ControlledGate):
            n_ctrl = operation.num_ctrl_qubits
            controls, targets = qubits[:n_ctrl], qubits[n_ctrl:]
            base = operation.base_gate
            ctrl_state = int(operation.ctrl_state)
        else:
            controls, targets = (), qubits
            base = operation
            ctrl_state = 0

        if base.name == 'x' and len(targets) == 1:
            return cls(GateKind.X, targets, controls, ctrl_state, name=operation.name)
        if base.name == 'z' and len(targets) == 1:
            return cls(GateKind.Z, targets, controls, ctrl_state, name=operation.name)
        matrix = Operator(base).data
        return cls(GateKind.MATRIX, targets, controls, ctrl_state, matrix, operation.name)


def _bit_mask(qubits: Sequence[int]) -> int:
    mask = 0
    for q in qubits:
        mask |= 1 << q
    return mask


def _control_pattern(controls: Sequence[int], ctrl_state: int) -> int:
    pattern = 0
    for pos, q in enumerate(controls):
        if (ctrl_state >> pos) & 1:
            pattern |= 1 << q
    return pattern


def decode_basis_values(keys: np.ndarray, qubits: Sequence[int]) -> np.ndarray:
    """Vectorised value of ``qubits`` (``qubits[j]`` as bit j) per basis index."""
    values = np.zeros(len(keys), dtype=np.int64)
    for j, q in enumerate(qubits):
        values |= ((keys >> q) & 1) << j
    return values


def decode_basis_index(index: int, qubits: Sequence[int]) -> int:
    """Value of ``qubits`` (``qubits[j]`` as bit j) in basis state ``index``."""
    value = 0
    for j, q in enumerate(qubits):
        value |= ((index >> q) & 1) << j
    return value


class StatevectorEngine:
    """
    Normalised complex amplitude vector over ``num_qubits`` qubits.

    Parameters
    ----------
    num_qubits : int
        Number of simulated qubits
    config : EngineConfig, optional
        Tolerances and budgets
    initial_state : int, default=0
        Basis state the engine starts in

    Examples
    --------
    >>> from qiskit import QuantumCircuit
    >>> qc = QuantumCircuit(2)
    >>> qc.h(0)
    >>> qc.cx(0, 1)
    >>> engine = StatevectorEngine.from_circuit(qc)
    >>> engine.probabilities()  # array([0.5, 0. , 0. , 0.5])
    """

    def __init__(
        self,
        num_qubits: int,
        config: Optional[EngineConfig] = None,
        initial_state: int = 0
    ):
        self.config = config or EngineConfig()
        if not 1 <= num_qubits <= MAX_ENGINE_QUBITS:
            raise ValidationError(
                f"Engine supports 1..{MAX_ENGINE_QUBITS} qubits, got {num_qubits}"
            )
        if not 0 <= initial_state < 2 ** num_qubits:
            raise ValidationError(
                f"Initial state {initial_state} out of range for {num_qubits} qubits"
            )
        self.num_qubits = num_qubits
        self._keys = np.array([initial_state], dtype=np.int64)
        self._amps = np.array([1.0], dtype=np.complex128)
        self.operations_applied = 0

    @classmethod
    def from_circuit(
        cls,
        circuit: QuantumCircuit,
        config: Optional[EngineConfig] = None
    ) -> 'StatevectorEngine':
        """Simulate ``circuit`` from |0...0⟩."""
        engine = cls(circuit.num_qubits, config)
        engine.run(circuit)
        return engine

    @property
    def support_size(self) -> int:
        return len(self._keys)

    def amplitudes(self) -> Dict[int, complex]:
        """Non-zero amplitudes keyed by basis index."""
        return {int(k): complex(a) for k, a in zip(self._keys, self._amps)}

    def to_dense(self) -> np.ndarray:
        """Full 2^n amplitude vector (subject to the dense memory budget)."""
        ensure_statevector_ok(self.num_qubits, self.config.budget)
        dense = np.zeros(2 ** self.num_qubits, dtype=np.complex128)
        dense[self._keys] = self._amps
        return dense

    # -------------------------------------------------------------
    # Gate application
    # -------------------------------------------------------------
    def _check_qubits(self, op: GateOperation) -> None:
        involved = op.controls + op.targets
        if len(set(involved)) != len(involved):
            raise ValidationError(f"Gate '{op.name}' repeats a qubit: {involved}")
        for q in involved:
            if not 0 <= q < self.num_qubits:
                raise ValidationError(f"Gate '{op.name}' uses qubit {q} outside register")

    def apply(self, op: GateOperation) -> None:
        """Apply one gate operation in place."""
        self._check_qubits(op)
        cmask = _bit_mask(op.controls)
        active = (self._keys & cmask) == _control_pattern(op.controls, op.ctrl_state)

        if op.kind is GateKind.X:
            self._keys[active] ^= 1 << op.targets[0]
        elif op.kind is GateKind.Z:
            flip = active & ((self._keys & (1 << op.targets[0])) != 0)
            self._amps[flip] *= -1
        elif op.kind is GateKind.MATRIX:
            self._apply_matrix(op, active)
        else:
            raise ValidationError(f"Unknown gate kind {op.kind!r}")

        self.operations_applied += 1
        if self.config.check_normalization:
            self.check_normalization(op.name)

    def _apply_matrix(self, op: GateOperation, active: np.ndarray) -> None:
        if not np.any(active):
            return
        k = len(op.targets)
        keys, amps = self._keys[active], self._amps[active]

        base = keys & ~_bit_mask(op.targets)
        local = decode_basis_values(keys, op.targets)
        groups, inverse = np.unique(base, return_inverse=True)
        inverse = inverse.reshape(-1)

        block = np.zeros((len(groups), 2 ** k), dtype=np.complex128)
        block[inverse, local] = amps
        out = block @ op.matrix.T

        offsets = np.array([
            _control_pattern(op.targets, i) for i in range(2 ** k)
        ], dtype=np.int64)
        new_keys = (groups[:, None] | offsets[None, :]).reshape(-1)
        new_amps = out.reshape(-1)
        keep = np.abs(new_amps) ** 2 > self.config.prune_threshold

        self._keys = np.concatenate([self._keys[~active], new_keys[keep]])
        self._amps = np.concatenate([self._amps[~active], new_amps[keep]])
        if len(self._keys) > self.config.max_support:
            raise MemoryError(
                f"State support grew to {len(self._keys)} amplitudes "
                f"(> {self.config.max_support}) after '{op.name}'"
            )

    def run(
        self,
        circuit: QuantumCircuit,
        qubits: Optional[Sequence[int]] = None
    ) -> 'StatevectorEngine':
        """
        Execute ``circuit`` instruction by instruction.

        Parameters
        ----------
        circuit : QuantumCircuit
            Unitary circuit; barriers labelled ``uncompute:<name>`` are
            ancilla checkpoints
        qubits : sequence of int, optional
            Engine qubits the circuit's qubits map to (default: identity)
        """
        if qubits is None:
            if circuit.num_qubits != self.num_qubits:
                raise ValidationError(
                    f"Circuit has {circuit.num_qubits} qubits, engine has {self.num_qubits}"
                )
            qubits = range(circuit.num_qubits)
        qubits = list(qubits)
        if len(qubits) != circuit.num_qubits:
            raise ValidationError(
                f"Qubit map has {len(qubits)} entries for a {circuit.num_qubits}-qubit circuit"
            )
        index_of = {bit: qubits[i] for i, bit in enumerate(circuit.qubits)}

        for instruction in circuit.data:
            op = instruction.operation
            targets = [index_of[bit] for bit in instruction.qubits]
            if op.name == 'barrier':
                label = op.label
                if self.config.check_scopes and label and label.startswith(SCOPE_CHECK_PREFIX):
                    self.check_zero(targets, label[len(SCOPE_CHECK_PREFIX):])
                continue
            self.apply(GateOperation.from_operation(op, targets))

        phase = float(circuit.global_phase)
        if phase:
            self._amps *= np.exp(1j * phase)
        logger.debug(
            f"Executed {len(circuit.data)} instructions on {self.num_qubits} qubits "
            f"(support {self.support_size})"
        )
        return self

    # -------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------
    def norm_squared(self) -> float:
        return float(np.vdot(self._amps, self._amps).real)

    def check_normalization(self, context: str = '') -> None:
        """Raise InvariantViolation if the squared norm drifted from 1."""
        norm = self.norm_squared()
        if abs(norm - 1.0) > self.config.tolerance:
            raise InvariantViolation(
                f"Statevector norm² = {norm:.15f} after '{context}' "
                f"(tolerance {self.config.tolerance})"
            )

    def probability_zero(self, qubits: Sequence[int]) -> float:
        """Probability that all ``qubits`` measure 0."""
        zero = (self._keys & _bit_mask(qubits)) == 0
        return float(np.sum(np.abs(self._amps[zero]) ** 2))

    def check_zero(self, qubits: Sequence[int], label: str) -> None:
        """Raise UncomputeError unless ``qubits`` are in |0...0⟩."""
        p0 = self.probability_zero(qubits)
        if p0 < 1.0 - self.config.tolerance:
            raise UncomputeError(label, p0)

    def require_zero(self, qubits: Sequence[int], what: str = 'register') -> None:
        """Raise PreconditionError unless ``qubits`` are in |0...0⟩."""
        p0 = self.probability_zero(qubits)
        if p0 < 1.0 - self.config.tolerance:
            raise PreconditionError(
                f"{what} expected in |0⟩, found P(all zero) = {p0:.12f}"
            )

    # -------------------------------------------------------------
    # Read-out
    # -------------------------------------------------------------
    def probabilities(self, qubits: Optional[Sequence[int]] = None) -> np.ndarray:
        """
        Marginal distribution over ``qubits`` (all qubits by default).

        Entry v of the result is the probability that the qubits decode to
        v, with ``qubits[j]`` as bit j.
        """
        if qubits is None:
            return np.abs(self.to_dense()) ** 2
        qubits = list(qubits)
        values = decode_basis_values(self._keys, qubits)
        return np.bincount(
            values, weights=np.abs(self._amps) ** 2, minlength=2 ** len(qubits)
        )

    def probability_of_one(self, qubit: int) -> float:
        return float(self.probabilities([qubit])[1])

    def joint_distribution(
        self,
        registers: Sequence[Sequence[int]],
        threshold: float = 1e-12
    ) -> Dict[Tuple[int, ...], float]:
        """
        Distribution of decoded register values over the state's support.

        Returns
        -------
        dict
            Maps a tuple of decoded values (one per register) to its
            probability; outcomes at or below ``threshold`` are dropped.
        """
        probs = np.abs(self._amps) ** 2
        columns = [decode_basis_values(self._keys, reg) for reg in registers]
        result: Dict[Tuple[int, ...], float] = {}
        for i, p in enumerate(probs):
            key = tuple(int(col[i]) for col in columns)
            result[key] = result.get(key, 0.0) + float(p)
        return {key: p for key, p in result.items() if p > threshold}

    def sample_counts(
        self,
        qubits: Sequence[int],
        shots: int,
        seed: Optional[int] = None
    ) -> Dict[str, int]:
        """
        Sample ``shots`` measurements of ``qubits``.

        Bitstrings are qiskit-ordered: the last character is ``qubits[0]``.
        """
        if shots < 1:
            raise ValidationError(f"shots must be positive, got {shots}")
        qubits = list(qubits)
        probs = np.clip(self.probabilities(qubits), 0.0, None)
        probs = probs / probs.sum()
        rng = np.random.default_rng(seed)
        samples = rng.multinomial(shots, probs)
        width = len(qubits)
        return {
            format(value, f'0{width}b'): int(count)
            for value, count in enumerate(samples) if count > 0
        }


__all__ = [
    'SCOPE_CHECK_PREFIX',
    'MAX_ENGINE_QUBITS',
    'GateKind',
    'GateOperation',
    'StatevectorEngine',
    'decode_basis_index',
    'decode_basis_values',
]
