"""
Registers and Scoped Ancillas
=============================

Scratch qubits come from an :class:`AncillaPool` over a single qiskit
``AncillaRegister``. A :class:`ScopedAncilla` hands a block of pool qubits to
a preparation step, lets the caller use them, and on exit appends the
literal ``inverse()`` of that preparation followed by a checkpoint barrier
the statevector engine verifies (the qubits must be back in |0...0⟩).

Usage:
------
>>> pool = AncillaPool(AncillaRegister(6, 'anc'))
>>> qc = QuantumCircuit(data, pool.register)
>>> with ScopedAncilla(qc, pool, 1, prepare=mark, name='flag') as flag:
...     qc.cz(flag[0], data[0])

The inverse is appended on every exit path, including when the body raises.

Author: QRainbow Research Team
"""

import logging
from typing import Callable, List, Optional, Sequence, Set

from qiskit import QuantumCircuit
from qiskit.circuit import AncillaRegister, Qubit

from qrainbow.exceptions import ValidationError
from qrainbow.core.engine.statevector import SCOPE_CHECK_PREFIX

logger = logging.getLogger(__name__)

PrepareFn = Callable[[QuantumCircuit, List[Qubit]], None]


class AncillaPool:
    """
    Hands out qubits of one ancilla register, never to two live owners.

    Qubits released with ``clean=False`` are retired: they may hold
    garbage entangled with the rest of the state and are not reused.

    Every live scope reserves the qubits its preparation touched, because
    its exit replays the inverse of that preparation on them. A retiring
    acquisition (``retain=True``) never receives reserved qubits.
    """

    def __init__(self, register: AncillaRegister):
        self.register = register
        self._free: List[Qubit] = list(register)
        self._retired: List[Qubit] = []
        self._reserved: List[Set[Qubit]] = []
        self._peak = 0

    @classmethod
    def create(cls, size: int, name: str = 'anc') -> 'AncillaPool':
        if size < 0:
            raise ValidationError(f"Pool size must be >= 0, got {size}")
        return cls(AncillaRegister(size, name))

    @property
    def available(self) -> int:
        return len(self._free)

    @property
    def in_use(self) -> int:
        return len(self.register) - len(self._free) - len(self._retired)

    @property
    def peak_usage(self) -> int:
        """Largest number of qubits held at once (live plus retired)."""
        return self._peak

    @property
    def retired(self) -> List[Qubit]:
        return list(self._retired)

    def acquire(self, count: int, name: str = '', retain: bool = False) -> List[Qubit]:
        """
        Take ``count`` zeroed qubits, lowest index first.

        With ``retain`` the qubits are picked outside every live reservation.
        """
        if count < 0:
            raise ValidationError(f"Cannot acquire {count} qubits")
        candidates = self._free
        if retain:
            reserved = set().union(*self._reserved)
            candidates = [q for q in self._free if q not in reserved]
        if count > len(candidates):
            raise ValidationError(
                f"Ancilla pool '{self.register.name}' exhausted: '{name}' needs {count}, "
                f"{len(candidates)} usable of {len(self.register)}"
            )
        taken = candidates[:count]
        self._free = [q for q in self._free if q not in taken]
        self._peak = max(self._peak, len(self.register) - len(self._free))
        logger.debug(f"Acquired {count} ancillas for '{name}' ({len(self._free)} free)")
        return taken

    def reserve(self, qubits: Set[Qubit]) -> None:
        """Protect ``qubits`` from retaining acquisitions until :meth:`unreserve`."""
        self._reserved.append(set(qubits))

    def unreserve(self) -> None:
        self._reserved.pop()

    def release(self, qubits: Sequence[Qubit], clean: bool = True) -> None:
        """Return qubits to the pool, or retire them when ``clean`` is False."""
        for qubit in qubits:
            if qubit in self._free or qubit in self._retired:
                raise ValidationError(f"Qubit {qubit} released twice")
        if clean:
            index = {q: i for i, q in enumerate(self.register)}
            self._free = sorted(self._free + list(qubits), key=index.__getitem__)
        else:
            self._retired.extend(qubits)


class ScopedAncilla:
    """
    Scoped scratch register with a declared preparation step.

    Parameters
    ----------
    circuit : QuantumCircuit
        Circuit being built; must contain the pool's register
    pool : AncillaPool
        Source of the scratch qubits
    width : int
        Number of scratch qubits
    prepare : callable, optional
        ``prepare(block, qubits)`` appends the preparation gates to
        ``block``, a circuit over the same registers as ``circuit``
    name : str
        Scope name used in the checkpoint label and error messages
    verify : bool, default=True
        Emit a checkpoint that the qubits are |0...0⟩ after the inverse.
        When False the qubits are retired instead of returned to the pool.
    """

    def __init__(
        self,
        circuit: QuantumCircuit,
        pool: AncillaPool,
        width: int,
        prepare: Optional[PrepareFn] = None,
        name: str = 'scope',
        verify: bool = True
    ):
        self.circuit = circuit
        self.pool = pool
        self.width = width
        self.prepare = prepare
        self.name = name
        self.verify = verify
        self.qubits: List[Qubit] = []
        self._block: Optional[QuantumCircuit] = None

    def __enter__(self) -> List[Qubit]:
        self.qubits = self.pool.acquire(self.width, self.name, retain=not self.verify)
        block = QuantumCircuit(*self.circuit.qregs)
        try:
            if self.prepare is not None:
                self.prepare(block, self.qubits)
        except Exception:
            self.pool.release(self.qubits)
            raise
        self.circuit.compose(block, inplace=True)
        self._block = block
        self.pool.reserve(self._touched(block))
        return self.qubits

    def _touched(self, block: QuantumCircuit) -> Set[Qubit]:
        pool_qubits = set(self.pool.register)
        touched = set(self.qubits)
        for instruction in block.data:
            touched.update(q for q in instruction.qubits if q in pool_qubits)
        return touched

    def __exit__(self, exc_type, exc, tb):
        try:
            self.circuit.compose(self._block.inverse(), inplace=True)
            if self.verify:
                self.circuit.barrier(*self.qubits, label=SCOPE_CHECK_PREFIX + self.name)
        finally:
            self.pool.unreserve()
            self.pool.release(self.qubits, clean=self.verify)
            self._block = None
        return False


__all__ = [
    'AncillaPool',
    'ScopedAncilla',
]
