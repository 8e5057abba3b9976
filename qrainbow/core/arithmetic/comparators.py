"""
Reversible Comparators
======================

Ripple-carry comparison of two registers using the MAJ block of the
Cuccaro adder (arXiv:quant-ph/0410184).

Mathematical Foundation:
------------------------
For n-bit unsigned a, b and carry-in c₀:

    a + (2^n - 1 - b) + c₀ ≥ 2^n   ⟺   a - b + c₀ - 1 ≥ 0

so the carry out of a + ~b is [a > b] for c₀ = 0 and [a ≥ b] for c₀ = 1.
The MAJ chain leaves that carry on a's MSB; it is copied onto the result
and the chain is undone, restoring a, b and the carry ancilla.

Signed registers are compared after flipping both sign bits (two's
complement to offset binary preserves order).

Circuit (per bit i, carry c held on a[i-1]):
--------------------------------------------
    MAJ(c, b_i, a_i):  CX(a_i → b_i), CX(a_i → c), CCX(c, b_i → a_i)

Author: QRainbow Research Team
"""

import logging
from typing import Optional, Sequence

from qiskit import QuantumCircuit
from qiskit.circuit import Qubit

from qrainbow.exceptions import ValidationError
from qrainbow.core.registers import AncillaPool, ScopedAncilla
from qrainbow.core.arithmetic.fixed_point import (
    FixedPointValue,
    floor_raw,
    raw_range,
)

logger = logging.getLogger(__name__)


def _maj(qc: QuantumCircuit, c: Qubit, b: Qubit, a: Qubit) -> None:
    qc.cx(a, b)
    qc.cx(a, c)
    qc.ccx(c, b, a)


def _maj_inverse(qc: QuantumCircuit, c: Qubit, b: Qubit, a: Qubit) -> None:
    qc.ccx(c, b, a)
    qc.cx(a, c)
    qc.cx(a, b)


def compare_registers(
    qc: QuantumCircuit,
    a: Sequence[Qubit],
    b: Sequence[Qubit],
    result: Qubit,
    pool: AncillaPool,
    strict: bool = True,
    signed: bool = False,
    controls: Sequence[Qubit] = (),
    ctrl_state: Optional[int] = None,
    name: str = 'cmp_carry'
) -> None:
    """
    result ^= (a > b), or (a ≥ b) when ``strict`` is False.

    Parameters
    ----------
    a, b : sequence of Qubit
        Equal-width registers, least significant bit first; both are
        returned unchanged
    result : Qubit
        Target bit, XORed with the predicate
    pool : AncillaPool
        Supplies the single carry ancilla
    strict : bool, default=True
        Strict or non-strict comparison
    signed : bool, default=False
        Interpret both registers as two's complement
    controls : sequence of Qubit
        Extra controls; the XOR only happens when they hold ``ctrl_state``
    ctrl_state : int, optional
        Required value of ``controls`` (default: all ones)
    """
    a, b, controls = list(a), list(b), list(controls)
    if len(a) != len(b) or not a:
        raise ValidationError(
            f"Comparator needs equal non-empty widths, got {len(a)} and {len(b)}"
        )
    n = len(a)

    def carry_in(block, qubits):
        if not strict:
            block.x(qubits[0])

    with ScopedAncilla(qc, pool, 1, prepare=carry_in, name=name) as carry:
        if signed:
            qc.x(a[-1])
            qc.x(b[-1])
        for qubit in b:
            qc.x(qubit)

        chain = [(carry[0], b[0], a[0])] + [(a[i - 1], b[i], a[i]) for i in range(1, n)]
        for c_, b_, a_ in chain:
            _maj(qc, c_, b_, a_)

        if controls:
            state = ctrl_state
            if state is not None:
                # carry-out is the lowest control
                state = (state << 1) | 1
            qc.mcx([a[-1]] + controls, result, ctrl_state=state)
        else:
            qc.cx(a[-1], result)

        for c_, b_, a_ in reversed(chain):
            _maj_inverse(qc, c_, b_, a_)

        for qubit in b:
            qc.x(qubit)
        if signed:
            qc.x(a[-1])
            qc.x(b[-1])


def load_constant(qc: QuantumCircuit, qubits: Sequence[Qubit], raw: int) -> None:
    """XOR the two's complement pattern of ``raw`` onto ``qubits``."""
    width = len(qubits)
    pattern = raw % 2 ** width
    for i, qubit in enumerate(qubits):
        if (pattern >> i) & 1:
            qc.x(qubit)


def compare_with_constant(
    qc: QuantumCircuit,
    x: FixedPointValue,
    threshold_raw: int,
    result: Qubit,
    pool: AncillaPool,
    name: str = 'threshold'
) -> None:
    """
    result ^= (raw(x) > threshold_raw).

    The threshold is loaded into a scoped scratch register, compared with
    :func:`compare_registers` and unloaded. Thresholds outside the
    register's range collapse to a constant flip or to no gates.
    """
    lo, hi = raw_range(x.width, x.signed)
    if threshold_raw < lo:
        qc.x(result)
        return
    if threshold_raw >= hi:
        return

    def prepare(block, qubits):
        load_constant(block, qubits, threshold_raw)

    with ScopedAncilla(qc, pool, x.width, prepare=prepare, name=name) as constant:
        compare_registers(
            qc, x.qubits, constant, result, pool,
            strict=True, signed=x.signed, name=f'{name}_carry'
        )


class StrikeComparator:
    """
    Flags realisations above the strike: ``res ^= decoded(x) > strike``.

    Parameters
    ----------
    strike : float
        Threshold on the decoded register value

    Notes
    -----
    Self-inverse in ``res``: applying it twice with the same ``res`` leaves
    ``res`` unchanged; ``x`` is never modified.
    """

    def __init__(self, strike: float):
        self.strike = float(strike)

    def threshold_raw(self, x: FixedPointValue) -> int:
        """Largest raw value of ``x`` still at or below the strike."""
        return floor_raw(self.strike, x.fraction_bits)

    @staticmethod
    def num_work_qubits(x: FixedPointValue) -> int:
        return x.width + 1

    def apply(
        self,
        qc: QuantumCircuit,
        x: FixedPointValue,
        res: Qubit,
        pool: AncillaPool
    ) -> None:
        t = self.threshold_raw(x)
        logger.debug(f"Strike {self.strike} → raw threshold {t} on {x.width}-bit register")
        compare_with_constant(qc, x, t, res, pool, name='strike')

    def predicate(self, value: float) -> bool:
        return value > self.strike


__all__ = [
    'compare_registers',
    'compare_with_constant',
    'load_constant',
    'StrikeComparator',
]
