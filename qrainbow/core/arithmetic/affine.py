"""
Affine Maximum
==============

Computes ``res = max(f₁(x1, x2), f₂(x1, x2))`` for affine forms
``f(x1, x2) = c₁·x1 + c₂·x2 + offset`` on fixed-point registers.

Algorithm:
----------
Inside one scoped work block:
1. Load f₁ and f₂ into signed work registers (value lookup: one
   multi-controlled X per set output bit, controlled on the joint input value)
2. flag ^= f₂ > f₁ (ripple comparator)
3. Copy f₁ into res where flag = 0 and f₂ where flag = 1

The block's inverse then clears the work registers, so ``res`` is the only
surviving side effect.

Widths are validated against the range of both forms over the full input
domain before any gate is emitted.

Author: QRainbow Research Team
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from qiskit import QuantumCircuit
from qiskit.circuit import Qubit

from qrainbow.constants import AFFINE_FORMS
from qrainbow.exceptions import ValidationError
from qrainbow.core.registers import AncillaPool, ScopedAncilla
from qrainbow.core.arithmetic.fixed_point import (
    FixedPointFormat,
    FixedPointValue,
    required_signed_width,
)
from qrainbow.core.arithmetic.comparators import compare_registers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AffineForm:
    """c1·x1 + c2·x2 + offset."""
    c1: float
    c2: float
    offset: float = 0.0

    @classmethod
    def from_tuple(cls, coefficients: Sequence[float]) -> 'AffineForm':
        if len(coefficients) != 3:
            raise ValidationError(
                f"Affine form needs (c1, c2, offset), got {tuple(coefficients)}"
            )
        return cls(*(float(c) for c in coefficients))

    def __call__(self, x1: float, x2: float) -> float:
        return self.c1 * x1 + self.c2 * x2 + self.offset

    def raw(self, x1: float, x2: float, fraction_bits: int) -> int:
        """Value rounded to ``fraction_bits`` as a raw integer."""
        return int(round(self(x1, x2) * 2 ** fraction_bits))


def input_domain(x1: FixedPointValue, x2: FixedPointValue) -> List[Tuple[int, int, float, float]]:
    """
    Every (bits1, bits2, value1, value2) the two registers can hold.
    """
    domain = []
    for bits2, bits1 in itertools.product(range(2 ** x2.width), range(2 ** x1.width)):
        domain.append((bits1, bits2, x1.decode(bits1), x2.decode(bits2)))
    return domain


def load_value_table(
    qc: QuantumCircuit,
    inputs: Sequence[Qubit],
    outputs: Sequence[Qubit],
    table: Dict[int, int]
) -> None:
    """
    outputs ^= table[value(inputs)] by value lookup.

    ``table`` maps the joint input value to the output bit pattern; missing
    or zero entries emit no gates.
    """
    inputs, outputs = list(inputs), list(outputs)
    for value, pattern in sorted(table.items()):
        for bit, qubit in enumerate(outputs):
            if (pattern >> bit) & 1:
                qc.mcx(inputs, qubit, ctrl_state=value)


def load_affine_value(
    qc: QuantumCircuit,
    form: AffineForm,
    x1: FixedPointValue,
    x2: FixedPointValue,
    out: FixedPointValue
) -> None:
    """out ^= form(x1, x2), rounded to ``out``'s resolution."""
    table = {}
    for bits1, bits2, v1, v2 in input_domain(x1, x2):
        value = form(v1, v2)
        table[bits1 | (bits2 << x1.width)] = out.fmt.encode(value)
    load_value_table(qc, list(x1.qubits) + list(x2.qubits), out.qubits, table)


class AffineMaxEstimator:
    """
    Reversible maximum of two affine forms of (x1, x2).

    Parameters
    ----------
    forms : sequence of (c1, c2, offset), optional
        Exactly two forms (default: ``max(x1, 0.75·x1 + 0.75·x2 − 1.25)``)
    work_width : int, optional
        Declared width of each signed work register; derived from the
        forms' range when omitted. A declared width that cannot hold that
        range is rejected.

    Examples
    --------
    >>> est = AffineMaxEstimator()
    >>> est.classical(3, 3)
    3.25
    """

    def __init__(
        self,
        forms: Sequence[Sequence[float]] = AFFINE_FORMS,
        work_width: Optional[int] = None
    ):
        if len(forms) != 2:
            raise ValidationError(f"Affine max needs exactly two forms, got {len(forms)}")
        self.forms = tuple(AffineForm.from_tuple(f) for f in forms)
        self.work_width = work_width

    def classical(self, x1: float, x2: float) -> float:
        return max(f(x1, x2) for f in self.forms)

    def raw_ranges(
        self,
        x1: FixedPointValue,
        x2: FixedPointValue,
        fraction_bits: int
    ) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        """((lo, hi) over both forms, (lo, hi) of their maximum) in raw units."""
        form_vals, max_vals = [], []
        for _, _, v1, v2 in input_domain(x1, x2):
            raws = [f.raw(v1, v2, fraction_bits) for f in self.forms]
            form_vals.extend(raws)
            max_vals.append(max(raws))
        return (min(form_vals), max(form_vals)), (min(max_vals), max(max_vals))

    def validate(
        self,
        x1: FixedPointValue,
        x2: FixedPointValue,
        res_format: FixedPointFormat
    ) -> int:
        """
        Check widths and return the work register width.

        Raises ValidationError when the inputs use different fractional
        bits, the work width cannot hold the forms' range, or ``res`` cannot
        hold their maximum.
        """
        if x1.fraction_bits != x2.fraction_bits:
            raise ValidationError(
                f"x1 and x2 must share fractional bits, got "
                f"{x1.fraction_bits} and {x2.fraction_bits}"
            )
        frac = res_format.fraction_bits
        (lo, hi), (max_lo, max_hi) = self.raw_ranges(x1, x2, frac)

        needed = required_signed_width(lo, hi)
        if self.work_width is not None and self.work_width < needed:
            raise ValidationError(
                f"Work width {self.work_width} cannot hold affine range "
                f"[{lo / 2 ** frac}, {hi / 2 ** frac}] ({needed} signed bits needed)"
            )

        res_lo, res_hi = res_format.raw_bounds
        if max_lo < res_lo or max_hi > res_hi:
            raise ValidationError(
                f"Result register ({res_format.width} bits, {frac} fractional, "
                f"{'signed' if res_format.signed else 'unsigned'}) cannot hold "
                f"max range [{max_lo / 2 ** frac}, {max_hi / 2 ** frac}]"
            )
        width = max(needed, self.work_width or 0, res_format.width)
        return width

    def num_work_qubits(
        self,
        x1: FixedPointValue,
        x2: FixedPointValue,
        res_format: FixedPointFormat
    ) -> int:
        """Peak scratch qubits: two work registers, the flag and a carry."""
        return 2 * self.validate(x1, x2, res_format) + 2

    def apply(
        self,
        qc: QuantumCircuit,
        x1: FixedPointValue,
        x2: FixedPointValue,
        res: FixedPointValue,
        pool: AncillaPool
    ) -> None:
        """res ^= max(f₁, f₂); ``res`` is expected in |0⟩."""
        width = self.validate(x1, x2, res.fmt)
        work_fmt = FixedPointFormat(width, res.fraction_bits, signed=True)
        logger.debug(f"Affine max with {width}-bit signed work registers")

        def compute(block, qubits):
            lin1 = FixedPointValue(tuple(qubits[:width]), work_fmt)
            lin2 = FixedPointValue(tuple(qubits[width:2 * width]), work_fmt)
            flag = qubits[2 * width]
            load_affine_value(block, self.forms[0], x1, x2, lin1)
            load_affine_value(block, self.forms[1], x1, x2, lin2)
            compare_registers(
                block, lin2.qubits, lin1.qubits, flag, pool,
                strict=True, signed=True, name='affine_carry'
            )

        with ScopedAncilla(qc, pool, 2 * width + 1, prepare=compute, name='affine_work') as work:
            lin1, lin2, flag = work[:width], work[width:2 * width], work[2 * width]
            for i, target in enumerate(res.qubits):
                # controls [flag, lin_i]: bit 0 is the flag
                qc.mcx([flag, lin1[i]], target, ctrl_state=0b10)
                qc.mcx([flag, lin2[i]], target, ctrl_state=0b11)

    def scope(
        self,
        qc: QuantumCircuit,
        pool: AncillaPool,
        x1: FixedPointValue,
        x2: FixedPointValue,
        res_format: FixedPointFormat,
        name: str = 'max_out'
    ) -> ScopedAncilla:
        """
        Scoped block allocating ``res`` and computing the maximum into it.

        Use as ``with estimator.scope(...) as qubits``; on exit the maximum
        is uncomputed by the literal inverse of its computation.
        """
        self.validate(x1, x2, res_format)

        def prepare(block, qubits):
            res = FixedPointValue(tuple(qubits), res_format)
            self.apply(block, x1, x2, res, pool)

        return ScopedAncilla(qc, pool, res_format.width, prepare=prepare, name=name)


__all__ = [
    'AffineForm',
    'input_domain',
    'load_value_table',
    'load_affine_value',
    'AffineMaxEstimator',
]
