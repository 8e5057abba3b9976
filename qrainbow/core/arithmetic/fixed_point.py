"""
Fixed-Point Registers
=====================

Digital fixed-point numbers held across a register of qubits.

Fixed-point format: (width, fraction_bits, signed)
- raw integer stored in two's complement when signed
- decoded value = raw / 2^fraction_bits
- qubits[0] is the least significant bit

Range checks run when circuits are built; an out-of-range value raises
ValidationError instead of wrapping.

Author: QRainbow Research Team
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from qiskit.circuit import Qubit

from qrainbow.exceptions import ValidationError


def float_to_fixed_point(
    value: float,
    n_bits: int,
    n_frac_bits: int,
    signed: bool = True
) -> int:
    """
    Convert a float to its raw fixed-point integer (rounded to resolution).

    Examples
    --------
    >>> float_to_fixed_point(3.5, n_bits=8, n_frac_bits=4)
    56
    """
    fixed = int(round(value * 2 ** n_frac_bits))
    min_val, max_val = raw_range(n_bits, signed)
    if fixed > max_val or fixed < min_val:
        raise ValidationError(
            f"Value {value} overflows {n_bits}-bit "
            f"{'signed' if signed else 'unsigned'} fixed-point "
            f"with {n_frac_bits} fractional bits"
        )
    return fixed


def fixed_point_to_float(fixed_point: int, n_frac_bits: int) -> float:
    """Convert a raw fixed-point integer to float."""
    return fixed_point / 2 ** n_frac_bits


def raw_range(n_bits: int, signed: bool) -> Tuple[int, int]:
    """Inclusive range of raw integers a register can hold."""
    if signed:
        return -2 ** (n_bits - 1), 2 ** (n_bits - 1) - 1
    return 0, 2 ** n_bits - 1


def required_signed_width(lo: int, hi: int) -> int:
    """Smallest two's complement width holding every integer in [lo, hi]."""
    width = 1
    while not (-2 ** (width - 1) <= lo and hi <= 2 ** (width - 1) - 1):
        width += 1
    return width


@dataclass(frozen=True)
class FixedPointFormat:
    """Bit width, fractional bits and signedness of a register."""
    width: int
    fraction_bits: int = 0
    signed: bool = False

    def __post_init__(self):
        if self.width < 1:
            raise ValidationError(f"Fixed-point width must be >= 1, got {self.width}")
        if self.fraction_bits < 0:
            raise ValidationError(
                f"fraction_bits must be >= 0, got {self.fraction_bits}"
            )

    @property
    def resolution(self) -> float:
        return 2.0 ** -self.fraction_bits

    @property
    def raw_bounds(self) -> Tuple[int, int]:
        return raw_range(self.width, self.signed)

    @property
    def value_bounds(self) -> Tuple[float, float]:
        lo, hi = self.raw_bounds
        return self.decode_raw(lo), self.decode_raw(hi)

    def to_raw(self, value: float) -> int:
        """Round ``value`` to resolution; ValidationError if out of range."""
        return float_to_fixed_point(value, self.width, self.fraction_bits, self.signed)

    def decode_raw(self, raw: int) -> float:
        return fixed_point_to_float(raw, self.fraction_bits)

    def encode(self, value: float) -> int:
        """Bit pattern (0 .. 2^width - 1) of ``value``."""
        return self.to_raw(value) % 2 ** self.width

    def decode_bits(self, bits: int) -> float:
        """Decoded value of the bit pattern ``bits``."""
        bits &= 2 ** self.width - 1
        if self.signed and bits >= 2 ** (self.width - 1):
            bits -= 2 ** self.width
        return self.decode_raw(bits)

    def contains(self, lo: float, hi: float) -> bool:
        """True when every value in [lo, hi] rounds into range."""
        raw_lo, raw_hi = self.raw_bounds
        return (raw_lo <= round(lo * 2 ** self.fraction_bits)
                and round(hi * 2 ** self.fraction_bits) <= raw_hi)

    def representable_values(self) -> List[float]:
        lo, hi = self.raw_bounds
        return [self.decode_raw(raw) for raw in range(lo, hi + 1)]


@dataclass(frozen=True)
class FixedPointValue:
    """
    A fixed-point number held on specific qubits.

    Attributes
    ----------
    qubits : tuple of Qubit
        Register bits, least significant first
    fmt : FixedPointFormat
        Interpretation of the bits
    """
    qubits: Tuple[Qubit, ...]
    fmt: FixedPointFormat

    def __post_init__(self):
        if len(self.qubits) != self.fmt.width:
            raise ValidationError(
                f"{len(self.qubits)} qubits given for a {self.fmt.width}-bit format"
            )

    @classmethod
    def on(
        cls,
        qubits: Iterable[Qubit],
        fraction_bits: int = 0,
        signed: bool = False
    ) -> 'FixedPointValue':
        qubits = tuple(qubits)
        return cls(qubits, FixedPointFormat(len(qubits), fraction_bits, signed))

    @property
    def width(self) -> int:
        return self.fmt.width

    @property
    def fraction_bits(self) -> int:
        return self.fmt.fraction_bits

    @property
    def signed(self) -> bool:
        return self.fmt.signed

    def as_unsigned(self) -> 'FixedPointValue':
        """Same qubits read as an unsigned integer (no gates)."""
        return FixedPointValue(self.qubits, FixedPointFormat(self.width, 0, False))

    def decode(self, bits: int) -> float:
        return self.fmt.decode_bits(bits)

    def value_range(self) -> Tuple[float, float]:
        return self.fmt.value_bounds


def bits_to_int(bits: Sequence[int]) -> int:
    """Little-endian bit list to integer."""
    return sum(int(b) << i for i, b in enumerate(bits))


def int_to_bits(value: int, width: int) -> List[int]:
    """Integer (two's complement for negatives) to little-endian bit list."""
    value %= 2 ** width
    return [(value >> i) & 1 for i in range(width)]


def floor_raw(value: float, fraction_bits: int) -> int:
    """Largest raw integer whose decoded value does not exceed ``value``."""
    return int(math.floor(value * 2 ** fraction_bits + 1e-12))


__all__ = [
    'float_to_fixed_point',
    'fixed_point_to_float',
    'raw_range',
    'required_signed_width',
    'FixedPointFormat',
    'FixedPointValue',
    'bits_to_int',
    'int_to_bits',
    'floor_raw',
]
