"""
Reversible fixed-point arithmetic: formats, comparators, affine maximum.
"""

from .fixed_point import (
    float_to_fixed_point,
    fixed_point_to_float,
    raw_range,
    required_signed_width,
    FixedPointFormat,
    FixedPointValue,
    bits_to_int,
    int_to_bits,
    floor_raw,
)
from .comparators import (
    compare_registers,
    compare_with_constant,
    load_constant,
    StrikeComparator,
)
from .affine import (
    AffineForm,
    input_domain,
    load_value_table,
    load_affine_value,
    AffineMaxEstimator,
)

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
    'compare_registers',
    'compare_with_constant',
    'load_constant',
    'StrikeComparator',
    'AffineForm',
    'input_domain',
    'load_value_table',
    'load_affine_value',
    'AffineMaxEstimator',
]
