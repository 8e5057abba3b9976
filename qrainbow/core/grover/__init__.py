"""
Grover amplitude amplification.
"""

from .amplifier import zero_reflection, expected_probability, GroverAmplifier

__all__ = [
    'zero_reflection',
    'expected_probability',
    'GroverAmplifier',
]
