"""
Invertible state preparation (Grover-Rudolph rotation trees).
"""

from .invertible_prep import (
    compute_rotation_angles_tree,
    validate_distribution,
    exponential_distribution,
    DistributionLoader,
)

__all__ = [
    'compute_rotation_angles_tree',
    'validate_distribution',
    'exponential_distribution',
    'DistributionLoader',
]
