"""
Payoff oracles loading the option payoff onto the indicator qubit.
"""

from .payoff_oracle import (
    PayoffBranch,
    PayoffIntegrator,
    ConditionalPayoffLoader,
)

__all__ = [
    'PayoffBranch',
    'PayoffIntegrator',
    'ConditionalPayoffLoader',
]
