"""
Exceptions
==========

Error hierarchy shared by circuit construction, simulation and estimation.

- ValidationError: rejected parameters or ranges at build time (never a
  silent truncation)
- PreconditionError: an in-place operation found its register in the wrong
  state
- InvariantViolation: the state vector drifted from unit norm
- UncomputeError: a scoped ancilla was not returned to |0...0⟩
- ExecutionError: sampling failed after all retries
- DidNotConverge: the estimation budget was exhausted

Author: QRainbow Research Team
"""


class QRainbowError(Exception):
    """Base class for all qrainbow errors."""


class ValidationError(QRainbowError, ValueError):
    """Invalid parameter, fixed-point overflow or resource exhaustion."""


class PreconditionError(QRainbowError):
    """An operation's assumption about the incoming state does not hold."""


class InvariantViolation(QRainbowError, RuntimeError):
    """State vector normalisation drifted beyond tolerance.

    Always a bug signal: some unitary or inverse is implemented incorrectly.
    """


class UncomputeError(InvariantViolation):
    """A scoped ancilla register was left entangled at scope exit."""

    def __init__(self, label: str, probability_zero: float):
        self.label = label
        self.probability_zero = probability_zero
        super().__init__(
            f"Ancilla scope '{label}' not restored to |0⟩: "
            f"P(all zero) = {probability_zero:.12f}"
        )


class TransientBackendError(QRainbowError):
    """Retryable failure raised by a sampling backend."""


class ExecutionError(QRainbowError, RuntimeError):
    """Sampling failed after the configured number of retries."""


class DidNotConverge(QRainbowError, RuntimeError):
    """Amplitude estimation exceeded its round or depth budget."""

    def __init__(self, message: str, rounds: int = 0, last_interval=None):
        self.rounds = rounds
        self.last_interval = last_interval
        super().__init__(message)


__all__ = [
    'QRainbowError',
    'ValidationError',
    'PreconditionError',
    'InvariantViolation',
    'UncomputeError',
    'TransientBackendError',
    'ExecutionError',
    'DidNotConverge',
]
