"""
Rainbow Option Circuit
======================

Composes the state preparation SP whose indicator qubit carries the
normalised expected payoff of a two-asset rainbow option:

    SP|0⟩ = √(1-a)|ψ_bad⟩|0⟩_ind + √a|ψ_good⟩|1⟩_ind

Pipeline:
---------
1. DistributionLoader on x1 and on x2 (four-point price tables)
2. scope max_out: AffineMaxEstimator → max(x1, 0.75·x1 + 0.75·x2 − 1.25)
3.   scope geq: StrikeComparator → [max_out > strike]
4.     ConditionalPayoffLoader(geq, max_out, ind)
5.   geq uncomputed by the inverse of step 3
6. max_out uncomputed by the inverse of step 2

Qubit layout:
-------------
- x1, x2 : asset registers (2 qubits each)
- ind    : indicator (objective) qubit
- anc    : ancilla pool holding max_out, geq, arithmetic scratch and the
           reference register of the payoff integrator

Author: QRainbow Research Team
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from qiskit import QuantumCircuit, QuantumRegister
from qiskit.circuit import AncillaRegister

from qrainbow.constants import DEFAULT_CONSTANTS, RainbowConstants
from qrainbow.core.registers import AncillaPool, ScopedAncilla
from qrainbow.core.state_prep.invertible_prep import DistributionLoader
from qrainbow.core.arithmetic.fixed_point import FixedPointFormat, FixedPointValue
from qrainbow.core.arithmetic.affine import AffineMaxEstimator
from qrainbow.core.arithmetic.comparators import StrikeComparator
from qrainbow.core.oracles.payoff_oracle import ConditionalPayoffLoader, PayoffIntegrator

logger = logging.getLogger(__name__)


@dataclass
class RainbowCircuit:
    """Built state preparation and its registers.

    Attributes
    ----------
    circuit : QuantumCircuit
        State preparation SP (unitary, no measurements)
    x1, x2 : QuantumRegister
        Asset registers
    ind : QuantumRegister
        One-qubit indicator register
    ancillas : AncillaRegister
        Scratch pool
    objective_qubit : int
        Index of the indicator qubit in ``circuit``
    peak_ancillas : int
        Pool qubits in use at the busiest point of the build
    retained_qubits : list of int
        Pool qubits that stay entangled after SP (the payoff reference
        register); every other ancilla returns to |0⟩
    """
    circuit: QuantumCircuit
    x1: QuantumRegister
    x2: QuantumRegister
    ind: QuantumRegister
    ancillas: AncillaRegister
    objective_qubit: int
    peak_ancillas: int
    retained_qubits: List[int] = field(default_factory=list)

    @property
    def num_qubits(self) -> int:
        return self.circuit.num_qubits

    def qubit_indices(self, register) -> list:
        return [self.circuit.find_bit(q).index for q in register]


class RainbowCircuitBuilder:
    """
    Builds the rainbow option state preparation from a constants table.

    Parameters
    ----------
    constants : RainbowConstants, optional
        Calibrated tables and angles (default: module constants)

    Examples
    --------
    >>> rainbow = RainbowCircuitBuilder().build()
    >>> rainbow.num_qubits
    27
    """

    def __init__(self, constants: Optional[RainbowConstants] = None):
        self.constants = constants or DEFAULT_CONSTANTS
        self.constants.validate()
        layout = self.constants.layout
        self.loaders = tuple(
            DistributionLoader(table, layout.asset_width)
            for table in self.constants.asset_probabilities
        )
        self.estimator = AffineMaxEstimator(self.constants.affine_forms)
        self.comparator = StrikeComparator(self.constants.strike)
        self.payoff = ConditionalPayoffLoader(
            PayoffIntegrator(self.constants.decay_rate, layout.reference_width),
            self.constants.below_strike_angle,
        )

    @property
    def max_format(self) -> FixedPointFormat:
        layout = self.constants.layout
        return FixedPointFormat(layout.max_width, layout.max_fraction_bits)

    def _asset_values(self, x1_reg, x2_reg):
        frac = self.constants.layout.asset_fraction_bits
        return FixedPointValue.on(x1_reg, frac), FixedPointValue.on(x2_reg, frac)

    def num_ancillas(self) -> int:
        """
        Pool size: max_out, the larger of the two nested work phases, and
        the reference register, which must not overlap any replayed scratch.
        """
        layout = self.constants.layout
        x1, x2 = self._asset_values(
            QuantumRegister(layout.asset_width), QuantumRegister(layout.asset_width)
        )
        max_out = FixedPointValue.on(QuantumRegister(layout.max_width), layout.max_fraction_bits)
        self.payoff.integrator.validate(max_out)

        affine_work = self.estimator.num_work_qubits(x1, x2, self.max_format)
        strike_work = StrikeComparator.num_work_qubits(max_out)
        payoff_clean = self.payoff.num_work_qubits() - layout.reference_width
        nested = max(affine_work, 1 + max(strike_work, payoff_clean))
        return layout.max_width + nested + layout.reference_width

    def build(self) -> RainbowCircuit:
        """Compose SP; raises ValidationError on any width mismatch."""
        layout = self.constants.layout
        x1_reg = QuantumRegister(layout.asset_width, 'x1')
        x2_reg = QuantumRegister(layout.asset_width, 'x2')
        ind_reg = QuantumRegister(layout.indicator_width, 'ind')
        pool = AncillaPool.create(self.num_ancillas(), 'anc')
        qc = QuantumCircuit(x1_reg, x2_reg, ind_reg, pool.register, name='rainbow_sp')

        self.loaders[0].apply(qc, x1_reg)
        self.loaders[1].apply(qc, x2_reg)
        x1, x2 = self._asset_values(x1_reg, x2_reg)
        ind = ind_reg[0]

        with self.estimator.scope(qc, pool, x1, x2, self.max_format, name='max_out') as max_qubits:
            max_out = FixedPointValue(tuple(max_qubits), self.max_format)

            def strike(block, qubits):
                self.comparator.apply(block, max_out, qubits[0], pool)

            with ScopedAncilla(qc, pool, 1, prepare=strike, name='geq') as geq:
                self.payoff.apply(qc, geq[0], max_out, ind, pool)

        rainbow = RainbowCircuit(
            circuit=qc,
            x1=x1_reg,
            x2=x2_reg,
            ind=ind_reg,
            ancillas=pool.register,
            objective_qubit=qc.find_bit(ind).index,
            peak_ancillas=pool.peak_usage,
            retained_qubits=[qc.find_bit(q).index for q in pool.retired],
        )
        logger.info(
            f"Built rainbow circuit: {qc.num_qubits} qubits "
            f"({len(pool.register)} ancillas, peak {pool.peak_usage}), "
            f"{len(qc.data)} instructions"
        )
        return rainbow


__all__ = [
    'RainbowCircuit',
    'RainbowCircuitBuilder',
]
