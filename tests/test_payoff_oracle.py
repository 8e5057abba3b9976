"""
Tests for the payoff oracle: reference-register integration and the
strike-controlled branch selection.
"""

import numpy as np
import pytest
from qiskit import QuantumCircuit, QuantumRegister

from qrainbow.constants import BELOW_STRIKE_ANGLE, DECAY_RATE
from qrainbow.core.arithmetic import FixedPointValue, load_constant
from qrainbow.core.engine import StatevectorEngine
from qrainbow.core.oracles import ConditionalPayoffLoader, PayoffBranch, PayoffIntegrator
from qrainbow.core.registers import AncillaPool
from qrainbow.exceptions import ValidationError


def indices(qc, register):
    return [qc.find_bit(q).index for q in register]


class TestPayoffIntegrator:
    """P(ind = 1 | max) follows the truncated exponential CDF."""

    def test_conditional_probability_formula(self):
        integrator = PayoffIntegrator(DECAY_RATE, 5)
        lam = DECAY_RATE / 4
        for raw in (0, 7, 31):
            expected = (1 - np.exp(-lam * (raw + 1))) / (1 - np.exp(-lam * 32))
            assert integrator.conditional_probability(raw, 2) == pytest.approx(expected)
        assert integrator.conditional_probability(31, 2) == pytest.approx(1.0)

    def test_circuit_matches_formula(self):
        integrator = PayoffIntegrator(DECAY_RATE, 5)
        x_reg = QuantumRegister(5, 'x')
        ind_reg = QuantumRegister(1, 'ind')
        pool = AncillaPool.create(integrator.num_work_qubits())
        qc = QuantumCircuit(x_reg, ind_reg, pool.register)
        qc.h(x_reg)
        x = FixedPointValue.on(x_reg, 2)
        integrator.apply(qc, x, ind_reg[0], pool)

        engine = StatevectorEngine.from_circuit(qc)
        joint = engine.joint_distribution([indices(qc, x_reg), indices(qc, ind_reg)], threshold=0.0)
        for raw in range(32):
            p_one = joint.get((raw, 1), 0.0) * 32
            expected = integrator.conditional_probability(raw, 2)
            assert p_one == pytest.approx(expected, abs=1e-9), f"raw={raw}"

    def test_reference_register_is_retired(self):
        integrator = PayoffIntegrator(DECAY_RATE, 5)
        x_reg, ind_reg = QuantumRegister(5, 'x'), QuantumRegister(1, 'ind')
        pool = AncillaPool.create(integrator.num_work_qubits())
        qc = QuantumCircuit(x_reg, ind_reg, pool.register)
        integrator.apply(qc, FixedPointValue.on(x_reg, 2), ind_reg[0], pool)
        assert len(pool.retired) == 5
        assert pool.available == 1

    def test_controlled_on_zero(self):
        integrator = PayoffIntegrator(DECAY_RATE, 5)
        x_reg, ind_reg, c_reg = QuantumRegister(5, 'x'), QuantumRegister(1, 'ind'), QuantumRegister(1, 'c')
        pool = AncillaPool.create(integrator.num_work_qubits())
        qc = QuantumCircuit(x_reg, ind_reg, c_reg, pool.register)
        load_constant(qc, x_reg, 31)
        qc.x(c_reg[0])
        integrator.apply(qc, FixedPointValue.on(x_reg, 2), ind_reg[0], pool, control=c_reg[0], ctrl_state=0)
        engine = StatevectorEngine.from_circuit(qc)
        assert engine.probability_of_one(qc.find_bit(ind_reg[0]).index) == pytest.approx(0.0)

    def test_width_mismatch(self):
        integrator = PayoffIntegrator(DECAY_RATE, 5)
        with pytest.raises(ValidationError):
            integrator.validate(FixedPointValue.on(QuantumRegister(4), 2))

    def test_invalid_parameters(self):
        with pytest.raises(ValidationError):
            PayoffIntegrator(0.0)
        with pytest.raises(ValidationError):
            PayoffIntegrator(DECAY_RATE, 0)


class TestConditionalPayoffLoader:
    """The strike bit selects the payoff branch coherently."""

    def test_branch_control_states(self):
        assert PayoffBranch.ABOVE_STRIKE.ctrl_state == 1
        assert PayoffBranch.BELOW_STRIKE.ctrl_state == 0

    def test_superposed_strike_bit(self):
        loader = ConditionalPayoffLoader(PayoffIntegrator(DECAY_RATE, 5), BELOW_STRIKE_ANGLE)
        x_reg = QuantumRegister(5, 'x')
        geq_reg = QuantumRegister(1, 'geq')
        ind_reg = QuantumRegister(1, 'ind')
        pool = AncillaPool.create(loader.num_work_qubits())
        qc = QuantumCircuit(x_reg, geq_reg, ind_reg, pool.register)
        load_constant(qc, x_reg, 10)
        qc.h(geq_reg[0])
        loader.apply(qc, geq_reg[0], FixedPointValue.on(x_reg, 2), ind_reg[0], pool)

        engine = StatevectorEngine.from_circuit(qc)
        joint = engine.joint_distribution([indices(qc, geq_reg), indices(qc, ind_reg)])
        above = loader.branch_probability(PayoffBranch.ABOVE_STRIKE, 10, 2)
        below = loader.branch_probability(PayoffBranch.BELOW_STRIKE, 10, 2)
        assert below == pytest.approx(np.sin(BELOW_STRIKE_ANGLE / 2) ** 2)
        assert joint[(1, 1)] == pytest.approx(0.5 * above, abs=1e-9)
        assert joint[(0, 1)] == pytest.approx(0.5 * below, abs=1e-9)
        assert joint[(1, 0)] + joint[(0, 0)] == pytest.approx(1 - 0.5 * (above + below), abs=1e-9)
