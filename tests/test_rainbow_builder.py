"""
Tests for the composed rainbow option state preparation.

The simulated circuit is compared cell by cell with the classical
enumeration of the price grid.
"""

import numpy as np
import pytest

from qrainbow.constants import ASSET_PROBABILITIES, RainbowConstants, RegisterLayout
from qrainbow.rainbow import (
    RainbowCircuitBuilder,
    expected_indicator_probability,
    payoff_cells,
    probability_above_strike,
)
from qrainbow.core.oracles import PayoffBranch
from qrainbow.exceptions import ValidationError


class TestClassicalReference:
    """Brute-force enumeration of the 4 x 4 grid."""

    def test_cells_cover_grid(self):
        cells = payoff_cells()
        assert len(cells) == 16
        assert sum(c.weight for c in cells) == pytest.approx(1.0)

    def test_probability_above_strike(self):
        p = ASSET_PROBABILITIES
        assert probability_above_strike() == pytest.approx(p[2] + p[3] + p[1] * p[3])

    def test_branch_assignment(self):
        branches = {(c.x1, c.x2): c.branch for c in payoff_cells()}
        assert branches[(1, 3)] is PayoffBranch.ABOVE_STRIKE
        assert branches[(1, 2)] is PayoffBranch.BELOW_STRIKE
        assert branches[(2, 0)] is PayoffBranch.ABOVE_STRIKE
        assert branches[(0, 3)] is PayoffBranch.BELOW_STRIKE

    def test_max_values(self):
        maxima = {(c.x1, c.x2): c.max_value for c in payoff_cells()}
        assert maxima[(0, 0)] == 0.0
        assert maxima[(1, 3)] == 1.75
        assert maxima[(3, 3)] == 3.25

    def test_expected_probability_in_range(self):
        assert 0.0 < expected_indicator_probability() < 1.0


class TestRainbowCircuit:
    """Structure and simulated distribution of SP."""

    def test_qubit_count(self, rainbow, rainbow_builder):
        assert rainbow_builder.num_ancillas() == 22
        assert rainbow.num_qubits == 27
        assert len(rainbow.ancillas) == 22
        assert rainbow.peak_ancillas <= 22

    def test_objective_qubit(self, rainbow):
        assert rainbow.objective_qubit == rainbow.qubit_indices(rainbow.ind)[0]

    def test_no_measurements(self, rainbow):
        assert rainbow.circuit.num_clbits == 0
        names = {inst.operation.name for inst in rainbow.circuit.data}
        assert 'measure' not in names and 'reset' not in names

    def test_indicator_probability_matches_enumeration(self, rainbow, rainbow_engine):
        p = rainbow_engine.probability_of_one(rainbow.objective_qubit)
        assert p == pytest.approx(expected_indicator_probability(), abs=1e-6)

    def test_cellwise_indicator_probability(self, rainbow, rainbow_engine):
        joint = rainbow_engine.joint_distribution([
            rainbow.qubit_indices(rainbow.x1),
            rainbow.qubit_indices(rainbow.x2),
            rainbow.qubit_indices(rainbow.ind),
        ], threshold=0.0)
        for cell in payoff_cells():
            p_one = joint.get((cell.x1, cell.x2, 1), 0.0)
            assert p_one == pytest.approx(cell.weight * cell.indicator_probability, abs=1e-9), \
                f"cell ({cell.x1}, {cell.x2})"

    def test_asset_marginals(self, rainbow, rainbow_engine):
        for register in (rainbow.x1, rainbow.x2):
            probs = rainbow_engine.probabilities(rainbow.qubit_indices(register))
            np.testing.assert_allclose(probs, ASSET_PROBABILITIES, atol=1e-9)

    def test_scratch_returns_to_zero(self, rainbow, rainbow_engine):
        scratch = [
            q for q in rainbow.qubit_indices(rainbow.ancillas)
            if q not in rainbow.retained_qubits
        ]
        assert len(rainbow.retained_qubits) == 5
        assert len(scratch) == 17
        assert rainbow_engine.probability_zero(scratch) == pytest.approx(1.0, abs=1e-9)

    def test_norm(self, rainbow_engine):
        assert rainbow_engine.norm_squared() == pytest.approx(1.0, abs=1e-9)


class TestBuilderValidation:
    """Inconsistent constants are rejected before any gate is emitted."""

    def test_unnormalised_asset_table(self):
        constants = RainbowConstants(asset_probabilities=((0.5, 0.6), ASSET_PROBABILITIES))
        with pytest.raises(ValidationError):
            RainbowCircuitBuilder(constants)

    def test_reference_width_mismatch(self):
        constants = RainbowConstants(layout=RegisterLayout(reference_width=4))
        with pytest.raises(ValidationError):
            RainbowCircuitBuilder(constants).build()

    def test_max_register_too_narrow(self):
        constants = RainbowConstants(layout=RegisterLayout(max_width=3, reference_width=3))
        with pytest.raises(ValidationError):
            RainbowCircuitBuilder(constants).build()

    def test_single_asset_rejected(self):
        constants = RainbowConstants(asset_probabilities=(ASSET_PROBABILITIES,))
        with pytest.raises(ValidationError):
            RainbowCircuitBuilder(constants)
