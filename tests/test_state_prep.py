"""
Tests for invertible distribution loading.
"""

import numpy as np
import pytest
from qiskit import QuantumCircuit
from qiskit.quantum_info import Statevector

from qrainbow.constants import ASSET_PROBABILITIES
from qrainbow.core.engine import StatevectorEngine
from qrainbow.core.state_prep import (
    DistributionLoader,
    compute_rotation_angles_tree,
    exponential_distribution,
    validate_distribution,
)
from qrainbow.exceptions import PreconditionError, ValidationError

TABLES = [
    ASSET_PROBABILITIES,
    [0.1, 0.2, 0.3, 0.4],
    [0.0, 0.5, 0.0, 0.5],
    [1.0, 0.0, 0.0, 0.0],
    [0.2, 0.3, 0.5],
    list(exponential_distribution(0.3627 / 4, 5)),
]


class TestRotationTree:
    """Angle computation."""

    def test_uniform_table(self):
        angles = compute_rotation_angles_tree(np.full(4, 0.25))
        assert len(angles) == 2
        np.testing.assert_allclose(angles[0], [np.pi / 2])
        np.testing.assert_allclose(angles[1], [np.pi / 2, np.pi / 2])

    def test_empty_subtree_gets_zero_angle(self):
        angles = compute_rotation_angles_tree(np.array([0.5, 0.5, 0.0, 0.0]))
        assert angles[0] == [0.0]
        assert angles[1][1] == 0.0

    def test_length_must_be_power_of_two(self):
        with pytest.raises(ValidationError):
            compute_rotation_angles_tree(np.array([0.5, 0.25, 0.25]))


class TestDistributionLoader:
    """The loaded register reproduces the table."""

    @pytest.mark.parametrize('table', TABLES)
    def test_probabilities_match_table(self, table):
        loader = DistributionLoader(table)
        engine = StatevectorEngine.from_circuit(loader.build())
        probs = engine.probabilities(range(loader.width))
        np.testing.assert_allclose(probs, loader.probabilities, atol=1e-9)

    @pytest.mark.parametrize('table', TABLES)
    def test_matches_qiskit(self, table):
        loader = DistributionLoader(table)
        probs = Statevector(loader.build()).probabilities()
        assert loader.verify_statevector(np.sqrt(probs)) < 1e-9

    @pytest.mark.parametrize('table', TABLES)
    def test_inverse_restores_zero(self, table):
        loader = DistributionLoader(table)
        qc = loader.build()
        qc.compose(loader.inverse_circuit(), inplace=True)
        engine = StatevectorEngine.from_circuit(qc)
        assert engine.probability_zero(range(loader.width)) >= 1 - 1e-9

    def test_default_width(self):
        assert DistributionLoader([0.5, 0.5]).width == 1
        assert DistributionLoader([0.2, 0.3, 0.5]).width == 2
        assert DistributionLoader(np.full(32, 1 / 32)).width == 5

    def test_padded_to_register(self):
        loader = DistributionLoader([0.5, 0.5], width=3)
        assert len(loader.probabilities) == 8
        engine = StatevectorEngine.from_circuit(loader.build())
        assert engine.probability_zero([1, 2]) == pytest.approx(1.0)

    def test_only_rotations(self):
        names = {inst.operation.name for inst in DistributionLoader(TABLES[1]).build().data}
        assert all('ry' in name for name in names)

    def test_num_rotations(self):
        assert DistributionLoader([1.0, 0.0, 0.0, 0.0]).num_rotations == 0
        assert DistributionLoader(ASSET_PROBABILITIES).num_rotations == 3

    def test_wrong_register_width(self):
        loader = DistributionLoader(ASSET_PROBABILITIES)
        qc = QuantumCircuit(3)
        with pytest.raises(ValidationError):
            loader.apply(qc, qc.qubits)


class TestApplyInPlace:
    """In-place loading on engine qubits."""

    def test_loads_onto_sub_register(self):
        loader = DistributionLoader([0.1, 0.2, 0.3, 0.4])
        engine = StatevectorEngine(3, initial_state=0b001)
        loader.apply_in_place(engine, [1, 2])
        np.testing.assert_allclose(engine.probabilities([1, 2]), [0.1, 0.2, 0.3, 0.4], atol=1e-9)
        assert engine.probability_of_one(0) == pytest.approx(1.0)

    def test_rejects_dirty_register(self):
        loader = DistributionLoader([0.1, 0.2, 0.3, 0.4])
        engine = StatevectorEngine(2, initial_state=0b01)
        with pytest.raises(PreconditionError):
            loader.apply_in_place(engine, [0, 1])


class TestValidation:
    """Malformed tables are rejected."""

    def test_negative_entry(self):
        with pytest.raises(ValidationError):
            validate_distribution([1.2, -0.2], 1)

    def test_sum_not_one(self):
        with pytest.raises(ValidationError):
            DistributionLoader([0.3, 0.3, 0.3, 0.3])

    def test_sum_within_tolerance(self):
        DistributionLoader([0.5, 0.5 + 1e-10])

    def test_too_long_for_register(self):
        with pytest.raises(ValidationError):
            DistributionLoader([0.25] * 4, width=1)

    def test_exponential_distribution(self):
        table = exponential_distribution(0.5, 3)
        assert table.sum() == pytest.approx(1.0)
        assert table[1] / table[0] == pytest.approx(np.exp(-0.5))
        with pytest.raises(ValidationError):
            exponential_distribution(0.0, 3)
