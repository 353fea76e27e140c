"""Tests for module assignments and module column selection."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from diffcoex.core.modules import ModuleAssignment, columns_for_module, module_indices


class TestModuleAssignment:
    """Tests for ModuleAssignment."""

    def test_labels_sorted_unique(self, red_blue_assignment):
        assert red_blue_assignment.labels() == ["blue", "red"]

    def test_members_follow_gene_order(self, red_blue_assignment):
        assert red_blue_assignment.members("blue", ["g4", "g1", "g3"]) == ["g4", "g3"]
        assert red_blue_assignment.members("red") == ["g1", "g2"]

    def test_sizes(self):
        assignment = ModuleAssignment([("a", "red"), ("b", "red"), ("c", "grey")])
        assert assignment.sizes() == {"grey": 1, "red": 2}

    def test_restrict(self, red_blue_assignment):
        restricted = red_blue_assignment.restrict(["g1", "g3", "unknown"])
        assert dict(restricted) == {"g1": "red", "g3": "blue"}

    def test_is_read_only_mapping(self, red_assignment):
        assert red_assignment["g1"] == "red"
        assert red_assignment.get("missing") is None
        with pytest.raises(TypeError):
            red_assignment["g3"] = "blue"

    def test_values_stored_as_strings(self):
        assignment = ModuleAssignment({1: 7})
        assert assignment["1"] == "7"

    def test_to_series(self, red_blue_assignment):
        series = red_blue_assignment.to_series()
        assert series.name == "module"
        assert series["g3"] == "blue"


class TestColumnsForModule:
    """Tests for columns_for_module() and module_indices()."""

    def test_selects_member_columns(self, red_blue_matrix, red_blue_assignment):
        blue = columns_for_module(red_blue_matrix, red_blue_assignment, "blue")
        assert blue.shape == (5, 2)
        assert_allclose(blue, red_blue_matrix.data[:, [2, 3]])

    def test_empty_module(self, red_blue_matrix, red_blue_assignment):
        empty = columns_for_module(red_blue_matrix, red_blue_assignment, "green")
        assert empty.shape == (5, 0)

    def test_unassigned_genes_ignored(self, red_blue_matrix):
        partial = ModuleAssignment({"g2": "red"})
        red = columns_for_module(red_blue_matrix, partial, "red")
        assert_allclose(red[:, 0], red_blue_matrix.column(1))

    def test_plain_array_requires_gene_ids(self, red_blue_assignment):
        data = np.zeros((3, 4))
        with pytest.raises(ValueError, match="gene_ids"):
            columns_for_module(data, red_blue_assignment, "red")
        selected = columns_for_module(data, red_blue_assignment, "red", gene_ids=["g1", "g2", "g3", "g4"])
        assert selected.shape == (3, 2)

    def test_module_indices(self, red_blue_assignment):
        idx = module_indices(["g3", "g1", "g4", "g2"], red_blue_assignment, "blue")
        assert list(idx) == [0, 2]
