"""Tests for the permutation null distribution."""

import threading

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from diffcoex.stats.dispersion import dispersion
from diffcoex.stats.permutation import (
    NullDistribution,
    PermutationCancelled,
    build_null_distribution,
    generate_permutations,
    null_dispersion,
    partition_pooled,
    permutation_complement,
)
from diffcoex.stats.scaling import combine_conditions


class TestGeneratePermutations:
    """Tests for generate_permutations()."""

    def test_shape_and_distinct_indices(self):
        rng = np.random.default_rng(42)
        perms = generate_permutations(5, 7, 50, rng)

        assert perms.shape == (50, 5)
        for perm in perms:
            assert len(set(perm)) == 5
            assert perm.min() >= 0
            assert perm.max() < 12

    def test_complement_partitions_pool(self):
        rng = np.random.default_rng(0)
        for perm in generate_permutations(4, 3, 20, rng):
            complement = permutation_complement(perm, 7)
            assert len(complement) == 3
            assert set(perm).isdisjoint(complement)
            assert sorted(set(perm) | set(complement)) == list(range(7))

    def test_reproducible_with_seed(self):
        first = generate_permutations(6, 6, 10, np.random.default_rng(123))
        second = generate_permutations(6, 6, 10, np.random.default_rng(123))
        assert_array_equal(first, second)

    def test_rows_vary(self):
        perms = generate_permutations(6, 6, 30, np.random.default_rng(7))
        assert len({tuple(sorted(p)) for p in perms}) > 1

    def test_zero_trials(self):
        perms = generate_permutations(3, 3, 0, np.random.default_rng(0))
        assert perms.shape == (0, 3)

    def test_negative_arguments_raise(self):
        rng = np.random.default_rng(0)
        with pytest.raises(ValueError):
            generate_permutations(-1, 3, 5, rng)
        with pytest.raises(ValueError):
            generate_permutations(3, 3, -5, rng)


class TestPartitionPooled:
    """Tests for partition_pooled() and null_dispersion()."""

    def test_rows_and_order(self, red_blue_matrix):
        first, second = partition_pooled(red_blue_matrix, [4, 1])

        assert_allclose(first.data, red_blue_matrix.data[[4, 1]])
        assert_allclose(second.data, red_blue_matrix.data[[0, 2, 3]])
        assert first.gene_ids.equals(red_blue_matrix.gene_ids)

    def test_duplicate_index_raises(self, red_blue_matrix):
        with pytest.raises(ValueError, match="duplicate"):
            partition_pooled(red_blue_matrix, [1, 1])

    def test_out_of_range_raises(self, red_blue_matrix):
        with pytest.raises(IndexError):
            partition_pooled(red_blue_matrix, [0, 9])

    def test_null_dispersion_equals_dispersion_on_partition(self, two_conditions):
        condition_a, condition_b, assignment = two_conditions
        pooled = combine_conditions(condition_a, condition_b)
        perm = generate_permutations(condition_a.n_samples, condition_b.n_samples, 1,
                                     np.random.default_rng(5))[0]

        s1, s2 = partition_pooled(pooled, perm)
        expected = dispersion("red", "blue", s1, s2, assignment)
        assert null_dispersion(perm, pooled, "red", "blue", assignment) == pytest.approx(expected)


class TestBuildNullDistribution:
    """Tests for build_null_distribution()."""

    @pytest.fixture
    def setup(self, two_conditions):
        condition_a, condition_b, assignment = two_conditions
        pooled = combine_conditions(condition_a, condition_b)
        perms = generate_permutations(condition_a.n_samples, condition_b.n_samples, 12,
                                      np.random.default_rng(11))
        return pooled, perms, assignment, ["blue", "green", "red"]

    def test_values_match_null_dispersion(self, setup):
        pooled, perms, assignment, labels = setup
        null = build_null_distribution(pooled, perms, assignment, labels)

        assert isinstance(null, NullDistribution)
        assert null.values.shape == (3, 3, 12)
        assert null.n_trials == 12
        for k in (0, 5, 11):
            assert null.pair("red", "green")[k] == pytest.approx(
                null_dispersion(perms[k], pooled, "red", "green", assignment)
            )

    def test_threaded_equals_sequential(self, setup):
        pooled, perms, assignment, labels = setup
        sequential = build_null_distribution(pooled, perms, assignment, labels, n_workers=1)
        threaded = build_null_distribution(pooled, perms, assignment, labels, n_workers=4)
        assert_allclose(threaded.values, sequential.values)

    def test_progress_callback(self, setup):
        pooled, perms, assignment, labels = setup
        seen = []
        build_null_distribution(pooled, perms, assignment, labels,
                                progress=lambda done, total: seen.append((done, total)))
        assert seen[-1] == (12, 12)
        assert len(seen) == 12

    def test_cancel_before_start(self, setup):
        pooled, perms, assignment, labels = setup
        event = threading.Event()
        event.set()

        with pytest.raises(PermutationCancelled) as excinfo:
            build_null_distribution(pooled, perms, assignment, labels, cancel_event=event)
        assert excinfo.value.n_completed == 0
        assert excinfo.value.n_requested == 12

    def test_cancel_midway_threaded(self, setup):
        pooled, perms, assignment, labels = setup
        event = threading.Event()

        def stop_after_three(done, total):
            if done == 3:
                event.set()

        with pytest.raises(PermutationCancelled) as excinfo:
            build_null_distribution(pooled, perms, assignment, labels, n_workers=2,
                                    cancel_event=event, progress=stop_after_three)
        assert 3 <= excinfo.value.n_completed < 12

    def test_invalid_workers(self, setup):
        pooled, perms, assignment, labels = setup
        with pytest.raises(ValueError, match="n_workers"):
            build_null_distribution(pooled, perms, assignment, labels, n_workers=0)
