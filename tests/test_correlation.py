"""Tests for rank and product-moment correlation primitives."""

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy import stats

from diffcoex.stats.correlation import (
    pearson_correlation,
    rank_columns,
    spearman_correlation,
    spearman_cross,
    spearman_matrix,
)


class TestSpearmanCorrelation:
    """Tests for spearman_correlation()."""

    def test_perfect_monotone(self):
        assert spearman_correlation([1, 2, 3, 4], [10, 20, 30, 40]) == pytest.approx(1.0)
        assert spearman_correlation([1, 2, 3, 4], [4, 3, 2, 1]) == pytest.approx(-1.0)

    def test_nonlinear_monotone_is_one(self):
        x = np.arange(1.0, 9.0)
        assert spearman_correlation(x, np.exp(x)) == pytest.approx(1.0)

    def test_symmetric_and_bounded(self):
        rng = np.random.default_rng(0)
        for _ in range(20):
            x = rng.normal(size=15)
            y = rng.normal(size=15)
            rho = spearman_correlation(x, y)
            assert rho == pytest.approx(spearman_correlation(y, x))
            assert -1.0 <= rho <= 1.0

    def test_matches_scipy_without_ties(self):
        rng = np.random.default_rng(1)
        x = rng.normal(size=30)
        y = x + rng.normal(size=30)
        expected = stats.spearmanr(x, y).statistic
        assert spearman_correlation(x, y) == pytest.approx(expected)

    def test_constant_input_is_nan(self):
        assert np.isnan(spearman_correlation([5, 5, 5, 5], [1, 2, 3, 4]))
        assert np.isnan(spearman_correlation([1, 2, 3, 4], [2, 2, 2, 2]))
        assert np.isnan(spearman_correlation([5, 5, 5], [1, 2, 3], ties="average"))

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError, match="equal length"):
            spearman_correlation([1, 2, 3], [1, 2])

    def test_ordinal_ties_break_by_position(self):
        # Ordinal ranks of [1, 1, 2] are [1, 2, 3]
        assert spearman_correlation([1, 1, 2], [1, 2, 3]) == pytest.approx(1.0)

    def test_average_ties_textbook(self):
        assert spearman_correlation([1, 1, 2], [1, 2, 3], ties="average") == pytest.approx(
            1.5 / np.sqrt(3.0)
        )

    def test_average_ties_match_scipy(self):
        x = np.array([1, 2, 2, 3, 4, 4, 4, 5], dtype=float)
        y = np.array([2, 1, 3, 3, 5, 4, 6, 7], dtype=float)
        expected = stats.spearmanr(x, y).statistic
        assert spearman_correlation(x, y, ties="average") == pytest.approx(expected)

    def test_unknown_tie_method_raises(self):
        with pytest.raises(ValueError, match="tie method"):
            spearman_correlation([1, 2, 3], [1, 2, 3], ties="dense")


class TestPearsonCorrelation:
    """Tests for pearson_correlation()."""

    def test_matches_numpy(self):
        rng = np.random.default_rng(2)
        x = rng.normal(size=20)
        y = 0.5 * x + rng.normal(size=20)
        assert pearson_correlation(x, y) == pytest.approx(np.corrcoef(x, y)[0, 1])

    def test_constant_is_nan(self):
        assert np.isnan(pearson_correlation([1.0, 1.0, 1.0], [1.0, 2.0, 3.0]))

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            pearson_correlation([1.0, 2.0], [1.0, 2.0, 3.0])


class TestRankColumns:
    """Tests for rank_columns()."""

    def test_ranks_per_column(self):
        data = np.array([[30.0, 1.0], [10.0, 3.0], [20.0, 2.0]])
        assert_allclose(rank_columns(data), [[3.0, 1.0], [1.0, 3.0], [2.0, 2.0]])

    def test_constant_column_is_nan(self):
        data = np.array([[1.0, 7.0], [2.0, 7.0], [3.0, 7.0]])
        ranks = rank_columns(data)
        assert np.all(np.isnan(ranks[:, 1]))
        assert_allclose(ranks[:, 0], [1.0, 2.0, 3.0])


class TestSpearmanMatrix:
    """Tests for spearman_matrix() and spearman_cross()."""

    def test_matches_pairwise(self):
        rng = np.random.default_rng(3)
        data = rng.normal(size=(10, 4))
        corr = spearman_matrix(data)

        assert corr.shape == (4, 4)
        assert_allclose(corr, corr.T)
        assert_allclose(np.diag(corr), 1.0)
        for i in range(4):
            for j in range(4):
                assert corr[i, j] == pytest.approx(spearman_correlation(data[:, i], data[:, j]))

    def test_constant_column_propagates_nan(self):
        data = np.array([[1.0, 4.0, 2.0], [2.0, 4.0, 1.0], [3.0, 4.0, 3.0]])
        corr = spearman_matrix(data)
        assert np.all(np.isnan(corr[1, :]))
        assert np.all(np.isnan(corr[:, 1]))
        assert not np.isnan(corr[0, 2])

    def test_cross_shape_and_values(self):
        rng = np.random.default_rng(4)
        a = rng.normal(size=(8, 3))
        b = rng.normal(size=(8, 2))
        cross = spearman_cross(a, b)
        assert cross.shape == (3, 2)
        assert cross[2, 1] == pytest.approx(spearman_correlation(a[:, 2], b[:, 1]))

    def test_cross_with_empty_side(self):
        a = np.ones((5, 0))
        b = np.arange(10.0).reshape(5, 2)
        assert spearman_cross(a, b).shape == (0, 2)

    def test_cross_row_mismatch_raises(self):
        with pytest.raises(ValueError, match="same number of observations"):
            spearman_cross(np.zeros((4, 2)), np.zeros((5, 2)))
