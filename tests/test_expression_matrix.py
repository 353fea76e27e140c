"""Tests for ExpressionMatrix and QualityFlag."""

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose

from diffcoex.core.expression import ExpressionMatrix
from diffcoex.core.quality import QualityFlag, count_flagged


class TestConstruction:
    """Tests for ExpressionMatrix validation."""

    def test_defaults(self):
        matrix = ExpressionMatrix(np.ones((3, 2)), gene_ids=["a", "b"])
        assert matrix.shape == (3, 2)
        assert list(matrix.sample_ids) == ["sample_1", "sample_2", "sample_3"]
        assert np.all(matrix.quality_flags == QualityFlag.ORIGINAL)

    def test_gene_id_length_mismatch(self):
        with pytest.raises(ValueError, match="gene_ids length"):
            ExpressionMatrix(np.ones((3, 2)), gene_ids=["a"])

    def test_sample_id_length_mismatch(self):
        with pytest.raises(ValueError, match="sample_ids length"):
            ExpressionMatrix(np.ones((3, 2)), gene_ids=["a", "b"], sample_ids=["s1"])

    def test_not_2d(self):
        with pytest.raises(ValueError, match="2D"):
            ExpressionMatrix(np.ones(3), gene_ids=["a", "b", "c"])

    def test_flag_shape_mismatch(self):
        with pytest.raises(ValueError, match="quality_flags shape"):
            ExpressionMatrix(np.ones((2, 2)), gene_ids=["a", "b"], quality_flags=np.zeros((2, 3)))

    def test_non_numeric_raises_type_error(self):
        with pytest.raises(TypeError):
            ExpressionMatrix([["x", "y"]], gene_ids=["a", "b"])

    def test_data_is_read_only_copy(self):
        source = np.ones((2, 2))
        matrix = ExpressionMatrix(source, gene_ids=["a", "b"])
        source[0, 0] = 99.0

        assert matrix.data[0, 0] == 1.0
        with pytest.raises(ValueError):
            matrix.data[0, 0] = 5.0

    def test_from_frame_genes_by_samples(self):
        frame = pd.DataFrame(
            [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]],
            index=["g1", "g2"],
            columns=["s1", "s2", "s3"],
        )
        matrix = ExpressionMatrix.from_frame(frame, orientation="genes_by_samples")

        assert matrix.shape == (3, 2)
        assert list(matrix.gene_ids) == ["g1", "g2"]
        assert_allclose(matrix.column(1), [4.0, 5.0, 6.0])

    def test_from_frame_unknown_orientation(self):
        with pytest.raises(ValueError, match="orientation"):
            ExpressionMatrix.from_frame(pd.DataFrame([[1.0]]), orientation="sideways")


class TestSelection:
    """Tests for row/column selection."""

    def test_select_rows_in_order(self, small_matrix):
        subset = small_matrix.select_rows([3, 0])
        assert_allclose(subset.data, [[4.0, 3.0], [1.0, 2.0]])
        assert list(subset.sample_ids) == ["sample_4", "sample_1"]

    def test_select_rows_out_of_range(self, small_matrix):
        with pytest.raises(IndexError):
            small_matrix.select_rows([0, 4])
        with pytest.raises(IndexError):
            small_matrix.select_rows([-1])

    def test_select_samples_mask(self, small_matrix):
        subset = small_matrix.select_samples(np.array([True, False, True, False]))
        assert subset.n_samples == 2
        with pytest.raises(ValueError):
            small_matrix.select_samples(np.array([True, False]))

    def test_select_genes_keeps_flags(self):
        flags = np.array([[0, 2], [1, 0]])
        matrix = ExpressionMatrix(np.ones((2, 2)), gene_ids=["a", "b"], quality_flags=flags)
        subset = matrix.select_genes(np.array([False, True]))

        assert list(subset.gene_ids) == ["b"]
        assert count_flagged(subset.quality_flags, QualityFlag.LOG_FLOORED) == 1

    def test_column_out_of_range(self, small_matrix):
        with pytest.raises(IndexError):
            small_matrix.column(2)

    def test_to_frame_round_trip(self, small_matrix):
        frame = small_matrix.to_frame()
        rebuilt = ExpressionMatrix.from_frame(frame)
        assert_allclose(rebuilt.data, small_matrix.data)
        assert rebuilt.gene_ids.equals(small_matrix.gene_ids)


class TestQualityFlag:
    """Tests for QualityFlag combination."""

    def test_flags_combine(self):
        combined = QualityFlag.PARSE_SUBSTITUTED | QualityFlag.LOG_FLOORED
        assert combined & QualityFlag.LOG_FLOORED
        assert int(combined) == 3

    def test_count_flagged(self):
        flags = np.array([0, 1, 2, 3])
        assert count_flagged(flags, QualityFlag.PARSE_SUBSTITUTED) == 2
        assert count_flagged(flags, QualityFlag.LOG_FLOORED) == 2
