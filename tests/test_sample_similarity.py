"""Tests for correlation, clustering and PCA of libraries."""
import pytest
import pandas as pd
import numpy as np

from normalization import log_transform, normalize_counts
from sample_similarity import PCAResult, SampleSimilarity


@pytest.fixture
def log_counts(replicate_counts_df):
    counts = replicate_counts_df.copy()
    counts.iloc[:10, 3:] = counts.iloc[:10, 3:] * 10
    return log_transform(normalize_counts(counts))


class TestSampleSimilarity:
    """Tests for SampleSimilarity."""

    def test_correlation_matrix_square(self, log_counts):
        corr = SampleSimilarity().correlation_matrix(log_counts)
        assert corr.shape == (6, 6)
        assert list(corr.index) == list(log_counts.columns)
        np.testing.assert_allclose(np.diag(corr.values), 1.0)
        np.testing.assert_allclose(corr.values, corr.values.T)

    def test_spearman(self, log_counts):
        corr = SampleSimilarity().correlation_matrix(log_counts, method="spearman")
        assert corr.shape == (6, 6)

    def test_unknown_method(self, log_counts):
        with pytest.raises(ValueError, match="Unknown correlation method"):
            SampleSimilarity().correlation_matrix(log_counts, method="kendall-tau")

    def test_distance_matrix(self, log_counts):
        dist = SampleSimilarity().distance_matrix(log_counts)
        assert dist.shape == (6, 6)
        np.testing.assert_allclose(np.diag(dist.values), 0.0)

    def test_cluster_order_groups_tissues(self, log_counts):
        order = SampleSimilarity().cluster_order(log_counts)
        assert sorted(order) == sorted(log_counts.columns)
        tissues = [name.split("_")[0] for name in order]
        # Same-tissue libraries sit next to each other
        assert tissues in (["brain"] * 3 + ["liver"] * 3, ["liver"] * 3 + ["brain"] * 3)

    def test_cluster_order_two_libraries(self, log_counts):
        pair = log_counts[["brain_1", "liver_1"]]
        assert SampleSimilarity().cluster_order(pair) == ["brain_1", "liver_1"]

    def test_pca_coordinates(self, log_counts):
        result = SampleSimilarity().pca_coordinates(log_counts)
        assert isinstance(result, PCAResult)
        assert list(result.coordinates.columns) == ["PC1", "PC2"]
        assert list(result.coordinates.index) == list(log_counts.columns)
        assert len(result.explained_variance_ratio) == 2
        assert result.explained_variance_ratio[0] >= result.explained_variance_ratio[1]

    def test_pca_separates_tissues(self, log_counts):
        pc1 = SampleSimilarity().pca_coordinates(log_counts).coordinates["PC1"]
        brain = pc1[["brain_1", "brain_2", "brain_3"]]
        liver = pc1[["liver_1", "liver_2", "liver_3"]]
        assert (brain.max() < liver.min()) or (liver.max() < brain.min())

    def test_pca_needs_two_libraries(self, log_counts):
        with pytest.raises(ValueError, match="at least 2 libraries"):
            SampleSimilarity().pca_coordinates(log_counts[["brain_1"]])
