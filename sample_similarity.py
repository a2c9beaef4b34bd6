"""
Sample-similarity statistics for normalized tRNA libraries.

Provides correlation and distance matrices, hierarchical clustering order
and PCA coordinates. Inputs are genes × libraries, usually log2 normalized.
"""

from dataclasses import dataclass
from typing import List
import pandas as pd
import numpy as np
from scipy.cluster.hierarchy import linkage, leaves_list
from scipy.spatial.distance import pdist, squareform
from sklearn.decomposition import PCA


@dataclass
class PCAResult:
    """PCA coordinates (libraries × PCs) and explained variance ratios."""

    coordinates: pd.DataFrame
    explained_variance_ratio: List[float]


class SampleSimilarity:
    """
    Between-library similarity analyses.

    Features:
    - Pearson/Spearman correlation between libraries
    - Euclidean distance matrix and hierarchical clustering order
    - PCA on the most variable genes
    """

    def correlation_matrix(
        self,
        log_counts: pd.DataFrame,
        method: str = "pearson"
    ) -> pd.DataFrame:
        """
        Library × library correlation.

        Parameters
        ----------
        log_counts : pd.DataFrame
            genes × libraries matrix
        method : str
            'pearson' or 'spearman'

        Returns
        -------
        pd.DataFrame
            Square correlation matrix labelled by library
        """
        if method not in ("pearson", "spearman"):
            raise ValueError(f"Unknown correlation method: {method}")
        return log_counts.corr(method=method)

    def distance_matrix(self, log_counts: pd.DataFrame) -> pd.DataFrame:
        """Euclidean distances between libraries."""
        distances = squareform(pdist(log_counts.T.values, metric="euclidean"))
        return pd.DataFrame(distances, index=log_counts.columns, columns=log_counts.columns)

    def cluster_order(
        self,
        log_counts: pd.DataFrame,
        method: str = "average"
    ) -> List[str]:
        """
        Library order from hierarchical clustering.

        Parameters
        ----------
        log_counts : pd.DataFrame
            genes × libraries matrix
        method : str
            scipy linkage method (default: 'average')

        Returns
        -------
        List[str]
            Library ids in dendrogram leaf order
        """
        libraries = list(log_counts.columns)
        if len(libraries) < 3:
            return libraries
        link = linkage(pdist(log_counts.T.values, metric="euclidean"), method=method)
        return [libraries[i] for i in leaves_list(link)]

    def pca_coordinates(
        self,
        log_counts: pd.DataFrame,
        n_components: int = 2,
        top_n_genes: int = 500
    ) -> PCAResult:
        """
        PCA of libraries on the top variable genes.

        Parameters
        ----------
        log_counts : pd.DataFrame
            genes × libraries matrix
        n_components : int
            Number of PCs, capped at the number of libraries
        top_n_genes : int
            Genes with the highest variance kept for the fit (default: 500)

        Returns
        -------
        PCAResult
            coordinates with PC1..PCn columns, library ids as index
        """
        n_libraries = log_counts.shape[1]
        if n_libraries < 2:
            raise ValueError(
                f"PCA requires at least 2 libraries, got {n_libraries}."
            )

        variances = log_counts.var(axis=1)
        top_genes = variances.nlargest(min(top_n_genes, len(variances))).index
        data = log_counts.loc[top_genes].T.values

        n_components = min(n_components, n_libraries)
        pca = PCA(n_components=n_components)
        coords = pca.fit_transform(data)

        coordinates = pd.DataFrame(
            coords,
            index=log_counts.columns,
            columns=[f"PC{i + 1}" for i in range(n_components)],
        )
        return PCAResult(
            coordinates=coordinates,
            explained_variance_ratio=[float(v) for v in pca.explained_variance_ratio_],
        )
