"""
Library-size normalization for genes × libraries count matrices.

Size factors follow the median-of-ratios method: each library is compared
against a per-gene geometric-mean pseudo-reference built from genes with no
zero count. Matrices where every gene has a zero somewhere fall back to the
positive-counts variant, so every library with at least one read still gets
a strictly positive factor.
"""

from typing import Optional
import logging
import numpy as np
import pandas as pd

from pipeline_errors import NormalizationError

logger = logging.getLogger(__name__)


def estimate_size_factors(counts: pd.DataFrame) -> pd.Series:
    """
    Estimate one size factor per library (column).

    Args:
        counts: genes × libraries DataFrame of raw counts

    Returns:
        Series of strictly positive factors indexed by library id

    Raises:
        NormalizationError: If the matrix has no libraries or genes, or a
            library has no reads at all
    """
    if counts.empty:
        raise NormalizationError(
            f"Cannot estimate size factors: count matrix is empty "
            f"({counts.shape[0]} genes x {counts.shape[1]} libraries). "
            f"Check that not every library is a control.",
            details={"genes": counts.shape[0], "libraries": counts.shape[1]},
        )

    values = counts.to_numpy(dtype=float)
    empty_libraries = counts.columns[values.sum(axis=0) <= 0].tolist()
    if empty_libraries:
        raise NormalizationError(
            f"Cannot estimate size factors: libraries with zero total counts: "
            f"{', '.join(map(str, empty_libraries))}",
            details={"library": str(empty_libraries[0]), "libraries": empty_libraries},
        )

    zero_free = (values > 0).all(axis=1)
    if zero_free.any():
        log_values = np.log(values[zero_free])
        log_reference = log_values.mean(axis=1)
        factors = np.exp(np.median(log_values - log_reference[:, None], axis=0))
        logger.debug(
            f"Size factors from {int(zero_free.sum())} of {len(values)} zero-free genes"
        )
    else:
        logger.warning(
            "Every gene has at least one zero count; using positive-counts "
            "size factor estimation"
        )
        factors = _positive_counts_factors(values)

    return pd.Series(factors, index=counts.columns, name="size_factor")


def _positive_counts_factors(values: np.ndarray) -> np.ndarray:
    """Median-of-ratios over positive counts only, rescaled to geometric mean 1."""
    n_libraries = values.shape[1]
    positive = values > 0
    log_values = np.log(np.where(positive, values, 1.0))
    # Zeros contribute to the denominator but not the sum
    log_reference = log_values.sum(axis=1) / n_libraries
    usable = positive.any(axis=1)

    factors = np.empty(n_libraries)
    for j in range(n_libraries):
        mask = usable & positive[:, j]
        factors[j] = np.exp(np.median(log_values[mask, j] - log_reference[mask]))

    return factors / np.exp(np.mean(np.log(factors)))


def normalize_counts(
    counts: pd.DataFrame, size_factors: Optional[pd.Series] = None
) -> pd.DataFrame:
    """
    Divide every library by its size factor.

    Args:
        counts: genes × libraries DataFrame of raw counts
        size_factors: Factors indexed by library id (estimated when None)

    Returns:
        New float DataFrame with the same gene and library labels
    """
    if size_factors is None:
        size_factors = estimate_size_factors(counts)

    factors = size_factors.reindex(counts.columns)
    if factors.isna().any():
        missing = counts.columns[factors.isna()].tolist()
        raise ValueError(f"No size factor for libraries: {missing}")
    if (factors <= 0).any():
        raise ValueError("Size factors must be strictly positive.")

    normalized = counts.astype(float).div(factors, axis=1)
    return normalized


def min_positive_value(matrix: pd.DataFrame) -> float:
    """
    Smallest strictly positive entry of a matrix.

    Used as the plotting pseudocount; compute it on the normalized matrix,
    since raw and normalized minima differ.
    """
    values = matrix.to_numpy(dtype=float)
    positive = values[values > 0]
    if positive.size == 0:
        raise ValueError("Matrix has no positive values.")
    return float(positive.min())


def log_transform(
    matrix: pd.DataFrame, pseudocount: Optional[float] = None
) -> pd.DataFrame:
    """log2(x + pseudocount); pseudocount defaults to min_positive_value(matrix)."""
    if pseudocount is None:
        pseudocount = min_positive_value(matrix)
    return np.log2(matrix + pseudocount)
