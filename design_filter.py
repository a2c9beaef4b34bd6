"""Remove input-control libraries and align the count matrix to the design."""

from typing import Tuple
import logging
import pandas as pd

from analysis_config import AnalysisConfig
from pipeline_errors import UnmatchedLibraryError

logger = logging.getLogger(__name__)


def filter_design(design: pd.DataFrame, control_antibody: str = "Input") -> pd.DataFrame:
    """
    Drop every library whose antibody equals the control sentinel.

    Args:
        design: Design table with Library and Antibody columns
        control_antibody: Sentinel antibody value (default: "Input")

    Returns:
        New design table without control rows, original order kept, fresh index
    """
    is_control = design["Antibody"] == control_antibody
    removed = design.loc[is_control, "Library"].tolist()
    if removed:
        logger.info(
            f"Removed {len(removed)} '{control_antibody}' libraries: {', '.join(removed)}"
        )
    filtered = design.loc[~is_control].reset_index(drop=True)
    return filtered


def align_counts(design: pd.DataFrame, counts: pd.DataFrame) -> pd.DataFrame:
    """
    Subset and reorder count columns to match design.Library, one to one.

    Returns:
        New genes × libraries DataFrame whose columns equal design.Library in order

    Raises:
        UnmatchedLibraryError: If a design library has no count column
    """
    available = set(counts.columns)
    for library in design["Library"]:
        if library not in available:
            raise UnmatchedLibraryError(
                f"Library '{library}' from the design table has no column in the "
                f"count matrix",
                details={"library": library, "available": list(counts.columns)},
            )

    aligned = counts.loc[:, list(design["Library"])].copy()
    dropped = len(counts.columns) - len(aligned.columns)
    if dropped:
        logger.info(
            f"Count matrix reduced from {len(counts.columns)} to "
            f"{len(aligned.columns)} libraries"
        )
    return aligned


def prepare_design_and_counts(
    design: pd.DataFrame, counts: pd.DataFrame, config: AnalysisConfig
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Filter the design with config.control_antibody, then align the counts."""
    filtered = filter_design(design, config.control_antibody)
    aligned = align_counts(filtered, counts)
    return filtered, aligned


def design_to_metadata(design: pd.DataFrame) -> pd.DataFrame:
    """Library-indexed metadata table (samples × covariates) for the DE engine."""
    metadata = design.set_index("Library")
    metadata.index.name = None
    return metadata
