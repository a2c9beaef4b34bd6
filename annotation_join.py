"""
Join DE results to the tRNA annotation and summarize significant genes per codon.

Two behaviours affect interpretation of the summary:
- the join is an inner join, so genes missing from either table are dropped
- each codon reports the first amino-acid label seen in its group
Both are logged.
"""

from dataclasses import dataclass
import logging
import pandas as pd

from analysis_config import AnalysisConfig
from de_analysis import ensure_gene_column
from pipeline_errors import JoinMismatchError

logger = logging.getLogger(__name__)

# Annotation fields that carry stray whitespace in tRNA scans; the first two build the gene id
WHITESPACE_FIELDS = ["chromosome", "locus", "amino_acid", "codon"]

SUMMARY_COLUMNS = ["codon", "amino_acid", "n_up", "n_down"]


@dataclass
class AnnotationSummary:
    """Outputs of the annotation stage."""

    joined: pd.DataFrame  # DE results + annotation, inner join on gene
    significant: pd.DataFrame  # joined rows with padj < threshold
    codon_summary: pd.DataFrame  # codon, amino_acid, n_up, n_down


def clean_annotation(annotation: pd.DataFrame, separator: str = ".") -> pd.DataFrame:
    """
    Strip embedded whitespace and build the gene identifier.

    gene = cleaned chromosome + separator + cleaned locus, the scheme used by the
    count matrix row names.

    Returns:
        New DataFrame with a leading "gene" column; repeated ids keep the first row
    """
    cleaned = annotation.copy()
    for col in WHITESPACE_FIELDS:
        cleaned[col] = cleaned[col].astype(str).str.replace(r"\s+", "", regex=True)

    cleaned.insert(0, "gene", cleaned["chromosome"].astype(str) + separator + cleaned["locus"])

    duplicated = cleaned["gene"].duplicated(keep="first")
    if duplicated.any():
        dup_ids = cleaned.loc[duplicated, "gene"].unique().tolist()
        logger.warning(
            f"{int(duplicated.sum())} annotation rows repeat a gene id; keeping the "
            f"first of each ({', '.join(dup_ids[:5])}{'...' if len(dup_ids) > 5 else ''})"
        )
        cleaned = cleaned.loc[~duplicated].reset_index(drop=True)

    return cleaned


def join_annotation(results_df: pd.DataFrame, annotation: pd.DataFrame) -> pd.DataFrame:
    """
    Inner-join DE results to the cleaned annotation on gene.

    Genes present in only one table are dropped without error.
    """
    results_df = ensure_gene_column(results_df)
    joined = results_df.merge(annotation, on="gene", how="inner")

    n_unannotated = len(results_df) - results_df["gene"].isin(annotation["gene"]).sum()
    n_untested = len(annotation) - annotation["gene"].isin(results_df["gene"]).sum()
    logger.debug(
        f"Annotation join: {len(joined)} rows kept, {n_unannotated} DE genes without "
        f"annotation, {n_untested} annotated genes without DE results"
    )
    return joined


def filter_significant(joined: pd.DataFrame, threshold: float = 0.05) -> pd.DataFrame:
    """Rows with a defined adjusted p-value strictly below threshold."""
    padj = joined["padj"]
    mask = padj.notna() & (padj < threshold)
    return joined.loc[mask].reset_index(drop=True)


def summarize_codons(significant: pd.DataFrame) -> pd.DataFrame:
    """
    Count up- and down-regulated genes per codon.

    n_up counts log2FoldChange > 0 (up in the test level), n_down counts
    log2FoldChange < 0 (up in the reference level). Exactly zero or undefined
    fold changes count in neither bucket.

    Returns:
        DataFrame with SUMMARY_COLUMNS sorted by codon; empty input gives an
        empty frame with the same columns
    """
    if significant.empty:
        return pd.DataFrame(
            {
                "codon": pd.Series(dtype=object),
                "amino_acid": pd.Series(dtype=object),
                "n_up": pd.Series(dtype="int64"),
                "n_down": pd.Series(dtype="int64"),
            }
        )

    lfc = significant["log2FoldChange"]
    flagged = significant.assign(_up=lfc > 0, _down=lfc < 0)
    grouped = flagged.groupby("codon", sort=True)

    n_labels = grouped["amino_acid"].nunique()
    conflicting = n_labels[n_labels > 1].index.tolist()
    if conflicting:
        logger.warning(
            f"Codons with more than one amino-acid label (first label kept): "
            f"{', '.join(conflicting)}"
        )

    summary = grouped.agg(
        amino_acid=("amino_acid", "first"),
        n_up=("_up", "sum"),
        n_down=("_down", "sum"),
    ).reset_index()
    summary["n_up"] = summary["n_up"].astype("int64")
    summary["n_down"] = summary["n_down"].astype("int64")
    return summary[SUMMARY_COLUMNS]


def annotate_and_summarize(
    results_df: pd.DataFrame, annotation: pd.DataFrame, config: AnalysisConfig
) -> AnnotationSummary:
    """
    Clean, join, filter and summarize in one call.

    Raises:
        JoinMismatchError: If nothing survives the join and config.strict_join is set
    """
    cleaned = clean_annotation(annotation, config.annotation_id_separator)
    joined = join_annotation(results_df, cleaned)

    if joined.empty:
        message = (
            "No DE result matched the annotation. Check that annotation ids "
            "(chromosome + locus) follow the count matrix naming."
        )
        if config.strict_join:
            raise JoinMismatchError(
                message,
                details={
                    "example_result_ids": ensure_gene_column(results_df)["gene"].head(3).tolist(),
                    "example_annotation_ids": cleaned["gene"].head(3).tolist(),
                },
            )
        logger.warning(message)

    significant = filter_significant(joined, config.padj_threshold)
    codon_summary = summarize_codons(significant)
    logger.info(
        f"Annotation: {len(joined)} joined genes, {len(significant)} with padj < "
        f"{config.padj_threshold}, {len(codon_summary)} codons"
    )
    return AnnotationSummary(
        joined=joined, significant=significant, codon_summary=codon_summary
    )
