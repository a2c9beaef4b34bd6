"""
Differential expression analysis using PyDESeq2.

The pipeline only depends on the DEEngine protocol (one operation, fit), so
tests can inject a stub engine with fixed results. PyDESeq2Engine is the
production implementation.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple
import logging
import numpy as np
import pandas as pd
from pydeseq2.dds import DeseqDataSet
from pydeseq2.ds import DeseqStats

from design_filter import design_to_metadata
from pipeline_errors import DEEngineError

logger = logging.getLogger(__name__)

RESULT_COLUMNS = ["gene", "baseMean", "log2FoldChange", "lfcSE", "stat", "pvalue", "padj"]


def ensure_gene_column(df: pd.DataFrame) -> pd.DataFrame:
    """
    Ensure DataFrame has a 'gene' column, handling various index/column naming conventions.

    Handles cases where:
    - Gene info is in a named index (e.g., index.name = "gene" or "Gene")
    - Gene column has different naming (e.g., "Gene", "gene_id", "trna_id")

    Returns:
        DataFrame with a lowercase "gene" column containing gene identifiers
    """
    if "gene" in df.columns:
        return df

    gene_aliases = ["Gene", "GENE", "gene_id", "GeneID", "trna_id", "tRNA"]
    for alias in gene_aliases:
        if alias in df.columns:
            df = df.copy()
            df.columns = ["gene" if col == alias else col for col in df.columns]
            return df

    # Gene ids in the index: named, or unnamed strings
    index_name = df.index.name
    if (index_name and index_name.lower() in ["gene", "gene_id", "geneid", "trna_id"]) or (
        index_name is None and len(df) > 0 and isinstance(df.index[0], str)
    ):
        df = df.reset_index()
        df.columns = ["gene"] + list(df.columns[1:])
        return df

    return df


@dataclass
class DEResult:
    """Result from differential expression analysis."""

    results_df: pd.DataFrame  # gene, baseMean, log2FoldChange, lfcSE, stat, pvalue, padj
    comparison: Tuple[str, str]  # (test_level, reference_level)
    dispersions_df: pd.DataFrame = field(default_factory=pd.DataFrame)  # per gene, diagnostics only
    size_factors: Optional[pd.Series] = None  # engine's own factors, per library
    n_significant: int = 0  # Count of genes with padj < 0.05
    warnings: List[str] = field(default_factory=list)


class DEEngine(Protocol):
    """Anything that can fit a two-level contrast on a count matrix."""

    def fit(
        self, counts: pd.DataFrame, design: pd.DataFrame, contrast: str
    ) -> DEResult:
        ...


def resolve_contrast_levels(
    design: pd.DataFrame,
    contrast: str,
    levels: Optional[Tuple[str, str]] = None,
) -> Tuple[str, str]:
    """
    Work out (test, reference) for a categorical design column.

    Without explicit levels the column must hold exactly two values; the
    alphabetically first one is the reference, as in DESeq2.
    """
    if contrast not in design.columns:
        raise DEEngineError(
            f"Contrast column '{contrast}' not in design table. "
            f"Available: {', '.join(design.columns)}",
            details={"contrast": contrast},
        )

    observed = sorted(design[contrast].dropna().unique().tolist())
    if levels is not None:
        test, ref = levels
        missing = [lvl for lvl in (test, ref) if lvl not in observed]
        if missing:
            raise DEEngineError(
                f"Contrast levels {missing} not found in column '{contrast}' "
                f"(observed: {observed})",
                details={"contrast": contrast, "missing": missing},
            )
        return test, ref

    if len(observed) != 2:
        raise DEEngineError(
            f"Column '{contrast}' has {len(observed)} levels {observed}; "
            f"set contrast_levels to choose a (test, reference) pair.",
            details={"contrast": contrast, "levels": observed},
        )
    ref, test = observed
    return test, ref


class PyDESeq2Engine:
    """Differential expression analysis using PyDESeq2."""

    def __init__(
        self,
        contrast_levels: Optional[Tuple[str, str]] = None,
        refit_cooks: bool = True,
        padj_threshold: float = 0.05,
    ):
        self.contrast_levels = contrast_levels
        self.refit_cooks = refit_cooks
        self.padj_threshold = padj_threshold

    def fit(
        self, counts: pd.DataFrame, design: pd.DataFrame, contrast: str
    ) -> DEResult:
        """
        Fit the negative-binomial model and compute one contrast.

        Args:
            counts: genes × libraries DataFrame of raw integer counts, columns
                aligned with design.Library
            design: Filtered design table (Library + covariates)
            contrast: Categorical design column to contrast (e.g. "Tissue")

        Returns:
            DEResult; genes PyDESeq2 cannot test keep NaN statistics

        Raises:
            DEEngineError: If the model fit or the contrast fails
        """
        test, ref = resolve_contrast_levels(design, contrast, self.contrast_levels)
        metadata = design_to_metadata(design)[[contrast]]

        # PyDESeq2 expects samples × genes
        samples_by_genes = counts.T.astype(int)
        samples_by_genes.index.name = None
        samples_by_genes.columns.name = None

        try:
            dds = DeseqDataSet(
                counts=samples_by_genes,
                metadata=metadata,
                design=f"~{contrast}",
                refit_cooks=self.refit_cooks,
                quiet=True,
            )
            dds.deseq2()

            stat_res = DeseqStats(dds, contrast=[contrast, test, ref], quiet=True)
            stat_res.summary()
        except (ValueError, RuntimeError, TypeError, KeyError) as e:
            logger.error(f"DE model fit failed: {str(e)}", exc_info=True)
            raise DEEngineError(
                f"PyDESeq2 fit failed for {test} vs {ref}: {e}",
                details={"contrast": contrast, "comparison": [test, ref]},
            ) from e

        results_df = stat_res.results_df.copy()
        results_df.index.name = None
        results_df = results_df.reset_index()
        results_df.columns = ["gene"] + list(results_df.columns[1:])
        results_df = ensure_gene_column(results_df)

        warnings = []
        n_untested = int(results_df["padj"].isna().sum())
        if n_untested:
            warnings.append(f"{n_untested} genes have undefined adjusted p-values")
            logger.warning(
                f"{n_untested} genes have undefined adjusted p-values (low counts or outliers)"
            )

        n_sig = int((results_df["padj"] < self.padj_threshold).sum())
        logger.info(
            f"DE {test} vs {ref}: {len(results_df)} genes tested, {n_sig} with "
            f"padj < {self.padj_threshold}"
        )

        return DEResult(
            results_df=results_df,
            comparison=(test, ref),
            dispersions_df=_extract_dispersions(dds, results_df),
            size_factors=_extract_size_factors(dds),
            n_significant=n_sig,
            warnings=warnings,
        )


def _extract_dispersions(dds: DeseqDataSet, results_df: pd.DataFrame) -> pd.DataFrame:
    """Per-gene dispersion estimates for diagnostic plots."""
    columns = {
        "genewise": "genewise_dispersions",
        "fitted": "fitted_dispersions",
        "final": "dispersions",
    }
    data = {"gene": list(dds.var_names)}
    for name, key in columns.items():
        if key in dds.varm:
            data[name] = np.asarray(dds.varm[key], dtype=float)
    dispersions = pd.DataFrame(data)
    base_means = results_df.set_index("gene")["baseMean"]
    dispersions.insert(1, "baseMean", dispersions["gene"].map(base_means).values)
    return dispersions


def _extract_size_factors(dds: DeseqDataSet) -> Optional[pd.Series]:
    # Location moved between PyDESeq2 releases
    if "size_factors" in dds.obsm:
        values = dds.obsm["size_factors"]
    elif "size_factors" in dds.obs:
        values = dds.obs["size_factors"]
    else:
        return None
    return pd.Series(np.asarray(values, dtype=float), index=list(dds.obs_names), name="size_factor")


def count_significant(results_df: pd.DataFrame, padj_threshold: float = 0.05) -> int:
    """Genes with a defined padj strictly below the threshold."""
    padj = results_df["padj"]
    return int((padj.notna() & (padj < padj_threshold)).sum())
