"""
End-to-end tRNA differential-expression analysis.

Stages run strictly in order, each consuming the previous stage's output:
load -> filter/align -> normalize -> DE fit -> annotate/summarize -> similarity.
"""

from dataclasses import dataclass
from typing import Dict, Optional
import logging
import pandas as pd
import plotly.graph_objects as go

from analysis_config import AnalysisConfig
from annotation_join import AnnotationSummary, annotate_and_summarize
from data_loader import InputTables, load_inputs
from de_analysis import DEEngine, DEResult, PyDESeq2Engine
from design_filter import prepare_design_and_counts
from normalization import estimate_size_factors, log_transform, min_positive_value, normalize_counts
from sample_similarity import PCAResult, SampleSimilarity
from qc_plots import (
    create_correlation_heatmap,
    create_dispersion_plot,
    create_library_size_barplot,
    create_normalization_comparison_plot,
    create_pca_plot,
    create_size_factor_plot,
)
from visualizations import create_codon_summary_plot, create_ma_plot, create_volcano_plot

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Every intermediate table of one pipeline run."""

    design: pd.DataFrame  # filtered design
    raw_counts: pd.DataFrame  # aligned, genes × libraries
    size_factors: pd.Series
    normalized_counts: pd.DataFrame
    log_normalized_counts: pd.DataFrame  # log2(normalized + pseudocount)
    pseudocount: float  # min positive value of normalized_counts
    de_result: DEResult
    annotation: AnnotationSummary
    correlation: pd.DataFrame
    cluster_order: list
    pca: Optional[PCAResult]

    @property
    def library_tissues(self) -> Dict[str, str]:
        return dict(zip(self.design["Library"], self.design["Tissue"]))

    @property
    def codon_summary(self) -> pd.DataFrame:
        return self.annotation.codon_summary


def run_analysis(
    config: AnalysisConfig, engine: Optional[DEEngine] = None
) -> AnalysisResult:
    """
    Load inputs from config.data_dir and run every stage.

    Args:
        config: Analysis configuration
        engine: DE engine (default: PyDESeq2Engine from the config)

    Raises:
        PipelineError subclasses from the failing stage
    """
    config.validate()
    tables = load_inputs(config)
    return run_analysis_on_tables(tables, config, engine)


def run_analysis_on_tables(
    tables: InputTables,
    config: AnalysisConfig,
    engine: Optional[DEEngine] = None,
) -> AnalysisResult:
    """Run the pipeline on already loaded tables."""
    if engine is None:
        engine = PyDESeq2Engine(
            contrast_levels=config.contrast_levels,
            padj_threshold=config.padj_threshold,
        )

    design, raw_counts = prepare_design_and_counts(tables.design, tables.counts, config)
    logger.info(f"Design: {len(design)} libraries after removing controls")

    size_factors = estimate_size_factors(raw_counts)
    normalized = normalize_counts(raw_counts, size_factors)
    pseudocount = min_positive_value(normalized)
    log_normalized = log_transform(normalized, pseudocount)
    logger.info(
        "Size factors: "
        + ", ".join(f"{lib}={sf:.3f}" for lib, sf in size_factors.items())
    )

    # The engine models raw counts; it estimates its own size factors
    de_result = engine.fit(raw_counts, design, config.contrast_column)

    annotation = annotate_and_summarize(de_result.results_df, tables.annotation, config)

    similarity = SampleSimilarity()
    correlation = similarity.correlation_matrix(log_normalized)
    order = similarity.cluster_order(log_normalized)
    pca = None
    if log_normalized.shape[1] >= 2:
        pca = similarity.pca_coordinates(log_normalized)

    return AnalysisResult(
        design=design,
        raw_counts=raw_counts,
        size_factors=size_factors,
        normalized_counts=normalized,
        log_normalized_counts=log_normalized,
        pseudocount=pseudocount,
        de_result=de_result,
        annotation=annotation,
        correlation=correlation,
        cluster_order=order,
        pca=pca,
    )


def build_figures(result: AnalysisResult, config: AnalysisConfig) -> Dict[str, go.Figure]:
    """
    Build every report figure, keyed by name.

    Figures that need data the run did not produce (no dispersions, fewer
    than two PCs, all-NaN results) are left out.
    """
    tissues = result.library_tissues
    colors = config.tissue_colors
    figures = {
        "library_sizes": create_library_size_barplot(result.raw_counts, tissues, colors),
        "size_factors": create_size_factor_plot(result.raw_counts, result.size_factors, tissues, colors),
        "normalization": create_normalization_comparison_plot(
            result.raw_counts, result.normalized_counts, tissues, colors
        ),
        "correlation": create_correlation_heatmap(result.correlation, result.cluster_order),
        "codon_summary": create_codon_summary_plot(
            result.codon_summary, result.de_result.comparison, colors
        ),
    }

    optional = {
        "pca": lambda: create_pca_plot(result.pca, tissues, colors),
        "dispersion": lambda: create_dispersion_plot(result.de_result.dispersions_df),
        "ma": lambda: create_ma_plot(
            result.de_result.results_df, config.padj_threshold, result.de_result.comparison
        ),
        "volcano": lambda: create_volcano_plot(result.de_result.results_df, config.padj_threshold),
    }
    for name, build in optional.items():
        try:
            figures[name] = build()
        except (ValueError, AttributeError) as e:
            logger.warning(f"Skipping {name} figure: {e}")

    return figures
