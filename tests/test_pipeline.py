"""End-to-end pipeline tests with a stub DE engine."""
import pytest
import pandas as pd
import numpy as np
import plotly.graph_objects as go

from analysis_config import AnalysisConfig
from analysis_pipeline import build_figures, run_analysis, run_analysis_on_tables
from data_loader import InputTables
from pipeline_errors import (
    ConfigError,
    JoinMismatchError,
    MissingFileError,
    NormalizationError,
    UnmatchedLibraryError,
)


def test_engine_receives_filtered_raw_counts(small_result, small_counts_df):
    result, config, engine = small_result
    assert len(engine.calls) == 1
    call = engine.calls[0]
    assert call["contrast"] == "Tissue"
    assert list(call["counts"].columns) == ["lib_brain", "lib_liver"]
    assert call["design"]["Library"].tolist() == ["lib_brain", "lib_liver"]
    pd.testing.assert_frame_equal(
        call["counts"], small_counts_df[["lib_brain", "lib_liver"]], check_dtype=False
    )


def test_intermediate_tables(small_result):
    result, config, _ = small_result
    assert result.raw_counts.shape == (4, 2)
    assert list(result.size_factors.index) == ["lib_brain", "lib_liver"]
    assert (result.normalized_counts.loc["chr2.trna1"] == 0).all()
    assert result.pseudocount == pytest.approx(
        result.normalized_counts.to_numpy()[result.normalized_counts.to_numpy() > 0].min()
    )
    assert np.isfinite(result.log_normalized_counts.to_numpy()).all()
    assert result.library_tissues == {"lib_brain": "brain", "lib_liver": "liver"}
    assert result.correlation.shape == (2, 2)
    assert result.cluster_order == ["lib_brain", "lib_liver"]


def test_codon_summary(small_result):
    result, _, _ = small_result
    assert result.de_result.comparison == ("liver", "brain")
    summary = result.codon_summary.set_index("codon")
    assert list(summary.index) == ["AGC"]
    assert summary.loc["AGC", "n_up"] == 1
    assert summary.loc["AGC", "n_down"] == 1
    # Unannotated chr3.trna4 is significant but never reported
    assert "chr3.trna4" not in set(result.annotation.significant["gene"])


def test_threshold_changes_summary(input_dir, de_results_df, stub_engine_factory):
    config = AnalysisConfig(data_dir=str(input_dir), padj_threshold=0.2)
    result = run_analysis(config, engine=stub_engine_factory(de_results_df))
    assert len(result.annotation.significant) == 3
    assert "CAG" in set(result.codon_summary["codon"])


def test_invalid_config_stops_before_loading(tmp_path, de_results_df, stub_engine_factory):
    config = AnalysisConfig(data_dir=str(tmp_path / "missing"), padj_threshold=5)
    with pytest.raises(ConfigError):
        run_analysis(config, engine=stub_engine_factory(de_results_df))


def test_missing_inputs(tmp_path, de_results_df, stub_engine_factory):
    engine = stub_engine_factory(de_results_df)
    with pytest.raises(MissingFileError):
        run_analysis(AnalysisConfig(data_dir=str(tmp_path)), engine=engine)
    assert engine.calls == []


def test_unmatched_library_stops_before_fit(
    small_design_df, small_counts_df, annotation_df, de_results_df, stub_engine_factory
):
    tables = InputTables(
        design=small_design_df,
        counts=small_counts_df.drop(columns=["lib_brain"]),
        annotation=annotation_df,
    )
    engine = stub_engine_factory(de_results_df)
    with pytest.raises(UnmatchedLibraryError):
        run_analysis_on_tables(tables, AnalysisConfig(), engine)
    assert engine.calls == []


def test_strict_join(small_design_df, small_counts_df, annotation_df, de_results_df, stub_engine_factory):
    tables = InputTables(design=small_design_df, counts=small_counts_df, annotation=annotation_df)
    config = AnalysisConfig(annotation_id_separator="_", strict_join=True)
    with pytest.raises(JoinMismatchError):
        run_analysis_on_tables(tables, config, stub_engine_factory(de_results_df))


def test_build_figures(small_result):
    result, config, _ = small_result
    figures = build_figures(result, config)
    for key in ["library_sizes", "size_factors", "normalization", "correlation",
                "codon_summary", "pca", "dispersion", "ma", "volcano"]:
        assert isinstance(figures[key], go.Figure)


def test_build_figures_skips_missing_dispersions(small_result):
    result, config, _ = small_result
    result.de_result.dispersions_df = pd.DataFrame()
    figures = build_figures(result, config)
    assert "dispersion" not in figures
    assert "codon_summary" in figures


def test_all_control_design_stops_at_normalization(
    small_design_df, small_counts_df, annotation_df, de_results_df, stub_engine_factory
):
    design = small_design_df.assign(Antibody="Input")
    tables = InputTables(design=design, counts=small_counts_df, annotation=annotation_df)
    engine = stub_engine_factory(de_results_df)
    with pytest.raises(NormalizationError) as exc:
        run_analysis_on_tables(tables, AnalysisConfig(), engine)
    assert exc.value.stage == "normalize"
    assert engine.calls == []
