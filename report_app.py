"""
tRNA Differential Expression Report
A Streamlit page that walks through the analysis stage by stage.

Run with: streamlit run report_app.py
"""

import streamlit as st
import pandas as pd
from typing import Dict, Tuple
import os
import tempfile

from analysis_config import AnalysisConfig, save_config
from analysis_pipeline import AnalysisResult, build_figures, run_analysis
from demo_data import get_demo_description, write_demo_dataset
from export_engine import ExportEngine
from pipeline_errors import PipelineError

# --- Page Config ---
st.set_page_config(
    page_title="tRNA DE Report",
    page_icon="🧬",
    layout="wide",
)

# --- Session State Initialization ---
if "analysis_result" not in st.session_state:
    st.session_state["analysis_result"] = None
if "analysis_config" not in st.session_state:
    st.session_state["analysis_config"] = None

# --- Helper Functions ---


def count_libraries_per_tissue(design: pd.DataFrame) -> Dict[str, int]:
    """Number of libraries per tissue, sorted by tissue."""
    if design.empty:
        return {}
    return {str(k): int(v) for k, v in design["Tissue"].value_counts().sort_index().items()}


def format_codon_table(codon_summary: pd.DataFrame, comparison: Tuple[str, str]) -> pd.DataFrame:
    """Codon summary with reader-facing column names."""
    test, ref = comparison
    return codon_summary.rename(
        columns={
            "codon": "Codon",
            "amino_acid": "Amino acid",
            "n_up": f"Up in {test}",
            "n_down": f"Up in {ref}",
        }
    )


def excel_bytes(result: AnalysisResult, config: AnalysisConfig) -> bytes:
    """Render the Excel workbook in a temp file and return its bytes."""
    with tempfile.NamedTemporaryFile(delete=False, suffix=".xlsx") as tmp:
        tmp_path = tmp.name
    try:
        ExportEngine().export_excel(tmp_path, result, config)
        with open(tmp_path, "rb") as f:
            return f.read()
    finally:
        os.unlink(tmp_path)


# --- Main App Layout ---

st.title("🧬 tRNA Gene Differential Expression: Brain vs Liver")
st.markdown("---")

with st.sidebar:
    st.header("Configuration")
    use_demo = st.checkbox("Use demo dataset", value=False)
    data_dir = st.text_input("Data directory", value="data", disabled=use_demo)
    padj_threshold = st.number_input(
        "Adjusted p-value threshold", min_value=0.0001, max_value=1.0, value=0.05, format="%.4f"
    )
    control_antibody = st.text_input("Control antibody", value="Input")
    contrast_column = st.text_input("Contrast column", value="Tissue")

    if st.button("Run Analysis"):
        config = AnalysisConfig(
            data_dir=data_dir,
            padj_threshold=padj_threshold,
            control_antibody=control_antibody,
            contrast_column=contrast_column,
        )
        try:
            if use_demo:
                config.data_dir = str(write_demo_dataset(tempfile.mkdtemp(prefix="trna_demo_")))
            with st.spinner("Fitting the model..."):
                st.session_state["analysis_result"] = run_analysis(config)
            st.session_state["analysis_config"] = config
            st.success("Analysis complete!")
        except PipelineError as e:
            st.session_state["analysis_result"] = None
            st.error(f"Analysis failed at stage '{e.stage}': {e.message}")
            if e.details:
                st.json(e.details)

    if use_demo:
        with st.expander("About the demo dataset"):
            st.markdown(get_demo_description())

result = st.session_state["analysis_result"]
config = st.session_state["analysis_config"]

if result is None:
    st.info("Configure the inputs in the sidebar and press **Run Analysis**.")
else:
    figures = build_figures(result, config)
    test, ref = result.de_result.comparison

    st.header("1. Libraries")
    st.markdown(
        f"Libraries with antibody **{config.control_antibody}** are input controls "
        f"and are removed before normalization. The remaining design:"
    )
    st.dataframe(result.design)
    st.write(count_libraries_per_tissue(result.design))

    st.header("2. Normalization")
    st.markdown(
        "Size factors correct for sequencing depth (median of ratios against a "
        "per-gene geometric mean). Log plots use the smallest positive "
        f"normalized value (**{result.pseudocount:.3g}**) as pseudocount."
    )
    st.dataframe(result.size_factors.to_frame())
    st.plotly_chart(figures["library_sizes"], use_container_width=True)
    st.plotly_chart(figures["size_factors"], use_container_width=True)
    st.plotly_chart(figures["normalization"], use_container_width=True)

    st.header("3. Library Similarity")
    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(figures["correlation"], use_container_width=True)
    with col2:
        if "pca" in figures:
            st.plotly_chart(figures["pca"], use_container_width=True)

    st.header("4. Differential Expression")
    st.markdown(
        f"PyDESeq2 contrast on **{config.contrast_column}**: {test} vs {ref}. "
        f"Positive log2 fold change means higher in {test}."
    )
    for warning in result.de_result.warnings:
        st.warning(warning)
    for key in ["dispersion", "ma", "volcano"]:
        if key in figures:
            st.plotly_chart(figures[key], use_container_width=True)
    st.dataframe(result.de_result.results_df)

    st.header("5. Codon Summary")
    st.markdown(
        "DE results are inner-joined to the tRNA annotation, so unannotated "
        f"genes are not shown. Genes with padj < {config.padj_threshold} are "
        "counted per codon; each codon shows the first amino-acid label seen."
    )
    st.dataframe(format_codon_table(result.codon_summary, result.de_result.comparison))
    st.plotly_chart(figures["codon_summary"], use_container_width=True)

    st.header("6. Export")
    st.download_button(
        "Download Excel workbook",
        data=excel_bytes(result, config),
        file_name="trna_de_results.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
    st.download_button(
        "Download config (JSON)",
        data=save_config(config),
        file_name="config.json",
        mime="application/json",
    )
