"""
Interactive visualizations of differential expression results using Plotly.

Provides MA plots, volcano plots and the per-codon up/down bar chart.
"""

from typing import Dict, Optional, Tuple
import pandas as pd
import numpy as np
import plotly.graph_objects as go
import plotly.express as px
from de_analysis import ensure_gene_column


def _classify(df: pd.DataFrame, padj_threshold: float) -> pd.Series:
    sig = df["padj"].notna() & (df["padj"] < padj_threshold)
    labels = np.where(
        sig & (df["log2FoldChange"] > 0), "Up",
        np.where(sig & (df["log2FoldChange"] < 0), "Down", "NS"),
    )
    return pd.Series(labels, index=df.index)


def create_ma_plot(
    results_df: pd.DataFrame,
    padj_threshold: float = 0.05,
    comparison: Optional[Tuple[str, str]] = None,
) -> go.Figure:
    """
    Create MA plot (log mean expression vs log2 fold change).

    Args:
        results_df: DataFrame with columns: gene, log2FoldChange, padj, baseMean
        padj_threshold: Adjusted p-value threshold (default: 0.05)
        comparison: (test, reference) for the title

    Returns:
        Plotly Figure object
    """
    if results_df is None or results_df.empty:
        raise ValueError("Cannot create MA plot: results_df is empty or None.")

    results_df = ensure_gene_column(results_df)

    required_cols = ["gene", "log2FoldChange", "padj", "baseMean"]
    missing = [c for c in required_cols if c not in results_df.columns]
    if missing:
        raise ValueError(f"Cannot create MA plot: missing columns {missing}.")

    # Undefined fold changes are normal for genes the engine could not test
    df = results_df.dropna(subset=["log2FoldChange", "baseMean"]).copy()
    if df.empty:
        raise ValueError("Cannot create MA plot: no valid data after removing NaN values.")

    df["log10_baseMean"] = np.log10(df["baseMean"] + 1)
    df["significance"] = _classify(df, padj_threshold)

    fig = px.scatter(
        df,
        x="log10_baseMean",
        y="log2FoldChange",
        color="significance",
        hover_name="gene",
        hover_data={
            "log2FoldChange": ":.2f",
            "padj": ":.2e",
            "log10_baseMean": False,
            "significance": False,
        },
        color_discrete_map={"Up": "red", "Down": "blue", "NS": "lightgray"},
        labels={
            "log10_baseMean": "log₁₀(baseMean + 1)",
            "log2FoldChange": "log₂(Fold Change)",
        },
    )
    fig.add_hline(y=0, line_color="black", line_width=0.5)

    title = "MA Plot"
    if comparison:
        title += f": {comparison[0]} vs {comparison[1]}"
    fig.update_layout(title=title, showlegend=True)
    return fig


def create_volcano_plot(
    results_df: pd.DataFrame,
    padj_threshold: float = 0.05,
    top_n_labels: int = 10,
) -> go.Figure:
    """
    Create interactive volcano plot from DE results.

    Args:
        results_df: DataFrame with columns: gene, log2FoldChange, padj
        padj_threshold: Adjusted p-value threshold (default: 0.05)
        top_n_labels: Number of most significant genes to label

    Returns:
        Plotly Figure object
    """
    if results_df is None or results_df.empty:
        raise ValueError(
            "Cannot create volcano plot: results_df is empty or None. "
            "Ensure the differential expression analysis produced results."
        )

    results_df = ensure_gene_column(results_df)
    df = results_df.dropna(subset=["padj", "log2FoldChange"]).copy()
    if df.empty:
        raise ValueError(
            "Cannot create volcano plot: all padj values are NaN. "
            "Ensure differential expression analysis completed successfully."
        )

    df["-log10_padj"] = -np.log10(df["padj"].clip(lower=1e-300))  # Clip to avoid inf
    df["significance"] = _classify(df, padj_threshold)

    fig = px.scatter(
        df,
        x="log2FoldChange",
        y="-log10_padj",
        color="significance",
        hover_name="gene",
        hover_data={
            "log2FoldChange": ":.2f",
            "padj": ":.2e",
            "-log10_padj": False,
            "significance": False,
        },
        color_discrete_map={"Up": "red", "Down": "blue", "NS": "lightgray"},
        labels={"log2FoldChange": "log₂(Fold Change)", "-log10_padj": "-log₁₀(padj)"},
    )
    fig.add_hline(y=-np.log10(padj_threshold), line_dash="dash", line_color="gray")

    if top_n_labels > 0:
        top_genes = df[df["padj"] < padj_threshold].nsmallest(top_n_labels, "padj")
        if not top_genes.empty:
            fig.add_trace(
                go.Scatter(
                    x=top_genes["log2FoldChange"],
                    y=top_genes["-log10_padj"],
                    mode="text",
                    text=top_genes["gene"],
                    textposition="top center",
                    textfont=dict(size=9),
                    showlegend=False,
                    hoverinfo="skip",
                )
            )

    fig.update_layout(title="Volcano Plot", showlegend=True)
    return fig


def create_codon_summary_plot(
    codon_summary: pd.DataFrame,
    comparison: Tuple[str, str],
    tissue_colors: Dict[str, str],
) -> go.Figure:
    """
    Diverging bar chart of significant tRNA genes per codon.

    Genes up in the test tissue are drawn upward, genes up in the reference
    tissue downward. An empty summary (no significant genes) yields an empty
    chart with a note, not an error.

    Args:
        codon_summary: codon, amino_acid, n_up, n_down
        comparison: (test, reference) tissues
        tissue_colors: tissue → colour mapping

    Returns:
        Plotly Figure object
    """
    test, ref = comparison
    fig = go.Figure()

    if codon_summary is None or codon_summary.empty:
        fig.add_annotation(
            text="No significant tRNA genes",
            xref="paper", yref="paper", x=0.5, y=0.5,
            showarrow=False,
        )
    else:
        labels = [f"{c} ({aa})" for c, aa in zip(codon_summary["codon"], codon_summary["amino_acid"])]
        fig.add_trace(
            go.Bar(
                x=labels,
                y=codon_summary["n_up"],
                name=f"Up in {test}",
                marker_color=tissue_colors.get(test, "red"),
            )
        )
        fig.add_trace(
            go.Bar(
                x=labels,
                y=-codon_summary["n_down"],
                name=f"Up in {ref}",
                marker_color=tissue_colors.get(ref, "blue"),
                customdata=codon_summary["n_down"],
                hovertemplate="%{x}: %{customdata}<extra></extra>",
            )
        )

    fig.update_layout(
        title=f"Significant tRNA Genes per Codon ({test} vs {ref})",
        barmode="relative",
        xaxis_title="Codon (amino acid)",
        yaxis_title="Number of Genes",
    )
    return fig
