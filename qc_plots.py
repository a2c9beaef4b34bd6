"""Library-level QC visualizations for the tRNA count matrix."""

from typing import Dict, List, Optional
import pandas as pd
import numpy as np
import plotly.graph_objects as go
import plotly.express as px
from plotly.subplots import make_subplots

from normalization import log_transform, min_positive_value
from sample_similarity import PCAResult


def _colors(libraries: List[str], library_tissues: Dict[str, str],
            tissue_colors: Dict[str, str]) -> List[str]:
    return [tissue_colors.get(library_tissues.get(lib, ""), "gray") for lib in libraries]


def create_library_size_barplot(
    counts_df: pd.DataFrame,
    library_tissues: Dict[str, str],
    tissue_colors: Dict[str, str],
) -> go.Figure:
    """
    Bar plot of total counts (library size) per library, sorted descending.

    Args:
        counts_df: genes × libraries DataFrame of raw counts
        library_tissues: library → tissue mapping
        tissue_colors: tissue → colour mapping

    Returns:
        Plotly Figure object
    """
    if counts_df is None or counts_df.empty:
        raise ValueError("Cannot create library size plot: counts_df is empty or None.")

    lib_sizes = counts_df.sum(axis=0).sort_values(ascending=False)
    mean_size = lib_sizes.mean()

    fig = go.Figure()
    fig.add_trace(
        go.Bar(
            x=lib_sizes.index.tolist(),
            y=lib_sizes.values,
            marker_color=_colors(lib_sizes.index.tolist(), library_tissues, tissue_colors),
            name="Library Size",
        )
    )
    fig.add_hline(
        y=mean_size,
        line_dash="dash",
        line_color="red",
        annotation_text=f"Mean: {mean_size:,.0f}",
        annotation_position="top right",
    )
    fig.update_layout(
        title="Library Size per Library",
        xaxis_title="Library",
        yaxis_title="Total Counts",
        showlegend=False,
    )
    return fig


def create_size_factor_plot(
    counts_df: pd.DataFrame,
    size_factors: pd.Series,
    library_tissues: Dict[str, str],
    tissue_colors: Dict[str, str],
) -> go.Figure:
    """
    Scatter of size factor against library size.

    Libraries far from the diagonal trend have compositional differences
    that total-count scaling would miss.
    """
    lib_sizes = counts_df.sum(axis=0)
    df = pd.DataFrame(
        {
            "library": size_factors.index,
            "size_factor": size_factors.values,
            "library_size": lib_sizes.reindex(size_factors.index).values,
        }
    )
    df["tissue"] = [library_tissues.get(lib, "Unknown") for lib in df["library"]]

    fig = px.scatter(
        df,
        x="library_size",
        y="size_factor",
        color="tissue",
        hover_name="library",
        color_discrete_map=tissue_colors,
        labels={"library_size": "Total Counts", "size_factor": "Size Factor"},
    )
    fig.update_layout(title="Size Factors vs Library Size")
    return fig


def create_normalization_comparison_plot(
    raw_counts: pd.DataFrame,
    normalized_counts: pd.DataFrame,
    library_tissues: Dict[str, str],
    tissue_colors: Dict[str, str],
) -> go.Figure:
    """
    Side-by-side box plots of raw and normalized count distributions.

    Both panels are log2(x + pseudocount), each pseudocount taken from its
    own matrix.

    Args:
        raw_counts: genes × libraries DataFrame of raw counts
        normalized_counts: genes × libraries DataFrame of normalized counts
        library_tissues: library → tissue mapping
        tissue_colors: tissue → colour mapping

    Returns:
        Plotly Figure object
    """
    fig = make_subplots(
        rows=1, cols=2,
        subplot_titles=["Raw (log2)", "Normalized (log2)"],
        shared_yaxes=True,
    )

    panels = [
        (log_transform(raw_counts, min_positive_value(raw_counts)), 1, True),
        (log_transform(normalized_counts, min_positive_value(normalized_counts)), 2, False),
    ]
    shown = set()
    for matrix, col, legend in panels:
        for library in matrix.columns:
            tissue = library_tissues.get(library, "Unknown")
            show = legend and tissue not in shown
            if show:
                shown.add(tissue)
            fig.add_trace(
                go.Box(
                    y=matrix[library].values,
                    name=library,
                    marker_color=tissue_colors.get(tissue, "gray"),
                    legendgroup=tissue,
                    legendgrouptitle_text=tissue,
                    showlegend=show,
                    hovertemplate="Library: " + library + "<br>Value: %{y:.2f}<extra></extra>",
                ),
                row=1, col=col,
            )

    fig.update_layout(
        title="Normalization Comparison",
        height=500,
        showlegend=True,
    )
    return fig


def create_correlation_heatmap(
    corr_matrix: pd.DataFrame,
    order: Optional[List[str]] = None,
    method: str = "pearson",
) -> go.Figure:
    """
    Library correlation heatmap, optionally reordered by clustering.

    Args:
        corr_matrix: Square library × library correlation matrix
        order: Library order (e.g. SampleSimilarity.cluster_order)
        method: Correlation method, for the title

    Returns:
        Plotly Figure object
    """
    if corr_matrix is None or corr_matrix.empty:
        raise ValueError("Cannot create correlation heatmap: corr_matrix is empty or None.")

    if order:
        corr_matrix = corr_matrix.loc[order, order]

    text_vals = [[f"{v:.3f}" for v in row] for row in corr_matrix.values]

    fig = go.Figure(
        data=go.Heatmap(
            z=corr_matrix.values,
            x=corr_matrix.columns.tolist(),
            y=corr_matrix.index.tolist(),
            colorscale="RdBu_r",
            zmid=0,
            text=text_vals,
            texttemplate="%{text}",
            hovertemplate="Library X: %{x}<br>Library Y: %{y}<br>Correlation: %{z:.3f}<extra></extra>",
        )
    )
    fig.update_layout(
        title=f"Library Similarity ({method.capitalize()} Correlation)",
        width=600,
        height=600,
    )
    return fig


def create_pca_plot(
    pca_result: PCAResult,
    library_tissues: Dict[str, str],
    tissue_colors: Dict[str, str],
) -> go.Figure:
    """
    PCA scatter of libraries coloured by tissue.

    Args:
        pca_result: Output of SampleSimilarity.pca_coordinates
        library_tissues: library → tissue mapping
        tissue_colors: tissue → colour mapping

    Returns:
        Plotly Figure object
    """
    coords = pca_result.coordinates
    if coords.shape[1] < 2:
        raise ValueError("Cannot create PCA plot: need at least 2 principal components.")

    df = coords[["PC1", "PC2"]].copy()
    df["tissue"] = [library_tissues.get(lib, "Unknown") for lib in df.index]
    df["library"] = df.index
    ratios = pca_result.explained_variance_ratio

    fig = px.scatter(
        df,
        x="PC1",
        y="PC2",
        color="tissue",
        hover_name="library",
        text="library",
        color_discrete_map=tissue_colors,
        labels={
            "PC1": f"PC1 ({ratios[0] * 100:.1f}%)",
            "PC2": f"PC2 ({ratios[1] * 100:.1f}%)",
        },
    )
    fig.update_traces(textposition="top center")
    fig.update_layout(title="PCA of Normalized Libraries", showlegend=True)
    return fig


def create_dispersion_plot(dispersions_df: pd.DataFrame) -> go.Figure:
    """
    Dispersion diagnostics: gene-wise, fitted and final estimates vs mean.

    Args:
        dispersions_df: DEResult.dispersions_df (gene, baseMean, genewise, fitted, final)

    Returns:
        Plotly Figure object
    """
    if dispersions_df is None or dispersions_df.empty:
        raise ValueError("Cannot create dispersion plot: no dispersion estimates available.")

    df = dispersions_df[dispersions_df["baseMean"] > 0].sort_values("baseMean")
    styles = {
        "genewise": dict(mode="markers", marker=dict(size=4, color="black", opacity=0.5)),
        "final": dict(mode="markers", marker=dict(size=4, color="dodgerblue", opacity=0.6)),
        "fitted": dict(mode="lines", line=dict(color="red", width=2)),
    }

    fig = go.Figure()
    for name, style in styles.items():
        if name not in df.columns:
            continue
        valid = df[df[name].notna() & (df[name] > 0)]
        fig.add_trace(
            go.Scatter(
                x=valid["baseMean"],
                y=valid[name],
                name=name,
                text=valid["gene"],
                hovertemplate="%{text}<br>mean: %{x:.1f}<br>dispersion: %{y:.3g}<extra></extra>",
                **style,
            )
        )

    fig.update_xaxes(type="log", title="Mean of Normalized Counts")
    fig.update_yaxes(type="log", title="Dispersion")
    fig.update_layout(title="Dispersion Estimates")
    return fig
