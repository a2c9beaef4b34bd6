"""
Pytest configuration and fixtures for the tRNA DE report tests.
"""

from pathlib import Path
import pytest
import pandas as pd
import numpy as np

from de_analysis import DEResult


# ============================================================================
# Stub DE Engine
# ============================================================================


class StubEngine:
    """DE engine returning a fixed result table, recording what it was given."""

    def __init__(self, results_df: pd.DataFrame, comparison=("liver", "brain")):
        self.results_df = results_df
        self.comparison = comparison
        self.calls = []

    def fit(self, counts, design, contrast):
        self.calls.append({"counts": counts, "design": design, "contrast": contrast})
        return DEResult(
            results_df=self.results_df.copy(),
            comparison=self.comparison,
            dispersions_df=pd.DataFrame(
                {
                    "gene": self.results_df["gene"],
                    "baseMean": self.results_df["baseMean"],
                    "genewise": 0.1,
                    "fitted": 0.08,
                    "final": 0.09,
                }
            ),
            n_significant=int((self.results_df["padj"] < 0.05).sum()),
        )


@pytest.fixture
def stub_engine_factory():
    """Build a StubEngine around a given results table."""
    return StubEngine


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def small_design_df():
    """Four libraries: two Input controls, one brain and one liver."""
    return pd.DataFrame(
        {
            "Library": ["lib_in_b", "lib_brain", "lib_in_l", "lib_liver"],
            "Antibody": ["Input", "PolIII", "Input", "PolIII"],
            "Tissue": ["brain", "brain", "liver", "liver"],
            "Stage": ["P22", "P22", "P22", "P22"],
        }
    )


@pytest.fixture
def small_counts_df():
    """Four-column count matrix whose column order differs from the design."""
    return pd.DataFrame(
        {
            "lib_liver": [30, 5, 0, 12],
            "lib_in_l": [2, 1, 0, 1],
            "lib_brain": [10, 15, 0, 8],
            "lib_in_b": [1, 2, 0, 1],
        },
        index=pd.Index(["chr1.trna1", "chr1.trna2", "chr2.trna1", "chr2.trna2"], name="gene"),
    )


@pytest.fixture
def replicate_counts_df():
    """
    Count matrix for three brain and three liver libraries.
    Shape: (40 genes, 6 libraries)
    """
    np.random.seed(42)
    libraries = [f"brain_{i}" for i in range(1, 4)] + [f"liver_{i}" for i in range(1, 4)]
    genes = [f"chr{1 + i // 10}.trna{1 + i % 10}" for i in range(40)]
    data = np.random.negative_binomial(n=10, p=0.1, size=(40, 6))
    return pd.DataFrame(data, index=pd.Index(genes, name="gene"), columns=libraries)


@pytest.fixture
def replicate_design_df(replicate_counts_df):
    libraries = list(replicate_counts_df.columns)
    return pd.DataFrame(
        {
            "Library": libraries,
            "Antibody": ["PolIII"] * 6,
            "Tissue": ["brain"] * 3 + ["liver"] * 3,
            "Stage": ["P22"] * 6,
        }
    )


@pytest.fixture
def annotation_df():
    """Raw annotation rows as the loader returns them (whitespace included)."""
    return pd.DataFrame(
        {
            "chromosome": ["chr1", "chr1", "chr2", "chr2", "chr9"],
            "locus": ["trna1", " trna2", "trna1 ", "trna2", "trna7"],
            "trna_type": ["tRNA"] * 5,
            "start": pd.array([100, 300, 500, 700, 900], dtype="Int64"),
            "end": pd.array([172, 372, 572, 772, 972], dtype="Int64"),
            "amino_acid": ["Ala", "Ala ", "G ly", "Leu", "Ser"],
            "codon": ["AGC", "AGC", "GCC", "CAG", "GCT"],
        }
    )


@pytest.fixture
def de_results_df():
    """
    DE results for the four genes in small_counts_df plus one unannotated gene.
    Contains typical PyDESeq2 output columns, including an untestable gene.
    """
    return pd.DataFrame(
        {
            "gene": ["chr1.trna1", "chr1.trna2", "chr2.trna1", "chr2.trna2", "chr3.trna4"],
            "baseMean": [20.0, 10.0, 0.0, 10.0, 50.0],
            "log2FoldChange": [1.5, -2.0, np.nan, 0.8, 3.0],
            "lfcSE": [0.3, 0.4, np.nan, 0.5, 0.2],
            "stat": [5.0, -5.0, np.nan, 1.6, 15.0],
            "pvalue": [0.0001, 0.0002, np.nan, 0.11, 1e-10],
            "padj": [0.001, 0.001, np.nan, 0.14, 1e-9],
        }
    )


# ============================================================================
# Input File Fixtures
# ============================================================================


def _write_tsv(path: Path, rows):
    path.write_text("\n".join("\t".join(str(v) for v in row) for row in rows) + "\n")


@pytest.fixture
def input_dir(tmp_path, small_design_df, small_counts_df, annotation_df):
    """Data directory with the three input files for the small dataset."""
    _write_tsv(tmp_path / "libraries.tsv", small_design_df.values.tolist())

    rows = [list(small_counts_df.columns)]
    for gene, values in small_counts_df.iterrows():
        rows.append([gene] + values.tolist())
    _write_tsv(tmp_path / "counts.tsv", rows)

    _write_tsv(tmp_path / "trna_annotation.tsv", annotation_df.astype(str).values.tolist())
    return tmp_path


# ============================================================================
# Pipeline Fixtures
# ============================================================================


@pytest.fixture
def small_result(input_dir, de_results_df):
    """Pipeline result for the small dataset, DE results from a stub engine."""
    from analysis_config import AnalysisConfig
    from analysis_pipeline import run_analysis

    config = AnalysisConfig(data_dir=str(input_dir))
    engine = StubEngine(de_results_df)
    return run_analysis(config, engine=engine), config, engine
