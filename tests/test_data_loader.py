"""Tests for the tab-separated input loader."""
import pytest
import pandas as pd

from analysis_config import AnalysisConfig
from data_loader import load_annotation, load_counts, load_design, load_inputs
from pipeline_errors import MalformedRowError, MissingFileError


def test_load_design(input_dir):
    design = load_design(input_dir / "libraries.tsv")
    assert list(design.columns) == ["Library", "Antibody", "Tissue", "Stage"]
    assert design["Library"].tolist() == ["lib_in_b", "lib_brain", "lib_in_l", "lib_liver"]


def test_load_design_wrong_width(tmp_path):
    path = tmp_path / "libraries.tsv"
    path.write_text("lib1\tPolIII\tbrain\tP22\nlib2\tPolIII\tliver\n")
    with pytest.raises(MalformedRowError) as exc:
        load_design(path)
    assert exc.value.details["line"] == 2
    assert exc.value.details["expected"] == 4
    assert exc.value.details["found"] == 3


def test_load_design_duplicate_library(tmp_path):
    path = tmp_path / "libraries.tsv"
    path.write_text("lib1\tPolIII\tbrain\tP22\nlib1\tInput\tbrain\tP22\n")
    with pytest.raises(MalformedRowError, match="duplicate library"):
        load_design(path)


def test_load_design_skips_blank_lines(tmp_path):
    path = tmp_path / "libraries.tsv"
    path.write_text("lib1\tPolIII\tbrain\tP22\n\nlib2\tPolIII\tliver\tP22\n\n")
    assert len(load_design(path)) == 2


def test_load_counts_header_without_label(input_dir, small_counts_df):
    counts = load_counts(input_dir / "counts.tsv")
    pd.testing.assert_frame_equal(counts, small_counts_df, check_dtype=False)
    assert counts.index.name == "gene"
    assert counts.dtypes.unique().tolist() == ["int64"]


def test_load_counts_header_with_label(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("gene\tA\tB\nchr1.trna1\t5\t7\nchr1.trna2\t0\t3\n")
    counts = load_counts(path)
    assert list(counts.columns) == ["A", "B"]
    assert counts.loc["chr1.trna2", "B"] == 3


def test_load_counts_row_width_mismatch(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("A\tB\nchr1.trna1\t5\t7\nchr1.trna2\t0\n")
    with pytest.raises(MalformedRowError) as exc:
        load_counts(path)
    assert exc.value.details["line"] == 3


def test_load_counts_non_integer(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("A\tB\nchr1.trna1\t5\t7.5\n")
    with pytest.raises(MalformedRowError, match="non-negative integer"):
        load_counts(path)


def test_load_counts_duplicate_gene(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("A\tB\nchr1.trna1\t5\t7\nchr1.trna1\t1\t1\n")
    with pytest.raises(MalformedRowError, match="duplicate gene"):
        load_counts(path)


def test_load_annotation_keeps_whitespace(input_dir):
    annotation = load_annotation(input_dir / "trna_annotation.tsv")
    assert len(annotation) == 5
    assert annotation.loc[1, "locus"] == " trna2"
    assert annotation.loc[0, "start"] == 100


def test_load_annotation_wrong_width(tmp_path):
    path = tmp_path / "trna_annotation.tsv"
    path.write_text("chr1\ttrna1\ttRNA\t100\t172\tAla\n")
    with pytest.raises(MalformedRowError):
        load_annotation(path)


def test_missing_file(tmp_path):
    with pytest.raises(MissingFileError) as exc:
        load_design(tmp_path / "nope.tsv")
    assert exc.value.stage == "load"
    assert "nope.tsv" in exc.value.details["path"]


def test_load_inputs(input_dir):
    tables = load_inputs(AnalysisConfig(data_dir=str(input_dir)))
    assert tables.design.shape == (4, 4)
    assert tables.counts.shape == (4, 4)
    assert tables.annotation.shape == (5, 7)


def test_load_inputs_missing_annotation(input_dir):
    (input_dir / "trna_annotation.tsv").unlink()
    with pytest.raises(MissingFileError, match="trna_annotation.tsv"):
        load_inputs(AnalysisConfig(data_dir=str(input_dir)))


def test_load_design_too_many_fields(tmp_path):
    path = tmp_path / "libraries.tsv"
    path.write_text("lib1\tPolIII\tbrain\tP22\nlib2\tPolIII\tliver\tP22\textra\n")
    with pytest.raises(MalformedRowError) as exc:
        load_design(path)
    assert exc.value.details["line"] == 2
    assert exc.value.details["found"] == 5


def test_load_design_line_numbers_count_blank_lines(tmp_path):
    path = tmp_path / "libraries.tsv"
    path.write_text("\nlib1\tPolIII\tbrain\tP22\n\nlib2\tPolIII\n")
    with pytest.raises(MalformedRowError) as exc:
        load_design(path)
    assert exc.value.details["line"] == 4


def test_load_counts_header_only(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("a\tb\n")
    with pytest.raises(MalformedRowError, match="no genes"):
        load_counts(path)


def test_load_counts_empty_file(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("")
    with pytest.raises(MalformedRowError, match="empty"):
        load_counts(path)


def test_load_counts_not_a_number(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("A\tB\nchr1.trna1\t5\t7\nchr1.trna2\tNA\t3\n")
    with pytest.raises(MalformedRowError, match="not a number") as exc:
        load_counts(path)
    assert exc.value.details["line"] == 3
    assert exc.value.details["gene"] == "chr1.trna2"


def test_load_counts_negative(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("A\tB\nchr1.trna1\t5\t-1\n")
    with pytest.raises(MalformedRowError, match="non-negative integer"):
        load_counts(path)


def test_load_counts_integral_floats(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("A\tB\nchr1.trna1\t5.0\t7\n")
    counts = load_counts(path)
    assert counts.loc["chr1.trna1", "A"] == 5
    assert counts.dtypes.unique().tolist() == ["int64"]


def test_load_counts_extra_field(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("A\tB\nchr1.trna1\t5\t7\nchr1.trna2\t0\t3\t9\n")
    with pytest.raises(MalformedRowError) as exc:
        load_counts(path)
    assert exc.value.details["line"] == 3
    assert exc.value.details["found"] == 4
