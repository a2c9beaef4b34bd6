"""
Input loader for the tRNA differential-expression pipeline.

Reads the three tab-separated inputs from the data directory:
- library design (no header): Library, Antibody, Tissue, Stage
- raw count matrix: header row of library ids, then gene id + integer counts
- tRNA annotation (no header): seven columns, see ANNOTATION_COLUMNS

Canonical count matrix shape here is genes × libraries (gene ids as index).
Only field counts (and integer counts) are validated; everything else is
trusted as written.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Union
import csv
import re
import logging
import pandas as pd

from analysis_config import AnalysisConfig
from pipeline_errors import MissingFileError, MalformedRowError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DESIGN_COLUMNS = ["Library", "Antibody", "Tissue", "Stage"]

ANNOTATION_COLUMNS = [
    "chromosome",
    "locus",
    "trna_type",
    "start",
    "end",
    "amino_acid",
    "codon",
]


@dataclass
class InputTables:
    """The three raw input tables, exactly as loaded."""

    design: pd.DataFrame  # Library, Antibody, Tissue, Stage
    counts: pd.DataFrame  # genes × libraries, integer counts
    annotation: pd.DataFrame  # ANNOTATION_COLUMNS


def _require_file(path: PathLike) -> Path:
    path = Path(path)
    if not path.is_file():
        raise MissingFileError(
            f"Input file not found: {path}. "
            f"Suggestion: check the data directory and file names in the config.",
            details={"path": str(path)},
        )
    return path


def _read_table(path: PathLike, max_fields: int) -> pd.DataFrame:
    """
    Read a tab-separated file as strings, one row per non-blank line.

    Columns are 0..max_fields; a value in column max_fields means the row has
    too many fields. The index holds 1-based line numbers of the file.

    Raises:
        MissingFileError: If the file does not exist
        MalformedRowError: If a row has more fields than the reader can hold
    """
    path = _require_file(path)
    try:
        table = pd.read_csv(
            path,
            sep="\t",
            header=None,
            names=list(range(max_fields + 1)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            quoting=csv.QUOTE_NONE,
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=range(max_fields + 1), dtype=object)
    except pd.errors.ParserError as e:
        match = re.search(r"line (\d+), saw (\d+)", str(e))
        line_no, found = (int(match.group(1)), int(match.group(2))) if match else (None, None)
        raise MalformedRowError(
            f"{path.name} line {line_no}: expected at most {max_fields} fields, found {found}",
            details={"path": str(path), "line": line_no, "expected": max_fields, "found": found},
        ) from e

    # A first row wider than the names turns its leading fields into an index
    if not isinstance(table.index, pd.RangeIndex):
        found = max_fields + 1 + table.index.nlevels
        raise MalformedRowError(
            f"{path.name} line 1: expected at most {max_fields} fields, found {found}",
            details={"path": str(path), "line": 1, "expected": max_fields, "found": found},
        )

    table.index = table.index + 1
    blank = table.fillna("").apply(lambda col: col.str.strip()).eq("").all(axis=1)
    return table.loc[~blank]


def _field_counts(table: pd.DataFrame) -> pd.Series:
    # Fields missing from a short row are NaN; empty fields are ""
    return table.notna().sum(axis=1)


def _check_width(path: PathLike, table: pd.DataFrame, expected: int) -> None:
    widths = _field_counts(table)
    bad = widths[widths != expected]
    if not bad.empty:
        line_no, found = int(bad.index[0]), int(bad.iloc[0])
        raise MalformedRowError(
            f"{Path(path).name} line {line_no}: expected {expected} fields, "
            f"found {found}",
            details={
                "path": str(path),
                "line": line_no,
                "expected": expected,
                "found": found,
            },
        )


def load_design(path: PathLike) -> pd.DataFrame:
    """
    Load the library design table (no header row, four columns).

    Returns:
        DataFrame with columns Library, Antibody, Tissue, Stage

    Raises:
        MissingFileError: If the file is absent
        MalformedRowError: If a row does not have four fields, or a library id repeats
    """
    table = _read_table(path, len(DESIGN_COLUMNS))
    _check_width(path, table, len(DESIGN_COLUMNS))

    design = table[list(range(len(DESIGN_COLUMNS)))]
    design.columns = DESIGN_COLUMNS

    duplicated = design["Library"].duplicated()
    if duplicated.any():
        line_no = int(design.index[duplicated][0])
        library = design.loc[line_no, "Library"]
        first_line = int(design.index[design["Library"] == library][0])
        raise MalformedRowError(
            f"{Path(path).name} line {line_no}: duplicate library id '{library}' "
            f"(first seen on line {first_line})",
            details={"path": str(path), "line": line_no, "library": library},
        )

    design = design.reset_index(drop=True)
    logger.info(f"Loaded design table: {len(design)} libraries from {path}")
    return design


def load_counts(path: PathLike) -> pd.DataFrame:
    """
    Load the raw count matrix.

    The header row lists library ids. It may or may not carry a label for the
    gene id column; both layouts are accepted (R's write.table omits it).

    Returns:
        genes × libraries DataFrame of int64 counts, index named "gene"

    Raises:
        MissingFileError: If the file is absent
        MalformedRowError: On a field count mismatch, a non-integer or negative
            count, a repeated gene id, or a matrix without gene rows
    """
    _require_file(path)
    try:
        header_df = pd.read_csv(
            path, sep="\t", header=None, nrows=1, dtype=str,
            keep_default_na=False, quoting=csv.QUOTE_NONE,
        )
    except pd.errors.EmptyDataError:
        raise MalformedRowError(
            f"{Path(path).name}: count matrix is empty",
            details={"path": str(path), "line": 1, "expected": 2, "found": 0},
        )

    table = _read_table(path, header_df.shape[1] + 1)
    if table.empty:
        raise MalformedRowError(
            f"{Path(path).name}: count matrix is empty",
            details={"path": str(path), "line": 1, "expected": 2, "found": 0},
        )
    widths = _field_counts(table)
    header_line = int(table.index[0])
    header = table.iloc[0, : widths.iloc[0]].tolist()
    data = table.iloc[1:]
    if data.empty:
        raise MalformedRowError(
            f"{Path(path).name}: count matrix has no genes",
            details={"path": str(path), "line": header_line},
        )

    # Width of the first data row decides whether the header labels the id column
    if widths.iloc[1] == len(header) + 1:
        libraries = header
    else:
        libraries = header[1:]
    if not libraries:
        raise MalformedRowError(
            f"{Path(path).name} line {header_line}: header lists no libraries",
            details={"path": str(path), "line": header_line, "expected": 2,
                     "found": len(header)},
        )
    width = len(libraries) + 1
    _check_width(path, data, width)

    genes = data[0]
    duplicated = genes.duplicated()
    if duplicated.any():
        line_no = int(genes.index[duplicated][0])
        gene = genes.loc[line_no]
        raise MalformedRowError(
            f"{Path(path).name} line {line_no}: duplicate gene id '{gene}'",
            details={"path": str(path), "line": line_no, "gene": gene},
        )

    raw = data[list(range(1, width))]
    numbers = raw.apply(lambda col: pd.to_numeric(col.str.strip(), errors="coerce"))
    not_number = numbers.isna()
    not_count = ~not_number & ((numbers < 0) | (numbers % 1 != 0))
    for mask, problem in [(not_number, "is not a number"),
                          (not_count, "is not a non-negative integer")]:
        rows = mask.any(axis=1)
        if rows.any():
            line_no = int(mask.index[rows][0])
            column = mask.loc[line_no].idxmax()
            raise MalformedRowError(
                f"{Path(path).name} line {line_no}: count '{raw.loc[line_no, column].strip()}' "
                f"{problem}",
                details={"path": str(path), "line": line_no, "gene": genes.loc[line_no]},
            )

    counts_df = pd.DataFrame(
        numbers.to_numpy(dtype="int64"),
        index=pd.Index(genes.tolist(), name="gene"),
        columns=libraries,
    )
    logger.info(
        f"Loaded count matrix: {counts_df.shape[0]} genes x "
        f"{counts_df.shape[1]} libraries from {path}"
    )
    return counts_df


def load_annotation(path: PathLike) -> pd.DataFrame:
    """
    Load the tRNA annotation table (no header row, seven columns).

    Text fields are returned as written, embedded whitespace included;
    annotation_join.clean_annotation normalizes them.

    Raises:
        MissingFileError: If the file is absent
        MalformedRowError: If a row does not have seven fields
    """
    table = _read_table(path, len(ANNOTATION_COLUMNS))
    _check_width(path, table, len(ANNOTATION_COLUMNS))

    annotation = table[list(range(len(ANNOTATION_COLUMNS)))].reset_index(drop=True)
    annotation.columns = ANNOTATION_COLUMNS
    for col in ["start", "end"]:
        annotation[col] = pd.to_numeric(
            annotation[col].str.strip(), errors="coerce"
        ).astype("Int64")
    logger.info(f"Loaded annotation: {len(annotation)} tRNA genes from {path}")
    return annotation


def load_inputs(config: AnalysisConfig) -> InputTables:
    """
    Load design, counts and annotation from config.data_dir.

    All three paths are checked before anything is parsed so that a missing
    file is reported even when another file is also malformed.
    """
    paths = [config.design_path, config.counts_path, config.annotation_path]
    for path in paths:
        if not path.is_file():
            raise MissingFileError(
                f"Input file not found: {path}. "
                f"Suggestion: check data_dir ('{config.data_dir}') and the file names.",
                details={"path": str(path)},
            )

    return InputTables(
        design=load_design(config.design_path),
        counts=load_counts(config.counts_path),
        annotation=load_annotation(config.annotation_path),
    )
