"""
Demo dataset generator for the tRNA differential-expression report.

Generates a small Pol III ChIP-seq style tRNA gene dataset (brain vs liver)
with built-in tissue-specific genes, and writes it in the three input
formats the loader expects.
"""

from pathlib import Path
from typing import Union
import pandas as pd
import numpy as np

from data_loader import ANNOTATION_COLUMNS, DESIGN_COLUMNS, InputTables

DESIGN_FILE = "libraries.tsv"
COUNTS_FILE = "counts.tsv"
ANNOTATION_FILE = "trna_annotation.tsv"

# (amino acid, anticodon)
TRNA_FAMILIES = [
    ("Ala", "AGC"), ("Ala", "TGC"), ("Arg", "ACG"), ("Arg", "TCT"),
    ("Asn", "GTT"), ("Asp", "GTC"), ("Cys", "GCA"), ("Gln", "CTG"),
    ("Glu", "CTC"), ("Gly", "GCC"), ("His", "GTG"), ("Ile", "AAT"),
    ("Leu", "CAG"), ("Lys", "CTT"), ("Met", "CAT"), ("Phe", "GAA"),
    ("Pro", "AGG"), ("Ser", "GCT"), ("Thr", "AGT"), ("Val", "AAC"),
]


def load_demo_dataset() -> InputTables:
    """
    Generate the demo dataset in memory.

    Returns:
        InputTables with:
        - design: 8 libraries, 2 'Input' controls + 3 brain + 3 liver 'PolIII'
        - counts: 60 tRNA genes × 8 libraries (gene ids like chr3.trna12)
        - annotation: 60 rows (2 counted genes unannotated, 2 annotated genes
          absent from the counts), with stray whitespace in text fields

    Dataset characteristics:
    - chr1 genes 1-6 up in brain, chr2 genes 1-6 up in liver (~4x)
    - chr4.trna10 is zero in every library
    - Reproducible with np.random.seed(42)
    """
    np.random.seed(42)

    design = pd.DataFrame(
        [
            ["Input_brain", "Input", "brain", "P22"],
            ["Input_liver", "Input", "liver", "P22"],
            ["PolIII_brain_1", "PolIII", "brain", "P22"],
            ["PolIII_brain_2", "PolIII", "brain", "P22"],
            ["PolIII_brain_3", "PolIII", "brain", "P22"],
            ["PolIII_liver_1", "PolIII", "liver", "P22"],
            ["PolIII_liver_2", "PolIII", "liver", "P22"],
            ["PolIII_liver_3", "PolIII", "liver", "P22"],
        ],
        columns=DESIGN_COLUMNS,
    )
    libraries = design["Library"].tolist()
    depth = {lib: np.random.uniform(0.6, 1.6) for lib in libraries}

    genes = []
    annotation_rows = []
    for chrom in range(1, 5):
        for n in range(1, 16):
            gene = f"chr{chrom}.trna{n}"
            genes.append(gene)
            amino_acid, codon = TRNA_FAMILIES[(chrom * 7 + n) % len(TRNA_FAMILIES)]
            start = 10000 * n + chrom * 137
            annotation_rows.append(
                [f"chr{chrom}", f" trna{n}" if n % 4 == 0 else f"trna{n}", "tRNA",
                 str(start), str(start + 72),
                 f"{amino_acid} " if n % 3 == 0 else amino_acid, codon]
            )

    base_means = np.random.lognormal(mean=5, sigma=1.0, size=len(genes))
    counts = np.zeros((len(genes), len(libraries)), dtype=int)
    for g, gene in enumerate(genes):
        for j, row in design.iterrows():
            mean = base_means[g] * depth[row["Library"]]
            if row["Antibody"] == "Input":
                mean = mean * 0.05
            elif gene.startswith("chr1.") and int(gene.split("trna")[1]) <= 6 and row["Tissue"] == "brain":
                mean = mean * 4
            elif gene.startswith("chr2.") and int(gene.split("trna")[1]) <= 6 and row["Tissue"] == "liver":
                mean = mean * 4
            counts[g, j] = np.random.poisson(max(1.0, mean * np.random.normal(1.0, 0.1)))

    counts_df = pd.DataFrame(counts, index=pd.Index(genes, name="gene"), columns=libraries)
    counts_df.loc["chr4.trna10"] = 0

    annotation = pd.DataFrame(annotation_rows, columns=ANNOTATION_COLUMNS)
    # Two genes without annotation, two annotated genes never counted
    annotation = annotation[~annotation["locus"].str.strip().isin(["trna14", "trna15"])
                            | (annotation["chromosome"] != "chr3")]
    extra = pd.DataFrame(
        [
            ["chr5", "trna1", "tRNA", "5000", "5072", "Gly", "TCC"],
            ["chr5", "trna2", "tRNA", "9000", "9072", "Leu", "TAG"],
        ],
        columns=ANNOTATION_COLUMNS,
    )
    annotation = pd.concat([annotation, extra], ignore_index=True)
    for col in ["start", "end"]:
        annotation[col] = pd.to_numeric(annotation[col]).astype("Int64")

    return InputTables(design=design, counts=counts_df, annotation=annotation)


def write_demo_dataset(directory: Union[str, Path]) -> Path:
    """
    Write the demo dataset as the three tab-separated input files.

    The count matrix header lists library ids only (no label for the gene
    column), as R's write.table produces.

    Returns:
        The directory path
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    tables = load_demo_dataset()

    tables.design.to_csv(directory / DESIGN_FILE, sep="\t", header=False, index=False)

    lines = ["\t".join(tables.counts.columns)]
    for gene, row in tables.counts.iterrows():
        lines.append("\t".join([gene] + [str(int(v)) for v in row.values]))
    (directory / COUNTS_FILE).write_text("\n".join(lines) + "\n")

    tables.annotation.to_csv(directory / ANNOTATION_FILE, sep="\t", header=False, index=False)
    return directory


def get_demo_description() -> str:
    """Markdown description of the demo dataset."""
    return """# tRNA Demo Dataset

## Experimental Design
- **Libraries**: 8 total; 2 `Input` controls (removed by the filter), 3 brain and 3 liver Pol III libraries
- **Genes**: 60 tRNA genes on chr1-chr4 (`chrN.trnaM`)
- **Contrast**: Tissue, liver vs brain (brain is the reference)

## Built-in Patterns
- `chr1.trna1`-`chr1.trna6`: ~4x higher in brain (negative log2FoldChange)
- `chr2.trna1`-`chr2.trna6`: ~4x higher in liver (positive log2FoldChange)
- `chr4.trna10`: zero in every library

## Annotation Quirks
- Some locus and amino-acid fields carry stray spaces
- `chr3.trna14` and `chr3.trna15` have counts but no annotation
- `chr5.trna1` and `chr5.trna2` are annotated but never counted

## Notes
- Synthetic data for demonstration and testing
- Reproducible with `np.random.seed(42)`
"""
