"""
Excel and PDF export of tRNA differential-expression results.

The workbook holds the tables (design, size factors, DE results, significant
genes, codon summary, settings); the PDF is the rendered report with tables
and embedded figures.
"""

from typing import Dict, List, Optional
from datetime import datetime
import io
import re
import sys
import logging
import pandas as pd
import plotly.graph_objects as go
from reportlab.lib.pagesizes import letter
from reportlab.platypus import SimpleDocTemplate, Paragraph, Table, Image, Spacer
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.utils import ImageReader

from analysis_config import AnalysisConfig, TOOL_VERSION
from analysis_pipeline import AnalysisResult

logger = logging.getLogger(__name__)

# Figure order in the PDF, with section titles
PDF_FIGURES = [
    ("library_sizes", "Library Sizes"),
    ("size_factors", "Size Factors"),
    ("normalization", "Normalization"),
    ("correlation", "Library Similarity"),
    ("pca", "PCA"),
    ("dispersion", "Dispersion Estimates"),
    ("ma", "MA Plot"),
    ("volcano", "Volcano Plot"),
    ("codon_summary", "Significant Genes per Codon"),
]


class ExportEngine:
    """Excel/PDF export engine for analysis results."""

    def sanitize_sheet_name(self, name: str, max_length: int = 31) -> str:
        """
        Sanitize sheet name for Excel compatibility.

        Excel sheet name rules:
        - Max 31 characters
        - Cannot contain: [ ] : * ? / \\
        - Cannot start or end with '
        """
        name = re.sub(r"[\[\]:*?/\\]", "_", name)
        name = name.strip("'")
        return name[:max_length]

    def export_excel(self, filepath: str, result: AnalysisResult, config: AnalysisConfig) -> None:
        """
        Export analysis tables to a multi-sheet Excel workbook.

        Sheets: Design, Size Factors, DE Results, Significant, Codon Summary, Settings

        Args:
            filepath: Output Excel file path (.xlsx)
            result: Completed pipeline run
            config: Configuration used for the run
        """
        test, ref = result.de_result.comparison
        with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
            result.design.to_excel(writer, sheet_name="Design", index=False)
            result.size_factors.rename_axis("Library").reset_index().to_excel(
                writer, sheet_name="Size Factors", index=False
            )
            result.de_result.results_df.to_excel(
                writer,
                sheet_name=self.sanitize_sheet_name(f"DE {test} vs {ref}"),
                index=False,
            )
            result.annotation.significant.to_excel(writer, sheet_name="Significant", index=False)
            result.codon_summary.to_excel(writer, sheet_name="Codon Summary", index=False)
            self._write_settings_sheet(writer, result, config)
        logger.info(f"Wrote Excel workbook to {filepath}")

    def _settings_rows(self, result: AnalysisResult, config: AnalysisConfig) -> List[List[str]]:
        test, ref = result.de_result.comparison
        rows = [
            ["Parameter", "Value"],
            ["Analysis Date", datetime.now().strftime("%Y-%m-%d %H:%M:%S")],
            ["Tool Version", TOOL_VERSION],
            [
                "Python Version",
                f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
            ],
        ]

        try:
            import pydeseq2

            rows.append(["PyDESeq2 Version", pydeseq2.__version__])
        except (ImportError, AttributeError):
            rows.append(["PyDESeq2 Version", "N/A"])

        rows += [
            ["---", "---"],
            ["Data Directory", config.data_dir],
            ["Control Antibody", config.control_antibody],
            ["Contrast", f"{config.contrast_column}: {test} vs {ref}"],
            ["padj Threshold", str(config.padj_threshold)],
            ["Significant Genes", str(len(result.annotation.significant))],
        ]
        for warning in result.de_result.warnings:
            rows.append(["Warning", warning])

        rows.append(["---", "---"])
        rows.append(["Library Tissues", ""])
        for library, tissue in result.library_tissues.items():
            rows.append([library, tissue])
        return rows

    def _write_settings_sheet(
        self, writer: pd.ExcelWriter, result: AnalysisResult, config: AnalysisConfig
    ) -> None:
        settings_df = pd.DataFrame(self._settings_rows(result, config))
        settings_df.to_excel(writer, sheet_name="Settings", index=False, header=False)

    def export_figure(
        self, fig: go.Figure, filepath: str, format: str = "png", scale: int = 3
    ) -> None:
        """
        Export Plotly figure to static image file.

        Args:
            fig: Plotly Figure object
            filepath: Output file path
            format: Image format ('png', 'svg', 'pdf')
            scale: Scale factor for raster formats (default 3 for ~300 DPI)
        """
        fig.write_image(filepath, format=format, scale=scale)

    def _figure_image(self, fig: go.Figure) -> Image:
        png_bytes = fig.to_image(format="png", scale=2, width=800, height=600)
        return Image(ImageReader(io.BytesIO(png_bytes)), width=400, height=300)

    def export_pdf_report(
        self,
        filepath: str,
        result: AnalysisResult,
        config: AnalysisConfig,
        figures: Optional[Dict[str, go.Figure]] = None,
    ) -> None:
        """
        Generate the PDF report.

        Layout: title, methods, codon summary table, top significant genes,
        then every available figure in PDF_FIGURES order. Figures are embedded
        as in-memory PNG bytes (no temp files).
        """
        figures = figures or {}
        test, ref = result.de_result.comparison
        doc = SimpleDocTemplate(filepath, pagesize=letter)
        styles = getSampleStyleSheet()
        story = []

        story.append(Paragraph("tRNA Differential Expression Report", styles["Title"]))
        story.append(Spacer(1, 12))
        story.append(
            Paragraph(
                f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
                styles["Normal"],
            )
        )
        story.append(Spacer(1, 24))

        story.append(Paragraph("Methods", styles["Heading1"]))
        story.append(
            Paragraph(
                f"{len(result.design)} libraries after removing "
                f"'{config.control_antibody}' controls; "
                f"{result.raw_counts.shape[0]} tRNA genes. Counts were normalized "
                f"with median-of-ratios size factors and tested with PyDESeq2 on "
                f"{config.contrast_column} ({test} vs {ref}).",
                styles["Normal"],
            )
        )
        story.append(Spacer(1, 6))
        story.append(
            Paragraph(
                f"Significance: padj &lt; {config.padj_threshold}. Genes are joined "
                f"to the annotation with an inner join; unannotated genes are not "
                f"reported. Each codon shows the first amino-acid label observed.",
                styles["Normal"],
            )
        )
        story.append(Spacer(1, 24))

        story.append(Paragraph("Significant Genes per Codon", styles["Heading1"]))
        story.append(Spacer(1, 6))
        if result.codon_summary.empty:
            story.append(Paragraph("No significant tRNA genes.", styles["Normal"]))
        else:
            table_data = [["Codon", "Amino acid", f"Up in {test}", f"Up in {ref}"]] + [
                [str(c), str(aa), str(up), str(down)]
                for c, aa, up, down in result.codon_summary.values.tolist()
            ]
            story.append(Table(table_data))
        story.append(Spacer(1, 24))

        significant = result.annotation.significant
        if not significant.empty:
            story.append(Paragraph("Top Significant tRNA Genes", styles["Heading1"]))
            story.append(Spacer(1, 6))
            top_genes = significant.nsmallest(20, "padj")[
                ["gene", "codon", "log2FoldChange", "padj"]
            ].values.tolist()
            table_data = [["Gene", "Codon", "log2FC", "padj"]] + [
                [str(g), str(c), f"{fc:.2f}", f"{p:.2e}"] for g, c, fc, p in top_genes
            ]
            story.append(Table(table_data))
            story.append(Spacer(1, 24))

        for key, title in PDF_FIGURES:
            if key not in figures:
                continue
            story.append(Paragraph(title, styles["Heading1"]))
            story.append(Spacer(1, 6))
            story.append(self._figure_image(figures[key]))
            story.append(Spacer(1, 24))

        doc.build(story)
        logger.info(f"Wrote PDF report to {filepath}")
