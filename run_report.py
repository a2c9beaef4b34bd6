"""
Command-line entry point: run the tRNA DE analysis and write the report files.

Example:
    trna-de-report --data-dir data --output-dir results --padj 0.05
    trna-de-report --demo --output-dir demo_results --no-pdf
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from analysis_config import AnalysisConfig, load_config, save_config
from analysis_pipeline import build_figures, run_analysis
from demo_data import write_demo_dataset
from export_engine import ExportEngine
from pipeline_errors import PipelineError

logger = logging.getLogger("trna_de_report")


def setup_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trna-de-report",
        description="Differential tRNA gene analysis between two tissues.",
    )
    parser.add_argument("--config", help="JSON config file (see analysis_config.save_config)")
    parser.add_argument("--data-dir", help="Directory holding the three input files")
    parser.add_argument("--padj", type=float, help="Adjusted p-value threshold")
    parser.add_argument("--control-antibody", help="Antibody value marking control libraries")
    parser.add_argument("--contrast", help="Design column to contrast")
    parser.add_argument(
        "--levels", nargs=2, metavar=("TEST", "REFERENCE"),
        help="Contrast levels (default: the two observed levels, alphabetical first is reference)",
    )
    parser.add_argument("--strict-join", action="store_true",
                        help="Fail when no DE result matches the annotation")
    parser.add_argument("--output-dir", default="results", help="Where to write the report files")
    parser.add_argument("--no-pdf", action="store_true", help="Skip the PDF report")
    parser.add_argument("--demo", action="store_true",
                        help="Write the demo dataset into <output-dir>/demo_data and analyse it")
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> AnalysisConfig:
    """Config file first, then command-line overrides."""
    if args.config:
        config = load_config(Path(args.config).read_text())
    else:
        config = AnalysisConfig()

    if args.data_dir:
        config.data_dir = args.data_dir
    if args.padj is not None:
        config.padj_threshold = args.padj
    if args.control_antibody:
        config.control_antibody = args.control_antibody
    if args.contrast:
        config.contrast_column = args.contrast
    if args.levels:
        config.contrast_levels = tuple(args.levels)
    if args.strict_join:
        config.strict_join = True
    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_file, args.verbose)

    output_dir = Path(args.output_dir)
    try:
        config = config_from_args(args)
        if args.demo:
            config.data_dir = str(write_demo_dataset(output_dir / "demo_data"))
            logger.info(f"Demo dataset written to {config.data_dir}")

        result = run_analysis(config)
    except PipelineError as e:
        logger.error(f"Analysis failed at stage '{e.stage}': {e.message}")
        if e.details:
            logger.error(f"Details: {e.details}")
        return 1

    output_dir.mkdir(parents=True, exist_ok=True)
    (output_dir / "config.json").write_text(save_config(config))

    engine = ExportEngine()
    engine.export_excel(str(output_dir / "trna_de_results.xlsx"), result, config)
    if not args.no_pdf:
        figures = build_figures(result, config)
        engine.export_pdf_report(str(output_dir / "trna_de_report.pdf"), result, config, figures)

    logger.info(
        f"Done: {len(result.annotation.significant)} significant tRNA genes across "
        f"{len(result.codon_summary)} codons; files in {output_dir}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
