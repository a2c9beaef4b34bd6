"""Analysis configuration: thresholds, sentinels and input locations."""

import json
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Tuple

from pipeline_errors import ConfigError

TOOL_VERSION = "0.3.0"

DEFAULT_TISSUE_COLORS = {"brain": "#1b9e77", "liver": "#d95f02"}


@dataclass
class AnalysisConfig:
    """Explicit configuration passed into every pipeline stage."""

    data_dir: str = "data"
    design_file: str = "libraries.tsv"
    counts_file: str = "counts.tsv"
    annotation_file: str = "trna_annotation.tsv"
    padj_threshold: float = 0.05
    control_antibody: str = "Input"
    contrast_column: str = "Tissue"
    contrast_levels: Optional[Tuple[str, str]] = None  # (test, reference)
    annotation_id_separator: str = "."
    strict_join: bool = False
    tissue_colors: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_TISSUE_COLORS)
    )

    def input_path(self, name: str) -> Path:
        return Path(self.data_dir) / name

    @property
    def design_path(self) -> Path:
        return self.input_path(self.design_file)

    @property
    def counts_path(self) -> Path:
        return self.input_path(self.counts_file)

    @property
    def annotation_path(self) -> Path:
        return self.input_path(self.annotation_file)

    def validate(self) -> None:
        """
        Check thresholds and contrast levels.

        Raises:
            ConfigError: If any setting is out of range
        """
        try:
            self.padj_threshold = float(self.padj_threshold)
        except (TypeError, ValueError):
            raise ConfigError(
                f"padj_threshold must be a number, got {self.padj_threshold!r}",
                details={"padj_threshold": self.padj_threshold},
            )
        if not 0 < self.padj_threshold <= 1:
            raise ConfigError(
                f"padj_threshold must be in (0, 1], got {self.padj_threshold}",
                details={"padj_threshold": self.padj_threshold},
            )
        if self.contrast_levels is not None:
            levels = tuple(self.contrast_levels)
            if len(levels) != 2 or levels[0] == levels[1]:
                raise ConfigError(
                    f"contrast_levels must be two distinct labels, got {levels}",
                    details={"contrast_levels": list(levels)},
                )
        if not self.contrast_column:
            raise ConfigError("contrast_column must not be empty")

    def color_for(self, tissue: str) -> str:
        return self.tissue_colors.get(tissue, "gray")


def save_config(config: AnalysisConfig) -> str:
    """Serialize a config to a JSON string with a _meta block."""
    data = {
        "_meta": {
            "tool_version": TOOL_VERSION,
            "saved_at": datetime.now().isoformat(),
        }
    }
    for key, val in asdict(config).items():
        data[key] = _make_serializable(val)
    return json.dumps(data, indent=2, default=str)


def load_config(json_str: str) -> AnalysisConfig:
    """Deserialize a JSON string produced by save_config (or written by hand)."""
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config is not valid JSON: {e}")

    data.pop("_meta", None)
    known = {f.name for f in fields(AnalysisConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(
            f"Unknown config keys: {', '.join(unknown)}",
            details={"unknown": unknown},
        )

    if data.get("contrast_levels") is not None:
        data["contrast_levels"] = tuple(data["contrast_levels"])

    config = AnalysisConfig(**data)
    config.validate()
    return config


def _make_serializable(obj):
    """Recursively convert tuples to lists for JSON serialization."""
    if isinstance(obj, tuple):
        return [_make_serializable(item) for item in obj]
    elif isinstance(obj, list):
        return [_make_serializable(item) for item in obj]
    elif isinstance(obj, dict):
        return {k: _make_serializable(v) for k, v in obj.items()}
    return obj
