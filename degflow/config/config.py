"""
Core configuration management for DegFlow
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Main configuration class for DegFlow analysis"""

    # General settings
    project_name: str = "DegFlow_Analysis"
    version: str = "v1"
    random_seed: int = 42
    n_threads: int = 1

    # Input/Output paths
    counts_file: Optional[str] = None
    metadata_file: Optional[str] = None
    annotation_file: Optional[str] = None
    output_dir: Optional[str] = "results"

    # Analysis parameters
    input: Dict[str, Any] = field(default_factory=dict)
    differential: Dict[str, Any] = field(default_factory=dict)
    annotation: Dict[str, Any] = field(default_factory=dict)
    visualization: Dict[str, Any] = field(default_factory=dict)

    # R configuration
    r_config: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Fill missing keys of each section from the defaults"""
        self.input = _merge(self._get_default_input(), self.input)
        self.differential = _merge(self._get_default_differential(), self.differential)
        self.annotation = _merge(self._get_default_annotation(), self.annotation)
        self.visualization = _merge(
            self._get_default_visualization(), self.visualization
        )
        self.r_config = _merge(self._get_default_r_config(), self.r_config)

    def _get_default_input(self) -> Dict[str, Any]:
        """Default input table layout"""
        return {
            "sep": "\t",
            "gene_id_column": None,
            "drop_columns": ["transcript_id(s)", "transcript_id"],
            "sample_id_column": None,
        }

    def _get_default_differential(self) -> Dict[str, Any]:
        """Default differential expression configuration"""
        return {
            "method": "pydeseq2",
            "design": "~condition",
            "contrasts": [
                {"factor": "condition", "tested": "treated", "reference": "control"}
            ],
            "reference_levels": {},
            "fdr_threshold": 0.05,
            "logfc_threshold": 1.0,
            "filtering": {
                "min_total_count": 50,
                "max_missing_fraction": 0.5,
                "min_n_samples": 4,
                "min_n_genes": 4,
                "min_variance": 0.0,
                "max_iterations": 10,
            },
            "fit": {
                "alpha": 0.05,
                "cooks_filter": True,
                "independent_filter": True,
                "refit_cooks": True,
            },
        }

    def _get_default_annotation(self) -> Dict[str, Any]:
        """Default identifier-to-symbol annotation configuration"""
        return {
            "source": "table",
            "id_column": "gene_id",
            "symbol_column": "symbol",
            "sep": "\t",
            "strip_version": True,
            "orgdb": "org.Hs.eg.db",
            "key_type": "ENSEMBL",
            "column": "symbol",
        }

    def _get_default_visualization(self) -> Dict[str, Any]:
        """Default visualization configuration"""
        return {
            "distance_annotation": ["condition", "condition"],
            "pca_color": "condition",
            "pca_shape": "condition",
            "pca_n_top": 500,
            "heatmap_genes": [],
            "heatmap_annotation": ["condition", "condition"],
            "cmap": "viridis",
            "save_formats": ["png"],
            "dpi": 300,
        }

    def _get_default_r_config(self) -> Dict[str, Any]:
        """Default R configuration"""
        return {
            "r_home": None,
            "timeout": 3600,
            "cran_repos": ["https://cloud.r-project.org"],
        }

    @property
    def filtering(self) -> Dict[str, Any]:
        return self.differential["filtering"]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _merge(defaults: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Recursively overlay user values on defaults"""
    merged = dict(defaults)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_file: Union[str, Path]) -> Config:
    """Load configuration from YAML or JSON file"""
    config_path = Path(config_file)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        if config_path.suffix.lower() in [".yaml", ".yml"]:
            config_dict = yaml.safe_load(f)
        elif config_path.suffix.lower() == ".json":
            config_dict = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {config_path.suffix}")

    if not isinstance(config_dict, dict):
        raise ValueError(f"Configuration must be a mapping: {config_path}")

    return Config(**config_dict)


def save_config(
    config: Config, output_file: Union[str, Path], format: str = "yaml"
) -> None:
    """Save configuration to a YAML or JSON file"""
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.to_dict()

    with open(output_path, "w") as f:
        if format == "json":
            json.dump(config_dict, f, indent=2)
        else:
            yaml.safe_dump(config_dict, f, default_flow_style=False, indent=2)

    logger.info(f"Configuration saved to {output_path}")


def validate_config(config: Config) -> List[str]:
    """Validate configuration and return list of issues"""
    issues = []

    if config.counts_file and not Path(config.counts_file).exists():
        issues.append(f"Counts file does not exist: {config.counts_file}")

    if config.metadata_file and not Path(config.metadata_file).exists():
        issues.append(f"Metadata file does not exist: {config.metadata_file}")

    if config.n_threads <= 0:
        issues.append("Number of threads must be positive")

    diff = config.differential

    if diff.get("method") not in ("pydeseq2", "DESeq2"):
        issues.append(f"Unknown differential method: {diff.get('method')}")

    if not str(diff.get("design", "")).strip().lstrip("~").strip():
        issues.append("A design formula is required")

    contrasts = diff.get("contrasts") or []
    if not contrasts:
        issues.append("At least one contrast must be specified")
    for comp in contrasts:
        if not all(k in comp for k in ["factor", "tested", "reference"]):
            issues.append("Each contrast must have 'factor', 'tested', and 'reference'")
        elif comp["tested"] == comp["reference"]:
            issues.append(f"Contrast compares a level with itself: {comp}")

    filtering = diff.get("filtering", {})
    if filtering.get("min_total_count", 0) < 0:
        issues.append("min_total_count must be non-negative")
    fraction = filtering.get("max_missing_fraction", 0.5)
    if not 0 < fraction <= 1:
        issues.append("max_missing_fraction must be in (0, 1]")

    fdr = diff.get("fdr_threshold")
    if fdr is not None and not 0 < fdr <= 1:
        issues.append("fdr_threshold must be in (0, 1]")

    source = config.annotation.get("source")
    if source not in ("table", "orgdb", "none"):
        issues.append(f"Unknown annotation source: {source}")
    if config.annotation_file and not Path(config.annotation_file).exists():
        issues.append(f"Annotation file does not exist: {config.annotation_file}")

    for key in ("distance_annotation", "heatmap_annotation"):
        columns = config.visualization.get(key) or []
        if len(columns) != 2:
            issues.append(f"visualization.{key} must name exactly two columns")

    return issues


def get_default_config() -> Config:
    """Get default configuration object"""
    return Config()
