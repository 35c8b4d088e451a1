"""
DegFlow: differential gene expression analysis from RNA-seq count matrices

DegFlow loads a gene x sample count matrix and sample metadata, filters
low-quality genes and samples, fits a negative-binomial GLM through DESeq2
(pydeseq2 or R), annotates results with gene symbols and draws diagnostic
plots from the variance-stabilized matrix.

Main Components:
- Data loading and checkpoint writing
- Gene/sample filtering and metadata alignment
- Model fitting (pydeseq2, DESeq2 through R)
- Identifier-to-symbol annotation
- Sample-distance heatmaps, PCA, gene heatmaps and volcano plots

Example:
    >>> from degflow import DegFlowAnalysis
    >>> analysis = DegFlowAnalysis(config="config.yaml")
    >>> results = analysis.run_full_pipeline()
"""

import logging
import sys
from importlib import metadata
from typing import Any, Dict

try:
    __version__ = metadata.version("degflow")
except metadata.PackageNotFoundError:
    __version__ = "0.1.0-dev"

from . import annotation, data, differential, utils, visualization
from .config import Config, load_config
from .core import DegFlowAnalysis
from .exceptions import (AnnotationError, DegFlowError, EmptySelectionError,
                         FormatError, InputNotFoundError,
                         InsufficientDataError, InvalidLevelError,
                         ModelConvergenceError, SampleMismatchError)
from .utils import setup_logging, validate_environment

__all__ = [
    "__version__",
    "DegFlowAnalysis",
    "Config",
    "load_config",
    "setup_logging",
    "validate_environment",
    "DegFlowError",
    "InputNotFoundError",
    "FormatError",
    "InsufficientDataError",
    "SampleMismatchError",
    "InvalidLevelError",
    "ModelConvergenceError",
    "EmptySelectionError",
    "AnnotationError",
    "data",
    "differential",
    "annotation",
    "visualization",
    "utils",
]


def get_info() -> Dict[str, Any]:
    """Get package information."""
    return {
        "name": "DegFlow",
        "version": __version__,
        "description": "Differential gene expression analysis pipeline for RNA-seq counts",
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "modules": ["data", "differential", "annotation", "visualization", "utils"],
    }


def check_dependencies() -> Dict[str, bool]:
    """Check if key dependencies are available."""
    from .utils.validation import validate_python_packages

    return validate_python_packages(["numpy", "pandas", "pydeseq2", "seaborn", "sklearn"])


logging.getLogger(__name__).addHandler(logging.NullHandler())
