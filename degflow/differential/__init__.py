"""
Differential expression module for DegFlow

Gene/sample filtering, metadata alignment, model fitting through an
external DESeq2 implementation, and results assembly.
"""

from .analyzer import DifferentialAnalyzer, DifferentialResult
from .filtering import (FilterManager, QualityReport, filter_by_total_count,
                        good_samples_genes)
from .metadata import align_metadata, set_reference_level
from .methods import (ModelFitter, PyDESeq2Fitter, RDESeq2Fitter,
                      get_fitter)
from .results import (Contrast, FitResult, check_design, classify_results,
                      design_variables, normalize_design, sort_results,
                      summarize_results)

__all__ = [
    "DifferentialAnalyzer",
    "DifferentialResult",
    "FilterManager",
    "QualityReport",
    "good_samples_genes",
    "filter_by_total_count",
    "align_metadata",
    "set_reference_level",
    "ModelFitter",
    "PyDESeq2Fitter",
    "RDESeq2Fitter",
    "get_fitter",
    "Contrast",
    "FitResult",
    "check_design",
    "design_variables",
    "normalize_design",
    "sort_results",
    "classify_results",
    "summarize_results",
]
