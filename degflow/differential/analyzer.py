"""
Main differential expression coordinator
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd

from ..annotation import IdentifierMap, TableIdentifierMap, annotate_results
from ..config import Config
from ..data import write_table
from ..utils import get_logger
from .filtering import FilterManager
from .metadata import align_metadata, set_reference_level
from .methods import ModelFitter, get_fitter
from .results import (Contrast, classify_results, normalize_design,
                      sort_results, summarize_results)

logger = get_logger(__name__)


@dataclass
class DifferentialResult:
    """Result of one contrast"""

    contrast: Contrast
    method: str

    # Results data
    results_table: pd.DataFrame
    vst: pd.DataFrame
    size_factors: Optional[pd.Series] = None

    # Statistics
    n_tested: int = 0
    n_significant: int = 0
    n_up_regulated: int = 0
    n_down_regulated: int = 0
    n_missing_padj: int = 0
    min_padj: Optional[float] = None
    max_abs_logfc: Optional[float] = None

    # Thresholds
    fdr_threshold: float = 0.05
    logfc_threshold: float = 1.0

    # Files
    output_files: Dict[str, Path] = field(default_factory=dict)

    execution_time: Optional[float] = None

    @property
    def name(self) -> str:
        return self.contrast.name


class DifferentialAnalyzer:
    """Filters counts, aligns metadata, fits the model and assembles results"""

    def __init__(
        self,
        config: Config,
        fitter: Optional[ModelFitter] = None,
        identifier_map: Optional[IdentifierMap] = None,
    ):
        self.config = config
        self.diff_params = config.differential

        self.output_dir = Path(config.output_dir)

        self.filter_manager = FilterManager(self.diff_params.get("filtering"))

        if fitter is None:
            fit_params = dict(self.diff_params.get("fit", {}))
            fit_params.setdefault("n_cpus", config.n_threads)
            fit_params.setdefault("r_config", config.r_config)
            fitter = get_fitter(self.diff_params.get("method", "pydeseq2"), fit_params)
        self.fitter = fitter

        self.identifier_map = identifier_map or TableIdentifierMap({})

        self.fdr_threshold = self.diff_params.get("fdr_threshold", 0.05)
        self.logfc_threshold = self.diff_params.get("logfc_threshold", 1.0)
        self.symbol_column = config.annotation.get("column", "symbol")

    def _stamp(self, label: str, frame: pd.DataFrame) -> Path:
        return write_table(
            frame,
            self.output_dir,
            self.config.project_name,
            self.config.version,
            label,
        )

    def prepare(
        self, counts: pd.DataFrame, metadata: pd.DataFrame, save: bool = True
    ) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """
        Filter the count matrix and align metadata to its samples

        Returns:
            (filtered counts, aligned metadata)
        """
        filtered = self.filter_manager.apply_filters(counts)
        if save:
            self._stamp("filtered_counts", filtered)

        aligned = align_metadata(
            metadata,
            list(filtered.columns),
            reference_levels=self.diff_params.get("reference_levels") or {},
        )
        return filtered, aligned

    def run_contrast(
        self,
        counts: pd.DataFrame,
        metadata: pd.DataFrame,
        contrast: Contrast,
        design: Optional[str] = None,
        save: bool = True,
    ) -> DifferentialResult:
        """Fit, test, annotate and classify a single contrast"""

        start_time = time.time()
        design = normalize_design(design or self.diff_params.get("design", "~condition"))

        reference_levels = self.diff_params.get("reference_levels") or {}
        if contrast.factor not in reference_levels:
            metadata = set_reference_level(metadata, contrast.factor, contrast.reference)

        logger.info(f"Running {self.fitter.name} for {contrast.name} with design {design}")
        fit = self.fitter.fit(counts, metadata, design, contrast)

        results = sort_results(fit.results)

        prefetch = getattr(self.identifier_map, "prefetch", None)
        if prefetch is not None:
            prefetch(results.index)
        results = annotate_results(results, self.identifier_map, self.symbol_column)
        results = classify_results(results, self.fdr_threshold, self.logfc_threshold)

        stats = summarize_results(results)
        result = DifferentialResult(
            contrast=contrast,
            method=self.fitter.name,
            results_table=results,
            vst=fit.vst,
            size_factors=fit.size_factors,
            fdr_threshold=self.fdr_threshold,
            logfc_threshold=self.logfc_threshold,
            **stats,
        )

        if save:
            result.output_files["results"] = self._stamp(f"{contrast.name}_results", results)

        result.execution_time = time.time() - start_time
        logger.info(
            f"{contrast.name}: {result.n_significant} significant genes "
            f"({result.n_up_regulated} up, {result.n_down_regulated} down) "
            f"of {result.n_tested} tested"
        )
        return result

    def run_differential_analysis(
        self,
        counts: pd.DataFrame,
        metadata: pd.DataFrame,
        contrasts: Optional[List[Union[Contrast, Dict[str, Any]]]] = None,
        save: bool = True,
    ) -> Dict[str, DifferentialResult]:
        """
        Run every configured contrast

        Any pipeline-level error aborts the whole analysis.

        Returns:
            Dictionary of contrast name -> DifferentialResult
        """
        logger.info("Starting differential expression analysis")

        if contrasts is None:
            contrasts = self.diff_params.get("contrasts", [])
        contrasts = [
            c if isinstance(c, Contrast) else Contrast.from_dict(c) for c in contrasts
        ]
        if not contrasts:
            raise ValueError("No contrasts configured")

        filtered, aligned = self.prepare(counts, metadata, save=save)

        results = {}
        for contrast in contrasts:
            results[contrast.name] = self.run_contrast(
                filtered, aligned, contrast, save=save
            )

        if save:
            self._save_summary(results)

        logger.info(f"Differential analysis completed: {len(results)} contrasts")
        return results

    def _save_summary(self, results: Dict[str, DifferentialResult]) -> Path:
        """Write one summary row per contrast"""

        summary_df = pd.DataFrame(
            [
                {
                    "contrast": name,
                    "method": result.method,
                    "n_tested": result.n_tested,
                    "n_significant": result.n_significant,
                    "n_up_regulated": result.n_up_regulated,
                    "n_down_regulated": result.n_down_regulated,
                    "n_missing_padj": result.n_missing_padj,
                    "percent_significant": (
                        round(100 * result.n_significant / result.n_tested, 2)
                        if result.n_tested
                        else 0
                    ),
                    "min_padj": result.min_padj,
                    "max_abs_logfc": result.max_abs_logfc,
                    "execution_time_s": (
                        round(result.execution_time, 2) if result.execution_time else None
                    ),
                }
                for name, result in results.items()
            ]
        ).set_index("contrast")

        return self._stamp("summary", summary_df)
