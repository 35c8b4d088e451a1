"""
Core DegFlow analysis orchestrator
"""

import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import matplotlib.pyplot as plt
import pandas as pd

from .annotation import IdentifierMap, build_identifier_map
from .config import Config, load_config, validate_config
from .data import load_count_matrix, load_sample_metadata
from .differential import DifferentialAnalyzer, DifferentialResult, ModelFitter
from .utils import get_logger, setup_logging, validate_environment
from .visualization import (plot_gene_heatmap, plot_pca,
                            plot_sample_distances, plot_volcano, save_figure)

logger = get_logger(__name__)


class DegFlowAnalysis:
    """
    Main orchestrator for the DegFlow differential expression pipeline

    Stages run strictly in order: load, filter, align, fit, annotate, report.
    Every stage consumes the complete output of the previous one and any
    pipeline error aborts the run.
    """

    def __init__(
        self,
        config: Union[str, Path, Config, Dict[str, Any]],
        log_level: str = "INFO",
        log_file: Optional[Union[str, Path]] = None,
        fitter: Optional[ModelFitter] = None,
        identifier_map: Optional[IdentifierMap] = None,
        configure_logging: bool = True,
    ):
        """
        Initialize DegFlow analysis

        Args:
            config: Configuration file path, Config object, or config dict
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file path
            fitter: Model fitting backend overriding the configured method
            identifier_map: Symbol lookup overriding the configured source
        """
        if configure_logging:
            setup_logging(level=log_level, log_file=log_file)
        logger.info("Initializing DegFlow analysis pipeline")

        if isinstance(config, (str, Path)):
            self.config = load_config(config)
        elif isinstance(config, dict):
            self.config = Config(**config)
        elif isinstance(config, Config):
            self.config = config
        else:
            raise ValueError(
                "Invalid config type. Expected str, Path, dict, or Config object"
            )

        self._validate()

        if identifier_map is None:
            identifier_map = build_identifier_map(
                self.config.annotation, self.config.annotation_file, self.config.r_config
            )

        self.analyzer = DifferentialAnalyzer(
            self.config, fitter=fitter, identifier_map=identifier_map
        )

        self.counts: Optional[pd.DataFrame] = None
        self.metadata: Optional[pd.DataFrame] = None
        self.results: Dict[str, DifferentialResult] = {}
        self.plots: Dict[str, List[Path]] = {}
        self.execution_times: Dict[str, float] = {}

    def _validate(self) -> None:
        issues = validate_config(self.config)
        if issues:
            logger.warning("Configuration issues found:")
            for issue in issues:
                logger.warning(f"  - {issue}")

        validate_environment(require_r=self.config.differential.get("method") == "DESeq2")

        Path(self.config.output_dir).mkdir(parents=True, exist_ok=True)

    def load_inputs(
        self,
        counts_file: Optional[Union[str, Path]] = None,
        metadata_file: Optional[Union[str, Path]] = None,
    ) -> None:
        """Load the count matrix and sample metadata"""
        input_params = self.config.input

        counts_file = counts_file or self.config.counts_file
        metadata_file = metadata_file or self.config.metadata_file
        if counts_file is None or metadata_file is None:
            raise ValueError("Both counts_file and metadata_file must be configured")

        self.counts = load_count_matrix(
            counts_file,
            id_column=input_params.get("gene_id_column"),
            drop_columns=input_params.get("drop_columns", ()),
            sep=input_params.get("sep", "\t"),
        )
        self.metadata = load_sample_metadata(
            metadata_file,
            sample_column=input_params.get("sample_id_column"),
            sep=input_params.get("sep", "\t"),
        )

    def run_full_pipeline(
        self,
        counts: Optional[pd.DataFrame] = None,
        metadata: Optional[pd.DataFrame] = None,
        make_plots: bool = True,
    ) -> Dict[str, DifferentialResult]:
        """
        Run the complete pipeline

        Args:
            counts: Count matrix; loaded from the configured file when omitted
            metadata: Sample metadata; loaded from the configured file when omitted
            make_plots: Produce the diagnostic plots

        Returns:
            Dictionary of contrast name -> DifferentialResult
        """
        logger.info("=" * 60)
        logger.info("Starting DegFlow differential expression pipeline")
        logger.info("=" * 60)

        start_time = time.time()

        self._timed("load", self._load_step, counts, metadata)
        self.results = self._timed(
            "differential_analysis",
            self.analyzer.run_differential_analysis,
            self.counts,
            self.metadata,
        )
        if make_plots:
            self._timed("visualization", self.run_visualization)

        self.execution_times["total"] = time.time() - start_time
        self._log_summary()

        return self.results

    def _load_step(
        self, counts: Optional[pd.DataFrame], metadata: Optional[pd.DataFrame]
    ) -> None:
        if counts is not None and metadata is not None:
            self.counts, self.metadata = counts, metadata
        else:
            self.load_inputs()

    def _timed(self, step: str, func, *args, **kwargs):
        logger.info(f"{'=' * 20} STEP: {step.upper()} {'=' * 20}")
        step_start = time.time()
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Step {step} failed: {e}")
            raise
        finally:
            self.execution_times[step] = time.time() - step_start
            logger.info(f"Step {step} finished in {self.execution_times[step]:.2f} seconds")

    def run_visualization(self) -> Dict[str, List[Path]]:
        """Create the diagnostic plots for every contrast result"""

        if not self.results:
            raise RuntimeError("Differential analysis must be run before visualization")

        viz = self.config.visualization
        formats = viz.get("save_formats", ["png"])
        dpi = viz.get("dpi", 300)
        plot_dir = Path(self.config.output_dir) / "plots"
        stem = f"{self.config.project_name}_{self.config.version}"

        # sample-level plots depend only on the VST, shared by all contrasts
        first = next(iter(self.results.values()))
        metadata = self.metadata.loc[first.vst.columns]

        grid = plot_sample_distances(
            first.vst, metadata, tuple(viz["distance_annotation"])
        )
        self.plots["sample_distances"] = save_figure(
            grid.fig, plot_dir / f"{stem}_sample_distances", formats, dpi
        )
        plt.close(grid.fig)

        fig = plot_pca(
            first.vst,
            metadata,
            color_by=viz["pca_color"],
            shape_by=viz.get("pca_shape"),
            n_top=viz.get("pca_n_top", 500),
        )
        self.plots["pca"] = save_figure(fig, plot_dir / f"{stem}_pca", formats, dpi)
        plt.close(fig)

        for name, result in self.results.items():
            fig = plot_volcano(
                result.results_table,
                fdr_threshold=result.fdr_threshold,
                logfc_threshold=result.logfc_threshold,
                symbol_column=self.analyzer.symbol_column,
                title=name,
            )
            self.plots[f"{name}_volcano"] = save_figure(
                fig, plot_dir / f"{stem}_{name}_volcano", formats, dpi
            )
            plt.close(fig)

            genes = viz.get("heatmap_genes") or []
            if genes:
                grid = plot_gene_heatmap(
                    result.vst,
                    result.results_table,
                    genes,
                    metadata,
                    tuple(viz["heatmap_annotation"]),
                    symbol_column=self.analyzer.symbol_column,
                    cmap=viz.get("cmap", "viridis"),
                )
                self.plots[f"{name}_gene_heatmap"] = save_figure(
                    grid.fig, plot_dir / f"{stem}_{name}_gene_heatmap", formats, dpi
                )
                plt.close(grid.fig)

        return self.plots

    def _log_summary(self) -> None:
        logger.info("=" * 50)
        logger.info("DEGFLOW PIPELINE SUMMARY")
        logger.info("=" * 50)

        for step, exec_time in self.execution_times.items():
            logger.info(f"  {step}: {exec_time:.2f} seconds")

        for name, result in self.results.items():
            logger.info(
                f"  {name}: {result.n_significant} significant of {result.n_tested} tested"
            )
            for label, path in result.output_files.items():
                logger.info(f"    {label}: {path}")

    def get_results(self) -> Dict[str, DifferentialResult]:
        """Get all contrast results"""
        return self.results

    def get_execution_times(self) -> Dict[str, float]:
        """Get execution times for all steps"""
        return self.execution_times
