"""
Gene and sample filtering ahead of model fitting

Two stages run in order: an iterative validity filter in the manner of
WGCNA's ``goodSamplesGenes`` (missingness and zero-variance checks), then an
expression-level filter on total counts per gene.
"""

import warnings
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..exceptions import InsufficientDataError
from ..utils import get_logger

logger = get_logger(__name__)


@dataclass
class QualityReport:
    """Outcome of the validity filter"""

    good_genes: pd.Series
    good_samples: pd.Series
    iterations: int

    @property
    def all_ok(self) -> bool:
        return bool(self.good_genes.all() and self.good_samples.all())

    @property
    def n_removed_genes(self) -> int:
        return int((~self.good_genes).sum())

    @property
    def n_removed_samples(self) -> int:
        return int((~self.good_samples).sum())


def _good_genes(
    values: np.ndarray,
    sample_mask: np.ndarray,
    gene_mask: np.ndarray,
    max_missing_fraction: float,
    min_n_samples: int,
    min_variance: float,
) -> np.ndarray:
    subset = values[:, sample_mask]
    n_samples = subset.shape[1]

    present = ~np.isnan(subset)
    n_present = present.sum(axis=1)
    missing_fraction = 1 - n_present / n_samples

    min_present = min(min_n_samples, n_samples)
    with warnings.catch_warnings():
        # rows with fewer than two present values yield NaN
        warnings.simplefilter("ignore", category=RuntimeWarning)
        variance = np.nanvar(subset, axis=1, ddof=1)
    variance = np.nan_to_num(variance, nan=0.0)

    return (
        gene_mask
        & (missing_fraction < max_missing_fraction)
        & (n_present >= min_present)
        & (variance > min_variance)
    )


def _good_samples(
    values: np.ndarray,
    gene_mask: np.ndarray,
    sample_mask: np.ndarray,
    max_missing_fraction: float,
    min_n_genes: int,
) -> np.ndarray:
    subset = values[gene_mask, :]
    n_genes = subset.shape[0]

    present = ~np.isnan(subset)
    n_present = present.sum(axis=0)
    missing_fraction = 1 - n_present / n_genes

    min_present = min(min_n_genes, n_genes)
    return (
        sample_mask
        & (missing_fraction < max_missing_fraction)
        & (n_present >= min_present)
    )


def good_samples_genes(
    counts: pd.DataFrame,
    max_missing_fraction: float = 0.5,
    min_n_samples: int = 4,
    min_n_genes: int = 4,
    min_variance: float = 0.0,
    max_iterations: int = 10,
) -> QualityReport:
    """
    Iteratively flag genes and samples with too many missing entries

    Genes are checked over the current good samples and samples over the
    current good genes, alternating until neither set changes or
    ``max_iterations`` passes have run. A gene also fails when its variance
    does not exceed ``min_variance``, which removes all-zero rows.

    Raises:
        InsufficientDataError: no genes or no samples survive
    """
    if counts.empty:
        raise InsufficientDataError("Count matrix is empty")

    values = counts.to_numpy(dtype=float)
    gene_mask = np.ones(values.shape[0], dtype=bool)
    sample_mask = np.ones(values.shape[1], dtype=bool)

    iterations = 0
    while iterations < max_iterations:
        iterations += 1

        new_genes = _good_genes(
            values,
            sample_mask,
            gene_mask,
            max_missing_fraction,
            min_n_samples,
            min_variance,
        )
        if not new_genes.any():
            raise InsufficientDataError(
                f"No genes pass the validity filter (iteration {iterations})"
            )

        new_samples = _good_samples(
            values, new_genes, sample_mask, max_missing_fraction, min_n_genes
        )
        if not new_samples.any():
            raise InsufficientDataError(
                f"No samples pass the validity filter (iteration {iterations})"
            )

        changed = (new_genes != gene_mask).any() or (new_samples != sample_mask).any()
        gene_mask, sample_mask = new_genes, new_samples

        logger.debug(
            f"Validity filter pass {iterations}: {gene_mask.sum()} genes, "
            f"{sample_mask.sum()} samples"
        )

        if not changed:
            break

    return QualityReport(
        good_genes=pd.Series(gene_mask, index=counts.index),
        good_samples=pd.Series(sample_mask, index=counts.columns),
        iterations=iterations,
    )


def filter_by_total_count(counts: pd.DataFrame, min_total_count: float = 50) -> pd.DataFrame:
    """Keep genes whose total count across samples exceeds ``min_total_count``"""
    totals = counts.sum(axis=1, skipna=True)
    return counts.loc[totals > min_total_count].copy()


class FilterManager:
    """Runs the validity and expression-level filters with configured parameters"""

    def __init__(self, params: Optional[Dict[str, Any]] = None):
        params = params or {}
        self.min_total_count = params.get("min_total_count", 50)
        self.max_missing_fraction = params.get("max_missing_fraction", 0.5)
        self.min_n_samples = params.get("min_n_samples", 4)
        self.min_n_genes = params.get("min_n_genes", 4)
        self.min_variance = params.get("min_variance", 0.0)
        self.max_iterations = params.get("max_iterations", 10)

        self.last_report: Optional[QualityReport] = None

    def apply_filters(self, counts: pd.DataFrame) -> pd.DataFrame:
        """
        Apply both filter stages

        Args:
            counts: Gene x sample count matrix (left untouched)

        Returns:
            New count matrix restricted to surviving genes and samples
        """
        n_genes, n_samples = counts.shape

        report = good_samples_genes(
            counts,
            max_missing_fraction=self.max_missing_fraction,
            min_n_samples=self.min_n_samples,
            min_n_genes=self.min_n_genes,
            min_variance=self.min_variance,
            max_iterations=self.max_iterations,
        )
        self.last_report = report

        if report.all_ok:
            logger.info("All genes and samples pass the validity filter")
        else:
            removed_samples = list(report.good_samples.index[~report.good_samples])
            logger.info(
                f"Validity filter removed {report.n_removed_genes} genes and "
                f"{report.n_removed_samples} samples"
            )
            if removed_samples:
                logger.warning(f"Removed samples: {removed_samples}")

        valid = counts.loc[report.good_genes, report.good_samples]

        filtered = filter_by_total_count(valid, self.min_total_count)
        if filtered.empty:
            raise InsufficientDataError(
                f"No genes have a total count above {self.min_total_count}"
            )

        logger.info(
            f"Filtering kept {filtered.shape[0]}/{n_genes} genes and "
            f"{filtered.shape[1]}/{n_samples} samples "
            f"(min_total_count={self.min_total_count})"
        )
        return filtered
