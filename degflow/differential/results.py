"""
Result containers and post-processing for differential expression tables
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from ..exceptions import FormatError

RESULT_COLUMNS = ["baseMean", "log2FoldChange", "lfcSE", "stat", "pvalue", "padj"]


@dataclass(frozen=True)
class Contrast:
    """Pairwise comparison of two levels of one factor"""

    factor: str
    tested: str
    reference: str

    @classmethod
    def from_dict(cls, spec: Dict[str, Any]) -> "Contrast":
        try:
            return cls(
                factor=str(spec["factor"]),
                tested=str(spec["tested"]),
                reference=str(spec["reference"]),
            )
        except KeyError as e:
            raise FormatError(f"Contrast is missing key {e}: {spec}") from e

    @property
    def name(self) -> str:
        return f"{self.factor}_{self.tested}_vs_{self.reference}"

    def as_list(self) -> List[str]:
        return [self.factor, self.tested, self.reference]


@dataclass
class FitResult:
    """Output of a model fit for one contrast"""

    results: pd.DataFrame
    vst: pd.DataFrame
    size_factors: Optional[pd.Series] = None


def normalize_design(design: str) -> str:
    """Return the design formula with a leading ``~``"""
    formula = str(design).strip()
    if not formula.startswith("~"):
        formula = "~" + formula
    if not formula.lstrip("~").strip():
        raise FormatError("Design formula has no terms")
    return formula


def design_variables(design: str) -> List[str]:
    """Metadata columns referenced by a design formula"""
    rhs = normalize_design(design).lstrip("~")
    variables = []
    for term in re.split(r"[+*:]", rhs):
        term = term.strip()
        # C(x) style wrappers, first argument is the column
        wrapped = re.match(r"\w+\(\s*(\w+)", term)
        if wrapped:
            term = wrapped.group(1)
        if term and term not in ("0", "1") and term not in variables:
            variables.append(term)
    return variables


def check_design(design: str, metadata: pd.DataFrame, contrast: Contrast) -> str:
    """
    Validate a design against metadata and a contrast

    Returns:
        Normalised formula

    Raises:
        FormatError: formula references unknown columns or omits the contrast factor
    """
    formula = normalize_design(design)
    variables = design_variables(formula)

    missing = [var for var in variables if var not in metadata.columns]
    if missing:
        raise FormatError(f"Design formula references unknown columns: {missing}")

    if contrast.factor not in variables:
        raise FormatError(
            f"Contrast factor '{contrast.factor}' is not part of design {formula}"
        )
    return formula


def sort_results(results: pd.DataFrame, column: str = "padj") -> pd.DataFrame:
    """Stable sort by adjusted p-value; missing values last in input order"""
    return results.sort_values(column, ascending=True, kind="mergesort", na_position="last")


def classify_results(
    results: pd.DataFrame,
    fdr_threshold: float = 0.05,
    logfc_threshold: float = 1.0,
) -> pd.DataFrame:
    """Add a ``regulation`` column: Up-regulated, Down-regulated or Not Significant"""

    results = results.copy()
    results["regulation"] = "Not Significant"

    significant = results["padj"].notna() & (results["padj"] <= fdr_threshold)
    up_mask = significant & (results["log2FoldChange"] > logfc_threshold)
    down_mask = significant & (results["log2FoldChange"] < -logfc_threshold)

    results.loc[up_mask, "regulation"] = "Up-regulated"
    results.loc[down_mask, "regulation"] = "Down-regulated"

    return results


def summarize_results(results: pd.DataFrame) -> Dict[str, Any]:
    """Summary counts of a classified results table"""

    stats = {
        "n_tested": int(results["pvalue"].notna().sum()),
        "n_up_regulated": int((results["regulation"] == "Up-regulated").sum()),
        "n_down_regulated": int((results["regulation"] == "Down-regulated").sum()),
        "n_missing_padj": int(results["padj"].isna().sum()),
        "min_padj": float(results["padj"].min()) if results["padj"].notna().any() else None,
        "max_abs_logfc": (
            float(np.abs(results["log2FoldChange"]).max())
            if results["log2FoldChange"].notna().any()
            else None
        ),
    }
    stats["n_significant"] = stats["n_up_regulated"] + stats["n_down_regulated"]
    return stats
