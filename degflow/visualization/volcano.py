"""
Volcano plot of a differential expression results table
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from ..differential.results import classify_results
from ..exceptions import EmptySelectionError
from .common import save_figure

REGULATION_COLORS = {
    "Up-regulated": "#E69F00",
    "Down-regulated": "#56B4E9",
    "Not Significant": "#BBBBBB",
}


def plot_volcano(
    results: pd.DataFrame,
    fdr_threshold: float = 0.05,
    logfc_threshold: float = 1.0,
    label_top: int = 10,
    symbol_column: str = "symbol",
    title: str = "Volcano plot",
    point_size: float = 8,
    alpha: float = 0.6,
    figsize: Tuple[float, float] = (8, 6),
    output_file: Optional[Union[str, Path]] = None,
) -> plt.Figure:
    """Plot log2 fold change against -log10 adjusted p-value"""

    plot_data = results.dropna(subset=["padj", "log2FoldChange"])
    if plot_data.empty:
        raise EmptySelectionError("No genes with adjusted p-values to plot")

    if "regulation" not in plot_data.columns:
        plot_data = classify_results(plot_data, fdr_threshold, logfc_threshold)

    # padj of exactly 0 would be infinite on the log scale
    floor = plot_data.loc[plot_data["padj"] > 0, "padj"].min()
    floor = floor if pd.notna(floor) else 1e-300
    neg_log_padj = -np.log10(plot_data["padj"].clip(lower=floor))

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    for regulation, color in REGULATION_COLORS.items():
        mask = plot_data["regulation"] == regulation
        ax.scatter(
            plot_data.loc[mask, "log2FoldChange"],
            neg_log_padj[mask],
            c=color,
            s=point_size,
            alpha=alpha,
            label=f"{regulation} ({int(mask.sum())})",
        )

    ax.axhline(-np.log10(fdr_threshold), color="grey", linestyle="--", linewidth=0.8)
    ax.axvline(logfc_threshold, color="grey", linestyle="--", linewidth=0.8)
    ax.axvline(-logfc_threshold, color="grey", linestyle="--", linewidth=0.8)

    if label_top > 0:
        significant = plot_data[plot_data["regulation"] != "Not Significant"]
        top = significant.nsmallest(label_top, "padj")
        for identifier, row in top.iterrows():
            label = row[symbol_column] if symbol_column in top.columns else identifier
            ax.annotate(
                str(label),
                (row["log2FoldChange"], neg_log_padj.loc[identifier]),
                fontsize=7,
                xytext=(3, 3),
                textcoords="offset points",
            )

    ax.set_xlabel("log2 fold change")
    ax.set_ylabel("-log10 adjusted p-value")
    ax.set_title(title)
    ax.legend(loc="upper left", fontsize=8)

    plt.tight_layout()
    if output_file is not None:
        save_figure(fig, output_file)
    return fig
