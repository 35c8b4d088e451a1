"""
Visualization module for DegFlow

Diagnostic plots derived from the variance-stabilized matrix (sample
distances, PCA, gene heatmaps) and from results tables (volcano plots).
Every function receives its data and metadata as arguments.
"""

from .common import annotation_colors, save_figure
from .heatmaps import (plot_gene_heatmap, plot_sample_distances,
                       sample_distance_matrix, select_genes)
from .pca import compute_pca, plot_pca
from .volcano import plot_volcano

__all__ = [
    "sample_distance_matrix",
    "plot_sample_distances",
    "select_genes",
    "plot_gene_heatmap",
    "compute_pca",
    "plot_pca",
    "plot_volcano",
    "annotation_colors",
    "save_figure",
]
