"""
Sample-distance and gene-subset heatmaps from variance-stabilized data
"""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import pandas as pd
import seaborn as sns
from scipy.cluster.hierarchy import linkage
from scipy.spatial.distance import pdist, squareform

from ..annotation.mapping import strip_version
from ..exceptions import EmptySelectionError
from ..utils import get_logger
from .common import annotation_colors, save_figure

logger = get_logger(__name__)


def sample_distance_matrix(vst: pd.DataFrame) -> pd.DataFrame:
    """Euclidean distances between samples (columns of a genes x samples matrix)"""
    if vst.empty:
        raise EmptySelectionError("Variance-stabilized matrix is empty")

    distances = squareform(pdist(vst.T.to_numpy(dtype=float), metric="euclidean"))
    return pd.DataFrame(distances, index=vst.columns, columns=vst.columns)


def plot_sample_distances(
    vst: pd.DataFrame,
    metadata: pd.DataFrame,
    annotation_columns: Tuple[str, str],
    cmap: str = "Blues_r",
    figsize: Tuple[float, float] = (9, 8),
    output_file: Optional[Union[str, Path]] = None,
) -> sns.matrix.ClusterGrid:
    """
    Clustered heatmap of pairwise sample distances

    Args:
        vst: Variance-stabilized matrix, genes x samples
        metadata: Sample metadata indexed by sample ID
        annotation_columns: Two metadata columns drawn as colour bands
        output_file: Optional path the figure is saved to as PNG

    Returns:
        seaborn ClusterGrid
    """
    distances = sample_distance_matrix(vst)
    colors = annotation_colors(metadata, annotation_columns, distances.index)

    clustered = len(distances) > 1
    tree = (
        linkage(squareform(distances.to_numpy(), checks=False), method="complete")
        if clustered
        else None
    )
    grid = sns.clustermap(
        distances,
        row_cluster=clustered,
        col_cluster=clustered,
        row_linkage=tree,
        col_linkage=tree,
        row_colors=colors,
        col_colors=colors,
        cmap=cmap,
        figsize=figsize,
        xticklabels=True,
        yticklabels=True,
    )
    grid.fig.suptitle("Sample-to-sample distances", y=1.02)
    if output_file is not None:
        save_figure(grid.fig, output_file)
    return grid


def select_genes(
    results: pd.DataFrame,
    genes: Sequence[str],
    symbol_column: str = "symbol",
) -> pd.Series:
    """
    Resolve a gene list against a results table

    Entries match by symbol or by identifier, with or without a version
    suffix; a row matched by several entries appears once, at its first
    position.

    Returns:
        Series of symbols indexed by identifier, in caller order

    Raises:
        EmptySelectionError: nothing matches
    """
    if symbol_column in results.columns:
        symbols = results[symbol_column].astype(str)
    else:
        symbols = pd.Series(results.index.astype(str), index=results.index)

    identifiers = results.index.astype(str)
    unversioned = identifiers.map(strip_version)

    selected: List[str] = []
    for gene in genes:
        gene = str(gene)
        hits = (
            (identifiers == gene) | (unversioned == gene) | (symbols.to_numpy() == gene)
        )
        matches = results.index[hits]
        if len(matches) == 0:
            logger.debug(f"Gene '{gene}' not found in results")
        for identifier in matches:
            if identifier not in selected:
                selected.append(identifier)

    if not selected:
        raise EmptySelectionError(f"None of the requested genes were found: {list(genes)}")

    return symbols.loc[selected]


def plot_gene_heatmap(
    vst: pd.DataFrame,
    results: pd.DataFrame,
    genes: Sequence[str],
    metadata: pd.DataFrame,
    annotation_columns: Tuple[str, str],
    symbol_column: str = "symbol",
    z_score: Optional[int] = None,
    cmap: str = "viridis",
    figsize: Optional[Tuple[float, float]] = None,
    output_file: Optional[Union[str, Path]] = None,
) -> sns.matrix.ClusterGrid:
    """
    Heatmap of selected genes with clustered samples and genes in given order

    Args:
        vst: Variance-stabilized matrix, genes x samples
        results: Results table indexed by identifier, with a symbol column
        genes: Symbols and/or identifiers to show
        metadata: Sample metadata indexed by sample ID
        annotation_columns: Two metadata columns drawn as colour bands
        z_score: Passed to ``seaborn.clustermap`` (0 scales each gene)
    """
    selection = select_genes(results, genes, symbol_column)
    present = [identifier for identifier in selection.index if identifier in vst.index]
    if not present:
        raise EmptySelectionError("Selected genes are absent from the expression matrix")

    data = vst.loc[present].copy()
    data.index = selection.loc[present].values
    data.index.name = symbol_column

    colors = annotation_colors(metadata, annotation_columns, data.columns)

    if figsize is None:
        figsize = (max(6, 0.5 * data.shape[1] + 3), max(4, 0.35 * data.shape[0] + 3))

    logger.info(f"Plotting heatmap of {len(data)} genes")
    grid = sns.clustermap(
        data,
        row_cluster=False,
        col_cluster=data.shape[1] > 1,
        col_colors=colors,
        z_score=z_score,
        cmap=cmap,
        figsize=figsize,
        xticklabels=True,
        yticklabels=True,
    )
    if output_file is not None:
        save_figure(grid.fig, output_file)
    return grid
