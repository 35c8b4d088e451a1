"""
Principal component analysis of samples from variance-stabilized data
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.decomposition import PCA

from ..exceptions import EmptySelectionError, InvalidLevelError
from ..utils import get_logger
from .common import save_figure

logger = get_logger(__name__)


def compute_pca(
    vst: pd.DataFrame, n_top: int = 500, n_components: int = 2
) -> Tuple[pd.DataFrame, np.ndarray]:
    """
    Project samples onto principal components of the most variable genes

    Genes are ranked by variance across samples and the top ``n_top`` are
    used, matching DESeq2's ``plotPCA``.

    Returns:
        (coordinates indexed by sample with PC1.. columns, explained variance ratios)
    """
    if vst.empty:
        raise EmptySelectionError("Variance-stabilized matrix is empty")

    n_samples = vst.shape[1]
    if n_samples < n_components:
        raise EmptySelectionError(
            f"PCA needs at least {n_components} samples, got {n_samples}"
        )

    variance = vst.var(axis=1, ddof=1)
    top_genes = variance.sort_values(ascending=False, kind="mergesort").index[:n_top]
    data = vst.loc[top_genes].T.to_numpy(dtype=float)

    if data.shape[1] < n_components:
        raise EmptySelectionError(
            f"PCA needs at least {n_components} genes, got {data.shape[1]}"
        )

    pca = PCA(n_components=n_components)
    coords = pca.fit_transform(data)

    columns = [f"PC{i + 1}" for i in range(n_components)]
    coordinates = pd.DataFrame(coords, index=vst.columns, columns=columns)

    logger.debug(
        f"PCA on {len(top_genes)} genes: explained variance {pca.explained_variance_ratio_}"
    )
    return coordinates, pca.explained_variance_ratio_


def plot_pca(
    vst: pd.DataFrame,
    metadata: pd.DataFrame,
    color_by: str,
    shape_by: Optional[str] = None,
    n_top: int = 500,
    figsize: Tuple[float, float] = (8, 6),
    label_samples: bool = True,
    output_file: Optional[Union[str, Path]] = None,
) -> plt.Figure:
    """
    Scatter of samples on PC1/PC2 with axis labels giving percent variance

    Args:
        vst: Variance-stabilized matrix, genes x samples
        metadata: Sample metadata indexed by sample ID
        color_by: Metadata column encoded as colour
        shape_by: Metadata column encoded as marker shape
        n_top: Number of most variable genes used
        label_samples: Write each sample ID next to its point
        output_file: Optional path the figure is saved to as PNG
    """
    for column in filter(None, (color_by, shape_by)):
        if column not in metadata.columns:
            raise InvalidLevelError(f"Column '{column}' not found in metadata")

    coordinates, explained = compute_pca(vst, n_top=n_top)

    plot_data = coordinates.copy()
    plot_data[color_by] = metadata.loc[plot_data.index, color_by].astype(str).values
    if shape_by and shape_by != color_by:
        plot_data[shape_by] = metadata.loc[plot_data.index, shape_by].astype(str).values

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    sns.scatterplot(
        data=plot_data,
        x="PC1",
        y="PC2",
        hue=color_by,
        style=shape_by,
        s=80,
        ax=ax,
    )

    if label_samples:
        for sample, row in plot_data.iterrows():
            ax.annotate(
                str(sample),
                (row["PC1"], row["PC2"]),
                textcoords="offset points",
                xytext=(5, 5),
                fontsize=8,
            )

    ax.set_xlabel(f"PC1: {explained[0] * 100:.0f}% variance")
    ax.set_ylabel(f"PC2: {explained[1] * 100:.0f}% variance")
    ax.set_title("PCA of samples")
    ax.legend(bbox_to_anchor=(1.02, 1), loc="upper left", borderaxespad=0)

    plt.tight_layout()
    if output_file is not None:
        save_figure(fig, output_file)
    return fig
