"""
Shared plotting helpers
"""

from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Union

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from ..exceptions import InvalidLevelError
from ..utils import get_logger

logger = get_logger(__name__)


def save_figure(
    fig: plt.Figure,
    output_file: Union[str, Path],
    formats: Iterable[str] = ("png",),
    dpi: int = 300,
) -> List[Path]:
    """Save ``fig`` once per format next to ``output_file``"""
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    saved = []
    for fmt in formats:
        path = output_path.with_suffix(f".{fmt}")
        fig.savefig(path, dpi=dpi, bbox_inches="tight")
        saved.append(path)

    logger.info(f"Saved plot: {', '.join(str(p) for p in saved)}")
    return saved


def annotation_colors(
    metadata: pd.DataFrame, columns: Sequence[str], samples: Sequence[str]
) -> pd.DataFrame:
    """
    Colour bands for ``columns`` of ``metadata``, one row per sample

    Each column gets its own qualitative palette. The same column named
    twice produces a single band.
    """
    missing = [col for col in columns if col not in metadata.columns]
    if missing:
        raise InvalidLevelError(f"Annotation columns not in metadata: {missing}")

    palettes = ["Set2", "Set1", "Dark2", "Pastel1"]
    bands: Dict[str, pd.Series] = {}
    for i, column in enumerate(dict.fromkeys(columns)):
        values = metadata.loc[list(samples), column].astype(str)
        levels = sorted(values.unique())
        colors = sns.color_palette(palettes[i % len(palettes)], len(levels))
        lookup = dict(zip(levels, colors))
        bands[column] = values.map(lookup)

    return pd.DataFrame(bands, index=list(samples))
