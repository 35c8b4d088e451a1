"""
Alignment of sample metadata with count matrix columns
"""

from typing import Dict, Optional, Sequence

import pandas as pd
from pandas.api.types import is_object_dtype, is_string_dtype

from ..exceptions import InvalidLevelError, SampleMismatchError
from ..utils import get_logger

logger = get_logger(__name__)


def _is_textual(series: pd.Series) -> bool:
    if isinstance(series.dtype, pd.CategoricalDtype):
        return False
    return is_object_dtype(series.dtype) or is_string_dtype(series.dtype)


def set_reference_level(metadata: pd.DataFrame, factor: str, level: str) -> pd.DataFrame:
    """
    Return a copy of ``metadata`` with ``level`` as the first category of ``factor``

    Raises:
        InvalidLevelError: the factor column is absent or ``level`` is not observed
    """
    if factor not in metadata.columns:
        raise InvalidLevelError(f"Factor '{factor}' not found in metadata columns")

    column = metadata[factor]
    if not isinstance(column.dtype, pd.CategoricalDtype):
        column = column.astype(str).astype("category")

    observed = [str(value) for value in pd.unique(column.dropna())]
    if str(level) not in observed:
        raise InvalidLevelError(
            f"Reference level '{level}' not among levels of '{factor}': {sorted(observed)}"
        )

    categories = [str(c) for c in column.cat.categories]
    column = column.cat.rename_categories(categories)
    ordered = [str(level)] + [c for c in categories if c != str(level)]

    aligned = metadata.copy()
    aligned[factor] = column.cat.reorder_categories(ordered)
    return aligned


def align_metadata(
    metadata: pd.DataFrame,
    sample_order: Sequence[str],
    reference_levels: Optional[Dict[str, str]] = None,
) -> pd.DataFrame:
    """
    Align metadata rows to the count matrix sample order

    Rows are reordered (and subset) to exactly ``sample_order``, textual
    columns become categoricals with sorted observed levels, and each
    ``factor -> level`` in ``reference_levels`` becomes that factor's baseline.
    Row ``i`` of the result corresponds to count matrix column ``i``.

    Raises:
        SampleMismatchError: a sample has no metadata row
        InvalidLevelError: a reference level is not observed
    """
    sample_order = [str(sample) for sample in sample_order]
    index = metadata.index.astype(str)

    missing = [sample for sample in sample_order if sample not in set(index)]
    if missing:
        raise SampleMismatchError(missing)

    extra = len(set(index) - set(sample_order))
    if extra:
        logger.info(f"Dropping {extra} metadata rows without count data")

    aligned = metadata.copy()
    aligned.index = index
    aligned = aligned.loc[sample_order]

    for column in aligned.columns:
        if _is_textual(aligned[column]):
            values = aligned[column].astype(str)
            aligned[column] = pd.Categorical(values, categories=sorted(values.unique()))

    for factor, level in (reference_levels or {}).items():
        aligned = set_reference_level(aligned, factor, level)
        logger.debug(f"Reference level of '{factor}' set to '{level}'")

    return aligned
