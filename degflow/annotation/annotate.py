"""
Annotation of results tables with display symbols
"""

import pandas as pd

from ..utils import get_logger
from .mapping import IdentifierMap

logger = get_logger(__name__)


def annotate_results(
    results: pd.DataFrame,
    identifier_map: IdentifierMap,
    column: str = "symbol",
) -> pd.DataFrame:
    """
    Append a symbol column to a results table indexed by gene identifier

    Unmapped identifiers fall back to the identifier itself, so every row
    gets a symbol. Row order and the other columns are unchanged.
    """
    symbols = []
    n_unmapped = 0
    for identifier in results.index:
        symbol = identifier_map.lookup(identifier)
        if symbol is None:
            n_unmapped += 1
            symbol = str(identifier)
        symbols.append(symbol)

    annotated = results.copy()
    annotated[column] = pd.Series(symbols, index=results.index, dtype=object)

    if n_unmapped:
        logger.info(
            f"{n_unmapped}/{len(results)} identifiers have no symbol; "
            "using the identifier instead"
        )
    return annotated
