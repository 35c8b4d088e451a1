"""
Loading of count matrices and sample metadata from delimited tables
"""

from pathlib import Path
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from ..exceptions import FormatError, InputNotFoundError
from ..utils import get_logger

logger = get_logger(__name__)

SECONDARY_ID_COLUMNS = ("transcript_id(s)", "transcript_id")


def _read_table(path: Union[str, Path], sep: str, kind: str) -> pd.DataFrame:
    table_path = Path(path)
    if not table_path.is_file():
        raise InputNotFoundError(f"{kind} file not found: {table_path}")

    try:
        return pd.read_csv(table_path, sep=sep, dtype=str, keep_default_na=False)
    except pd.errors.ParserError as e:
        raise FormatError(f"Could not parse {kind} file {table_path}: {e}") from e
    except pd.errors.EmptyDataError as e:
        raise FormatError(f"{kind} file is empty: {table_path}") from e


def _index_by(frame: pd.DataFrame, column: Optional[str], kind: str) -> pd.DataFrame:
    if frame.shape[1] == 0:
        raise FormatError(f"{kind} table has no columns")

    if column is None:
        column = frame.columns[0]
    elif column not in frame.columns:
        raise FormatError(f"Identifier column '{column}' missing from {kind} table")

    ids = frame[column].str.strip()
    if (ids == "").any():
        raise FormatError(f"{kind} table has empty identifiers in '{column}'")

    duplicated = ids[ids.duplicated()].unique()
    if len(duplicated) > 0:
        raise FormatError(
            f"{kind} table has duplicate identifiers: {', '.join(duplicated[:5])}"
        )

    frame = frame.drop(columns=[column])
    frame.index = pd.Index(ids, name=column)
    return frame


def load_count_matrix(
    path: Union[str, Path],
    id_column: Optional[str] = None,
    drop_columns: Iterable[str] = SECONDARY_ID_COLUMNS,
    sep: str = "\t",
) -> pd.DataFrame:
    """
    Load a gene x sample count matrix

    The identifier column (the first column unless ``id_column`` is given)
    becomes the index. Secondary identifier columns listed in
    ``drop_columns`` are removed. Estimated counts are rounded to integers.

    Raises:
        InputNotFoundError: path does not resolve to a file
        FormatError: missing identifier column, non-numeric or negative
            counts, duplicate gene or sample keys
    """
    logger.info(f"Loading count matrix from {path}")

    raw = _read_table(path, sep, "Count matrix")
    counts = _index_by(raw, id_column, "Count matrix")

    to_drop = [col for col in drop_columns if col in counts.columns]
    if to_drop:
        logger.debug(f"Dropping secondary identifier columns: {to_drop}")
        counts = counts.drop(columns=to_drop)

    if counts.shape[1] == 0:
        raise FormatError("Count matrix has no sample columns")

    if counts.columns.duplicated().any():
        raise FormatError("Count matrix has duplicate sample columns")

    numeric = counts.apply(lambda col: pd.to_numeric(col.str.strip(), errors="coerce"))
    bad = ~np.isfinite(numeric)
    if bad.any().any():
        gene, sample = next(
            (g, s) for g, s in zip(*np.nonzero(bad.to_numpy()))
        )
        raise FormatError(
            f"Non-numeric or non-finite count for gene '{counts.index[gene]}' in sample "
            f"'{counts.columns[sample]}': {counts.iat[gene, sample]!r}"
        )

    if (numeric < 0).any().any():
        raise FormatError("Count matrix contains negative values")

    matrix = numeric.round().astype(np.int64)
    matrix.columns = matrix.columns.astype(str)

    logger.info(f"Loaded {matrix.shape[0]} genes x {matrix.shape[1]} samples")
    return matrix


def load_sample_metadata(
    path: Union[str, Path],
    sample_column: Optional[str] = None,
    sep: str = "\t",
) -> pd.DataFrame:
    """
    Load sample metadata indexed by sample ID

    Numeric-looking columns are converted to numbers; everything else stays
    textual until the metadata aligner makes it categorical.
    """
    logger.info(f"Loading sample metadata from {path}")

    raw = _read_table(path, sep, "Metadata")
    metadata = _index_by(raw, sample_column, "Metadata")

    for column in metadata.columns:
        converted = pd.to_numeric(metadata[column], errors="coerce")
        if converted.notna().all():
            metadata[column] = converted

    logger.info(
        f"Loaded metadata for {metadata.shape[0]} samples "
        f"with columns {list(metadata.columns)}"
    )
    return metadata


def write_table(
    frame: pd.DataFrame,
    output_dir: Union[str, Path],
    project_name: str,
    version: str,
    label: str,
) -> Path:
    """Write a checkpoint CSV named ``<project>_<version>_<label>.csv``"""
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    output_file = output_path / f"{project_name}_{version}_{label}.csv"
    frame.to_csv(output_file)

    logger.info(f"Wrote {len(frame)} rows to {output_file}")
    return output_file
