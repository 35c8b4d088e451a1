"""
Identifier-to-symbol lookups

An identifier map answers ``lookup(identifier) -> Optional[str]``. When one
identifier has several candidate symbols the first one seen wins, mirroring
``AnnotationDbi::mapIds(multiVals = "first")``.
"""

import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import pandas as pd

from ..exceptions import AnnotationError, FormatError, InputNotFoundError
from ..utils import RInterface, get_logger, r_string_vector

logger = get_logger(__name__)

_VERSION_SUFFIX = re.compile(r"\.\d+$")


def strip_version(identifier: str) -> str:
    """``ENSG00000141510.17`` -> ``ENSG00000141510``"""
    return _VERSION_SUFFIX.sub("", str(identifier))


class IdentifierMap(ABC):
    """Many-to-one mapping from stable gene identifiers to display symbols"""

    @abstractmethod
    def lookup(self, identifier: str) -> Optional[str]:
        """Symbol for ``identifier``, or None when unmapped"""


class TableIdentifierMap(IdentifierMap):
    """Identifier map backed by an in-memory table"""

    def __init__(
        self,
        mapping: Union[Mapping[str, Optional[str]], Iterable] = None,
        strip_versions: bool = True,
    ):
        self.strip_versions = strip_versions
        self._symbols: Dict[str, str] = {}
        self.n_ambiguous = 0

        pairs = mapping.items() if isinstance(mapping, Mapping) else (mapping or [])

        ambiguous = set()
        for identifier, symbol in pairs:
            if symbol is None or pd.isna(symbol) or not str(symbol).strip():
                continue
            key = self._key(identifier)
            symbol = str(symbol).strip()
            if key in self._symbols:
                if self._symbols[key] != symbol:
                    ambiguous.add(key)
                continue
            self._symbols[key] = symbol

        self.n_ambiguous = len(ambiguous)
        if ambiguous:
            logger.info(
                f"{len(ambiguous)} identifiers map to several symbols; keeping the first"
            )

    def _key(self, identifier: str) -> str:
        identifier = str(identifier).strip()
        return strip_version(identifier) if self.strip_versions else identifier

    def lookup(self, identifier: str) -> Optional[str]:
        return self._symbols.get(self._key(identifier))

    def __len__(self) -> int:
        return len(self._symbols)

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        id_column: str = "gene_id",
        symbol_column: str = "symbol",
        sep: str = "\t",
        strip_versions: bool = True,
    ) -> "TableIdentifierMap":
        """Load a delimited identifier/symbol table"""
        table_path = Path(path)
        if not table_path.is_file():
            raise InputNotFoundError(f"Annotation file not found: {table_path}")

        table = pd.read_csv(table_path, sep=sep, dtype=str)
        missing = [col for col in (id_column, symbol_column) if col not in table.columns]
        if missing:
            raise FormatError(f"Annotation file {table_path} lacks columns {missing}")

        logger.info(f"Loaded {len(table)} annotation rows from {table_path}")
        return cls(
            zip(table[id_column], table[symbol_column]), strip_versions=strip_versions
        )


class OrgDbIdentifierMap(IdentifierMap):
    """Identifier map resolved through a Bioconductor ``org.*.eg.db`` package"""

    def __init__(
        self,
        orgdb: str = "org.Hs.eg.db",
        key_type: str = "ENSEMBL",
        r_interface: Optional[RInterface] = None,
        strip_versions: bool = True,
    ):
        self.orgdb = orgdb
        self.key_type = key_type
        self.r_interface = r_interface or RInterface()
        self.strip_versions = strip_versions
        self._table = TableIdentifierMap({}, strip_versions=strip_versions)

    def prefetch(self, identifiers: Iterable[str]) -> "OrgDbIdentifierMap":
        """Query the annotation database for a batch of identifiers"""
        keys = sorted(
            {strip_version(i) if self.strip_versions else str(i) for i in identifiers}
        )
        if not keys:
            return self

        working_dir = Path(tempfile.mkdtemp(prefix="degflow_orgdb_"))
        pd.Series(keys, name="key").to_csv(working_dir / "keys.csv", index=False)

        script = f"""
suppressPackageStartupMessages(library(AnnotationDbi))
suppressPackageStartupMessages(library({self.orgdb}))
keys <- read.csv("keys.csv", stringsAsFactors = FALSE)$key
symbols <- mapIds({self.orgdb}, keys = keys, column = "SYMBOL",
                  keytype = {r_string_vector([self.key_type])}, multiVals = "first")
write.csv(data.frame(key = keys, symbol = unname(symbols)), "symbols.csv",
          row.names = FALSE)
"""
        result = self.r_interface.run_script(script, working_dir)
        if not result["success"]:
            raise AnnotationError(
                f"Symbol lookup through {self.orgdb} failed: {result.get('error')}"
            )

        symbols = pd.read_csv(working_dir / "symbols.csv", dtype=str)
        self._table = TableIdentifierMap(
            zip(symbols["key"], symbols["symbol"]), strip_versions=self.strip_versions
        )
        logger.info(f"Resolved {len(self._table)}/{len(keys)} identifiers via {self.orgdb}")
        return self

    def lookup(self, identifier: str) -> Optional[str]:
        return self._table.lookup(identifier)


def build_identifier_map(
    params: Dict[str, Any],
    annotation_file: Optional[Union[str, Path]] = None,
    r_config: Optional[Dict[str, Any]] = None,
) -> IdentifierMap:
    """Create the identifier map selected by the ``annotation`` config section"""
    source = params.get("source", "table")
    strip_versions = params.get("strip_version", True)

    if source == "orgdb":
        return OrgDbIdentifierMap(
            orgdb=params.get("orgdb", "org.Hs.eg.db"),
            key_type=params.get("key_type", "ENSEMBL"),
            r_interface=RInterface(r_config),
            strip_versions=strip_versions,
        )

    if source == "table" and annotation_file:
        return TableIdentifierMap.from_file(
            annotation_file,
            id_column=params.get("id_column", "gene_id"),
            symbol_column=params.get("symbol_column", "symbol"),
            sep=params.get("sep", "\t"),
            strip_versions=strip_versions,
        )

    if source not in ("table", "none"):
        raise ValueError(f"Unknown annotation source: {source}")

    logger.warning("No annotation source configured; identifiers will be used as symbols")
    return TableIdentifierMap({}, strip_versions=strip_versions)
