"""
Gene identifier annotation for DegFlow
"""

from .annotate import annotate_results
from .mapping import (IdentifierMap, OrgDbIdentifierMap, TableIdentifierMap,
                      build_identifier_map, strip_version)

__all__ = [
    "IdentifierMap",
    "TableIdentifierMap",
    "OrgDbIdentifierMap",
    "annotate_results",
    "build_identifier_map",
    "strip_version",
]
