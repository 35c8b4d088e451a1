import pandas as pd
import pytest

from degflow.annotation import (OrgDbIdentifierMap, TableIdentifierMap,
                                annotate_results, build_identifier_map,
                                strip_version)
from degflow.exceptions import AnnotationError, FormatError, InputNotFoundError


class _StubR:
    """Records scripts and writes the symbols table an R session would"""

    def __init__(self, symbols=None, success=True):
        self.symbols = symbols or {}
        self.success = success
        self.scripts = []

    def run_script(self, script, working_dir):
        self.scripts.append(script)
        if self.success:
            keys = pd.read_csv(working_dir / "keys.csv")["key"]
            pd.DataFrame(
                {"key": keys, "symbol": [self.symbols.get(k) for k in keys]}
            ).to_csv(working_dir / "symbols.csv", index=False)
            return {"success": True, "output": "", "error": ""}
        return {"success": False, "output": "", "error": "there is no package"}


def test_strip_version():
    assert strip_version("ENSG00000141510.17") == "ENSG00000141510"
    assert strip_version("ENSG00000141510") == "ENSG00000141510"
    assert strip_version("TP53") == "TP53"


def test_lookup_ignores_version_suffix(identifier_map):
    assert identifier_map.lookup("ENSG00000000001.5") == "GeneA"
    assert identifier_map.lookup("ENSG00000000001") == "GeneA"
    assert identifier_map.lookup("ENSG00000000099.1") is None


def test_first_symbol_wins_for_ambiguous_identifiers():
    mapping = TableIdentifierMap(
        [("ENSG1", "ALPHA"), ("ENSG1", "BETA"), ("ENSG2", "GAMMA"), ("ENSG2", "GAMMA")]
    )
    assert mapping.lookup("ENSG1") == "ALPHA"
    assert mapping.n_ambiguous == 1
    assert len(mapping) == 2


def test_blank_symbols_are_unmapped():
    mapping = TableIdentifierMap([("ENSG1", ""), ("ENSG2", None), ("ENSG3", float("nan"))])
    assert len(mapping) == 0
    assert mapping.lookup("ENSG1") is None


def test_annotate_results_is_total_and_falls_back_to_identifier(identifier_map):
    results = pd.DataFrame(
        {"padj": [0.01, 0.2, None]},
        index=["ENSG00000000002.1", "ENSG00000000009.1", "ENSG00000000001.5"],
    )
    annotated = annotate_results(results, identifier_map)

    assert annotated["symbol"].tolist() == ["GeneB", "ENSG00000000009.1", "GeneA"]
    assert annotated["symbol"].notna().all()
    assert list(annotated.index) == list(results.index)
    assert "symbol" not in results.columns


def test_annotate_results_custom_column(identifier_map):
    results = pd.DataFrame({"padj": [0.1]}, index=["ENSG00000000003.2"])
    annotated = annotate_results(results, identifier_map, column="gene_name")
    assert annotated.loc["ENSG00000000003.2", "gene_name"] == "GeneC"


def test_table_map_from_file(tmp_path):
    path = tmp_path / "annotation.tsv"
    path.write_text("gene_id\tsymbol\nENSG1.2\tALPHA\nENSG2\tBETA\n")

    mapping = TableIdentifierMap.from_file(path)
    assert mapping.lookup("ENSG1") == "ALPHA"
    assert mapping.lookup("ENSG2.7") == "BETA"


def test_table_map_from_file_errors(tmp_path):
    with pytest.raises(InputNotFoundError):
        TableIdentifierMap.from_file(tmp_path / "absent.tsv")

    path = tmp_path / "annotation.tsv"
    path.write_text("id\tname\nENSG1\tALPHA\n")
    with pytest.raises(FormatError, match="gene_id"):
        TableIdentifierMap.from_file(path)


def test_orgdb_map_prefetches_through_r():
    stub = _StubR({"ENSG00000000001": "GeneA"})
    mapping = OrgDbIdentifierMap(r_interface=stub)
    mapping.prefetch(["ENSG00000000001.5", "ENSG00000000002.1"])

    assert mapping.lookup("ENSG00000000001.5") == "GeneA"
    assert mapping.lookup("ENSG00000000002.1") is None
    assert 'multiVals = "first"' in stub.scripts[0]
    assert "org.Hs.eg.db" in stub.scripts[0]


def test_orgdb_failure_aborts_instead_of_falling_back():
    mapping = OrgDbIdentifierMap(r_interface=_StubR(success=False))
    with pytest.raises(AnnotationError, match="org.Hs.eg.db"):
        mapping.prefetch(["ENSG00000000001.5"])


def test_build_identifier_map(tmp_path):
    path = tmp_path / "annotation.tsv"
    path.write_text("gene_id\tsymbol\nENSG1\tALPHA\n")

    table = build_identifier_map({"source": "table"}, path)
    assert table.lookup("ENSG1") == "ALPHA"

    empty = build_identifier_map({"source": "none"})
    assert empty.lookup("ENSG1") is None

    assert isinstance(build_identifier_map({"source": "orgdb"}), OrgDbIdentifierMap)

    with pytest.raises(ValueError, match="biomart"):
        build_identifier_map({"source": "biomart"})
