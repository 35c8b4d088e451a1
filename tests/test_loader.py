import numpy as np
import pandas as pd
import pytest

from degflow.data import load_count_matrix, load_sample_metadata, write_table
from degflow.exceptions import DegFlowError, FormatError, InputNotFoundError


def _write(path, text):
    path.write_text(text)
    return path


def test_load_count_matrix_indexes_by_first_column_and_rounds(tmp_path):
    path = _write(
        tmp_path / "counts.tsv",
        "gene_id\ttranscript_id(s)\tS1\tS2\n"
        "G1\tT1,T2\t10.4\t3.6\n"
        "G2\tT3\t0\t7\n",
    )
    counts = load_count_matrix(path)

    assert list(counts.index) == ["G1", "G2"]
    assert counts.index.name == "gene_id"
    assert list(counts.columns) == ["S1", "S2"]
    assert counts.loc["G1", "S1"] == 10
    assert counts.loc["G1", "S2"] == 4
    assert all(dtype == np.int64 for dtype in counts.dtypes)


def test_load_count_matrix_explicit_id_column(tmp_path):
    path = _write(tmp_path / "counts.csv", "S1,gene,S2\n1,G1,2\n3,G2,4\n")
    counts = load_count_matrix(path, id_column="gene", sep=",")
    assert list(counts.index) == ["G1", "G2"]
    assert list(counts.columns) == ["S1", "S2"]


def test_missing_count_file_is_input_not_found(tmp_path):
    with pytest.raises(InputNotFoundError) as excinfo:
        load_count_matrix(tmp_path / "absent.tsv")
    assert isinstance(excinfo.value, FileNotFoundError)
    assert isinstance(excinfo.value, DegFlowError)


def test_non_numeric_count_names_gene_and_sample(tmp_path):
    path = _write(tmp_path / "counts.tsv", "gene_id\tS1\tS2\nG1\t1\t2\nG2\tabc\t4\n")
    with pytest.raises(FormatError, match="G2.*S1"):
        load_count_matrix(path)


def test_empty_count_cell_is_rejected(tmp_path):
    path = _write(tmp_path / "counts.tsv", "gene_id\tS1\tS2\nG1\t1\t\n")
    with pytest.raises(FormatError):
        load_count_matrix(path)


@pytest.mark.parametrize("cell", ["inf", "-inf"])
def test_infinite_count_names_gene_and_sample(tmp_path, cell):
    path = _write(tmp_path / "counts.tsv", f"gene_id\tS1\tS2\nG1\t10\t{cell}\n")
    with pytest.raises(FormatError, match="G1.*S2"):
        load_count_matrix(path)


def test_negative_counts_are_rejected(tmp_path):
    path = _write(tmp_path / "counts.tsv", "gene_id\tS1\tS2\nG1\t1\t-2\n")
    with pytest.raises(FormatError, match="negative"):
        load_count_matrix(path)


def test_duplicate_gene_identifiers_are_rejected(tmp_path):
    path = _write(tmp_path / "counts.tsv", "gene_id\tS1\nG1\t1\nG1\t2\n")
    with pytest.raises(FormatError, match="duplicate"):
        load_count_matrix(path)


def test_missing_identifier_column_is_rejected(tmp_path):
    path = _write(tmp_path / "counts.tsv", "gene_id\tS1\nG1\t1\n")
    with pytest.raises(FormatError, match="ensembl"):
        load_count_matrix(path, id_column="ensembl")


def test_only_secondary_columns_is_rejected(tmp_path):
    path = _write(tmp_path / "counts.tsv", "gene_id\ttranscript_id\nG1\tT1\n")
    with pytest.raises(FormatError, match="no sample columns"):
        load_count_matrix(path)


def test_empty_file_is_format_error(tmp_path):
    path = _write(tmp_path / "counts.tsv", "")
    with pytest.raises(FormatError):
        load_count_matrix(path)


def test_load_sample_metadata_converts_numeric_columns(tmp_path):
    path = _write(
        tmp_path / "meta.tsv",
        "sample\tcondition\tage\nS1\tcontrol\t34\nS2\ttreated\t51\n",
    )
    metadata = load_sample_metadata(path)

    assert list(metadata.index) == ["S1", "S2"]
    assert list(metadata.columns) == ["condition", "age"]
    assert pd.api.types.is_numeric_dtype(metadata["age"])
    assert metadata.loc["S2", "condition"] == "treated"


def test_duplicate_sample_rows_are_rejected(tmp_path):
    path = _write(tmp_path / "meta.tsv", "sample\tcondition\nS1\ta\nS1\tb\n")
    with pytest.raises(FormatError):
        load_sample_metadata(path)


def test_write_table_names_file_by_project_version_and_label(tmp_path):
    frame = pd.DataFrame({"S1": [1, 2]}, index=pd.Index(["G1", "G2"], name="gene_id"))
    path = write_table(frame, tmp_path / "out", "proj", "v2", "filtered_counts")

    assert path.name == "proj_v2_filtered_counts.csv"
    written = pd.read_csv(path, index_col=0)
    assert list(written.index) == ["G1", "G2"]
    assert written["S1"].tolist() == [1, 2]
