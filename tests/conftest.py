import logging

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from degflow.annotation import TableIdentifierMap
from degflow.config import Config
from degflow.differential import ModelFitter

SAMPLES = ["ctrl_1", "ctrl_2", "ctrl_3", "trt_1", "trt_2", "trt_3"]


def make_counts() -> pd.DataFrame:
    data = {
        "ENSG00000000001.5": [100, 120, 110, 400, 420, 390],
        "ENSG00000000002.1": [300, 310, 290, 80, 70, 90],
        "ENSG00000000003.2": [50, 55, 60, 52, 58, 49],
        "ENSG00000000004.1": [20, 25, 22, 24, 21, 23],
        "ENSG00000000005.1": [0, 0, 0, 0, 0, 0],
        "ENSG00000000006.1": [5, 4, 6, 5, 3, 7],
        "ENSG00000000007.1": [15, 10, 12, 14, 11, 13],
    }
    counts = pd.DataFrame(data, index=SAMPLES).T.astype("int64")
    counts.index.name = "gene_id"
    return counts


def make_metadata() -> pd.DataFrame:
    # shuffled, with one sample that has no counts
    rows = {
        "trt_2": ("treated", "b"),
        "ctrl_1": ("control", "a"),
        "trt_1": ("treated", "a"),
        "ctrl_3": ("control", "c"),
        "extra_9": ("treated", "c"),
        "ctrl_2": ("control", "b"),
        "trt_3": ("treated", "c"),
    }
    metadata = pd.DataFrame.from_dict(rows, orient="index", columns=["condition", "batch"])
    metadata.index.name = "sample"
    return metadata


class FakeFitter(ModelFitter):
    """Deterministic stand-in for the DESeq2 backends"""

    name = "fake"

    def __init__(self, params=None):
        super().__init__(params)
        self.calls = []

    def fit(self, counts, metadata, design, contrast):
        formula = self._check_inputs(counts, metadata, design, contrast)
        self.calls.append(
            (formula, contrast, list(metadata[contrast.factor].cat.categories))
        )

        labels = metadata[contrast.factor].astype(str).to_numpy()
        tested = counts.loc[:, labels == contrast.tested].mean(axis=1)
        reference = counts.loc[:, labels == contrast.reference].mean(axis=1)

        lfc = np.log2((tested + 1) / (reference + 1))
        pvalue = (10 ** (-3 * lfc.abs())).clip(upper=1.0)
        base_mean = counts.mean(axis=1)
        padj = (pvalue * len(counts)).clip(upper=1.0)
        padj = padj.where(base_mean > base_mean.min())

        results = pd.DataFrame(
            {
                "baseMean": base_mean,
                "log2FoldChange": lfc,
                "lfcSE": 0.2,
                "stat": lfc / 0.2,
                "pvalue": pvalue,
                "padj": padj,
            }
        )
        vst = np.log2(counts + 1)
        return self._finalize(
            results, vst, counts, size_factors=pd.Series(1.0, index=counts.columns)
        )


class FailingFitter(ModelFitter):
    name = "failing"

    def fit(self, counts, metadata, design, contrast):
        from degflow.exceptions import ModelConvergenceError

        raise ModelConvergenceError("dispersion fit did not converge")


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def counts():
    return make_counts()


@pytest.fixture
def metadata():
    return make_metadata()


@pytest.fixture
def identifier_map():
    return TableIdentifierMap(
        {"ENSG00000000001": "GeneA", "ENSG00000000002": "GeneB", "ENSG00000000003": "GeneC"}
    )


@pytest.fixture
def config(tmp_path):
    return Config(
        project_name="toy",
        version="v1",
        output_dir=str(tmp_path / "results"),
        visualization={"dpi": 40, "heatmap_genes": ["GeneA", "ENSG00000000002"]},
    )


@pytest.fixture
def write_tsv(tmp_path):
    def _write(name, frame, index=True):
        path = tmp_path / name
        frame.to_csv(path, sep="\t", index=index)
        return path

    return _write
