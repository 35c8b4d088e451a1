from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from conftest import SAMPLES, FailingFitter, FakeFitter
from degflow import DegFlowAnalysis
from degflow.annotation import OrgDbIdentifierMap
from degflow.config import Config
from degflow.differential import Contrast, DifferentialAnalyzer
from degflow.exceptions import (AnnotationError, InsufficientDataError,
                                InvalidLevelError, ModelConvergenceError,
                                SampleMismatchError)
from degflow.utils import RInterface, r_utils


def _analyzer(config, identifier_map=None, fitter=None):
    return DifferentialAnalyzer(
        config, fitter=fitter or FakeFitter(), identifier_map=identifier_map
    )


def test_prepare_filters_and_aligns(config, counts, metadata):
    filtered, aligned = _analyzer(config).prepare(counts, metadata)

    assert filtered.shape == (5, 6)
    assert list(aligned.index) == list(filtered.columns) == SAMPLES
    assert (Path(config.output_dir) / "toy_v1_filtered_counts.csv").exists()


def test_run_differential_analysis_results(config, counts, metadata, identifier_map):
    fitter = FakeFitter()
    results = _analyzer(config, identifier_map, fitter).run_differential_analysis(
        counts, metadata
    )

    result = results["condition_treated_vs_control"]
    table = result.results_table

    assert list(table.columns[:6]) == [
        "baseMean",
        "log2FoldChange",
        "lfcSE",
        "stat",
        "pvalue",
        "padj",
    ]
    assert set(table.index[:2]) == {"ENSG00000000001.5", "ENSG00000000002.1"}
    assert table.index[-1] == "ENSG00000000007.1"
    assert np.isnan(table.loc["ENSG00000000007.1", "padj"])

    assert table.loc["ENSG00000000001.5", "symbol"] == "GeneA"
    assert table.loc["ENSG00000000007.1", "symbol"] == "ENSG00000000007.1"
    assert table.loc["ENSG00000000001.5", "log2FoldChange"] > 0
    assert table.loc["ENSG00000000002.1", "log2FoldChange"] < 0

    assert result.n_tested == 5
    assert result.n_up_regulated == 1
    assert result.n_down_regulated == 1
    assert result.n_missing_padj == 1

    # the contrast reference becomes the baseline level
    formula, contrast, categories = fitter.calls[0]
    assert formula == "~condition"
    assert categories == ["control", "treated"]

    assert list(result.vst.columns) == SAMPLES
    assert list(result.vst.index) == list(counts.index.drop(
        ["ENSG00000000005.1", "ENSG00000000006.1"]
    ))


def test_results_and_summary_files(config, counts, metadata):
    _analyzer(config).run_differential_analysis(counts, metadata)
    output_dir = Path(config.output_dir)

    written = pd.read_csv(output_dir / "toy_v1_condition_treated_vs_control_results.csv", index_col=0)
    assert len(written) == 5
    assert "symbol" in written.columns

    summary = pd.read_csv(output_dir / "toy_v1_summary.csv", index_col=0)
    assert summary.loc["condition_treated_vs_control", "n_significant"] == 2


def test_reversed_contrast_flips_fold_changes(config, counts, metadata):
    analyzer = _analyzer(config)
    results = analyzer.run_differential_analysis(
        counts,
        metadata,
        contrasts=[
            {"factor": "condition", "tested": "treated", "reference": "control"},
            Contrast("condition", "control", "treated"),
        ],
        save=False,
    )

    forward = results["condition_treated_vs_control"].results_table["log2FoldChange"]
    reverse = results["condition_control_vs_treated"].results_table["log2FoldChange"]
    pd.testing.assert_series_equal(forward, -reverse.loc[forward.index], check_names=False)
    assert analyzer.fitter.calls[1][2] == ["treated", "control"]


def test_unknown_contrast_level(config, counts, metadata):
    with pytest.raises(InvalidLevelError):
        _analyzer(config).run_differential_analysis(
            counts,
            metadata,
            contrasts=[{"factor": "condition", "tested": "treated", "reference": "mock"}],
            save=False,
        )


def test_sample_without_metadata_aborts(config, counts, metadata):
    with pytest.raises(SampleMismatchError):
        _analyzer(config).run_differential_analysis(
            counts, metadata.drop(index="trt_3"), save=False
        )


def test_no_contrasts_configured(config, counts, metadata):
    with pytest.raises(ValueError, match="contrasts"):
        _analyzer(config).run_differential_analysis(counts, metadata, contrasts=[])


def test_fit_failure_propagates(config, counts, metadata):
    with pytest.raises(ModelConvergenceError):
        _analyzer(config, fitter=FailingFitter()).run_differential_analysis(
            counts, metadata, save=False
        )


def test_symbol_lookup_without_r_aborts(config, counts, metadata, monkeypatch):
    def _missing(*args, **kwargs):
        raise FileNotFoundError("R")

    monkeypatch.setattr(r_utils.subprocess, "run", _missing)
    orgdb = OrgDbIdentifierMap(r_interface=RInterface())

    with pytest.raises(AnnotationError, match="R not available"):
        _analyzer(config, identifier_map=orgdb).run_differential_analysis(
            counts, metadata, save=False
        )


def test_full_pipeline_from_files(config, counts, metadata, identifier_map, write_tsv):
    config.counts_file = str(write_tsv("counts.tsv", counts))
    config.metadata_file = str(write_tsv("metadata.tsv", metadata))

    analysis = DegFlowAnalysis(
        config,
        fitter=FakeFitter(),
        identifier_map=identifier_map,
        configure_logging=False,
    )
    results = analysis.run_full_pipeline()

    assert list(results) == ["condition_treated_vs_control"]
    assert results["condition_treated_vs_control"].n_significant == 2

    plots = analysis.plots
    for key in (
        "sample_distances",
        "pca",
        "condition_treated_vs_control_volcano",
        "condition_treated_vs_control_gene_heatmap",
    ):
        assert all(path.exists() for path in plots[key])

    times = analysis.get_execution_times()
    assert {"load", "differential_analysis", "visualization", "total"} <= set(times)


def test_full_pipeline_aborts_when_filter_removes_everything(config, metadata):
    zeros = pd.DataFrame(0, index=["g1", "g2"], columns=SAMPLES)
    analysis = DegFlowAnalysis(config, fitter=FakeFitter(), configure_logging=False)

    with pytest.raises(InsufficientDataError):
        analysis.run_full_pipeline(zeros, metadata)
    assert analysis.results == {}


def test_analysis_accepts_config_dict(tmp_path):
    analysis = DegFlowAnalysis(
        {"output_dir": str(tmp_path / "out"), "annotation": {"source": "none"}},
        fitter=FakeFitter(),
        configure_logging=False,
    )
    assert isinstance(analysis.config, Config)
    assert (tmp_path / "out").is_dir()
