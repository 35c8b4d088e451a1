import functools

import pandas as pd
import yaml
from click.testing import CliRunner

from conftest import FakeFitter
from degflow import cli
from degflow.core import DegFlowAnalysis


def _use_fake_fitter(monkeypatch):
    monkeypatch.setattr(
        cli,
        "DegFlowAnalysis",
        functools.partial(DegFlowAnalysis, fitter=FakeFitter(), configure_logging=False),
    )


def test_info():
    result = CliRunner().invoke(cli.main, ["info"])

    assert result.exit_code == 0
    assert "DegFlow v" in result.output
    assert "differential" in result.output


def test_init_and_validate_config(tmp_path):
    runner = CliRunner()
    path = tmp_path / "config.yaml"

    result = runner.invoke(cli.main, ["init-config", str(path)])
    assert result.exit_code == 0
    assert yaml.safe_load(path.read_text())["differential"]["method"] == "pydeseq2"

    result = runner.invoke(cli.main, ["validate-config", str(path)])
    assert result.exit_code == 0
    assert "valid" in result.output


def test_validate_config_reports_issues(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"n_threads": 0, "differential": {"method": "limma"}}))

    result = CliRunner().invoke(cli.main, ["validate-config", str(path)])
    assert result.exit_code == 1
    assert "limma" in result.output


def test_filter_command_writes_filtered_counts(tmp_path, counts, write_tsv):
    counts_path = write_tsv("counts.tsv", counts)
    output_dir = tmp_path / "out"

    result = CliRunner().invoke(
        cli.main, ["-q", "filter", str(counts_path), "-o", str(output_dir)]
    )
    assert result.exit_code == 0, result.output
    assert "Kept 5/7 genes" in result.output

    filtered = pd.read_csv(output_dir / "DegFlow_Analysis_v1_filtered_counts.csv", index_col=0)
    assert filtered.shape == (5, 6)


def test_filter_command_fails_on_bad_counts(tmp_path):
    path = tmp_path / "counts.tsv"
    path.write_text("gene_id\tS1\nG1\tx\n")

    result = CliRunner().invoke(cli.main, ["-q", "filter", str(path)])
    assert result.exit_code == 1


def test_run_command(monkeypatch, tmp_path, counts, metadata, write_tsv):
    _use_fake_fitter(monkeypatch)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump({"project_name": "toy", "annotation": {"source": "none"}}))

    result = CliRunner().invoke(
        cli.main,
        [
            "-q",
            "--config",
            str(config_path),
            "run",
            "--counts",
            str(write_tsv("counts.tsv", counts)),
            "--metadata",
            str(write_tsv("metadata.tsv", metadata)),
            "--output",
            str(tmp_path / "results"),
            "--no-plots",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "condition_treated_vs_control: 2 significant" in result.output
    assert (tmp_path / "results" / "toy_v1_condition_treated_vs_control_results.csv").exists()


def test_run_command_exits_on_sample_mismatch(monkeypatch, tmp_path, counts, metadata, write_tsv):
    _use_fake_fitter(monkeypatch)

    result = CliRunner().invoke(
        cli.main,
        [
            "-q",
            "run",
            "--counts",
            str(write_tsv("counts.tsv", counts)),
            "--metadata",
            str(write_tsv("metadata.tsv", metadata.drop(index="ctrl_2"))),
            "--output",
            str(tmp_path / "results"),
        ],
    )

    assert result.exit_code == 1
    assert "ctrl_2" in result.output
