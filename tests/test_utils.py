import logging

import pytest

from degflow.utils import (RInterface, get_logger, log_execution_time,
                           r_string_vector, setup_logging,
                           validate_environment, validate_python_packages,
                           validate_r_environment)
from degflow.utils import r_utils


def test_get_logger_namespaces_under_package():
    assert get_logger("degflow.data.loader").name == "degflow.data.loader"
    assert get_logger("scripts").name == "degflow.scripts"


def test_setup_logging_writes_log_file(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    logger = setup_logging(level="DEBUG", log_file=log_file, use_colors=False)

    get_logger("degflow.test").debug("hello from the pipeline")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logger.name == "degflow"
    assert "hello from the pipeline" in log_file.read_text()


def test_log_execution_time_reraises():
    @log_execution_time
    def _boom():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        _boom()


def test_r_string_vector_escapes_quotes():
    assert r_string_vector(["a", 'b"c']) == 'c("a", "b\\"c")'
    assert r_string_vector([]) == "c()"


def test_validate_python_packages():
    status = validate_python_packages(["pandas", "definitely_not_a_module_xyz"])
    assert status == {"pandas": True, "definitely_not_a_module_xyz": False}


def test_run_script_without_r(monkeypatch):
    def _missing(*args, **kwargs):
        raise FileNotFoundError("R")

    monkeypatch.setattr(r_utils.subprocess, "run", _missing)
    interface = RInterface({"timeout": 5})

    assert not interface.check_r_available()
    assert interface.run_script("cat(1)")["success"] is False
    assert interface.missing_packages(["DESeq2"]) == ["DESeq2"]
    assert interface.install_packages(["DESeq2"]) == ["DESeq2"]


def test_environment_reports_missing_r(monkeypatch):
    def _missing(*args, **kwargs):
        raise FileNotFoundError("R")

    monkeypatch.setattr(r_utils.subprocess, "run", _missing)

    report = validate_r_environment(["DESeq2"])
    assert report == {"r_available": False, "r_version": None, "packages": {}}
    assert "R not available" in validate_environment(require_r=True)
