"""
R integration utilities for DegFlow

R is optional: it backs the ``DESeq2`` fit method and the ``orgdb``
annotation source. Generated scripts run as batch ``R`` processes inside a
working directory and exchange tables with Python through CSV files.
"""

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

BIOCONDUCTOR_PACKAGES = {
    "DESeq2",
    "AnnotationDbi",
    "SummarizedExperiment",
    "org.Hs.eg.db",
    "org.Mm.eg.db",
    "org.Rn.eg.db",
    "org.Dr.eg.db",
    "org.Dm.eg.db",
}

INSTALL_TIMEOUTS = {"cran": 300, "bioconductor": 1800}


def r_string_vector(values: Iterable[str]) -> str:
    """``["a", 'b"c']`` -> ``c("a", "b\\"c")``"""
    quoted = []
    for value in values:
        escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
        quoted.append(f'"{escaped}"')
    return f"c({', '.join(quoted)})"


class RInterface:
    """Runs R code in batch mode through ``subprocess``"""

    def __init__(self, r_config: Optional[Dict[str, Any]] = None):
        """
        Args:
            r_config: ``r_config`` section of the configuration
                (``r_home``, ``timeout``, ``cran_repos``)
        """
        self.r_config = r_config or {}
        self.r_home = self.r_config.get("r_home")
        self.timeout = self.r_config.get("timeout", 3600)
        self.cran_repos = self.r_config.get("cran_repos", ["https://cloud.r-project.org"])

        if self.r_home:
            os.environ["R_HOME"] = self.r_home

    def _call(
        self, args: List[str], timeout: int, cwd: Optional[Path] = None
    ) -> Optional[subprocess.CompletedProcess]:
        """Run ``R`` with ``args``; None when R is missing or times out"""
        try:
            return subprocess.run(
                ["R", *args],
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError:
            logger.warning("R not found in PATH")
        except subprocess.TimeoutExpired:
            logger.error(f"R call timed out after {timeout} seconds")
        return None

    def r_version(self) -> Optional[str]:
        """First line of ``R --version`` naming the version, or None without R"""
        result = self._call(["--version"], timeout=10)
        if result is None or result.returncode != 0:
            return None
        return next(
            (line.strip() for line in result.stdout.splitlines() if "R version" in line),
            "R (unknown version)",
        )

    def check_r_available(self) -> bool:
        return self.r_version() is not None

    def check_packages(self, packages: List[str]) -> Dict[str, bool]:
        """Map each package name to whether ``requireNamespace`` succeeds"""
        status = {pkg: False for pkg in packages}
        if not packages or not self.check_r_available():
            return status

        script = (
            f"pkgs <- {r_string_vector(packages)}; "
            "ok <- vapply(pkgs, requireNamespace, logical(1), quietly = TRUE); "
            "cat(paste(pkgs, ok, sep = '\\t'), sep = '\\n')"
        )
        result = self._call(["--slave", "-e", script], timeout=60)
        if result is None or result.returncode != 0:
            if result is not None:
                logger.error(f"Error checking R packages: {result.stderr}")
            return status

        for line in result.stdout.splitlines():
            name, _, ok = line.partition("\t")
            if name in status:
                status[name] = ok.strip().upper() == "TRUE"
        return status

    def missing_packages(self, packages: List[str]) -> List[str]:
        """Packages from ``packages`` that are not installed"""
        return [pkg for pkg, ok in self.check_packages(packages).items() if not ok]

    def install_packages(self, packages: List[str]) -> List[str]:
        """
        Install packages from CRAN or, for known Bioconductor packages,
        through BiocManager

        Returns:
            Packages whose installation failed
        """
        if not self.check_r_available():
            logger.error("R not available for package installation")
            return list(packages)

        groups = {
            "cran": [pkg for pkg in packages if pkg not in BIOCONDUCTOR_PACKAGES],
            "bioconductor": [pkg for pkg in packages if pkg in BIOCONDUCTOR_PACKAGES],
        }
        scripts = {
            "cran": lambda pkgs: (
                f"install.packages({r_string_vector(pkgs)}, "
                f"repos = {r_string_vector(self.cran_repos)})"
            ),
            "bioconductor": lambda pkgs: (
                'if (!requireNamespace("BiocManager", quietly = TRUE)) '
                f"install.packages(\"BiocManager\", repos = {r_string_vector(self.cran_repos)}); "
                f"BiocManager::install({r_string_vector(pkgs)}, ask = FALSE, update = FALSE)"
            ),
        }

        failed = []
        for source, pkgs in groups.items():
            if not pkgs:
                continue
            logger.info(f"Installing R packages from {source}: {pkgs}")
            result = self._call(
                ["--slave", "-e", scripts[source](pkgs)], timeout=INSTALL_TIMEOUTS[source]
            )
            if result is None or result.returncode != 0:
                if result is not None:
                    logger.error(f"Error installing R packages: {result.stderr}")
                failed.extend(pkgs)
        return failed

    def run_script(
        self, r_code: str, working_dir: Optional[Union[str, Path]] = None
    ) -> Dict[str, Any]:
        """
        Write ``r_code`` to ``analysis.R`` in ``working_dir`` and run it there

        Returns:
            Dictionary with ``success``, ``output``, ``error``, ``working_dir``
            and ``script_path``
        """
        if not self.check_r_available():
            return {"success": False, "error": "R not available", "output": None}

        working_dir = Path(working_dir or tempfile.mkdtemp(prefix="degflow_r_"))
        working_dir.mkdir(parents=True, exist_ok=True)
        script_path = working_dir / "analysis.R"
        script_path.write_text(r_code)

        outcome = {
            "working_dir": str(working_dir),
            "script_path": str(script_path),
        }

        result = self._call(
            ["--slave", "--no-restore", "--no-save", "-f", str(script_path)],
            timeout=self.timeout,
            cwd=working_dir,
        )
        if result is None:
            outcome.update(success=False, output=None, error="R script execution timed out")
            return outcome

        if result.returncode != 0:
            logger.debug(f"R stderr:\n{result.stderr}")
        outcome.update(
            success=result.returncode == 0,
            output=result.stdout,
            error=result.stderr if result.returncode != 0 else None,
        )
        return outcome
