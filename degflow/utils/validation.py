"""
Environment checks for DegFlow

Checks never raise; they return status mappings or lists of human-readable
issues that callers log or print.
"""

import importlib
import logging
import sys
from typing import Any, Dict, List, Optional

from .r_utils import RInterface

logger = logging.getLogger(__name__)

# import names, not distribution names
CORE_PACKAGES = [
    "numpy",
    "pandas",
    "scipy",
    "matplotlib",
    "seaborn",
    "sklearn",
    "pydeseq2",
    "yaml",
    "click",
    "colorlog",
]

R_PACKAGES = ["DESeq2", "AnnotationDbi"]

MIN_PYTHON = (3, 9)


def validate_python_packages(packages: List[str]) -> Dict[str, bool]:
    """Map each import name to whether it can be imported"""
    status = {}
    for package in packages:
        try:
            importlib.import_module(package)
        except ImportError:
            status[package] = False
        else:
            status[package] = True
        logger.debug(f"Package {package}: {'available' if status[package] else 'missing'}")
    return status


def validate_r_environment(packages: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Report R availability, its version line and the status of ``packages``

    Returns:
        ``{"r_available": bool, "r_version": str | None, "packages": {name: bool}}``
    """
    interface = RInterface()
    report: Dict[str, Any] = {"r_available": False, "r_version": None, "packages": {}}

    version = interface.r_version()
    if version is None:
        return report

    report["r_available"] = True
    report["r_version"] = version
    report["packages"] = interface.check_packages(packages or R_PACKAGES)
    return report


def validate_environment(require_r: bool = False) -> List[str]:
    """
    Check the interpreter, the Python stack and, if requested, R

    Args:
        require_r: The configured method needs R (``DESeq2``)

    Returns:
        List of issues; empty when the environment is usable
    """
    logger.info("Validating DegFlow environment...")
    issues = []

    if sys.version_info < MIN_PYTHON:
        issues.append(
            f"Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+ required, "
            f"found {sys.version_info.major}.{sys.version_info.minor}"
        )

    missing = [pkg for pkg, ok in validate_python_packages(CORE_PACKAGES).items() if not ok]
    if missing:
        issues.append(f"Missing Python packages: {', '.join(missing)}")

    if require_r:
        r_report = validate_r_environment()
        if not r_report["r_available"]:
            issues.append("R not available")
        else:
            missing_r = [pkg for pkg, ok in r_report["packages"].items() if not ok]
            if missing_r:
                issues.append(f"Missing R packages: {', '.join(missing_r)}")

    for issue in issues:
        logger.warning(f"Environment issue: {issue}")
    if not issues:
        logger.info("Environment validation passed")
    return issues
