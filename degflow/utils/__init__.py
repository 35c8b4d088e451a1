"""
Utility functions and classes for DegFlow
"""

from .logging import get_logger, log_execution_time, setup_logging
from .r_utils import RInterface, r_string_vector
from .validation import (validate_environment, validate_python_packages,
                         validate_r_environment)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_execution_time",
    "validate_python_packages",
    "validate_r_environment",
    "validate_environment",
    "RInterface",
    "r_string_vector",
]
