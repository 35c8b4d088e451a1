"""
Input loading and checkpoint writing for DegFlow
"""

from .loader import (load_count_matrix, load_sample_metadata,
                     write_table)

__all__ = ["load_count_matrix", "load_sample_metadata", "write_table"]
