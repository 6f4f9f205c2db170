"""
Shared utility functions.

This package contains logging and file helpers used across the export.
"""

from .files import read_json, write_bytes_atomic, write_json_atomic
from .logging import JsonlFormatter, log_event, setup_logging

__all__ = [
    "read_json",
    "write_bytes_atomic",
    "write_json_atomic",
    "setup_logging",
    "log_event",
    "JsonlFormatter",
]
