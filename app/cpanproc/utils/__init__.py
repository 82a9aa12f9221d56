"""Utility modules for cpanproc.

This module exports commonly used utility functions.
"""

from cpanproc.utils.formatting import (
    Tracer,
    console,
    err_console,
    print_error,
    print_info,
    print_success,
    print_warning,
)

__all__ = [
    "Tracer",
    "console",
    "err_console",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
]
