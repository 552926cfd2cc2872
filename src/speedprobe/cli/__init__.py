"""
Command-line interface for the speedprobe package.

This module provides the main CLI entry point for running a measurement.
"""

from .main import main_cli

__all__ = [
    "main_cli",
]
