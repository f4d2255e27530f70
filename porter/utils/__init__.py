"""Utility modules."""

from porter.utils.codes import generate_code
from porter.utils.logging import setup_logging

__all__ = ["setup_logging", "generate_code"]
