"""Utilities for the paper trading engine."""

from paper_engine.utils.logging_config import setup_logging

__all__ = ["setup_logging"]
