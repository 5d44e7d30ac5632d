"""Core infrastructure."""

from loadguard.core.logger import setup_logger

__all__ = ["setup_logger"]
