"""Utility subpackage for reusable helpers (logging, worker pool)."""

from .logger import get_logger
from .parallel import WorkerPool

__all__ = ["get_logger", "WorkerPool"]
