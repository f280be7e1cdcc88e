"""Task records and the background runner."""

from .base import AggregatedReport, Task

__all__ = ["AggregatedReport", "Task"]
