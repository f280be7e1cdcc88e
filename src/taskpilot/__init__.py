"""Taskpilot: multi-agent task orchestration over company data."""

from importlib import metadata

try:
    __version__ = metadata.version("taskpilot")
except metadata.PackageNotFoundError:  # pragma: no cover - fallback for dev
    __version__ = "0.0.0"

__all__ = ["__version__"]
