"""Structured business data."""

from .dataset import StructuredDataSet, load_dataset
from .topics import DataProvider, Topic

__all__ = ["StructuredDataSet", "load_dataset", "DataProvider", "Topic"]
