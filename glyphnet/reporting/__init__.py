"""Reporting utilities for glyphnet."""

from .artifacts import write_manifest
from .metrics import CsvSink, JsonlSink, MetricsCapture
from .plots import PlotAdapter

__all__ = ["CsvSink", "JsonlSink", "MetricsCapture", "PlotAdapter", "write_manifest"]
