"""Exceptions raised by the metrics read path."""

from __future__ import annotations


class MetricsError(Exception):
    """Base exception for metrics errors."""


class InvalidWindowError(MetricsError):
    """An aggregation window argument is out of range."""
