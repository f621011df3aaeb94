"""Metrics — Prometheus metrics collection."""

from __future__ import annotations

from shielded_sync.metrics.collector import MetricsCollector, SyncMetrics

__all__ = ["MetricsCollector", "SyncMetrics"]
