"""Metrics collector — Prometheus counters, gauges, histograms.

- ``shielded_sync_duration_seconds`` histogram
- ``shielded_sync_pages_fetched_total`` counter
- ``shielded_sync_notes_decrypted_total`` counter
- ``shielded_sync_spent_check_retries_total`` counter
- ``shielded_sync_unspent_notes`` gauge
- ``shielded_sync_failures_total`` counter
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator


_PREFIX = "shielded_sync"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`SyncMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class SyncMetrics:
    """High-level synchronization metrics."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._duration = self._collector.histogram(
            f"{_PREFIX}_duration_seconds",
            "Duration of full note synchronizations",
        )
        self._pages = self._collector.counter(
            f"{_PREFIX}_pages_fetched",
            "Indexer pages fetched",
        )
        self._decrypted = self._collector.counter(
            f"{_PREFIX}_notes_decrypted",
            "Ciphertexts that decrypted to wallet notes",
        )
        self._retries = self._collector.counter(
            f"{_PREFIX}_spent_check_retries",
            "Spent-check batches retried after a ledger read failure",
        )
        self._failures = self._collector.counter(
            f"{_PREFIX}_failures",
            "Synchronizations that ended with an error",
        )
        self._unspent = self._collector.gauge(
            f"{_PREFIX}_unspent_notes",
            "Unspent notes found by the last successful synchronization",
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def record_page(self) -> None:
        self._pages.inc()

    def record_decrypted(self, count: int) -> None:
        if count:
            self._decrypted.inc(count)

    def record_spent_check_retry(self) -> None:
        self._retries.inc()

    def set_unspent_count(self, count: int) -> None:
        """Set the number of unspent notes found by the last sync."""
        self._unspent.set(count)

    @contextmanager
    def track_sync(self) -> Iterator[None]:
        """Track the duration of a synchronization and count failures."""
        start = time.monotonic()
        try:
            yield
        except Exception:
            self._failures.inc()
            raise
        finally:
            self._duration.observe(time.monotonic() - start)
