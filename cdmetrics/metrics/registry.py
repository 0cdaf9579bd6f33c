"""
Metrics Registry

Collector registry that keeps collectors in registration order and
isolates a failing collector from the rest of a scrape.
"""

import logging
import threading
from typing import Iterable, List

from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector, CollectorRegistry

logger = logging.getLogger(__name__)


def metric_name(prefix: str, name: str) -> str:
    """Join an optional prefix and a metric name."""
    return f"{prefix}_{name}" if prefix else name


class MetricsRegistry(CollectorRegistry):
    """
    Process-wide registry for exporter metrics.

    Registration is append-only and guarded by a lock that is held only
    for the duration of the register call. Duplicate metric names raise
    ValueError, which callers treat as fatal at startup.

    Each scrape drives every collector in registration order. A collector
    that raises is logged and skipped; the others are still exported.

    With created_series=False the *_created samples prometheus_client adds
    to counters and histograms are dropped from this registry only.
    """

    def __init__(self, auto_describe: bool = True, created_series: bool = True):
        super().__init__(auto_describe=auto_describe)
        self.created_series = created_series
        self._collectors: List[Collector] = []
        self._order_lock = threading.Lock()

    def register(self, collector: Collector) -> None:
        with self._order_lock:
            super().register(collector)
            self._collectors.append(collector)
        logger.debug(f"Registered collector {type(collector).__name__}")

    def unregister(self, collector: Collector) -> None:
        with self._order_lock:
            super().unregister(collector)
            self._collectors.remove(collector)

    def collectors(self) -> List[Collector]:
        with self._order_lock:
            return list(self._collectors)

    def collect(self) -> Iterable[Metric]:
        for collector in self.collectors():
            try:
                # Materialize so a collector failing halfway exports nothing
                families = list(collector.collect())
            except Exception as e:
                logger.error(f"Collector {type(collector).__name__} failed: {e}", exc_info=True)
                continue
            if not self.created_series:
                families = [drop_created_samples(f) for f in families]
            yield from families


def drop_created_samples(family: Metric) -> Metric:
    """Return family without its <name>_created samples."""
    created = f"{family.name}_created"
    if not any(s.name == created for s in family.samples):
        return family
    trimmed = Metric(family.name, family.documentation, family.type, family.unit)
    trimmed.samples = [s for s in family.samples if s.name != created]
    return trimmed
