"""
Cluster Info Collector

Polls cluster cache statistics in the background and serves the latest
snapshot at scrape time.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from cdmetrics.metrics.registry import metric_name
from cdmetrics.models import ClusterInfo

logger = logging.getLogger(__name__)

CLUSTER_DEFAULT_LABELS = ["server"]

METRICS_COLLECTION_INTERVAL = 30.0


class HasClustersInfo(ABC):
    """Source of cluster cache statistics."""

    @abstractmethod
    def get_clusters_info(self) -> List[ClusterInfo]:
        ...


class ClusterCollector:
    """
    Collector backed by a background poller.

    The poller thread replaces the published snapshot wholesale after each
    successful fetch. Scrapes only read the snapshot, so a slow or failing
    source never blocks them. A failed fetch keeps the previous snapshot.
    """

    def __init__(
        self,
        info_source: HasClustersInfo,
        interval: float = METRICS_COLLECTION_INTERVAL,
        prefix: str = "",
    ):
        self.info_source = info_source
        self.interval = interval
        self.prefix = prefix

        self._info: Tuple[ClusterInfo, ...] = ()
        self._lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def info(self) -> Tuple[ClusterInfo, ...]:
        """Currently published snapshot."""
        with self._lock:
            return self._info

    def start(self, stop_event: Optional[threading.Event] = None):
        """Start polling in a background thread until stop_event is set."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Cluster info poller already running")
            return

        self._stop_event = stop_event or threading.Event()
        self._thread = threading.Thread(
            target=self.run,
            args=(self._stop_event,),
            name="cluster-info-poller",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        """Signal the poller and wait for it to exit."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def run(self, stop_event: threading.Event):
        """Poll loop. Returns once stop_event is set."""
        logger.info(f"Cluster info poller started (interval={self.interval}s)")
        while not stop_event.is_set():
            self.refresh(stop_event)
            if stop_event.wait(self.interval):
                break
        logger.info("Cluster info poller stopped")

    def refresh(self, stop_event: Optional[threading.Event] = None) -> bool:
        """
        Fetch and publish one snapshot.

        Returns:
            True if a new snapshot was published
        """
        try:
            info = tuple(self.info_source.get_clusters_info())
        except Exception as e:
            logger.error(f"Failed to get clusters info: {e}", exc_info=True)
            return False

        if stop_event is not None and stop_event.is_set():
            logger.debug("Poller stopped during fetch, discarding result")
            return False

        with self._lock:
            self._info = info
        logger.debug(f"Published cluster info for {len(info)} clusters")
        return True

    def _families(self) -> Tuple[GaugeMetricFamily, ...]:
        return (
            GaugeMetricFamily(
                metric_name(self.prefix, "cluster_info"),
                "Information about cluster.",
                labels=CLUSTER_DEFAULT_LABELS + ["k8s_version"],
            ),
            GaugeMetricFamily(
                metric_name(self.prefix, "cluster_api_resource_objects"),
                "Number of k8s resource objects in the cache.",
                labels=CLUSTER_DEFAULT_LABELS,
            ),
            GaugeMetricFamily(
                metric_name(self.prefix, "cluster_api_resources"),
                "Number of monitored kubernetes API resources.",
                labels=CLUSTER_DEFAULT_LABELS,
            ),
            GaugeMetricFamily(
                metric_name(self.prefix, "cluster_cache_age_seconds"),
                "Cluster cache age in seconds.",
                labels=CLUSTER_DEFAULT_LABELS,
            ),
        )

    def describe(self) -> Iterable[Metric]:
        return self._families()

    def collect(self) -> Iterable[Metric]:
        info_family, objects, apis, cache_age = self._families()
        now = datetime.now(timezone.utc)

        for c in self.info:
            default_values = [c.server]
            info_family.add_metric(default_values + [c.k8s_version], 1)
            objects.add_metric(default_values, float(c.resources_count))
            apis.add_metric(default_values, float(c.apis_count))
            cache_age.add_metric(default_values, cache_age_seconds(c, now))

        return [info_family, objects, apis, cache_age]


def cache_age_seconds(info: ClusterInfo, now: datetime) -> float:
    """Seconds since the cluster cache last synced, or -1 if it never did."""
    synced = info.last_cache_sync_time
    if synced is None:
        return -1.0
    if synced.tzinfo is None:
        synced = synced.replace(tzinfo=timezone.utc)
    return (now - synced).total_seconds()
