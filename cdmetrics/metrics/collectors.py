"""
Application Collector

Computes per-application gauges from the application store at scrape time.
"""

import logging
from typing import Callable, Iterable, Tuple

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from cdmetrics.git import normalize_git_url
from cdmetrics.metrics.registry import MetricsRegistry, metric_name
from cdmetrics.models import Application, HealthStatusCode, SyncStatusCode
from cdmetrics.store import ApplicationLister, LabelSelector

logger = logging.getLogger(__name__)

# Follow Prometheus naming practices
# https://prometheus.io/docs/practices/naming/
APP_DEFAULT_LABELS = ["namespace", "name", "project"]


def bool_float(b: bool) -> float:
    return 1.0 if b else 0.0


class AppCollector:
    """
    Prometheus collector for application state.

    Stateless between scrapes: every collect() lists all applications and
    emits app_info, app_created_time and one-hot app_sync_status and
    app_health_status gauges for each of them.
    """

    def __init__(
        self,
        store: ApplicationLister,
        prefix: str = "",
        normalize_repo_url: Callable[[str], str] = normalize_git_url,
    ):
        self.store = store
        self.prefix = prefix
        self.normalize_repo_url = normalize_repo_url

    def _families(self) -> Tuple[GaugeMetricFamily, ...]:
        return (
            GaugeMetricFamily(
                metric_name(self.prefix, "app_info"),
                "Information about application.",
                labels=APP_DEFAULT_LABELS + ["repo", "dest_server", "dest_namespace"],
            ),
            GaugeMetricFamily(
                metric_name(self.prefix, "app_created_time"),
                "Creation time in unix timestamp for an application.",
                labels=APP_DEFAULT_LABELS,
            ),
            GaugeMetricFamily(
                metric_name(self.prefix, "app_sync_status"),
                "The application current sync status.",
                labels=APP_DEFAULT_LABELS + ["sync_status"],
            ),
            GaugeMetricFamily(
                metric_name(self.prefix, "app_health_status"),
                "The application current health status.",
                labels=APP_DEFAULT_LABELS + ["health_status"],
            ),
        )

    def describe(self) -> Iterable[Metric]:
        return self._families()

    def collect(self) -> Iterable[Metric]:
        try:
            apps = self.store.list(LabelSelector.everything())
        except Exception as e:
            logger.warning(f"Failed to collect applications: {e}")
            return

        info, created, sync, health = self._families()
        for app in apps:
            self._collect_app(app, info, created, sync, health)

        yield info
        yield created
        yield sync
        yield health

    def _collect_app(
        self,
        app: Application,
        info: GaugeMetricFamily,
        created: GaugeMetricFamily,
        sync: GaugeMetricFamily,
        health: GaugeMetricFamily,
    ):
        default_values = [app.namespace, app.name, app.get_project()]

        info.add_metric(
            default_values + [self.normalize_repo_url(app.repo_url), app.dest_server, app.dest_namespace],
            1,
        )
        created.add_metric(default_values, float(int(app.created_at.timestamp())))

        # "" means the status was never reported; exported as Unknown
        sync_status = app.sync_status or SyncStatusCode.UNKNOWN.value
        for code in SyncStatusCode:
            sync.add_metric(default_values + [code.value], bool_float(sync_status == code.value))

        health_status = app.health_status or HealthStatusCode.UNKNOWN.value
        for code in HealthStatusCode:
            health.add_metric(default_values + [code.value], bool_float(health_status == code.value))


def new_app_registry(store: ApplicationLister, prefix: str = "", created_series: bool = True) -> MetricsRegistry:
    """Create a registry that collects applications from store."""
    registry = MetricsRegistry(created_series=created_series)
    registry.register(AppCollector(store, prefix=prefix))
    return registry

