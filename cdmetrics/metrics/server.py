"""
Metrics Server

Owns the exporter's registry, the event counters the controller updates,
and the HTTP surface that serves them.
"""

import logging
import threading
from datetime import timedelta
from typing import Callable, List, Optional, Union

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import Counter, Gauge, Histogram
from prometheus_client import GCCollector, PlatformCollector, ProcessCollector
from prometheus_client.exposition import choose_encoder, generate_latest

from cdmetrics.metrics.clusterinfo import METRICS_COLLECTION_INTERVAL, ClusterCollector, HasClustersInfo
from cdmetrics.metrics.collectors import APP_DEFAULT_LABELS, new_app_registry
from cdmetrics.metrics.registry import MetricsRegistry, metric_name
from cdmetrics.models import Application, OperationState
from cdmetrics.store import ApplicationLister

logger = logging.getLogger(__name__)

# Endpoint to collect application metrics
METRICS_PATH = "/metrics"
HEALTHZ_PATH = "/healthz"

# Buckets chosen after observing a ~2100ms mean reconcile time
RECONCILE_BUCKETS = (0.25, 0.5, 1, 2, 4, 8, 16)


def register_runtime_collectors(registry: MetricsRegistry):
    """Register process, platform and GC collectors into registry."""
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
    GCCollector(registry=registry)


def split_address(address: str):
    """Split "host:port" (host may be empty) into (host, port)."""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"Invalid address (expected host:port): {address}")
    return host or "0.0.0.0", int(port)


class MetricsServer:
    """
    Prometheus exporter for the application controller.

    Counters and histograms are exported without their *_created samples
    unless created_series is set, keeping the served schema to the metric
    names dashboards expect.

    Usage:
        server = MetricsServer(":8082", store, health_check=lambda: None)
        server.start()

        # Record events
        server.inc_sync(app, OperationState(OperationPhase.SUCCEEDED))
        with server.kubectl_exec_pending("apply"):
            ...
    """

    def __init__(
        self,
        address: str,
        app_lister: ApplicationLister,
        health_check: Callable[[], object],
        prefix: str = "",
        metrics_path: str = METRICS_PATH,
        healthz_path: str = HEALTHZ_PATH,
        include_process_metrics: bool = True,
        cluster_info_interval: float = METRICS_COLLECTION_INTERVAL,
        created_series: bool = False,
    ):
        self.host, self.port = split_address(address)
        self.health_check = health_check
        self.prefix = prefix
        self.metrics_path = metrics_path
        self.healthz_path = healthz_path
        self.cluster_info_interval = cluster_info_interval

        # Application collector first, then controller and runtime metrics
        self.registry = new_app_registry(app_lister, prefix=prefix, created_series=created_series)

        self.sync_counter = Counter(
            self._name("app_sync_total"),
            "Number of application syncs.",
            APP_DEFAULT_LABELS + ["phase"],
            registry=self.registry,
        )

        self.k8s_request_counter = Counter(
            self._name("app_k8s_request_total"),
            "Number of kubernetes requests executed during application reconciliation.",
            APP_DEFAULT_LABELS + ["server", "response_code", "verb", "resource_kind", "resource_namespace"],
            registry=self.registry,
        )

        self.kubectl_exec_counter = Counter(
            self._name("kubectl_exec_total"),
            "Number of kubectl executions",
            ["command"],
            registry=self.registry,
        )

        self.kubectl_exec_pending_gauge = Gauge(
            self._name("kubectl_exec_pending"),
            "Number of pending kubectl executions",
            ["command"],
            registry=self.registry,
        )

        self.reconcile_histogram = Histogram(
            self._name("app_reconcile"),
            "Application reconciliation performance.",
            APP_DEFAULT_LABELS,
            buckets=RECONCILE_BUCKETS,
            registry=self.registry,
        )

        self.cluster_events_counter = Counter(
            self._name("cluster_events_total"),
            "Number of processes k8s resource events.",
            ["server", "group", "kind"],
            registry=self.registry,
        )

        if include_process_metrics:
            register_runtime_collectors(self.registry)

        self._cluster_collectors: List[ClusterCollector] = []
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

        self.app = self._build_app()

    def _name(self, name: str) -> str:
        return metric_name(self.prefix, name)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="cdmetrics", docs_url=None, redoc_url=None, openapi_url=None)

        @app.get(self.metrics_path)
        def metrics(request: Request):
            encoder, content_type = choose_encoder(request.headers.get("accept"))
            return Response(content=encoder(self.registry), media_type=content_type)

        @app.get(self.healthz_path)
        def healthz():
            try:
                ok = self.health_check()
            except Exception as e:
                logger.error(f"Health check failed: {e}")
                return PlainTextResponse(f"{e}\n", status_code=503)
            if ok is False:
                logger.error("Health check failed")
                return PlainTextResponse("health check failed\n", status_code=503)
            return PlainTextResponse("ok\n")

        return app

    def render(self) -> bytes:
        """Render all registered metrics in the text exposition format."""
        return generate_latest(self.registry)

    def serve(self):
        """Serve metrics until stopped (blocking)."""
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_config=None,
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        logger.info(f"Metrics server listening on {self.host}:{self.port}{self.metrics_path}")
        self._server.run()

    def start(self):
        """Start serving in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Metrics server already running")
            return
        self._thread = threading.Thread(target=self.serve, name="metrics-server", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        """Stop the HTTP server and every registered info poller."""
        for collector in self._cluster_collectors:
            collector.stop(timeout=timeout)
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        logger.info("Metrics server stopped")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_clusters_info_source(
        self,
        source: HasClustersInfo,
        stop_event: Optional[threading.Event] = None,
    ) -> ClusterCollector:
        """
        Register a cluster info source and start polling it.

        Polling stops when stop_event is set (or on stop()).
        """
        collector = ClusterCollector(source, interval=self.cluster_info_interval, prefix=self.prefix)
        self.registry.register(collector)
        collector.start(stop_event)
        self._cluster_collectors.append(collector)
        return collector

    # ------------------------------------------------------------------
    # Event counters
    # ------------------------------------------------------------------

    def inc_sync(self, app: Application, state: OperationState):
        """Increment the sync counter for an application (completed operations only)."""
        if not state.phase.completed():
            return
        self.sync_counter.labels(app.namespace, app.name, app.get_project(), state.phase.value).inc()

    def inc_kubectl_exec(self, command: str):
        self.kubectl_exec_counter.labels(command).inc()

    def inc_kubectl_exec_pending(self, command: str):
        self.kubectl_exec_pending_gauge.labels(command).inc()

    def dec_kubectl_exec_pending(self, command: str):
        self.kubectl_exec_pending_gauge.labels(command).dec()

    def kubectl_exec_pending(self, command: str):
        """Context manager tracking one in-flight kubectl execution."""
        return self.kubectl_exec_pending_gauge.labels(command).track_inprogress()

    def inc_cluster_events_count(self, server: str, group: str, kind: str):
        """Increment the number of cluster events."""
        self.cluster_events_counter.labels(server, group, kind).inc()

    def inc_kubernetes_request(
        self,
        app: Optional[Application],
        server: str,
        status_code: str,
        verb: str,
        resource_kind: str,
        resource_namespace: str,
    ):
        """Increment the kubernetes requests counter for an application."""
        namespace = name = project = ""
        if app is not None:
            namespace = app.namespace
            name = app.name
            project = app.get_project()
        self.k8s_request_counter.labels(
            namespace, name, project, server, status_code,
            verb, resource_kind, resource_namespace,
        ).inc()

    def inc_reconcile(self, app: Application, duration: Union[float, timedelta]):
        """Observe reconciliation duration (seconds or timedelta) for an application."""
        if isinstance(duration, timedelta):
            duration = duration.total_seconds()
        self.reconcile_histogram.labels(app.namespace, app.name, app.get_project()).observe(duration)
