"""
cdmetrics - Metrics exporter for a declarative continuous-delivery controller

Exposes per-application sync, health and reconcile metrics, Kubernetes
API call counters and cluster event counters over a Prometheus endpoint.
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

from cdmetrics.config import get_config, load_config, CDMetricsConfig
from cdmetrics.metrics import MetricsServer
from cdmetrics.models import Application, ClusterInfo, OperationPhase, OperationState

__all__ = [
    "get_config",
    "load_config",
    "CDMetricsConfig",
    "MetricsServer",
    "Application",
    "ClusterInfo",
    "OperationPhase",
    "OperationState",
]
