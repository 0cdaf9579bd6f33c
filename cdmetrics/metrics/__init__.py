"""
Metrics Collection

Prometheus metrics for application sync, health and reconciliation.
"""

from .clusterinfo import ClusterCollector, HasClustersInfo
from .collectors import AppCollector, new_app_registry
from .registry import MetricsRegistry
from .server import MetricsServer

__all__ = [
    "AppCollector",
    "ClusterCollector",
    "HasClustersInfo",
    "MetricsRegistry",
    "MetricsServer",
    "new_app_registry",
]
