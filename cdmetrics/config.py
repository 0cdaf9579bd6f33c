"""
cdmetrics Configuration System

Central configuration for the metrics exporter.
"""

import os
from pathlib import Path
from typing import List, Optional
import yaml
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """HTTP server settings."""
    host: str = "0.0.0.0"
    port: int = 8082
    metrics_path: str = "/metrics"
    healthz_path: str = "/healthz"


class MetricsConfig(BaseModel):
    """Metrics collection settings."""
    prefix: str = ""  # e.g. "argocd" -> argocd_app_info
    include_process_metrics: bool = True
    created_series: bool = False  # export *_created samples for counters/histograms
    cluster_info_interval_seconds: float = 30.0


class StoreConfig(BaseModel):
    """Application store settings."""
    manifests: List[str] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    """Logging settings."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class CDMetricsConfig(BaseModel):
    """Complete cdmetrics configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def address(self) -> str:
        return f"{self.server.host}:{self.server.port}"


# Global config instance
_config: Optional[CDMetricsConfig] = None


def find_config_file() -> Optional[str]:
    """Return the first existing config file from the default locations."""
    possible_paths = [
        "cdmetrics.yaml",
        "cdmetrics.yml",
        "/etc/cdmetrics/cdmetrics.yaml",
        os.path.expanduser("~/.cdmetrics/config.yaml"),
        os.environ.get("CDMETRICS_CONFIG", ""),
    ]
    for path in possible_paths:
        if path and Path(path).exists():
            return path
    return None


def load_config(config_path: Optional[str] = None) -> CDMetricsConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to config file (default: search the usual locations)

    Returns:
        CDMetricsConfig instance
    """
    global _config

    if config_path is None:
        config_path = find_config_file()
        if not config_path:
            # Use defaults
            _config = CDMetricsConfig()
            return _config

    with open(config_path, "r") as f:
        config_dict = yaml.safe_load(f) or {}

    _config = CDMetricsConfig(**config_dict)
    return _config


def get_config() -> CDMetricsConfig:
    """
    Get the current configuration.

    Returns:
        CDMetricsConfig instance (loads from file if not already loaded)
    """
    global _config

    if _config is None:
        _config = load_config()

    return _config


def reload_config(config_path: Optional[str] = None) -> CDMetricsConfig:
    """Reload configuration from file."""
    global _config
    _config = None
    return load_config(config_path)


def default_config_yaml() -> str:
    """Render the default configuration as YAML."""
    return yaml.safe_dump(CDMetricsConfig().model_dump(), sort_keys=False)
