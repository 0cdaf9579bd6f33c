"""
Application Model

Read-only view of the resources the controller reports on.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class SyncStatusCode(str, Enum):
    """Application sync status."""
    SYNCED = "Synced"
    OUT_OF_SYNC = "OutOfSync"
    UNKNOWN = "Unknown"


class HealthStatusCode(str, Enum):
    """Application health status."""
    UNKNOWN = "Unknown"
    PROGRESSING = "Progressing"
    SUSPENDED = "Suspended"
    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    MISSING = "Missing"


class OperationPhase(str, Enum):
    """Phase of a sync operation."""
    RUNNING = "Running"
    TERMINATING = "Terminating"
    FAILED = "Failed"
    ERROR = "Error"
    SUCCEEDED = "Succeeded"

    def completed(self) -> bool:
        """Whether the operation reached a terminal phase."""
        return self in (OperationPhase.FAILED, OperationPhase.ERROR, OperationPhase.SUCCEEDED)


@dataclass
class OperationState:
    """State of the most recent sync operation."""
    phase: OperationPhase
    message: str = ""


@dataclass
class Application:
    """A deployed application as seen by the controller."""

    # Identity
    namespace: str
    name: str
    project: str = ""

    # Source & destination
    repo_url: str = ""
    dest_server: str = ""
    dest_namespace: str = ""

    # Status (empty string means never reported)
    sync_status: str = ""
    health_status: str = ""

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def get_project(self) -> str:
        """Project name, falling back to the default project."""
        return self.project or "default"

    @property
    def key(self):
        return (self.namespace, self.name)

    @classmethod
    def from_manifest(cls, manifest: Dict[str, Any]) -> "Application":
        """
        Build an application from a Kubernetes-style manifest.

        Args:
            manifest: Parsed resource with metadata, spec and status sections

        Returns:
            Application instance
        """
        metadata = manifest.get("metadata") or {}
        spec = manifest.get("spec") or {}
        status = manifest.get("status") or {}
        source = spec.get("source") or {}
        destination = spec.get("destination") or {}

        if not metadata.get("name"):
            raise ValueError("Application manifest is missing metadata.name")

        # Keys left empty in YAML load as None
        return cls(
            namespace=_str(metadata.get("namespace")),
            name=_str(metadata["name"]),
            project=_str(spec.get("project")),
            repo_url=_str(source.get("repoURL")),
            dest_server=_str(destination.get("server")),
            dest_namespace=_str(destination.get("namespace")),
            sync_status=_str((status.get("sync") or {}).get("status")),
            health_status=_str((status.get("health") or {}).get("status")),
            created_at=parse_timestamp(metadata.get("creationTimestamp")) or datetime.now(timezone.utc),
        )


@dataclass(frozen=True)
class ClusterInfo:
    """Cache statistics for a monitored cluster."""
    server: str
    k8s_version: str = ""
    resources_count: int = 0
    apis_count: int = 0
    last_cache_sync_time: Optional[datetime] = None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp (or pass through a datetime)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _str(value: Any) -> str:
    return "" if value is None else str(value)
