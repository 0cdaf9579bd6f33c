"""
Application Store

Read-only index of applications queried by the metrics collectors.
"""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import yaml

from cdmetrics.models import Application

logger = logging.getLogger(__name__)


class LabelSelector:
    """Equality-based label selector."""

    def __init__(self, match_labels: Optional[Dict[str, str]] = None):
        self.match_labels = dict(match_labels or {})

    @classmethod
    def everything(cls) -> "LabelSelector":
        """Selector that matches every application."""
        return cls()

    def empty(self) -> bool:
        return not self.match_labels

    def matches(self, labels: Dict[str, str]) -> bool:
        return all(labels.get(k) == v for k, v in self.match_labels.items())


class ApplicationLister(ABC):
    """Lists applications. Implementations raise on failure."""

    @abstractmethod
    def list(self, selector: LabelSelector) -> List[Application]:
        ...


class InMemoryApplicationStore(ApplicationLister):
    """
    Thread-safe in-memory application index.

    Keyed by (namespace, name). Labels are kept alongside each application
    so selectors can filter on them.
    """

    def __init__(self, applications: Optional[Iterable[Application]] = None):
        self._apps: Dict[Tuple[str, str], Application] = {}
        self._labels: Dict[Tuple[str, str], Dict[str, str]] = {}
        self._lock = threading.RLock()
        for app in applications or []:
            self.upsert(app)

    def upsert(self, app: Application, labels: Optional[Dict[str, str]] = None) -> Application:
        """Add or replace an application."""
        with self._lock:
            self._apps[app.key] = app
            self._labels[app.key] = dict(labels or {})
            return app

    def delete(self, namespace: str, name: str) -> Optional[Application]:
        """Remove an application, returning it if present."""
        with self._lock:
            self._labels.pop((namespace, name), None)
            return self._apps.pop((namespace, name), None)

    def get(self, namespace: str, name: str) -> Optional[Application]:
        with self._lock:
            return self._apps.get((namespace, name))

    def list(self, selector: LabelSelector) -> List[Application]:
        with self._lock:
            if selector.empty():
                return list(self._apps.values())
            return [
                app for key, app in self._apps.items()
                if selector.matches(self._labels.get(key, {}))
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._apps)

    def load_manifests(self, path: Union[str, Path]) -> int:
        """
        Load application manifests from a YAML file.

        The file may hold several documents; each is either an application
        manifest or a list with an ``items`` field.

        Args:
            path: YAML file path

        Returns:
            Number of applications loaded
        """
        with open(path, "r") as f:
            documents = [doc for doc in yaml.safe_load_all(f) if doc]

        count = 0
        for doc in documents:
            items = doc.get("items") if (doc.get("kind") or "").endswith("List") else [doc]
            for manifest in items or []:
                labels = (manifest.get("metadata") or {}).get("labels") or {}
                self.upsert(Application.from_manifest(manifest), labels=labels)
                count += 1

        logger.info(f"Loaded {count} applications from {path}")
        return count
