"""
Pytest configuration and fixtures for cdmetrics tests.
"""

from datetime import datetime, timezone

import pytest

from cdmetrics.metrics import MetricsServer
from cdmetrics.models import Application
from cdmetrics.store import InMemoryApplicationStore


def make_app(**overrides) -> Application:
    """Build an application with sensible defaults."""
    fields = dict(
        namespace="prod",
        name="guestbook",
        project="default",
        repo_url="https://x/y.git",
        dest_server="https://k8s",
        dest_namespace="prod",
        sync_status="Synced",
        health_status="Healthy",
        created_at=datetime.fromtimestamp(1700000000, tz=timezone.utc),
    )
    fields.update(overrides)
    return Application(**fields)


class FailingStore:
    """Application lister whose listing always fails."""

    def __init__(self):
        self.calls = 0

    def list(self, selector):
        self.calls += 1
        raise RuntimeError("informer not synced")


@pytest.fixture
def app():
    return make_app()


@pytest.fixture
def store(app):
    return InMemoryApplicationStore([app])


@pytest.fixture
def server(store):
    """Metrics server without runtime collectors (keeps scrapes small)."""
    return MetricsServer(
        ":8082",
        store,
        health_check=lambda: None,
        include_process_metrics=False,
        cluster_info_interval=0.05,
    )
