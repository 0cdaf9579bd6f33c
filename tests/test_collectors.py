"""
Tests for the application collector.
"""

import logging

import pytest
from prometheus_client import generate_latest

from cdmetrics.metrics.collectors import AppCollector, new_app_registry
from cdmetrics.models import HealthStatusCode, SyncStatusCode
from cdmetrics.store import InMemoryApplicationStore

from tests.conftest import FailingStore, make_app

LABELS = {"namespace": "prod", "name": "guestbook", "project": "default"}


def sync_values(registry):
    return {
        code.value: registry.get_sample_value("app_sync_status", dict(LABELS, sync_status=code.value))
        for code in SyncStatusCode
    }


def health_values(registry):
    return {
        code.value: registry.get_sample_value("app_health_status", dict(LABELS, health_status=code.value))
        for code in HealthStatusCode
    }


class TestAppCollector:

    def test_guestbook_scenario(self, store):
        registry = new_app_registry(store)

        info_labels = dict(LABELS, repo="https://x/y", dest_server="https://k8s", dest_namespace="prod")
        assert registry.get_sample_value("app_info", info_labels) == 1
        assert registry.get_sample_value("app_created_time", LABELS) == 1700000000
        assert sync_values(registry) == {"Synced": 1, "OutOfSync": 0, "Unknown": 0}
        assert health_values(registry) == {
            "Unknown": 0, "Progressing": 0, "Suspended": 0,
            "Healthy": 1, "Degraded": 0, "Missing": 0,
        }

    def test_exposition_text(self, store):
        text = generate_latest(new_app_registry(store)).decode()

        assert "# TYPE app_info gauge" in text
        assert (
            'app_info{namespace="prod",name="guestbook",project="default",repo="https://x/y",'
            'dest_server="https://k8s",dest_namespace="prod"} 1.0'
        ) in text

    @pytest.mark.parametrize("status,expected", [
        ("Synced", "Synced"),
        ("OutOfSync", "OutOfSync"),
        ("Unknown", "Unknown"),
        ("", "Unknown"),
    ])
    def test_sync_status_is_one_hot(self, status, expected):
        registry = new_app_registry(InMemoryApplicationStore([make_app(sync_status=status)]))

        values = sync_values(registry)
        assert values.pop(expected) == 1
        assert set(values.values()) == {0}

    @pytest.mark.parametrize("status,expected", [(c.value, c.value) for c in HealthStatusCode] + [("", "Unknown")])
    def test_health_status_is_one_hot(self, status, expected):
        registry = new_app_registry(InMemoryApplicationStore([make_app(health_status=status)]))

        values = health_values(registry)
        assert values.pop(expected) == 1
        assert set(values.values()) == {0}

    def test_unrecognized_status_sets_all_zero(self):
        registry = new_app_registry(InMemoryApplicationStore([make_app(sync_status="Bogus")]))
        assert set(sync_values(registry).values()) == {0}

    def test_empty_project_reported_as_default(self):
        registry = new_app_registry(InMemoryApplicationStore([make_app(project="")]))
        assert registry.get_sample_value("app_created_time", LABELS) == 1700000000

    def test_samples_per_application(self):
        store = InMemoryApplicationStore([make_app(name="a"), make_app(name="b")])
        families = {f.name: f for f in AppCollector(store).collect()}

        assert len(families["app_info"].samples) == 2
        assert len(families["app_created_time"].samples) == 2
        assert len(families["app_sync_status"].samples) == 6
        assert len(families["app_health_status"].samples) == 12

    def test_listing_failure_yields_nothing(self, caplog):
        collector = AppCollector(FailingStore())

        with caplog.at_level(logging.WARNING, logger="cdmetrics.metrics.collectors"):
            families = list(collector.collect())

        assert families == []
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "Failed to collect applications" in warnings[0].getMessage()

    def test_describe(self, store):
        names = [family.name for family in AppCollector(store).describe()]
        assert names == ["app_info", "app_created_time", "app_sync_status", "app_health_status"]

    def test_prefix(self, store):
        registry = new_app_registry(store, prefix="argocd")
        assert registry.get_sample_value("argocd_app_created_time", LABELS) == 1700000000
        assert registry.get_sample_value("app_created_time", LABELS) is None

    def test_custom_normalizer(self, store):
        collector = AppCollector(store, normalize_repo_url=lambda url: "normalized")
        info = next(f for f in collector.collect() if f.name == "app_info")
        assert info.samples[0].labels["repo"] == "normalized"

    def test_collect_is_restartable(self, store):
        collector = AppCollector(store)
        first = [s for f in collector.collect() for s in f.samples]
        store.upsert(make_app(name="other"))
        second = [s for f in collector.collect() for s in f.samples]

        assert len(first) == 11
        assert len(second) == 22
