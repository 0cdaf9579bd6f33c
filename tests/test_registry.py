"""
Tests for the metrics registry.
"""

import logging
import threading

import pytest
from prometheus_client import Counter, generate_latest
from prometheus_client.core import GaugeMetricFamily

from cdmetrics.metrics.registry import MetricsRegistry, metric_name


class StaticCollector:
    def __init__(self, name, value=1):
        self.name = name
        self.value = value

    def describe(self):
        return [GaugeMetricFamily(self.name, "test gauge")]

    def collect(self):
        return [GaugeMetricFamily(self.name, "test gauge", value=self.value)]


class BrokenCollector:
    """Yields one family, then fails."""

    def describe(self):
        return [GaugeMetricFamily("broken", "broken gauge")]

    def collect(self):
        yield GaugeMetricFamily("broken", "broken gauge", value=1)
        raise RuntimeError("collector exploded")


class TestMetricsRegistry:

    def test_collects_in_registration_order(self):
        registry = MetricsRegistry()
        for name in ["zeta", "alpha", "mid"]:
            registry.register(StaticCollector(name))

        assert [f.name for f in registry.collect()] == ["zeta", "alpha", "mid"]

    def test_failing_collector_is_isolated(self, caplog):
        registry = MetricsRegistry()
        registry.register(StaticCollector("before"))
        registry.register(BrokenCollector())
        registry.register(StaticCollector("after", value=2))

        with caplog.at_level(logging.ERROR, logger="cdmetrics.metrics.registry"):
            names = [f.name for f in registry.collect()]

        assert names == ["before", "after"]
        assert "collector exploded" in caplog.text
        assert registry.get_sample_value("after") == 2
        assert b"broken" not in generate_latest(registry)

    def test_duplicate_names_rejected(self):
        registry = MetricsRegistry()
        Counter("syncs_total", "syncs", registry=registry)

        with pytest.raises(ValueError):
            Counter("syncs_total", "syncs again", registry=registry)
        assert len(registry.collectors()) == 1

    def test_failing_describe_rejected_at_registration(self):
        class BadDescribe:
            def describe(self):
                raise RuntimeError("bad schema")

            def collect(self):
                return []

        registry = MetricsRegistry()
        with pytest.raises(RuntimeError):
            registry.register(BadDescribe())
        assert registry.collectors() == []

    def test_register_during_scrapes_keeps_order(self):
        registry = MetricsRegistry()
        names = [f"gauge_{i}" for i in range(200)]
        errors = []
        scrapes = []
        done = threading.Event()

        def scrape():
            try:
                while not done.is_set():
                    scrapes.append([f.name for f in registry.collect()])
            except Exception as e:
                errors.append(e)

        scraper = threading.Thread(target=scrape)
        scraper.start()
        try:
            for name in names:
                registry.register(StaticCollector(name))
        finally:
            done.set()
            scraper.join(timeout=5)

        assert errors == []
        assert scrapes
        for seen in scrapes:
            assert seen == names[:len(seen)]
        assert [f.name for f in registry.collect()] == names

    def test_unregister(self):
        registry = MetricsRegistry()
        collector = StaticCollector("gone")
        registry.register(collector)
        registry.unregister(collector)

        assert list(registry.collect()) == []


def test_metric_name():
    assert metric_name("", "app_info") == "app_info"
    assert metric_name("argocd", "app_info") == "argocd_app_info"
