"""
Tests for the Prometheus metrics exporter.

- No per-user or per-request labels
- Every required metric name is exported
- Counters follow the client's totals without double counting
"""

from __future__ import annotations

import re
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from prometheus_client import generate_latest
from prometheus_client.registry import CollectorRegistry

from motionsdk.client import Motion
from motionsdk.config import ClientConfig
from motionsdk.exporter import FORBIDDEN_LABELS, REQUIRED_METRIC_NAMES, MetricsExporter
from motionsdk.limiter import MemoryRateLimiter


def make_client(status: int = 200) -> Motion:
    response = MagicMock(spec=aiohttp.ClientResponse)
    response.status = status
    return Motion(
        ClientConfig(user_id="user-1", api_key="test-key", max_queue_size=0),
        request_limiter=MemoryRateLimiter(points=2, duration=60),
        overrun_limiter=MemoryRateLimiter(points=1, duration=86400),
        transport=AsyncMock(return_value=response),
    )


def sample_value(registry: CollectorRegistry, name: str) -> float | None:
    return registry.get_sample_value(name)


class TestNoForbiddenLabels:
    """Exported series must stay low-cardinality."""

    @pytest.mark.asyncio
    async def test_exporter_has_no_labels(self) -> None:
        registry = CollectorRegistry()
        exporter = MetricsExporter(registry=registry)
        client = make_client()
        await client.fetch("/users/me")

        exporter.update(client)

        output = generate_latest(registry).decode("utf-8")
        found_labels: set[str] = set()
        for match in re.finditer(r"\{([^}]+)\}", output):
            for pair in match.group(1).split(","):
                if "=" in pair:
                    found_labels.add(pair.split("=")[0].strip())

        assert not found_labels & FORBIDDEN_LABELS
        assert "user-1" not in output
        assert "/users/me" not in output


class TestRequiredMetricNames:
    """Every required name appears in the output."""

    def test_all_required_names_exported(self) -> None:
        registry = CollectorRegistry()
        exporter = MetricsExporter(registry=registry)
        exporter.update(make_client())

        output = generate_latest(registry).decode("utf-8")
        exported = {
            line.split(" ")[0].split("{")[0]
            for line in output.splitlines()
            if line and not line.startswith("#")
        }

        missing = REQUIRED_METRIC_NAMES - exported
        assert not missing, f"Missing metrics: {missing}"


class TestUpdate:
    """Tests for MetricsExporter.update."""

    @pytest.mark.asyncio
    async def test_counters_and_gauges(self) -> None:
        registry = CollectorRegistry()
        exporter = MetricsExporter(registry=registry)
        client = make_client()

        await client.fetch("/a")
        await client.fetch("/b")
        await client.fetch("/c")  # limiter empty, queue size 0
        exporter.update(client)

        assert sample_value(registry, "motionsdk_client_open") == 1
        assert sample_value(registry, "motionsdk_gate_queue_max") == 0
        assert sample_value(registry, "motionsdk_requests_sent_total") == 2
        assert sample_value(registry, "motionsdk_gate_requests_admitted_total") == 2
        assert sample_value(registry, "motionsdk_gate_queue_overflows_total") == 1

    @pytest.mark.asyncio
    async def test_repeated_updates_add_only_deltas(self) -> None:
        registry = CollectorRegistry()
        exporter = MetricsExporter(registry=registry)
        client = make_client()

        await client.fetch("/a")
        exporter.update(client)
        exporter.update(client)
        await client.fetch("/b")
        exporter.update(client)

        assert sample_value(registry, "motionsdk_requests_sent_total") == 2

    @pytest.mark.asyncio
    async def test_overrun_closes_gauge(self) -> None:
        registry = CollectorRegistry()
        exporter = MetricsExporter(registry=registry)
        client = make_client(status=429)

        await client.fetch("/a")
        exporter.update(client)

        assert sample_value(registry, "motionsdk_client_open") == 0
        assert sample_value(registry, "motionsdk_overruns_total") == 1
        assert sample_value(registry, "motionsdk_gate_penalties_recorded_total") == 1

    @pytest.mark.asyncio
    async def test_reset_counter_tracking(self) -> None:
        """After a reset the next client's totals are added in full."""
        registry = CollectorRegistry()
        exporter = MetricsExporter(registry=registry)

        first = make_client()
        await first.fetch("/a")
        exporter.update(first)

        exporter.reset_counter_tracking()
        second = make_client()
        await second.fetch("/a")
        exporter.update(second)

        assert sample_value(registry, "motionsdk_requests_sent_total") == 2
