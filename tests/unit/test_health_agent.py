"""HealthAgent 단위 테스트"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from alchemist.agent.metrics import DispatchMetrics
from alchemist.agent.state import BusStatus, ConnectionState
from alchemist.agents.base import AgentLifecycle
from alchemist.agents.health_agent import HealthAgent


class TestSnapshotStatus:
    def test_unhealthy_before_bus_connects(self, fast_config) -> None:
        health = HealthAgent(fast_config)
        snapshot = health.snapshot()
        assert snapshot.status == "unhealthy"
        assert snapshot.model_status == "unknown"

    def test_connecting_is_unhealthy(self, fast_config) -> None:
        health = HealthAgent(fast_config)
        health.record_bus_state(BusStatus(ConnectionState.CONNECTING, 2))
        assert health.snapshot().status == "unhealthy"

    def test_connected_is_healthy(self, fast_config) -> None:
        health = HealthAgent(fast_config)
        health.record_bus_state(BusStatus(ConnectionState.CONNECTED))
        assert health.snapshot().status == "healthy"

    def test_unreachable_model_degrades(self, fast_config) -> None:
        health = HealthAgent(fast_config)
        health.record_bus_state(BusStatus(ConnectionState.CONNECTED))
        health.record_model_reachable(False)
        assert health.snapshot().status == "degraded"
        assert health.snapshot().model_status == "unavailable"

    def test_draining_wins(self, fast_config) -> None:
        health = HealthAgent(fast_config)
        health.record_model_reachable(False)
        health.record_bus_state(BusStatus(ConnectionState.DRAINING))
        assert health.snapshot().status == "draining"

    def test_last_write_wins(self, fast_config) -> None:
        health = HealthAgent(fast_config)
        health.record_session_count(3)
        health.record_session_count(1)
        health.record_model_reachable(False)
        health.record_model_reachable(True)
        snapshot = health.snapshot()
        assert snapshot.active_session_count == 1
        assert snapshot.model_provider_reachable is True


class TestSnapshotWire:
    def test_wire_fields(self, fast_config) -> None:
        health = HealthAgent(fast_config, metrics=DispatchMetrics())
        health.record_bus_state(BusStatus(ConnectionState.CONNECTED))
        health.record_session_count(2)

        wire = health.snapshot().to_wire()

        assert wire["status"] == "healthy"
        assert wire["version"] == fast_config.identity.version
        assert wire["active_dialogs"] == 2
        assert isinstance(wire["uptime_seconds"], int)
        assert wire["metadata"]["bus_state"] == "connected"
        assert wire["metadata"]["agent_id"] == "alchemist-test"
        assert wire["metadata"]["messages_processed"] == 0

    def test_connecting_label(self, fast_config) -> None:
        health = HealthAgent(fast_config)
        health.record_bus_state(BusStatus(ConnectionState.CONNECTING, 4))
        assert health.snapshot().to_wire()["metadata"]["bus_state"] == "connecting(4)"


class TestProbeLoop:
    @pytest.mark.asyncio
    async def test_initial_probe_records_model_state(self, fast_config, fake_provider) -> None:
        fake_provider.reachable = False
        health = HealthAgent(fast_config, provider=fake_provider, metrics=DispatchMetrics())

        task = asyncio.create_task(health.start())
        await asyncio.sleep(0.05)

        assert health.lifecycle is AgentLifecycle.ACTIVE
        assert health.snapshot().model_status == "unavailable"
        assert health.metrics.peak_memory_mb > 0

        health.request_stop()
        await asyncio.wait_for(task, timeout=1.0)
        assert health.lifecycle is AgentLifecycle.OFF

    @pytest.mark.asyncio
    async def test_probe_error_counts_as_unreachable(self, fast_config) -> None:
        provider = AsyncMock()
        provider.health_check.side_effect = RuntimeError("connection refused")
        health = HealthAgent(fast_config, provider=provider)

        task = asyncio.create_task(health.start())
        await asyncio.sleep(0.05)
        health.request_stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert health.snapshot().model_provider_reachable is False
        provider.health_check.assert_awaited()
