"""Tests for telemetry collection and the command decorator."""
from __future__ import annotations

import time
from types import SimpleNamespace

import pytest

from introbot.telemetry import MetricType, TelemetryCollector, get_telemetry, track_duration
from introbot.telemetry_decorator import track_command


def _interaction(command_name="self"):
    return SimpleNamespace(
        user=SimpleNamespace(id=42),
        guild_id=1,
        channel_id=100,
        command=SimpleNamespace(name=command_name),
    )


def test_collector_creates_database(tmp_path):
    db_path = tmp_path / "metrics.db"
    collector = TelemetryCollector(db_path)
    assert db_path.exists()
    assert collector._metrics_buffer == []


def test_command_stats(telemetry):
    telemetry.track_command("self", "42", "1", success=True, duration_ms=12.0)
    telemetry.track_command("self", "43", "1", success=False)
    telemetry.track_command("sns", "42", "1")
    telemetry.flush()

    stats = telemetry.get_command_stats()
    assert stats["self"]["usage_count"] == 2
    assert stats["self"]["unique_members"] == 2
    assert stats["self"]["success_rate"] == pytest.approx(0.5)
    assert stats["sns"]["usage_count"] == 1


def test_buffer_flushes_when_full(telemetry):
    for _ in range(100):
        telemetry.track_interaction("command", "command:self", "42", "form_opened")
    assert telemetry._metrics_buffer == []


def test_track_duration_records_errors(telemetry):
    with pytest.raises(ValueError):
        with track_duration("publish_introduction"):
            raise ValueError("nope")
    telemetry.flush()
    assert telemetry.get_error_summary() == {"ValueError": 1}


def test_cleanup_old_data(telemetry):
    telemetry.record(MetricType.SYSTEM_EVENT, "maintenance", 1.0)
    telemetry._metrics_buffer[0].timestamp = time.time() - 90 * 86400
    telemetry.flush()
    assert telemetry.cleanup_old_data(days_to_keep=30) == 1


def test_get_telemetry_returns_installed_collector(telemetry):
    assert get_telemetry() is telemetry


@pytest.mark.asyncio
async def test_track_command_records_usage(telemetry):
    @track_command
    async def introduce(interaction):
        return "ok"

    assert await introduce(_interaction()) == "ok"
    telemetry.flush()
    assert telemetry.get_command_stats()["self"]["success_rate"] == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_track_command_records_failures(telemetry):
    @track_command
    async def introduce(interaction):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await introduce(_interaction())
    telemetry.flush()
    assert telemetry.get_error_summary() == {"RuntimeError": 1}
    assert telemetry.get_command_stats()["self"]["success_rate"] == pytest.approx(0.0)
