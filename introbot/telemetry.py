"""Usage and health metrics for the introduction board."""
from __future__ import annotations

import json
import logging
import os
import sqlite3
import time
from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class MetricType(Enum):
    """Types of metrics tracked."""
    COMMAND_USAGE = "command_usage"
    INTERACTION = "interaction"
    RECORD_PUBLISHED = "record_published"
    ERROR_RATE = "error_rate"
    PERFORMANCE = "performance"
    SYSTEM_EVENT = "system_event"


@dataclass
class MetricEvent:
    """Individual metric event."""
    timestamp: float
    metric_type: MetricType
    name: str
    value: float
    tags: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


class TelemetryCollector:
    """Collects and stores telemetry data for the bot."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize telemetry collector with database storage."""
        self.db_path = db_path or Path("telemetry.db")
        self._init_database()
        self._start_time = time.time()
        self._metrics_buffer: List[MetricEvent] = []
        self._flush_interval = 60  # seconds
        self._last_flush = time.time()

    def _init_database(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS metrics (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL NOT NULL,
                    metric_type TEXT NOT NULL,
                    name TEXT NOT NULL,
                    value REAL NOT NULL,
                    tags TEXT,
                    metadata TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_metrics_type_name
                ON metrics(metric_type, name)
            """)
            conn.commit()

    def track_command(
        self,
        command_name: str,
        member_id: str,
        guild_id: str,
        success: bool = True,
        duration_ms: Optional[float] = None,
        channel_id: Optional[str] = None,
    ):
        """Track slash command usage."""
        tags = {
            "member_id": member_id,
            "guild_id": guild_id,
            "success": str(success),
        }
        if channel_id:
            tags["channel_id"] = channel_id

        self.record(
            MetricType.COMMAND_USAGE,
            command_name,
            1.0,
            tags=tags,
            metadata={"duration_ms": duration_ms} if duration_ms else {}
        )

    def track_interaction(
        self,
        event_kind: str,
        handler: str,
        member_id: str,
        outcome: str,
    ):
        """Track a routed interaction and how its handler finished."""
        self.record(
            MetricType.INTERACTION,
            handler,
            1.0,
            tags={"event_kind": event_kind, "member_id": member_id, "outcome": outcome},
        )

    def track_record_published(self, kind: str, member_id: str, *, edit: bool):
        self.record(
            MetricType.RECORD_PUBLISHED,
            kind,
            1.0,
            tags={"member_id": member_id, "mode": "edit" if edit else "create"},
        )

    def track_error(
        self,
        error_type: str,
        command: Optional[str] = None,
        member_id: Optional[str] = None,
        error_details: Optional[str] = None
    ):
        """Track errors and failures."""
        tags = {}
        if command:
            tags["command"] = command
        if member_id:
            tags["member_id"] = member_id

        self.record(
            MetricType.ERROR_RATE,
            error_type,
            1.0,
            tags=tags,
            metadata={"error_details": error_details} if error_details else {}
        )

    def track_performance(
        self,
        operation: str,
        duration_ms: float,
        tags: Optional[Dict[str, str]] = None
    ):
        self.record(
            MetricType.PERFORMANCE,
            operation,
            duration_ms,
            tags=tags or {},
            metadata={"unit": "milliseconds"}
        )

    def track_system_event(
        self,
        event: str,
        *,
        source: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Record guide lifecycle and maintenance events."""

        tags = {}
        if source:
            tags["source"] = source

        metadata = {}
        if reason:
            metadata["reason"] = reason

        self.record(
            MetricType.SYSTEM_EVENT,
            event,
            1.0,
            tags=tags,
            metadata=metadata,
        )

    def record(
        self,
        metric_type: MetricType,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """Record a metric event."""
        event = MetricEvent(
            timestamp=time.time(),
            metric_type=metric_type,
            name=name,
            value=value,
            tags=tags or {},
            metadata=metadata or {}
        )

        self._metrics_buffer.append(event)

        if len(self._metrics_buffer) >= 100 or \
           time.time() - self._last_flush > self._flush_interval:
            self.flush()

    def flush(self):
        """Flush buffered metrics to database."""
        if not self._metrics_buffer:
            return

        try:
            with sqlite3.connect(self.db_path) as conn:
                for event in self._metrics_buffer:
                    conn.execute("""
                        INSERT INTO metrics
                        (timestamp, metric_type, name, value, tags, metadata)
                        VALUES (?, ?, ?, ?, ?, ?)
                    """, (
                        event.timestamp,
                        event.metric_type.value,
                        event.name,
                        event.value,
                        json.dumps(event.tags),
                        json.dumps(event.metadata)
                    ))
                conn.commit()

            logger.debug("Flushed %d metrics to database", len(self._metrics_buffer))
            self._metrics_buffer.clear()
            self._last_flush = time.time()

        except sqlite3.Error as e:
            logger.error("Failed to flush metrics: %s", e)

    # Reports ------------------------------------------------------------
    def _rows(self, query: str, params: List[Any]) -> List[tuple]:
        self.flush()
        with closing(sqlite3.connect(self.db_path)) as conn:
            return conn.execute(query, params).fetchall()

    def get_command_stats(self, hours: Optional[float] = None) -> Dict[str, Dict[str, Any]]:
        """Usage count, success rate and distinct members per slash command."""
        query = """
            SELECT name,
                   COUNT(*),
                   AVG(json_extract(tags, '$.success') = 'True'),
                   COUNT(DISTINCT json_extract(tags, '$.member_id'))
            FROM metrics
            WHERE metric_type = ? AND timestamp >= ?
            GROUP BY name
            ORDER BY name
        """
        since = time.time() - hours * 3600 if hours else 0.0
        return {
            name: {"usage_count": count, "success_rate": rate, "unique_members": members}
            for name, count, rate, members in self._rows(
                query, [MetricType.COMMAND_USAGE.value, since]
            )
        }

    def get_error_summary(self, hours: float = 24) -> Dict[str, int]:
        """Error counts by exception name over the last ``hours``."""
        rows = self._rows(
            """
            SELECT name, COUNT(*) AS n FROM metrics
            WHERE metric_type = ? AND timestamp >= ?
            GROUP BY name ORDER BY n DESC, name
            """,
            [MetricType.ERROR_RATE.value, time.time() - hours * 3600],
        )
        return {name: count for name, count in rows}

    def get_system_events(self, hours: float = 24, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent guide and maintenance events, newest first."""
        rows = self._rows(
            """
            SELECT name, timestamp,
                   json_extract(tags, '$.source'),
                   json_extract(metadata, '$.reason')
            FROM metrics
            WHERE metric_type = ? AND timestamp >= ?
            ORDER BY timestamp DESC, id DESC
            LIMIT ?
            """,
            [MetricType.SYSTEM_EVENT.value, time.time() - hours * 3600, limit],
        )
        return [
            {
                "event": name,
                "timestamp": datetime.fromtimestamp(stamp, tz=timezone.utc).isoformat(),
                "source": source,
                "reason": reason,
            }
            for name, stamp, source, reason in rows
        ]

    def health_report(self, hours: float = 24) -> Dict[str, Any]:
        """Snapshot read by ``manage_records telemetry``."""
        return {
            "window_hours": hours,
            "uptime_seconds": round(time.time() - self._start_time, 1),
            "commands": self.get_command_stats(hours),
            "errors": self.get_error_summary(hours),
            "system_events": self.get_system_events(hours),
        }

    def cleanup_old_data(self, days_to_keep: int = 30) -> int:
        """Delete stored metrics older than ``days_to_keep`` days."""
        cutoff = time.time() - days_to_keep * 86400
        with closing(sqlite3.connect(self.db_path)) as conn:
            deleted = conn.execute("DELETE FROM metrics WHERE timestamp < ?", (cutoff,)).rowcount
            conn.commit()
        logger.info("Removed %d metric events older than %d days", deleted, days_to_keep)
        return deleted



# Singleton instance
_telemetry: Optional[TelemetryCollector] = None


def get_telemetry() -> TelemetryCollector:
    """Get or create singleton telemetry collector."""
    global _telemetry
    if _telemetry is None:
        db_path = os.environ.get("INTROBOT_TELEMETRY_DB")
        _telemetry = TelemetryCollector(Path(db_path) if db_path else None)
    return _telemetry


def set_telemetry(collector: Optional[TelemetryCollector]) -> None:
    """Replace the singleton collector (``None`` resets it)."""
    global _telemetry
    _telemetry = collector


class track_duration:
    """Context manager for tracking operation duration."""

    def __init__(self, operation: str, tags: Optional[Dict[str, str]] = None):
        self.operation = operation
        self.tags = tags or {}
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.time() - self.start_time) * 1000
        telemetry = get_telemetry()
        telemetry.track_performance(self.operation, duration_ms, self.tags)

        if exc_type:
            telemetry.track_error(
                exc_type.__name__,
                command=self.operation,
                error_details=str(exc_val)
            )


__all__ = [
    "MetricEvent",
    "MetricType",
    "TelemetryCollector",
    "get_telemetry",
    "set_telemetry",
    "track_duration",
]
