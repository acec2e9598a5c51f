"""Record persistence for introductions, link sets and pending forms."""
from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import closing
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from .errors import AlreadyExists, MissingPrerequisite, NotFound
from .models import IntroductionRecord, LinkSetRecord, RecordKind

logger = logging.getLogger(__name__)

_DB_SCHEMA = """
CREATE TABLE IF NOT EXISTS introductions (
    owner_id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS link_sets (
    owner_id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS form_state (
    token TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_form_state_created
    ON form_state (created_at);
"""

R = TypeVar("R", IntroductionRecord, LinkSetRecord)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RecordStore(Generic[R]):
    """Keyed JSON records, at most one per owner."""

    def __init__(
        self,
        db_path: Path,
        kind: RecordKind,
        table: str,
        decoder: Callable[[Dict[str, Any]], R],
    ) -> None:
        self._db_path = db_path
        self.kind = kind
        self._table = table
        self._decoder = decoder

    def exists(self, owner_id: str) -> bool:
        with closing(sqlite3.connect(self._db_path)) as conn:
            row = conn.execute(
                f"SELECT 1 FROM {self._table} WHERE owner_id = ?", (owner_id,)
            ).fetchone()
        return row is not None

    def get(self, owner_id: str) -> Optional[R]:
        with closing(sqlite3.connect(self._db_path)) as conn:
            row = conn.execute(
                f"SELECT data FROM {self._table} WHERE owner_id = ?", (owner_id,)
            ).fetchone()
        if row is None:
            return None
        return self._decoder(json.loads(row[0]))

    def load(self, owner_id: str) -> R:
        record = self.get(owner_id)
        if record is None:
            raise NotFound(self.kind, owner_id)
        return record

    def create(self, owner_id: str, record: R) -> R:
        """Insert a record, failing if the owner already has one."""

        self._check_owner(owner_id, record)
        try:
            with closing(sqlite3.connect(self._db_path)) as conn:
                conn.execute(
                    f"INSERT INTO {self._table} (owner_id, data, updated_at) VALUES (?, ?, ?)",
                    (owner_id, json.dumps(record.to_dict()), record.updated_at),
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            existing = self.get(owner_id)
            raise AlreadyExists(
                self.kind, owner_id, existing.message if existing else None
            ) from exc
        logger.debug("Created %s record for %s", self.kind.value, owner_id)
        return record

    def save(self, owner_id: str, record: R) -> R:
        """Unconditionally overwrite the owner's record."""

        self._check_owner(owner_id, record)
        with closing(sqlite3.connect(self._db_path)) as conn:
            conn.execute(
                f"REPLACE INTO {self._table} (owner_id, data, updated_at) VALUES (?, ?, ?)",
                (owner_id, json.dumps(record.to_dict()), record.updated_at),
            )
            conn.commit()
        logger.debug("Saved %s record for %s", self.kind.value, owner_id)
        return record

    def owners(self) -> List[str]:
        with closing(sqlite3.connect(self._db_path)) as conn:
            rows = conn.execute(
                f"SELECT owner_id FROM {self._table} ORDER BY updated_at DESC"
            ).fetchall()
        return [row[0] for row in rows]

    def count(self) -> int:
        with closing(sqlite3.connect(self._db_path)) as conn:
            row = conn.execute(f"SELECT COUNT(*) FROM {self._table}").fetchone()
        return int(row[0])

    def _check_owner(self, owner_id: str, record: R) -> None:
        if record.owner_id != owner_id:
            raise ValueError(
                f"record owner {record.owner_id} does not match key {owner_id}"
            )


class IntroductionStore(RecordStore[IntroductionRecord]):
    def __init__(self, db_path: Path) -> None:
        super().__init__(
            db_path, RecordKind.INTRODUCTION, "introductions", IntroductionRecord.from_dict
        )


class LinkSetStore(RecordStore[LinkSetRecord]):
    """Link sets may only be written for owners with an introduction."""

    def __init__(self, db_path: Path, introductions: IntroductionStore) -> None:
        super().__init__(db_path, RecordKind.LINK_SET, "link_sets", LinkSetRecord.from_dict)
        self._introductions = introductions

    def create(self, owner_id: str, record: LinkSetRecord) -> LinkSetRecord:
        self._require_introduction(owner_id)
        return super().create(owner_id, record)

    def save(self, owner_id: str, record: LinkSetRecord) -> LinkSetRecord:
        self._require_introduction(owner_id)
        return super().save(owner_id, record)

    def _require_introduction(self, owner_id: str) -> None:
        if not self._introductions.exists(owner_id):
            raise MissingPrerequisite(owner_id, None)


class BoardState:
    """High level interface for the bot's persistent state."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._ensure_schema()
        self.introductions = IntroductionStore(db_path)
        self.link_sets = LinkSetStore(db_path, self.introductions)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _ensure_schema(self) -> None:
        with closing(sqlite3.connect(self._db_path)) as conn:
            conn.executescript(_DB_SCHEMA)
            conn.commit()

    def store_for(self, kind: RecordKind) -> RecordStore:
        if kind is RecordKind.INTRODUCTION:
            return self.introductions
        return self.link_sets

    # Transient form state ---------------------------------------------
    def stash_form_state(self, payload: Dict[str, Any]) -> str:
        """Persist a payload under a fresh token and return the token."""

        token = uuid.uuid4().hex
        with closing(sqlite3.connect(self._db_path)) as conn:
            conn.execute(
                "INSERT INTO form_state (token, payload, created_at) VALUES (?, ?, ?)",
                (token, json.dumps(payload), utcnow_iso()),
            )
            conn.commit()
        return token

    def peek_form_state(self, token: str) -> Optional[Dict[str, Any]]:
        with closing(sqlite3.connect(self._db_path)) as conn:
            row = conn.execute(
                "SELECT payload FROM form_state WHERE token = ?", (token,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def consume_form_state(self, token: str) -> Optional[Dict[str, Any]]:
        """Return and remove the payload stored under ``token``."""

        with closing(sqlite3.connect(self._db_path)) as conn:
            row = conn.execute(
                "SELECT payload FROM form_state WHERE token = ?", (token,)
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM form_state WHERE token = ?", (token,))
            conn.commit()
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            logger.error("Discarding unreadable form state %s", token)
            return None

    def discard_form_state(self, token: str) -> bool:
        with closing(sqlite3.connect(self._db_path)) as conn:
            cursor = conn.execute("DELETE FROM form_state WHERE token = ?", (token,))
            conn.commit()
        return cursor.rowcount > 0

    def purge_form_state(
        self, max_age: timedelta, now: Optional[datetime] = None
    ) -> int:
        """Discard form state that was never submitted."""

        cutoff = (now or datetime.now(timezone.utc)) - max_age
        with closing(sqlite3.connect(self._db_path)) as conn:
            cursor = conn.execute(
                "DELETE FROM form_state WHERE created_at < ?", (cutoff.isoformat(),)
            )
            conn.commit()
        if cursor.rowcount:
            logger.info("Purged %d abandoned form state entries", cursor.rowcount)
        return cursor.rowcount

    def count_form_state(self) -> int:
        with closing(sqlite3.connect(self._db_path)) as conn:
            row = conn.execute("SELECT COUNT(*) FROM form_state").fetchone()
        return int(row[0])

    def summary(self) -> Dict[str, int]:
        return {
            "introductions": self.introductions.count(),
            "link_sets": self.link_sets.count(),
            "pending_forms": self.count_form_state(),
        }


__all__ = [
    "BoardState",
    "IntroductionStore",
    "LinkSetStore",
    "RecordStore",
    "utcnow_iso",
]
