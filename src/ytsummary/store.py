"""SQLite storage for summary records."""

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path

from ytsummary.models import SummaryRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS llm_task_outputs (
    id TEXT PRIMARY KEY,
    external_id TEXT NOT NULL,
    type TEXT NOT NULL,
    output_json TEXT NOT NULL,
    usage_json TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (type, external_id)
);

CREATE INDEX IF NOT EXISTS idx_llm_task_outputs_type_created
    ON llm_task_outputs (type, created_at);
"""


class RecordConflictError(Exception):
    """Raised when another record already holds the same (type, external_id)."""


def new_record_id() -> str:
    return uuid.uuid4().hex


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SummaryStore:
    """SQLite database of LLM task outputs."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _to_record(row: sqlite3.Row) -> SummaryRecord:
        return SummaryRecord(
            id=row["id"],
            external_id=row["external_id"],
            type=row["type"],
            output=json.loads(row["output_json"]),
            usage=json.loads(row["usage_json"]) if row["usage_json"] else None,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def get(self, record_id: str) -> SummaryRecord | None:
        row = self._conn.execute(
            "SELECT * FROM llm_task_outputs WHERE id = ?", (record_id,)
        ).fetchone()
        return self._to_record(row) if row else None

    def find_unique(self, type: str, external_id: str) -> SummaryRecord | None:
        """Point lookup by the (type, external_id) unique key."""
        row = self._conn.execute(
            "SELECT * FROM llm_task_outputs WHERE type = ? AND external_id = ?",
            (type, external_id),
        ).fetchone()
        return self._to_record(row) if row else None

    def upsert(self, record: SummaryRecord) -> SummaryRecord:
        """Create the record, or fully replace the one with the same id.

        ``created_at`` survives a replace; ``updated_at`` is always refreshed.
        """
        now = _now()
        try:
            self._conn.execute(
                """INSERT INTO llm_task_outputs
                   (id, external_id, type, output_json, usage_json, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       external_id = excluded.external_id,
                       type = excluded.type,
                       output_json = excluded.output_json,
                       usage_json = excluded.usage_json,
                       updated_at = excluded.updated_at""",
                (
                    record.id,
                    record.external_id,
                    record.type,
                    json.dumps(record.output),
                    json.dumps(record.usage) if record.usage is not None else None,
                    now,
                    now,
                ),
            )
        except sqlite3.IntegrityError as e:
            self._conn.rollback()
            raise RecordConflictError(
                f"A {record.type} record already exists for {record.external_id}"
            ) from e
        self._conn.commit()
        logger.info(f"Saved {record.type} record {record.id} for {record.external_id}")
        return self.get(record.id)

    def list_latest(self, type: str, limit: int = 3) -> list[SummaryRecord]:
        """Most recently created records of a type, newest first."""
        rows = self._conn.execute(
            """SELECT * FROM llm_task_outputs
               WHERE type = ?
               ORDER BY created_at DESC, rowid DESC
               LIMIT ?""",
            (type, limit),
        ).fetchall()
        return [self._to_record(row) for row in rows]
