from __future__ import annotations

import json
import sqlite3
from typing import Any

from .config import StackConfig
from .models import ProcessedResult
from .utils import json_dumps, utc_now_iso


def connect_sqlite(cfg: StackConfig) -> sqlite3.Connection:
    cfg.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    # Shared by the batch workers; the ingestor serializes writes.
    conn = sqlite3.connect(cfg.sqlite_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS results (
            image_id TEXT PRIMARY KEY,
            source_path TEXT NOT NULL DEFAULT '',
            screenshot_type TEXT NOT NULL,
            title TEXT NOT NULL DEFAULT '',
            type_confidence REAL NOT NULL DEFAULT 0.0,
            confidence REAL NOT NULL DEFAULT 0.0,
            detected_language TEXT,
            engine TEXT NOT NULL DEFAULT '',
            raw_text TEXT NOT NULL DEFAULT '',
            formatted_text TEXT NOT NULL DEFAULT '',
            event_json TEXT,
            contact_json TEXT,
            payload TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS result_entities (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            image_id TEXT NOT NULL,
            kind TEXT NOT NULL,
            value TEXT NOT NULL,
            range_start INTEGER,
            range_end INTEGER,
            metadata TEXT NOT NULL DEFAULT '{}',
            FOREIGN KEY(image_id) REFERENCES results(image_id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS result_actions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            image_id TEXT NOT NULL,
            action_type TEXT NOT NULL,
            title TEXT NOT NULL,
            icon TEXT NOT NULL,
            data TEXT NOT NULL DEFAULT '{}',
            priority INTEGER NOT NULL,
            FOREIGN KEY(image_id) REFERENCES results(image_id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_result_entities_image ON result_entities(image_id);
        CREATE INDEX IF NOT EXISTS idx_result_entities_kind ON result_entities(kind, value);
        CREATE INDEX IF NOT EXISTS idx_result_actions_image ON result_actions(image_id);
        CREATE INDEX IF NOT EXISTS idx_results_type ON results(screenshot_type);
        """
    )
    conn.commit()


def replace_result(conn: sqlite3.Connection, result: ProcessedResult, *, source_path: str = "") -> None:
    """Replace every stored row for the image with `result` in one transaction scope."""
    now = utc_now_iso()
    payload = result.to_dict()

    with conn:
        conn.execute("DELETE FROM result_actions WHERE image_id = ?", (result.image_id,))
        conn.execute("DELETE FROM result_entities WHERE image_id = ?", (result.image_id,))
        conn.execute("DELETE FROM results WHERE image_id = ?", (result.image_id,))

        conn.execute(
            """
            INSERT INTO results (
                image_id,source_path,screenshot_type,title,type_confidence,confidence,detected_language,engine,
                raw_text,formatted_text,event_json,contact_json,payload,created_at,updated_at
            ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
            """,
            (
                result.image_id,
                source_path,
                result.classification.type_label.value,
                result.classification.title,
                float(result.classification.confidence),
                float(result.confidence),
                result.detected_language,
                result.engine,
                result.raw_text,
                result.formatted_text,
                json_dumps(payload["event"]) if result.event else None,
                json_dumps(payload["contact"]) if result.contact else None,
                json_dumps(payload),
                result.created_at or now,
                now,
            ),
        )
        conn.executemany(
            """
            INSERT INTO result_entities (image_id,kind,value,range_start,range_end,metadata)
            VALUES (?,?,?,?,?,?)
            """,
            [
                (
                    result.image_id,
                    e.kind.value,
                    e.value,
                    e.source_range[0] if e.source_range else None,
                    e.source_range[1] if e.source_range else None,
                    json_dumps(e.metadata),
                )
                for e in result.entities
            ],
        )
        conn.executemany(
            """
            INSERT INTO result_actions (image_id,action_type,title,icon,data,priority)
            VALUES (?,?,?,?,?,?)
            """,
            [(result.image_id, a.action_type, a.title, a.icon, a.data, a.priority) for a in result.actions],
        )


def get_result(conn: sqlite3.Connection, image_id: str) -> dict[str, Any] | None:
    row = conn.execute("SELECT * FROM results WHERE image_id = ?", (image_id,)).fetchone()
    if row is None:
        return None
    out = json.loads(row["payload"])
    out["source_path"] = row["source_path"]
    out["updated_at"] = row["updated_at"]
    return out


def has_result(conn: sqlite3.Connection, image_id: str) -> bool:
    row = conn.execute("SELECT 1 FROM results WHERE image_id = ? LIMIT 1", (image_id,)).fetchone()
    return row is not None


def count_rows(conn: sqlite3.Connection, table: str, image_id: str) -> int:
    if table not in {"results", "result_entities", "result_actions"}:
        raise ValueError(f"Unknown table: {table}")
    row = conn.execute(f"SELECT COUNT(*) AS n FROM {table} WHERE image_id = ?", (image_id,)).fetchone()
    return int(row["n"])


def list_results(conn: sqlite3.Connection, *, limit: int = 50) -> list[dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT image_id, source_path, screenshot_type, title, confidence, updated_at
        FROM results ORDER BY updated_at DESC LIMIT ?
        """,
        (int(limit),),
    ).fetchall()
    return [dict(r) for r in rows]
