from __future__ import annotations

from pathlib import Path
from typing import Any

from .config import StackConfig
from .db import connect_sqlite, ensure_schema, get_result, list_results
from .ingestion import ScreenshotIngestor


def analyze(
    paths: list[str],
    *,
    force: bool = False,
    image_id: str | None = None,
    store: bool = True,
    cfg: StackConfig | None = None,
) -> dict[str, Any]:
    with ScreenshotIngestor(cfg, store=store) as ingestor:
        if image_id is not None:
            if len(paths) != 1:
                raise ValueError("--image-id applies to exactly one path")
            return ingestor.ingest_image(Path(paths[0]), force=force, image_id=image_id)

        summaries = [ingestor.ingest_path(Path(p), force=force) for p in paths]
    return {
        "analyzed": sum(s["analyzed"] for s in summaries),
        "skipped_cached": sum(s["skipped_cached"] for s in summaries),
        "failed": [f for s in summaries for f in s["failed"]],
        "results": [r for s in summaries for r in s["results"]],
        "details": [d for s in summaries for d in s["details"]],
    }


def reanalyze(path: str, *, image_id: str | None = None, store: bool = True, cfg: StackConfig | None = None) -> dict[str, Any]:
    return analyze([path], force=True, image_id=image_id, store=store, cfg=cfg)


def show(image_id: str, cfg: StackConfig | None = None) -> dict[str, Any] | None:
    cfg = cfg or StackConfig()
    conn = connect_sqlite(cfg)
    try:
        ensure_schema(conn)
        return get_result(conn, image_id)
    finally:
        conn.close()


def recent(limit: int = 50, cfg: StackConfig | None = None) -> list[dict[str, Any]]:
    cfg = cfg or StackConfig()
    conn = connect_sqlite(cfg)
    try:
        ensure_schema(conn)
        return list_results(conn, limit=limit)
    finally:
        conn.close()
