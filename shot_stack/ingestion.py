from __future__ import annotations

import logging
import sqlite3
import threading
import traceback
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from .cache import ExtractionCache
from .config import StackConfig
from .db import connect_sqlite, ensure_schema, has_result, replace_result
from .gate import AnalysisGate
from .models import ProcessedResult
from .pipeline import NO_IMAGE_ENGINE, ScreenshotPipeline, build_pipeline
from .preprocess import preprocess_image
from .scheduler import ReanalysisScheduler

logger = logging.getLogger(__name__)


def _summary(result: ProcessedResult) -> dict[str, Any]:
    return {
        "image_id": result.image_id,
        "type": result.classification.type_label.value,
        "title": result.classification.title,
        "confidence": result.confidence,
        "entities": len(result.entities),
        "actions": len(result.actions),
        "has_event": result.event is not None,
        "has_contact": result.contact is not None,
        "objects": len(result.objects),
    }


class ScreenshotIngestor:
    """Admission-gated, memoized screenshot analysis with optional persistence."""

    def __init__(
        self,
        cfg: StackConfig | None = None,
        *,
        pipeline: ScreenshotPipeline | None = None,
        gate: AnalysisGate | None = None,
        cache: ExtractionCache | None = None,
        store: bool = True,
    ):
        self.cfg = cfg or StackConfig()
        self.pipeline = pipeline or build_pipeline(self.cfg)
        self.gate = gate or AnalysisGate(self.cfg.max_concurrent)
        self.cache = cache or ExtractionCache(
            self.cfg.cache_max_size,
            self.cfg.cache_ttl_seconds,
            keep_results=self.cfg.keep_results,
        )
        self.store = store
        self.scheduler = ReanalysisScheduler(self.reanalyze, delay=self.cfg.reanalysis_delay)
        self._conn: sqlite3.Connection | None = None
        self._db_lock = threading.Lock()

    def __enter__(self) -> "ScreenshotIngestor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.scheduler.cancel()
        with self._db_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _connection(self) -> sqlite3.Connection:
        # Caller holds _db_lock.
        if self._conn is None:
            self._conn = connect_sqlite(self.cfg)
            ensure_schema(self._conn)
        return self._conn

    def _persist(self, result: ProcessedResult, image_path: Path | None) -> None:
        with self._db_lock:
            replace_result(self._connection(), result, source_path=str(image_path or ""))

    def _stored(self, image_id: str) -> bool:
        try:
            with self._db_lock:
                return has_result(self._connection(), image_id)
        except Exception as exc:
            logger.warning(f"Stored result lookup failed for {image_id}: {exc}")
            return False

    def analyze(self, image_id: str, image_path: str | Path | None, *, force: bool = False) -> ProcessedResult | None:
        """Run the pipeline for one image unless it is already memoized.

        Returns the cached result on a memo hit, or None when the memo only records completion.
        With `store` on, a result persisted by an earlier run also counts as done.
        `force` drops the memo entry first so the new result replaces the old one.
        """
        if force:
            self.cache.remove(image_id)
        elif self.cache.is_cached(image_id):
            logger.info(f"Skipping {image_id}: already analyzed")
            return self.cache.get(image_id)
        elif self.store and self._stored(image_id):
            logger.info(f"Skipping {image_id}: result already stored")
            self.cache.mark_completed(image_id)
            return None

        with self.gate.slot():
            result = self.pipeline.process(image_id, image_path)

        if result.engine == NO_IMAGE_ENGINE:
            return result

        self.cache.mark_completed(image_id, result)
        if self.store:
            try:
                self._persist(result, Path(image_path) if image_path else None)
            except Exception as exc:
                logger.error(f"Failed to persist result for {image_id}: {exc}")
        return result

    def reanalyze(self, image_id: str, image_path: str | Path | None) -> ProcessedResult | None:
        return self.analyze(image_id, image_path, force=True)

    def request_reanalysis(self, image_id: str, image_path: str | Path | None) -> int:
        """Debounced re-analysis; rapid repeated requests collapse into the last one."""
        return self.scheduler.schedule(image_id, image_path)

    def _ingest_one(self, image_path: Path, *, force: bool, image_id: str | None) -> tuple[str, Any]:
        try:
            prepared = preprocess_image(image_path, self.cfg)
            identity = image_id or prepared.sha256_hash
            if not force and self.cache.is_cached(identity):
                return "skipped", identity
            result = self.analyze(identity, prepared.normalized_path, force=force)
            if result is None:
                return "skipped", identity
            return "analyzed", result
        except Exception as exc:
            traceback.print_exc()
            return "failed", f"{image_path}: {exc}"

    def ingest_image(self, image_path: str | Path, *, force: bool = False, image_id: str | None = None) -> dict[str, Any]:
        outcome, value = self._ingest_one(Path(image_path), force=force, image_id=image_id)
        return self._collect([(outcome, value)])

    def ingest_batch(self, image_paths: list[Path], *, force: bool = False) -> dict[str, Any]:
        if not image_paths:
            return self._collect([])
        workers = max(1, min(len(image_paths), self.cfg.max_concurrent * 2))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(lambda p: self._ingest_one(Path(p), force=force, image_id=None), image_paths))
        return self._collect(outcomes)

    def ingest_path(self, target: str | Path, *, force: bool = False) -> dict[str, Any]:
        target = Path(target)
        if target.is_file():
            if target.suffix.lower() in self.cfg.supported_exts:
                return self.ingest_batch([target], force=force)
            return self._collect([("failed", f"{target}: unsupported extension")])
        if target.is_dir():
            files = [
                p for p in sorted(target.rglob("*"))
                if p.is_file() and p.suffix.lower() in self.cfg.supported_exts
            ]
            if not files:
                return self._collect([("failed", f"{target}: no images found")])
            return self.ingest_batch(files, force=force)
        return self._collect([("failed", f"{target}: not found")])

    @staticmethod
    def _collect(outcomes: list[tuple[str, Any]]) -> dict[str, Any]:
        results = [value for outcome, value in outcomes if outcome == "analyzed"]
        return {
            "analyzed": len(results),
            "skipped_cached": sum(1 for outcome, _ in outcomes if outcome == "skipped"),
            "failed": [value for outcome, value in outcomes if outcome == "failed"],
            "results": [_summary(r) for r in results],
            "details": [r.to_dict() for r in results],
        }
