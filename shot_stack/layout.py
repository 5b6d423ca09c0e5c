from __future__ import annotations

import logging
import re
from functools import cmp_to_key
from pathlib import Path
from typing import Protocol

from .models import ClassifiedLine, DocumentLine, ReconstructedDocument, TextBlock

logger = logging.getLogger(__name__)

NUMBERED_PATTERN = re.compile(r"^\d+[.)]\s")
BULLET_PATTERN = re.compile(r"^[-•*]\s+")
QUOTE_PATTERN = re.compile(r"^>\s*")

ROW_TOLERANCE = 0.01
GAP_FACTOR = 1.5
HEADING_FACTOR = 1.3
TOP_BAND = 0.2
SHORT_LINE = 40


class DocumentReconstructor(Protocol):
    engine: str

    def reconstruct(self, blocks: list[TextBlock], image_path: Path | None = None) -> ReconstructedDocument: ...


def _reading_order(a: TextBlock, b: TextBlock) -> int:
    # Bottom-left origin: larger y is visually higher.
    if abs(a.y - b.y) > ROW_TOLERANCE:
        return -1 if a.y > b.y else 1
    if a.x < b.x:
        return -1
    if a.x > b.x:
        return 1
    return 0


def sort_blocks(blocks: list[TextBlock]) -> list[TextBlock]:
    return sorted(blocks, key=cmp_to_key(_reading_order))


def median_height(blocks: list[TextBlock]) -> float:
    heights = sorted(b.height for b in blocks)
    if not heights:
        return 0.0
    return heights[len(heights) // 2]


def group_lines(sorted_blocks: list[TextBlock], gap_threshold: float) -> list[DocumentLine]:
    if not sorted_blocks:
        return []

    first = sorted_blocks[0]
    text, y, height = first.text, first.y, first.height
    last = first
    lines: list[DocumentLine] = []

    for block in sorted_blocks[1:]:
        if abs(block.y - last.y) < gap_threshold:
            text = f"{text} {block.text}"
            height = max(height, block.height)
        else:
            lines.append(DocumentLine(text=text, y=y, height=height))
            text, y, height = block.text, block.y, block.height
        last = block

    if text:
        lines.append(DocumentLine(text=text, y=y, height=height))
    return lines


def classify_lines(lines: list[DocumentLine], median: float) -> list[ClassifiedLine]:
    if not lines:
        return []

    top_band = max(line.y for line in lines) - TOP_BAND
    use_top_band = len(lines) > 1
    emitted_main_heading = False
    out: list[ClassifiedLine] = []

    for line in lines:
        text = line.text

        if NUMBERED_PATTERN.search(text):
            out.append(ClassifiedLine(kind="numbered", text=text))
            continue

        bullet = BULLET_PATTERN.search(text)
        if bullet:
            out.append(ClassifiedLine(kind="bullet", text=text[bullet.end():]))
            continue

        quote = QUOTE_PATTERN.search(text)
        if quote:
            out.append(ClassifiedLine(kind="quote", text=text[quote.end():]))
            continue

        is_big = line.height > median * HEADING_FACTOR
        is_top = use_top_band and line.y > top_band
        is_short = len(text) < SHORT_LINE

        if is_big or (is_top and is_short):
            level = 2 if emitted_main_heading else 1
            emitted_main_heading = True
            out.append(ClassifiedLine(kind="heading", text=text, level=level))
            continue

        out.append(ClassifiedLine(kind="paragraph", text=text))

    return out


def render_markdown(classified: list[ClassifiedLine]) -> str:
    md: list[str] = []
    for line in classified:
        if line.kind == "numbered":
            md.append(line.text)
        elif line.kind == "bullet":
            md.append(f"- {line.text}")
        elif line.kind == "quote":
            md.append(f"> {line.text}")
        elif line.kind == "heading":
            md.append(f"{'#' * line.level} {line.text}")
            md.append("")
        else:
            md.append(line.text)
            md.append("")

    while md and not md[-1].strip():
        md.pop()
    return "\n".join(md)


def plain_text(blocks: list[TextBlock]) -> str:
    return "\n".join(b.text for b in blocks)


class HeuristicReconstructor:
    """Geometric layout reconstruction. Never raises."""

    engine = "heuristic"

    def reconstruct(self, blocks: list[TextBlock], image_path: Path | None = None) -> ReconstructedDocument:
        if not blocks:
            return ReconstructedDocument(markdown="", engine=self.engine)
        try:
            ordered = sort_blocks(list(blocks))
            median = median_height(ordered)
            lines = group_lines(ordered, median * GAP_FACTOR)
            classified = classify_lines(lines, median)
            return ReconstructedDocument(
                markdown=render_markdown(classified),
                lines=tuple(lines),
                classified=tuple(classified),
                engine=self.engine,
            )
        except Exception as exc:
            logger.error(f"Layout reconstruction failed, returning plain text: {exc}")
            try:
                return ReconstructedDocument(markdown=plain_text(list(blocks)), engine="plain")
            except Exception:
                return ReconstructedDocument(markdown="", engine="plain")


def reconstruct_document(blocks: list[TextBlock]) -> ReconstructedDocument:
    return HeuristicReconstructor().reconstruct(blocks)
