from __future__ import annotations

import json
import logging
import re
import threading
from pathlib import Path

from .layout import HeuristicReconstructor
from .models import ReconstructedDocument, TextBlock
from .utils import release_model_memory

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"^```(?:markdown|md)?\s*\n(.*?)\n```\s*$", re.DOTALL)

PROMPT_TEMPLATE = (
    "You are an OCR post-processor.\n"
    "Input: a JSON array of text blocks with coordinates (x, y, width, height) "
    "in normalized page coordinates, origin at the bottom-left.\n"
    "Task:\n"
    "- Reconstruct the original document as Markdown.\n"
    "- Preserve ALL text exactly as it appears; do not invent content.\n"
    "- Use #, ##, ### for headings (larger or top lines).\n"
    "- Blank line between paragraphs.\n"
    "- Bulleted lists (- item) and numbered lists (1., 2., ...).\n"
    "- Output ONLY Markdown, no commentary.\n"
    "OCR_BLOCKS_JSON:\n{blocks_json}\n"
)


def blocks_to_json(blocks: list[TextBlock]) -> str:
    return json.dumps(
        [
            {
                "text": b.text,
                "x": round(b.x, 4),
                "y": round(b.y, 4),
                "width": round(b.width, 4),
                "height": round(b.height, 4),
            }
            for b in blocks
        ],
        ensure_ascii=False,
    )


def clean_model_markdown(text: str) -> str:
    candidate = (text or "").strip()
    fenced = FENCE_PATTERN.match(candidate)
    if fenced:
        candidate = fenced.group(1).strip()
    return candidate


class VLMReconstructor:
    """Model-backed reconstruction via mlx-vlm, falling back to the heuristic engine on any failure."""

    engine = "vlm"

    def __init__(self, model_id: str, *, max_tokens: int = 1024, fallback: HeuristicReconstructor | None = None):
        self.model_id = model_id
        self.max_tokens = max_tokens
        self.fallback = fallback or HeuristicReconstructor()
        self.model = None
        self.processor = None
        # One model instance per reconstructor; loads and generations are serialized.
        self._lock = threading.RLock()

    @property
    def loaded(self) -> bool:
        return self.model is not None and self.processor is not None

    def load(self) -> None:
        with self._lock:
            if self.loaded:
                return
            try:
                from mlx_vlm import load
            except Exception as exc:
                raise RuntimeError("mlx-vlm is required for model-backed reconstruction") from exc
            self.model, self.processor = load(self.model_id)

    def unload(self) -> None:
        with self._lock:
            self.model = None
            self.processor = None
            release_model_memory()

    def __enter__(self) -> "VLMReconstructor":
        self.load()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unload()

    def _generate(self, blocks: list[TextBlock], image_path: Path | None) -> str:
        with self._lock:
            self.load()

            from mlx_vlm import generate
            from mlx_vlm.prompt_utils import apply_chat_template

            prompt_text = PROMPT_TEMPLATE.format(blocks_json=blocks_to_json(blocks))
            num_images = 1 if image_path is not None else 0
            prompt = apply_chat_template(self.processor, self.model.config, prompt_text, num_images=num_images)

            kwargs = {"max_tokens": self.max_tokens, "temperature": 0.0}
            if image_path is not None:
                from mlx_vlm.utils import load_image

                kwargs["image"] = [load_image(str(image_path))]
            raw = generate(self.model, self.processor, prompt=prompt, **kwargs)
            return raw.text if hasattr(raw, "text") else str(raw)

    def reconstruct(self, blocks: list[TextBlock], image_path: Path | None = None) -> ReconstructedDocument:
        if not blocks:
            return ReconstructedDocument(markdown="", engine=self.engine)
        try:
            markdown = clean_model_markdown(self._generate(list(blocks), image_path))
            if not markdown:
                raise RuntimeError("model returned empty markdown")
        except Exception as exc:
            logger.warning(f"Model reconstruction failed, falling back to heuristics: {exc}")
            return self.fallback.reconstruct(blocks)

        # Line geometry still comes from the heuristic pass so downstream consumers see the same shape.
        heuristic = self.fallback.reconstruct(blocks)
        return ReconstructedDocument(
            markdown=markdown,
            lines=heuristic.lines,
            classified=heuristic.classified,
            engine=self.engine,
        )
