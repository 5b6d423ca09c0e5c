from __future__ import annotations

import io
from pathlib import Path

from .config import StackConfig
from .models import PreparedImage
from .utils import sha256_bytes

JPEG_QUALITY = 95


def _load_pillow():
    try:
        from PIL import Image, ImageOps

        return Image, ImageOps
    except Exception as exc:
        raise RuntimeError("Pillow is required for screenshot normalization. Install with: pip install pillow") from exc


def _fit(size: tuple[int, int], max_dim: int) -> tuple[int, int]:
    w, h = size
    longest = max(w, h)
    if longest <= max_dim:
        return w, h
    scale = max_dim / float(longest)
    return max(1, int(round(w * scale))), max(1, int(round(h * scale)))


def normalized_jpeg(image_path: Path, max_dim: int) -> tuple[bytes, int, int]:
    """Upright RGB JPEG bytes of the screenshot, downscaled so its longest side is at most `max_dim`."""
    Image, ImageOps = _load_pillow()

    with Image.open(image_path) as img:
        img = ImageOps.exif_transpose(img)
        img = img.convert("RGB")
        target = _fit(img.size, max_dim)
        if target != img.size:
            img = img.resize(target, Image.Resampling.LANCZOS)

        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=JPEG_QUALITY, optimize=True)
        return buffer.getvalue(), target[0], target[1]


def preprocess_image(image_path: Path, cfg: StackConfig) -> PreparedImage:
    image_path = Path(image_path)
    if not image_path.is_file():
        raise FileNotFoundError(f"Screenshot not found: {image_path}")

    data, width, height = normalized_jpeg(image_path, cfg.max_image_dim)
    identity = sha256_bytes(data)

    cfg.preprocessed_dir.mkdir(parents=True, exist_ok=True)
    normalized_path = cfg.preprocessed_dir / f"{identity}.jpg"
    if not normalized_path.exists():
        normalized_path.write_bytes(data)

    return PreparedImage(
        source_path=image_path,
        normalized_path=normalized_path,
        sha256_hash=identity,
        width=width,
        height=height,
    )
