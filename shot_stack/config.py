from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


STACK_HOME = Path(os.getenv("SHOT_STACK_HOME", str(Path.home() / ".shot_stack")))


@dataclass(frozen=True)
class StackConfig:
    sqlite_path: Path = Path(os.getenv("SHOT_STACK_DB", str(STACK_HOME / "shot_stack.db")))
    preprocessed_dir: Path = Path(os.getenv("SHOT_STACK_CACHE_DIR", str(STACK_HOME / "preprocessed")))

    max_concurrent: int = int(os.getenv("SHOT_STACK_MAX_CONCURRENT", "2"))
    cache_max_size: int = int(os.getenv("SHOT_STACK_CACHE_SIZE", "100"))
    cache_ttl_seconds: float = float(os.getenv("SHOT_STACK_CACHE_TTL", "86400"))
    keep_results: bool = _env_bool("SHOT_STACK_KEEP_RESULTS", True)
    reanalysis_delay: float = float(os.getenv("SHOT_STACK_REANALYSIS_DELAY", "1.5"))

    reconstruct_engine: str = os.getenv("SHOT_STACK_RECONSTRUCT_ENGINE", "heuristic")  # heuristic | vlm
    detector_backend: str = os.getenv("SHOT_STACK_DETECTOR", "pattern")  # pattern | apple
    vlm_model_name: str = os.getenv("SHOT_STACK_VLM_MODEL", "lmstudio-community/Qwen3-VL-4B-Instruct-MLX-4bit")

    recognition_languages: tuple[str, ...] = ("en-US", "ru-RU", "uk-UA", "pl-PL", "es-ES", "de-DE", "fr-FR")
    max_image_dim: int = 2048
    supported_exts: tuple[str, ...] = (".png", ".jpg", ".jpeg", ".webp", ".heic", ".heif", ".bmp", ".tiff")


EVENT_KEYWORDS: tuple[str, ...] = (
    "concert",
    "meeting",
    "conference",
    "show",
    "performance",
    "appointment",
    "reservation",
    "flight",
    "game",
    "match",
    "class",
    "lecture",
    "seminar",
    "workshop",
    "webinar",
    "party",
    "celebration",
    "wedding",
    "birthday",
    "event",
)

LOCATION_INDICATORS: tuple[str, ...] = (
    "at",
    "in",
    "venue",
    "location",
    "place",
    "hall",
    "center",
    "stadium",
    "arena",
    "theatre",
    "theater",
    "auditorium",
    "room",
    "building",
    "address",
)

SOCIAL_INDICATORS: tuple[str, ...] = (
    "views",
    "likes",
    "comments",
    "share",
    "retweet",
    "reply",
    "follow",
    "followers",
    "following",
    "subscribe",
    "subscribers",
    "ago",
    "min ago",
    "hour ago",
    "day ago",
    "week ago",
    "posted",
    "shared",
    "retweeted",
    "commented",
)

SOCIAL_SCENE_KEYWORDS: tuple[str, ...] = ("conversation", "message", "chat", "social", "post", "feed")

JOB_TITLE_KEYWORDS: tuple[str, ...] = (
    "ceo",
    "cto",
    "cfo",
    "director",
    "manager",
    "president",
    "vice president",
    "vp",
    "engineer",
    "developer",
    "designer",
    "consultant",
    "analyst",
    "specialist",
    "coordinator",
    "assistant",
    "founder",
    "owner",
    "partner",
    "lead",
    "senior",
    "junior",
)

COMPANY_INDICATORS: tuple[str, ...] = ("inc", "llc", "corp", "ltd", "limited", "company", "co.")

DOCUMENT_SCENES: tuple[str, ...] = ("document", "text", "paper", "page", "book")
CHAT_SCENES: tuple[str, ...] = (
    "conversation",
    "messaging",
    "chat",
    "text",
    "communication",
    "social",
    "interface",
)
PRODUCT_SCENES: tuple[str, ...] = ("product", "shopping", "commerce", "store", "retail", "price", "buy")
APP_SCENES: tuple[str, ...] = (
    "interface",
    "application",
    "screen",
    "menu",
    "button",
    "app",
    "software",
    "web",
    "browser",
    "mobile",
    "settings",
)
MEDIA_SCENES: tuple[str, ...] = (
    "poster",
    "movie",
    "video",
    "media",
    "entertainment",
    "film",
    "cinema",
    "play",
    "theater",
)

CARD_BRANDS: tuple[tuple[str, str], ...] = (
    ("visa", "Visa"),
    ("mastercard", "Mastercard"),
    ("american express", "Amex"),
    ("amex", "Amex"),
    ("discover", "Discover"),
    ("jcb", "JCB"),
    ("diners", "Diners"),
    ("maestro", "Maestro"),
    ("unionpay", "UnionPay"),
)

# Top-level domains accepted for scheme-less links such as `example.com` or `www.example.org`.
KNOWN_TLDS: frozenset[str] = frozenset(
    """
    com org net edu gov mil int info biz name pro mobi aero coop museum
    io ai app dev co me tv cc fm gg ly sh so to ws xyz online site tech store shop blog news
    cloud page link live life world today media email digital agency studio design art
    ac ad ae ag am ar at au az ba be bg br by ca ch cl cn cz de dk ee es eu fi fr ge gr
    hk hr hu id ie il in ir is it jp kr kz lt lu lv md mx my nl no nz pe ph pk pl pt ro rs
    ru sa se sg si sk th tr tw ua uk us uz vn za
    """.split()
)
