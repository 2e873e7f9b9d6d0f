"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    # --- Database ---
    database_url: str = os.getenv(
        "SPEEDTYPE_DB_URL", f"sqlite+aiosqlite:///{DATA_DIR / 'speedtype.db'}"
    )

    # --- Cookie session ---
    session_secret: str = os.getenv("SESSION_SECRET", "speedtype-dev-secret-change-me")
    https_only: bool = _env_bool("HTTPS_ONLY")
    session_max_age: int = 60 * 60 * 24 * 30  # 30 days

    # --- Test sessions ---
    test_session_ttl_seconds: int = int(os.getenv("TEST_SESSION_TTL_SECONDS", "600"))
    min_duration_seconds: int = 15
    max_duration_seconds: int = 120
    # Time a client needs on top of the test itself (page load, countdown, submit)
    submit_slack_seconds: int = 60
    strict_fingerprint: bool = _env_bool("STRICT_FINGERPRINT")

    # --- Scoring ---
    max_plausible_wpm: float = float(os.getenv("MAX_PLAUSIBLE_WPM", "300"))
    snippet_max_length: int = 100

    # --- Texts ---
    languages: tuple[str, ...] = ("en", "es", "fr", "de", "it", "pt")
    difficulties: tuple[str, ...] = ("easy", "medium", "hard")
    default_language: str = "en"
    default_difficulty: str = "medium"
    default_duration_seconds: int = 60

    # --- Retention ---
    session_grace_days: int = 7
    guest_idle_days: int = 30
    guest_purge_days: int = 90

    # --- Pagination ---
    page_size_default: int = 20
    page_size_max: int = 100

    # --- History timeframes (days back; None = no bound) ---
    timeframes: dict[str, int | None] = field(default_factory=lambda: {
        "all": None,
        "today": 0,
        "week": 7,
        "month": 30,
    })

    def __post_init__(self) -> None:
        floor = self.max_duration_seconds + self.submit_slack_seconds
        if self.test_session_ttl_seconds <= floor:
            raise ValueError(
                f"TEST_SESSION_TTL_SECONDS must exceed {floor}s "
                f"(max test duration plus submit slack)"
            )


settings = Settings()

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
