"""Environment-driven settings and logging setup."""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv
from rich.logging import RichHandler

load_dotenv()

DEFAULT_MODEL = "claude-haiku-4-5-20251001"

# Demo businesses; REVIEWLY_SLUGS overrides this table
DEFAULT_SLUGS = {
    "sushi-grill": "16",
    "john-does-restaurant": "15",
}


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}.")


def parse_slug_table(raw: str) -> dict[str, str]:
    """
    Parse "slug=id,slug=id" into a mapping.

    >>> parse_slug_table("sushi-grill=16, john-does-restaurant=15")
    {'sushi-grill': '16', 'john-does-restaurant': '15'}
    """
    table = {}
    for pair in raw.split(","):
        if not pair.strip():
            continue
        slug, sep, business_id = pair.partition("=")
        if not sep or not slug.strip() or not business_id.strip():
            raise ValueError(f"Bad REVIEWLY_SLUGS entry: {pair.strip()!r}")
        table[slug.strip()] = business_id.strip()
    return table


@dataclass
class Settings:
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    anthropic_api_key: str | None = None
    model: str = DEFAULT_MODEL
    emailjs_service_id: str | None = None
    emailjs_template_id: str | None = None
    emailjs_public_key: str | None = None
    slugs: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SLUGS))
    store_timeout: float = 10.0
    generation_timeout: float = 30.0
    email_timeout: float = 10.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        slugs_raw = os.getenv("REVIEWLY_SLUGS")
        return cls(
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            model=os.getenv("REVIEWLY_MODEL") or DEFAULT_MODEL,
            emailjs_service_id=os.getenv("EMAILJS_SERVICE_ID"),
            emailjs_template_id=os.getenv("EMAILJS_TEMPLATE_ID"),
            emailjs_public_key=os.getenv("EMAILJS_PUBLIC_KEY"),
            slugs=parse_slug_table(slugs_raw) if slugs_raw else dict(DEFAULT_SLUGS),
            store_timeout=_float_env("REVIEWLY_STORE_TIMEOUT", 10.0),
            generation_timeout=_float_env("REVIEWLY_GENERATION_TIMEOUT", 30.0),
            email_timeout=_float_env("REVIEWLY_EMAIL_TIMEOUT", 10.0),
            log_level=(os.getenv("REVIEWLY_LOG_LEVEL") or "INFO").upper(),
        )


def require(value: str | None, name: str) -> str:
    if not value:
        raise ValueError(f"{name} not set.")
    return value


def configure_logging(level: str = "INFO") -> None:
    """Route root logging through rich and quiet the HTTP client loggers."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
