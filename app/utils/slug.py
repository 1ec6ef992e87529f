import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from app.core.config import settings

# Latin letters, digits and Hangul syllables survive, everything else becomes a dash
DISALLOWED_SLUG_CHARS = re.compile(r"[^a-z0-9가-힣]")
DASH_RUN = re.compile(r"-+")
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SlugGenerationError(Exception):
    """Raised when no free slug could be found within the retry budget."""


def _as_utc(moment: datetime) -> datetime:
    # Naive datetimes are stored as UTC throughout the app
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_base_slug(title: str, max_length: Optional[int] = None) -> str:
    """Lowercase, dash-separated form of the title, without date or suffix."""
    if max_length is None:
        max_length = settings.SLUG_MAX_LENGTH
    slug = DISALLOWED_SLUG_CHARS.sub("-", (title or "").lower())
    slug = DASH_RUN.sub("-", slug).strip("-")
    return slug[:max_length]


def timestamp_suffix(moment: datetime) -> str:
    """Last six digits of the epoch-millisecond timestamp."""
    millis = (_as_utc(moment) - EPOCH) // timedelta(milliseconds=1)
    return str(millis)[-6:].zfill(6)


def generate_slug(title: str, created_at: Optional[datetime] = None) -> str:
    """
    Build ``YYYY-MM-DD-<base>-<6 digits>`` for a post.

    >>> generate_slug("Hello World!", datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc))
    '2024-01-15-hello-world-800000'
    """
    moment = _as_utc(created_at or _utcnow())
    date_part = moment.strftime("%Y-%m-%d")
    base = build_base_slug(title)
    if not base:
        return f"{date_part}-{timestamp_suffix(moment)}"
    return f"{date_part}-{base}-{timestamp_suffix(moment)}"


def ensure_unique_slug(
    title: str,
    created_at: Optional[datetime],
    exists_fn: Callable[[str], bool],
    max_attempts: Optional[int] = None,
    clock: Callable[[], datetime] = _utcnow,
) -> str:
    """
    Return the first slug for the title that `exists_fn` reports as free.

    On a collision ``-<counter>-<fresh suffix>`` is appended to the generated
    slug, counting up from 1. Gives up after `max_attempts` retries.
    """
    if max_attempts is None:
        max_attempts = settings.SLUG_MAX_ATTEMPTS

    slug = generate_slug(title, created_at)
    if not exists_fn(slug):
        return slug

    for counter in range(1, max_attempts + 1):
        candidate = f"{slug}-{counter}-{timestamp_suffix(clock())}"
        if not exists_fn(candidate):
            return candidate

    raise SlugGenerationError(
        f"Could not find a free slug for '{title}' after {max_attempts} attempts"
    )
