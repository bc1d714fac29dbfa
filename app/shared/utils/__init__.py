"""Shared utilities: datetime, generators, sanitization."""

from app.shared.utils.datetime import ensure_utc, parse_iso_utc, utc_now
from app.shared.utils.generators import (
    canonical_json,
    compute_event_key,
    generate_cuid,
)
from app.shared.utils.sanitization import html_to_text, preview

__all__ = [
    "canonical_json",
    "compute_event_key",
    "generate_cuid",
    "utc_now",
    "ensure_utc",
    "parse_iso_utc",
    "html_to_text",
    "preview",
]
