"""ID and key generators (CUID, event identity keys)."""

import hashlib
import json
from typing import Any

from cuid2 import cuid_wrapper

cuid_generator = cuid_wrapper()


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier (CUID2)."""
    result = cuid_generator()
    if not isinstance(result, str):
        raise TypeError(
            f"Expected str from cuid_generator, got {type(result).__name__}"
        )
    return result


def canonical_json(data: Any) -> str:
    """Canonical JSON for deterministic hashing (sorted keys, no whitespace)."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def compute_event_key(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of a mutation event.

    Two deliveries of the same mutation produce the same key, which makes the
    execution-log enqueue idempotent per (workflow, event).
    """
    return hashlib.sha256(canonical_json(data).encode()).hexdigest()
