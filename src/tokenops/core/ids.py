"""Canonical ID, timestamp and digest factories.

All modules import from here instead of defining local _uuid()/_now() copies.

Timestamp Rule
--------------
All timestamps are ``datetime`` with ``tzinfo=timezone.utc``, never naive.
"""

from __future__ import annotations

import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Any


def new_id() -> str:
    """Generate a new UUID v4 string.  Use for all internal entity IDs."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def canonical_json(payload: Any) -> str:
    """Serialize *payload* deterministically: sorted keys, compact separators."""
    return json.dumps(
        payload, sort_keys=True, separators=(",", ":"), default=str, ensure_ascii=False,
    )


def payload_digest(payload: Any) -> str:
    """Full SHA-256 hex digest of the canonical JSON form of *payload*.

    Used for evidence digests and compliance manifest hashes, where
    the digest is published and must not be truncated.
    """
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
