"""
Cache key construction.

Key: canonical JSON of ``{"messages", "temperature", "maxTokens"}``:
sorted keys, compact separators, non-ASCII kept as is. Identical requests
produce identical keys no matter how their dicts were ordered.

Creative requests get a ``_creative_<ms>_<hex>`` suffix, so they never hit
an existing entry and their own entry is practically never hit again.
"""

from __future__ import annotations

import hashlib
import json
import time
import uuid
from typing import Any

from pydantic import BaseModel

from rewind.schemas.chat import InvocationParams

CREATIVE_MARKER = "_creative_"


def _jsonable(message: Any) -> Any:
    if isinstance(message, BaseModel):
        return message.model_dump(mode="json", exclude_none=True)
    return message


def canonical_request(params: InvocationParams) -> str:
    payload = {
        "messages": [_jsonable(m) for m in params.prompt],
        "temperature": params.temperature,
        "maxTokens": params.max_tokens,
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def creative_suffix() -> str:
    # Millisecond timestamp plus random bits: two creative requests in the
    # same millisecond still get distinct keys.
    return f"{CREATIVE_MARKER}{time.time_ns() // 1_000_000}_{uuid.uuid4().hex[:12]}"


def build_cache_key(params: InvocationParams, *, creative: bool = False) -> str:
    key = canonical_request(params)
    if creative:
        key += creative_suffix()
    return key


def hash_key(key: str) -> str:
    """SHA-256 hex digest of a cache key, used as a fixed-width storage id."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()
