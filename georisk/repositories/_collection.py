from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, TypeAdapter

from georisk.errors import StorageError

logger = logging.getLogger(__name__)


def decode_collection(adapter: TypeAdapter[Any], *, key: str, raw: bytes | None) -> list[Any]:
    """Decode one stored JSON array. Only an absent key counts as empty."""
    if raw is None:
        return []
    try:
        return list(adapter.validate_json(raw))
    except ValueError as exc:
        logger.error("collection_decode_failed key=%s size=%d error=%s", key, len(raw), type(exc).__name__)
        raise StorageError(key, f"stored collection cannot be decoded: {key}", decode=True) from exc


def encode_collection(records: Sequence[BaseModel]) -> bytes:
    payload = [record.model_dump(mode="json", by_alias=True) for record in records]
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
