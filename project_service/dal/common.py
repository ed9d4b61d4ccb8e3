from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def encode(obj: Any) -> Any:
    """
    Convert Pydantic models / enums into Mongo-safe structures.
    Datetimes are kept as datetime for better querying/sorting.
    """
    if obj is None:
        return None
    if isinstance(obj, BaseModel):
        return encode(obj.model_dump())
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: encode(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [encode(v) for v in obj]
    return obj
