"""Snapshot envelope encoding: JSON, gzip, then base64 text."""

from __future__ import annotations

import base64
import binascii
import datetime as dt
import gzip
import zlib
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

PayloadT = TypeVar("PayloadT")


class CorruptSnapshot(ValueError):
    pass


class SnapshotEnvelope(BaseModel, Generic[PayloadT]):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    section: str
    resource: str
    region: str
    brand: str
    date: dt.date
    generated_at: dt.datetime = Field(alias="generatedAt")
    payload: PayloadT


def encode(envelope: SnapshotEnvelope[Any]) -> str:
    raw = envelope.model_dump_json(by_alias=True).encode("utf-8")
    return base64.b64encode(gzip.compress(raw)).decode("ascii")


def decode(text: str | bytes, payload_type: Any = Any) -> SnapshotEnvelope[Any]:
    try:
        data = base64.b64decode(text, validate=True)
        raw = gzip.decompress(data)
        return SnapshotEnvelope[payload_type].model_validate_json(raw)
    except (binascii.Error, ValidationError, ValueError, OSError, EOFError, zlib.error) as exc:
        raise CorruptSnapshot(f"Unreadable snapshot: {exc}") from exc
