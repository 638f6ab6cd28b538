"""Cache key construction."""

from __future__ import annotations

import os
import re
from datetime import date, datetime
from typing import Iterable, Union

DATE_PART_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DEFAULT_NAMESPACE = "snapdash"
INDEX_SEGMENT = "cache-index"

KeyPart = Union[str, date]


class InvalidKeyPart(ValueError):
    pass


def namespace() -> str:
    return os.environ.get("SNAPSHOT_KEY_NAMESPACE", DEFAULT_NAMESPACE)


def normalize_part(part: KeyPart) -> str:
    """Render one key segment.

    ``date`` objects are rendered ``YYYY-MM-DD``. Strings are trimmed; a string
    shaped like ``YYYY-MM-DD`` must be a real calendar date and is kept as is,
    any other string is upper-cased.
    """
    if isinstance(part, datetime):
        raise InvalidKeyPart(f"Datetime key parts are not supported: {part!r}")
    if isinstance(part, date):
        return part.isoformat()
    if not isinstance(part, str):
        raise InvalidKeyPart(f"Unsupported key part type: {type(part).__name__}")
    trimmed = part.strip()
    if DATE_PART_RE.match(trimmed):
        try:
            date.fromisoformat(trimmed)
        except ValueError as exc:
            raise InvalidKeyPart(f"Invalid date {trimmed!r}, expected YYYY-MM-DD") from exc
        return trimmed
    if not trimmed:
        raise InvalidKeyPart("Empty key part")
    return trimmed.upper()


def build_key(parts: Iterable[KeyPart], *, prefix: str | None = None) -> str:
    segments = [normalize_part(part) for part in parts]
    return ":".join([prefix or namespace(), *segments])


def snapshot_key(section: str, resource: str, region: str, brand: str, as_of: date | str, *, prefix: str | None = None) -> str:
    return build_key([section, resource, region, brand, as_of], prefix=prefix)


def index_key(region: str, brand: str, *, prefix: str | None = None) -> str:
    return ":".join([prefix or namespace(), INDEX_SEGMENT, normalize_part(region), normalize_part(brand)])
