from __future__ import annotations

import os
import re
import secrets
import string
import time
import uuid


_SLUG_RE = re.compile(r"[^A-Za-z0-9]+")


def generate_uuid7() -> str:
    """
    Generate a UUIDv7 string (time-ordered).

    UUIDv7 layout per draft:
    - 48-bit Unix timestamp in milliseconds
    - 4-bit version (0b0111)
    - 74-bit randomness

    Used as the column default for every primary key, so it must be
    callable with zero arguments.
    """
    ts_ms = int(time.time() * 1000)
    raw = bytearray(ts_ms.to_bytes(6, "big", signed=False) + os.urandom(10))
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))


def random_block(length: int = 8) -> str:
    """
    Return a random string of uppercase letters and digits.
    """
    alphabet = string.ascii_uppercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def slugify(value: str | None, *, fallback: str = "file", max_length: int = 48) -> str:
    """
    Reduce a free-text label (machine code, machine name) to a filename-safe
    stem such as 'CNC-01' or 'Press-Line-2'.
    """
    cleaned = _SLUG_RE.sub("-", (value or "").strip()).strip("-")
    if not cleaned:
        return fallback
    return cleaned[:max_length].rstrip("-")
