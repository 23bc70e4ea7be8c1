"""
Utility functions for dcard.

Provides URL-safe base64 encoding and timestamp helpers shared by the
fingerprint, trust and signing modules.
"""

import base64
import binascii
from datetime import datetime, timezone
from typing import Union


def b64url_encode(b: bytes) -> str:
    """URL-safe base64 encode bytes to string (no padding)."""
    return base64.urlsafe_b64encode(b).rstrip(b'=').decode('ascii')


def b64url_decode(s: Union[str, bytes]) -> bytes:
    """
    URL-safe base64 decode string to bytes (handles missing padding).

    Raises:
        ValueError: if the input is not valid base64url text
    """
    if isinstance(s, bytes):
        s = s.decode('ascii')
    if not isinstance(s, str):
        raise ValueError(f"Expected base64url text, got {type(s).__name__}")
    # Add padding if needed
    padding = 4 - (len(s) % 4)
    if padding != 4:
        s += '=' * padding
    try:
        return base64.urlsafe_b64decode(s.encode('ascii'))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Invalid base64url data: {e}") from e


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC string with a trailing Z."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
