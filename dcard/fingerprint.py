"""
dcard Fingerprint Engine

A card fingerprint is SHA-256 over the canonical JSON of the card with its
top-level ``fingerprint`` and ``sig`` fields removed, written as
``sha256-<base64url, no padding>``.

The raw digest (``hash_bytes``) is the message that issuers sign; neither the
fingerprint string nor the canonical bytes are ever signed directly.
"""

import copy
import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .canonicalization import canonicalize
from .util import b64url_encode

FINGERPRINT_PREFIX = "sha256-"

# Top-level fields that carry protocol metadata and never feed the hash
EXCLUDED_FIELDS = ("fingerprint", "sig")


@dataclass(frozen=True)
class FingerprintResult:
    """Fingerprint string plus the raw digest it encodes."""
    fingerprint: str
    hash_bytes: bytes


@dataclass(frozen=True)
class FingerprintCheck:
    """Outcome of comparing a declared fingerprint with a recomputed one."""
    ok: bool
    computed_fingerprint: Optional[str] = None
    hash_bytes: Optional[bytes] = None


def hashable_content(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep copy of the document without its top-level protocol fields.

    Nested ``fingerprint``/``sig`` keys are application data and are kept.
    """
    clone = copy.deepcopy(document)
    if isinstance(clone, dict):
        for field_name in EXCLUDED_FIELDS:
            clone.pop(field_name, None)
    return clone


def compute_fingerprint(document: Dict[str, Any]) -> FingerprintResult:
    """
    Compute the fingerprint of a card.

    fingerprint = "sha256-" + b64url(SHA-256(CJE(card - {fingerprint, sig})))
    """
    canonical_bytes = canonicalize(hashable_content(document))
    digest = hashlib.sha256(canonical_bytes).digest()
    return FingerprintResult(
        fingerprint=f"{FINGERPRINT_PREFIX}{b64url_encode(digest)}",
        hash_bytes=digest,
    )


def verify_fingerprint(document: Dict[str, Any]) -> FingerprintCheck:
    """
    Verify that a card's declared fingerprint matches its content.

    A card without a ``fingerprint`` field cannot be verified and yields
    ``ok=False`` with no computed value. Comparison is exact string equality.
    """
    declared = document.get("fingerprint") if isinstance(document, dict) else None
    if not declared:
        return FingerprintCheck(ok=False)

    computed = compute_fingerprint(document)
    return FingerprintCheck(
        ok=computed.fingerprint == declared,
        computed_fingerprint=computed.fingerprint,
        hash_bytes=computed.hash_bytes,
    )
