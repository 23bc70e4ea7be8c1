"""
dcard Cryptographic Signing

Uses Ed25519 (RFC 8032) over the fingerprint hash bytes of a card.

The cryptographic backend is a capability injected into the verifier, so the
protocol code never depends on a particular library. PyNaCl provides the
default backend.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import SigningKey, VerifyKey

from .fingerprint import compute_fingerprint
from .trust import DEFAULT_KEY_ID, TrustRegistry
from .util import b64url_decode, b64url_encode

SUPPORTED_ALGORITHM = "Ed25519"

REASON_MISSING = "Missing signature"
REASON_MALFORMED = "Malformed signature"
REASON_UNSUPPORTED_ALG = "Unsupported signature algorithm"
REASON_UNKNOWN_KEY = "Unknown keyId"
REASON_MISMATCH = "Signature mismatch"


class SignatureBackend(ABC):
    """Abstract Ed25519 signing capability."""

    @abstractmethod
    def sign(self, message: bytes, private_key: bytes) -> bytes:
        """
        Sign a message.

        Args:
            message: The bytes to sign (the card hash bytes)
            private_key: 32-byte Ed25519 seed

        Returns:
            64-byte detached signature
        """
        pass

    @abstractmethod
    def verify(self, signature: bytes, message: bytes, public_key: bytes) -> bool:
        """
        Verify a detached signature.

        Returns False for a well-formed signature that does not match.
        May raise ValueError for malformed key or signature material.
        """
        pass


class NaClEd25519Backend(SignatureBackend):
    """Ed25519 backend built on PyNaCl (libsodium)."""

    def sign(self, message: bytes, private_key: bytes) -> bytes:
        return SigningKey(private_key).sign(message).signature

    def verify(self, signature: bytes, message: bytes, public_key: bytes) -> bool:
        try:
            VerifyKey(public_key).verify(message, signature)
            return True
        except BadSignatureError:
            return False

    def public_key_for(self, private_key: bytes) -> bytes:
        """Derive the public key matching a 32-byte seed."""
        return bytes(SigningKey(private_key).verify_key)


@dataclass(frozen=True)
class SignatureCheck:
    """Result of checking a card signature against the trust registry."""
    ok: bool
    reason: Optional[str] = None
    key_id: Optional[str] = None


def verify_signature(
    document: Dict[str, Any],
    hash_bytes: bytes,
    registry: TrustRegistry,
    backend: Optional[SignatureBackend] = None
) -> SignatureCheck:
    """
    Verify the Ed25519 signature of a card.

    Checks, in order, stopping at the first failure:
    1. ``sig`` is present
    2. ``sig.alg`` is Ed25519
    3. ``sig.keyId`` is in the trust registry
    4. ``sig.signature`` verifies over ``hash_bytes`` with the registry key

    Never raises: malformed input and crypto errors come back as ok=False.
    """
    backend = backend or NaClEd25519Backend()

    sig = document.get("sig") if isinstance(document, dict) else None
    if not sig:
        return SignatureCheck(ok=False, reason=REASON_MISSING)
    if not isinstance(sig, dict):
        return SignatureCheck(ok=False, reason=REASON_MALFORMED)

    key_id = sig.get("keyId")
    if sig.get("alg") != SUPPORTED_ALGORITHM:
        return SignatureCheck(ok=False, reason=REASON_UNSUPPORTED_ALG, key_id=key_id)

    try:
        key_entry = registry.lookup(key_id)
        if key_entry is None:
            return SignatureCheck(ok=False, reason=REASON_UNKNOWN_KEY, key_id=key_id)

        signature_text = sig.get("signature")
        if not isinstance(signature_text, str) or not signature_text:
            return SignatureCheck(ok=False, reason=REASON_MALFORMED, key_id=key_id)

        verified = backend.verify(b64url_decode(signature_text), hash_bytes, key_entry.public_key)
    except (ValueError, TypeError, CryptoError) as e:
        return SignatureCheck(ok=False, reason=str(e) or "Verification failed", key_id=key_id)

    return SignatureCheck(
        ok=verified,
        reason=None if verified else REASON_MISMATCH,
        key_id=key_id,
    )


def sign_card(
    document: Dict[str, Any],
    private_key: bytes,
    key_id: Optional[str] = None,
    backend: Optional[SignatureBackend] = None
) -> Dict[str, Any]:
    """
    Produce a signed copy of a card.

    The copy gets a fresh ``fingerprint`` and a ``sig`` block signing the
    fingerprint hash bytes. The key id defaults to the one already named in
    the card's ``sig``, then to the built-in issuer key.

    Args:
        document: Card to sign (an existing ``sig`` is replaced)
        private_key: 32-byte Ed25519 seed
        key_id: Key identifier to record in the signature block

    Returns:
        New card dict with ``fingerprint`` and ``sig`` populated
    """
    backend = backend or NaClEd25519Backend()

    existing_sig = document.get("sig")
    if key_id is None and isinstance(existing_sig, dict):
        key_id = existing_sig.get("keyId")
    key_id = key_id or DEFAULT_KEY_ID

    result = compute_fingerprint(document)
    signature = backend.sign(result.hash_bytes, private_key)

    signed = copy.deepcopy(document)
    signed["fingerprint"] = result.fingerprint
    signed["sig"] = {
        "alg": SUPPORTED_ALGORITHM,
        "keyId": key_id,
        "signature": b64url_encode(signature),
    }
    return signed
