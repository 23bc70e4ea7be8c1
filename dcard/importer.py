"""
dcard Verification and Import

Composes fingerprinting and signature checks into one trust verdict per
card, and runs the full import of a reference:

    resolve -> verify -> persist -> notify caller -> cleanup

Every card ends in exactly one status:

    VERIFIED:   fingerprint matches and the signature checks out against a
                trusted key
    UNVERIFIED: fingerprint matches but the signature is unsupported, from
                an unknown key, or does not verify
    UNSIGNED:   the card carries no signature

A fingerprint mismatch is never a status: it raises IntegrityError and the
card is neither stored nor handed to the caller.
"""

import copy
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional
from urllib.parse import unquote_plus, urlsplit, urlunsplit

from anyio import to_thread

from .config import VerificationConfig
from .errors import AuthenticationError, CardImportError, IntegrityError
from .fingerprint import compute_fingerprint, verify_fingerprint
from .logging_config import audit_log, set_import_id
from .resolver import ImportResolver, ResolvedCard
from .signing import verify_signature
from .storage import CardRecord, CardStore
from .util import utc_now_iso

IMPORT_SUCCESS_MESSAGE = "Added to collection from QR import"


class VerificationStatus(str, Enum):
    VERIFIED = "verified"
    UNVERIFIED = "unverified"
    UNSIGNED = "unsigned"


@dataclass(frozen=True)
class VerificationResult:
    """Trust verdict for one card."""
    fingerprint: str
    status: VerificationStatus
    verified: bool = False
    unsigned: bool = False
    reason: Optional[str] = None
    key_id: Optional[str] = None
    hash_bytes: Optional[bytes] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fingerprint": self.fingerprint,
            "status": self.status.value,
            "verified": self.verified,
            "unsigned": self.unsigned,
            "reason": self.reason,
            "key_id": self.key_id,
        }


@dataclass
class ImportOutcome:
    """What happened to one import, for the host to report."""
    ok: bool
    reference: str
    message: str
    document: Optional[Dict[str, Any]] = None
    result: Optional[VerificationResult] = None
    record: Optional[CardRecord] = None
    error: Optional[CardImportError] = None
    source: Optional[str] = None


def verify_card(document: Dict[str, Any], config: Optional[VerificationConfig] = None) -> VerificationResult:
    """
    Establish the integrity and authenticity of a card.

    An unsigned card without a fingerprint gets one computed and written
    into ``document``. A declared fingerprint must match the content, and a
    signed card must declare one.

    Args:
        document: Parsed card; owned by the caller's import
        config: Trusted keys, strict mode and signature backend

    Returns:
        VerificationResult with exactly one status

    Raises:
        IntegrityError: fingerprint missing on a signed card, or mismatched
        AuthenticationError: strict mode and the card is unsigned or its
            signature did not verify
    """
    config = config or VerificationConfig()
    if not isinstance(document, dict):
        raise IntegrityError("Card is not a JSON object")

    signed = bool(document.get("sig"))
    declared = document.get("fingerprint")

    if declared:
        check = verify_fingerprint(document)
        if not check.ok:
            audit_log.integrity_failure(declared, check.computed_fingerprint)
            raise IntegrityError(
                "Fingerprint mismatch",
                declared=declared,
                computed=check.computed_fingerprint,
            )
        fingerprint, hash_bytes = check.computed_fingerprint, check.hash_bytes
    elif signed:
        audit_log.integrity_failure(None, None)
        raise IntegrityError("Signed card has no fingerprint")
    else:
        computed = compute_fingerprint(document)
        fingerprint, hash_bytes = computed.fingerprint, computed.hash_bytes
        document["fingerprint"] = fingerprint

    if not signed:
        if config.strict:
            audit_log.security_event("unsigned_card_rejected", fingerprint=fingerprint)
            raise AuthenticationError("Signature required in strict mode", reason="Missing signature")
        result = VerificationResult(
            fingerprint=fingerprint,
            status=VerificationStatus.UNSIGNED,
            unsigned=True,
            hash_bytes=hash_bytes,
        )
        audit_log.verification_result(fingerprint, result.status.value)
        return result

    sig_check = verify_signature(document, hash_bytes, config.registry, config.backend)
    if not sig_check.ok and config.strict:
        audit_log.security_event(
            "invalid_signature_rejected",
            fingerprint=fingerprint,
            reason=sig_check.reason,
            key_id=sig_check.key_id,
        )
        raise AuthenticationError(f"Signature invalid: {sig_check.reason}", reason=sig_check.reason)

    result = VerificationResult(
        fingerprint=fingerprint,
        status=VerificationStatus.VERIFIED if sig_check.ok else VerificationStatus.UNVERIFIED,
        verified=sig_check.ok,
        reason=sig_check.reason,
        key_id=sig_check.key_id,
        hash_bytes=hash_bytes,
    )
    audit_log.verification_result(fingerprint, result.status.value, result.reason, result.key_id)
    return result


async def _invoke(callback: Callable, *args: Any) -> Any:
    """Call a plain or async callback."""
    value = callback(*args)
    if inspect.isawaitable(value):
        value = await value
    return value


def _persist(store: Optional[CardStore], document: Dict[str, Any], result: VerificationResult) -> Optional[CardRecord]:
    if store is None:
        return None
    # The stored copy is detached from the document handed to callbacks
    record = CardRecord(
        fingerprint=result.fingerprint,
        document=copy.deepcopy(document),
        verified=result.verified,
        unsigned=result.unsigned,
        added_at=utc_now_iso(),
    )
    try:
        return store.save_card(record)
    except Exception as e:
        # Storage is best effort; the caller still gets the card and verdict
        audit_log.persistence_failure(result.fingerprint, f"{type(e).__name__}: {e}")
        return None


def _check_reference(resolved: ResolvedCard, result: VerificationResult) -> None:
    """A card fetched through the gateway must be the one the reference named."""
    if resolved.source != "gateway" or not resolved.fingerprint:
        return
    if resolved.fingerprint != result.fingerprint:
        audit_log.integrity_failure(resolved.fingerprint, result.fingerprint)
        raise IntegrityError(
            "Fingerprint does not match reference",
            declared=resolved.fingerprint,
            computed=result.fingerprint,
        )


async def process_import(
    reference: Optional[str],
    *,
    resolver: ImportResolver,
    config: Optional[VerificationConfig] = None,
    store: Optional[CardStore] = None,
    gateway_url: Optional[str] = None,
    on_card_loaded: Optional[Callable] = None,
    on_notify: Optional[Callable] = None,
    on_cleanup: Optional[Callable] = None
) -> Optional[ImportOutcome]:
    """
    Import the card a reference points at.

    Stages run strictly in order and a failure skips every later stage;
    ``on_cleanup`` runs in all cases once a reference was given. Import
    failures (transport, integrity, strict-mode authentication) are reported
    through ``on_notify`` and the returned outcome; any other exception
    propagates after cleanup.

    A card that arrived through the gateway must carry the fingerprint named
    in the reference. Store writes run in a worker thread.

    Args:
        reference: URL or path taken from the QR code or deep link
        resolver: Fetches the card, with gateway fallback
        config: Verification configuration (defaults: built-in keys, lenient)
        store: Where to keep the imported card; failures here are logged only
        gateway_url: Gateway base URL for this call
        on_card_loaded: Called with (document, VerificationResult)
        on_notify: Called with a short message for the user
        on_cleanup: Clears the triggering reference from host state

    Returns:
        ImportOutcome, or None when no reference was given
    """
    if not reference:
        return None

    set_import_id()
    audit_log.import_requested(reference)
    try:
        resolved = await resolver.resolve(reference, gateway_url)
        document = resolved.document
        result = verify_card(document, config)
        _check_reference(resolved, result)
        record = await to_thread.run_sync(_persist, store, document, result)

        if on_card_loaded is not None:
            await _invoke(on_card_loaded, document, result)
        if on_notify is not None:
            await _invoke(on_notify, IMPORT_SUCCESS_MESSAGE)

        return ImportOutcome(
            ok=True,
            reference=reference,
            message=IMPORT_SUCCESS_MESSAGE,
            document=document,
            result=result,
            record=record,
            source=resolved.source,
        )
    except CardImportError as e:
        audit_log.import_failed(reference, e.category.value, str(e))
        if on_notify is not None:
            await _invoke(on_notify, e.user_message)
        return ImportOutcome(ok=False, reference=reference, message=e.user_message, error=e)
    finally:
        if on_cleanup is not None:
            await _invoke(on_cleanup)


def strip_import_param(url: str, param: str = "import") -> str:
    """
    Remove the triggering query parameter from a navigation URL.

    Other parameters keep their original encoding and order.
    """
    parts = urlsplit(url)
    kept = [
        pair for pair in parts.query.split("&")
        if pair and unquote_plus(pair.split("=", 1)[0]) != param
    ]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "&".join(kept), parts.fragment))
