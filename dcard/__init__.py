"""
dcard: portable card import with integrity and trust verification

Version: 1.0.0
License: Apache 2.0

A card is an arbitrary JSON document, shared as a URL or QR code. dcard
fetches it, proves its content is intact, checks who issued it, and stores
it locally. Every import ends in exactly one verdict:

    verified | unverified | unsigned

A card whose declared fingerprint does not match its content is rejected
outright; it never receives a verdict.

Usage:
    from dcard import (
        ImportResolver,
        InMemoryCardStore,
        VerificationConfig,
        process_import,
        verify_card,
    )

    # Verify a card already in hand
    result = verify_card(card, VerificationConfig())
    print(result.status)

    # Import a card from a reference, with gateway fallback
    async with ImportResolver(base_url="https://cards.example/") as resolver:
        outcome = await process_import(
            "/cards/sha256-abc.dcard",
            resolver=resolver,
            config=VerificationConfig(),
            store=InMemoryCardStore(),
        )
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Canonicalization and fingerprints
from .canonicalization import canonicalize, canonicalize_str, canonicalize_value
from .fingerprint import (
    FINGERPRINT_PREFIX,
    FingerprintCheck,
    FingerprintResult,
    compute_fingerprint,
    verify_fingerprint,
)

# Trust and signatures
from .trust import DEFAULT_KEY_ID, DEFAULT_TRUSTED_KEYS, KeyEntry, TrustRegistry
from .signing import (
    SUPPORTED_ALGORITHM,
    NaClEd25519Backend,
    SignatureBackend,
    SignatureCheck,
    sign_card,
    verify_signature,
)

# Errors
from .errors import (
    AuthenticationError,
    CardImportError,
    FailureCategory,
    FingerprintNotFoundError,
    GatewayNotConfiguredError,
    IntegrityError,
    TransportError,
)

# Configuration
from .config import VerificationConfig, build_verification_config, load_trust_registry

# Resolution, verification and import
from .resolver import ImportResolver, ResolvedCard, parse_fingerprint_from_path
from .importer import (
    ImportOutcome,
    VerificationResult,
    VerificationStatus,
    process_import,
    strip_import_param,
    verify_card,
)

# Storage
from .storage import CardRecord, CardStore, InMemoryCardStore, SqliteCardStore


__all__ = [
    # Version
    "__version__",

    # Canonicalization
    "canonicalize",
    "canonicalize_str",
    "canonicalize_value",

    # Fingerprints
    "FINGERPRINT_PREFIX",
    "FingerprintCheck",
    "FingerprintResult",
    "compute_fingerprint",
    "verify_fingerprint",

    # Trust
    "DEFAULT_KEY_ID",
    "DEFAULT_TRUSTED_KEYS",
    "KeyEntry",
    "TrustRegistry",

    # Signing
    "SUPPORTED_ALGORITHM",
    "NaClEd25519Backend",
    "SignatureBackend",
    "SignatureCheck",
    "sign_card",
    "verify_signature",

    # Errors
    "AuthenticationError",
    "CardImportError",
    "FailureCategory",
    "FingerprintNotFoundError",
    "GatewayNotConfiguredError",
    "IntegrityError",
    "TransportError",

    # Configuration
    "VerificationConfig",
    "build_verification_config",
    "load_trust_registry",

    # Import
    "ImportResolver",
    "ResolvedCard",
    "parse_fingerprint_from_path",
    "ImportOutcome",
    "VerificationResult",
    "VerificationStatus",
    "process_import",
    "strip_import_param",
    "verify_card",

    # Storage
    "CardRecord",
    "CardStore",
    "InMemoryCardStore",
    "SqliteCardStore",
]
