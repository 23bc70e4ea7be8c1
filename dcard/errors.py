"""
Error taxonomy for card imports.

Transport failures may be recovered by the gateway fallback, integrity
failures always end the import, and authentication failures are only raised
when strict mode turns them from verdicts into errors.
"""

from enum import Enum
from typing import Optional


class FailureCategory(str, Enum):
    TRANSPORT = "transport"
    INTEGRITY = "integrity"
    AUTHENTICATION = "authentication"


class CardImportError(Exception):
    """Base class for failures that end an import."""

    category: FailureCategory = FailureCategory.TRANSPORT
    message_prefix = "Import failed"

    @property
    def user_message(self) -> str:
        """Short human-readable message for the host to surface."""
        return f"{self.message_prefix}: {self}"


class TransportError(CardImportError):
    """A fetch did not produce a card document."""

    category = FailureCategory.TRANSPORT
    message_prefix = "Could not load card"

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FingerprintNotFoundError(TransportError):
    """The gateway manifest has no entry for the requested fingerprint."""


class GatewayNotConfiguredError(TransportError):
    """No gateway base URL is available for the fallback path."""


class IntegrityError(CardImportError):
    """Declared fingerprint does not match the card content."""

    category = FailureCategory.INTEGRITY
    message_prefix = "Card integrity failed"

    def __init__(self, message: str, declared: Optional[str] = None, computed: Optional[str] = None):
        super().__init__(message)
        self.declared = declared
        self.computed = computed


class AuthenticationError(CardImportError):
    """Strict mode rejected a missing or invalid signature."""

    category = FailureCategory.AUTHENTICATION
    message_prefix = "Card signature rejected"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
