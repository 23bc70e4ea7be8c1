"""
Import resolution for dcard.

Turns a user-supplied reference (absolute URL or path) into a card document.
Cards are normally served as static files at ``cards/<fingerprint>.<ext>``;
when that file cannot be fetched, the fingerprint in its path is looked up
in the shared ``cards/index.json`` manifest and the card is fetched through
the configured gateway instead.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote, urljoin, urlsplit

import httpx

from . import config
from .errors import FingerprintNotFoundError, GatewayNotConfiguredError, TransportError
from .logging_config import audit_log

MANIFEST_PATH = "cards/index.json"

# Built-in gateway, used when neither the caller nor the environment sets one
DEFAULT_GATEWAY_URL = ""

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)
_CARD_PATH = re.compile(r"/cards/([^/]+)\.[^/.]+$", re.IGNORECASE)

# Characters encodeURIComponent leaves alone besides alphanumerics
_URI_COMPONENT_SAFE = "-_.!~*'()"


@dataclass(frozen=True)
class ResolvedCard:
    """A fetched card and where it came from."""
    document: Dict[str, Any]
    url: str
    source: str  # "direct" | "gateway"
    fingerprint: Optional[str] = None


def is_absolute_url(reference: str) -> bool:
    return bool(_ABSOLUTE_URL.match(reference))


def parse_fingerprint_from_path(url: str) -> Optional[str]:
    """
    Extract the fingerprint embedded in a card URL.

    Matches the ``.../cards/<fingerprint>.<ext>`` convention; anything else
    returns None.
    """
    match = _CARD_PATH.search(urlsplit(url).path or "")
    return match.group(1) if match else None


class ImportResolver:
    """
    Resolves card references to documents, with gateway fallback.

    Args:
        base_url: Location of the importing context
        gateway_url: Gateway base URL; defaults to DCARD_GATEWAY_URL
        timeout: Per-request timeout in seconds
        client: Optional pre-configured httpx.AsyncClient (not closed by
            the resolver)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        gateway_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url or config.BASE_URL
        self.gateway_url = config.GATEWAY_URL if gateway_url is None else gateway_url
        self.timeout = config.FETCH_TIMEOUT if timeout is None else timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)

    async def __aenter__(self) -> "ImportResolver":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def absolute_url(self, reference: str) -> str:
        """Resolve a reference against the importing context."""
        if is_absolute_url(reference):
            return reference
        relative = reference[1:] if reference.startswith("/") else reference
        return urljoin(self.base_url, relative)

    async def resolve(self, reference: str, gateway_url: Optional[str] = None) -> ResolvedCard:
        """
        Fetch the card a reference points at.

        The direct URL is tried first. If it fails and the URL carries a
        fingerprint, the card is fetched through the gateway; otherwise the
        direct failure is raised.

        Raises:
            TransportError: direct fetch failed and no fallback applied
            FingerprintNotFoundError: manifest has no entry for the fingerprint
            GatewayNotConfiguredError: no gateway base URL is available
        """
        card_url = self.absolute_url(reference)
        fingerprint = parse_fingerprint_from_path(card_url)

        try:
            document = await self._fetch_document(card_url)
        except TransportError as e:
            if not fingerprint:
                raise
            audit_log.gateway_fallback(card_url, fingerprint, str(e))
            return await self.load_from_gateway(fingerprint, gateway_url)

        audit_log.card_resolved(card_url, "direct", fingerprint)
        return ResolvedCard(document=document, url=card_url, source="direct", fingerprint=fingerprint)

    async def load_from_gateway(self, fingerprint: str, gateway_url: Optional[str] = None) -> ResolvedCard:
        """Look the fingerprint up in the manifest and fetch it via the gateway."""
        manifest_url = urljoin(self.base_url, MANIFEST_PATH)
        manifest = await self._fetch_object(manifest_url, what="manifest")

        entry = manifest.get(fingerprint)
        if not isinstance(entry, dict) or not entry.get("driveId"):
            raise FingerprintNotFoundError("Fingerprint not found in manifest.", url=manifest_url)

        base = gateway_url or self.gateway_url or DEFAULT_GATEWAY_URL
        if not base:
            raise GatewayNotConfiguredError("Gateway URL not configured.")

        url = f"{base}?fileId={quote(str(entry['driveId']), safe=_URI_COMPONENT_SAFE)}"
        document = await self._fetch_document(url)
        audit_log.card_resolved(url, "gateway", fingerprint)
        return ResolvedCard(document=document, url=url, source="gateway", fingerprint=fingerprint)

    async def _fetch_document(self, url: str) -> Dict[str, Any]:
        return await self._fetch_object(url, what="card")

    async def _fetch_object(self, url: str, what: str) -> Dict[str, Any]:
        try:
            response = await self._client.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to fetch {what} ({type(e).__name__})", url=url) from e

        if not response.is_success:
            raise TransportError(
                f"Failed to fetch {what} ({response.status_code})",
                url=url,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"Invalid {what} JSON", url=url, status_code=response.status_code) from e

        if not isinstance(data, dict):
            raise TransportError(f"The {what} is not a JSON object", url=url, status_code=response.status_code)
        return data
