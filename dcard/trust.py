"""
Trust registry for dcard.

Maps a signing key identifier to the issuer that owns it and the issuer's
Ed25519 public key. The registry is read-only once built; a host-supplied
table replaces the built-in one instead of extending it.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from .util import b64url_decode

ED25519_PUBLIC_KEY_SIZE = 32

DEFAULT_KEY_ID = "inspire-main-2025"

DEFAULT_TRUSTED_KEYS: Mapping[str, Mapping[str, str]] = MappingProxyType({
    DEFAULT_KEY_ID: MappingProxyType({
        "issuer": "INSPIRE",
        "publicKey": "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA",
    }),
})


@dataclass(frozen=True)
class KeyEntry:
    """A trusted issuer key, with the public key already decoded."""
    key_id: str
    issuer: str
    public_key: bytes


class TrustRegistry:
    """
    Immutable directory of trusted signing keys.

    Entries use the wire format of the trusted key configuration:
        {keyId: {"issuer": str, "publicKey": base64url}}
    """

    def __init__(self, entries: Mapping[str, Mapping[str, Any]]):
        self._entries = MappingProxyType({
            key_id: MappingProxyType(dict(entry))
            for key_id, entry in entries.items()
        })

    @classmethod
    def default(cls) -> "TrustRegistry":
        """Registry holding only the built-in trusted key."""
        return cls(DEFAULT_TRUSTED_KEYS)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "TrustRegistry":
        """Load a host-supplied registry from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Trusted key file must hold a JSON object: {path}")
        return cls(data)

    def lookup(self, key_id: Optional[str]) -> Optional[KeyEntry]:
        """
        Resolve a key identifier.

        Returns None for unknown identifiers. The public key is decoded from
        its base64url form on every call.

        Raises:
            ValueError: if the stored public key is not a valid 32-byte key
        """
        if not isinstance(key_id, str):
            return None
        entry = self._entries.get(key_id)
        if entry is None:
            return None

        public_key = b64url_decode(entry.get("publicKey", ""))
        if len(public_key) != ED25519_PUBLIC_KEY_SIZE:
            raise ValueError(
                f"Public key for {key_id} must be {ED25519_PUBLIC_KEY_SIZE} bytes, "
                f"got {len(public_key)}"
            )
        return KeyEntry(
            key_id=key_id,
            issuer=str(entry.get("issuer", "")),
            public_key=public_key,
        )

    def key_ids(self) -> List[str]:
        return sorted(self._entries)

    def describe(self) -> Dict[str, Dict[str, str]]:
        """Plain-dict copy of the registry, as it would be configured."""
        return {key_id: dict(entry) for key_id, entry in self._entries.items()}

    def __contains__(self, key_id: object) -> bool:
        return key_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
