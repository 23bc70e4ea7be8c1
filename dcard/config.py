"""
Configuration module for dcard.

Centralizes configuration with environment variable support, cached loading
of the trusted key file, and construction of the per-call verification
configuration.
"""

import os
import json
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional

from .signing import NaClEd25519Backend, SignatureBackend
from .trust import TrustRegistry

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("DCARD_ENV", "dev")  # dev|stage|prod

# Location the importing context runs at; relative references and the
# gateway manifest resolve against it
BASE_URL = os.getenv("DCARD_BASE_URL", "http://localhost:8000/")

GATEWAY_URL = os.getenv("DCARD_GATEWAY_URL", "")

STRICT = os.getenv("DCARD_STRICT", "").lower() in ("1", "true", "yes")

# Paths
TRUSTED_KEYS_PATH = os.getenv("DCARD_TRUSTED_KEYS_PATH", "")
DB_PATH = os.getenv("DCARD_DB_PATH", "data/dcard.db")

# Network (seconds)
FETCH_TIMEOUT = float(os.getenv("DCARD_FETCH_TIMEOUT", "10"))

# Logging
LOG_LEVEL = os.getenv("DCARD_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("DCARD_LOG_JSON", "1").lower() in ("1", "true", "yes")

# Cache TTL (seconds)
CONFIG_CACHE_TTL = int(os.getenv("CONFIG_CACHE_TTL", "60"))


# ============================================================
# Cached Configuration Loaders
# ============================================================

class CachedConfig:
    """
    Thread-safe cached configuration loader.
    Reloads configuration files periodically based on TTL.
    """

    def __init__(self, ttl_seconds: int = 60):
        self._cache: Dict[str, Any] = {}
        self._timestamps: Dict[str, float] = {}
        self._lock = threading.RLock()
        self._ttl = ttl_seconds

    def _is_stale(self, key: str) -> bool:
        if key not in self._timestamps:
            return True
        return (time.time() - self._timestamps[key]) > self._ttl

    def get_json(self, path: str, force_reload: bool = False) -> Dict[str, Any]:
        """
        Load JSON file with caching.
        Returns cached version if within TTL, otherwise reloads.
        """
        with self._lock:
            if not force_reload and path in self._cache and not self._is_stale(path):
                return self._cache[path]

            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)

            self._cache[path] = data
            self._timestamps[path] = time.time()
            return data

    def invalidate(self, path: Optional[str] = None) -> None:
        """Invalidate cache for a specific path or all paths."""
        with self._lock:
            if path:
                self._cache.pop(path, None)
                self._timestamps.pop(path, None)
            else:
                self._cache.clear()
                self._timestamps.clear()


_config_cache = CachedConfig(ttl_seconds=CONFIG_CACHE_TTL)


def load_json_cached(path: str) -> Dict[str, Any]:
    """Load JSON file with caching."""
    return _config_cache.get_json(path)


def load_trust_registry(path: Optional[str] = None) -> TrustRegistry:
    """
    Load the trusted key registry.

    A configured key file replaces the built-in registry entirely; without
    one the built-in default entry is used.
    """
    path = path if path is not None else TRUSTED_KEYS_PATH
    if not path:
        return TrustRegistry.default()
    data = load_json_cached(path)
    if not isinstance(data, dict):
        raise ValueError(f"Trusted key file must hold a JSON object: {path}")
    return TrustRegistry(data)


# ============================================================
# Verification Configuration
# ============================================================

@dataclass(frozen=True)
class VerificationConfig:
    """
    Everything card verification needs, passed explicitly per call.

    Attributes:
        registry: Trusted keys to check signatures against
        strict: Reject unsigned and badly signed cards instead of
            downgrading their status
        backend: Signature capability used for Ed25519 checks
    """
    registry: TrustRegistry = field(default_factory=TrustRegistry.default)
    strict: bool = False
    backend: SignatureBackend = field(default_factory=NaClEd25519Backend)


def build_verification_config(
    strict: Optional[bool] = None,
    registry: Optional[TrustRegistry] = None,
    trusted_keys_path: Optional[str] = None
) -> VerificationConfig:
    """Build a VerificationConfig from the environment, with explicit overrides."""
    return VerificationConfig(
        registry=registry if registry is not None else load_trust_registry(trusted_keys_path),
        strict=is_strict() if strict is None else strict,
    )


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate the configured files and endpoints.
    Returns dict of check name -> ok.
    """
    checks = {
        "base_url": BASE_URL.startswith(("http://", "https://")),
        "gateway_url": bool(GATEWAY_URL),
    }
    if TRUSTED_KEYS_PATH:
        checks["trusted_keys"] = Path(TRUSTED_KEYS_PATH).exists()
    return checks


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_strict() -> bool:
    """Check if strict signature mode is enabled by default."""
    return STRICT


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("DCARD_DEBUG", "").lower() in ("1", "true", "yes")
