import json

import httpx
import pytest
from nacl.signing import SigningKey

from dcard import TrustRegistry, VerificationConfig, sign_card
from dcard.util import b64url_encode

TEST_KEY_ID = "test-issuer-2025"
BASE_URL = "https://cards.example/"
GATEWAY_URL = "https://gw.example"


def sample_card() -> dict:
    return {
        "version": 1,
        "name": "Aurora Lynx",
        "rarity": "legendary",
        "stats": {"speed": 9, "power": 7},
        "tags": ["night", "forest"],
    }


@pytest.fixture
def signing_key():
    return SigningKey.generate()


@pytest.fixture
def registry(signing_key):
    return TrustRegistry({
        TEST_KEY_ID: {
            "issuer": "Test Issuer",
            "publicKey": b64url_encode(bytes(signing_key.verify_key)),
        }
    })


@pytest.fixture
def verification(registry):
    return VerificationConfig(registry=registry)


@pytest.fixture
def card():
    return sample_card()


@pytest.fixture
def signed_card(card, signing_key):
    return sign_card(card, bytes(signing_key), key_id=TEST_KEY_ID)


@pytest.fixture
def mock_client():
    """
    Factory for an httpx.AsyncClient backed by a route table.

    Route values: dict/list -> 200 JSON body, int -> bare status code,
    str -> 200 raw text body, Exception -> raised from the transport.
    Unknown URLs answer 404. Every requested URL is appended to ``calls``.
    """
    def build(routes, calls=None):
        table = {str(httpx.URL(url)): value for url, value in routes.items()}

        def handler(request: httpx.Request) -> httpx.Response:
            if calls is not None:
                calls.append(request.url)
            value = table.get(str(request.url))
            if value is None:
                return httpx.Response(404, json={"error": "not found"})
            if isinstance(value, Exception):
                raise value
            if isinstance(value, int):
                return httpx.Response(value)
            if isinstance(value, str):
                return httpx.Response(200, content=value.encode("utf-8"))
            return httpx.Response(200, content=json.dumps(value).encode("utf-8"),
                                  headers={"content-type": "application/json"})

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return build
