"""
HTTP tests for the import service.
"""

import pytest
from fastapi.testclient import TestClient

from dcard import ImportResolver, InMemoryCardStore, VerificationConfig
from dcard.main import app

from conftest import BASE_URL, GATEWAY_URL, TEST_KEY_ID

SHARED_URL = "https://cards.example/shared/card.json"


@pytest.fixture
def serve(mock_client, verification):
    """Start the app with an in-memory store and a mocked network."""
    opened = []

    def build(routes, config=None):
        app.state.store = InMemoryCardStore()
        app.state.verification = config or verification
        app.state.resolver = ImportResolver(
            base_url=BASE_URL,
            gateway_url=GATEWAY_URL,
            client=mock_client(routes),
        )
        client = TestClient(app)
        client.__enter__()
        opened.append(client)
        return client

    yield build

    for client in opened:
        client.__exit__(None, None, None)
    app.state.store = None
    app.state.verification = None
    app.state.resolver = None


def test_import_signed_card(serve, signed_card):
    client = serve({SHARED_URL: signed_card})

    r = client.post("/import", json={"reference": SHARED_URL})

    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Added to collection from QR import"
    assert body["source"] == "direct"
    assert body["stored"] is True
    assert body["verification"]["status"] == "verified"
    assert body["verification"]["key_id"] == TEST_KEY_ID
    assert body["card"]["fingerprint"] == signed_card["fingerprint"]
    assert body["location"] is None


def test_imported_card_listed(serve, signed_card):
    client = serve({SHARED_URL: signed_card})
    client.post("/import", json={"reference": SHARED_URL})

    listed = client.get("/cards").json()["cards"]
    assert [c["fingerprint"] for c in listed] == [signed_card["fingerprint"]]

    r = client.get(f"/cards/{signed_card['fingerprint']}")
    assert r.status_code == 200
    assert r.json()["verified"] is True
    assert r.json()["document"]["name"] == signed_card["name"]


def test_unknown_card_404(serve):
    client = serve({})

    r = client.get("/cards/sha256-nothing")

    assert r.status_code == 404
    assert r.json()["detail"] == "NOT_FOUND"


def test_unsigned_card_imported(serve, card):
    client = serve({SHARED_URL: card})

    body = client.post("/import", json={"reference": SHARED_URL}).json()

    assert body["verification"]["status"] == "unsigned"
    assert body["verification"]["unsigned"] is True
    assert body["card"]["fingerprint"].startswith("sha256-")


def test_tampered_card_rejected(serve, signed_card):
    tampered = dict(signed_card, name="Impostor")
    client = serve({SHARED_URL: tampered})

    r = client.post("/import", json={"reference": SHARED_URL})

    assert r.status_code == 422
    detail = r.json()["detail"]
    assert detail["category"] == "integrity"
    assert detail["message"] == "Card integrity failed: Fingerprint mismatch"
    assert client.get("/cards").json()["cards"] == []


def test_transport_failure_is_502(serve):
    client = serve({SHARED_URL: 500})

    r = client.post("/import", json={"reference": SHARED_URL})

    assert r.status_code == 502
    assert r.json()["detail"]["category"] == "transport"


def test_strict_mode_rejects_unsigned(serve, card, registry):
    client = serve({SHARED_URL: card}, config=VerificationConfig(registry=registry, strict=True))

    r = client.post("/import", json={"reference": SHARED_URL})

    assert r.status_code == 403
    assert r.json()["detail"]["category"] == "authentication"


def test_gateway_fallback_over_http(serve, signed_card):
    fingerprint = signed_card["fingerprint"]
    client = serve({
        f"https://cards.example/cards/{fingerprint}.dcard": 404,
        "https://cards.example/cards/index.json": {fingerprint: {"driveId": "drive-9"}},
        f"{GATEWAY_URL}?fileId=drive-9": signed_card,
    })

    r = client.post("/import", json={"reference": f"/cards/{fingerprint}.dcard"})

    assert r.status_code == 200
    assert r.json()["source"] == "gateway"


def test_empty_reference_rejected(serve):
    client = serve({})

    r = client.post("/import", json={"reference": ""})

    assert r.status_code == 422


def test_deep_link_clears_import_param(serve, signed_card):
    client = serve({SHARED_URL: signed_card})

    r = client.get("/open", params={"import": SHARED_URL, "tab": "collection"})

    assert r.status_code == 200
    assert r.json()["location"] == "http://testserver/open?tab=collection"


def test_deep_link_failure_still_clears_param(serve):
    client = serve({SHARED_URL: 404})

    r = client.get("/open", params={"import": SHARED_URL})

    assert r.status_code == 502
    assert r.json()["detail"]["location"] == "http://testserver/open"


def test_deep_link_requires_reference(serve):
    client = serve({})

    assert client.get("/open").status_code == 422


def test_trusted_keys(serve):
    client = serve({})

    keys = client.get("/trusted_keys").json()

    assert [k["key_id"] for k in keys] == [TEST_KEY_ID]
    assert keys[0]["issuer"] == "Test Issuer"


def test_health(serve):
    client = serve({})

    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["strict"] is False
    assert body["production"] is False
    assert "checks" in body
