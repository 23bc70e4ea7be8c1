"""
Tests for the dcard command line.
"""

import json

from nacl.signing import SigningKey

from dcard import compute_fingerprint, verify_fingerprint
from dcard.cli import PRIVATE_KEY_ENV, main
from dcard.util import b64url_encode

from conftest import TEST_KEY_ID, sample_card


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_fingerprint(tmp_path, capsys):
    card = sample_card()
    path = _write(tmp_path / "card.json", card)

    assert main(["fingerprint", "-f", path]) == 0

    assert capsys.readouterr().out.strip() == compute_fingerprint(card).fingerprint


def test_verify_unsigned(tmp_path, capsys):
    path = _write(tmp_path / "card.json", sample_card())

    assert main(["verify", "-f", path]) == 0

    out = capsys.readouterr()
    assert json.loads(out.out)["status"] == "unsigned"
    assert "UNSIGNED" in out.err


def test_verify_signed_with_trusted_keys(tmp_path, capsys, signed_card, signing_key):
    card_path = _write(tmp_path / "card.json", signed_card)
    keys_path = _write(tmp_path / "keys.json", {
        TEST_KEY_ID: {"issuer": "Test Issuer", "publicKey": b64url_encode(bytes(signing_key.verify_key))}
    })

    assert main(["verify", "-f", card_path, "-t", keys_path]) == 0

    out = capsys.readouterr()
    assert json.loads(out.out)["status"] == "verified"
    assert "VERIFIED" in out.err


def test_verify_tampered_fails(tmp_path, capsys, signed_card):
    signed_card["name"] = "Impostor"
    path = _write(tmp_path / "card.json", signed_card)

    assert main(["verify", "-f", path]) == 1

    assert "Fingerprint mismatch" in capsys.readouterr().err


def test_verify_strict_unsigned_fails(tmp_path, capsys):
    path = _write(tmp_path / "card.json", sample_card())

    assert main(["verify", "-f", path, "--strict"]) == 1

    assert "strict mode" in capsys.readouterr().err


def test_sign_writes_fingerprint_named_file(tmp_path, monkeypatch, capsys):
    key = SigningKey.generate()
    monkeypatch.setenv(PRIVATE_KEY_ENV, b64url_encode(bytes(key)))
    path = _write(tmp_path / "card.dcard", sample_card())

    assert main(["sign", path, "-k", TEST_KEY_ID]) == 0

    fingerprint = compute_fingerprint(sample_card()).fingerprint
    output = tmp_path / f"{fingerprint}.dcard"
    assert output.exists()
    signed = json.loads(output.read_text(encoding="utf-8"))
    assert signed["sig"]["keyId"] == TEST_KEY_ID
    assert verify_fingerprint(signed).ok
    assert "Signed card written to" in capsys.readouterr().out


def test_sign_explicit_output(tmp_path, monkeypatch):
    monkeypatch.setenv(PRIVATE_KEY_ENV, b64url_encode(bytes(SigningKey.generate())))
    path = _write(tmp_path / "card.dcard", sample_card())
    output = tmp_path / "out.dcard"

    assert main(["sign", path, str(output)]) == 0

    assert json.loads(output.read_text(encoding="utf-8"))["sig"]["alg"] == "Ed25519"


def test_sign_without_key(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv(PRIVATE_KEY_ENV, raising=False)
    path = _write(tmp_path / "card.dcard", sample_card())

    assert main(["sign", path]) == 1

    assert PRIVATE_KEY_ENV in capsys.readouterr().err


def test_sign_without_input(capsys):
    assert main(["sign"]) == 1

    assert "Usage" in capsys.readouterr().err


def test_sign_missing_file(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv(PRIVATE_KEY_ENV, b64url_encode(bytes(SigningKey.generate())))

    assert main(["sign", str(tmp_path / "nope.dcard")]) == 1

    assert "not found" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert main([]) == 0

    assert "usage" in capsys.readouterr().out.lower()
