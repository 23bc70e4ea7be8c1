"""
dcard Fingerprint Tests

fingerprint = "sha256-" + b64url(SHA-256(CJE(card - {fingerprint, sig})))
"""

import base64
import copy
import hashlib
import unittest

from dcard import FINGERPRINT_PREFIX, compute_fingerprint, verify_fingerprint


def _card():
    return {
        "version": 1,
        "name": "Aurora Lynx",
        "stats": {"speed": 9, "power": 7},
        "tags": ["night", "forest"],
    }


def _expected(canonical: bytes) -> str:
    digest = hashlib.sha256(canonical).digest()
    return FINGERPRINT_PREFIX + base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class TestComputeFingerprint(unittest.TestCase):

    def test_known_vector(self):
        result = compute_fingerprint({"b": [2, 3], "a": 1})

        self.assertEqual(result.fingerprint, _expected(b'{"a":1,"b":[2,3]}'))
        self.assertEqual(result.hash_bytes, hashlib.sha256(b'{"a":1,"b":[2,3]}').digest())

    def test_format(self):
        result = compute_fingerprint(_card())

        self.assertTrue(result.fingerprint.startswith("sha256-"))
        # 32 bytes -> 43 unpadded base64url characters
        self.assertEqual(len(result.fingerprint), len("sha256-") + 43)
        self.assertNotIn("=", result.fingerprint)
        self.assertNotIn("+", result.fingerprint)
        self.assertNotIn("/", result.fingerprint)
        self.assertEqual(len(result.hash_bytes), 32)

    def test_deterministic(self):
        self.assertEqual(compute_fingerprint(_card()), compute_fingerprint(_card()))

    def test_key_order_independent(self):
        reordered = {"tags": ["night", "forest"], "stats": {"power": 7, "speed": 9}, "name": "Aurora Lynx", "version": 1}

        self.assertEqual(compute_fingerprint(_card()).fingerprint, compute_fingerprint(reordered).fingerprint)

    def test_protocol_fields_excluded(self):
        plain = compute_fingerprint(_card())
        with_meta = _card()
        with_meta["fingerprint"] = "sha256-whatever"
        with_meta["sig"] = {"alg": "Ed25519", "keyId": "k", "signature": "abc"}

        self.assertEqual(compute_fingerprint(with_meta), plain)

    def test_nested_protocol_fields_kept(self):
        nested = _card()
        nested["meta"] = {"fingerprint": "x", "sig": "y"}
        stripped = _card()
        stripped["meta"] = {}

        self.assertNotEqual(compute_fingerprint(nested).fingerprint, compute_fingerprint(stripped).fingerprint)

    def test_input_not_mutated(self):
        card = _card()
        card["fingerprint"] = "sha256-declared"
        before = copy.deepcopy(card)

        compute_fingerprint(card)

        self.assertEqual(card, before)


class TestVerifyFingerprint(unittest.TestCase):

    def test_round_trip(self):
        card = _card()
        card["fingerprint"] = compute_fingerprint(card).fingerprint

        check = verify_fingerprint(card)

        self.assertTrue(check.ok)
        self.assertEqual(check.computed_fingerprint, card["fingerprint"])
        self.assertEqual(check.hash_bytes, compute_fingerprint(card).hash_bytes)

    def test_missing_fingerprint(self):
        check = verify_fingerprint(_card())

        self.assertFalse(check.ok)
        self.assertIsNone(check.computed_fingerprint)

    def test_mutation_detected(self):
        card = _card()
        card["fingerprint"] = compute_fingerprint(card).fingerprint

        for mutate in (
            lambda c: c.__setitem__("name", "Aurora Lynx II"),
            lambda c: c["stats"].__setitem__("speed", 10),
            lambda c: c["tags"].reverse(),
            lambda c: c.__setitem__("extra", None),
            lambda c: c.pop("version"),
        ):
            tampered = copy.deepcopy(card)
            mutate(tampered)
            check = verify_fingerprint(tampered)
            self.assertFalse(check.ok)
            self.assertIsNotNone(check.computed_fingerprint)

    def test_signature_change_does_not_affect_fingerprint(self):
        card = _card()
        card["fingerprint"] = compute_fingerprint(card).fingerprint
        card["sig"] = {"alg": "Ed25519", "keyId": "other", "signature": "zzz"}

        self.assertTrue(verify_fingerprint(card).ok)

    def test_exact_string_comparison(self):
        card = _card()
        fingerprint = compute_fingerprint(card).fingerprint
        card["fingerprint"] = fingerprint.upper()

        self.assertFalse(verify_fingerprint(card).ok)


if __name__ == "__main__":
    unittest.main()
