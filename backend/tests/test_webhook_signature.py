"""
Tests for Mercado Pago x-signature verification.
"""

from shared.security.webhook_signature import (
    build_signature_header,
    compute_signature,
    parse_signature_header,
    verify_webhook_signature,
)

# RFC 2104 style vector: HMAC-SHA256(key="key", "The quick brown fox jumps over the lazy dog")
FOX_BODY = b"The quick brown fox jumps over the lazy dog"
FOX_SECRET = "key"
FOX_DIGEST = "f7bc83f430538424b13298e6aa6fb143ef4d59a14946175997479dbc2d1a3cd8"


class TestComputeSignature:
    def test_known_vector(self):
        assert compute_signature(FOX_BODY, FOX_SECRET) == FOX_DIGEST

    def test_empty_body_still_signed(self):
        digest = compute_signature(b"", "secret")
        assert len(digest) == 64
        assert digest != compute_signature(b"", "other")


class TestParseSignatureHeader:
    def test_parses_pairs_with_spaces(self):
        parts = parse_signature_header(" ts=1700000000 , v1=abc123 ")
        assert parts == {"ts": "1700000000", "v1": "abc123"}

    def test_skips_malformed_parts(self):
        parts = parse_signature_header("garbage,v1=abc,=empty")
        assert parts == {"v1": "abc"}

    def test_value_may_contain_equals(self):
        assert parse_signature_header("v1=a=b")["v1"] == "a=b"


class TestVerifyWebhookSignature:
    def test_valid_header(self):
        assert verify_webhook_signature(FOX_BODY, f"ts=1,v1={FOX_DIGEST}", FOX_SECRET)

    def test_v1_only_header(self):
        assert verify_webhook_signature(FOX_BODY, f"v1={FOX_DIGEST}", FOX_SECRET)

    def test_uppercase_hex_accepted(self):
        assert verify_webhook_signature(FOX_BODY, f"v1={FOX_DIGEST.upper()}", FOX_SECRET)

    def test_tampered_body_rejected(self):
        assert not verify_webhook_signature(FOX_BODY + b".", f"v1={FOX_DIGEST}", FOX_SECRET)

    def test_wrong_secret_rejected(self):
        assert not verify_webhook_signature(FOX_BODY, f"v1={FOX_DIGEST}", "another-key")

    def test_missing_header_rejected(self):
        assert not verify_webhook_signature(FOX_BODY, None, FOX_SECRET)
        assert not verify_webhook_signature(FOX_BODY, "", FOX_SECRET)

    def test_missing_secret_rejected(self):
        assert not verify_webhook_signature(FOX_BODY, f"v1={FOX_DIGEST}", None)
        assert not verify_webhook_signature(FOX_BODY, f"v1={FOX_DIGEST}", "")

    def test_header_without_v1_rejected(self):
        assert not verify_webhook_signature(FOX_BODY, "ts=1700000000", FOX_SECRET)

    def test_build_header_round_trips(self):
        header = build_signature_header(b'{"id": 1}', "s3cret", ts=1700000000)
        assert header.startswith("ts=1700000000,v1=")
        assert verify_webhook_signature(b'{"id": 1}', header, "s3cret")
