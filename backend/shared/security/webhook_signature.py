"""
Mercado Pago webhook signature verification.

The ``x-signature`` header is a comma-separated list of ``key=value``
pairs (``ts=1700000000,v1=<hex>``). Only ``v1`` is checked: it must equal
the HMAC-SHA256 hex digest of the raw request body keyed with the shared
webhook secret.

Pure functions, no framework imports, so they can be tested with known
vectors.
"""

import hashlib
import hmac


def parse_signature_header(header: str) -> dict[str, str]:
    """
    Split ``k1=v1,k2=v2`` into a dict.

    Malformed parts (no ``=``) are skipped. Keys and values are stripped.
    """
    parts: dict[str, str] = {}
    for part in header.split(","):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip()
        if key:
            parts[key] = value.strip()
    return parts


def compute_signature(body: bytes, secret: str) -> str:
    """HMAC-SHA256 hex digest of ``body`` keyed with ``secret``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def build_signature_header(body: bytes, secret: str, ts: int | None = None) -> str:
    """Header value a sender would attach for ``body``."""
    v1 = compute_signature(body, secret)
    if ts is None:
        return f"v1={v1}"
    return f"ts={ts},v1={v1}"


def verify_webhook_signature(body: bytes, signature_header: str | None, secret: str | None) -> bool:
    """
    Return True only if the header's ``v1`` matches the body's HMAC.

    A missing secret, missing header or missing ``v1`` entry is a failure.
    Comparison is constant-time.
    """
    if not secret or not signature_header:
        return False

    received = parse_signature_header(signature_header).get("v1")
    if not received:
        return False

    expected = compute_signature(body, secret)
    return hmac.compare_digest(expected, received.lower())
