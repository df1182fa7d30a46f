"""
Shared validators for input sanitization and security.
"""

import re
from typing import Optional
from urllib.parse import urlparse

from shared.config.constants import Limits

# Internal hosts that must never appear in stored image URLs (SSRF prevention)
BLOCKED_HOSTS = [
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "10.",
    "192.168.",
    "169.254.",
    "[::1]",
    "metadata.google",
]

BLOCKED_SCHEMES = {"javascript", "data", "file", "ftp", "mailto", "tel"}


def validate_image_url(url: Optional[str], upload_prefix: str = "/uploads/") -> Optional[str]:
    """
    Validate a product or couple photo URL.

    Accepts absolute HTTP(S) URLs on public hosts and relative paths
    under ``upload_prefix`` (files stored by the upload endpoint).

    Raises:
        ValueError: If the URL is invalid or potentially malicious.
    """
    if url is None:
        return None

    url = url.strip()
    if not url:
        return None

    if len(url) > Limits.MAX_URL_LENGTH:
        raise ValueError(f"URL muito longa (máximo {Limits.MAX_URL_LENGTH} caracteres)")

    if url.startswith(upload_prefix):
        if ".." in url:
            raise ValueError("URL inválida")
        return url

    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    if scheme in BLOCKED_SCHEMES:
        raise ValueError(f"Esquema de URL não permitido: {scheme}")
    if scheme not in ("http", "https"):
        raise ValueError("Apenas URLs HTTP/HTTPS são permitidas")

    host = parsed.netloc.lower()
    if not host:
        raise ValueError("URL sem host válido")
    for blocked in BLOCKED_HOSTS:
        if host.startswith(blocked) or blocked in host.split(":")[0]:
            raise ValueError("URL interna não permitida")

    return url


def escape_like_pattern(value: str) -> str:
    """
    Escape special characters in LIKE patterns.

    SQL LIKE uses % and _ as wildcards; user search input must match literally.
    """
    if not value:
        return value

    value = value.replace("\\", "\\\\")
    value = value.replace("%", "\\%")
    value = value.replace("_", "\\_")
    return value


def sanitize_search_term(term: Optional[str], max_length: int = Limits.MAX_SEARCH_TERM_LENGTH) -> str:
    """Trim, truncate and strip control characters from a search term."""
    if not term:
        return ""

    term = term.strip()
    if len(term) > max_length:
        term = term[:max_length]

    return re.sub(r"[\x00-\x1f\x7f-\x9f]", "", term)


def format_brl(amount_cents: int) -> str:
    """Format cents as Brazilian currency: 15000 -> "R$ 150,00", 123456 -> "R$ 1.234,56"."""
    return f"R$ {format_decimal_comma(amount_cents, thousands=True)}"


def format_decimal_comma(amount_cents: int, thousands: bool = False) -> str:
    """
    Cents as a decimal string with comma separator: 12345 -> "123,45".

    With ``thousands`` the integer part is grouped with dots.
    """
    sign = "-" if amount_cents < 0 else ""
    reais, cents = divmod(abs(amount_cents), 100)
    whole = f"{reais:,}".replace(",", ".") if thousands else str(reais)
    return f"{sign}{whole},{cents:02d}"
