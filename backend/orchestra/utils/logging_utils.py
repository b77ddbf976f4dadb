"""Logging utilities for PII redaction."""

import hashlib
from typing import Optional


def _short_hash(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:6]


def redact_email(email: Optional[str]) -> str:
    """
    Redact an email address for logging while keeping it distinguishable.

    Examples:
        >>> redact_email("user@example.com")
        'u***@example.com'
        >>> redact_email("ab@example.com")
        'hash:...@example.com'
        >>> redact_email(None)
        'N/A'
    """
    if not email:
        return "N/A"

    local, sep, domain = email.partition("@")
    if not sep:
        # Malformed email
        return f"hash:{_short_hash(email)}"

    # Local part too short to reveal even one character
    if len(local) < 3:
        return f"hash:{_short_hash(email)}@{domain}"

    return f"{local[0]}***@{domain}"


def redact_ip(ip_address: Optional[str]) -> str:
    """
    Redact the host part of an IP address.

    Examples:
        >>> redact_ip("192.168.1.100")
        '192.168.1.***'
        >>> redact_ip(None)
        'N/A'
    """
    if not ip_address:
        return "N/A"

    if "." in ip_address:
        parts = ip_address.split(".")
        if len(parts) == 4:
            return ".".join(parts[:3]) + ".***"

    if ":" in ip_address:
        parts = ip_address.split(":")
        if len(parts) >= 4:
            return ":".join(parts[:3]) + ":***"

    return f"hash:{_short_hash(ip_address)}"
