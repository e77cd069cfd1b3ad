"""
Security utilities for the paste service.
Provides the transport heuristic for cookie attributes and cookie signing.
"""
import hashlib
import hmac
import logging
from typing import Mapping, Optional

security_logger = logging.getLogger('security')

HTTPS_PREFIX = "https://"
SIGNATURE_SEPARATOR = "."


def is_secure_transport(headers: Mapping[str, str]) -> bool:
    """
    Guess whether the client reached us over TLS.

    Compares the Origin header against Host. Headers can be rewritten by
    proxies even on a genuine TLS connection, so anything inconclusive
    counts as insecure.

    Args:
        headers: Request headers (case-insensitive mapping)

    Returns:
        True if Origin is https:// followed by the Host value
    """
    host = headers.get("host")
    origin = headers.get("origin")
    if not isinstance(host, str) or not isinstance(origin, str):
        return False

    if not origin.startswith(HTTPS_PREFIX):
        return False

    return origin[len(HTTPS_PREFIX):].startswith(host)


def _signature(value: str, key: bytes) -> str:
    return hmac.new(key, value.encode("utf-8"), hashlib.sha256).hexdigest()


def sign_value(value: str, key: bytes) -> str:
    """
    Sign a cookie value.

    Args:
        value: Plain cookie value
        key: Secret HMAC key

    Returns:
        The value followed by '.' and its hex HMAC-SHA256
    """
    return f"{value}{SIGNATURE_SEPARATOR}{_signature(value, key)}"


def unsign_value(signed: str, key: bytes) -> Optional[str]:
    """
    Verify a signed cookie value.

    Args:
        signed: Value as produced by sign_value
        key: Secret HMAC key

    Returns:
        The plain value, or None if the signature is missing or wrong
    """
    value, separator, signature = signed.rpartition(SIGNATURE_SEPARATOR)
    if not separator:
        log_security_event("unsigned_cookie", {"length": len(signed)})
        return None

    if not hmac.compare_digest(signature, _signature(value, key)):
        log_security_event("bad_cookie_signature", {"length": len(signed)})
        return None

    return value


def log_security_event(event_type: str, details: dict):
    """Log a security-relevant event."""
    security_logger.warning(f"SECURITY_EVENT: {event_type} - {details}")
