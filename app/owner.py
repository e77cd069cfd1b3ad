"""
Anonymous owner identity carried in the uid cookie.
"""
import re
from typing import Awaitable, Callable, Optional

from exceptions import CookieParsingError
from security import log_security_event

# Signed 64-bit decimal, no whitespace or digit separators
UID_PATTERN = re.compile(r"[+-]?[0-9]+")
UID_MIN = -(2 ** 63)
UID_MAX = 2 ** 63 - 1


def parse_uid(value: str) -> int:
    """
    Parse a uid cookie value.

    Raises:
        CookieParsingError: If the value is not a signed 64-bit integer
    """
    if not UID_PATTERN.fullmatch(value):
        raise CookieParsingError(f"uid cookie is not an integer: {value[:32]!r}")

    uid = int(value)
    if not UID_MIN <= uid <= UID_MAX:
        raise CookieParsingError("uid cookie out of range")
    return uid


async def resolve_owner(
    cookie_value: Optional[str],
    allocate_new: Callable[[], Awaitable[int]],
) -> int:
    """
    Reuse the owner id from the cookie, or allocate a new one.

    Args:
        cookie_value: Verified value of the uid cookie, if the client sent one
        allocate_new: Coroutine function returning a fresh owner id

    Raises:
        CookieParsingError: If the cookie is present but not an integer
    """
    if cookie_value is None:
        return await allocate_new()

    try:
        return parse_uid(cookie_value)
    except CookieParsingError:
        log_security_event("invalid_uid_cookie", {"value": cookie_value[:16]})
        raise
