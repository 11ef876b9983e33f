"""
Shared authentication utilities for the console routes.

Design:
    Pure helpers; callers pass in the environment, cookies and records they
    already have, so routes and middleware apply the same policy.
"""

from __future__ import annotations

from typing import Optional
import hmac
import re

# Absolute in-app paths only: no scheme, host, "//" or "..".
INAPP_PATH_PATTERN = re.compile(r"^(?!.*//)(?!.*\.\.)/[A-Za-z0-9._\-/]*$")
MAX_INAPP_REDIRECT_LEN = 256


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    SameSite=Lax so the cookie survives the top-level redirect back from the
    identity provider.
    """
    return {"secure": True, "samesite": "lax"}


def is_inapp_path(value: Optional[str]) -> bool:
    """True for "/", "/admin/products"; False for "https://x", "//x", "/a?b", "/..".

    Blocks open redirects after login.
    """
    if not value or not isinstance(value, str):
        return False
    if len(value) > MAX_INAPP_REDIRECT_LEN:
        return False
    return bool(INAPP_PATH_PATTERN.match(value))


def csrf_matches(expected: Optional[str], submitted: Optional[str]) -> bool:
    if not expected or not submitted:
        return False
    return hmac.compare_digest(expected, str(submitted))
