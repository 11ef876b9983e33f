"""
Token handling for the identity_access bounded context.

Why: Two concerns live here. ID tokens returned at login are verified against
the realm signing keys before we trust their claims. Access tokens are handed
out on demand to the management layer through the small `TokenProvider`
contract so controllers never care where a bearer token comes from.

Security: Tokens are never logged. Signing keys are cached in memory only.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Protocol, Tuple
import asyncio
import logging
import time

import requests
from jose import jwt
from jose.exceptions import JOSEError

from .oidc import IDP_TIMEOUT_SECONDS, OIDCClient, OIDCConfig

if TYPE_CHECKING:  # pragma: no cover
    from .stores import SessionRecord

logger = logging.getLogger("backlog_admin.identity_access")

MAX_CLOCK_SKEW_SECONDS = 5
# Renew access tokens slightly before they expire to avoid 401s in flight.
ACCESS_TOKEN_RENEW_MARGIN_SECONDS = 30
ID_TOKEN_ALGORITHMS = ["RS256"]

KeySet = Dict[str, Dict[str, Any]]


class IDTokenVerificationError(Exception):
    """ID token rejected; `code` says why (never contains token material)."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def download_signing_keys(jwks_url: str) -> KeySet:
    """Fetch the realm JWKS and index its keys by `kid`."""
    try:
        resp = requests.get(jwks_url, timeout=IDP_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        raise IDTokenVerificationError("jwks_fetch_failed") from exc
    if resp.status_code != 200:
        raise IDTokenVerificationError("jwks_fetch_failed")
    try:
        document = resp.json()
    except ValueError as exc:
        raise IDTokenVerificationError("jwks_invalid") from exc
    keys = document.get("keys") if isinstance(document, dict) else None
    if not isinstance(keys, list):
        raise IDTokenVerificationError("jwks_invalid")
    return {str(k["kid"]): k for k in keys if isinstance(k, dict) and k.get("kid")}


class SigningKeyCache:
    """Realm signing keys per JWKS URL, refreshed after `ttl_seconds`.

    A `kid` that is not in a fresh key set triggers one extra download so a
    key rotation at the provider does not lock everybody out until the TTL
    runs out.
    """

    def __init__(self, ttl_seconds: int = 300, download: Callable[[str], KeySet] = download_signing_keys):
        self.ttl_seconds = ttl_seconds
        self._download = download
        self._sets: Dict[str, Tuple[float, KeySet]] = {}

    def _load(self, url: str) -> KeySet:
        keys = self._download(url)
        self._sets[url] = (time.time() + self.ttl_seconds, keys)
        return keys

    def key_for(self, cfg: OIDCConfig, kid: str) -> Optional[Dict[str, Any]]:
        url = cfg.jwks_endpoint
        cached = self._sets.get(url)
        if cached is None or cached[0] <= time.time():
            return self._load(url).get(kid)
        key = cached[1].get(kid)
        if key is None:
            key = self._load(url).get(kid)
        return key

    def clear(self) -> None:
        self._sets.clear()


SIGNING_KEYS = SigningKeyCache()

# (claim, required, too_early): `exp` must lie ahead, `iat`/`nbf` must not lie ahead.
_TIME_CLAIMS = (("exp", True, False), ("iat", False, True), ("nbf", False, True))


def _check_time_claims(claims: Mapping[str, Any], now: float) -> None:
    for name, required, must_be_past in _TIME_CLAIMS:
        value = claims.get(name)
        if not isinstance(value, (int, float)):
            if required:
                raise IDTokenVerificationError("invalid_id_token")
            continue
        if must_be_past and value > now + MAX_CLOCK_SKEW_SECONDS:
            raise IDTokenVerificationError("invalid_id_token")
        if not must_be_past and value + MAX_CLOCK_SKEW_SECONDS < now:
            raise IDTokenVerificationError("invalid_id_token")


def verify_id_token(
    *,
    id_token: str,
    cfg: OIDCConfig,
    nonce: Optional[str] = None,
    keys: SigningKeyCache | None = None,
) -> Dict[str, Any]:
    """Return the claims of a login ID token after checking it.

    Checks: RS256 signature with the realm key named by `kid`, issuer,
    audience (client id), exp/iat/nbf with a small skew and, when given, the
    nonce stored with the login state.

    Raises:
        IDTokenVerificationError with codes `missing_kid`, `unknown_kid`,
        `invalid_id_token`, `nonce_mismatch`, `jwks_fetch_failed`, `jwks_invalid`.
    """
    try:
        kid = jwt.get_unverified_header(id_token).get("kid")
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc
    if not kid:
        raise IDTokenVerificationError("missing_kid")
    key = (keys or SIGNING_KEYS).key_for(cfg, kid)
    if key is None:
        raise IDTokenVerificationError("unknown_kid")

    try:
        claims = jwt.decode(
            id_token,
            key,
            algorithms=ID_TOKEN_ALGORITHMS,
            audience=cfg.client_id,
            issuer=cfg.issuer,
            # Time claims are checked below with our own skew.
            options={"verify_exp": False, "verify_iat": False, "verify_nbf": False, "verify_at_hash": False},
        )
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc

    _check_time_claims(claims, time.time())
    if nonce is not None and claims.get("nonce") != nonce:
        raise IDTokenVerificationError("nonce_mismatch")
    return claims


# --- Access token providers ------------------------------------------------------


class TokenProvider(Protocol):
    async def get_token(self) -> Optional[str]:
        """Return a bearer token, or None when the principal is signed out."""
        ...


class StaticTokenProvider:
    """Hands out a fixed token (CLI usage, tests)."""

    def __init__(self, token: Optional[str]):
        self._token = token or None

    async def get_token(self) -> Optional[str]:
        return self._token


class SessionTokenProvider:
    """Serve the session's access token, renewing it through the refresh token.

    Behavior:
        - Valid access token (outside the renew margin) -> returned as is.
        - Expired/near expiry with a refresh token -> refresh grant runs in a
          worker thread; new tokens are written back onto the session.
        - Anything else -> None. Refresh failures are logged, not raised; the
          caller treats a missing token as "authentication required".
    """

    def __init__(self, session: "SessionRecord", oidc: OIDCClient):
        self.session = session
        self.oidc = oidc

    def _access_token_valid(self) -> bool:
        if not self.session.access_token:
            return False
        expires_at = self.session.access_expires_at
        if expires_at is None:
            return True
        return expires_at - ACCESS_TOKEN_RENEW_MARGIN_SECONDS > time.time()

    async def get_token(self) -> Optional[str]:
        if self._access_token_valid():
            return self.session.access_token
        refresh_token = self.session.refresh_token
        if not refresh_token:
            return None
        try:
            tokens = await asyncio.to_thread(self.oidc.refresh_tokens, refresh_token=refresh_token)
        except (ValueError, requests.RequestException) as exc:
            logger.warning("Access token refresh failed: %s", exc.__class__.__name__)
            return None
        self.session.apply_tokens(tokens)
        return self.session.access_token


__all__ = [
    "IDTokenVerificationError",
    "SigningKeyCache",
    "SIGNING_KEYS",
    "download_signing_keys",
    "verify_id_token",
    "TokenProvider",
    "StaticTokenProvider",
    "SessionTokenProvider",
]
