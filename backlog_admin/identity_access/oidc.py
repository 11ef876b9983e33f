"""
Minimal OIDC client for the identity provider (Keycloak realm layout).

Why: The admin console never handles passwords. It sends the browser to the
provider, exchanges the returned code for tokens server-side and renews the
short-lived access token with the refresh token when the backend needs one.

Security: Uses PKCE (S256). The caller stores `state`, `nonce` and the
code_verifier server-side (see `stores.StateStore`). Tokens are never logged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import base64
import hashlib
import os
from urllib.parse import urlencode

# Small indirection to ease monkeypatching in tests
import requests as http

IDP_TIMEOUT_SECONDS = 5
FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


def http_post(url: str, data: Dict[str, str], headers: Dict[str, str]):
    return http.post(url, data=data, headers=headers, timeout=IDP_TIMEOUT_SECONDS)


@dataclass(frozen=True)
class OIDCConfig:
    base_url: str  # server-to-server base, e.g. http://keycloak:8080
    realm: str
    client_id: str
    redirect_uri: str  # e.g. https://admin.localhost/auth/callback
    public_base_url: str | None = None  # browser-facing base when it differs
    client_secret: str | None = None

    @property
    def issuer(self) -> str:
        return f"{self.base_url}/realms/{self.realm}"

    @property
    def auth_endpoint(self) -> str:
        base = self.public_base_url or self.base_url
        return f"{base}/realms/{self.realm}/protocol/openid-connect/auth"

    @property
    def token_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/token"

    @property
    def end_session_endpoint(self) -> str:
        base = self.public_base_url or self.base_url
        return f"{base}/realms/{self.realm}/protocol/openid-connect/logout"

    @property
    def jwks_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/certs"


class OIDCClient:
    def __init__(self, config: OIDCConfig):
        self.cfg = config

    @staticmethod
    def generate_code_verifier(length: int = 64) -> str:
        """High-entropy URL-safe verifier (RFC 7636 allows 43..128 chars)."""
        return base64.urlsafe_b64encode(os.urandom(length)).decode("ascii").rstrip("=")

    @staticmethod
    def code_challenge_s256(code_verifier: str) -> str:
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

    def build_authorization_url(self, *, state: str, code_challenge: str, nonce: Optional[str] = None) -> str:
        params = {
            "response_type": "code",
            "client_id": self.cfg.client_id,
            "redirect_uri": self.cfg.redirect_uri,
            "scope": "openid email profile",
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        if nonce:
            params["nonce"] = nonce
        return f"{self.cfg.auth_endpoint}?{urlencode(params)}"

    def build_logout_url(self, *, post_logout_redirect_uri: str) -> str:
        params = {"client_id": self.cfg.client_id, "post_logout_redirect_uri": post_logout_redirect_uri}
        return f"{self.cfg.end_session_endpoint}?{urlencode(params)}"

    def _token_request(self, grant: Dict[str, str], failure: str) -> Dict[str, object]:
        """POST one grant to the token endpoint; any non-200 raises ValueError(failure)."""
        data = {**grant, "client_id": self.cfg.client_id}
        if self.cfg.client_secret:
            data["client_secret"] = self.cfg.client_secret
        resp = http_post(self.cfg.token_endpoint, data=data, headers=FORM_HEADERS)
        if resp.status_code != 200:
            raise ValueError(failure)
        return resp.json()

    def exchange_code_for_tokens(self, *, code: str, code_verifier: str) -> Dict[str, object]:
        """Trade the authorization code (plus PKCE verifier) for the token set."""
        grant = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.cfg.redirect_uri,
            "code_verifier": code_verifier,
        }
        return self._token_request(grant, "token_exchange_failed")

    def refresh_tokens(self, *, refresh_token: str) -> Dict[str, object]:
        body = self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token}, "token_refresh_failed")
        if not isinstance(body, dict) or not body.get("access_token"):
            raise ValueError("token_refresh_failed")
        return body
