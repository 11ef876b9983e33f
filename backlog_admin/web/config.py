"""
Configuration and startup security checks for the admin console.

Why: Admin consoles change roles and delete data; a deployment that talks to
the identity provider over plain http or still carries a placeholder client
secret must not start. Local development stays permissive.

Permissions: The caller needs no special privileges. Functions only read
environment variables; `ensure_secure_config_on_startup` raises `SystemExit`
on fatal misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional
import os
import sys

from dotenv import load_dotenv

from backlog_admin.identity_access.oidc import OIDCConfig
from backlog_admin.management.api import DEFAULT_PROFILE_PATH, DEFAULT_TIMEOUT_SECONDS

PROD_LIKE_ENVIRONMENTS = frozenset({"prod", "production", "stage", "staging"})


def _should_load_dotenv() -> bool:
    """Never load `.env` under pytest; otherwise honour ADMIN_ENABLE_DOTENV (default on)."""
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("ADMIN_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


def load_env() -> None:
    if _should_load_dotenv():
        load_dotenv()


def _is_prod_like(env: str) -> bool:
    return (env or "").lower() in PROD_LIKE_ENVIRONMENTS


def _float(raw: Optional[str], default: float) -> float:
    try:
        value = float(raw) if raw not in (None, "") else default
    except ValueError:
        return default
    return value if value > 0 else default


def _int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw) if raw not in (None, "") else default
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class AdminSettings:
    api_base_url: str = "http://localhost:4000"
    api_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    profile_path: str = DEFAULT_PROFILE_PATH
    kc_base_url: str = "http://localhost:8080"
    kc_public_base_url: Optional[str] = None
    kc_realm: str = "backlog"
    kc_client_id: str = "backlog-admin"
    kc_client_secret: Optional[str] = None
    redirect_uri: str = "https://admin.localhost/auth/callback"
    environment: str = "dev"
    session_ttl_seconds: int = 3600

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AdminSettings":
        env = os.environ if environ is None else environ
        kc_base = (env.get("KC_BASE_URL") or cls.kc_base_url).rstrip("/")
        return cls(
            api_base_url=(env.get("API_BASE_URL") or cls.api_base_url).rstrip("/"),
            api_timeout_seconds=_float(env.get("API_TIMEOUT_SECONDS"), DEFAULT_TIMEOUT_SECONDS),
            profile_path=env.get("PROFILE_PATH") or DEFAULT_PROFILE_PATH,
            kc_base_url=kc_base,
            kc_public_base_url=(env.get("KC_PUBLIC_BASE_URL") or kc_base).rstrip("/"),
            kc_realm=env.get("KC_REALM") or cls.kc_realm,
            kc_client_id=env.get("KC_CLIENT_ID") or cls.kc_client_id,
            kc_client_secret=env.get("KC_CLIENT_SECRET") or None,
            redirect_uri=env.get("REDIRECT_URI") or cls.redirect_uri,
            environment=(env.get("ADMIN_ENV") or "dev").lower(),
            session_ttl_seconds=_int(env.get("SESSION_TTL_SECONDS"), 3600),
        )

    @property
    def prod_like(self) -> bool:
        return _is_prod_like(self.environment)

    def oidc_config(self) -> OIDCConfig:
        return OIDCConfig(
            base_url=self.kc_base_url,
            realm=self.kc_realm,
            client_id=self.kc_client_id,
            redirect_uri=self.redirect_uri,
            public_base_url=self.kc_public_base_url,
            client_secret=self.kc_client_secret,
        )


def ensure_secure_config_on_startup(settings: Optional[AdminSettings] = None) -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/stage only):
    - KC_BASE_URL, KC_PUBLIC_BASE_URL, REDIRECT_URI and API_BASE_URL use https.
    - KC_CLIENT_SECRET, when set, is not a CHANGE_ME placeholder.
    """
    settings = settings or AdminSettings.from_env()
    if not settings.prod_like:
        return  # dev/test remain permissive

    def _must_be_https(url_value: Optional[str], var_name: str) -> None:
        if not url_value:
            return
        if url_value.strip().lower().startswith("http://"):
            raise SystemExit(f"Refusing to start: {var_name} must use https in production (got http).")

    _must_be_https(settings.kc_base_url, "KC_BASE_URL")
    _must_be_https(settings.kc_public_base_url, "KC_PUBLIC_BASE_URL")
    _must_be_https(settings.redirect_uri, "REDIRECT_URI")
    _must_be_https(settings.api_base_url, "API_BASE_URL")

    secret = (settings.kc_client_secret or "").strip()
    if secret.upper().startswith("CHANGE_ME"):
        raise SystemExit("Refusing to start: KC_CLIENT_SECRET is a placeholder in production.")
