"""Google service-account federation stage.

This module provides :class:`GoogleServiceAccountStage`, which implements
the ``googleServiceAccount`` scheme:

1. A cached token that is still valid goes straight to Gate's ``/login``;
   no token is fetched.
2. Otherwise a token source is chosen: the ambient application default
   credentials (requesting the ``profile`` and ``email`` scopes) when
   ``file`` is empty, or a self-signed JWT access token built from the JSON
   key at ``file``.
3. One token is fetched and presented to ``/login``. Only after the login
   succeeds is the token cached and persisted.
"""

from __future__ import annotations

import os
from typing import Any, Optional

import google.auth
from google.auth import jwt

from gateauth.auth.base import AuthContext, AuthStage, unreadable_file
from gateauth.auth.google import google_auth_errors, refresh, utc_expiry
from gateauth.models import AuthConfig, CachedToken, GoogleServiceAccountConfig
from gateauth.output import debug, info

DEFAULT_SCOPES = ("profile", "email")
JWT_AUDIENCE = "https://accounts.google.com/o/oauth2/v2/auth"


class GoogleServiceAccountStage(AuthStage):
    """Federate a Google service account into a Gate session."""

    @property
    def name(self) -> str:
        return "google_service_account"

    def section(self, auth: AuthConfig) -> Optional[GoogleServiceAccountConfig]:
        return auth.google_service_account

    def validate_config(self, section: GoogleServiceAccountConfig) -> list[str]:
        missing = unreadable_file(section.file)
        if missing is not None:
            return [f"Google service account key file {missing} is not a readable file"]
        return []

    def attempt(self, context: AuthContext) -> None:
        gsa = context.auth.google_service_account
        assert gsa is not None

        cached = gsa.cached_token
        if cached is not None and cached.valid():
            debug("Using cached Google service account token")
            context.set_bearer(cached.access_token, self.name)
            context.session_login(cached.access_token)
            return

        gsa.cached_token = None
        token = self._fetch(gsa, context.timeout)
        context.set_bearer(token.access_token, self.name)
        context.session_login(token.access_token)

        info("Caching Google service account token.")
        gsa.cached_token = token
        context.persist_config()

    def _fetch(self, gsa: GoogleServiceAccountConfig, timeout: float) -> CachedToken:
        with google_auth_errors("Google service account token"):
            credentials = self._credentials(gsa)
            access_token = refresh(credentials, timeout)
        return CachedToken(
            access_token=access_token,
            token_type="Bearer",
            expiry=utc_expiry(credentials),
        )

    def _credentials(self, gsa: GoogleServiceAccountConfig) -> Any:  # noqa: ANN401
        if not gsa.file:
            debug("Using application default credentials")
            credentials, _project = google.auth.default(scopes=list(DEFAULT_SCOPES))
            return credentials
        key_path = os.path.expanduser(gsa.file)
        debug(f"Using service account key {key_path}")
        return jwt.Credentials.from_service_account_file(key_path, audience=JWT_AUDIENCE)
