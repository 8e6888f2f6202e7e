"""OAuth2 Authorization Code flow with PKCE.

This module provides :class:`OAuth2PKCEStage`, which implements the
``oauth2`` scheme using the Authorization Code grant with PKCE
(:rfc:`7636`):

1. A cached token that is still valid is used as is. An expired one is
   refreshed with its refresh token. A failed refresh is an error; there is
   no fallback to the interactive flow.
2. Without a cached token, a PKCE pair is generated, the local callback
   listener is started on port 8085, and the authorization URL is printed.
3. The user pastes the code shown by the listener (or presses Enter to use
   the code the listener captured) and it is exchanged, together with the
   verifier, for access and refresh tokens.
4. The token is written to ``oauth2.cachedToken``, persisted, bound as the
   bearer credential, and presented to Gate's ``/login``.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from gateauth.auth import prompts
from gateauth.auth.base import AuthContext, AuthStage
from gateauth.exceptions import AuthenticationError, ConfigurationError, NetworkError
from gateauth.models import AuthConfig, CachedToken, OAuth2Config
from gateauth.output import debug, info, notice, warning
from gateauth.plugins.oauth2_pkce.listener import (
    CALLBACK_PORT,
    DEFAULT_TIMEOUT,
    CallbackListener,
)
from gateauth.plugins.oauth2_pkce.pkce import generate_pkce_pair


def build_authorization_url(
    oauth2: OAuth2Config,
    redirect_uri: str,
    code_challenge: str,
    state: str,
) -> str:
    """Build the provider authorization URL with offline access and forced consent."""
    params = {
        "response_type": "code",
        "client_id": oauth2.client_id,
        "redirect_uri": redirect_uri,
        "scope": " ".join(oauth2.scopes),
        "state": state,
        "access_type": "offline",
        "prompt": "consent",
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    separator = "&" if "?" in oauth2.auth_url else "?"
    return f"{oauth2.auth_url}{separator}{urlencode(params)}"


class OAuth2PKCEStage(AuthStage):
    """Authenticate via OAuth2 Authorization Code grant with PKCE.

    Args:
        port: Port of the local callback listener.
        timeout: Seconds to wait for the listener when the user presses
            Enter without pasting a code.
    """

    def __init__(self, port: int = CALLBACK_PORT, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._port = port
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "oauth2"

    def section(self, auth: AuthConfig) -> Optional[OAuth2Config]:
        return auth.oauth2

    def validate_config(self, section: OAuth2Config) -> list[str]:
        errors: list[str] = []
        if not section.is_valid():
            errors.append(
                "Incorrect OAuth2 auth configuration. Must include clientId, "
                "clientSecret, authUrl, tokenUrl, and at least one scope."
            )
        if section.cached_token is None and not prompts.is_interactive():
            errors.append(
                "OAuth2 login requires an interactive terminal when no token is cached"
            )
        return errors

    def attempt(self, context: AuthContext) -> None:
        oauth2 = context.auth.oauth2
        assert oauth2 is not None
        if not oauth2.is_valid():
            raise ConfigurationError("Incorrect OAuth2 auth configuration.")

        if oauth2.cached_token is not None:
            token = self._from_cache(oauth2, oauth2.cached_token, context)
        else:
            token = self._interactive(oauth2, context)

        if token is not oauth2.cached_token:
            info("Caching oauth2 token.")
            oauth2.cached_token = token
            context.persist_config()

        context.set_bearer(token.access_token, self.name)
        context.session_login(token.access_token)

    # ------------------------------------------------------------------ #
    # Cached token
    # ------------------------------------------------------------------ #

    def _from_cache(
        self, oauth2: OAuth2Config, cached: CachedToken, context: AuthContext
    ) -> CachedToken:
        if cached.valid():
            debug("Using cached OAuth2 token")
            return cached
        if not cached.refresh_token:
            raise AuthenticationError(
                "Cached OAuth2 token has expired and has no refresh token; "
                "remove auth.oauth2.cachedToken to log in again"
            )
        debug("Cached OAuth2 token expired; refreshing")
        data = self._token_request(
            oauth2,
            {"grant_type": "refresh_token", "refresh_token": cached.refresh_token},
            context,
            what="token refresh",
        )
        return _to_cached_token(data, previous_refresh=cached.refresh_token)

    # ------------------------------------------------------------------ #
    # Interactive flow
    # ------------------------------------------------------------------ #

    def _interactive(self, oauth2: OAuth2Config, context: AuthContext) -> CachedToken:
        code_verifier, code_challenge = generate_pkce_pair()
        state = secrets.token_urlsafe(16)

        listener = CallbackListener(port=self._port, timeout=self._timeout)
        try:
            listener.start()
        except OSError as exc:
            warning(f"Could not start callback listener on port {self._port}: {exc}")

        try:
            redirect_uri = listener.redirect_uri
            auth_url = build_authorization_url(oauth2, redirect_uri, code_challenge, state)
            notice(f"Navigate to {auth_url} and authenticate")
            code = self._read_code(listener)
        finally:
            listener.stop()

        data = self._token_request(
            oauth2,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "code_verifier": code_verifier,
            },
            context,
            what="code exchange",
        )
        return _to_cached_token(data)

    def _read_code(self, listener: CallbackListener) -> str:
        code = prompts.ask("Paste authorization code")
        if not code and listener.running:
            debug("Waiting for the callback listener to capture the code")
            code = listener.wait() or ""
        if not code:
            raise AuthenticationError("No authorization code received")
        return code

    # ------------------------------------------------------------------ #
    # Token endpoint
    # ------------------------------------------------------------------ #

    def _token_request(
        self,
        oauth2: OAuth2Config,
        data: dict[str, str],
        context: AuthContext,
        what: str,
    ) -> dict[str, Any]:
        payload = {
            **data,
            "client_id": oauth2.client_id,
            "client_secret": oauth2.client_secret,
        }
        try:
            response = httpx.post(
                oauth2.token_url,
                data=payload,
                headers={"Accept": "application/json"},
                timeout=context.timeout,
                verify=not context.insecure,
            )
            response.raise_for_status()
            token_data: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise AuthenticationError(
                f"OAuth2 {what} failed with status {exc.response.status_code}: "
                f"{exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"OAuth2 {what} failed: {exc}") from exc
        except ValueError as exc:
            raise AuthenticationError(f"OAuth2 {what} returned invalid JSON") from exc

        if "access_token" not in token_data:
            raise AuthenticationError(f"OAuth2 {what} response missing 'access_token' field")
        return token_data


def _to_cached_token(
    token_data: dict[str, Any], previous_refresh: Optional[str] = None
) -> CachedToken:
    expiry: Optional[datetime] = None
    expires_in = token_data.get("expires_in")
    if expires_in is not None:
        try:
            expiry = datetime.now(timezone.utc) + timedelta(seconds=float(expires_in))
        except (TypeError, ValueError, OverflowError) as exc:
            raise AuthenticationError(
                f"OAuth2 token response has an invalid 'expires_in' value: {expires_in!r}"
            ) from exc
    return CachedToken(
        access_token=token_data["access_token"],
        token_type=token_data.get("token_type"),
        # Providers may omit the refresh token on refresh; keep the old one.
        refresh_token=token_data.get("refresh_token") or previous_refresh,
        expiry=expiry,
    )
