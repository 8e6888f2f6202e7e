"""Pydantic models for the gateauth configuration file.

The configuration lives in a YAML document (``~/.spin/config`` by default)
whose keys are camelCase, e.g.::

    gate:
      endpoint: https://gate.example.com
    auth:
      enabled: true
      oauth2:
        clientId: my-client
        clientSecret: ${GATE_CLIENT_SECRET}
        authUrl: https://accounts.example.com/o/oauth2/v2/auth
        tokenUrl: https://oauth2.example.com/token
        scopes: [email, profile]

Every model declares camelCase aliases and sets ``populate_by_name=True`` so
Python code can use snake_case attributes while the file keeps its camelCase
key names. Models reject unknown keys, so a typo in the config file is an
error rather than a silently ignored setting.

The models fall into three groups:

**Root**: :class:`Config`, :class:`GateConfig`, :class:`AuthConfig`.

**Scheme sections**: :class:`X509Config`, :class:`OAuth2Config`,
:class:`IAPConfig`, :class:`BasicConfig`, :class:`LDAPConfig`,
:class:`GoogleServiceAccountConfig`.

**Shared**: :class:`CachedToken`, persisted by
:class:`~gateauth.auth.token_cache.TokenCache`.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Tokens this close to expiry are treated as already expired.
EXPIRY_DELTA = timedelta(seconds=10)


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# --- Tokens ---


class CachedToken(_Section):
    """An OAuth2-style token persisted in the config file.

    Written back by :class:`~gateauth.auth.token_cache.TokenCache` after a
    successful exchange or refresh so that later invocations skip the
    network round trip.
    """

    access_token: str = Field(default="", alias="accessToken")
    token_type: Optional[str] = Field(default=None, alias="tokenType")
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    expiry: Optional[datetime] = None

    @field_validator("expiry")
    @classmethod
    def _expiry_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Naive timestamps are written by some tools; treat them as UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def valid(self, now: Optional[datetime] = None) -> bool:
        """Return ``True`` if the token can be used without a refresh.

        A token is valid when it carries an access token and either has no
        expiry or expires more than :data:`EXPIRY_DELTA` from *now*.
        """
        if not self.access_token:
            return False
        if self.expiry is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now < self.expiry - EXPIRY_DELTA


# --- Scheme sections ---


class X509Config(_Section):
    """Mutual-TLS client certificate settings.

    Exactly one source form must be populated: the ``certPath``/``keyPath``
    pair or the inline ``cert``/``key`` PEM pair. ``caPath``/``ca`` are
    optional trust anchors; when both are absent the client certificate
    itself is trusted.
    """

    cert_path: Optional[str] = Field(default=None, alias="certPath")
    key_path: Optional[str] = Field(default=None, alias="keyPath")
    cert: Optional[str] = None
    key: Optional[str] = None
    ca_path: Optional[str] = Field(default=None, alias="caPath")
    ca: Optional[str] = None

    def has_path_pair(self) -> bool:
        return bool(self.cert_path and self.key_path)

    def has_inline_pair(self) -> bool:
        return bool(self.cert and self.key)

    def is_valid(self) -> bool:
        """Return ``True`` when exactly one credential source is populated."""
        return self.has_path_pair() != self.has_inline_pair()


class OAuth2Config(_Section):
    """Interactive OAuth2 authorization-code settings."""

    client_id: str = Field(default="", alias="clientId")
    client_secret: str = Field(default="", alias="clientSecret")
    auth_url: str = Field(default="", alias="authUrl")
    token_url: str = Field(default="", alias="tokenUrl")
    scopes: list[str] = Field(default_factory=list)
    cached_token: Optional[CachedToken] = Field(default=None, alias="cachedToken")

    def is_valid(self) -> bool:
        return bool(
            self.client_id
            and self.client_secret
            and self.auth_url
            and self.token_url
            and self.scopes
        )


class IAPConfig(_Section):
    """Identity-Aware-Proxy settings.

    ``iapClientId`` is the OAuth client id of the IAP-protected resource and
    becomes the identity token's audience. Tokens are minted from either a
    service-account key (``serviceAccountKeyPath``) or a user refresh token
    (``iapClientRefresh`` with ``oauthClientId``/``oauthClientSecret``).
    """

    oauth_client_id: str = Field(default="", alias="oauthClientId")
    oauth_client_secret: str = Field(default="", alias="oauthClientSecret")
    iap_client_id: str = Field(default="", alias="iapClientId")
    iap_client_refresh: str = Field(default="", alias="iapClientRefresh")
    service_account_key_path: str = Field(default="", alias="serviceAccountKeyPath")


class BasicConfig(_Section):
    """HTTP Basic credentials."""

    username: str = ""
    password: str = ""

    def is_valid(self) -> bool:
        return bool(self.username and self.password)


class LDAPConfig(_Section):
    """LDAP form-login credentials. Missing values are prompted for."""

    username: str = ""
    password: str = ""


class GoogleServiceAccountConfig(_Section):
    """Google service-account federation settings.

    An empty ``file`` selects the ambient application default credentials.
    """

    file: str = ""
    cached_token: Optional[CachedToken] = Field(default=None, alias="cachedToken")


# --- Root ---


class AuthConfig(_Section):
    """The ``auth`` section: an ``enabled`` switch plus per-scheme sections.

    More than one section may be present. See
    :class:`~gateauth.auth.resolver.AuthResolver` for the order in which
    they are applied.
    """

    enabled: bool = False
    x509: Optional[X509Config] = None
    oauth2: Optional[OAuth2Config] = None
    iap: Optional[IAPConfig] = None
    basic: Optional[BasicConfig] = None
    ldap: Optional[LDAPConfig] = None
    google_service_account: Optional[GoogleServiceAccountConfig] = Field(
        default=None, alias="googleServiceAccount"
    )


class GateConfig(_Section):
    """Connection settings for the Gate endpoint."""

    endpoint: str = ""


class Config(_Section):
    """Root of the config file.

    Loaded once per invocation by :func:`~gateauth.config.load_config`,
    mutated in place when a token is refreshed, and written back by
    :class:`~gateauth.auth.token_cache.TokenCache`.
    """

    gate: GateConfig = Field(default_factory=GateConfig)
    auth: Optional[AuthConfig] = None
    timeout: float = Field(
        default=30.0, description="Timeout in seconds for every network call"
    )
