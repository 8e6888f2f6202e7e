"""Shared state and the stage interface of the auth pipeline.

This module defines the two foundational types of the auth subsystem:

- :class:`AuthContext` -- the mutable state a resolution run builds up: TLS
  settings, the shared :class:`httpx.Client` (and therefore its cookie
  jar), and the credential that will be attached to every API call.
- :class:`AuthStage` -- the abstract base class every credential scheme
  extends.

To implement a new scheme, subclass :class:`AuthStage`, set :attr:`name`,
implement :meth:`~AuthStage.section` and :meth:`~AuthStage.attempt`, and
optionally override :meth:`~AuthStage.validate_config` for upfront checks.

See Also:
    :mod:`gateauth.auth.resolver` for stage registration and ordering.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

import httpx

from gateauth import __version__
from gateauth.auth.session import session_login
from gateauth.models import AuthConfig, Config
from gateauth.output import debug

if TYPE_CHECKING:
    import ssl

    from gateauth.auth.token_cache import TokenCache
    from gateauth.plugins.x509 import TLSSessionConfig

USER_AGENT = f"gateauth/{__version__}"


class AuthContext:
    """State shared by every stage of one resolution run.

    A single :class:`httpx.Client` is created lazily on first use of
    :attr:`client` and shared by all stages, so cookies set by a session
    login are visible to every later API call. TLS settings must therefore
    be installed (by the X509 stage) before the client is first used;
    installing them later rebuilds the client and carries the cookies over.

    Credentials are last-writer-wins: :meth:`set_bearer` clears any basic
    credentials and :meth:`set_basic` clears any bearer token.

    Args:
        config: The loaded configuration. Stages mutate it in place when
            they refresh a token.
        endpoint: The Gate base URL, without a trailing slash.
        insecure: Skip TLS certificate verification.
        token_cache: Where refreshed tokens are persisted. ``None`` disables
            persistence (tokens still work for this invocation).
        transport: Transport for the shared client. Defaults to httpx's own.
    """

    def __init__(
        self,
        config: Config,
        endpoint: str,
        insecure: bool = False,
        token_cache: Optional[TokenCache] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        self.endpoint = endpoint
        self.insecure = insecure
        self.token_cache = token_cache
        self.transport = transport
        self.tls: Optional[TLSSessionConfig] = None
        self.bearer_token: Optional[str] = None
        self.basic_auth: Optional[tuple[str, str]] = None
        self.applied: list[str] = []
        self._client: Optional[httpx.Client] = None

    @property
    def auth(self) -> AuthConfig:
        """The ``auth`` section. Only valid while stages are running."""
        assert self.config.auth is not None
        return self.config.auth

    @property
    def timeout(self) -> float:
        return self.config.timeout

    @property
    def scheme(self) -> Optional[str]:
        """Name of the last stage that applied, or ``None``."""
        return self.applied[-1] if self.applied else None

    @property
    def verify(self) -> Union[bool, ssl.SSLContext]:
        """The ``verify`` argument for :class:`httpx.Client` and token calls."""
        if self.tls is not None:
            return self.tls.ssl_context()
        return not self.insecure

    @property
    def client(self) -> httpx.Client:
        """The shared HTTP client, created on first access."""
        if self._client is None:
            self._client = self._build_client()
        return self._client

    # ------------------------------------------------------------------ #
    # Mutators used by stages
    # ------------------------------------------------------------------ #

    def use_tls(self, tls: TLSSessionConfig) -> None:
        """Install client-certificate TLS settings for the shared client."""
        self.tls = tls
        if self._client is not None:
            cookies = self._client.cookies
            self._client.close()
            self._client = self._build_client(cookies=cookies)

    def set_bearer(self, token: str, scheme: str) -> None:
        self.bearer_token = token
        self.basic_auth = None
        self.mark_applied(scheme)

    def set_basic(self, username: str, password: str, scheme: str) -> None:
        self.basic_auth = (username, password)
        self.bearer_token = None
        self.mark_applied(scheme)

    def mark_applied(self, scheme: str) -> None:
        self.applied.append(scheme)

    def session_login(self, token: str) -> httpx.Response:
        """Exchange *token* for a session cookie on the shared client."""
        return session_login(self.client, token)

    def persist_config(self) -> bool:
        """Write the (token-updated) config back through the token cache."""
        if self.token_cache is None:
            debug("No config path; refreshed token kept in memory only")
            return False
        return self.token_cache.persist(self.config)

    # ------------------------------------------------------------------ #
    # Completion
    # ------------------------------------------------------------------ #

    def finalize(self) -> httpx.Client:
        """Attach the winning credential to the shared client and return it."""
        client = self.client
        if self.basic_auth is not None:
            client.auth = httpx.BasicAuth(*self.basic_auth)
        elif self.bearer_token is not None:
            client.headers["Authorization"] = f"Bearer {self.bearer_token}"
        return client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def describe(self) -> dict[str, Any]:
        """Return a summary suitable for ``gateauth login`` output."""
        return {
            "endpoint": self.endpoint,
            "scheme": self.scheme,
            "applied": list(self.applied),
            "mutual_tls": self.tls is not None,
            "insecure": self.insecure,
            "session_cookies": sorted({c.name for c in self.client.cookies.jar}),
        }

    def _build_client(self, cookies: Optional[httpx.Cookies] = None) -> httpx.Client:
        return httpx.Client(
            base_url=self.endpoint,
            verify=self.verify,
            timeout=self.timeout,
            cookies=cookies,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=self.transport,
        )


class AuthStage(ABC):
    """Abstract base class for credential schemes.

    Every concrete scheme must provide:

    1. A :attr:`name` matching its key in
       :data:`~gateauth.auth.resolver.DEFAULT_ORDER`.
    2. :meth:`section`, returning its section of the ``auth`` config (or
       ``None`` when absent).
    3. :meth:`attempt`, which applies the scheme to the context.

    The resolver validates every enabled stage before any stage runs, so
    :meth:`validate_config` must not touch the network.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique scheme identifier (e.g. ``"oauth2"``)."""
        ...

    @abstractmethod
    def section(self, auth: AuthConfig) -> Any:  # noqa: ANN401
        """Return this scheme's config section, or ``None`` if not configured."""
        ...

    def enabled(self, auth: Optional[AuthConfig]) -> bool:
        """Return ``True`` when auth is enabled and this scheme is configured."""
        return auth is not None and auth.enabled and self.section(auth) is not None

    def validate_config(self, section: Any) -> list[str]:  # noqa: ANN401
        """Return human-readable problems with *section*; empty means valid."""
        return []

    @abstractmethod
    def attempt(self, context: AuthContext) -> None:
        """Apply this scheme to *context*.

        A stage records itself in :attr:`AuthContext.applied` through
        :meth:`~AuthContext.set_bearer`, :meth:`~AuthContext.set_basic`, or
        :meth:`~AuthContext.mark_applied`.

        Raises:
            ConfigurationError: Invalid or incomplete settings.
            AuthenticationError: The provider or Gate rejected the credential.
            NetworkError: A network step could not be completed.
        """
        ...


def unreadable_file(path: Optional[str]) -> Optional[Path]:
    """Return the ``~``-expanded *path* if it is set but not a readable file.

    Stages call this from :meth:`AuthStage.validate_config`, so a missing key
    or certificate is reported before any stage touches the network.
    """
    if not path:
        return None
    expanded = Path(os.path.expanduser(path))
    if expanded.is_file() and os.access(expanded, os.R_OK):
        return None
    return expanded
