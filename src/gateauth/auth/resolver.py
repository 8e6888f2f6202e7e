"""Auth resolver -- ordered pipeline of credential stages.

The :class:`AuthResolver` is the central coordinator of the auth subsystem.
It holds a registry of :class:`~gateauth.auth.base.AuthStage` instances
keyed by name and an explicit order in which enabled stages run:

    x509, iap, basic, oauth2, google_service_account, ldap

The schemes are not mutually exclusive. Every enabled stage runs, and the
last stage to set a credential wins. Pass ``order=`` to change the
precedence.

Resolution happens in two passes. First every enabled stage's section is
validated, so a misconfigured scheme fails before any network call. Then
the stages are attempted in order against a shared
:class:`~gateauth.auth.base.AuthContext`.

For most use cases call :func:`build_client`, which loads the config file,
applies the CLI overrides, and resolves with :func:`create_default_resolver`.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Optional

import httpx

from gateauth.auth.base import AuthContext, AuthStage
from gateauth.auth.token_cache import TokenCache
from gateauth.config import (
    load_config,
    resolve_config_path,
    resolve_endpoint,
    resolve_insecure,
)
from gateauth.exceptions import ConfigurationError, SessionLoginError
from gateauth.models import AuthConfig, Config
from gateauth.output import debug, warning

DEFAULT_ORDER: tuple[str, ...] = (
    "x509",
    "iap",
    "basic",
    "oauth2",
    "google_service_account",
    "ldap",
)


class AuthResolver:
    """Registry and ordered runner for auth stages.

    Args:
        order: Stage names in the order they run. Stages not listed never
            run. Defaults to :data:`DEFAULT_ORDER`.
        strict_session_login: When ``True`` (the default) a failed session
            login aborts resolution; when ``False`` it is reported as a
            warning and resolution continues.

    Example::

        resolver = AuthResolver()
        resolver.register(BasicStage())
        client, context = resolver.resolve(config)
    """

    def __init__(
        self,
        order: Sequence[str] = DEFAULT_ORDER,
        strict_session_login: bool = True,
    ) -> None:
        self._stages: dict[str, AuthStage] = {}
        self._order = list(order)
        self._strict_session_login = strict_session_login

    @property
    def order(self) -> list[str]:
        return list(self._order)

    def register(self, stage: AuthStage) -> None:
        """Register *stage* under its name, replacing any previous one."""
        self._stages[stage.name] = stage

    def get_stage(self, name: str) -> AuthStage:
        """Return the stage registered as *name*.

        Raises:
            ConfigurationError: If no stage is registered under *name*.
        """
        stage = self._stages.get(name)
        if stage is None:
            available = ", ".join(sorted(self._stages)) or "(none)"
            raise ConfigurationError(
                f"No auth stage registered for '{name}'. Available stages: {available}"
            )
        return stage

    def list_stages(self) -> list[str]:
        return sorted(self._stages)

    def enabled_stages(self, auth: Optional[AuthConfig]) -> list[AuthStage]:
        """Return the stages that will run for *auth*, in order."""
        if auth is None or not auth.enabled:
            return []
        stages = [self.get_stage(name) for name in self._order]
        return [stage for stage in stages if stage.enabled(auth)]

    def validate(self, auth: Optional[AuthConfig]) -> None:
        """Validate every enabled stage's section.

        Raises:
            ConfigurationError: Listing every problem found.
        """
        problems: list[str] = []
        for stage in self.enabled_stages(auth):
            assert auth is not None
            problems.extend(stage.validate_config(stage.section(auth)))
        if problems:
            raise ConfigurationError("\n".join(problems))

    def resolve(
        self,
        config: Config,
        insecure: bool = False,
        *,
        endpoint: Optional[str] = None,
        token_cache: Optional[TokenCache] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> tuple[httpx.Client, AuthContext]:
        """Run the enabled stages and return the authenticated client.

        Args:
            config: The loaded configuration; refreshed tokens are written
                into it.
            insecure: Skip TLS certificate verification.
            endpoint: Gate base URL. Defaults to :func:`resolve_endpoint`.
            token_cache: Where refreshed tokens are persisted.
            transport: Transport for the shared client, e.g. an
                :class:`httpx.MockTransport` in tests.

        Returns:
            ``(client, context)``. The caller owns the client and should
            close it.

        Raises:
            ConfigurationError: An enabled scheme is misconfigured.
            AuthenticationError: A provider or Gate rejected a credential.
            NetworkError: A network step could not be completed.
        """
        context = AuthContext(
            config,
            endpoint or resolve_endpoint(config),
            insecure=insecure,
            token_cache=token_cache,
            transport=transport,
        )
        self.validate(config.auth)
        try:
            for stage in self.enabled_stages(config.auth):
                debug(f"Applying {stage.name} auth")
                try:
                    stage.attempt(context)
                except SessionLoginError as exc:
                    if self._strict_session_login:
                        raise
                    warning(str(exc))
            client = context.finalize()
        except BaseException:
            context.close()
            raise
        return client, context


def create_default_resolver(
    order: Sequence[str] = DEFAULT_ORDER,
    strict_session_login: bool = True,
) -> AuthResolver:
    """Create an :class:`AuthResolver` with every built-in stage registered.

    - ``x509`` -- mutual-TLS client certificate.
    - ``iap`` -- Identity-Aware-Proxy identity token.
    - ``basic`` -- HTTP Basic.
    - ``oauth2`` -- OAuth2 authorization code with PKCE.
    - ``google_service_account`` -- Google service-account federation.
    - ``ldap`` -- LDAP form login.
    """
    from gateauth.plugins.basic import BasicStage
    from gateauth.plugins.google_service_account import GoogleServiceAccountStage
    from gateauth.plugins.iap import IAPStage
    from gateauth.plugins.ldap import LDAPStage
    from gateauth.plugins.oauth2_pkce import OAuth2PKCEStage
    from gateauth.plugins.x509 import X509Stage

    resolver = AuthResolver(order=order, strict_session_login=strict_session_login)
    resolver.register(X509Stage())
    resolver.register(IAPStage())
    resolver.register(BasicStage())
    resolver.register(OAuth2PKCEStage())
    resolver.register(GoogleServiceAccountStage())
    resolver.register(LDAPStage())
    return resolver


def build_client(
    config_path: Optional[str] = None,
    endpoint: Optional[str] = None,
    insecure: bool = False,
    resolver: Optional[AuthResolver] = None,
) -> tuple[httpx.Client, AuthContext]:
    """Load the config file and return an authenticated client.

    This is the single entry point for the CLI layer.

    Args:
        config_path: ``--config`` override.
        endpoint: ``--gate-endpoint`` override.
        insecure: ``--insecure`` flag.
        resolver: Resolver to use; defaults to :func:`create_default_resolver`.
    """
    path: Path = resolve_config_path(config_path)
    config = load_config(path)
    resolver = resolver or create_default_resolver()
    return resolver.resolve(
        config,
        resolve_insecure(insecure),
        endpoint=resolve_endpoint(config, endpoint),
        token_cache=TokenCache(path),
    )
