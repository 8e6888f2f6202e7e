"""Credential resolution for the Gate client.

This package turns the ``auth`` section of the config file into an
authenticated :class:`httpx.Client`.

The main entry points are:

- :func:`build_client` -- load the config file and resolve it.
- :class:`AuthResolver` -- ordered pipeline of credential stages.
- :func:`create_default_resolver` -- resolver with every built-in stage.
- :class:`AuthStage` -- abstract base class for a credential scheme.
- :class:`AuthContext` -- state shared by the stages of one run.
- :class:`TokenCache` -- writes refreshed tokens back to the config file.

Typical usage::

    from gateauth.auth import build_client

    client, context = build_client(insecure=False)
    # client carries the TLS settings, session cookies, and credentials.
"""

from gateauth.auth.base import AuthContext, AuthStage
from gateauth.auth.resolver import (
    DEFAULT_ORDER,
    AuthResolver,
    build_client,
    create_default_resolver,
)
from gateauth.auth.token_cache import TokenCache

__all__ = [
    "AuthContext",
    "AuthResolver",
    "AuthStage",
    "DEFAULT_ORDER",
    "TokenCache",
    "build_client",
    "create_default_resolver",
]
