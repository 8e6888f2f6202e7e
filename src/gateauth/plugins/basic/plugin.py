"""HTTP Basic authentication stage.

This module provides :class:`BasicStage`, which implements the ``basic``
scheme. The configured username and password are attached to the shared
client as :class:`httpx.BasicAuth` and sent as an
``Authorization: Basic <encoded>`` header per :rfc:`7617`. No network call
is made while resolving.
"""

from __future__ import annotations

from typing import Optional

from gateauth.auth.base import AuthContext, AuthStage
from gateauth.exceptions import ConfigurationError
from gateauth.models import AuthConfig, BasicConfig


class BasicStage(AuthStage):
    """Bind static Basic credentials to the shared client."""

    @property
    def name(self) -> str:
        return "basic"

    def section(self, auth: AuthConfig) -> Optional[BasicConfig]:
        return auth.basic

    def validate_config(self, section: BasicConfig) -> list[str]:
        if not section.is_valid():
            return ["Incorrect Basic auth configuration. Must include username and password"]
        return []

    def attempt(self, context: AuthContext) -> None:
        basic = context.auth.basic
        assert basic is not None
        if not basic.is_valid():
            raise ConfigurationError(
                "Incorrect Basic auth configuration. Must include username and password"
            )
        context.set_basic(basic.username, basic.password, self.name)
