"""LDAP form login stage.

This module provides :class:`LDAPStage`, which implements the ``ldap``
scheme. Gate's LDAP integration accepts a URL-encoded
``username``/``password`` form on ``POST /login`` and answers with a session
cookie, which lands in the shared client's jar.

Values missing from ``auth.ldap`` are prompted for: the username with echo,
the password without. Prompted values are never written back to the config
file. Any response that is not a transport error counts as success.
"""

from __future__ import annotations

from typing import Optional

from gateauth.auth import prompts
from gateauth.auth.base import AuthContext, AuthStage
from gateauth.auth.session import form_login
from gateauth.exceptions import ConfigurationError
from gateauth.models import AuthConfig, LDAPConfig
from gateauth.output import debug


class LDAPStage(AuthStage):
    """Log in to Gate with LDAP credentials."""

    @property
    def name(self) -> str:
        return "ldap"

    def section(self, auth: AuthConfig) -> Optional[LDAPConfig]:
        return auth.ldap

    def validate_config(self, section: LDAPConfig) -> list[str]:
        if (not section.username or not section.password) and not prompts.is_interactive():
            return [
                "Incorrect LDAP auth configuration. Must include username and "
                "password when not running in an interactive terminal"
            ]
        return []

    def attempt(self, context: AuthContext) -> None:
        ldap = context.auth.ldap
        assert ldap is not None

        username = ldap.username or prompts.ask("Username")
        password = ldap.password or prompts.ask("Password", hide_input=True)
        if not username or not password:
            raise ConfigurationError(
                "Incorrect LDAP auth configuration. Must include username and password"
            )

        response = form_login(context.client, username, password)
        debug(f"LDAP login for {username} returned HTTP {response.status_code}")
        context.mark_applied(self.name)
