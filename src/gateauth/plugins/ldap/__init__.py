"""LDAP form login stage.

Implements the ``ldap`` scheme: a URL-encoded ``username``/``password`` form
posted to Gate's ``/login``, prompting for whatever the config leaves out.

See Also:
    :class:`~gateauth.plugins.ldap.plugin.LDAPStage`
"""

from gateauth.plugins.ldap.plugin import LDAPStage

__all__ = ["LDAPStage"]
