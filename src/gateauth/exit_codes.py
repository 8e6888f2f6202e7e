"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~gateauth.exceptions.GateAuthError` subclass.
Shell wrappers can inspect the exit code to tell a misconfigured profile
from a rejected credential without parsing stderr.

Example::

    $ gateauth login
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the provider rejected the credentials
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred, or the config file could not be read."""

EXIT_CONFIG_ERROR = 2
"""An enabled auth scheme is missing required fields or has invalid values."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed (rejected code exchange, refresh, or session login)."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
