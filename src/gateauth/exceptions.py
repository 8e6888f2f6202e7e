"""Exception hierarchy for gateauth.

All exceptions inherit from :class:`GateAuthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`gateauth.exit_codes`.
The top-level error handler in :func:`gateauth.app.main` catches
``GateAuthError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    GateAuthError (exit 1)
    +-- ConfigurationError  (exit 2)
    +-- ConfigIOError       (exit 1)
    +-- AuthenticationError (exit 3)
    |   +-- SessionLoginError (exit 3)
    +-- NetworkError        (exit 6)
"""

from gateauth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONFIG_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
)


class GateAuthError(Exception):
    """Base exception for all gateauth errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`gateauth.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(GateAuthError):
    """Raised when an enabled auth scheme is missing fields or has invalid values.

    Always raised before any network call is attempted for that scheme.
    """

    exit_code = EXIT_CONFIG_ERROR


class ConfigIOError(GateAuthError):
    """Raised when the config file cannot be read or parsed."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthenticationError(GateAuthError):
    """Raised when a provider rejects credentials, a code exchange, or a session login."""

    exit_code = EXIT_AUTH_FAILURE


class SessionLoginError(AuthenticationError):
    """Raised when the bearer-token session handshake against ``/login`` fails.

    Kept distinct from other authentication failures so that
    :class:`~gateauth.auth.resolver.AuthResolver` can decide whether a failed
    session login is fatal.
    """


class NetworkError(GateAuthError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR
