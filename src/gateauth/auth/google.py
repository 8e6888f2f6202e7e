"""google-auth helpers shared by the IAP and service-account stages."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import google.auth.exceptions
from google.auth.transport.requests import Request

from gateauth.exceptions import AuthenticationError, ConfigurationError, NetworkError


@contextmanager
def google_auth_errors(what: str) -> Iterator[None]:
    """Translate google-auth exceptions raised while obtaining *what*.

    ``DefaultCredentialsError`` and unreadable key files become
    :class:`ConfigurationError`, ``TransportError`` becomes
    :class:`NetworkError`, and ``RefreshError`` becomes
    :class:`AuthenticationError`.
    """
    try:
        yield
    except google.auth.exceptions.DefaultCredentialsError as exc:
        raise ConfigurationError(f"No usable Google credentials for {what}: {exc}") from exc
    except google.auth.exceptions.TransportError as exc:
        raise NetworkError(f"Could not reach Google while obtaining {what}: {exc}") from exc
    except google.auth.exceptions.RefreshError as exc:
        raise AuthenticationError(f"Google rejected the request for {what}: {exc}") from exc
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Invalid service account key for {what}: {exc}") from exc


class TimeoutRequest(Request):
    """A google-auth transport request with a bounded default timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__()
        self._timeout = timeout

    def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):  # noqa: ANN001, ANN003, ANN204
        return super().__call__(
            url,
            method=method,
            body=body,
            headers=headers,
            timeout=timeout or self._timeout,
            **kwargs,
        )


def refresh(credentials: Any, timeout: float) -> str:  # noqa: ANN401
    """Refresh google-auth *credentials* and return the token as text."""
    credentials.refresh(TimeoutRequest(timeout))
    token = credentials.token
    if isinstance(token, bytes):
        token = token.decode("ascii")
    return token


def utc_expiry(credentials: Any) -> Optional[datetime]:  # noqa: ANN401
    """Return the credentials' expiry as an aware UTC datetime."""
    expiry = getattr(credentials, "expiry", None)
    if expiry is not None and expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry
