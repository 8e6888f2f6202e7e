"""Session handshakes against Gate's ``/login`` endpoint.

Gate accepts two forms of login, both of which leave a session cookie in the
client's cookie jar for later API calls:

- :func:`session_login` -- ``GET /login`` with ``Authorization: Bearer``,
  used after OAuth2 and Google service-account authentication.
- :func:`form_login` -- ``POST /login`` with a URL-encoded
  ``username``/``password`` body, used by LDAP.

Only transport failures count as failures; the HTTP status code is not
inspected, matching what Gate's login endpoints guarantee.
"""

from __future__ import annotations

import logging

import httpx

from gateauth.exceptions import NetworkError, SessionLoginError

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"


def session_login(client: httpx.Client, token: str) -> httpx.Response:
    """Establish a session cookie by presenting *token* to ``/login``.

    Args:
        client: The shared client whose cookie jar receives the session.
        token: The bearer token.

    Returns:
        The login response.

    Raises:
        SessionLoginError: If the request could not be completed.
    """
    try:
        response = client.get(LOGIN_PATH, headers={"Authorization": f"Bearer {token}"})
    except httpx.HTTPError as exc:
        raise SessionLoginError(
            f"Session login at {client.base_url} failed: {exc}"
        ) from exc
    logger.debug("Session login returned HTTP %s", response.status_code)
    return response


def form_login(client: httpx.Client, username: str, password: str) -> httpx.Response:
    """Log in with a URL-encoded ``username``/``password`` form.

    Raises:
        NetworkError: If the request could not be completed.
    """
    try:
        response = client.post(
            LOGIN_PATH, data={"username": username, "password": password}
        )
    except httpx.HTTPError as exc:
        raise NetworkError(f"Form login at {client.base_url} failed: {exc}") from exc
    logger.debug("Form login returned HTTP %s", response.status_code)
    return response
