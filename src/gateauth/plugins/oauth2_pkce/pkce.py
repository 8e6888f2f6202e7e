"""PKCE verifier and challenge generation (:rfc:`7636`)."""

from __future__ import annotations

import base64
import hashlib
import secrets

VERIFIER_BYTES = 64


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def code_challenge_for(code_verifier: str) -> str:
    """Return the ``S256`` code challenge for *code_verifier*."""
    return _b64url(hashlib.sha256(code_verifier.encode("ascii")).digest())


def generate_pkce_pair(num_bytes: int = VERIFIER_BYTES) -> tuple[str, str]:
    """Generate a PKCE ``code_verifier`` and its ``S256`` ``code_challenge``.

    The verifier is *num_bytes* of :mod:`secrets` randomness,
    base64url-encoded without padding (86 characters for the default 64
    bytes, within the 43-128 range :rfc:`7636` allows).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    code_verifier = _b64url(secrets.token_bytes(num_bytes))
    return code_verifier, code_challenge_for(code_verifier)
