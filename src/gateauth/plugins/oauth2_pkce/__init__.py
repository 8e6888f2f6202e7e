"""OAuth2 Authorization Code stage with PKCE.

Implements the ``oauth2`` scheme: a cached or refreshed token when one is
available, otherwise an interactive Authorization Code grant with Proof Key
for Code Exchange per :rfc:`7636`. A local listener on port 8085 captures
the redirect.

Exports:
    :class:`OAuth2PKCEStage` -- the stage class.
    :class:`CallbackListener` -- the redirect capture server.
    :func:`generate_pkce_pair` -- ``(code_verifier, code_challenge)``.
    :func:`code_challenge_for` -- the ``S256`` challenge for a verifier.
    :func:`build_authorization_url` -- the provider URL shown to the user.
"""

from gateauth.plugins.oauth2_pkce.listener import CallbackListener
from gateauth.plugins.oauth2_pkce.pkce import code_challenge_for, generate_pkce_pair
from gateauth.plugins.oauth2_pkce.plugin import OAuth2PKCEStage, build_authorization_url

__all__ = [
    "CallbackListener",
    "OAuth2PKCEStage",
    "build_authorization_url",
    "code_challenge_for",
    "generate_pkce_pair",
]
