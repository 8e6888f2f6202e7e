"""Tests for the OAuth2 Authorization Code + PKCE stage and its listener."""

from __future__ import annotations

import base64
import hashlib
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from gateauth.auth import AuthContext, TokenCache
from gateauth.exceptions import AuthenticationError, NetworkError
from gateauth.models import AuthConfig, CachedToken, Config, OAuth2Config
from gateauth.plugins.oauth2_pkce import (
    CallbackListener,
    OAuth2PKCEStage,
    build_authorization_url,
    code_challenge_for,
    generate_pkce_pair,
)

TOKEN_URL = "https://idp.example.com/token"
POST = "gateauth.plugins.oauth2_pkce.plugin.httpx.post"


def _oauth2(cached_token: Optional[CachedToken] = None) -> OAuth2Config:
    return OAuth2Config(
        client_id="cid",
        client_secret="secret",
        auth_url="https://idp.example.com/auth",
        token_url=TOKEN_URL,
        scopes=["email", "profile"],
        cached_token=cached_token,
    )


def _context(
    gate, oauth2: OAuth2Config, cache_path: Optional[Path] = None
) -> AuthContext:
    config = Config(auth=AuthConfig(enabled=True, oauth2=oauth2))
    return AuthContext(
        config,
        "https://gate.example.com",
        token_cache=TokenCache(cache_path) if cache_path else None,
        transport=gate.transport,
    )


def _token_response(data: dict[str, Any], status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code, json=data, request=httpx.Request("POST", TOKEN_URL)
    )


# ---------------------------------------------------------------------------
# PKCE
# ---------------------------------------------------------------------------


class TestPKCE:
    def test_challenge_is_sha256_of_verifier(self) -> None:
        verifier, challenge = generate_pkce_pair()
        digest = hashlib.sha256(verifier.encode("ascii")).digest()
        assert challenge == base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    def test_verifier_shape(self) -> None:
        verifier, _ = generate_pkce_pair()
        assert len(verifier) == 86
        assert re.fullmatch(r"[A-Za-z0-9_-]+", verifier)

    def test_pairs_are_unique(self) -> None:
        assert generate_pkce_pair()[0] != generate_pkce_pair()[0]

    def test_rfc7636_appendix_b(self) -> None:
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert code_challenge_for(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


class TestAuthorizationURL:
    def test_parameters(self) -> None:
        url = build_authorization_url(_oauth2(), "http://127.0.0.1:8085", "chal", "st")
        parsed = urlparse(url)
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}

        assert url.startswith("https://idp.example.com/auth?")
        assert params == {
            "response_type": "code",
            "client_id": "cid",
            "redirect_uri": "http://127.0.0.1:8085",
            "scope": "email profile",
            "state": "st",
            "access_type": "offline",
            "prompt": "consent",
            "code_challenge": "chal",
            "code_challenge_method": "S256",
        }

    def test_existing_query_string(self) -> None:
        oauth2 = _oauth2()
        oauth2.auth_url = "https://idp.example.com/auth?tenant=x"
        url = build_authorization_url(oauth2, "http://127.0.0.1:8085", "c", "s")
        assert url.startswith("https://idp.example.com/auth?tenant=x&response_type=code")


# ---------------------------------------------------------------------------
# Callback listener
# ---------------------------------------------------------------------------


class TestCallbackListener:
    def test_echoes_and_captures_code(self) -> None:
        with CallbackListener(port=0, timeout=5) as listener:
            response = httpx.get(f"http://127.0.0.1:{listener.port}/?code=abc&state=s")

            assert response.status_code == 200
            assert response.text == "abc\n"
            assert response.headers["content-type"].startswith("text/plain")
            assert listener.wait() == "abc"

        assert listener.running is False

    def test_redirect_uri_names_bound_address(self) -> None:
        listener = CallbackListener(port=8085)
        assert listener.redirect_uri == "http://127.0.0.1:8085"

    def test_redirect_uri_reaches_listener(self) -> None:
        with CallbackListener(port=0, timeout=5) as listener:
            response = httpx.get(f"{listener.redirect_uri}/?code=xyz")
            assert response.text == "xyz\n"
            assert listener.wait() == "xyz"

    def test_wait_times_out(self) -> None:
        with CallbackListener(port=0) as listener:
            assert listener.wait(timeout=0.05) is None

    def test_stop_is_idempotent(self) -> None:
        listener = CallbackListener(port=0)
        listener.start()
        listener.stop()
        listener.stop()
        assert listener.running is False


# ---------------------------------------------------------------------------
# Cached tokens
# ---------------------------------------------------------------------------


class TestCachedToken:
    def test_valid_cached_token_skips_prompt_and_exchange(
        self, gate, answers, tmp_path: Path
    ) -> None:
        asked = answers({})
        cached = CachedToken(
            access_token="cached", expiry=datetime.now(timezone.utc) + timedelta(hours=1)
        )
        cache_path = tmp_path / "config"
        context = _context(gate, _oauth2(cached), cache_path)

        with patch(POST) as mock_post:
            OAuth2PKCEStage(port=0).attempt(context)

        mock_post.assert_not_called()
        assert asked == []
        assert context.bearer_token == "cached"
        assert gate.logins()[0].headers["Authorization"] == "Bearer cached"
        assert not cache_path.exists()

    def test_expired_token_is_refreshed(self, gate, tmp_path: Path) -> None:
        cached = CachedToken(
            access_token="old",
            refresh_token="rt",
            expiry=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        oauth2 = _oauth2(cached)
        cache_path = tmp_path / "config"
        context = _context(gate, oauth2, cache_path)

        with patch(
            POST, return_value=_token_response({"access_token": "new", "expires_in": 3600})
        ) as mock_post:
            OAuth2PKCEStage(port=0).attempt(context)

        data = mock_post.call_args.kwargs["data"]
        assert mock_post.call_args.args[0] == TOKEN_URL
        assert data["grant_type"] == "refresh_token"
        assert data["refresh_token"] == "rt"
        assert data["client_id"] == "cid"
        assert data["client_secret"] == "secret"
        assert oauth2.cached_token.access_token == "new"
        # Providers may omit the refresh token on refresh.
        assert oauth2.cached_token.refresh_token == "rt"
        assert oauth2.cached_token.expiry > datetime.now(timezone.utc)
        assert context.bearer_token == "new"
        assert "accessToken: new" in cache_path.read_text()

    def test_expired_without_refresh_token(self, gate) -> None:
        cached = CachedToken(
            access_token="old", expiry=datetime.now(timezone.utc) - timedelta(minutes=5)
        )
        with pytest.raises(AuthenticationError, match="no refresh token"):
            OAuth2PKCEStage(port=0).attempt(_context(gate, _oauth2(cached)))

    def test_failed_refresh_is_an_error(self, gate) -> None:
        cached = CachedToken(
            access_token="old",
            refresh_token="rt",
            expiry=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        with patch(POST, return_value=_token_response({"error": "invalid_grant"}, 400)):
            with pytest.raises(AuthenticationError, match="status 400"):
                OAuth2PKCEStage(port=0).attempt(_context(gate, _oauth2(cached)))
        assert gate.requests == []


# ---------------------------------------------------------------------------
# Interactive flow
# ---------------------------------------------------------------------------


class TestInteractiveFlow:
    def test_exchange_uses_verifier_behind_challenge(self, gate, answers, capsys) -> None:
        answers({"Paste authorization code": "pasted"})
        context = _context(gate, _oauth2())

        with patch(
            POST,
            return_value=_token_response(
                {"access_token": "at", "refresh_token": "rt", "token_type": "Bearer"}
            ),
        ) as mock_post:
            OAuth2PKCEStage(port=0, timeout=1).attempt(context)

        err = capsys.readouterr().err
        url = re.search(r"Navigate to (\S+) and authenticate", err).group(1)
        params = {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}
        data = mock_post.call_args.kwargs["data"]

        assert params["code_challenge_method"] == "S256"
        assert data["grant_type"] == "authorization_code"
        assert data["code"] == "pasted"
        assert code_challenge_for(data["code_verifier"]) == params["code_challenge"]
        assert data["redirect_uri"] == params["redirect_uri"]
        assert context.auth.oauth2.cached_token.refresh_token == "rt"
        assert context.scheme == "oauth2"

    def test_empty_paste_uses_listener_code(self, gate, answers) -> None:
        answers({})

        class FakeListener:
            running = True
            redirect_uri = "http://127.0.0.1:8085"

            def __init__(self, port: int, timeout: float) -> None:
                self.stopped = False

            def start(self) -> None:
                pass

            def stop(self) -> None:
                self.stopped = True

            def wait(self, timeout: Optional[float] = None) -> Optional[str]:
                return "captured"

        with patch("gateauth.plugins.oauth2_pkce.plugin.CallbackListener", FakeListener):
            with patch(POST, return_value=_token_response({"access_token": "at"})) as mock_post:
                OAuth2PKCEStage().attempt(_context(gate, _oauth2()))

        assert mock_post.call_args.kwargs["data"]["code"] == "captured"

    def test_no_code_at_all(self, gate, answers) -> None:
        answers({})
        with patch(POST) as mock_post:
            with pytest.raises(AuthenticationError, match="No authorization code"):
                OAuth2PKCEStage(port=0, timeout=0.05).attempt(_context(gate, _oauth2()))
        mock_post.assert_not_called()

    def test_listener_port_in_use_still_prompts(self, gate, answers, capsys) -> None:
        answers({"Paste authorization code": "pasted"})
        with patch(
            "gateauth.plugins.oauth2_pkce.listener.HTTPServer",
            side_effect=OSError("address in use"),
        ):
            with patch(POST, return_value=_token_response({"access_token": "at"})):
                OAuth2PKCEStage(port=8085).attempt(_context(gate, _oauth2()))

        assert "Could not start callback listener" in capsys.readouterr().err

    def test_missing_access_token(self, gate, answers) -> None:
        answers({"Paste authorization code": "pasted"})
        with patch(POST, return_value=_token_response({"token_type": "Bearer"})):
            with pytest.raises(AuthenticationError, match="access_token"):
                OAuth2PKCEStage(port=0).attempt(_context(gate, _oauth2()))

    def test_invalid_expires_in(self, gate, answers) -> None:
        answers({"Paste authorization code": "pasted"})
        response = _token_response({"access_token": "at", "expires_in": "soon"})
        with patch(POST, return_value=response):
            with pytest.raises(AuthenticationError, match="expires_in"):
                OAuth2PKCEStage(port=0).attempt(_context(gate, _oauth2()))
        assert gate.requests == []

    def test_transport_failure(self, gate, answers) -> None:
        answers({"Paste authorization code": "pasted"})
        with patch(POST, side_effect=httpx.ConnectError("refused")):
            with pytest.raises(NetworkError, match="code exchange"):
                OAuth2PKCEStage(port=0).attempt(_context(gate, _oauth2()))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_incomplete_section(self, answers) -> None:
        answers({})
        oauth2 = _oauth2()
        oauth2.scopes = []
        assert OAuth2PKCEStage().validate_config(oauth2)

    def test_non_interactive_without_cache(self, non_interactive) -> None:
        problems = OAuth2PKCEStage().validate_config(_oauth2())
        assert any("interactive terminal" in p for p in problems)

    def test_non_interactive_with_cache_is_fine(self, non_interactive) -> None:
        oauth2 = _oauth2(CachedToken(access_token="at"))
        assert OAuth2PKCEStage().validate_config(oauth2) == []
