"""Tests for the token write-back cache."""

from __future__ import annotations

import stat
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from gateauth.auth.token_cache import TokenCache
from gateauth.config import load_config, parse_config
from gateauth.models import CachedToken

OAUTH2_YAML = """\
auth:
  enabled: true
  oauth2:
    clientId: cid
    clientSecret: ${GATE_CLIENT_SECRET}
    authUrl: https://idp.example.com/auth
    tokenUrl: https://idp.example.com/token
    scopes:
    - email
"""


def _token() -> CachedToken:
    return CachedToken(
        access_token="fresh",
        token_type="Bearer",
        refresh_token="rt",
        expiry=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )


class TestTokenCache:
    def test_new_file_gets_0600(self, tmp_path: Path) -> None:
        path = tmp_path / "config"
        config = parse_config(OAUTH2_YAML.replace("${GATE_CLIENT_SECRET}", "s"))
        config.auth.oauth2.cached_token = _token()

        assert TokenCache(path).persist(config) is True
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert load_config(path).auth.oauth2.cached_token.access_token == "fresh"

    def test_existing_mode_preserved(self, write_config) -> None:
        path = write_config(OAUTH2_YAML, mode=0o640)
        config = parse_config(OAUTH2_YAML)
        config.auth.oauth2.cached_token = _token()

        TokenCache(path).persist(config)

        assert stat.S_IMODE(path.stat().st_mode) == 0o640

    def test_env_references_not_expanded_on_write(
        self, write_config, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("GATE_CLIENT_SECRET", "top-secret")
        path = write_config(OAUTH2_YAML)
        config = load_config(path)
        assert config.auth.oauth2.client_secret == "top-secret"
        config.auth.oauth2.cached_token = _token()

        TokenCache(path).persist(config)

        text = path.read_text()
        assert "${GATE_CLIENT_SECRET}" in text
        assert "top-secret" not in text
        cached = yaml.safe_load(text)["auth"]["oauth2"]["cachedToken"]
        assert cached["accessToken"] == "fresh"
        assert cached["refreshToken"] == "rt"

    def test_cleared_token_removed(self, write_config) -> None:
        path = write_config(
            OAUTH2_YAML + "    cachedToken:\n      accessToken: stale\n"
        )
        config = parse_config(OAUTH2_YAML)

        TokenCache(path).persist(config)

        assert "cachedToken" not in path.read_text()

    def test_google_service_account_section(self, write_config) -> None:
        path = write_config({"auth": {"enabled": True, "googleServiceAccount": {}}})
        config = load_config(path)
        config.auth.google_service_account.cached_token = _token()

        TokenCache(path).persist(config)

        data = yaml.safe_load(path.read_text())
        assert data["auth"]["googleServiceAccount"]["cachedToken"]["accessToken"] == "fresh"

    def test_write_failure_is_a_warning(self, tmp_path: Path, capsys) -> None:
        config = parse_config(OAUTH2_YAML)
        with patch(
            "gateauth.auth.token_cache.atomic_write", side_effect=PermissionError("read-only")
        ):
            assert TokenCache(tmp_path / "config").persist(config) is False

        assert "Could not cache token" in capsys.readouterr().err
