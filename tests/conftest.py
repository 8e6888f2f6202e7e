"""Shared test fixtures for gateauth.

Provides reusable fixtures for isolated config files, mock Gate transports,
prompt control, self-signed certificates, and the CLI runner. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import datetime
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest
import yaml

from gateauth.output import OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during a
    test, the cached references go stale once the test ends.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the real config file and data directory."""
    for var in ("GATEAUTH_CONFIG", "GATEAUTH_ENDPOINT", "GATEAUTH_INSECURE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))


# ---------------------------------------------------------------------------
# Config files
# ---------------------------------------------------------------------------


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper that writes a YAML config file and returns its path.

    Accepts either a mapping (dumped as YAML) or raw YAML text.
    """

    def _write(data: Any, name: str = "config", mode: Optional[int] = None) -> Path:
        path = tmp_path / name
        text = data if isinstance(data, str) else yaml.safe_dump(data, sort_keys=False)
        path.write_text(text)
        if mode is not None:
            path.chmod(mode)
        return path

    return _write


# ---------------------------------------------------------------------------
# Mock Gate server
# ---------------------------------------------------------------------------


class GateRecorder:
    """Records requests sent to a mock Gate and answers ``/login``.

    ``GET /login`` sets a ``SESSION`` cookie; ``POST /login`` sets an
    ``LDAPSESSION`` cookie. Everything else answers 200 with an empty body.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_with: Optional[Exception] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        if request.url.path == "/login":
            cookie = "SESSION" if request.method == "GET" else "LDAPSESSION"
            return httpx.Response(200, headers={"Set-Cookie": f"{cookie}=abc123; Path=/"})
        return httpx.Response(200, text="")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def logins(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/login"]


@pytest.fixture
def gate() -> GateRecorder:
    """A recording mock Gate server."""
    return GateRecorder()


# ---------------------------------------------------------------------------
# Prompt control
# ---------------------------------------------------------------------------


@pytest.fixture
def non_interactive(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make every prompt behave as if stdin were not a terminal."""
    monkeypatch.setattr("gateauth.auth.prompts.is_interactive", lambda: False)


@pytest.fixture
def answers(monkeypatch: pytest.MonkeyPatch) -> Callable[[dict[str, str]], list[str]]:
    """Script prompt answers by label; returns the list of labels asked."""

    def _install(mapping: dict[str, str]) -> list[str]:
        asked: list[str] = []

        def _ask(label: str, hide_input: bool = False) -> str:
            asked.append(label)
            return mapping.get(label, "")

        monkeypatch.setattr("gateauth.auth.prompts.is_interactive", lambda: True)
        monkeypatch.setattr("gateauth.auth.prompts.ask", _ask)
        return asked

    return _install


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def self_signed() -> tuple[str, str]:
    """A self-signed certificate and its key, both PEM."""
    from cryptography import x509
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import ec
    from cryptography.x509.oid import NameOID

    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "gateauth-test")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")
    return cert_pem, key_pem


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet output manager for tests that don't care about output."""
    output = OutputManager(no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
