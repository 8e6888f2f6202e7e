"""Configuration file location, loading, and precedence resolution.

This module handles the persisted configuration for gateauth:

* **Location** -- :func:`resolve_config_path` picks the file from the CLI
  flag, the ``GATEAUTH_CONFIG`` environment variable, or ``~/.spin/config``.
* **Loading** -- :func:`load_config` reads the YAML document, expands
  ``$VAR`` / ``${VAR}`` references from the environment *before* parsing,
  and validates it into a :class:`~gateauth.models.Config`.
* **Writing** -- :func:`dump_config` and :func:`atomic_write` serialise the
  config back to disk; :class:`~gateauth.auth.token_cache.TokenCache` is
  the only caller that persists during authentication.
* **Endpoint resolution** -- :func:`resolve_endpoint` merges the CLI flag,
  ``GATEAUTH_ENDPOINT``, and ``gate.endpoint``.
* **Data directory** -- :func:`get_data_dir` for crash logs, XDG compliant on
  Linux/BSD.

There is no inter-process locking. Two concurrent invocations that both
refresh a token race on the read-modify-write of the same file; the last
writer wins.
"""

from __future__ import annotations

import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from gateauth.exceptions import ConfigIOError
from gateauth.models import Config
from gateauth.output import warning

_APP_NAME = "gateauth"
DEFAULT_ENDPOINT = "http://localhost:8084"
DEFAULT_CONFIG_MODE = 0o600


# --- Path resolution ---


def default_config_path() -> Path:
    """Return ``~/.spin/config``, the file shared with the ``spin`` CLI."""
    return Path.home() / ".spin" / "config"


def resolve_config_path(cli_path: Optional[str] = None) -> Path:
    """Resolve the config file location.

    Precedence (high to low):
        1. ``cli_path`` (the ``--config`` flag)
        2. ``GATEAUTH_CONFIG`` environment variable
        3. ``~/.spin/config``
    """
    if cli_path:
        return Path(cli_path).expanduser()
    env_path = os.environ.get("GATEAUTH_CONFIG", "")
    if env_path:
        return Path(env_path).expanduser()
    return default_config_path()


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/gateauth/`` (default
    ``~/.local/share/gateauth/``). Elsewhere: ``~/.gateauth/``.
    """
    system = platform.system()
    if system == "Linux" or system.endswith("BSD"):
        base = os.environ.get("XDG_DATA_HOME", "")
        root = Path(base) if base else Path.home() / ".local" / "share"
        path = root / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Loading ---


def load_config(path: Path) -> Config:
    """Load and validate the config file at *path*.

    Environment variables are expanded in the raw text before the YAML is
    parsed, so secrets can be kept out of the file (``clientSecret:
    ${GATE_CLIENT_SECRET}``). Unset variables are left as written.

    A missing file is not an error: a warning is printed and an empty
    :class:`~gateauth.models.Config` is returned.

    Args:
        path: The config file location.

    Returns:
        The validated configuration.

    Raises:
        ConfigIOError: If the file exists but cannot be read, is not valid
            YAML, or fails validation.
    """
    if not path.is_file():
        warning(f"Could not read configuration file from {path}.")
        return Config()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigIOError(f"Cannot read config file {path}: {exc}") from exc
    return parse_config(os.path.expandvars(text), source=str(path))


def parse_config(text: str, source: str = "<string>") -> Config:
    """Parse already-expanded YAML *text* into a :class:`~gateauth.models.Config`.

    Raises:
        ConfigIOError: On YAML syntax errors, a non-mapping document, or
            validation failures (including unknown keys).
    """
    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigIOError(f"Invalid YAML in config file {source}: {exc}") from exc
    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ConfigIOError(f"Config file {source} must contain a mapping at the top level")
    try:
        return Config.model_validate(data)
    except ValidationError as exc:
        raise ConfigIOError(f"Invalid config file {source}: {exc}") from exc


# --- Writing ---


def dump_config(config: Config) -> str:
    """Serialise *config* to YAML using the file's camelCase key names.

    Unset optional fields are omitted so that a round trip does not fill the
    file with ``null`` entries.
    """
    data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)


def atomic_write(path: Path, data: str, mode: int = DEFAULT_CONFIG_MODE) -> None:
    """Write *data* to *path* atomically with permission bits *mode*.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. Permissions are set
    on the temporary file before any content is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Precedence resolution ---


def resolve_endpoint(config: Config, cli_endpoint: Optional[str] = None) -> str:
    """Resolve the Gate endpoint.

    Precedence (high to low):
        1. ``cli_endpoint`` (the ``--gate-endpoint`` flag)
        2. ``GATEAUTH_ENDPOINT`` environment variable
        3. ``gate.endpoint`` from the config file
        4. :data:`DEFAULT_ENDPOINT`

    Trailing slashes are stripped so paths such as ``/login`` can be
    appended directly.
    """
    endpoint = (
        cli_endpoint
        or os.environ.get("GATEAUTH_ENDPOINT", "")
        or config.gate.endpoint
        or DEFAULT_ENDPOINT
    )
    return endpoint.rstrip("/")


def resolve_insecure(cli_insecure: bool = False) -> bool:
    """Return ``True`` if TLS verification should be skipped.

    Set by the ``--insecure`` flag or ``GATEAUTH_INSECURE=1``.
    """
    if cli_insecure:
        return True
    return os.environ.get("GATEAUTH_INSECURE", "").lower() in ("1", "true", "yes")
