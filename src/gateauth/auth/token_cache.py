"""Persist refreshed tokens back into the config file.

:class:`TokenCache` writes the ``cachedToken`` entries of the in-memory
:class:`~gateauth.models.Config` to the file it was loaded from, so later
invocations can skip the interactive or network round trip.

Only the token entries are merged into the file as it exists on disk. The
rest of the document is written back unexpanded, so ``${VAR}`` references
in secrets are not replaced by their values. When the file is missing or
unreadable the whole config is serialised instead.

Failures never propagate: authentication for the current invocation has
already succeeded in memory, so a write error is reported as a warning.
"""

from __future__ import annotations

import stat
from pathlib import Path
from typing import Any, Optional

import yaml

from gateauth.config import DEFAULT_CONFIG_MODE, atomic_write, dump_config
from gateauth.models import Config
from gateauth.output import debug, warning

# Sections that carry a cachedToken, as (attribute, YAML key) pairs.
_TOKEN_SECTIONS = (
    ("oauth2", "oauth2"),
    ("google_service_account", "googleServiceAccount"),
)


class TokenCache:
    """Write-back cache for the config file at *path*.

    Args:
        path: The config file the configuration was loaded from.

    Example::

        cache = TokenCache(Path("~/.spin/config").expanduser())
        config.auth.oauth2.cached_token = token
        cache.persist(config)
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def persist(self, config: Config) -> bool:
        """Write *config*'s cached tokens to disk.

        An existing file keeps its permission mode; a new file is created
        with ``0o600``.

        Returns:
            ``True`` if the file was written, ``False`` if the write failed
            (a warning has been printed).
        """
        try:
            mode = self._existing_mode()
            text = self._render(config)
            atomic_write(self._path, text, mode if mode is not None else DEFAULT_CONFIG_MODE)
        except OSError as exc:
            warning(f"Could not cache token to {self._path}: {exc}")
            return False
        debug(f"Cached token written to {self._path}")
        return True

    def _existing_mode(self) -> Optional[int]:
        try:
            return stat.S_IMODE(self._path.stat().st_mode)
        except FileNotFoundError:
            return None

    def _render(self, config: Config) -> str:
        raw = self._read_raw()
        if raw is None:
            return dump_config(config)
        return yaml.safe_dump(
            _merge_tokens(raw, config), default_flow_style=False, sort_keys=False
        )

    def _read_raw(self) -> Optional[dict[str, Any]]:
        """Return the file's unexpanded YAML mapping, or ``None`` if unusable."""
        if not self._path.is_file():
            return None
        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except yaml.YAMLError:
            return None
        return data if isinstance(data, dict) else None


def _merge_tokens(raw: dict[str, Any], config: Config) -> dict[str, Any]:
    """Copy every ``cachedToken`` from *config* into the raw mapping *raw*."""
    if config.auth is None:
        return raw
    raw_auth = raw.setdefault("auth", {})
    if not isinstance(raw_auth, dict):
        return raw
    for attr, key in _TOKEN_SECTIONS:
        section = getattr(config.auth, attr)
        if section is None:
            continue
        raw_section = raw_auth.get(key)
        if not isinstance(raw_section, dict):
            raw_section = raw_auth[key] = {}
        if section.cached_token is None:
            raw_section.pop("cachedToken", None)
        else:
            raw_section["cachedToken"] = section.cached_token.model_dump(
                mode="json", by_alias=True, exclude_none=True
            )
    return raw
