"""Mutual-TLS client certificate stage.

This module provides :class:`X509Stage`, which turns the ``auth.x509``
section into a :class:`TLSSessionConfig` for the shared client:

1. Validates that exactly one source is populated: the ``certPath`` /
   ``keyPath`` pair or the inline ``cert`` / ``key`` PEM pair.
2. Loads the certificate and key (paths are ``~``-expanded).
3. Builds the trust-anchor pool from ``caPath`` / ``ca`` when given, and
   from the client certificate itself otherwise. System roots are always
   trusted as well.
4. Requires TLS 1.2 or newer, prefers server cipher order, and disables
   verification when the insecure flag is set.

No handshake is performed here; the first real request does that.
"""

from __future__ import annotations

import os
import ssl
import tempfile
from pathlib import Path
from typing import Optional

from gateauth.auth.base import AuthContext, AuthStage, unreadable_file
from gateauth.exceptions import ConfigurationError
from gateauth.models import AuthConfig, X509Config

_INVALID_SOURCE = (
    "Incorrect x509 auth configuration. "
    "Must specify certPath/keyPath or cert/key pair."
)


class TLSSessionConfig:
    """Client-side TLS settings for mutual TLS.

    Holds PEM text rather than paths so inline and file-sourced
    credentials behave identically. :meth:`ssl_context` builds (once) the
    :class:`ssl.SSLContext` handed to :class:`httpx.Client`.

    Args:
        certificate: Client certificate PEM.
        private_key: Private key PEM matching *certificate*.
        trust_anchors: PEM bundle added to the system trust store.
        insecure: Skip server certificate verification.
        prefer_server_ciphers: Set ``OP_CIPHER_SERVER_PREFERENCE``.
        minimum_version: Lowest protocol version offered.
    """

    def __init__(
        self,
        certificate: str,
        private_key: str,
        trust_anchors: str,
        insecure: bool = False,
        prefer_server_ciphers: bool = True,
        minimum_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1_2,
    ) -> None:
        self.certificate = certificate
        self.private_key = private_key
        self.trust_anchors = trust_anchors
        self.insecure = insecure
        self.prefer_server_ciphers = prefer_server_ciphers
        self.minimum_version = minimum_version
        self._context: Optional[ssl.SSLContext] = None

    @property
    def certificates(self) -> list[str]:
        """The client certificates presented during the handshake."""
        return [self.certificate]

    def ssl_context(self) -> ssl.SSLContext:
        """Return the :class:`ssl.SSLContext`, building it on first call.

        Raises:
            ConfigurationError: If the certificate, key, or trust anchors
                cannot be loaded, or the key does not match the certificate.
        """
        if self._context is None:
            self._context = self._build()
        return self._context

    def _build(self) -> ssl.SSLContext:
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
        context.minimum_version = self.minimum_version
        if self.prefer_server_ciphers:
            context.options |= ssl.OP_CIPHER_SERVER_PREFERENCE
        try:
            context.load_verify_locations(cadata=self.trust_anchors)
            _load_cert_chain(context, self.certificate, self.private_key)
        except (ssl.SSLError, ValueError) as exc:
            raise ConfigurationError(f"Invalid x509 certificate or key: {exc}") from exc
        if self.insecure:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context


def _load_cert_chain(context: ssl.SSLContext, certificate: str, private_key: str) -> None:
    # The ssl module only loads client certificates from files.
    with tempfile.TemporaryDirectory(prefix="gateauth-") as tmp:
        cert_file = Path(tmp) / "client.crt"
        key_file = Path(tmp) / "client.key"
        cert_file.write_text(certificate, encoding="ascii")
        key_file.touch(mode=0o600)
        key_file.write_text(private_key, encoding="ascii")
        context.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))


class X509Stage(AuthStage):
    """Attach a client certificate to the shared transport."""

    @property
    def name(self) -> str:
        return "x509"

    def section(self, auth: AuthConfig) -> Optional[X509Config]:
        return auth.x509

    def validate_config(self, section: X509Config) -> list[str]:
        if not section.is_valid():
            return [_INVALID_SOURCE]
        paths = [("caPath", section.ca_path)]
        if section.has_path_pair():
            paths += [("certPath", section.cert_path), ("keyPath", section.key_path)]
        errors: list[str] = []
        for field, path in paths:
            missing = unreadable_file(path)
            if missing is not None:
                errors.append(f"x509 {field} {missing} is not a readable file")
        return errors

    def attempt(self, context: AuthContext) -> None:
        x509 = context.auth.x509
        assert x509 is not None
        tls = build_tls_config(x509, insecure=context.insecure)
        # Fail on bad PEM material now rather than on the first request.
        tls.ssl_context()
        context.use_tls(tls)
        context.mark_applied(self.name)


def build_tls_config(x509: X509Config, insecure: bool = False) -> TLSSessionConfig:
    """Load the credential named by *x509* into a :class:`TLSSessionConfig`.

    Raises:
        ConfigurationError: If neither or both source pairs are populated,
            or a referenced file cannot be read.
    """
    if not x509.is_valid():
        raise ConfigurationError(_INVALID_SOURCE)

    if x509.has_path_pair():
        certificate = _read_pem(x509.cert_path, "certPath")
        private_key = _read_pem(x509.key_path, "keyPath")
    else:
        certificate = x509.cert or ""
        private_key = x509.key or ""

    if x509.ca_path:
        trust_anchors = _read_pem(x509.ca_path, "caPath")
    elif x509.ca:
        trust_anchors = x509.ca
    else:
        trust_anchors = certificate

    return TLSSessionConfig(
        certificate=certificate,
        private_key=private_key,
        trust_anchors=trust_anchors,
        insecure=insecure,
    )


def _read_pem(path: Optional[str], field: str) -> str:
    assert path is not None
    expanded = Path(os.path.expanduser(path))
    try:
        return expanded.read_text(encoding="ascii")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Cannot read x509 {field} {expanded}: {exc}") from exc
