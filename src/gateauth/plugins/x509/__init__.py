"""Mutual-TLS client certificate stage.

Implements the ``x509`` scheme: a client certificate and key, from files or
inline PEM, attached to the shared transport with TLS 1.2 as the minimum
protocol version.

Exports:
    :class:`X509Stage` -- the stage class.
    :class:`TLSSessionConfig` -- the resulting TLS settings.
    :func:`build_tls_config` -- load an ``auth.x509`` section.
"""

from gateauth.plugins.x509.plugin import TLSSessionConfig, X509Stage, build_tls_config

__all__ = ["TLSSessionConfig", "X509Stage", "build_tls_config"]
