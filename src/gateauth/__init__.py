"""gateauth -- credential and session bootstrap for the Gate API client.

This package turns a user's persisted ``~/.spin/config`` into an
authenticated :class:`httpx.Client` ready for API calls against a Gate
endpoint. Several credential schemes are supported and may be combined:
mutual TLS, OAuth2 with PKCE, Identity-Aware-Proxy tokens, HTTP Basic,
LDAP form login, and Google service-account federation.

Typical usage::

    from gateauth.auth import build_client

    client, context = build_client(insecure=False)
    response = client.get("/applications")

Modules:
    app: Typer application and console entry point.
    models: Pydantic models for the configuration file.
    config: Config file location, loading, and endpoint resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr output system with Rich support.
"""

__version__ = "0.1.0"

