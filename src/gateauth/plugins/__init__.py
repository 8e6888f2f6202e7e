"""Built-in credential schemes for gateauth.

Each sub-package provides one :class:`~gateauth.auth.base.AuthStage`:

- :mod:`~gateauth.plugins.x509` -- mutual-TLS client certificates.
- :mod:`~gateauth.plugins.iap` -- Identity-Aware-Proxy identity tokens.
- :mod:`~gateauth.plugins.basic` -- HTTP Basic credentials.
- :mod:`~gateauth.plugins.oauth2_pkce` -- interactive OAuth2 with PKCE.
- :mod:`~gateauth.plugins.google_service_account` -- Google service-account
  federation.
- :mod:`~gateauth.plugins.ldap` -- LDAP form login.
"""
