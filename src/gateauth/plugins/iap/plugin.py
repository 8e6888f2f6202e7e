"""Identity-Aware-Proxy identity token stage.

This module provides :class:`IAPStage`, which implements the ``iap`` scheme.
Gate deployments behind a GCP Identity-Aware Proxy require a Google-signed
OIDC identity token whose audience is the IAP OAuth client id
(``iapClientId``). The token is minted from one of two sources:

- ``serviceAccountKeyPath``: a service-account JSON key, via
  :class:`google.oauth2.service_account.IDTokenCredentials`.
- ``iapClientRefresh``: a user refresh token issued to
  ``oauthClientId`` / ``oauthClientSecret``, exchanged at Google's token
  endpoint with ``audience=iapClientId``.

The token is used directly as the bearer credential and is never cached.
"""

from __future__ import annotations

import os
from typing import Any, Optional

import httpx
from google.oauth2 import service_account

from gateauth.auth.base import AuthContext, AuthStage, unreadable_file
from gateauth.auth.google import google_auth_errors, refresh
from gateauth.exceptions import AuthenticationError, ConfigurationError, NetworkError
from gateauth.models import AuthConfig, IAPConfig
from gateauth.output import debug

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"


class IAPStage(AuthStage):
    """Authenticate through an Identity-Aware Proxy with an identity token."""

    @property
    def name(self) -> str:
        return "iap"

    def section(self, auth: AuthConfig) -> Optional[IAPConfig]:
        return auth.iap

    def validate_config(self, section: IAPConfig) -> list[str]:
        errors = self._check_sources(section)
        missing = unreadable_file(section.service_account_key_path)
        if missing is not None:
            errors.append(f"IAP serviceAccountKeyPath {missing} is not a readable file")
        return errors

    def _check_sources(self, section: IAPConfig) -> list[str]:
        errors: list[str] = []
        if not section.iap_client_id:
            errors.append("IAP auth requires 'iapClientId'")
        has_refresh = bool(
            section.iap_client_refresh
            and section.oauth_client_id
            and section.oauth_client_secret
        )
        if not section.service_account_key_path and not has_refresh:
            errors.append(
                "IAP auth requires 'serviceAccountKeyPath', or 'iapClientRefresh' "
                "with 'oauthClientId' and 'oauthClientSecret'"
            )
        return errors

    def attempt(self, context: AuthContext) -> None:
        iap = context.auth.iap
        assert iap is not None
        problems = self._check_sources(iap)
        if problems:
            raise ConfigurationError("; ".join(problems))

        if iap.service_account_key_path:
            token = self._from_service_account(iap, context.timeout)
        else:
            token = self._from_refresh_token(iap, context)
        context.set_bearer(token, self.name)

    def _from_service_account(self, iap: IAPConfig, timeout: float) -> str:
        key_path = os.path.expanduser(iap.service_account_key_path)
        debug(f"Minting IAP identity token from service account key {key_path}")
        with google_auth_errors("IAP identity token"):
            credentials = service_account.IDTokenCredentials.from_service_account_file(
                key_path, target_audience=iap.iap_client_id
            )
            return refresh(credentials, timeout)

    def _from_refresh_token(self, iap: IAPConfig, context: AuthContext) -> str:
        debug("Exchanging IAP refresh token for an identity token")
        try:
            response = httpx.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": iap.oauth_client_id,
                    "client_secret": iap.oauth_client_secret,
                    "refresh_token": iap.iap_client_refresh,
                    "grant_type": "refresh_token",
                    "audience": iap.iap_client_id,
                },
                headers={"Accept": "application/json"},
                timeout=context.timeout,
                verify=not context.insecure,
            )
            response.raise_for_status()
            data: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise AuthenticationError(
                f"IAP token request failed with status {exc.response.status_code}: "
                f"{exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"IAP token request failed: {exc}") from exc
        except ValueError as exc:
            raise AuthenticationError("IAP token response was not valid JSON") from exc

        token = data.get("id_token")
        if not token:
            raise AuthenticationError("IAP token response missing 'id_token' field")
        return token
