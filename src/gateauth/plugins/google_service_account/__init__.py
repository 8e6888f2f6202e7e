"""Google service-account federation stage.

Implements the ``googleServiceAccount`` scheme: a token from application
default credentials or a JSON key file, exchanged for a Gate session and
cached in the config file.

See Also:
    :class:`~gateauth.plugins.google_service_account.plugin.GoogleServiceAccountStage`
"""

from gateauth.plugins.google_service_account.plugin import GoogleServiceAccountStage

__all__ = ["GoogleServiceAccountStage"]
