"""Identity-Aware-Proxy stage.

Implements the ``iap`` scheme: a Google-signed identity token for the IAP
client id, minted from a service-account key or a user refresh token and
sent as the bearer credential.

See Also:
    :class:`~gateauth.plugins.iap.plugin.IAPStage`
"""

from gateauth.plugins.iap.plugin import IAPStage

__all__ = ["IAPStage"]
