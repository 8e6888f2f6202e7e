"""HTTP Basic authentication stage.

Implements the ``basic`` scheme, which sends the configured
``username``/``password`` as an ``Authorization: Basic`` header per
:rfc:`7617`.

See Also:
    :class:`~gateauth.plugins.basic.plugin.BasicStage`
"""

from gateauth.plugins.basic.plugin import BasicStage

__all__ = ["BasicStage"]
