"""Local HTTP listener that captures the OAuth2 redirect.

The provider redirects the browser to ``http://127.0.0.1:8085/?code=...``.
The redirect URI names the IPv4 loopback address the server binds, never
``localhost``.
:class:`CallbackListener` answers that request by echoing the ``code`` query
parameter as plain text, so the user can copy it into the terminal, and
records it so the flow can use it directly.

The listener is scoped: use it as a context manager and it is shut down
when the block exits, whether the code arrived, an error was raised, or the
wait timed out.
"""

from __future__ import annotations

import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

logger = logging.getLogger(__name__)

CALLBACK_HOST = "127.0.0.1"
CALLBACK_PORT = 8085
DEFAULT_TIMEOUT = 120.0


class CallbackListener:
    """Single-purpose redirect capture server running on a daemon thread.

    Args:
        port: TCP port to bind on :data:`CALLBACK_HOST`. ``0`` picks a free port.
        timeout: Default number of seconds :meth:`wait` blocks for.

    Example::

        with CallbackListener() as listener:
            print(listener.redirect_uri)
            code = listener.wait()
    """

    def __init__(self, port: int = CALLBACK_PORT, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._port = port
        self._timeout = timeout
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._received = threading.Event()
        self.code: Optional[str] = None

    @property
    def port(self) -> int:
        if self._server is not None:
            return self._server.server_address[1]
        return self._port

    @property
    def redirect_uri(self) -> str:
        return f"http://{CALLBACK_HOST}:{self.port}"

    @property
    def running(self) -> bool:
        return self._server is not None

    def start(self) -> None:
        """Bind the port and start serving in the background.

        Raises:
            OSError: If the port cannot be bound.
        """
        self._server = HTTPServer((CALLBACK_HOST, self._port), self._make_handler())
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="gateauth-oauth2-callback",
            daemon=True,
        )
        self._thread.start()
        logger.debug("OAuth2 callback listener on %s", self.redirect_uri)

    def stop(self) -> None:
        """Shut the server down and wait for its thread to exit."""
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None

    def wait(self, timeout: Optional[float] = None) -> Optional[str]:
        """Block until a code arrives or *timeout* seconds pass.

        Returns:
            The captured code, or ``None`` on timeout.
        """
        self._received.wait(self._timeout if timeout is None else timeout)
        return self.code

    def __enter__(self) -> CallbackListener:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    def _make_handler(self) -> type[BaseHTTPRequestHandler]:
        listener = self

        class CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                params = parse_qs(urlparse(self.path).query)
                code = params.get("code", [""])[0]
                if code and listener.code is None:
                    listener.code = code
                    listener._received.set()

                body = f"{code}\n".encode("utf-8")
                self.send_response(200)
                self.send_header("Content-Type", "text/plain; charset=utf-8")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("callback: " + format, *args)

        return CallbackHandler
