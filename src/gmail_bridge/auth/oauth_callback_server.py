"""
OAuth Callback Listener for Gmail Bridge.

Starts a short-lived HTTP server on the loopback interface that captures the
single redirect carrying the authorization code, answers the browser, and
shuts down. One listener serves one authorization attempt.
"""

import asyncio
import html
import logging
import socket
from enum import Enum
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from .errors import ListenerBindError, ListenerCancelled, NoCodeReceived

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT = 3.0


def _create_success_html() -> str:
    """Create a success HTML page after OAuth completion."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
        <title>Authentication Successful</title>
        <style>
            body {
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                text-align: center;
                padding-top: 80px;
                color: #333;
            }
        </style>
    </head>
    <body>
        <h1>Authentication successful!</h1>
        <p>You can close this window and return to your terminal.</p>
    </body>
    </html>
    """


def _create_error_html(error_message: str) -> str:
    """Create an error HTML page."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <title>Authentication Failed</title>
        <style>
            body {{
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                text-align: center;
                padding-top: 80px;
                color: #333;
            }}
            .error-message {{
                color: #ee5a5a;
            }}
        </style>
    </head>
    <body>
        <h1>Error</h1>
        <p class="error-message">{html.escape(error_message)}</p>
        <p>Please run the authorization again.</p>
    </body>
    </html>
    """


class ListenerState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    RESOLVED = "resolved"
    FAILED = "failed"
    CLOSED = "closed"


class CallbackListener:
    """
    Loopback HTTP endpoint that waits for exactly one OAuth redirect.

    Lifecycle: IDLE -> LISTENING -> RESOLVED | FAILED -> CLOSED. A closed
    listener cannot be restarted; build a new one to retry.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 3000,
        callback_path: str = "/oauth2callback",
        expected_state: Optional[str] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.callback_path = callback_path
        self.expected_state = expected_state
        self.state = ListenerState.IDLE
        self.app = FastAPI()
        self.server: Optional[uvicorn.Server] = None

        self._sock: Optional[socket.socket] = None
        self._serve_task: Optional["asyncio.Task[None]"] = None
        self._result: Optional["asyncio.Future[str]"] = None

        self._setup_callback_route()

    def _setup_callback_route(self) -> None:
        """Setup the OAuth callback route."""

        @self.app.get(self.callback_path)
        async def oauth_callback(request: Request) -> HTMLResponse:
            """Handle OAuth callback from Google."""
            if self._result is None or self._result.done():
                return HTMLResponse(
                    content=_create_error_html("This authorization request was already handled."),
                    status_code=410,
                )

            code = request.query_params.get("code")
            error = request.query_params.get("error")
            state = request.query_params.get("state")

            if error:
                error_message = f"Google returned an error: {error}"
            elif not code:
                error_message = "No authorization code received."
            elif self.expected_state and state != self.expected_state:
                error_message = "OAuth state mismatch."
            else:
                logger.info("OAuth callback: Received authorization code")
                self._resolve(code)
                return HTMLResponse(content=_create_success_html())

            logger.error(f"OAuth callback failed: {error_message}")
            self._fail(NoCodeReceived(error_message))
            return HTMLResponse(content=_create_error_html(error_message), status_code=400)

    def _resolve(self, code: str) -> None:
        if self._result is not None and not self._result.done():
            self._result.set_result(code)
            self.state = ListenerState.RESOLVED

    def _fail(self, error: Exception) -> None:
        if self._result is not None and not self._result.done():
            self._result.set_exception(error)
            self.state = ListenerState.FAILED

    def _bind(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
            sock.listen(16)
        except OSError as e:
            sock.close()
            raise ListenerBindError(self.host, self.port, e.strerror or str(e)) from e
        return sock

    async def start(self) -> None:
        """
        Bind the callback port and start serving.

        Raises:
            ListenerBindError: If the port is unavailable.
            RuntimeError: If the listener was already started.
        """
        if self.state is not ListenerState.IDLE:
            raise RuntimeError(f"Callback listener cannot start from state '{self.state.value}'")

        try:
            self._sock = self._bind()
        except ListenerBindError as e:
            logger.error(e.message)
            self.state = ListenerState.CLOSED
            raise
        self.port = self._sock.getsockname()[1]

        self._result = asyncio.get_running_loop().create_future()
        config = uvicorn.Config(
            self.app,
            log_level="warning",
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=3,
        )
        self.server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self.server.serve(sockets=[self._sock]))
        self.state = ListenerState.LISTENING

        # Wait for server to start
        waited = 0.0
        while not self.server.started:
            if self._serve_task.done() or waited >= STARTUP_TIMEOUT:
                await self.close()
                raise ListenerBindError(self.host, self.port, "callback server failed to start")
            await asyncio.sleep(0.01)
            waited += 0.01

        logger.info(f"Listening on http://{self.host}:{self.port} for OAuth callback...")

    async def await_code(self, timeout: Optional[float] = None) -> str:
        """
        Wait for the authorization code, then shut the listener down.

        Returns:
            The authorization code.

        Raises:
            NoCodeReceived: If the callback arrived without a usable code.
            ListenerCancelled: On timeout or cancel().
        """
        if self._result is None or self.state is ListenerState.CLOSED:
            raise RuntimeError("Callback listener is not running")

        try:
            return await asyncio.wait_for(asyncio.shield(self._result), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No OAuth callback received within {timeout} seconds")
            self.cancel(f"No authorization callback received within {timeout} seconds")
            return self._result.result()
        finally:
            await self.close()

    def cancel(self, reason: str = "Authorization was cancelled") -> None:
        """Resolve a pending wait with ListenerCancelled."""
        self._fail(ListenerCancelled(reason))

    async def close(self) -> None:
        """Stop serving and release the port. Safe to call more than once."""
        if self.state is ListenerState.CLOSED:
            return

        if self._result is not None:
            if not self._result.done():
                self._fail(ListenerCancelled("Callback listener closed"))
            # Mark the outcome as retrieved even if nobody awaited it
            self._result.exception()

        if self.server is not None:
            self.server.should_exit = True

        if self._serve_task is not None:
            try:
                await self._serve_task
            except Exception as e:
                logger.error(f"Callback server error during shutdown: {e}", exc_info=True)

        if self._sock is not None:
            self._sock.close()

        self.state = ListenerState.CLOSED
        logger.info("Callback listener stopped")
