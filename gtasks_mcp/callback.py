"""Local OAuth redirect listener and the small state machine that owns it.

The listener is a throwaway FastAPI app served by uvicorn on a background
thread. It only renders the authorization code for the user to copy; the
exchange itself happens later through the ``set-auth-code`` tool.
"""

import html
import logging
import threading
import time
from collections.abc import Callable
from enum import Enum

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from gtasks_mcp.config import Settings
from gtasks_mcp.exceptions import IntegrationError

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT = 5.0
STOP_TIMEOUT = 5.0

CODE_RECEIVED_PAGE = """
<h1>Authorization Code Received</h1>
<p>Please copy this code and use it with the 'set-auth-code' tool:</p>
<div style="padding: 10px; background-color: #f0f0f0; border: 1px solid #ccc; margin: 20px 0;">
  <code>{code}</code>
</div>
<p>You can close this window after copying the code.</p>
"""

NO_CODE_PAGE = """
<h1>Authentication Failed</h1>
<p>No authorization code received.</p>
<p>Please try again.</p>
"""

ERROR_PAGE = """
<h1>Authentication Error</h1>
<p>{message}</p>
"""


def create_callback_app(path: str, on_code: Callable[[], None]) -> FastAPI:
    """Build the redirect endpoint. ``on_code`` runs after a code has been rendered."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get(path)
    def oauth_callback(request: Request) -> HTMLResponse:
        try:
            code = request.query_params.get("code")
            if not code:
                return HTMLResponse(NO_CODE_PAGE, status_code=400)
            logger.info("Authorization code received")
            page = CODE_RECEIVED_PAGE.format(code=html.escape(code))
            on_code()
            return HTMLResponse(page)
        except Exception as e:
            logger.error("Error during authentication callback: %s", e)
            return HTMLResponse(ERROR_PAGE.format(message=html.escape(str(e))), status_code=500)

    return app


class CallbackListener:
    """uvicorn server for the callback app, bound to the fixed redirect port."""

    def __init__(self, settings: Settings):
        self.host = settings.redirect_host
        self.port = settings.redirect_port
        self.grace_seconds = settings.callback_grace_seconds
        app = create_callback_app(settings.redirect_path, self._on_code)
        # log_config=None keeps uvicorn off stdout, which carries the MCP stream
        config = uvicorn.Config(
            app,
            host=self.host,
            port=self.port,
            lifespan="off",
            log_config=None,
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._thread: threading.Thread | None = None
        self._timer: threading.Timer | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _on_code(self) -> None:
        self.stop_later(self.grace_seconds)

    def start(self) -> None:
        self._thread = threading.Thread(target=self._server.run, name="oauth-callback", daemon=True)
        self._thread.start()
        deadline = time.monotonic() + STARTUP_TIMEOUT
        while not self._server.started:
            # uvicorn exits its thread when the port is taken
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.stop()
                raise IntegrationError(
                    f"Could not start the authorization callback listener on {self.host}:{self.port}"
                )
            time.sleep(0.05)
        logger.info("Temporary authentication server running at http://%s:%s/", self.host, self.port)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        thread, self._thread = self._thread, None
        if thread is None:
            return
        self._server.should_exit = True
        if thread is not threading.current_thread():
            thread.join(timeout=STOP_TIMEOUT)
        logger.info("Authentication server on port %s stopped", self.port)

    def stop_later(self, delay: float) -> None:
        """Shut down after ``delay`` seconds, leaving time to copy the code."""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = threading.Timer(delay, self.stop)
        self._timer.daemon = True
        self._timer.start()
        logger.info("Authentication server will shut down in %s seconds", delay)


class FlowState(str, Enum):
    IDLE = "idle"
    AWAITING_CODE = "awaiting_code"


class AuthorizationFlow:
    """Owns at most one callback listener. ``start`` and ``stop`` are the only mutators.

    Transitions are driven by a human one at a time, so stop-before-start is
    enough to keep a single listener on the fixed port; there is no lock.
    """

    def __init__(self, settings: Settings, listener_factory: Callable[[Settings], CallbackListener] = CallbackListener):
        self.settings = settings
        self._listener_factory = listener_factory
        self._listener: CallbackListener | None = None

    @property
    def state(self) -> FlowState:
        if self._listener is not None and self._listener.is_running:
            return FlowState.AWAITING_CODE
        return FlowState.IDLE

    def start(self) -> None:
        self.stop()
        listener = self._listener_factory(self.settings)
        listener.start()
        self._listener = listener

    def stop(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.stop()
