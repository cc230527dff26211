"""FastAPI HTTP bridge for browser or scripted front ends.

Exposes the session controller's outward contract over HTTP so a front
end that cannot speak Socket.IO can still drive runs:

    GET  /health   -> {"status": "ok", "connected": ..., "state": ...}
    GET  /session  -> SessionSnapshot
    POST /run      <- {"code": "...", "auto_indent": true}
    POST /stdin    <- {"text": "Ada\\n"}
    POST /abort

/run and /stdin answer 503 while the runner is unreachable; /abort is local
and always allowed.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from photonterm.channel.base import ChannelError, EventChannel
from photonterm.config.settings import Settings
from photonterm.domain.models import SessionSnapshot, SessionState
from photonterm.session.controller import SessionController

logger = logging.getLogger(__name__)


class RunRequest(BaseModel):
    code: str = Field(default="", description="Program source to execute")
    auto_indent: bool | None = Field(default=None, description="Override the configured default")


class StdinRequest(BaseModel):
    text: str = Field(description="Answer to the pending prompt, usually ending in a newline")


class BridgeStatus(BaseModel):
    status: str = "ok"
    connected: bool = False
    state: SessionState = SessionState.IDLE


def create_app(
    controller: SessionController | None = None,
    channel: EventChannel | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()

    if channel is None:
        from photonterm.channel.socketio_channel import SocketIOChannel
        channel = SocketIOChannel.from_config(settings.channel)
    if controller is None:
        controller = SessionController.from_config(settings.session, channel)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        ch: EventChannel = app.state.channel
        try:
            await ch.connect()
        except ChannelError as e:
            logger.error("Runner unavailable: %s", e)
        logger.info("Bridge started")
        yield
        await ch.disconnect()
        logger.info("Bridge stopped")

    app = FastAPI(
        title="photonterm Bridge",
        description="HTTP bridge to an interactive remote execution session",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.channel = channel
    app.state.controller = controller

    @app.get("/health")
    async def health_check() -> BridgeStatus:
        ctl: SessionController = app.state.controller
        return BridgeStatus(
            status="ok",
            connected=app.state.channel.is_connected,
            state=ctl.state,
        )

    @app.get("/session")
    async def get_session() -> SessionSnapshot:
        return app.state.controller.snapshot()

    def _require_runner() -> None:
        if not app.state.channel.is_connected:
            raise HTTPException(
                status_code=503,
                detail="Not connected to the runner. Check channel.url or BACKEND_URL.",
            )

    @app.post("/run")
    async def run_code(request: RunRequest) -> SessionSnapshot:
        _require_runner()
        ctl: SessionController = app.state.controller
        ctl.start(request.code, auto_indent=request.auto_indent)
        return ctl.snapshot()

    @app.post("/stdin")
    async def send_stdin(request: StdinRequest) -> dict[str, str]:
        ctl: SessionController = app.state.controller
        if ctl.state is not SessionState.WAITING_FOR_INPUT:
            return {"status": "ignored", "reason": f"Session is {ctl.state.value}"}
        _require_runner()
        ctl.submit_input(request.text)
        return {"status": "ok", "length": str(len(request.text))}

    @app.post("/abort")
    async def abort_run() -> dict[str, str]:
        ctl: SessionController = app.state.controller
        if not ctl.abort():
            return {"status": "ignored", "reason": f"Session is {ctl.state.value}"}
        return {"status": "ok"}

    return app


def main() -> None:
    """Entry point for running the bridge standalone."""
    settings = Settings()
    app = create_app(settings=settings)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
