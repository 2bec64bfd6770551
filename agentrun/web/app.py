# agentrun/web/app.py
"""
Builds the FastAPI application around an `AgentRuntime`.

The runtime is started and stopped with the application lifespan, and every
`AgentRunError` that escapes a route becomes a structured JSON response.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from agentrun.exceptions import (
    AgentRunError,
    ConfigurationError,
    SessionNotFoundError,
    ToolNotFoundError,
    ToolValidationError,
    TurnInProgressError,
)
from agentrun.runtime import AgentRuntime
from agentrun.utils.logger import setup_logger
from agentrun.web.routes_turns import router as turns_router

logger = setup_logger(__name__)

_STATUS = (
    (SessionNotFoundError, 404),
    (ToolNotFoundError, 404),
    (ToolValidationError, 422),
    (TurnInProgressError, 409),
    (ConfigurationError, 500),
)


def _status_for(exc: AgentRunError) -> int:
    for cls, status in _STATUS:
        if isinstance(exc, cls):
            return status
    return 500


def create_app(runtime: AgentRuntime) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await runtime.start()
        try:
            yield
        finally:
            await runtime.shutdown()

    app = FastAPI(
        title="agentrun",
        description="Bounded, tool-using agent turns streamed over HTTP and WebSocket.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    @app.exception_handler(AgentRunError)
    async def agentrun_exception_handler(request: Request, exc: AgentRunError):
        """Handles all custom application errors and returns a structured JSON response."""
        status = _status_for(exc)
        log = logger.warning if status < 500 else logger.error
        log(f"Caught an AgentRunError: {exc.__class__.__name__}: {exc}")
        return JSONResponse(
            status_code=status,
            content={"error_type": exc.__class__.__name__, "message": str(exc)},
        )

    app.include_router(turns_router)
    return app
