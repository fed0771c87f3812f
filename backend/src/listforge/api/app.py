"""FastAPI application."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from listforge.api.endpoints import Authenticator, create_lists_router
from listforge.config import EngineConfig
from listforge.engine import Engine
from listforge.errors import (
    AccessDeniedError,
    ListforgeError,
    StorageError,
    ValidationFailureError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[ListforgeError], int] = {
    AccessDeniedError: 403,
    ValidationFailureError: 400,
    StorageError: 500,
}


def _base_path() -> Path:
    # Metadata lives next to backend/, not inside it
    cwd = Path.cwd()
    return cwd.parent if cwd.name == "backend" else cwd


def create_app(
    engine: Engine | None = None,
    authenticate: Authenticator | None = None,
) -> FastAPI:
    """Build the API.

    Args:
        engine: A configured engine; built from the environment on startup if None
        authenticate: Resolves the caller of a request to (item, list key)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize on startup, cleanup on shutdown."""
        owns_engine = app.state.engine is None
        if owns_engine:
            config = EngineConfig.from_env(_base_path())
            logger.info("Loading lists from %s", config.metadata_path)
            app.state.engine = config.build_engine()

        await app.state.engine.initialize()

        yield

        # Cleanup
        if owns_engine:
            await app.state.engine.close()
            app.state.engine = None

    app = FastAPI(title="listforge API", lifespan=lifespan)
    app.state.engine = engine

    # CORS for frontend dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ListforgeError)
    async def listforge_error_handler(request: Request, exc: ListforgeError) -> JSONResponse:
        status = next(
            (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500
        )
        if status >= 500:
            logger.error(
                "%s on %s %s: %s %s",
                exc.kind,
                request.method,
                request.url.path,
                exc.message,
                exc.internal_data,
            )
        else:
            logger.info(
                "%s on %s %s: %s",
                exc.kind,
                request.method,
                request.url.path,
                exc.internal_data,
            )
        return JSONResponse(status_code=status, content={"error": exc.to_dict()})

    app.include_router(create_lists_router(lambda: app.state.engine, authenticate))

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
