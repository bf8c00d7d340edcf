"""FastAPI application factory and server startup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from relaychat.config import Config
from relaychat.generator import OllamaGenerator
from relaychat.registry import ConnectionRegistry
from relaychat.relay import RelayEngine

logger = logging.getLogger(__name__)


def create_api(
    config: Config,
    generator: OllamaGenerator | None = None,
) -> FastAPI:
    """Create the relay app.

    The registry, generator and engine live on ``app.state`` for the
    lifetime of the app; the generator is closed on shutdown.
    """
    generator = generator or OllamaGenerator(
        config.ollama_url,
        config.model,
        config.generation_timeout,
    )
    registry = ConnectionRegistry()
    engine = RelayEngine(registry, generator.generate)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Suggestions from %s (model=%s, timeout=%gs)",
            config.ollama_url,
            config.model,
            config.generation_timeout,
        )
        try:
            yield
        finally:
            await engine.shutdown()
            await generator.aclose()

    app = FastAPI(title="Relaychat", lifespan=lifespan)

    # Store shared references on app.state
    app.state.config = config
    app.state.registry = registry
    app.state.generator = generator
    app.state.engine = engine

    from relaychat.api.routes import health, ws

    app.include_router(health.router)
    app.include_router(ws.router)

    return app


def run_server(app: FastAPI, host: str = "0.0.0.0", port: int = 8888) -> None:
    """Serve *app* with uvicorn (blocking)."""
    import uvicorn

    logger.info("Server is listening on port: %d", port)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=False,
    )
