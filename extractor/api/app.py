"""FastAPI application entry point for the extractor host."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Final

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from extractor.api.routes import router, shutdown_capture_service
from extractor.config.settings import ExtractorConfig

VERSION: Final[str] = "1.0.0"


def _configure_logging(log_level: str) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Shutdown: release the browser if a page was opened
    await shutdown_capture_service()


def create_app() -> FastAPI:
    """Factory function for creating the FastAPI application."""
    config = ExtractorConfig()
    _configure_logging(config.log_level)
    api_config = config.api

    app = FastAPI(
        title="Extractor",
        description="Point-and-click extraction rules for arbitrary web pages",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_config.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "extractor", "version": VERSION}

    return app


app = create_app()


def main() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    api_config = ExtractorConfig().api
    uvicorn.run(app, host=api_config.host, port=api_config.port)


if __name__ == "__main__":
    main()
