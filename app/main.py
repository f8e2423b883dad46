"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import AppException
from app.db.mongodb import close_mongodb, connect_mongodb, ensure_indexes
from app.db.postgres import close_postgres
from app.domains.conversation.router import router as conversation_router
from app.sockets.hub import RealtimeHub, create_realtime_hub
from app.sockets.rooms import SocketIORoomRouter
from app.sockets.server import create_socket_server, register_namespaces

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _build_lifespan(hub: RealtimeHub, manage_stores: bool):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """Application lifespan events."""
        # Startup
        logger.info(f"Starting Helpdesk Realtime in {settings.environment} mode...")
        if manage_stores:
            await connect_mongodb()
            await ensure_indexes()

        yield

        # Shutdown
        logger.info("Shutting down Helpdesk Realtime...")
        await hub.shutdown()
        if manage_stores:
            await close_mongodb()
            await close_postgres()

    return lifespan


def create_app(realtime: RealtimeHub | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        realtime: Pre-built hub. When omitted, a hub backed by MongoDB and
            PostgreSQL is created and the lifespan owns those connections.
    """
    sio = create_socket_server()
    manage_stores = realtime is None
    hub = realtime or create_realtime_hub(SocketIORoomRouter(sio))
    register_namespaces(sio, hub)

    app = FastAPI(
        title="Helpdesk Realtime",
        description="Real-time customer support conversation routing",
        version="0.1.0",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=_build_lifespan(hub, manage_stores),
    )
    app.state.sio = sio
    app.state.realtime = hub

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # Exception handlers
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": exc.error_code,
                    "message": exc.message,
                    "details": exc.details,
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        if settings.is_development:
            return JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "code": "INTERNAL_ERROR",
                        "message": str(exc),
                        "details": {"type": type(exc).__name__},
                    }
                },
            )
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                }
            },
        )

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "environment": settings.environment}

    # API info endpoint
    @app.get("/")
    async def root():
        return {
            "name": "Helpdesk Realtime API",
            "version": "0.1.0",
            "docs": "/docs" if settings.is_development else None,
        }

    app.include_router(
        conversation_router,
        prefix=f"{settings.api_prefix}/conversations",
        tags=["Conversations"],
    )

    return app
