"""
FastAPI backend for the CMLRE ocean platform dashboard.

Serves the REST API for simulated model training, model records and
notifications, and the /ws real-time channel the dashboard subscribes to.
"""

import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from api.app_config import AppSettings, load_settings
from api.models import router as models_router
from api.notifications import router as notifications_router
from api.services import build_services, get_services
from api.shared.errors import TransportError
from api.shared.logger import get_logger, setup_logging
from api.system import router as system_router
from api.training import router as training_router
from websocket import StarletteTransport

logger = get_logger(__name__)

dist_path = Path(__file__).parent / "dist"


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Explicit settings; loaded from file and environment when omitted
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services = build_services(settings)
        app.state.services = services
        logger.info("Ocean platform starting...")
        await services.start()
        try:
            yield
        finally:
            await services.stop()

    app = FastAPI(
        title="CMLRE Ocean Platform API",
        description="Marine research dashboard with real-time updates and simulated model training",
        version="1.0.0",
        lifespan=lifespan,
    )

    # ============= Exception Handlers =============

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Log unexpected exceptions and return JSON response."""
        logger.error(
            "Unhandled exception on %s: %s: %s",
            request.url.path,
            type(exc).__name__,
            exc,
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(system_router, prefix="/api", tags=["system"])
    app.include_router(training_router, prefix="/api", tags=["training"])
    app.include_router(models_router, prefix="/api", tags=["models"])
    app.include_router(notifications_router, prefix="/api", tags=["notifications"])

    # ============= WebSocket Endpoint =============

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        Real-time endpoint for the dashboard.

        Client messages (JSON):
            {"type": "subscribe", "channels": ["alerts", "training", ...]}
            {"type": "unsubscribe", "channels": [...]}
            {"type": "ping"} / {"type": "pong"}
            {"type": "request_data", "data": {"type": "environmental_latest"}}

        Server events are ``{"type", "data", "timestamp"}`` envelopes.
        """
        services = get_services(websocket)
        await websocket.accept()
        connection_id = await services.registry.register(StarletteTransport(websocket))

        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(frame.get("code", 1000))
                message_text = frame.get("text")
                if message_text is None:
                    logger.warning("Ignoring non-text frame from client %s", connection_id)
                    continue
                await services.dispatcher.handle(connection_id, message_text)
        except WebSocketDisconnect:
            pass
        except RuntimeError as e:
            # Socket already closed by the server, e.g. heartbeat eviction
            logger.info("WebSocket closed for client %s: %s", connection_id, e)
        except TransportError as e:
            logger.error("WebSocket error for client %s: %s", connection_id, e)
        finally:
            services.registry.unregister(connection_id)

    # ============= Dashboard =============

    if (dist_path / "assets").exists():
        app.mount("/assets", StaticFiles(directory=str(dist_path / "assets")), name="assets")

    @app.get("/{full_path:path}", include_in_schema=False)
    async def serve_spa(full_path: str):
        """Serve the dashboard for all non-API routes (client-side routing)."""
        if full_path.startswith("api/"):
            raise HTTPException(status_code=404, detail="Not found")
        index_file = dist_path / "index.html"
        if index_file.exists():
            return FileResponse(str(index_file))
        return {"message": "dist/index.html not found. Build the dashboard client first."}

    return app


app = create_app()


if __name__ == "__main__":
    import argparse

    defaults = load_settings()
    parser = argparse.ArgumentParser(description="CMLRE ocean platform backend server")
    parser.add_argument(
        "--port",
        type=int,
        default=defaults.port,
        help="Port to run the server on (default: 8000 or OCEAN_PORT env var)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=defaults.host,
        help="Host to bind to (default: 127.0.0.1 or OCEAN_HOST env var)",
    )
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=os.environ.get("OCEAN_RELOAD", "false").lower() == "true",
        help="Enable auto-reload",
    )
    args = parser.parse_args()

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=defaults.log_level.lower(),
    )
