"""FastAPI dashboard application factory with JSON API and WebSocket hub."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from gas_tracker.dashboard.routes import api, ws
from gas_tracker.dashboard.routes.ws import DashboardHub


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI dashboard application.

    The caller stores the engine, simulator and store on app.state before serving
    (main.py does this; tests do it directly).

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        Configured FastAPI application with WebSocket hub and routes.
    """
    app = FastAPI(
        title="Cross-Chain Gas Tracker",
        lifespan=lifespan,
    )

    app.state.hub = DashboardHub()

    app.include_router(api.router, prefix="/api")
    app.include_router(ws.router)

    return app
