"""FastAPI application factory for license-relay."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from license_relay.common.config import RelaySettings, get_settings
from license_relay.common.logging import setup_logging
from license_relay.common.schemas import HealthResponse
from license_relay.deps import Services, build_services


def create_app(
    settings: Optional[RelaySettings] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """Build the app; ``services`` lets callers supply their own collaborators."""
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    # Built eagerly so a malformed policy table fails at deploy time.
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Shutdown
        await app.state.services.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.state.services = services

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    from license_relay.fulfillment.router import router as fulfillment_router
    app.include_router(fulfillment_router)

    return app
