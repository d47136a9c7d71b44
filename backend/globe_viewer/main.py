"""FastAPI application entrypoint and configuration.

This module provides the main FastAPI application factory that sets up
logging, CORS middleware, the layer, discovery, globe and marker routers,
and a health check endpoint. When discovery on startup is enabled, the USGS
Topo base map and the configured ArcGIS folder are loaded in the background
while the application starts serving requests.

Example:
    The application can be run with uvicorn:
        $ uvicorn globe_viewer.main:app --reload

    Or imported and used programmatically:
        >>> from globe_viewer.main import app
        >>> # Use app in ASGI server
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import fastapi
from fastapi.middleware import cors

from globe_viewer.api import discovery as api_discovery
from globe_viewer.api import globe, layers, markers
from globe_viewer.catalog import catalog
from globe_viewer.core import config, logging_config
from globe_viewer.services import capabilities, discovery, layer_loader

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
    """Start the remote layer loads and clean them up on shutdown.

    Tasks still running at shutdown are cancelled before the shared
    capabilities client is closed.
    """
    settings = config.get_settings()
    tasks: set[asyncio.Task[Any]] = set()
    app.state.startup_tasks = tasks

    if not settings.discover_on_startup:
        yield
        return

    client = capabilities.get_capabilities_client(settings)
    layer_catalog = catalog.get_catalog()

    usgs_task = asyncio.create_task(
        layer_loader.load_usgs_topo_base_layer(
            layer_catalog,
            client,
            str(settings.usgs_topo_capabilities_url),
        )
    )
    tasks.add(usgs_task)
    usgs_task.add_done_callback(tasks.discard)

    pipeline = discovery.ServiceDiscoveryPipeline(
        layer_catalog,
        client,
        service_types=settings.discovery_service_types,
        opacity=settings.discovery_opacity,
    )
    discovery.launch(
        pipeline,
        discovery.DiscoveryContext(
            service_address=str(settings.arcgis_service_address),
            folder=settings.arcgis_folder,
            default_layer=settings.default_layer,
        ),
        tasks,
    )

    try:
        yield
    finally:
        pending = list(tasks)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        await client.close()
        logger.info("Stopped %d pending startup tasks", len(pending))


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Configures logging, sets up CORS middleware, includes the layer,
    discovery, globe and marker routers, and adds a health check endpoint.
    CORS origins are configured from settings, allowing cross-origin
    requests from specified domains.

    Returns:
        Configured FastAPI application instance ready for ASGI server.

    Example:
        The app can be used with uvicorn or other ASGI servers:
            >>> app = create_app()
            >>> # Or use the module-level app instance:
            >>> from globe_viewer.main import app
    """
    settings = config.get_settings()
    logging_config.setup_logging(settings.log_level)

    app = fastapi.FastAPI(title="Globe Viewer", version="0.1.0",
                          lifespan=lifespan)

    app.include_router(layers.router)
    app.include_router(api_discovery.router)
    app.include_router(globe.router)
    app.include_router(markers.router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
