"""ArcGIS WMS discovery API endpoints.

The folder listing and per-service metadata of an ArcGIS server can be read
directly. Starting a discovery returns immediately; the run continues in the
background and its layers appear in the overlay category as each service
answers. Clients follow progress through the overlay category signal.

Example:
    Scan one folder of the configured server:
        >>> response = client.post(
        ...     "/api/discovery",
        ...     params={"folder": "RECOVER3_BrianheadFire_UT",
        ...             "default_layer": "Fire Affected Vegetation (dNBR)"},
        ... )
        >>> response.status_code
        202
"""

from __future__ import annotations

import logging
from typing import Any

import fastapi

from globe_viewer.api import layers as api_layers
from globe_viewer.catalog import catalog
from globe_viewer.core import config
from globe_viewer.services import capabilities, discovery

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(prefix="/api/discovery", tags=["discovery"])


async def _run_discovery(
    pipeline: discovery.ServiceDiscoveryPipeline,
    context: discovery.DiscoveryContext,
) -> discovery.DiscoveryRun:
    async with pipeline.client:
        return await pipeline.run(context)


@router.post("", status_code=202)
async def start_discovery(
    background_tasks: fastapi.BackgroundTasks,
    service_address: str | None = None,
    folder: str | None = None,
    default_layer: str | None = None,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(  # noqa: B008
        api_layers._get_catalog
    ),
    client: capabilities.CapabilitiesClient = fastapi.Depends(  # noqa: B008
        api_layers._get_client
    ),
) -> dict[str, str | None]:
    """Schedule a discovery run over an ArcGIS catalog folder.

    Parameters left out fall back to the configured server, folder and
    default layer.

    Args:
        background_tasks: FastAPI background task queue.
        service_address: ArcGIS server root, e.g. ``http://host/arcgis``.
        folder: Catalog folder to scan.
        default_layer: Display name of the layer to enable and frame.
        settings: Application settings (injected via FastAPI Depends).
        layer_catalog: Layer catalog (injected via FastAPI Depends).
        client: Capabilities client (injected via FastAPI Depends).

    Returns:
        The parameters the run was scheduled with.
    """
    context = discovery.DiscoveryContext(
        service_address=service_address or str(settings.arcgis_service_address),
        folder=folder if folder is not None else settings.arcgis_folder,
        default_layer=(
            default_layer if default_layer is not None
            else settings.default_layer
        ),
    )
    pipeline = discovery.ServiceDiscoveryPipeline(
        layer_catalog,
        client,
        service_types=settings.discovery_service_types,
        opacity=settings.discovery_opacity,
    )
    background_tasks.add_task(_run_discovery, pipeline, context)
    logger.info("Scheduled discovery at %s", context.folder_url)

    return {
        "status": "scheduled",
        "service_address": context.service_address,
        "folder": context.folder,
        "default_layer": context.default_layer,
    }


def _context(
    settings: config.Settings,
    service_address: str | None,
    folder: str | None,
) -> discovery.DiscoveryContext:
    return discovery.DiscoveryContext(
        service_address=service_address or str(settings.arcgis_service_address),
        folder=folder if folder is not None else settings.arcgis_folder,
    )


def _service_to_dict(service: discovery.ServiceDescriptor) -> dict[str, Any]:
    return {
        "name": service.name,
        "type": service.type,
        "supported_protocols": sorted(service.supported_protocols),
    }


@router.get("/services")
async def list_services(
    service_address: str | None = None,
    folder: str | None = None,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    client: capabilities.CapabilitiesClient = fastapi.Depends(  # noqa: B008
        api_layers._get_client
    ),
) -> dict[str, Any]:
    """List every service of an ArcGIS catalog folder.

    Args:
        service_address: ArcGIS server root; the configured one when omitted.
        folder: Catalog folder; the configured one when omitted.
        settings: Application settings (injected via FastAPI Depends).
        client: Capabilities client (injected via FastAPI Depends).

    Returns:
        The folder address and its services, whatever their type.

    Raises:
        HTTPException: If the folder listing cannot be retrieved or
            parsed (502).
    """
    context = _context(settings, service_address, folder)
    async with client:
        try:
            services = await discovery.fetch_service_list(client, context)
        except capabilities.CapabilitiesError as exc:
            raise fastapi.HTTPException(status_code=502, detail=str(exc)) \
                from exc
    return {
        "folder_url": context.folder_url,
        "services": [_service_to_dict(service) for service in services],
    }


@router.get("/services/{service_type}/{name:path}")
async def describe_service(
    service_type: str,
    name: str,
    service_address: str | None = None,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    client: capabilities.CapabilitiesClient = fastapi.Depends(  # noqa: B008
        api_layers._get_client
    ),
) -> dict[str, Any]:
    """Describe one ArcGIS service and the extensions it supports.

    Args:
        service_type: ArcGIS service type, e.g. ``MapServer``.
        name: Service name including its folder, e.g. ``Fire/Severity``.
        service_address: ArcGIS server root; the configured one when omitted.
        settings: Application settings (injected via FastAPI Depends).
        client: Capabilities client (injected via FastAPI Depends).

    Raises:
        HTTPException: If the service metadata cannot be retrieved or
            parsed (502).
    """
    context = _context(settings, service_address, None)
    service = discovery.ServiceDescriptor(name=name, type=service_type)
    async with client:
        try:
            described = await discovery.describe_service(client, context,
                                                         service)
        except capabilities.CapabilitiesError as exc:
            raise fastapi.HTTPException(status_code=502, detail=str(exc)) \
                from exc
    return _service_to_dict(described)
