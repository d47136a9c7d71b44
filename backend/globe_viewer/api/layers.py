"""Layer catalog query and control API endpoints.

This module provides REST API endpoints for the browser globe and its layer
lists: listing layers in drawing order or per category, reading category
change signals, toggling and framing layers, and adding single WMS or WMTS
layers on demand. Bounding boxes are in WGS84 degrees.

Example:
    List the overlay layers, top-most first:
        >>> response = client.get("/api/layers/categories/overlay")
        >>> response.json()["layers"][0]["display_name"]

    Toggle a layer and frame it when it becomes visible:
        >>> response = client.post("/api/layers/14/toggle")
        >>> response.json()["camera"]
        >>> # Returns: {"latitude": 37.6, "longitude": -112.8,
        >>> #           "altitude": 52410.3}
"""

from __future__ import annotations

import dataclasses
from typing import Any

import fastapi

from globe_viewer.catalog import catalog, models, views
from globe_viewer.core import config
from globe_viewer.services import capabilities, layer_loader

router = fastapi.APIRouter(prefix="/api/layers", tags=["layers"])


def _get_catalog() -> catalog.LayerCatalog:
    """Resolve the layer catalog dependency.

    Returns:
        The process-wide LayerCatalog.
    """
    return catalog.get_catalog()


def _get_client(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> capabilities.CapabilitiesClient:
    """Resolve a capabilities client for one request.

    The caller closes the client once its fetches are done.

    Args:
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        CapabilitiesClient using the configured timeout.
    """
    return capabilities.get_capabilities_client(settings)


def _layer_to_dict(layer: models.Layer) -> dict[str, Any]:
    """Convert a layer to a JSON-compatible dictionary."""
    result = dataclasses.asdict(layer)
    if result.get("time") is not None:
        result["time"] = result["time"].isoformat()
    return result


def _position_to_dict(
    position: models.Position | None,
) -> dict[str, float] | None:
    return dataclasses.asdict(position) if position is not None else None


def _require_layer(
    layer_catalog: catalog.LayerCatalog,
    layer_id: int,
) -> models.Layer:
    layer = layer_catalog.get(layer_id)
    if layer is None:
        raise fastapi.HTTPException(
            status_code=404,
            detail="Layer not found",
        )
    return layer


def _options(
    category: str | None,
    display_name: str | None,
    enabled: bool | None,
    opacity: float | None,
) -> models.LayerOptions:
    return models.LayerOptions(
        category=category,
        display_name=display_name,
        enabled=enabled,
        opacity=opacity,
    )


@router.get("")
async def list_layers(
    category: str | None = None,
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(_get_catalog),  # noqa: B008
) -> list[dict[str, Any]]:
    """List layers in drawing order.

    Args:
        category: Restrict the listing to one category.
        layer_catalog: Layer catalog (injected via FastAPI Depends).

    Returns:
        Layer dictionaries, first drawn first.
    """
    layers = (
        layer_catalog.layers
        if category is None
        else layer_catalog.layers_by_category(category)
    )
    return [_layer_to_dict(layer) for layer in layers]


@router.get("/categories/{category}")
async def get_category_view(
    category: str,
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(_get_catalog),  # noqa: B008
) -> dict[str, Any]:
    """Return a category's layer list as shown in the UI.

    The list is ordered top-most first, the reverse of the drawing order,
    and is returned with the category's current change version so clients
    can poll for updates cheaply.

    Args:
        category: E.g. "base", "overlay" or "setting".
        layer_catalog: Layer catalog (injected via FastAPI Depends).

    Returns:
        Dictionary with category, version and layers.
    """
    view = views.ObservableLayerList()
    views.replace_category_view(
        layer_catalog.layers_by_category(category), view
    )
    return {
        "category": category,
        "version": layer_catalog.category_signal(category).version,
        "layers": [_layer_to_dict(layer) for layer in view],
    }


@router.get("/categories/{category}/signal")
async def get_category_signal(
    category: str,
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(_get_catalog),  # noqa: B008
) -> dict[str, Any]:
    """Return the change version of a category.

    Args:
        category: Category to observe.
        layer_catalog: Layer catalog (injected via FastAPI Depends).

    Returns:
        Dictionary with category, version and the time of the last change
        (None before the first change).
    """
    signal = layer_catalog.category_signal(category)
    return {
        "category": category,
        "version": signal.version,
        "updated_at": (
            signal.updated_at.isoformat() if signal.updated_at else None
        ),
    }


@router.get("/by-name/{display_name}")
async def find_layer_by_name(
    display_name: str,
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(_get_catalog),  # noqa: B008
) -> dict[str, Any]:
    """Return the first layer with the given display name.

    Raises:
        HTTPException: If no layer has that name (404 status code).
    """
    layer = layer_catalog.find_by_name(display_name)
    if layer is None:
        raise fastapi.HTTPException(
            status_code=404,
            detail="Layer not found",
        )
    return _layer_to_dict(layer)


@router.get("/{layer_id}/bbox")
async def get_layer_bbox(
    layer_id: int,
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(_get_catalog),  # noqa: B008
) -> dict[str, dict[str, float] | None]:
    """Get the bounding box of a catalog layer.

    Args:
        layer_id: Catalog identifier of the layer.
        layer_catalog: Layer catalog (injected via FastAPI Depends).

    Returns:
        Dictionary containing the bounding box as min/max latitude and
        longitude, or None if the layer has no bounding box.

    Raises:
        HTTPException: If the layer is not found (404 status code).

    Example:
        Get bounding box for a layer:
            >>> response = client.get("/api/layers/14/bbox")
            >>> # Returns: {"bbox": {"min_lat": 37.4, "max_lat": 37.8,
            >>> #                    "min_lon": -113.0, "max_lon": -112.6}}
    """
    layer = _require_layer(layer_catalog, layer_id)
    bbox = dataclasses.asdict(layer.bbox) if layer.bbox else None
    return {"bbox": bbox}


@router.post("/{layer_id}/toggle")
async def toggle_layer(
    layer_id: int,
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(_get_catalog),  # noqa: B008
) -> dict[str, Any]:
    """Toggle a layer and frame it when it becomes enabled.

    Enabling a base layer disables the other base layers. A layer that is
    enabled and has a bounding box is framed by the camera.

    Args:
        layer_id: Catalog identifier of the layer.
        layer_catalog: Layer catalog (injected via FastAPI Depends).

    Returns:
        Dictionary with the toggled layer and the new camera position
        (None when the camera did not move).

    Raises:
        HTTPException: If the layer is not found (404 status code).
    """
    layer = _require_layer(layer_catalog, layer_id)
    layer_catalog.toggle(layer)

    position = None
    if layer.enabled and layer.bbox is not None:
        position = layer_catalog.frame_on(layer)

    return {
        "layer": _layer_to_dict(layer),
        "camera": _position_to_dict(position),
    }


@router.post("/{layer_id}/frame")
async def frame_layer(
    layer_id: int,
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(_get_catalog),  # noqa: B008
) -> dict[str, dict[str, float] | None]:
    """Move the camera to frame a layer's bounding box.

    Returns:
        Dictionary with the camera position, None when the layer has no
        bounding box or is too large to frame.

    Raises:
        HTTPException: If the layer is not found (404 status code).
    """
    layer = _require_layer(layer_catalog, layer_id)
    return {"camera": _position_to_dict(layer_catalog.frame_on(layer))}


@router.delete("/{layer_id}", status_code=204)
async def remove_layer(
    layer_id: int,
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(_get_catalog),  # noqa: B008
) -> None:
    """Remove a layer from the catalog.

    Raises:
        HTTPException: If the layer is not found (404 status code).
    """
    layer_catalog.remove(_require_layer(layer_catalog, layer_id))


@router.post("/wms", status_code=201)
async def add_wms_layer(
    service_address: str,
    layer_name: str,
    category: str | None = None,
    display_name: str | None = None,
    enabled: bool | None = None,
    opacity: float | None = None,
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(_get_catalog),  # noqa: B008
    client: capabilities.CapabilitiesClient = fastapi.Depends(_get_client),  # noqa: B008
) -> dict[str, Any]:
    """Add one named layer of a WMS service to the catalog.

    Args:
        service_address: WMS endpoint address.
        layer_name: Layer name (not title) from the capabilities document.
        category: Target category, "overlay" when omitted.
        display_name: Name overriding the layer title.
        enabled: Initial visibility.
        opacity: Layer opacity.
        layer_catalog: Layer catalog (injected via FastAPI Depends).
        client: Capabilities client (injected via FastAPI Depends).

    Returns:
        The added layer.

    Raises:
        HTTPException: If the service does not advertise the layer (404) or
            its capabilities cannot be retrieved or parsed (502).

    Example:
        Add the EOX OpenStreetMap overlay:
            >>> response = client.post(
            ...     "/api/layers/wms",
            ...     params={"service_address": "https://tiles.maps.eox.at/wms",
            ...             "layer_name": "overlay",
            ...             "display_name": "OpenStreetMap overlay by EOX",
            ...             "enabled": False, "opacity": 0.8},
            ... )
    """
    async with client:
        try:
            layer = await layer_loader.add_layer_from_wms(
                layer_catalog,
                client,
                service_address,
                layer_name,
                _options(category, display_name, enabled, opacity),
            )
        except capabilities.CapabilitiesError as exc:
            raise fastapi.HTTPException(status_code=502, detail=str(exc)) \
                from exc

    if layer is None:
        raise fastapi.HTTPException(
            status_code=404,
            detail=f"Layer {layer_name!r} not found in capabilities",
        )
    return _layer_to_dict(layer)


@router.post("/wmts", status_code=201)
async def add_wmts_layer(
    capabilities_url: str,
    layer_identifier: str,
    category: str | None = None,
    display_name: str | None = None,
    enabled: bool | None = None,
    opacity: float | None = None,
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(_get_catalog),  # noqa: B008
    client: capabilities.CapabilitiesClient = fastapi.Depends(_get_client),  # noqa: B008
) -> dict[str, Any]:
    """Add one WMTS layer to the catalog.

    Raises:
        HTTPException: If the service does not advertise the layer (404) or
            its capabilities cannot be retrieved or parsed (502).
    """
    async with client:
        try:
            layer = await layer_loader.add_layer_from_wmts(
                layer_catalog,
                client,
                capabilities_url,
                layer_identifier,
                _options(category, display_name, enabled, opacity),
            )
        except capabilities.CapabilitiesError as exc:
            raise fastapi.HTTPException(status_code=502, detail=str(exc)) \
                from exc

    if layer is None:
        raise fastapi.HTTPException(
            status_code=404,
            detail=f"Layer {layer_identifier!r} not found in capabilities",
        )
    return _layer_to_dict(layer)
