"""Marker API endpoints: drop, list, remove and visit placemarks.

Markers live in the "Markers" data layer of the catalog, so they are drawn
and toggled together with it.

Example:
    Drop a marker and fly to it:
        >>> response = client.post("/api/markers",
        ...                        params={"latitude": 37.6,
        ...                                "longitude": -112.8})
        >>> marker_id = response.json()["id"]
        >>> client.post(f"/api/markers/{marker_id}/goto").json()["camera"]
"""

from __future__ import annotations

import dataclasses
from typing import Any

import fastapi

from globe_viewer.api import layers as api_layers
from globe_viewer.catalog import catalog
from globe_viewer.services import markers

router = fastapi.APIRouter(prefix="/api/markers", tags=["markers"])


def _get_markers(
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(  # noqa: B008
        api_layers._get_catalog
    ),
) -> markers.MarkerManager:
    """Resolve the marker manager of the injected catalog."""
    return markers.get_marker_manager(layer_catalog)


def _require_marker(
    manager: markers.MarkerManager,
    marker_id: int,
) -> markers.Marker:
    marker = manager.get(marker_id)
    if marker is None:
        raise fastapi.HTTPException(status_code=404,
                                    detail="Marker not found")
    return marker


@router.get("")
async def list_markers(
    manager: markers.MarkerManager = fastapi.Depends(_get_markers),  # noqa: B008
) -> dict[str, list[dict[str, Any]]]:
    """List markers in the order they were dropped."""
    return {
        "markers": [dataclasses.asdict(marker) for marker in manager.markers],
    }


@router.post("", status_code=201)
async def add_marker(
    latitude: float = fastapi.Query(..., ge=-90, le=90),  # noqa: B008
    longitude: float = fastapi.Query(..., ge=-180, le=180),  # noqa: B008
    image_source: str | None = None,
    manager: markers.MarkerManager = fastapi.Depends(_get_markers),  # noqa: B008
) -> dict[str, Any]:
    """Drop a marker on the globe.

    Args:
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        image_source: Image to draw; the red pushpin when omitted.
        manager: Marker manager (injected via FastAPI Depends).

    Returns:
        The new marker with its id and label.
    """
    marker = manager.add(latitude, longitude, image_source)
    return dataclasses.asdict(marker)


@router.delete("/{marker_id}", status_code=204)
async def remove_marker(
    marker_id: int,
    manager: markers.MarkerManager = fastapi.Depends(_get_markers),  # noqa: B008
) -> None:
    """Remove a marker.

    Raises:
        HTTPException: If the marker does not exist (404).
    """
    manager.remove(_require_marker(manager, marker_id).id)


@router.post("/{marker_id}/goto")
async def go_to_marker(
    marker_id: int,
    manager: markers.MarkerManager = fastapi.Depends(_get_markers),  # noqa: B008
) -> dict[str, Any]:
    """Center the camera on a marker, keeping the current range.

    Raises:
        HTTPException: If the marker does not exist (404).
    """
    marker = _require_marker(manager, marker_id)
    manager.go_to(marker_id)
    camera = getattr(manager.catalog.engine, "camera", None)
    return {
        "marker": dataclasses.asdict(marker),
        "camera": dataclasses.asdict(camera) if camera is not None else None,
    }
