"""Globe state API endpoints: camera, projection and provider credentials."""

from __future__ import annotations

import dataclasses
from typing import Any

import fastapi

from globe_viewer.api import layers as api_layers
from globe_viewer.catalog import catalog
from globe_viewer.catalog import engine as catalog_engine
from globe_viewer.core import config

router = fastapi.APIRouter(prefix="/api/globe", tags=["globe"])


@router.get("/camera")
async def get_camera(
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(  # noqa: B008
        api_layers._get_catalog
    ),
) -> dict[str, Any]:
    """Return the last requested camera position and the redraw count.

    The browser globe polls this to follow framing requests made by the
    server, e.g. when discovery frames the default layer.

    Returns:
        Dictionary with ``camera`` (None until the camera first moves) and
        ``redraw_count``.
    """
    engine = layer_catalog.engine
    camera = getattr(engine, "camera", None)
    return {
        "camera": dataclasses.asdict(camera) if camera is not None else None,
        "redraw_count": getattr(engine, "redraw_count", 0),
    }


@router.get("/projection")
async def get_projection(
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(  # noqa: B008
        api_layers._get_catalog
    ),
) -> dict[str, Any]:
    """Return the current projection and the ones the globe can switch to."""
    return {
        "projection": getattr(layer_catalog.engine, "projection",
                              catalog_engine.DEFAULT_PROJECTION),
        "available": list(catalog_engine.PROJECTIONS),
    }


@router.put("/projection")
async def change_projection(
    name: str,
    layer_catalog: catalog.LayerCatalog = fastapi.Depends(  # noqa: B008
        api_layers._get_catalog
    ),
) -> dict[str, Any]:
    """Switch the globe to another projection.

    Args:
        name: Projection name, "3D" for the round globe.
        layer_catalog: Layer catalog (injected via FastAPI Depends).

    Returns:
        The projection now in use.

    Raises:
        HTTPException: If the projection name is unknown (400).
    """
    try:
        layer_catalog.engine.change_projection(name)
    except ValueError as exc:
        raise fastapi.HTTPException(status_code=400, detail=str(exc)) \
            from exc
    return {"projection": name}


@router.get("/credentials")
async def get_credentials(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> dict[str, str]:
    """Report which map provider API keys are configured.

    Keys themselves are never returned.
    """
    return {
        provider: str(state)
        for provider, state in settings.credential_status().items()
    }
