"""Layer configurations derived from parsed capabilities documents.

The factory turns the layer entries of OWSLib WMS and WMTS capabilities into
LayerOptions ready for LayerCatalog.add. The options carry the display name,
the bounding box from the layer's advertised WGS84 extent (``bbox`` is always
present, possibly None) and a payload describing how the rendering engine
requests tiles or images from the service.

A layer name missing from the document yields None rather than an error;
callers treat "nothing produced" as a normal outcome.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from globe_viewer.catalog import models

if TYPE_CHECKING:
    from owslib import wms, wmts

logger = logging.getLogger(__name__)

DEFAULT_WMS_FORMAT = "image/png"


def _bbox_from(layer_capabilities: Any) -> models.BoundingBox | None:
    extent = getattr(layer_capabilities, "boundingBoxWGS84", None)
    if not extent:
        return None
    return models.BoundingBox.from_wgs84_tuple(extent)


def _display_name(layer_capabilities: Any, fallback: str) -> str:
    title = getattr(layer_capabilities, "title", None)
    return title.strip() if title else fallback


def _wms_get_map_url(capabilities: wms.WebMapService) -> str:
    """Return the GetMap endpoint, or the capabilities URL if undeclared."""
    try:
        operation = capabilities.getOperationByName("GetMap")
    except KeyError:
        return capabilities.url
    for method in getattr(operation, "methods", []):
        if method.get("type", "").lower() == "get" and method.get("url"):
            return str(method["url"])
    return capabilities.url


def _wms_options(
    capabilities: wms.WebMapService,
    layer_name: str,
    layer_capabilities: Any,
) -> models.LayerOptions:
    return models.LayerOptions(
        display_name=_display_name(layer_capabilities, layer_name),
        bbox=_bbox_from(layer_capabilities),
        payload={
            "service": "WMS",
            "service_address": _wms_get_map_url(capabilities),
            "version": capabilities.version,
            "layer_names": layer_name,
            "format": DEFAULT_WMS_FORMAT,
            "styles": "",
        },
    )


def build_from_wms(
    capabilities: wms.WebMapService,
    layer_name: str,
) -> models.LayerOptions | None:
    """Build the configuration of one named WMS layer.

    Args:
        capabilities: Parsed WMS capabilities.
        layer_name: Layer name (not title) from the capabilities document.

    Returns:
        LayerOptions with display name, bbox and WMS request parameters, or
        None when the document does not advertise the layer.
    """
    layer_capabilities = capabilities.contents.get(layer_name)
    if layer_capabilities is None:
        logger.warning("WMS layer %r not found in %s", layer_name,
                       capabilities.url)
        return None
    return _wms_options(capabilities, layer_name, layer_capabilities)


def build_all_from_wms(
    capabilities: wms.WebMapService,
    default_layer_name: str | None = None,
) -> list[models.LayerOptions]:
    """Build configurations for every named layer in document order.

    Args:
        capabilities: Parsed WMS capabilities.
        default_layer_name: Display name of the layer to enable; every other
            layer is configured disabled.

    Returns:
        One LayerOptions per named layer.
    """
    configs = []
    for layer_name, layer_capabilities in capabilities.contents.items():
        options = _wms_options(capabilities, layer_name, layer_capabilities)
        options.enabled = options.display_name == default_layer_name
        configs.append(options)
    return configs


def build_from_wmts(
    capabilities: wmts.WebMapTileService,
    layer_identifier: str,
) -> models.LayerOptions | None:
    """Build the configuration of one WMTS layer.

    The first advertised tile matrix set and image format are selected.

    Args:
        capabilities: Parsed WMTS capabilities.
        layer_identifier: Layer identifier from the capabilities document.

    Returns:
        LayerOptions with display name, bbox and tile request parameters,
        or None when the document does not advertise the layer.
    """
    layer_capabilities = capabilities.contents.get(layer_identifier)
    if layer_capabilities is None:
        logger.warning("WMTS layer %r not found in %s", layer_identifier,
                       capabilities.url)
        return None

    tile_matrix_sets = list(
        getattr(layer_capabilities, "tilematrixsetlinks", None) or {}
    )
    formats = list(getattr(layer_capabilities, "formats", None) or [])
    return models.LayerOptions(
        display_name=_display_name(layer_capabilities, layer_identifier),
        bbox=_bbox_from(layer_capabilities),
        payload={
            "service": "WMTS",
            "service_address": capabilities.url,
            "layer_identifier": layer_identifier,
            "tile_matrix_set": tile_matrix_sets[0] if tile_matrix_sets
            else None,
            "format": formats[0] if formats else None,
        },
    )
