"""Add single WMS or WMTS layers to the catalog by name.

These loaders fetch the capabilities of one service, build the configuration
of one named layer and add it to the catalog with caller-supplied options
(category, display name, enabled state, opacity). The bounding box always
comes from the capabilities document.

Transport and parse failures propagate so that a user-triggered load can be
reported back to the user. A layer missing from the document is logged and
yields None.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from globe_viewer.catalog import models
from globe_viewer.services import capabilities, layer_factory

if TYPE_CHECKING:
    from globe_viewer.catalog import catalog

logger = logging.getLogger(__name__)


def _add(
    layer_catalog: catalog.LayerCatalog,
    config: models.LayerOptions,
    options: models.LayerOptions | None,
) -> models.Layer:
    merged = config.merged_with(options)
    merged.bbox = config.bbox
    return layer_catalog.add(models.Layer(), merged)


async def add_layer_from_wms(
    layer_catalog: catalog.LayerCatalog,
    client: capabilities.CapabilitiesClient,
    service_address: str,
    layer_name: str,
    options: models.LayerOptions | None = None,
) -> models.Layer | None:
    """Add one named layer of a WMS service to the catalog.

    Args:
        layer_catalog: Catalog receiving the layer.
        client: Client used to fetch the capabilities.
        service_address: WMS endpoint address.
        layer_name: Layer name (not title) from the capabilities document.
        options: Settings applied on top of the derived configuration.

    Returns:
        The added layer, or None when the service lacks the layer.

    Raises:
        TransportFailure: When the capabilities cannot be fetched.
        ParseFailure: When the capabilities cannot be parsed.

    Example:
        Add the EOX OpenStreetMap base layer, disabled:
            >>> await add_layer_from_wms(
            ...     layer_catalog, client, "https://tiles.maps.eox.at/wms",
            ...     "osm", models.LayerOptions(category="base", enabled=False),
            ... )
    """
    wms_capabilities = await client.fetch_wms_capabilities(service_address)
    config = layer_factory.build_from_wms(wms_capabilities, layer_name)
    if config is None:
        return None
    return _add(layer_catalog, config, options)


async def add_layer_from_wmts(
    layer_catalog: catalog.LayerCatalog,
    client: capabilities.CapabilitiesClient,
    capabilities_url: str,
    layer_identifier: str,
    options: models.LayerOptions | None = None,
) -> models.Layer | None:
    """Add one WMTS layer to the catalog.

    Args:
        layer_catalog: Catalog receiving the layer.
        client: Client used to fetch the capabilities.
        capabilities_url: Address of the WMTS capabilities document.
        layer_identifier: Layer identifier from the document.
        options: Settings applied on top of the derived configuration.

    Returns:
        The added layer, or None when the service lacks the layer.

    Raises:
        TransportFailure: When the capabilities cannot be fetched.
        ParseFailure: When the capabilities cannot be parsed.
    """
    wmts_capabilities = await client.fetch_wmts_capabilities(capabilities_url)
    config = layer_factory.build_from_wmts(wmts_capabilities, layer_identifier)
    if config is None:
        return None
    return _add(layer_catalog, config, options)


async def load_usgs_topo_base_layer(
    layer_catalog: catalog.LayerCatalog,
    client: capabilities.CapabilitiesClient,
    capabilities_url: str,
) -> models.Layer | None:
    """Add the USGS Topo base map as a disabled base layer.

    Failures are logged; the viewer keeps working with its other base
    layers.

    Returns:
        The added layer, or None when it could not be loaded.
    """
    try:
        return await add_layer_from_wmts(
            layer_catalog,
            client,
            capabilities_url,
            "USGSTopo",
            models.LayerOptions(
                category=models.BASE,
                display_name="USGS Topo Basemap",
                enabled=False,
            ),
        )
    except capabilities.CapabilitiesError as exc:
        logger.error(
            "There was a failure retrieving the capabilities document: %s",
            exc,
        )
        return None
