"""Static layers every globe starts with, listed in drawing order."""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING

from globe_viewer.catalog import models

if TYPE_CHECKING:
    from globe_viewer.catalog import catalog

logger = logging.getLogger(__name__)

# Layer types lit for a time instant once day/night lighting is on.
TIME_AWARE_TYPES = frozenset({"AtmosphereLayer"})

# (engine layer type, display name, options)
DEFAULT_LAYERS: tuple[tuple[str, str, models.LayerOptions], ...] = (
    (
        "BMNGLayer",
        "Blue Marble",
        models.LayerOptions(category=models.BACKGROUND, enabled=True,
                            min_active_altitude=0),
    ),
    (
        "BMNGLandsatLayer",
        "Blue Marble & Landsat",
        models.LayerOptions(category=models.BASE, enabled=False),
    ),
    (
        "BingAerialLayer",
        "Bing Aerial",
        models.LayerOptions(category=models.BASE, enabled=False,
                            payload={"credential": "bing"}),
    ),
    (
        "BingAerialWithLabelsLayer",
        "Bing Aerial with Labels",
        models.LayerOptions(category=models.BASE, enabled=False,
                            payload={"credential": "bing"}),
    ),
    (
        "BingRoadsLayer",
        "Bing Roads",
        models.LayerOptions(category=models.BASE, enabled=False,
                            detail_control=1.5, opacity=0.80,
                            payload={"credential": "bing"}),
    ),
    (
        "UsgsImageryTopoBaseMapLayer",
        "USGS Imagery Topo Basemap",
        models.LayerOptions(category=models.BASE, enabled=True, opacity=1.0),
    ),
    (
        "RenderableLayer",
        "Markers",
        models.LayerOptions(category=models.DATA, enabled=True),
    ),
    (
        "CoordinatesDisplayLayer",
        "Coordinates",
        models.LayerOptions(category=models.SETTING),
    ),
    (
        "ViewControlsLayer",
        "View Controls",
        models.LayerOptions(category=models.SETTING),
    ),
    (
        "CompassLayer",
        "Compass",
        models.LayerOptions(category=models.SETTING, enabled=False),
    ),
    (
        "StarFieldLayer",
        "Stars",
        models.LayerOptions(category=models.SETTING, enabled=False),
    ),
    (
        "AtmosphereLayer",
        "Atmosphere",
        models.LayerOptions(category=models.SETTING, enabled=False),
    ),
    (
        "ShowTessellationLayer",
        "Tessellation",
        models.LayerOptions(category=models.DEBUG, enabled=False),
    ),
)


def populate_default_layers(
    layer_catalog: catalog.LayerCatalog,
    day_night: bool = False,
) -> list[models.Layer]:
    """Add the static background, base, data, setting and debug layers.

    Args:
        layer_catalog: Catalog to populate, normally empty.
        day_night: Light the atmosphere for the current time instead of
            drawing it fully lit.

    Returns:
        The added layers in drawing order.
    """
    lighting = models.LayerOptions(
        time=datetime.datetime.now(tz=datetime.UTC) if day_night else None
    )
    added = [
        layer_catalog.add(
            models.Layer(display_name=display_name,
                         payload={"type": layer_type}),
            options.merged_with(
                lighting if layer_type in TIME_AWARE_TYPES else None
            ),
        )
        for layer_type, display_name, options in DEFAULT_LAYERS
    ]
    logger.debug("Added %d default layers", len(added))
    return added
