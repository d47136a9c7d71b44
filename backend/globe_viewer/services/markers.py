"""Placemarks dropped on the globe and kept in the "Markers" data layer.

Each marker is a renderable of the Markers layer, labelled with its rounded
coordinates. The layer is created in the data category the first time a
marker is added to a catalog that lacks it.

Example:
    Drop a marker and fly back to it later:
        >>> manager = get_marker_manager(layer_catalog)
        >>> marker = manager.add(37.6, -112.8)
        >>> marker.label
        'Lat 37.60\\nLon -112.80'
        >>> manager.go_to(marker.id)
"""

from __future__ import annotations

import dataclasses
import functools
import itertools
import logging
from typing import TYPE_CHECKING

from globe_viewer.catalog import models

if TYPE_CHECKING:
    from globe_viewer.catalog import catalog

logger = logging.getLogger(__name__)

MARKERS_LAYER = "Markers"
RENDERABLES_KEY = "renderables"
DEFAULT_IMAGE = "images/pushpins/castshadow-red.png"


def marker_label(latitude: float, longitude: float) -> str:
    """Return the two-line label drawn under a marker."""
    return (
        f"Lat {latitude:#.4g}\n"
        f"Lon {longitude:#.5g}"
    )


@dataclasses.dataclass(frozen=True)
class Marker:
    """A placemark on the globe.

    Attributes:
        id: Identifier unique within its manager, never reused.
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        label: Text drawn under the marker image.
        image_source: Image drawn at the marker location.
    """

    id: int
    latitude: float
    longitude: float
    label: str
    image_source: str = DEFAULT_IMAGE

    @property
    def location(self) -> models.Location:
        return models.Location(latitude=self.latitude,
                               longitude=self.longitude)


class MarkerManager:
    """Add, list, remove and visit the markers of one catalog.

    Args:
        layer_catalog: Catalog holding the Markers layer.
        layer_name: Display name of the layer the markers live in.
    """

    def __init__(
        self,
        layer_catalog: catalog.LayerCatalog,
        layer_name: str = MARKERS_LAYER,
    ) -> None:
        self.catalog = layer_catalog
        self.layer_name = layer_name
        self._ids = itertools.count(1)

    @property
    def layer(self) -> models.Layer:
        """The Markers layer, added to the data category when missing."""
        layer = self.catalog.find_by_name(self.layer_name)
        if layer is None:
            logger.info("Creating the %s layer", self.layer_name)
            layer = self.catalog.add(
                models.Layer(display_name=self.layer_name,
                             payload={"type": "RenderableLayer"}),
                models.LayerOptions(category=models.DATA, enabled=True),
            )
        return layer

    def _renderables(self) -> list[Marker]:
        return self.layer.payload.setdefault(RENDERABLES_KEY, [])

    @property
    def markers(self) -> list[Marker]:
        """Markers in the order they were dropped."""
        return list(self._renderables())

    def get(self, marker_id: int) -> Marker | None:
        for marker in self._renderables():
            if marker.id == marker_id:
                return marker
        return None

    def add(
        self,
        latitude: float,
        longitude: float,
        image_source: str | None = None,
    ) -> Marker:
        """Drop a marker and redraw the globe.

        Args:
            latitude: Latitude in decimal degrees.
            longitude: Longitude in decimal degrees.
            image_source: Image to draw; the red pushpin when None.

        Returns:
            The new marker.
        """
        marker = Marker(
            id=next(self._ids),
            latitude=latitude,
            longitude=longitude,
            label=marker_label(latitude, longitude),
            image_source=image_source or DEFAULT_IMAGE,
        )
        self._renderables().append(marker)
        self.catalog.engine.redraw()
        logger.debug("Added marker %d at %.4f, %.4f", marker.id, latitude,
                     longitude)
        return marker

    def remove(self, marker_id: int) -> bool:
        """Remove a marker.

        Returns:
            False when no marker has that id.
        """
        renderables = self._renderables()
        marker = self.get(marker_id)
        if marker is None:
            logger.warning("Cannot remove unknown marker %d", marker_id)
            return False
        renderables.remove(marker)
        self.catalog.engine.redraw()
        return True

    def go_to(self, marker_id: int) -> Marker | None:
        """Center the camera on a marker, keeping the current range.

        Returns:
            The visited marker, or None when no marker has that id.
        """
        marker = self.get(marker_id)
        if marker is None:
            return None
        self.catalog.engine.go_to(marker.location)
        return marker


@functools.cache
def get_marker_manager(layer_catalog: catalog.LayerCatalog) -> MarkerManager:
    """Return the marker manager of a catalog, creating it on first use."""
    return MarkerManager(layer_catalog)
