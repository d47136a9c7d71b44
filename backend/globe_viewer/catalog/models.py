"""Data models for catalog layers.

This module defines the core data structures used throughout the application
to represent map layers. A Layer is a renderable unit owned by the
LayerCatalog; LayerOptions is the enumerated configuration merged onto a
layer when it is added; BoundingBox describes the geographic extent a layer
covers in WGS84 degrees.

Example:
    Creating a base layer and the options that enable it:
        >>> from globe_viewer.catalog.models import Layer, LayerOptions
        >>> layer = Layer(display_name="Landsat",
        ...               payload={"type": "BMNGLandsatLayer"})
        >>> options = LayerOptions(category="base", enabled=True)
        >>> options.apply_to(layer)
        >>> layer.category
        'base'
"""

from __future__ import annotations

import dataclasses
import datetime
from typing import Any

BACKGROUND = "background"
BASE = "base"
OVERLAY = "overlay"
DATA = "data"
SETTING = "setting"
DEBUG = "debug"

DEFAULT_CATEGORY = OVERLAY
CATEGORIES = (BACKGROUND, BASE, OVERLAY, DATA, SETTING, DEBUG)


@dataclasses.dataclass(frozen=True)
class BoundingBox:
    """Geographic extent of a layer in WGS84 degrees.

    Attributes:
        min_lat: Southern boundary latitude.
        max_lat: Northern boundary latitude.
        min_lon: Western boundary longitude.
        max_lon: Eastern boundary longitude.
    """

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @classmethod
    def from_wgs84_tuple(
        cls,
        extent: tuple[float, float, float, float],
    ) -> BoundingBox:
        """Build a box from an OGC ``(minx, miny, maxx, maxy)`` tuple.

        Args:
            extent: West, south, east, north in decimal degrees.

        Returns:
            BoundingBox with latitude and longitude ranges split out.
        """
        west, south, east, north = (float(v) for v in extent[:4])
        return cls(min_lat=south, max_lat=north, min_lon=west, max_lon=east)

    def covers_globe(self) -> bool:
        """Return True when the box spans ±90 latitude and ±180 longitude."""
        return (
            self.max_lat >= 90
            and self.min_lat <= -90
            and self.max_lon >= 180
            and self.min_lon <= -180
        )


@dataclasses.dataclass(frozen=True)
class Location:
    """A point on the globe in WGS84 decimal degrees."""

    latitude: float
    longitude: float


@dataclasses.dataclass(frozen=True)
class Position:
    """Camera position: a location plus an altitude (range) in meters."""

    latitude: float
    longitude: float
    altitude: float


@dataclasses.dataclass(eq=False)
class Layer:
    """A renderable unit the catalog knows about.

    Layers compare by identity, so two layers with identical settings are
    still distinct catalog members.

    Attributes:
        display_name: Human-readable name shown in the layer lists.
        category: Grouping tag; None until the layer is added, after which
            it is always set.
        enabled: Whether the rendering engine draws the layer.
        opacity: Layer opacity between 0 and 1.
        bbox: Extent used to frame the camera, None when unknown.
        payload: Opaque description handed to the rendering engine.
        detail_control: Tile resolution factor passed through to the engine.
        min_active_altitude: Altitude below which the engine hides the layer.
        time: Time instant for time-aware layers (e.g. atmosphere lighting).
        id: Unique catalog identifier, assigned by LayerCatalog.add.
    """

    display_name: str = ""
    category: str | None = None
    enabled: bool = True
    opacity: float = 1.0
    bbox: BoundingBox | None = None
    payload: dict[str, Any] = dataclasses.field(default_factory=dict)
    detail_control: float | None = None
    min_active_altitude: float | None = None
    time: datetime.datetime | None = None
    id: int | None = None


@dataclasses.dataclass
class LayerOptions:
    """Explicit configuration merged onto a layer by LayerCatalog.add.

    Every field defaults to None, meaning "leave the layer's value alone".
    Any field that is set overwrites the layer's value, category included.
    ``payload`` entries are merged key by key into the layer's payload.
    """

    category: str | None = None
    display_name: str | None = None
    enabled: bool | None = None
    opacity: float | None = None
    bbox: BoundingBox | None = None
    payload: dict[str, Any] | None = None
    detail_control: float | None = None
    min_active_altitude: float | None = None
    time: datetime.datetime | None = None

    def apply_to(self, layer: Layer) -> None:
        """Copy every set option onto the layer."""
        for field in dataclasses.fields(self):
            value = getattr(self, field.name)
            if value is None:
                continue
            if field.name == "payload":
                layer.payload.update(value)
            else:
                setattr(layer, field.name, value)

    def merged_with(self, overrides: LayerOptions | None) -> LayerOptions:
        """Return a copy of these options with ``overrides`` layered on top."""
        merged = dataclasses.replace(self)
        if overrides is None:
            return merged
        for field in dataclasses.fields(overrides):
            value = getattr(overrides, field.name)
            if value is None:
                continue
            if field.name == "payload":
                merged.payload = {**(merged.payload or {}), **value}
            else:
                setattr(merged, field.name, value)
        return merged
