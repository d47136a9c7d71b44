"""Rendering engine interface and the in-process engine state."""

from __future__ import annotations

import logging
from typing import Protocol

from globe_viewer.catalog import models

logger = logging.getLogger(__name__)

# "3D" is the round globe; every other name is a flat globe projection.
PROJECTIONS = (
    "3D",
    "Equirectangular",
    "Mercator",
    "North Polar",
    "South Polar",
    "North UPS",
    "South UPS",
    "North Gnomonic",
    "South Gnomonic",
)
DEFAULT_PROJECTION = "3D"

# Camera range used when a location is visited before the camera has moved.
DEFAULT_RANGE_M = 10_000_000.0


class RenderingEngineProtocol(Protocol):
    """Protocol interface for the globe rendering engine.

    The engine owns the scene graph and the camera. The catalog only tells it
    where layers sit in the drawing order, when to redraw, and where to move
    the camera.
    """

    def insert_layer(self, index: int, layer: models.Layer) -> None: ...

    def remove_layer(self, layer: models.Layer) -> None: ...

    def redraw(self) -> None: ...

    def go_to(self, target: models.Position | models.Location) -> None: ...

    def change_projection(self, name: str) -> None: ...


class InMemoryRenderingEngine(RenderingEngineProtocol):
    """Engine state kept in process for the browser client and for tests.

    Records the drawing order, the number of redraw requests and the last
    camera position. The browser-side globe polls this state and performs the
    actual rendering.
    """

    def __init__(self) -> None:
        """Initialize an empty scene with no camera position."""
        self.layers: list[models.Layer] = []
        self.redraw_count = 0
        self.camera: models.Position | None = None
        self.projection = DEFAULT_PROJECTION

    def insert_layer(self, index: int, layer: models.Layer) -> None:
        """Insert a layer into the drawing order.

        Args:
            index: Position in the drawing order, first is drawn first.
            layer: Layer to insert.
        """
        self.layers.insert(index, layer)

    def remove_layer(self, layer: models.Layer) -> None:
        self.layers = [item for item in self.layers if item is not layer]

    def redraw(self) -> None:
        self.redraw_count += 1

    def go_to(self, target: models.Position | models.Location) -> None:
        """Move the camera to the given position.

        A bare location keeps the current camera altitude.

        Args:
            target: Latitude, longitude and optionally altitude in meters.
        """
        if isinstance(target, models.Position):
            position = target
        else:
            altitude = (
                self.camera.altitude if self.camera is not None
                else DEFAULT_RANGE_M
            )
            position = models.Position(latitude=target.latitude,
                                       longitude=target.longitude,
                                       altitude=altitude)
        logger.debug(
            "Camera moved to lat=%.4f lon=%.4f alt=%.0f",
            position.latitude,
            position.longitude,
            position.altitude,
        )
        self.camera = position

    def change_projection(self, name: str) -> None:
        """Switch between the round globe and the flat projections.

        Raises:
            ValueError: When ``name`` is not one of PROJECTIONS.
        """
        if name not in PROJECTIONS:
            raise ValueError(f"unknown projection: {name!r}")
        if name != self.projection:
            logger.info("Projection changed from %s to %s",
                        self.projection, name)
            self.projection = name
            self.redraw()
