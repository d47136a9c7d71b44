"""Ordered, categorized layer catalog.

The catalog keeps one contiguous block of layers per category. Blocks appear
in the order their categories were first used, and layers inside a block keep
their insertion order, so the flattened sequence is the drawing order handed
to the rendering engine (first drawn first, top-most last).

All mutators run to completion synchronously. Discovery tasks sharing the
catalog on one event loop therefore never observe a half-applied change.

Example:
    Build a small catalog and toggle the base layers:
        >>> from globe_viewer.catalog import catalog, engine, models
        >>> layers = catalog.LayerCatalog(engine.InMemoryRenderingEngine())
        >>> landsat = layers.add(models.Layer(display_name="Landsat"),
        ...                      models.LayerOptions(category="base"))
        >>> bing = layers.add(models.Layer(display_name="Bing"),
        ...                   models.LayerOptions(category="base",
        ...                                       enabled=False))
        >>> layers.toggle(bing)
        >>> (landsat.enabled, bing.enabled)
        (False, True)
"""

from __future__ import annotations

import functools
import itertools
import logging
from typing import TYPE_CHECKING

from globe_viewer.catalog import engine as catalog_engine
from globe_viewer.catalog import models, signals
from globe_viewer.core import config
from globe_viewer.services import default_layers, framing

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


class LayerCatalog:
    """Ordered collection of layers grouped into category blocks.

    Attributes:
        engine: Rendering engine that mirrors the drawing order and camera.
    """

    def __init__(
        self,
        engine: catalog_engine.RenderingEngineProtocol,
    ) -> None:
        """Initialize an empty catalog bound to a rendering engine.

        Args:
            engine: Rendering engine receiving order, redraw and camera calls.
        """
        self.engine = engine
        self._blocks: dict[str, list[models.Layer]] = {}
        self._signals: dict[str, signals.CategoryChangeSignal] = {}
        self._ids: Iterator[int] = itertools.count(1)

    @property
    def layers(self) -> list[models.Layer]:
        """Return every layer in drawing order as a new list."""
        return [layer for block in self._blocks.values() for layer in block]

    @property
    def categories(self) -> list[str]:
        """Return the categories in block order."""
        return list(self._blocks)

    def __len__(self) -> int:
        return sum(len(block) for block in self._blocks.values())

    def add(
        self,
        layer: models.Layer,
        options: models.LayerOptions | None = None,
    ) -> models.Layer:
        """Add a layer at the end of its category block.

        Options are merged onto the layer first; a layer still lacking a
        category becomes an overlay. A category seen for the first time
        starts a new block at the end of the drawing order.

        Args:
            layer: Layer to add.
            options: Settings that overwrite the layer's own values.

        Returns:
            The added layer with its id assigned.
        """
        if options is not None:
            options.apply_to(layer)
        if layer.category is None:
            layer.category = models.DEFAULT_CATEGORY

        layer.id = next(self._ids)

        block = self._blocks.setdefault(layer.category, [])
        block.append(layer)
        self.engine.insert_layer(self._end_of_block(layer.category) - 1,
                                 layer)

        logger.info(
            "Added layer %d %r to category %r",
            layer.id,
            layer.display_name,
            layer.category,
        )
        self._signal_change(layer.category)
        return layer

    def remove(self, layer: models.Layer) -> None:
        """Remove a layer from the catalog and the rendering engine.

        Args:
            layer: Layer previously returned by ``add``.
        """
        category = layer.category or models.DEFAULT_CATEGORY
        block = self._blocks.get(category, [])
        remaining = [item for item in block if item is not layer]
        if len(remaining) == len(block):
            logger.warning("Layer %r is not in the catalog", layer.display_name)
            return
        if remaining:
            self._blocks[category] = remaining
        else:
            del self._blocks[category]
        self.engine.remove_layer(layer)
        self.engine.redraw()
        self._signal_change(category)

    def layers_by_category(self, category: str) -> list[models.Layer]:
        """Return the layers of one category in drawing order.

        Args:
            category: E.g. "base", "overlay" or "setting".

        Returns:
            A new list; empty for an unknown category.
        """
        return list(self._blocks.get(category, []))

    def get(self, layer_id: int) -> models.Layer | None:
        """Return the layer with the given id, or None."""
        return next(
            (layer for layer in self.layers if layer.id == layer_id), None
        )

    def find_by_name(self, display_name: str) -> models.Layer | None:
        """Return the first layer in drawing order with the given name."""
        return next(
            (
                layer
                for layer in self.layers
                if layer.display_name == display_name
            ),
            None,
        )

    def toggle(self, layer: models.Layer) -> None:
        """Flip a layer's enabled state.

        Only one base layer may be enabled at a time, so toggling a base
        layer first disables every other base layer.

        Args:
            layer: Catalog layer to toggle.
        """
        if layer.category == models.BASE:
            for item in self._blocks.get(models.BASE, []):
                if item is not layer:
                    item.enabled = False

        layer.enabled = not layer.enabled
        self.engine.redraw()
        self._signal_change(layer.category or models.DEFAULT_CATEGORY)

    def category_signal(self, category: str) -> signals.CategoryChangeSignal:
        """Return the change signal for a category, creating it if needed."""
        if category not in self._signals:
            self._signals[category] = signals.CategoryChangeSignal(category)
        return self._signals[category]

    def frame_on(self, layer: models.Layer) -> models.Position | None:
        """Move the camera so the layer's bounding box fills the view.

        Args:
            layer: Layer to frame.

        Returns:
            The camera position requested from the engine, or None when the
            camera was left where it is.
        """
        if layer.bbox is None:
            logger.error(
                "Cannot frame layer %r: no bounding box", layer.display_name
            )
            return None

        if layer.bbox.covers_globe():
            logger.info(
                "Layer %r covers the full globe, camera not moved",
                layer.display_name,
            )
            return None

        framed = framing.compute_center_and_range(layer.bbox)
        if framed is None:
            logger.info(
                "Layer %r spans a hemisphere or more, camera not moved",
                layer.display_name,
            )
            return None

        center, range_m = framed
        position = models.Position(
            latitude=center.latitude,
            longitude=center.longitude,
            altitude=range_m,
        )
        self.engine.go_to(position)
        return position

    def _end_of_block(self, category: str) -> int:
        """Return the flat index just past the category's block."""
        end = 0
        for name, block in self._blocks.items():
            end += len(block)
            if name == category:
                break
        return end

    def _signal_change(self, category: str) -> None:
        self.category_signal(category).bump()


@functools.lru_cache
def get_rendering_engine() -> catalog_engine.InMemoryRenderingEngine:
    """Return the process-wide engine, set to the configured projection."""
    engine = catalog_engine.InMemoryRenderingEngine()
    engine.change_projection(config.get_settings().projection)
    return engine


@functools.lru_cache
def get_catalog() -> LayerCatalog:
    """Return the process-wide catalog populated with the default layers.

    The catalog is created on first use and shared by the API routes and the
    discovery tasks for the lifetime of the process.

    Returns:
        LayerCatalog bound to the in-memory rendering engine.
    """
    layer_catalog = LayerCatalog(get_rendering_engine())
    default_layers.populate_default_layers(
        layer_catalog, day_night=config.get_settings().day_night_lighting
    )
    return layer_catalog
