"""Category views mirroring catalog state for layer lists.

A layer list shows the top-most layer first, which is the reverse of the
catalog's drawing order. CategoryView keeps such a list in sync with one
category by refreshing whenever the category's change signal fires.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from globe_viewer.catalog import catalog, models


class ObservableListProtocol(Protocol):
    """Ordered list primitive provided by the UI binding layer."""

    def push(self, item: models.Layer) -> None: ...

    def remove_all(self) -> None: ...


class ObservableLayerList(ObservableListProtocol):
    """Minimal observable list used by CategoryView and the HTTP API."""

    def __init__(self) -> None:
        self.items: list[models.Layer] = []
        self._subscribers: list[Callable[[list[models.Layer]], None]] = []

    def push(self, item: models.Layer) -> None:
        self.items.append(item)
        self._notify()

    def remove_all(self) -> None:
        self.items.clear()
        self._notify()

    def subscribe(
        self,
        callback: Callable[[list[models.Layer]], None],
    ) -> None:
        """Register a callback receiving a copy of the list after changes."""
        self._subscribers.append(callback)

    def __iter__(self) -> Iterator[models.Layer]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(list(self.items))


def replace_category_view(
    layers: Iterable[models.Layer],
    observable_list: ObservableListProtocol,
) -> None:
    """Clear the list and refill it with the top-most layer first.

    Args:
        layers: Layers in catalog drawing order.
        observable_list: List bound to a layer view.
    """
    observable_list.remove_all()
    for layer in reversed(list(layers)):
        observable_list.push(layer)


class CategoryView:
    """Live, top-most-first list of the layers in one category.

    Attributes:
        category: Category mirrored by this view.
        layers: Observable list refreshed on every category change.
    """

    def __init__(
        self,
        layer_catalog: catalog.LayerCatalog,
        category: str,
    ) -> None:
        """Fill the view and subscribe to the category's change signal.

        Args:
            layer_catalog: Catalog to mirror.
            category: Category to mirror.
        """
        self.category = category
        self.layers = ObservableLayerList()
        self._catalog = layer_catalog
        self.refresh()
        self._unsubscribe = layer_catalog.category_signal(category).subscribe(
            lambda _version: self.refresh()
        )

    def refresh(self) -> None:
        replace_category_view(
            self._catalog.layers_by_category(self.category), self.layers
        )

    def close(self) -> None:
        """Stop following the category's change signal."""
        self._unsubscribe()
