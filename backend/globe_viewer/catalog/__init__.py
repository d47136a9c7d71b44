"""Layer catalog, rendering engine interface and category views.

The catalog owns the drawing order of the globe's layers and notifies
category observers of every change. The rendering engine protocol is the
only way the catalog reaches the renderer.

Example:
    Use the process-wide catalog in a service or FastAPI dependency:
        >>> from globe_viewer.catalog import catalog
        >>> layer_catalog = catalog.get_catalog()
"""
