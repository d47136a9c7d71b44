"""Backend for a browser globe viewer composed from remote map services.

The service keeps the layer catalog of a 3D globe: an ordered, categorized
list of layers that the browser renders. Static background, base and setting
layers are added at startup; remote layers come from WMS and WMTS
capabilities documents, including every WMS layer an ArcGIS server publishes
in a catalog folder.

- Layers are grouped into contiguous category blocks in drawing order
- Per-category change signals let UI lists refresh without polling the whole
  catalog
- ArcGIS discovery fans out per service as concurrent asyncio tasks
- Camera framing computes a center and viewing range from a layer's extent

See module sub-docstrings for details on architecture and usage.
"""
