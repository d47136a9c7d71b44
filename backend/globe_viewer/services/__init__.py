"""Remote map service access and layer construction.

Submodules:
    - capabilities: Async fetching and parsing of ArcGIS JSON, WMS and WMTS
      capabilities documents.
    - layer_factory: Layer configurations derived from capabilities.
    - layer_loader: Adding single WMS or WMTS layers by name.
    - discovery: ArcGIS folder discovery of WMS layers.
    - default_layers: Static layers every globe starts with.
    - framing: Camera center and range for a bounding box.
"""
