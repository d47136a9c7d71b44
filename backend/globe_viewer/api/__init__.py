"""API router subpackage for the globe viewer backend.

Each module exposes its own APIRouter for composition in the application's
main FastAPI instance.

Submodules:
    - layers: Listing, toggling, framing and adding catalog layers.
    - discovery: Starting ArcGIS WMS discovery runs.
    - globe: Camera position and provider credential status.
"""
