"""Pytest configuration and shared fixtures for the backend test suite.

Exposes the ``globe_viewer`` package for imports and provides canned
capabilities documents plus an ``httpx.MockTransport`` builder so no test
touches the network.
"""

from __future__ import annotations

import json
import pathlib
import sys
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import httpx
import pytest

BACKEND_ROOT = pathlib.Path(__file__).resolve().parent

if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from globe_viewer.catalog import catalog, engine  # noqa: E402

ARCGIS_ADDRESS = "http://gis.example.com/arcgis"

Route = bytes | str | dict[str, Any] | list[Any] | int | httpx.Response


def make_wms_capabilities(
    layers: Sequence[tuple[str, str, tuple[float, float, float, float]]],
    get_map_url: str = "http://gis.example.com/wms?",
) -> bytes:
    """Build a WMS 1.3.0 capabilities document.

    Args:
        layers: (name, title, (west, south, east, north)) per named layer.
        get_map_url: Address advertised for GetMap.

    Returns:
        UTF-8 encoded XML.
    """
    named_layers = "".join(
        f"""
        <Layer queryable="1">
          <Name>{name}</Name>
          <Title>{title}</Title>
          <CRS>EPSG:4326</CRS>
          <EX_GeographicBoundingBox>
            <westBoundLongitude>{west}</westBoundLongitude>
            <eastBoundLongitude>{east}</eastBoundLongitude>
            <southBoundLatitude>{south}</southBoundLatitude>
            <northBoundLatitude>{north}</northBoundLatitude>
          </EX_GeographicBoundingBox>
        </Layer>"""
        for name, title, (west, south, east, north) in layers
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<WMS_Capabilities version="1.3.0"
    xmlns="http://www.opengis.net/wms"
    xmlns:xlink="http://www.w3.org/1999/xlink">
  <Service>
    <Name>WMS</Name>
    <Title>Test map service</Title>
    <OnlineResource xlink:type="simple" xlink:href="{get_map_url}"/>
  </Service>
  <Capability>
    <Request>
      <GetCapabilities>
        <Format>text/xml</Format>
        <DCPType><HTTP><Get>
          <OnlineResource xlink:type="simple" xlink:href="{get_map_url}"/>
        </Get></HTTP></DCPType>
      </GetCapabilities>
      <GetMap>
        <Format>image/png</Format>
        <DCPType><HTTP><Get>
          <OnlineResource xlink:type="simple" xlink:href="{get_map_url}"/>
        </Get></HTTP></DCPType>
      </GetMap>
    </Request>
    <Exception>
      <Format>XML</Format>
    </Exception>
    <Layer>
      <Title>Layers</Title>
      <CRS>EPSG:4326</CRS>{named_layers}
    </Layer>
  </Capability>
</WMS_Capabilities>
""".encode()


def make_wms_111_capabilities(
    layers: Sequence[tuple[str, str, tuple[float, float, float, float]]],
    get_map_url: str = "http://gis.example.com/wms?",
) -> bytes:
    """Build a WMS 1.1.1 capabilities document.

    Extents are written as ``LatLonBoundingBox`` attributes, the way 1.1.1
    servers advertise them.

    Args:
        layers: (name, title, (west, south, east, north)) per named layer.
        get_map_url: Address advertised for GetMap.

    Returns:
        UTF-8 encoded XML.
    """
    named_layers = "".join(
        f"""
        <Layer queryable="1">
          <Name>{name}</Name>
          <Title>{title}</Title>
          <SRS>EPSG:4326</SRS>
          <LatLonBoundingBox minx="{west}" miny="{south}" maxx="{east}"
              maxy="{north}"/>
        </Layer>"""
        for name, title, (west, south, east, north) in layers
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<WMT_MS_Capabilities version="1.1.1"
    xmlns:xlink="http://www.w3.org/1999/xlink">
  <Service>
    <Name>OGC:WMS</Name>
    <Title>Test map service</Title>
    <OnlineResource xlink:type="simple" xlink:href="{get_map_url}"/>
  </Service>
  <Capability>
    <Request>
      <GetCapabilities>
        <Format>application/vnd.ogc.wms_xml</Format>
        <DCPType><HTTP><Get>
          <OnlineResource xlink:type="simple" xlink:href="{get_map_url}"/>
        </Get></HTTP></DCPType>
      </GetCapabilities>
      <GetMap>
        <Format>image/png</Format>
        <DCPType><HTTP><Get>
          <OnlineResource xlink:type="simple" xlink:href="{get_map_url}"/>
        </Get></HTTP></DCPType>
      </GetMap>
    </Request>
    <Exception>
      <Format>application/vnd.ogc.se_xml</Format>
    </Exception>
    <Layer>
      <Title>Layers</Title>
      <SRS>EPSG:4326</SRS>{named_layers}
    </Layer>
  </Capability>
</WMT_MS_Capabilities>
""".encode()


def make_blank_extent_wms_capabilities(
    get_map_url: str = "http://gis.example.com/wms?",
) -> bytes:
    """Build WMS 1.3.0 capabilities whose only layer has an empty east bound."""
    return make_wms_capabilities(
        [("X", "Layer X", (-113.0, 37.4, -112.6, 37.8))],
        get_map_url=get_map_url,
    ).replace(
        b"<eastBoundLongitude>-112.6</eastBoundLongitude>",
        b"<eastBoundLongitude/>",
    )


SERVICE_EXCEPTION_REPORT = b"""<?xml version="1.0" encoding="UTF-8"?>
<ServiceExceptionReport version="1.3.0"
    xmlns="http://www.opengis.net/ogc">
  <ServiceException code="LayerNotDefined">Service not started</ServiceException>
</ServiceExceptionReport>
"""


def _response(route: Route) -> httpx.Response:
    if isinstance(route, httpx.Response):
        return route
    if isinstance(route, int):
        return httpx.Response(status_code=route)
    if isinstance(route, dict | list):
        return httpx.Response(status_code=200, content=json.dumps(route))
    if isinstance(route, str):
        route = route.encode()
    return httpx.Response(status_code=200, content=route)


@pytest.fixture
def wms_capabilities_xml() -> bytes:
    """Capabilities with two named layers, "A" and "B"."""
    return make_wms_capabilities(
        [
            ("A", "Layer A", (-113.0, 37.4, -112.6, 37.8)),
            ("B", "Layer B", (-114.0, 36.0, -110.0, 40.0)),
        ],
        get_map_url=f"{ARCGIS_ADDRESS}/services/Fire/Severity/MapServer/"
        "WMSServer?",
    )


@pytest.fixture
def layer_catalog() -> catalog.LayerCatalog:
    """Empty catalog bound to a fresh in-memory rendering engine."""
    return catalog.LayerCatalog(engine.InMemoryRenderingEngine())


@pytest.fixture
def mock_transport() -> Callable[..., httpx.MockTransport]:
    """Return a builder of MockTransports answering by URL path.

    Paths absent from the routes answer 404. Every request is recorded in
    the ``requests`` list passed to the builder, when given.
    """

    def build(
        routes: Mapping[str, Route],
        requests: list[httpx.Request] | None = None,
    ) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            if requests is not None:
                requests.append(request)
            route = routes.get(request.url.path)
            if route is None:
                return httpx.Response(status_code=404)
            return _response(route)

        return httpx.MockTransport(handler)

    return build
