"""Tests for ArcGIS WMS discovery.

The scenarios drive a ServiceDiscoveryPipeline against a mocked ArcGIS
server: a folder listing, per-service metadata and WMS capabilities. They
check the layers added to the catalog, camera framing of the default layer,
and that failures end only the branch they occur in.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from conftest import (
    ARCGIS_ADDRESS,
    make_blank_extent_wms_capabilities,
    make_wms_capabilities,
)
from globe_viewer.catalog import catalog, models
from globe_viewer.services import capabilities, discovery

BuildTransport = Callable[..., httpx.MockTransport]

FOLDER_PATH = "/arcgis/rest/services/Fire"
SEVERITY_PATH = "/arcgis/rest/services/Fire/Severity/MapServer"
SEVERITY_WMS_PATH = "/arcgis/services/Fire/Severity/MapServer/WMSServer"
PERIMETER_PATH = "/arcgis/rest/services/Fire/Perimeter/MapServer"
PERIMETER_WMS_PATH = "/arcgis/services/Fire/Perimeter/MapServer/WMSServer"

FOLDER_LISTING = {
    "currentVersion": 10.51,
    "folders": [],
    "services": [
        {"name": "Fire/Severity", "type": "MapServer"},
        {"name": "Fire/Points", "type": "FeatureServer"},
    ],
}
WMS_METADATA = {"supportedExtensions": "KmlServer, WMSServer"}


def _context(default_layer: str | None = "Layer A") -> discovery.DiscoveryContext:
    return discovery.DiscoveryContext(
        service_address=ARCGIS_ADDRESS,
        folder="Fire",
        default_layer=default_layer,
    )


async def _run(
    layer_catalog: catalog.LayerCatalog,
    transport: httpx.MockTransport,
    context: discovery.DiscoveryContext,
) -> discovery.DiscoveryRun:
    async with capabilities.CapabilitiesClient(transport=transport) as client:
        pipeline = discovery.ServiceDiscoveryPipeline(layer_catalog, client)
        return await pipeline.run(context)


def test_context_urls() -> None:
    """Test the REST, services and folder addresses."""
    context = discovery.DiscoveryContext(service_address=f"{ARCGIS_ADDRESS}/",
                                         folder="/Fire/")
    assert context.rest_endpoint == f"{ARCGIS_ADDRESS}/rest/services"
    assert context.services_endpoint == f"{ARCGIS_ADDRESS}/services"
    assert context.folder_url == f"{ARCGIS_ADDRESS}/rest/services/Fire"
    root = discovery.DiscoveryContext(service_address=ARCGIS_ADDRESS)
    assert root.folder_url == f"{ARCGIS_ADDRESS}/rest/services"


def test_parse_service_list() -> None:
    """Test that listed services become descriptors."""
    services = discovery.parse_service_list(FOLDER_LISTING, "url")
    assert services == [
        discovery.ServiceDescriptor(name="Fire/Severity", type="MapServer"),
        discovery.ServiceDescriptor(name="Fire/Points", type="FeatureServer"),
    ]


def test_parse_service_list_without_services() -> None:
    """Test that a listing without services is malformed."""
    with pytest.raises(capabilities.ParseFailure):
        discovery.parse_service_list({"folders": ["Fire"]}, "url")


@pytest.mark.parametrize(
    "document",
    [
        {"supportedExtensions": "KmlServer, WMSServer"},
        {"supportedExtensions": ["WMSServer", "KmlServer"]},
    ],
)
def test_parse_supported_extensions(document: dict[str, Any]) -> None:
    """Test string and list forms of supportedExtensions."""
    assert discovery.parse_supported_extensions(document, "url") == frozenset(
        {"KmlServer", "WMSServer"}
    )


def test_parse_supported_extensions_missing() -> None:
    """Test that a service without extensions supports nothing."""
    assert discovery.parse_supported_extensions({}, "url") == frozenset()



@pytest.mark.parametrize("extensions", [5, {"WMSServer": True}])
def test_parse_supported_extensions_wrong_type(extensions: object) -> None:
    """Test that extensions that are neither string nor array are malformed."""
    with pytest.raises(capabilities.ParseFailure, match="supportedExtensions"):
        discovery.parse_supported_extensions(
            {"supportedExtensions": extensions}, "url"
        )


@pytest.mark.asyncio
async def test_fetch_service_list(mock_transport: BuildTransport) -> None:
    """Test listing every service of a folder regardless of type."""
    transport = mock_transport({FOLDER_PATH: FOLDER_LISTING})
    async with capabilities.CapabilitiesClient(transport=transport) as client:
        services = await discovery.fetch_service_list(client, _context())

    assert [(service.name, service.type) for service in services] == [
        ("Fire/Severity", "MapServer"),
        ("Fire/Points", "FeatureServer"),
    ]


@pytest.mark.asyncio
async def test_describe_service(mock_transport: BuildTransport) -> None:
    """Test that service metadata fills in the supported protocols."""
    transport = mock_transport({SEVERITY_PATH: WMS_METADATA})
    service = discovery.ServiceDescriptor(name="Fire/Severity",
                                          type="MapServer")
    async with capabilities.CapabilitiesClient(transport=transport) as client:
        described = await discovery.describe_service(client, _context(),
                                                     service)

    assert described.supports(discovery.WMS_EXTENSION)
    assert described.supported_protocols == frozenset(
        {"KmlServer", "WMSServer"}
    )

@pytest.mark.asyncio
async def test_discovery_adds_wms_layers(
    layer_catalog: catalog.LayerCatalog,
    mock_transport: BuildTransport,
    wms_capabilities_xml: bytes,
) -> None:
    """Test the full run over a folder with one WMS-enabled map service."""
    requests: list[httpx.Request] = []
    transport = mock_transport(
        {
            FOLDER_PATH: FOLDER_LISTING,
            SEVERITY_PATH: WMS_METADATA,
            SEVERITY_WMS_PATH: wms_capabilities_xml,
        },
        requests,
    )

    result = await _run(layer_catalog, transport, _context())

    assert result.state == discovery.DiscoveryState.DONE
    assert result.error is None
    assert [branch.service.name for branch in result.branches] == [
        "Fire/Severity",
    ]
    assert result.branches[0].state == discovery.DiscoveryState.DONE

    overlays = layer_catalog.layers_by_category(models.OVERLAY)
    assert [layer.display_name for layer in overlays] == ["Layer A", "Layer B"]
    assert [layer.enabled for layer in overlays] == [True, False]
    assert all(layer.opacity == 0.75 for layer in overlays)
    assert result.layers == overlays

    camera = layer_catalog.engine.camera
    assert camera is not None
    assert camera.latitude == pytest.approx(37.6)
    assert camera.longitude == pytest.approx(-112.8)

    paths = [request.url.path for request in requests]
    assert "/arcgis/rest/services/Fire/Points/FeatureServer" not in paths


@pytest.mark.asyncio
async def test_discovery_without_default_layer(
    layer_catalog: catalog.LayerCatalog,
    mock_transport: BuildTransport,
    wms_capabilities_xml: bytes,
) -> None:
    """Test that nothing is enabled or framed without a default layer."""
    transport = mock_transport({
        FOLDER_PATH: FOLDER_LISTING,
        SEVERITY_PATH: WMS_METADATA,
        SEVERITY_WMS_PATH: wms_capabilities_xml,
    })

    await _run(layer_catalog, transport, _context(default_layer=None))

    overlays = layer_catalog.layers_by_category(models.OVERLAY)
    assert len(overlays) == 2
    assert not any(layer.enabled for layer in overlays)
    assert layer_catalog.engine.camera is None


@pytest.mark.asyncio
async def test_discovery_folder_failure(
    layer_catalog: catalog.LayerCatalog,
    mock_transport: BuildTransport,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Test that an unreadable folder ends the run without layers."""
    transport = mock_transport({FOLDER_PATH: 500})

    result = await _run(layer_catalog, transport, _context())

    assert result.state == discovery.DiscoveryState.DONE
    assert result.branches == []
    assert result.error is not None
    assert len(layer_catalog) == 0
    assert "Service discovery" in caplog.text


@pytest.mark.asyncio
async def test_discovery_skips_service_without_wms(
    layer_catalog: catalog.LayerCatalog,
    mock_transport: BuildTransport,
) -> None:
    """Test that a map service without WMS is skipped quietly."""
    requests: list[httpx.Request] = []
    transport = mock_transport(
        {
            FOLDER_PATH: FOLDER_LISTING,
            SEVERITY_PATH: {"supportedExtensions": "KmlServer"},
        },
        requests,
    )

    result = await _run(layer_catalog, transport, _context())

    branch = result.branches[0]
    assert branch.state == discovery.DiscoveryState.DONE
    assert branch.error is None
    assert branch.layers == []
    assert len(layer_catalog) == 0
    assert SEVERITY_WMS_PATH not in [request.url.path for request in requests]


@pytest.mark.asyncio
async def test_discovery_branch_failure_is_isolated(
    layer_catalog: catalog.LayerCatalog,
    mock_transport: BuildTransport,
) -> None:
    """Test that one failing service does not stop the others."""
    listing = {
        "services": [
            {"name": "Fire/Severity", "type": "MapServer"},
            {"name": "Fire/Perimeter", "type": "MapServer"},
        ],
    }
    perimeter_xml = make_wms_capabilities(
        [("0", "Perimeter", (-112.9, 37.5, -112.7, 37.7))],
        get_map_url=f"{ARCGIS_ADDRESS}{PERIMETER_WMS_PATH}?",
    )
    transport = mock_transport({
        FOLDER_PATH: listing,
        SEVERITY_PATH: WMS_METADATA,
        SEVERITY_WMS_PATH: 500,
        PERIMETER_PATH: WMS_METADATA,
        PERIMETER_WMS_PATH: perimeter_xml,
    })

    result = await _run(layer_catalog, transport, _context())

    branches = {branch.service.name: branch for branch in result.branches}
    assert branches["Fire/Severity"].error is not None
    assert branches["Fire/Severity"].layers == []
    assert branches["Fire/Perimeter"].error is None
    assert all(
        branch.state == discovery.DiscoveryState.DONE
        for branch in result.branches
    )
    assert [layer.display_name for layer in layer_catalog.layers] == [
        "Perimeter",
    ]
    assert branches["Fire/Severity"].correlation_id != (
        branches["Fire/Perimeter"].correlation_id
    )



@pytest.mark.asyncio
async def test_discovery_malformed_capabilities_is_isolated(
    layer_catalog: catalog.LayerCatalog,
    mock_transport: BuildTransport,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Test that capabilities OWSLib cannot read end only their branch."""
    listing = {
        "services": [
            {"name": "Fire/Severity", "type": "MapServer"},
            {"name": "Fire/Perimeter", "type": "MapServer"},
        ],
    }
    perimeter_xml = make_wms_capabilities(
        [("0", "Perimeter", (-112.9, 37.5, -112.7, 37.7))],
        get_map_url=f"{ARCGIS_ADDRESS}{PERIMETER_WMS_PATH}?",
    )
    transport = mock_transport({
        FOLDER_PATH: listing,
        SEVERITY_PATH: WMS_METADATA,
        SEVERITY_WMS_PATH: make_blank_extent_wms_capabilities(),
        PERIMETER_PATH: WMS_METADATA,
        PERIMETER_WMS_PATH: perimeter_xml,
    })

    result = await _run(layer_catalog, transport, _context())

    assert result.state == discovery.DiscoveryState.DONE
    branches = {branch.service.name: branch for branch in result.branches}
    assert "unreadable WMS capabilities" in branches["Fire/Severity"].error
    assert branches["Fire/Severity"].layers == []
    assert branches["Fire/Perimeter"].error is None
    assert [layer.display_name for layer in layer_catalog.layers] == [
        "Perimeter",
    ]
    assert "Discovery of Fire/Severity failed" in caplog.text


@pytest.mark.asyncio
async def test_discovery_malformed_extensions_is_isolated(
    layer_catalog: catalog.LayerCatalog,
    mock_transport: BuildTransport,
    wms_capabilities_xml: bytes,
) -> None:
    """Test that a numeric supportedExtensions ends only its branch."""
    listing = {
        "services": [
            {"name": "Fire/Severity", "type": "MapServer"},
            {"name": "Fire/Perimeter", "type": "MapServer"},
        ],
    }
    transport = mock_transport({
        FOLDER_PATH: listing,
        SEVERITY_PATH: WMS_METADATA,
        SEVERITY_WMS_PATH: wms_capabilities_xml,
        PERIMETER_PATH: {"supportedExtensions": 5},
    })

    result = await _run(layer_catalog, transport, _context())

    branches = {branch.service.name: branch for branch in result.branches}
    assert "supportedExtensions" in branches["Fire/Perimeter"].error
    assert branches["Fire/Perimeter"].state == discovery.DiscoveryState.DONE
    assert branches["Fire/Severity"].error is None
    assert [layer.display_name for layer in result.layers] == [
        "Layer A", "Layer B",
    ]


@pytest.mark.asyncio
async def test_discovery_unexpected_error_is_isolated(
    layer_catalog: catalog.LayerCatalog,
    mock_transport: BuildTransport,
    wms_capabilities_xml: bytes,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Test that an error outside the capabilities errors is recorded."""
    transport = mock_transport({
        FOLDER_PATH: FOLDER_LISTING,
        SEVERITY_PATH: WMS_METADATA,
        SEVERITY_WMS_PATH: wms_capabilities_xml,
    })

    def build_all_from_wms(*args: Any, **kwargs: Any) -> list[Any]:
        raise IndexError("no layers")

    monkeypatch.setattr(discovery.layer_factory, "build_all_from_wms",
                        build_all_from_wms)

    result = await _run(layer_catalog, transport, _context())

    branch = result.branches[0]
    assert result.state == discovery.DiscoveryState.DONE
    assert branch.state == discovery.DiscoveryState.DONE
    assert branch.error == "IndexError: no layers"
    assert len(layer_catalog) == 0
    assert "failed unexpectedly" in caplog.text

@pytest.mark.asyncio
async def test_discovery_respects_service_types(
    layer_catalog: catalog.LayerCatalog,
    mock_transport: BuildTransport,
) -> None:
    """Test that only the configured service types are probed."""
    transport = mock_transport({FOLDER_PATH: FOLDER_LISTING})
    async with capabilities.CapabilitiesClient(transport=transport) as client:
        pipeline = discovery.ServiceDiscoveryPipeline(
            layer_catalog, client, service_types=["ImageServer"]
        )
        result = await pipeline.run(_context())

    assert result.branches == []
    assert result.error is None


@pytest.mark.asyncio
async def test_launch_tracks_task(
    layer_catalog: catalog.LayerCatalog,
    mock_transport: BuildTransport,
) -> None:
    """Test that launched runs are held until they finish."""
    transport = mock_transport({FOLDER_PATH: {"services": []}})
    tasks: set[asyncio.Task[Any]] = set()
    async with capabilities.CapabilitiesClient(transport=transport) as client:
        pipeline = discovery.ServiceDiscoveryPipeline(layer_catalog, client)
        task = discovery.launch(pipeline, _context(), tasks)
        assert task in tasks
        result = await task

    await asyncio.sleep(0)
    assert result.state == discovery.DiscoveryState.DONE
    assert tasks == set()
