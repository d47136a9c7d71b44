"""Discovery of WMS layers published by an ArcGIS server.

A discovery run walks an ArcGIS REST catalog folder, probes every map
service for a WMS endpoint and adds each named WMS layer to the catalog as an
overlay. The run fans out into one branch per candidate service:

    IDLE -> FETCHING_FOLDER_CATALOG
         -> (per service) FETCHING_SERVICE_DESCRIPTOR
         -> FETCHING_WMS_CAPABILITIES -> LAYERS_ADDED -> DONE

Branches run as independent asyncio tasks tagged with a correlation id. A
failed fetch ends only its own branch; every branch finishes in DONE. Since
branches complete in network order, the order in which services contribute
layers to the overlay block varies between runs.

Example:
    Discover the layers of one folder and enable the default layer:
        >>> context = DiscoveryContext(
        ...     service_address="http://recover.giscenter.isu.edu/arcgis",
        ...     folder="RECOVER3_BrianheadFire_UT",
        ...     default_layer="Fire Affected Vegetation (dNBR)",
        ... )
        >>> async with capabilities.CapabilitiesClient() as client:
        ...     pipeline = ServiceDiscoveryPipeline(layer_catalog, client)
        ...     result = await pipeline.run(context)
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
import uuid
from typing import TYPE_CHECKING, Any

from globe_viewer.catalog import models
from globe_viewer.services import capabilities, layer_factory

if TYPE_CHECKING:
    from collections.abc import Iterable

    from globe_viewer.catalog import catalog

logger = logging.getLogger(__name__)

WMS_EXTENSION = "WMSServer"
DEFAULT_SERVICE_TYPES = ("MapServer",)
DEFAULT_OPACITY = 0.75


class DiscoveryState(enum.StrEnum):
    IDLE = "idle"
    FETCHING_FOLDER_CATALOG = "fetching_folder_catalog"
    FETCHING_SERVICE_DESCRIPTOR = "fetching_service_descriptor"
    FETCHING_WMS_CAPABILITIES = "fetching_wms_capabilities"
    LAYERS_ADDED = "layers_added"
    DONE = "done"


@dataclasses.dataclass(frozen=True)
class DiscoveryContext:
    """Parameters of one discovery run.

    Attributes:
        service_address: ArcGIS server root, e.g. ``http://host/arcgis``.
        folder: Catalog folder to scan; None scans the root folder.
        default_layer: Display name of the layer to enable and frame.
    """

    service_address: str
    folder: str | None = None
    default_layer: str | None = None

    @property
    def rest_endpoint(self) -> str:
        return f"{self.service_address.rstrip('/')}/rest/services"

    @property
    def services_endpoint(self) -> str:
        return f"{self.service_address.rstrip('/')}/services"

    @property
    def folder_url(self) -> str:
        if self.folder:
            return f"{self.rest_endpoint}/{self.folder.strip('/')}"
        return self.rest_endpoint


@dataclasses.dataclass(frozen=True)
class ServiceDescriptor:
    """A service listed in an ArcGIS catalog folder.

    Attributes:
        name: Service name including its folder, e.g. ``Fire/Severity``.
        type: ArcGIS service type, e.g. ``MapServer`` or ``FeatureServer``.
        supported_protocols: Extensions the service advertises, filled in
            once the service's own metadata has been fetched.
    """

    name: str
    type: str
    supported_protocols: frozenset[str] = frozenset()

    def supports(self, protocol: str) -> bool:
        return protocol in self.supported_protocols


@dataclasses.dataclass
class DiscoveryBranch:
    """Progress of one service through the discovery states."""

    correlation_id: str
    service: ServiceDescriptor
    state: DiscoveryState = DiscoveryState.IDLE
    layers: list[models.Layer] = dataclasses.field(default_factory=list)
    error: str | None = None


@dataclasses.dataclass
class DiscoveryRun:
    """Summary of a finished discovery run.

    Attributes:
        context: Parameters the run was started with.
        state: DONE once the run has finished.
        branches: One entry per probed service.
        error: Why the folder catalog could not be read, if it could not.
    """

    context: DiscoveryContext
    state: DiscoveryState = DiscoveryState.IDLE
    branches: list[DiscoveryBranch] = dataclasses.field(default_factory=list)
    error: str | None = None

    @property
    def layers(self) -> list[models.Layer]:
        return [layer for branch in self.branches for layer in branch.layers]


def parse_service_list(document: dict[str, Any], url: str) -> list[
    ServiceDescriptor
]:
    """Read the ``services`` array of an ArcGIS folder listing.

    Args:
        document: Decoded ``f=json`` folder listing.
        url: Address of the listing, kept for error messages.

    Returns:
        One descriptor per listed service.

    Raises:
        ParseFailure: When the listing has no ``services`` array.
    """
    services = document.get("services")
    if not isinstance(services, list):
        raise capabilities.ParseFailure(url, "missing 'services' array")
    return [
        ServiceDescriptor(name=str(item["name"]), type=str(item["type"]))
        for item in services
        if isinstance(item, dict) and "name" in item and "type" in item
    ]


def parse_supported_extensions(
    document: dict[str, Any],
    url: str,
) -> frozenset[str]:
    """Read ``supportedExtensions`` from ArcGIS service metadata.

    ArcGIS reports the extensions as a comma separated string, e.g.
    ``"KmlServer, WMSServer"``; a JSON array is accepted as well.

    Args:
        document: Decoded ``f=json`` service metadata.
        url: Address of the metadata, kept for error messages.

    Returns:
        The advertised extension names, empty when none are listed.

    Raises:
        ParseFailure: When ``supportedExtensions`` is neither a string nor
            an array.
    """
    extensions = document.get("supportedExtensions") or ""
    if isinstance(extensions, str):
        extensions = extensions.split(",")
    elif not isinstance(extensions, list):
        raise capabilities.ParseFailure(
            url,
            "'supportedExtensions' must be a string or an array, got "
            f"{type(extensions).__name__}",
        )
    return frozenset(
        str(extension).strip() for extension in extensions
        if str(extension).strip()
    )


async def fetch_service_list(
    client: capabilities.CapabilitiesClient,
    context: DiscoveryContext,
) -> list[ServiceDescriptor]:
    """List the services of the context's catalog folder.

    Args:
        client: Client performing the ``f=json`` fetch.
        context: Server and folder to list.

    Returns:
        Every service in the folder, whatever its type.

    Raises:
        CapabilitiesError: When the listing cannot be fetched or read.
    """
    url = context.folder_url
    document = await client.fetch_json(url)
    return parse_service_list(document, url)


async def describe_service(
    client: capabilities.CapabilitiesClient,
    context: DiscoveryContext,
    service: ServiceDescriptor,
) -> ServiceDescriptor:
    """Fetch a service's metadata and fill in its supported protocols.

    Raises:
        CapabilitiesError: When the metadata cannot be fetched or read.
    """
    url = f"{context.rest_endpoint}/{service.name}/{service.type}"
    document = await client.fetch_json(url)
    return dataclasses.replace(
        service,
        supported_protocols=parse_supported_extensions(document, url),
    )


class ServiceDiscoveryPipeline:
    """Add the WMS layers of an ArcGIS server's map services to a catalog.

    Args:
        layer_catalog: Catalog receiving the discovered layers.
        client: Client used for every remote fetch.
        service_types: ArcGIS service types worth probing for WMS.
        opacity: Opacity given to every discovered layer.
    """

    def __init__(
        self,
        layer_catalog: catalog.LayerCatalog,
        client: capabilities.CapabilitiesClient,
        service_types: Iterable[str] = DEFAULT_SERVICE_TYPES,
        opacity: float = DEFAULT_OPACITY,
    ) -> None:
        self.catalog = layer_catalog
        self.client = client
        self.service_types = frozenset(service_types)
        self.opacity = opacity

    async def run(self, context: DiscoveryContext) -> DiscoveryRun:
        """Discover and add every WMS layer reachable from the folder.

        Failures are logged and recorded on the returned summary; an error
        in one service's branch never escapes the run.

        Args:
            context: Server, folder and default layer for this run.

        Returns:
            DiscoveryRun describing each branch's outcome.
        """
        run = DiscoveryRun(context=context,
                           state=DiscoveryState.FETCHING_FOLDER_CATALOG)
        url = context.folder_url
        logger.info("Discovering services at %s", url)
        try:
            services = await fetch_service_list(self.client, context)
        except capabilities.CapabilitiesError as exc:
            logger.error("Service discovery at %s failed: %s", url, exc)
            run.error = str(exc)
            run.state = DiscoveryState.DONE
            return run

        run.branches = [
            DiscoveryBranch(correlation_id=uuid.uuid4().hex[:8],
                            service=service)
            for service in services
            if service.type in self.service_types
        ]
        await asyncio.gather(
            *(self._run_branch(context, branch) for branch in run.branches)
        )

        run.state = DiscoveryState.DONE
        logger.info(
            "Discovery at %s finished: %d services, %d layers",
            url,
            len(run.branches),
            len(run.layers),
        )
        return run

    async def _run_branch(
        self,
        context: DiscoveryContext,
        branch: DiscoveryBranch,
    ) -> None:
        try:
            branch.state = DiscoveryState.FETCHING_SERVICE_DESCRIPTOR
            service = await describe_service(self.client, context,
                                             branch.service)
            if not service.supports(WMS_EXTENSION):
                logger.debug(
                    "[%s] %s/%s has no WMS endpoint, skipped",
                    branch.correlation_id,
                    service.name,
                    service.type,
                )
                return
            branch.service = service

            branch.state = DiscoveryState.FETCHING_WMS_CAPABILITIES
            branch.layers = await self._add_wms_layers(context, branch)
            branch.state = DiscoveryState.LAYERS_ADDED
        except capabilities.CapabilitiesError as exc:
            logger.error("[%s] Discovery of %s failed: %s",
                         branch.correlation_id, branch.service.name, exc)
            branch.error = str(exc)
        except Exception as exc:
            logger.exception("[%s] Discovery of %s failed unexpectedly",
                             branch.correlation_id, branch.service.name)
            branch.error = f"{type(exc).__name__}: {exc}"
        finally:
            branch.state = DiscoveryState.DONE

    async def _add_wms_layers(
        self,
        context: DiscoveryContext,
        branch: DiscoveryBranch,
    ) -> list[models.Layer]:
        service = branch.service
        service_address = (
            f"{context.services_endpoint}/{service.name}/{service.type}/"
            f"{WMS_EXTENSION}"
        )
        wms_capabilities = await self.client.fetch_wms_capabilities(
            service_address
        )

        added = []
        for options in layer_factory.build_all_from_wms(
            wms_capabilities, context.default_layer
        ):
            options.category = models.OVERLAY
            options.opacity = self.opacity
            layer = self.catalog.add(models.Layer(), options)
            added.append(layer)
            if (
                context.default_layer is not None
                and layer.display_name == context.default_layer
            ):
                self.catalog.frame_on(layer)

        logger.info("[%s] Added %d WMS layers from %s",
                    branch.correlation_id, len(added), service.name)
        return added


def launch(
    pipeline: ServiceDiscoveryPipeline,
    context: DiscoveryContext,
    tasks: set[asyncio.Task[Any]],
) -> asyncio.Task[DiscoveryRun]:
    """Start a discovery run in the background.

    The task is kept in ``tasks`` until it finishes so it is not garbage
    collected while running. Nothing cancels it; callers that lose interest
    simply ignore the result.

    Args:
        pipeline: Pipeline to run.
        context: Parameters for the run.
        tasks: Set holding references to running tasks.

    Returns:
        The scheduled task.
    """
    task = asyncio.create_task(pipeline.run(context))
    tasks.add(task)
    task.add_done_callback(tasks.discard)
    return task
