"""Asynchronous retrieval of map service capabilities documents.

This module fetches the three kinds of documents the viewer composes layers
from: ArcGIS REST JSON (``f=json``), WMS GetCapabilities XML and WMTS
capabilities XML. Each fetch performs exactly one HTTP GET. Failed transfers
raise TransportFailure and unreadable documents raise ParseFailure; retrying
is left to the caller.

Example:
    Fetch the WMS capabilities of an ArcGIS map service:
        >>> async with CapabilitiesClient() as client:
        ...     wms = await client.fetch_wms_capabilities(
        ...         "http://host/arcgis/services/Fire/MapServer/WMSServer"
        ...     )
        ...     print(list(wms.contents))
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx
from owslib import wms, wmts
from owslib.etree import ParseError, etree
from owslib.util import ServiceException

if TYPE_CHECKING:
    import types

    from globe_viewer.core import config

logger = logging.getLogger(__name__)

_WMS_CAPABILITIES_PARAMS = {"service": "wms", "request": "getcapabilities"}
_JSON_PARAMS = {"f": "json"}

# Errors OWSLib raises while walking a malformed capabilities tree, e.g. a
# float() of an empty bounding box element.
_OWSLIB_ERRORS = (ServiceException, ParseError, AttributeError, IndexError,
                  KeyError, TypeError, ValueError)


class CapabilitiesError(RuntimeError):
    """Base class for failures while retrieving a capabilities document.

    Attributes:
        url: Address of the document that could not be retrieved.
    """

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


class TransportFailure(CapabilitiesError):
    """The request failed or the server answered with a non-2xx status.

    Attributes:
        status_code: HTTP status, None when no response was received.
    """

    def __init__(
        self,
        url: str,
        status_code: int | None,
        message: str | None = None,
    ) -> None:
        detail = message or f"request failed with status code {status_code}"
        super().__init__(url, detail)
        self.status_code = status_code


class ParseFailure(CapabilitiesError):
    """The document is malformed or does not have the expected shape."""


class CapabilitiesClient:
    """Fetch and parse capabilities documents over HTTP.

    The client wraps a single ``httpx.AsyncClient`` and may be used as an
    async context manager, which closes the underlying connections on exit.

    Args:
        timeout: Request timeout in seconds; None disables it.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
    """

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    async def __aenter__(self) -> CapabilitiesClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch(
        self,
        url: str,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Issue one GET request and return the successful response.

        Args:
            url: Document address.
            params: Query parameters appended to the address.

        Returns:
            Response with a 2xx status.

        Raises:
            TransportFailure: On a network error or a non-2xx status.
        """
        logger.debug("GET %s %s", url, params or "")
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise TransportFailure(url, None, str(exc) or type(exc).__name__) \
                from exc

        if not response.is_success:
            raise TransportFailure(url, response.status_code)
        return response

    async def fetch_json(self, url: str) -> dict[str, Any]:
        """Fetch an ArcGIS REST resource as JSON.

        ArcGIS reports errors such as a missing folder with a 200 status and
        an ``error`` object, which is treated as a malformed document.

        Args:
            url: REST resource address, without the ``f=json`` query.

        Returns:
            Decoded JSON object.

        Raises:
            TransportFailure: On a network error or a non-2xx status.
            ParseFailure: When the body is not a JSON object or is an ArcGIS
                error response.
        """
        response = await self.fetch(url, _JSON_PARAMS)
        try:
            document = response.json()
        except json.JSONDecodeError as exc:
            raise ParseFailure(url, f"invalid JSON: {exc}") from exc

        if not isinstance(document, dict):
            raise ParseFailure(url, "expected a JSON object")
        if "error" in document:
            error = document["error"] or {}
            raise ParseFailure(
                url,
                f"ArcGIS error {error.get('code')}: {error.get('message')}",
            )
        return document

    async def fetch_wms_capabilities(
        self,
        service_address: str,
    ) -> wms.WebMapService:
        """Fetch and parse a WMS GetCapabilities document.

        Any query string already present on the service address is dropped
        and replaced by the GetCapabilities request parameters.

        Args:
            service_address: WMS endpoint address.

        Returns:
            OWSLib WebMapService built from the document.

        Raises:
            TransportFailure: On a network error or a non-2xx status.
            ParseFailure: When the document is not WMS capabilities.
        """
        url = service_address.split("?")[0]
        response = await self.fetch(url, _WMS_CAPABILITIES_PARAMS)
        return parse_wms_capabilities(response.content, url)

    async def fetch_wmts_capabilities(
        self,
        url: str,
    ) -> wmts.WebMapTileService:
        """Fetch and parse a WMTS capabilities document.

        Args:
            url: Address of the capabilities document.

        Returns:
            OWSLib WebMapTileService built from the document.

        Raises:
            TransportFailure: On a network error or a non-2xx status.
            ParseFailure: When the document is not WMTS capabilities.
        """
        response = await self.fetch(url)
        return parse_wmts_capabilities(response.content, url)


def _read_version(content: bytes, url: str) -> str | None:
    """Return the root ``version`` attribute of an XML document."""
    try:
        root = etree.fromstring(content)
    except (ParseError, ValueError) as exc:
        raise ParseFailure(url, f"invalid XML: {exc}") from exc

    if root.tag.endswith("ServiceExceptionReport"):
        raise ParseFailure(url, "server returned a service exception report")
    return root.attrib.get("version")


def parse_wms_capabilities(content: bytes, url: str) -> wms.WebMapService:
    """Parse WMS capabilities with the OWSLib reader matching its version.

    Args:
        content: Raw XML document.
        url: Address the document came from, kept for error messages.

    Returns:
        OWSLib WebMapService for WMS 1.1.1 or 1.3.0.

    Raises:
        ParseFailure: When the document cannot be read as WMS capabilities.
    """
    version = _read_version(content, url) or "1.3.0"
    owslib_version = "1.1.1" if version.startswith("1.1") else "1.3.0"
    try:
        return wms.WebMapService(url, version=owslib_version, xml=content)
    except _OWSLIB_ERRORS as exc:
        raise ParseFailure(url, f"unreadable WMS capabilities: {exc}") \
            from exc


def parse_wmts_capabilities(content: bytes, url: str) -> wmts.WebMapTileService:
    """Parse WMTS 1.0.0 capabilities.

    Args:
        content: Raw XML document.
        url: Address the document came from, kept for error messages.

    Returns:
        OWSLib WebMapTileService.

    Raises:
        ParseFailure: When the document cannot be read as WMTS capabilities.
    """
    _read_version(content, url)
    try:
        return wmts.WebMapTileService(url, xml=content)
    except _OWSLIB_ERRORS as exc:
        raise ParseFailure(url, f"unreadable WMTS capabilities: {exc}") \
            from exc


def get_capabilities_client(settings: config.Settings) -> CapabilitiesClient:
    """Factory function to create a capabilities client.

    Args:
        settings: Application settings providing the request timeout.

    Returns:
        CapabilitiesClient using the configured timeout.
    """
    return CapabilitiesClient(timeout=settings.http_timeout_seconds)
