"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings include
the ArcGIS server scanned for WMS layers, the default layer to enable and
frame, the WMTS base map source, the initial projection, map provider API
keys, HTTP behavior, CORS origins and the log level.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from globe_viewer.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.arcgis_service_address)

    Environment variables can override defaults:
        >>> ARCGIS_FOLDER=RECOVER3_BrianheadFire_UT
        >>> DEFAULT_LAYER="Fire Affected Vegetation (dNBR)"
        >>> BING_API_KEY=your-key
"""

from __future__ import annotations

import enum
import functools

import pydantic
import pydantic_settings

from globe_viewer.catalog import engine


class CredentialState(enum.StrEnum):
    """Whether an API key was supplied for a map provider.

    A missing key does not disable the provider; requests fall back to a
    rate-limited developer key.
    """

    CONFIGURED = "configured"
    MISSING = "missing"


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    All settings can be overridden via environment variables or .env file.

    Attributes:
        arcgis_service_address: Root of the ArcGIS server, e.g.
            ``http://hostname/arcgis``.
        arcgis_folder: Catalog folder to scan; None scans the root folder.
        default_layer: Display name of the discovered layer to enable and
            frame; None enables nothing.
        discover_on_startup: Load remote layers when the app starts.
        discovery_service_types: ArcGIS service types probed for WMS.
        discovery_opacity: Opacity applied to every discovered layer.
        usgs_topo_capabilities_url: WMTS capabilities of the USGS Topo base
            map loaded on startup.
        projection: Projection the globe starts in, one of
            ``engine.PROJECTIONS``.
        day_night_lighting: Light the atmosphere for the current time.
        bing_api_key: Bing Maps key for the Bing base layers.
        http_timeout_seconds: Timeout for capabilities requests; None waits
            indefinitely.
        allow_origins: List of allowed CORS origins (["*"] allows all).
        log_level: Level name for the ``globe_viewer`` logger.

    Example:
        Create settings with custom values:
            >>> settings = Settings(
            ...     arcgis_folder="RECOVER3_BrianheadFire_UT",
            ...     default_layer="Fire Affected Vegetation (dNBR)",
            ...     discover_on_startup=False,
            ... )
    """

    arcgis_service_address: pydantic.AnyHttpUrl | str = (
        "http://recover.giscenter.isu.edu/arcgis"
    )
    arcgis_folder: str | None = None
    default_layer: str | None = None
    discover_on_startup: bool = True
    discovery_service_types: list[str] = ["MapServer"]
    discovery_opacity: float = 0.75
    usgs_topo_capabilities_url: pydantic.AnyHttpUrl | str = (
        "https://basemap.nationalmap.gov/arcgis/rest/services/USGSTopo/"
        "MapServer/WMTS/1.0.0/WMTSCapabilities.xml"
    )
    projection: str = engine.DEFAULT_PROJECTION
    day_night_lighting: bool = False
    bing_api_key: str = ""
    http_timeout_seconds: float | None = None
    allow_origins: list[str] = ["*"]
    log_level: str = "INFO"

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @pydantic.field_validator("projection")
    @classmethod
    def _known_projection(cls, value: str) -> str:
        if value not in engine.PROJECTIONS:
            raise ValueError(
                f"projection must be one of {', '.join(engine.PROJECTIONS)}"
            )
        return value

    def credential_status(self) -> dict[str, CredentialState]:
        """Report which provider API keys are configured.

        Returns:
            Mapping of provider name to its credential state.
        """
        return {
            "bing": (
                CredentialState.CONFIGURED
                if self.bing_api_key
                else CredentialState.MISSING
            ),
        }


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the application. Subsequent calls return the same
    cached instance.

    Returns:
        Settings instance with all configuration values populated.

    Example:
        The settings are cached, so multiple calls return the same instance:
            >>> settings1 = get_settings()
            >>> settings2 = get_settings()
            >>> assert settings1 is settings2  # Same instance
    """
    return Settings()
