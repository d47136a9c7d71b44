"""Camera framing for layer bounding boxes.

The camera is centered on the midpoint of the bounding box and raised to an
altitude equal to the approximate arc length of the box diagonal on a
spherical Earth. Boxes crossing the antimeridian are not special-cased, so
their midpoint lands on the far side of the globe.

Example:
    Frame a 20 by 20 degree box around the origin:
        >>> from globe_viewer.catalog.models import BoundingBox
        >>> from globe_viewer.services.framing import compute_center_and_range
        >>> center, range_m = compute_center_and_range(
        ...     BoundingBox(min_lat=-10, max_lat=10, min_lon=-10, max_lon=10)
        ... )
        >>> (center.latitude, center.longitude)
        (0.0, 0.0)
"""

from __future__ import annotations

import math

from globe_viewer.catalog import models

EARTH_RADIUS_M = 6_371_000.0
HEMISPHERE_DEG = 180.0


def find_center(bbox: models.BoundingBox) -> models.Location:
    """Return the midpoint of the latitude and longitude ranges."""
    return models.Location(
        latitude=(bbox.max_lat + bbox.min_lat) / 2,
        longitude=(bbox.max_lon + bbox.min_lon) / 2,
    )


def diagonal_angle(bbox: models.BoundingBox) -> float:
    """Return the box diagonal in degrees using a flat Pythagorean estimate."""
    lat_span = bbox.max_lat - bbox.min_lat
    lon_span = bbox.max_lon - bbox.min_lon
    return math.sqrt(lat_span**2 + lon_span**2)


def compute_range(bbox: models.BoundingBox) -> float | None:
    """Approximate the arc length of the box diagonal in meters.

    Args:
        bbox: Layer extent in degrees.

    Returns:
        Arc length in meters, or None when the diagonal spans a hemisphere
        or more and the camera should keep its current altitude.
    """
    angle = diagonal_angle(bbox)
    if angle >= HEMISPHERE_DEG:
        return None
    return (angle / 360.0) * (2 * math.pi * EARTH_RADIUS_M)


def compute_center_and_range(
    bbox: models.BoundingBox,
) -> tuple[models.Location, float] | None:
    """Compute the camera center and range that frame a bounding box.

    Args:
        bbox: Layer extent in degrees.

    Returns:
        Tuple of (center, range in meters), or None when the box is too
        large to frame.
    """
    range_m = compute_range(bbox)
    if range_m is None:
        return None
    return find_center(bbox), range_m
