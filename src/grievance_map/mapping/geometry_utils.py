"""Geometry processing utilities for layer composition.

All coordinates are GeoJSON order, ``[lng, lat]``, treated as planar.
"""

import math
from numbers import Real
from typing import Any, Dict, List, Optional, Sequence, Tuple


class InvalidGeometryError(ValueError):
    """Raised when a geometry cannot be used for rendering or containment."""


def _is_position(coord: Any) -> bool:
    if not isinstance(coord, (list, tuple)) or len(coord) < 2:
        return False
    x, y = coord[0], coord[1]
    if isinstance(x, bool) or isinstance(y, bool):
        return False
    return (
        isinstance(x, Real)
        and isinstance(y, Real)
        and math.isfinite(x)
        and math.isfinite(y)
    )


def _check_ring(ring: Any) -> None:
    if not isinstance(ring, (list, tuple)) or len(ring) < 4:
        raise InvalidGeometryError("ring needs at least 4 positions")
    if not all(_is_position(c) for c in ring):
        raise InvalidGeometryError("ring has missing or non-numeric coordinates")
    if list(ring[0][:2]) != list(ring[-1][:2]):
        raise InvalidGeometryError("ring is not closed")


def ensure_valid_geometry(geometry: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate that a geometry object is usable.

    Args:
        geometry: GeoJSON geometry object (Point, Polygon or MultiPolygon)

    Returns:
        The geometry, unchanged

    Raises:
        InvalidGeometryError: missing/empty coordinates, unclosed or short
            rings, or an unsupported geometry type
    """
    if not geometry:
        raise InvalidGeometryError("missing geometry")

    geom_type = geometry.get("type")
    coords = geometry.get("coordinates")

    if not geom_type or not coords:
        raise InvalidGeometryError("missing coordinates")

    if geom_type == "Point":
        if not _is_position(coords):
            raise InvalidGeometryError("point has missing or non-numeric coordinates")
    elif geom_type == "Polygon":
        for ring in coords:
            _check_ring(ring)
    elif geom_type == "MultiPolygon":
        for polygon in coords:
            if not polygon:
                raise InvalidGeometryError("empty polygon in MultiPolygon")
            for ring in polygon:
                _check_ring(ring)
    else:
        raise InvalidGeometryError(f"unsupported geometry type: {geom_type}")

    return geometry


def validate_geometry(geometry: Optional[Dict[str, Any]]) -> bool:
    """True if the geometry passes :func:`ensure_valid_geometry`."""
    try:
        ensure_valid_geometry(geometry)
    except InvalidGeometryError:
        return False
    return True


def outer_rings(geometry: Optional[Dict[str, Any]]) -> List[Sequence]:
    """Outer ring of a Polygon, or of every part of a MultiPolygon."""
    if not geometry:
        return []
    geom_type = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if geom_type == "Polygon":
        return [coords[0]] if coords else []
    if geom_type == "MultiPolygon":
        return [polygon[0] for polygon in coords if polygon]
    return []


def point_in_ring(lng: float, lat: float, ring: Sequence) -> bool:
    """
    Ray-casting containment test against a single ring.

    Points exactly on an edge fall on whichever side the crossing
    arithmetic puts them; no special handling.
    """
    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lng < x_cross:
                inside = not inside
        j = i
    return inside


def centroid_of_ring(ring: Optional[Sequence]) -> Optional[Tuple[float, float]]:
    """
    Label point for a ring: the plain mean of every listed vertex.

    The duplicated closing vertex is counted like any other, so this is
    not the area-weighted centroid. Non-position entries are ignored.

    Returns:
        (lng, lat) tuple, or None when the ring has no usable vertex
    """
    if not ring:
        return None

    sum_lon = 0.0
    sum_lat = 0.0
    n = 0
    for coord in ring:
        if _is_position(coord):
            sum_lon += coord[0]
            sum_lat += coord[1]
            n += 1

    if n == 0:
        return None
    return (sum_lon / n, sum_lat / n)


def centroid_of_feature(feature: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    """
    Label point for a Polygon / MultiPolygon feature (or bare geometry).

    Polygon uses its outer ring; MultiPolygon uses the outer ring of its
    first part only.
    """
    geometry = feature["geometry"] if "geometry" in feature else feature
    if not geometry:
        return None
    geom_type = geometry.get("type")
    coords = geometry.get("coordinates") or []

    if geom_type == "Polygon":
        return centroid_of_ring(coords[0]) if coords else None
    if geom_type == "MultiPolygon":
        if coords and coords[0]:
            return centroid_of_ring(coords[0][0])
        return None
    return None


def create_circle_polygon(
    center_lon: float,
    center_lat: float,
    radius_deg: float,
    num_points: int = 32,
    precision: int = 6,
) -> List[List[float]]:
    """
    Create a circle polygon as a closed coordinate ring.

    The radius is in plain degrees on both axes, so the ring is slightly
    oval away from the equator.

    Args:
        center_lon: Center longitude (degrees)
        center_lat: Center latitude (degrees)
        radius_deg: Circle radius in degrees
        num_points: Number of vertices (excluding closure point)
        precision: Decimal places kept on each vertex

    Returns:
        List of [lon, lat] pairs forming a closed ring (first == last)
    """
    coords = []
    for i in range(num_points):
        angle = 2 * math.pi * i / num_points
        coords.append([
            round(center_lon + radius_deg * math.cos(angle), precision),
            round(center_lat + radius_deg * math.sin(angle), precision),
        ])

    # Close the ring
    coords.append(list(coords[0]))
    return coords


def get_bounding_box(
    geometries: List[Dict[str, Any]],
) -> Optional[Tuple[float, float, float, float]]:
    """
    Calculate bounding box for list of geometries.

    Returns:
        (min_lon, min_lat, max_lon, max_lat), or None when nothing has
        coordinates
    """
    min_lon = float("inf")
    min_lat = float("inf")
    max_lon = float("-inf")
    max_lat = float("-inf")

    def update_bounds(coords):
        nonlocal min_lon, min_lat, max_lon, max_lat
        if _is_position(coords):
            coords = [coords]
        for coord in coords:
            if _is_position(coord):
                lon, lat = coord[0], coord[1]
                min_lon = min(min_lon, lon)
                min_lat = min(min_lat, lat)
                max_lon = max(max_lon, lon)
                max_lat = max(max_lat, lat)
            elif isinstance(coord, (list, tuple)):
                update_bounds(coord)

    for geom in geometries:
        if geom:
            update_bounds(geom.get("coordinates") or [])

    if min_lon == float("inf"):
        return None

    return (min_lon, min_lat, max_lon, max_lat)
