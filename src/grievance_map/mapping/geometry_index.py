"""Subdistrict boundary index with point-in-polygon lookup.

Boundary counts are small (tens of polygons, hundreds of vertices each),
so lookups are linear scans; there is no spatial tree.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..models.schemas import AdministrativeBoundary
from ..utils.identity import code_key, normalize
from .geometry_utils import (
    InvalidGeometryError,
    ensure_valid_geometry,
    outer_rings,
    point_in_ring,
)

logger = logging.getLogger(__name__)

BoundaryLike = Union[AdministrativeBoundary, Dict[str, Any]]


def _geometry_of(feature: BoundaryLike) -> Optional[Dict[str, Any]]:
    if isinstance(feature, AdministrativeBoundary):
        return feature.geometry
    return feature.get("geometry")


class GeometryIndex:
    """Boundary polygons indexed by normalized name and by code."""

    def __init__(self, boundaries: Optional[Iterable[AdministrativeBoundary]] = None):
        self._boundaries: List[AdministrativeBoundary] = []
        self._by_name: Dict[str, List[AdministrativeBoundary]] = {}
        self._by_code: Dict[str, List[AdministrativeBoundary]] = {}
        self.skipped = 0
        if boundaries is not None:
            self.load(boundaries)

    @classmethod
    def from_geojson(cls, feature_collection: Dict[str, Any]) -> "GeometryIndex":
        """Build an index from a GeoJSON FeatureCollection of subdistricts."""
        boundaries = []
        for feature in feature_collection.get("features") or []:
            boundary = AdministrativeBoundary.from_feature(feature)
            if boundary is None:
                logger.warning("Skipping boundary feature without a name")
                continue
            boundaries.append(boundary)
        return cls(boundaries)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "GeometryIndex":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_geojson(json.load(f))

    def load(self, boundaries: Iterable[AdministrativeBoundary]) -> None:
        """Index boundaries; malformed geometry is logged and left out."""
        for boundary in boundaries:
            try:
                ensure_valid_geometry(boundary.geometry)
            except InvalidGeometryError as e:
                self.skipped += 1
                logger.warning(f"Skipping boundary '{boundary.name}': {e}")
                continue

            self._boundaries.append(boundary)
            self._by_name.setdefault(normalize(boundary.name), []).append(boundary)
            if boundary.code:
                self._by_code.setdefault(code_key(boundary.code), []).append(boundary)

        logger.info(
            f"Indexed {len(self._boundaries)} boundary parts "
            f"({len(self._by_name)} names, {self.skipped} skipped)"
        )

    @property
    def boundaries(self) -> List[AdministrativeBoundary]:
        return list(self._boundaries)

    def names(self) -> List[str]:
        """Distinct boundary names in load order."""
        seen = set()
        names = []
        for boundary in self._boundaries:
            if boundary.name not in seen:
                seen.add(boundary.name)
                names.append(boundary.name)
        return names

    def parts(self, name: Optional[str]) -> List[AdministrativeBoundary]:
        """Every loaded part carrying this name (multi-part regions)."""
        return list(self._by_name.get(normalize(name), []))

    def by_code(self, code: Any) -> List[AdministrativeBoundary]:
        return list(self._by_code.get(code_key(code), []))

    def __len__(self) -> int:
        return len(self._boundaries)

    @staticmethod
    def point_in_polygon(point: Sequence[float], feature: BoundaryLike) -> bool:
        """
        Whether ``point`` ([lng, lat]) lies inside the feature's outer ring.

        MultiPolygon: inside if inside any part's outer ring. Holes are
        ignored. Malformed geometry contains nothing.
        """
        geometry = _geometry_of(feature)
        try:
            ensure_valid_geometry(geometry)
        except InvalidGeometryError:
            return False
        if geometry.get("type") == "Point":
            return False

        lng, lat = point[0], point[1]
        return any(point_in_ring(lng, lat, ring) for ring in outer_rings(geometry))

    def find_enclosing(self, point: Sequence[float]) -> Optional[AdministrativeBoundary]:
        """First loaded boundary containing the point, if any."""
        for boundary in self._boundaries:
            if self.point_in_polygon(point, boundary):
                return boundary
        return None

    def contains(self, name: Optional[str], point: Sequence[float]) -> bool:
        """True if any part named ``name`` contains the point."""
        return any(self.point_in_polygon(point, part) for part in self.parts(name))
