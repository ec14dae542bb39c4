"""Subdistrict label generation for map visualization."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..models.schemas import HeatTier
from .geometry_utils import centroid_of_feature
from .heat_classifier import tier_color


@dataclass
class SubdistrictLabel:
    """A label point to display over a subdistrict."""

    name: str  # Subdistrict name as it appears on the boundary
    lon: float  # Vertex-average centroid longitude
    lat: float  # Vertex-average centroid latitude
    complaint_count: int
    tier: HeatTier

    @property
    def color(self) -> str:
        return tier_color(self.tier)


class LabelGenerator:
    """Collect one label per distinct subdistrict name."""

    def __init__(self):
        self._labels: Dict[str, SubdistrictLabel] = {}

    def reset(self):
        """Forget labels from a previous composition."""
        self._labels = {}

    def add(
        self,
        name: str,
        feature: Dict[str, Any],
        complaint_count: int,
        tier: HeatTier,
    ) -> Optional[SubdistrictLabel]:
        """
        Register a label for ``name`` at the centroid of ``feature``.

        The first part of a multi-part region that yields a centroid wins;
        later parts with the same name are ignored.

        Returns:
            The new label, or None if the name already has one or the
            feature has no usable ring
        """
        if name in self._labels:
            return None

        centroid = centroid_of_feature(feature)
        if centroid is None:
            return None

        label = SubdistrictLabel(
            name=name,
            lon=centroid[0],
            lat=centroid[1],
            complaint_count=complaint_count,
            tier=tier,
        )
        self._labels[name] = label
        return label

    @property
    def labels(self) -> List[SubdistrictLabel]:
        return list(self._labels.values())

    def to_geojson_features(self) -> List[Dict[str, Any]]:
        """Point features flagged with ``isSubDistrictLabel``."""
        return [
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [label.lon, label.lat]},
                "properties": {
                    "sdtname": label.name,
                    "name": label.name,
                    "complaintCount": label.complaint_count,
                    "heatTier": label.tier.value,
                    "_color": label.color,
                    "isSubDistrictLabel": True,
                    "poiType": "Subdistrict",
                    "Type": "Subdistrict",
                },
            }
            for label in self._labels.values()
        ]
