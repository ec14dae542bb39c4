# src/grievance_map/models/schemas.py
import copy
import math
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

LayerTag = Literal["subdistrict", "village", "town", "ward", "complaint", "poi"]
PointLayer = Literal["village", "town", "ward"]

POINT_LAYERS: tuple = ("village", "town", "ward")
DEFAULT_LAYERS: FrozenSet[str] = frozenset({"subdistrict", "complaint"})


class HeatTier(str, Enum):
    """Discrete complaint-density bucket for a boundary."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


def _code_to_str(v):
    """LGD / ward codes arrive as ints or strings; keep them as strings."""
    if v is None or v == "":
        return None
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return str(v).strip() or None


def _coordinate_or_none(v):
    """Drop non-numeric and NaN coordinates instead of failing the record."""
    if v is None or v == "":
        return None
    try:
        value = float(v)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _text_or_none(v):
    """Names and titles sometimes arrive as numbers; keep scalars as text."""
    if v is None or v == "":
        return None
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


class GeographicFeature(BaseModel):
    """A GeoJSON feature tagged with the layer it belongs to."""

    geometry: Dict[str, Any]
    properties: Dict[str, Any] = {}
    layer_tag: LayerTag

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": copy.deepcopy(self.geometry),
            "properties": dict(self.properties),
        }


class AdministrativeBoundary(BaseModel):
    """Subdistrict polygon; reference data loaded once."""

    model_config = ConfigDict(frozen=True)

    name: str  # primary join key
    code: Optional[str] = None
    geometry: Dict[str, Any]
    properties: Dict[str, Any] = {}

    normalize_code = field_validator("code", mode="before")(_code_to_str)

    @classmethod
    def from_feature(cls, feature: Dict[str, Any]) -> Optional["AdministrativeBoundary"]:
        """Build from a GeoJSON feature; returns None when it has no name."""
        props = feature.get("properties") or {}
        name = props.get("name") or props.get("sdtname") or props.get("Name")
        if not name:
            return None
        code = props.get("code") or props.get("subdt_lgd") or props.get("lgdCode")
        return cls(
            name=str(name),
            code=code,
            geometry=feature.get("geometry") or {},
            properties=props,
        )

    def to_feature(self) -> Dict[str, Any]:
        return GeographicFeature(
            geometry=self.geometry, properties=self.properties, layer_tag="subdistrict"
        ).to_geojson()


class SettlementPoint(BaseModel):
    """A village, town or ward; coordinates are filled in by geocoding."""

    entity_type: PointLayer
    name: str
    code: Optional[str] = None
    subdistrict_name: Optional[str] = None
    district_name: Optional[str] = None
    state_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    population: int = 0
    geocoded: bool = False

    normalize_code = field_validator("code", mode="before")(_code_to_str)
    normalize_coords = field_validator("latitude", "longitude", mode="before")(
        _coordinate_or_none
    )

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_feature(self) -> Dict[str, Any]:
        """GeoJSON point feature in the shape the composer consumes."""
        label = self.entity_type.capitalize()
        return GeographicFeature(
            geometry={"type": "Point", "coordinates": [self.longitude, self.latitude]},
            properties={
                "name": self.name,
                "code": self.code,
                "subdistrict": self.subdistrict_name,
                "districtName": self.district_name,
                "population": self.population,
                "poiType": label,
                "Type": label,
            },
            layer_tag=self.entity_type,
        ).to_geojson()


class ComplaintPoint(BaseModel):
    """Flat complaint record as delivered by the complaint store."""

    model_config = ConfigDict(populate_by_name=True)

    complaint_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("complaint_id", "_id", "id")
    )
    title: Optional[str] = None
    category: str = "other"
    status: str = "pending"
    priority: str = "medium"
    subdistrict_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("subdistrict_name", "subdistrictName")
    )
    village_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("village_name", "villageName")
    )
    village_code: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("village_code", "villageCode", "village_lgd"),
    )
    town_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("town_name", "townName")
    )
    town_code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("town_code", "townCode")
    )
    ward_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ward_name", "wardName")
    )
    ward_code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ward_code", "wardCode")
    )
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    normalize_codes = field_validator(
        "complaint_id", "village_code", "town_code", "ward_code", mode="before"
    )(_code_to_str)
    normalize_coords = field_validator("latitude", "longitude", mode="before")(
        _coordinate_or_none
    )
    normalize_text = field_validator(
        "title", "subdistrict_name", "village_name", "town_name", "ward_name", mode="before"
    )(_text_or_none)

    @field_validator("category", "status", "priority", mode="before")
    @classmethod
    def default_when_blank(cls, v, info):
        """Missing enum-ish fields fall back to the record defaults."""
        v = _text_or_none(v)
        if v is None:
            return {"category": "other", "status": "pending", "priority": "medium"}[
                info.field_name
            ]
        return v

    @property
    def has_coordinates(self) -> bool:
        # zero is treated as "not geocoded", as the complaint store does
        return bool(self.latitude) and bool(self.longitude)

    def name_for(self, layer: str) -> Optional[str]:
        return getattr(self, f"{layer}_name", None)

    def code_for(self, layer: str) -> Optional[str]:
        return getattr(self, f"{layer}_code", None)


class HighlightTarget(BaseModel):
    """Entity the user selected on the map."""

    name: Optional[str] = None
    latitude: float
    longitude: float


class FilterContext(BaseModel):
    """Everything the user can toggle between two compositions."""

    model_config = ConfigDict(frozen=True)

    selected_subdistrict: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    enabled_layers: FrozenSet[LayerTag] = DEFAULT_LAYERS
    highlight: Optional[HighlightTarget] = None

    def matches(self, complaint: ComplaintPoint) -> bool:
        """Attribute filters only; the spatial filter is applied by the composer."""
        if self.category and complaint.category != self.category:
            return False
        if self.status and complaint.status != self.status:
            return False
        if self.priority and complaint.priority != self.priority:
            return False
        return True


class GeocodeFailure(BaseModel):
    name: str
    reason: str


class GeocodeBatchResult(BaseModel):
    entity_type: PointLayer
    success: int = 0
    failed: int = 0
    failures: List[GeocodeFailure] = []
