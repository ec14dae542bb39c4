"""Compose boundaries, settlements, POIs and complaints into one GeoJSON layer.

Every call rebuilds counts, tiers and labels from its inputs; nothing is
patched incrementally and inputs are never mutated.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Union

from pydantic import ValidationError

from ..config.settings import settings
from ..models.schemas import (
    POINT_LAYERS,
    AdministrativeBoundary,
    ComplaintPoint,
    FilterContext,
)
from ..utils.identity import keys_for
from .aggregation import count_by_layer, count_by_subdistrict, count_for
from .geometry_index import GeometryIndex
from .geometry_utils import (
    InvalidGeometryError,
    centroid_of_feature,
    create_circle_polygon,
    ensure_valid_geometry,
    get_bounding_box,
)
from .heat_classifier import classify, tier_color
from .labeling import LabelGenerator
from .styles import STYLES, get_marker_color

logger = logging.getLogger(__name__)

_NAME_PROPS = (
    "name",
    "villageName",
    "village_name",
    "VillageName",
    "townName",
    "areaName",
    "wardName",
    "NAME",
)
_CODE_PROPS = (
    "code",
    "lgdCode",
    "lgd_code",
    "villageCode",
    "townCode",
    "wardCode",
    "ward_code",
)

BoundaryInput = Union[GeometryIndex, Iterable[Union[AdministrativeBoundary, Dict[str, Any]]]]


def _first_prop(props: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = props.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_index(boundaries: BoundaryInput) -> GeometryIndex:
    if isinstance(boundaries, GeometryIndex):
        return boundaries
    parsed = []
    for b in boundaries or []:
        if isinstance(b, AdministrativeBoundary):
            parsed.append(b)
            continue
        boundary = AdministrativeBoundary.from_feature(b)
        if boundary is None:
            logger.warning("Skipping boundary feature without a name")
            continue
        parsed.append(boundary)
    return GeometryIndex(parsed)


def _as_complaint(record: Union[ComplaintPoint, Dict[str, Any]]) -> ComplaintPoint:
    if isinstance(record, ComplaintPoint):
        return record
    return ComplaintPoint.model_validate(record)


def flatten_features(data: Any) -> List[Dict[str, Any]]:
    """
    Pull features out of a FeatureCollection, a bare list of features, or
    the nested ``[[{"features": [...]}, ...], ...]`` wrappers ESRI exports use.
    """
    if not data:
        return []
    if isinstance(data, dict):
        if data.get("type") == "Feature":
            return [data]
        return list(data.get("features") or [])
    features = []
    for item in data:
        if isinstance(item, dict) and item.get("type") == "Feature":
            features.append(item)
        else:
            features.extend(flatten_features(item))
    return features


def empty_feature_collection() -> Dict[str, Any]:
    return {"type": "FeatureCollection", "features": []}


@dataclass
class CompositionResult:
    """Composed layer plus bookkeeping about what went in."""

    feature_collection: Dict[str, Any]
    stats: Dict[str, Any] = field(default_factory=dict)


class LayerComposer:
    """Build the single renderable feature collection for the heat map."""

    def __init__(
        self,
        highlight_radius_deg: Optional[float] = None,
        highlight_num_points: Optional[int] = None,
        precision: Optional[int] = None,
    ):
        """
        Args:
            highlight_radius_deg: Radius of the selection ring in degrees
            highlight_num_points: Vertices of the selection ring
            precision: Decimal places kept on the selection ring
        """
        self.highlight_radius_deg = (
            highlight_radius_deg
            if highlight_radius_deg is not None
            else settings.HIGHLIGHT_RADIUS_DEG
        )
        self.highlight_num_points = highlight_num_points or settings.HIGHLIGHT_NUM_POINTS
        self.precision = precision if precision is not None else settings.COORDINATE_PRECISION

    def compose(
        self,
        enabled_layers: Optional[Iterable[str]],
        boundaries: BoundaryInput,
        points_by_layer: Optional[Mapping[str, List[Dict[str, Any]]]],
        complaints: Iterable[Union[ComplaintPoint, Dict[str, Any]]],
        filter_context: Optional[FilterContext] = None,
        boundaries_by_layer: Optional[Mapping[str, List[Dict[str, Any]]]] = None,
        poi_layers: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Compose and return only the FeatureCollection."""
        return self.compose_with_stats(
            enabled_layers,
            boundaries,
            points_by_layer,
            complaints,
            filter_context,
            boundaries_by_layer=boundaries_by_layer,
            poi_layers=poi_layers,
        ).feature_collection

    def compose_with_stats(
        self,
        enabled_layers: Optional[Iterable[str]],
        boundaries: BoundaryInput,
        points_by_layer: Optional[Mapping[str, List[Dict[str, Any]]]],
        complaints: Iterable[Union[ComplaintPoint, Dict[str, Any]]],
        filter_context: Optional[FilterContext] = None,
        boundaries_by_layer: Optional[Mapping[str, List[Dict[str, Any]]]] = None,
        poi_layers: Optional[Mapping[str, Any]] = None,
    ) -> CompositionResult:
        """
        Merge every enabled layer into one FeatureCollection.

        Args:
            enabled_layers: Layer tags to emit; None uses the filter context's
            boundaries: Subdistrict boundaries (index, models or features)
            points_by_layer: Settlement point features keyed by village/town/ward
            complaints: Complaint records (models or flat dicts)
            filter_context: Subdistrict / attribute filters and highlight
            boundaries_by_layer: Fine-grained outlines keyed by settlement layer
            poi_layers: Overlay features keyed by overlay name

        Returns:
            CompositionResult; feature order carries no meaning
        """
        ctx = filter_context or FilterContext()
        enabled: Set[str] = set(enabled_layers if enabled_layers is not None else ctx.enabled_layers)
        points_by_layer = points_by_layer or {}
        boundaries_by_layer = boundaries_by_layer or {}
        poi_layers = poi_layers or {}

        stats: Dict[str, Any] = {
            "subdistrict_polygons": 0,
            "subdistrict_labels": 0,
            "points": {layer: 0 for layer in POINT_LAYERS},
            "layer_boundaries": {layer: 0 for layer in POINT_LAYERS},
            "complaints": 0,
            "complaints_without_coordinates": 0,
            "pois": 0,
            "highlight": False,
            "skipped_malformed": 0,
        }

        index = _as_index(boundaries)
        stats["skipped_malformed"] += index.skipped
        all_complaints: List[ComplaintPoint] = []
        for record in complaints or []:
            try:
                all_complaints.append(_as_complaint(record))
            except ValidationError as e:
                stats["skipped_malformed"] += 1
                logger.warning(f"Skipping malformed complaint: {e.error_count()} invalid field(s)")
        filtered = [c for c in all_complaints if ctx.matches(c)]

        # 1. Active boundary subset
        selected = ctx.selected_subdistrict
        if selected:
            active = index.parts(selected)
            if not active:
                logger.warning(f"Unknown subdistrict filter '{selected}', nothing to compose")
                return CompositionResult(empty_feature_collection(), stats)
        else:
            active = index.boundaries

        def in_scope(point: List[float]) -> bool:
            return not selected or index.contains(selected, point)

        features: List[Dict[str, Any]] = []

        # 2. Subdistrict polygons (every part) and labels (one per name)
        labels = LabelGenerator()
        if "subdistrict" in enabled:
            subdistrict_counts = count_by_subdistrict(filtered)
            max_count = max(subdistrict_counts.values(), default=0)
            for boundary in active:
                count = subdistrict_counts.get(boundary.name, 0)
                tier = classify(count, max_count)
                feature = boundary.to_feature()
                feature["properties"].update(
                    {
                        "sdtname": boundary.name,
                        "_color": tier_color(tier),
                        "complaintCount": count,
                        "heatTier": tier.value,
                        "poiType": "Subdistrict",
                        "Type": "Subdistrict",
                    }
                )
                features.append(feature)
                stats["subdistrict_polygons"] += 1
                labels.add(boundary.name, feature, count, tier)

        # 3. Settlement points, collecting join keys of what stays visible
        layer_counts = count_by_layer(filtered)
        point_features: List[Dict[str, Any]] = []
        visible_keys: Dict[str, Set[str]] = {layer: set() for layer in POINT_LAYERS}
        for layer in POINT_LAYERS:
            if layer not in enabled:
                continue
            label = layer.capitalize()
            for point in points_by_layer.get(layer) or []:
                coords = self._point_coordinates(point, stats)
                if coords is None or not in_scope(coords):
                    continue
                props = dict(point.get("properties") or {})
                name = _first_prop(props, _NAME_PROPS)
                code = _first_prop(props, _CODE_PROPS)
                visible_keys[layer] |= keys_for(name, code)
                props.update(
                    {
                        # unkeyed points are still drawn, with a zero count
                        "complaintCount": count_for(layer_counts[layer], name, code),
                        "poiType": label,
                        "Type": label,
                    }
                )
                point_features.append(
                    {"type": "Feature", "geometry": copy.deepcopy(point["geometry"]), "properties": props}
                )
                stats["points"][layer] += 1

        # 4. Fine-grained outlines under their points
        for layer in POINT_LAYERS:
            if layer not in enabled:
                continue
            for outline in boundaries_by_layer.get(layer) or []:
                try:
                    ensure_valid_geometry(outline.get("geometry"))
                except InvalidGeometryError as e:
                    stats["skipped_malformed"] += 1
                    logger.warning(f"Skipping {layer} outline: {e}")
                    continue
                if selected and not self._outline_visible(
                    outline, visible_keys[layer], in_scope
                ):
                    continue
                props = dict(outline.get("properties") or {})
                props.update(STYLES["village_boundary"].to_simplestyle())
                props.update(
                    {"isVillageBoundary": layer == "village", "layerBoundary": layer}
                )
                features.append(
                    {"type": "Feature", "geometry": copy.deepcopy(outline["geometry"]), "properties": props}
                )
                stats["layer_boundaries"][layer] += 1

        features.extend(point_features)

        # 5. Complaint markers; same spatial rule as settlements
        if "complaint" in enabled:
            for complaint in filtered:
                if not complaint.has_coordinates:
                    stats["complaints_without_coordinates"] += 1
                    continue
                coords = [complaint.longitude, complaint.latitude]
                if not in_scope(coords):
                    continue
                features.append(self._complaint_feature(complaint, coords))
                stats["complaints"] += 1

        # 6. Overlays (admin HQs, assets)
        if "poi" in enabled:
            for overlay_name, data in poi_layers.items():
                for poi in flatten_features(data):
                    geometry = poi.get("geometry")
                    try:
                        ensure_valid_geometry(geometry)
                    except InvalidGeometryError as e:
                        stats["skipped_malformed"] += 1
                        logger.warning(f"Skipping {overlay_name} feature: {e}")
                        continue
                    if selected and not self._poi_visible(poi, in_scope):
                        continue
                    props = dict(poi.get("properties") or {})
                    props.setdefault("poiType", overlay_name)
                    features.append(
                        {"type": "Feature", "geometry": copy.deepcopy(geometry), "properties": props}
                    )
                    stats["pois"] += 1

        # 7. Selection ring
        if ctx.highlight is not None:
            features.append(self._highlight_feature(ctx))
            stats["highlight"] = True

        label_features = labels.to_geojson_features()
        features.extend(label_features)
        stats["subdistrict_labels"] = len(label_features)

        collection: Dict[str, Any] = {"type": "FeatureCollection", "features": features}
        bbox = get_bounding_box([f["geometry"] for f in features])
        if bbox is not None:
            collection["bbox"] = list(bbox)

        logger.info(
            f"Composed {len(features)} features "
            f"(filter={selected or 'all'}, complaints={stats['complaints']}, "
            f"skipped={stats['skipped_malformed']})"
        )
        return CompositionResult(collection, stats)

    @staticmethod
    def _point_coordinates(point: Dict[str, Any], stats: Dict[str, Any]) -> Optional[List[float]]:
        geometry = point.get("geometry")
        try:
            ensure_valid_geometry(geometry)
        except InvalidGeometryError as e:
            stats["skipped_malformed"] += 1
            logger.warning(f"Skipping settlement point: {e}")
            return None
        if geometry["type"] != "Point":
            stats["skipped_malformed"] += 1
            logger.warning(f"Skipping settlement with {geometry['type']} geometry")
            return None
        return geometry["coordinates"]

    @staticmethod
    def _outline_visible(
        outline: Dict[str, Any],
        visible_keys: Set[str],
        in_scope: Callable[[List[float]], bool],
    ) -> bool:
        """Match a visible point by name/code, else test the outline's centroid."""
        props = outline.get("properties") or {}
        outline_keys = keys_for(_first_prop(props, _NAME_PROPS), _first_prop(props, _CODE_PROPS))
        if outline_keys & visible_keys:
            return True
        centroid = centroid_of_feature(outline)
        return centroid is not None and in_scope(list(centroid))

    @staticmethod
    def _poi_visible(poi: Dict[str, Any], in_scope: Callable[[List[float]], bool]) -> bool:
        geometry = poi["geometry"]
        if geometry["type"] == "Point":
            return in_scope(geometry["coordinates"])
        centroid = centroid_of_feature(poi)
        return centroid is not None and in_scope(list(centroid))

    @staticmethod
    def _complaint_feature(complaint: ComplaintPoint, coords: List[float]) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": coords},
            "properties": {
                "type": "complaint",
                "isComplaint": True,
                "name": complaint.title,
                "complaint_id": complaint.complaint_id,
                "category": complaint.category,
                "status": complaint.status,
                "priority": complaint.priority,
                "subdistrict_name": complaint.subdistrict_name,
                "village_name": complaint.village_name,
                "_color": get_marker_color(complaint.priority),
                "poiType": "Complaint",
                "Type": "Complaint",
            },
        }

    def _highlight_feature(self, ctx: FilterContext) -> Dict[str, Any]:
        target = ctx.highlight
        ring = create_circle_polygon(
            target.longitude,
            target.latitude,
            self.highlight_radius_deg,
            num_points=self.highlight_num_points,
            precision=self.precision,
        )
        props = STYLES["highlight"].to_simplestyle()
        props.update(
            {"type": "village-boundary-selected", "name": target.name, "isHighlight": True}
        )
        return {
            "type": "Feature",
            "geometry": {"type": "Polygon", "coordinates": [ring]},
            "properties": props,
        }


def compose(
    enabled_layers: Optional[Iterable[str]],
    boundaries: BoundaryInput,
    points_by_layer: Optional[Mapping[str, List[Dict[str, Any]]]],
    complaints: Iterable[Union[ComplaintPoint, Dict[str, Any]]],
    filter_context: Optional[FilterContext] = None,
    boundaries_by_layer: Optional[Mapping[str, List[Dict[str, Any]]]] = None,
    poi_layers: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Module-level shortcut for :meth:`LayerComposer.compose` with default settings."""
    return LayerComposer().compose(
        enabled_layers,
        boundaries,
        points_by_layer,
        complaints,
        filter_context,
        boundaries_by_layer=boundaries_by_layer,
        poi_layers=poi_layers,
    )


class CompositionSequencer:
    """
    Drop compositions that were overtaken by a newer request.

    Each request takes a ticket before composing; a result is only
    published if no later ticket has been handed out in the meantime.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._issued = 0
        self._published = 0
        self._latest: Optional[Dict[str, Any]] = None

    def next_ticket(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def is_current(self, ticket: int) -> bool:
        with self._lock:
            return ticket == self._issued

    def publish(self, ticket: int, result: Dict[str, Any]) -> bool:
        """Store ``result`` if ``ticket`` is still the newest; report whether it was."""
        with self._lock:
            if ticket != self._issued or ticket <= self._published:
                logger.debug(f"Discarding stale composition #{ticket} (latest #{self._issued})")
                return False
            self._published = ticket
            self._latest = result
            return True

    @property
    def latest(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._latest

    def run(self, compose_fn: Callable[..., Dict[str, Any]], *args, **kwargs) -> Optional[Dict[str, Any]]:
        """Compose under a fresh ticket; None if a newer request overtook it."""
        ticket = self.next_ticket()
        result = compose_fn(*args, **kwargs)
        return result if self.publish(ticket, result) else None
