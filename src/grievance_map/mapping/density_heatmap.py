"""Weighted point collections for a density heatmap layer.

Every feature carries a ``_value`` weight the renderer uses as heat intensity.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import ValidationError

from ..models.schemas import ComplaintPoint, SettlementPoint

logger = logging.getLogger(__name__)

WeightBy = Literal["priority", "status", "category", "count"]
PopulationType = Literal["total", "urban", "rural"]

PRIORITY_WEIGHTS = {"urgent": 25, "high": 15, "medium": 10, "low": 5}
STATUS_WEIGHTS = {"pending": 20, "in_progress": 15, "resolved": 5, "rejected": 3}
CATEGORY_WEIGHTS = {
    "roads": 15,
    "water": 20,
    "electricity": 18,
    "health": 25,
    "education": 12,
    "documents": 8,
    "sanitation": 16,
    "other": 10,
}

DEFAULT_PRIORITY_WEIGHT = 5
DEFAULT_STATUS_WEIGHT = 10
DEFAULT_CATEGORY_WEIGHT = 10
DEFAULT_ASSET_WEIGHT = 10

# Populations are scaled onto 1..50; 100k people saturates
POPULATION_DIVISOR = 2000
MAX_POPULATION_WEIGHT = 50


def get_priority_weight(priority: Optional[str]) -> int:
    return PRIORITY_WEIGHTS.get((priority or "").lower(), DEFAULT_PRIORITY_WEIGHT)


def get_status_weight(status: Optional[str]) -> int:
    return STATUS_WEIGHTS.get((status or "").lower(), DEFAULT_STATUS_WEIGHT)


def get_category_weight(category: Optional[str]) -> int:
    return CATEGORY_WEIGHTS.get((category or "").lower(), DEFAULT_CATEGORY_WEIGHT)


def complaint_weight(complaint: ComplaintPoint, weight_by: WeightBy = "priority") -> int:
    if weight_by == "priority":
        return get_priority_weight(complaint.priority)
    if weight_by == "status":
        return get_status_weight(complaint.status)
    if weight_by == "category":
        return get_category_weight(complaint.category)
    if weight_by == "count":
        return 1
    raise ValueError(f"Unknown heatmap weighting: {weight_by}")


def population_weight(population: float) -> float:
    return min(MAX_POPULATION_WEIGHT, max(1, population / POPULATION_DIVISOR))


def _is_coordinate(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value != 0
    )


def _feature_collection(features: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": "FeatureCollection", "features": features}


def complaint_heatmap(
    complaints: Iterable[Union[ComplaintPoint, Dict[str, Any]]],
    weight_by: WeightBy = "priority",
) -> Dict[str, Any]:
    """
    Complaint points weighted by priority, status, category or plain count.

    Complaints without coordinates, and records that do not parse, are skipped.
    """
    if weight_by not in ("priority", "status", "category", "count"):
        raise ValueError(f"Unknown heatmap weighting: {weight_by}")

    features = []
    skipped = 0
    for record in complaints:
        try:
            complaint = (
                record
                if isinstance(record, ComplaintPoint)
                else ComplaintPoint.model_validate(record)
            )
        except ValidationError as e:
            logger.warning(f"Skipping malformed complaint: {e.error_count()} invalid field(s)")
            skipped += 1
            continue
        if not complaint.has_coordinates:
            skipped += 1
            continue
        features.append(
            {
                "type": "Feature",
                "geometry": {
                    "type": "Point",
                    "coordinates": [complaint.longitude, complaint.latitude],
                },
                "properties": {
                    "_value": complaint_weight(complaint, weight_by),
                    "priority": complaint.priority,
                    "category": complaint.category,
                    "status": complaint.status,
                    "subdistrict": complaint.subdistrict_name or "",
                    "villageCode": complaint.village_code or "",
                    "villageName": complaint.village_name or "",
                    "title": complaint.title or "",
                    "complaintId": complaint.complaint_id or "",
                },
            }
        )

    if skipped:
        logger.debug(f"Complaint heatmap skipped {skipped} complaints")
    return _feature_collection(features)


def _population_of(location: Dict[str, Any], population_type: PopulationType) -> float:
    if population_type == "urban":
        return location.get("urbanPopulation") or 0
    if population_type == "rural":
        return location.get("ruralPopulation") or 0
    return location.get("totalPopulation") or location.get("population") or 0


def population_heatmap(
    settlements: Iterable[Union[SettlementPoint, Dict[str, Any]]],
    population_type: PopulationType = "total",
) -> Dict[str, Any]:
    """
    Settlement points weighted by population.

    Args:
        settlements: SettlementPoint models or census-style dicts with
            ``latitude``/``longitude`` and ``totalPopulation``,
            ``urbanPopulation``, ``ruralPopulation`` (or ``population``)
        population_type: Which population figure drives the weight
    """
    features = []
    for settlement in settlements:
        if isinstance(settlement, SettlementPoint):
            location = {
                "name": settlement.name,
                "latitude": settlement.latitude,
                "longitude": settlement.longitude,
                "population": settlement.population,
                "subdistrict": settlement.subdistrict_name,
                "lgdCode": settlement.code,
            }
        else:
            location = settlement

        lat, lng = location.get("latitude"), location.get("longitude")
        if not (_is_coordinate(lat) and _is_coordinate(lng)):
            continue

        population = _population_of(location, population_type)
        features.append(
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [lng, lat]},
                "properties": {
                    "_value": population_weight(population),
                    "name": location.get("areaName")
                    or location.get("villageName")
                    or location.get("name")
                    or "",
                    "population": population,
                    "totalPopulation": location.get("totalPopulation") or 0,
                    "urbanPopulation": location.get("urbanPopulation") or 0,
                    "ruralPopulation": location.get("ruralPopulation") or 0,
                    "subdistrict": location.get("subdistrict") or "",
                    "lgdCode": location.get("lgdCode") or location.get("villageCode") or "",
                },
            }
        )
    return _feature_collection(features)


def asset_heatmap(
    assets: Iterable[Dict[str, Any]], weight_property: Optional[str] = None
) -> Dict[str, Any]:
    """Asset locations weighted by a numeric property (default weight 10)."""
    features = []
    for asset in assets:
        lat, lng = asset.get("latitude"), asset.get("longitude")
        if not (_is_coordinate(lat) and _is_coordinate(lng)):
            continue

        weight = DEFAULT_ASSET_WEIGHT
        if weight_property and asset.get(weight_property):
            try:
                weight = float(asset[weight_property]) or DEFAULT_ASSET_WEIGHT
            except (TypeError, ValueError):
                weight = DEFAULT_ASSET_WEIGHT

        props = {
            "name": asset.get("name") or asset.get("Asset_Name") or "",
            "type": asset.get("type") or asset.get("Type") or "",
            "category": asset.get("category") or "",
        }
        props.update(asset)
        props["_value"] = weight
        features.append(
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [lng, lat]},
                "properties": props,
            }
        )
    return _feature_collection(features)


def combine(collections: Iterable[Optional[Dict[str, Any]]]) -> Dict[str, Any]:
    """Concatenate the features of several heatmap collections."""
    features = []
    for collection in collections:
        if collection and collection.get("features"):
            features.extend(collection["features"])
    return _feature_collection(features)


def filter_heatmap(
    collection: Dict[str, Any],
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    subdistrict: Optional[str] = None,
) -> Dict[str, Any]:
    """Keep features whose weight and attributes pass every given filter."""
    exact = {
        "priority": priority,
        "status": status,
        "category": category,
        "subdistrict": subdistrict,
    }

    def keep(feature: Dict[str, Any]) -> bool:
        props = feature.get("properties") or {}
        value = props.get("_value") or 0
        if min_value is not None and value < min_value:
            return False
        if max_value is not None and value > max_value:
            return False
        return all(not want or props.get(key) == want for key, want in exact.items())

    return _feature_collection([f for f in collection.get("features") or [] if keep(f)])


def heatmap_stats(collection: Dict[str, Any]) -> Dict[str, float]:
    """count / min / max / avg / total over the positive weights."""
    values = [
        (f.get("properties") or {}).get("_value") or 0
        for f in collection.get("features") or []
    ]
    values = [v for v in values if v > 0]

    if not values:
        return {"count": 0, "min": 0, "max": 0, "avg": 0, "total": 0}

    total = sum(values)
    return {
        "count": len(values),
        "min": min(values),
        "max": max(values),
        "avg": total / len(values),
        "total": total,
    }
