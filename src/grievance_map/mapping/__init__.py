"""Grievance map layer composition.

Merges subdistrict boundaries, settlement points, overlays and complaint
markers into one GeoJSON layer shaded by complaint density.
"""

from .layer_composer import (
    LayerComposer,
    CompositionResult,
    CompositionSequencer,
    compose,
    flatten_features,
)
from .geometry_index import GeometryIndex
from .aggregation import count_by_keys, count_by_subdistrict, count_by_layer, count_for
from .heat_classifier import classify, tier_color
from .labeling import LabelGenerator, SubdistrictLabel
from .styles import STYLES, FeatureStyle, TIER_COLORS, get_marker_color
from .density_heatmap import (
    complaint_heatmap,
    population_heatmap,
    asset_heatmap,
    combine,
    filter_heatmap,
    heatmap_stats,
)
from .geometry_utils import (
    InvalidGeometryError,
    validate_geometry,
    centroid_of_ring,
    centroid_of_feature,
    create_circle_polygon,
    get_bounding_box,
)

__all__ = [
    "LayerComposer",
    "CompositionResult",
    "CompositionSequencer",
    "compose",
    "flatten_features",
    "GeometryIndex",
    "count_by_keys",
    "count_by_subdistrict",
    "count_by_layer",
    "count_for",
    "classify",
    "tier_color",
    "LabelGenerator",
    "SubdistrictLabel",
    "STYLES",
    "FeatureStyle",
    "TIER_COLORS",
    "get_marker_color",
    "complaint_heatmap",
    "population_heatmap",
    "asset_heatmap",
    "combine",
    "filter_heatmap",
    "heatmap_stats",
    "InvalidGeometryError",
    "validate_geometry",
    "centroid_of_ring",
    "centroid_of_feature",
    "create_circle_polygon",
    "get_bounding_box",
]
