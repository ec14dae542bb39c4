"""Tests for geometry validation, containment and centroids."""

import json

import pytest

from grievance_map.mapping.geometry_index import GeometryIndex
from grievance_map.mapping.geometry_utils import (
    InvalidGeometryError,
    centroid_of_feature,
    centroid_of_ring,
    create_circle_polygon,
    ensure_valid_geometry,
    get_bounding_box,
    validate_geometry,
)
from grievance_map.models.schemas import AdministrativeBoundary


def square(x0, y0, size):
    return [[x0, y0], [x0, y0 + size], [x0 + size, y0 + size], [x0 + size, y0], [x0, y0]]


def polygon_feature(name, ring, code=None):
    props = {"name": name}
    if code is not None:
        props["code"] = code
    return {"type": "Feature", "geometry": {"type": "Polygon", "coordinates": [ring]}, "properties": props}


# =============================================================================
# TestEnsureValidGeometry
# =============================================================================


class TestEnsureValidGeometry:
    def test_accepts_polygon(self):
        geom = {"type": "Polygon", "coordinates": [square(0, 0, 1)]}
        assert ensure_valid_geometry(geom) is geom

    def test_accepts_point(self):
        assert validate_geometry({"type": "Point", "coordinates": [79.1, 28.0]})

    def test_accepts_multipolygon(self):
        geom = {"type": "MultiPolygon", "coordinates": [[square(0, 0, 1)], [square(5, 5, 1)]]}
        assert validate_geometry(geom)

    def test_rejects_short_ring(self):
        ring = [[0, 0], [0, 1], [0, 0]]
        with pytest.raises(InvalidGeometryError, match="at least 4"):
            ensure_valid_geometry({"type": "Polygon", "coordinates": [ring]})

    def test_rejects_unclosed_ring(self):
        ring = [[0, 0], [0, 1], [1, 1], [1, 0]]
        with pytest.raises(InvalidGeometryError, match="not closed"):
            ensure_valid_geometry({"type": "Polygon", "coordinates": [ring]})

    def test_rejects_non_numeric_coordinates(self):
        ring = [[0, 0], [0, "x"], [1, 1], [1, 0], [0, 0]]
        assert not validate_geometry({"type": "Polygon", "coordinates": [ring]})

    def test_rejects_missing_geometry(self):
        assert not validate_geometry(None)
        assert not validate_geometry({"type": "Polygon", "coordinates": []})
        assert not validate_geometry({"type": "Point", "coordinates": [None, 1]})

    def test_rejects_unsupported_type(self):
        with pytest.raises(InvalidGeometryError, match="unsupported"):
            ensure_valid_geometry({"type": "LineString", "coordinates": [[0, 0], [1, 1]]})


# =============================================================================
# TestPointInPolygon
# =============================================================================


class TestPointInPolygon:
    def test_interior_point(self):
        feature = polygon_feature("A", square(0, 0, 10))
        assert GeometryIndex.point_in_polygon([5, 5], feature) is True

    def test_far_outside_point(self):
        feature = polygon_feature("A", square(0, 0, 10))
        assert GeometryIndex.point_in_polygon([50, 50], feature) is False

    def test_multipolygon_any_part(self):
        feature = {
            "type": "Feature",
            "geometry": {
                "type": "MultiPolygon",
                "coordinates": [[square(0, 0, 1)], [square(10, 10, 1)]],
            },
            "properties": {},
        }
        assert GeometryIndex.point_in_polygon([10.5, 10.5], feature)
        assert GeometryIndex.point_in_polygon([0.5, 0.5], feature)
        assert not GeometryIndex.point_in_polygon([5, 5], feature)

    def test_hole_is_ignored(self):
        geom = {"type": "Polygon", "coordinates": [square(0, 0, 10), square(4, 4, 2)]}
        assert GeometryIndex.point_in_polygon([5, 5], {"geometry": geom})

    def test_malformed_geometry_contains_nothing(self):
        feature = {"geometry": {"type": "Polygon", "coordinates": [[[0, 0], [0, 1], [1, 1]]]}}
        assert GeometryIndex.point_in_polygon([0.5, 0.5], feature) is False

    def test_accepts_boundary_model(self):
        boundary = AdministrativeBoundary(
            name="A", geometry={"type": "Polygon", "coordinates": [square(0, 0, 2)]}
        )
        assert GeometryIndex.point_in_polygon([1, 1], boundary)


# =============================================================================
# TestGeometryIndex
# =============================================================================


class TestGeometryIndex:
    @pytest.fixture
    def index(self):
        return GeometryIndex.from_geojson(
            {
                "type": "FeatureCollection",
                "features": [
                    polygon_feature("Budaun", square(0, 0, 10), code=781),
                    polygon_feature("Bilsi", square(20, 0, 10)),
                    polygon_feature("Budaun", square(40, 0, 5)),  # second part
                ],
            }
        )

    def test_keeps_all_parts_in_order(self, index):
        assert len(index) == 3
        assert index.names() == ["Budaun", "Bilsi"]
        parts = index.parts("Budaun")
        assert len(parts) == 2
        assert parts[0].geometry["coordinates"][0][0] == [0, 0]

    def test_parts_lookup_is_normalized(self, index):
        assert len(index.parts("  BUDAUN ")) == 2
        assert index.parts("Unknown") == []

    def test_by_code(self, index):
        assert [b.name for b in index.by_code("781")] == ["Budaun"]
        assert index.by_code(999) == []

    def test_contains_checks_every_part(self, index):
        assert index.contains("Budaun", [42, 2])
        assert index.contains("Budaun", [5, 5])
        assert not index.contains("Budaun", [25, 5])
        assert not index.contains("Nowhere", [5, 5])

    def test_find_enclosing(self, index):
        assert index.find_enclosing([25, 5]).name == "Bilsi"
        assert index.find_enclosing([100, 100]) is None

    def test_malformed_boundary_skipped(self, caplog):
        bad = polygon_feature("Broken", [[0, 0], [0, 1], [1, 1], [1, 0]])
        good = polygon_feature("Good", square(0, 0, 1))
        index = GeometryIndex.from_geojson({"features": [bad, good]})
        assert index.names() == ["Good"]
        assert index.skipped == 1
        assert "Broken" in caplog.text

    def test_feature_without_name_skipped(self):
        feature = polygon_feature("x", square(0, 0, 1))
        feature["properties"] = {}
        assert len(GeometryIndex.from_geojson({"features": [feature]})) == 0

    def test_reads_alternate_property_names(self):
        feature = polygon_feature("x", square(0, 0, 1))
        feature["properties"] = {"sdtname": "Dataganj", "subdt_lgd": 782.0}
        index = GeometryIndex.from_geojson({"features": [feature]})
        assert index.boundaries[0].name == "Dataganj"
        assert index.boundaries[0].code == "782"

    def test_from_file(self, tmp_path):
        path = tmp_path / "subdistricts.geojson"
        path.write_text(json.dumps({"features": [polygon_feature("Budaun", square(0, 0, 1))]}))
        assert GeometryIndex.from_file(path).names() == ["Budaun"]


# =============================================================================
# TestCentroids
# =============================================================================


class TestCentroids:
    def test_vertex_average_includes_closing_vertex(self):
        assert centroid_of_ring([[0, 0], [0, 10], [10, 10], [10, 0], [0, 0]]) == (4.0, 4.0)

    def test_empty_ring(self):
        assert centroid_of_ring([]) is None
        assert centroid_of_ring(None) is None

    def test_polygon_uses_outer_ring(self):
        geom = {"type": "Polygon", "coordinates": [square(0, 0, 10), square(100, 100, 1)]}
        assert centroid_of_feature({"geometry": geom}) == (4.0, 4.0)

    def test_multipolygon_uses_first_part(self):
        geom = {
            "type": "MultiPolygon",
            "coordinates": [[square(0, 0, 10)], [square(100, 100, 10)]],
        }
        assert centroid_of_feature({"type": "Feature", "geometry": geom}) == (4.0, 4.0)

    def test_bare_geometry(self):
        assert centroid_of_feature({"type": "Polygon", "coordinates": [square(0, 0, 10)]}) == (
            4.0,
            4.0,
        )

    def test_point_has_no_centroid(self):
        assert centroid_of_feature({"geometry": {"type": "Point", "coordinates": [1, 1]}}) is None


# =============================================================================
# TestCreateCirclePolygon
# =============================================================================


class TestCreateCirclePolygon:
    def test_closed_ring(self):
        ring = create_circle_polygon(79.1, 28.0, 0.02, num_points=32)
        assert len(ring) == 33
        assert ring[0] == ring[-1]

    def test_radius_in_degrees(self):
        ring = create_circle_polygon(79.1, 28.0, 0.02)
        assert ring[0] == [pytest.approx(79.12), pytest.approx(28.0)]
        for lon, lat in ring:
            assert ((lon - 79.1) ** 2 + (lat - 28.0) ** 2) ** 0.5 == pytest.approx(0.02, abs=1e-5)

    def test_precision(self):
        ring = create_circle_polygon(79.123456789, 28.0, 0.02, num_points=8, precision=3)
        for lon, lat in ring:
            assert lon == round(lon, 3)
            assert lat == round(lat, 3)

    def test_valid_polygon(self):
        ring = create_circle_polygon(0, 0, 1, num_points=16)
        assert validate_geometry({"type": "Polygon", "coordinates": [ring]})


# =============================================================================
# TestBoundingBox
# =============================================================================


class TestBoundingBox:
    def test_mixed_geometries(self):
        bbox = get_bounding_box(
            [
                {"type": "Point", "coordinates": [-1, 2]},
                {"type": "Polygon", "coordinates": [square(0, 0, 10)]},
            ]
        )
        assert bbox == (-1, 0, 10, 10)

    def test_empty(self):
        assert get_bounding_box([]) is None
