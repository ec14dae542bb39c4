"""Tests for density heatmap collections."""

import pytest

from grievance_map.mapping.density_heatmap import (
    asset_heatmap,
    combine,
    complaint_heatmap,
    filter_heatmap,
    heatmap_stats,
    population_heatmap,
)
from grievance_map.models.schemas import SettlementPoint


@pytest.fixture
def complaints():
    return [
        {"_id": "a", "priority": "urgent", "status": "pending", "category": "health",
         "latitude": 28.1, "longitude": 79.1, "subdistrict_name": "Budaun"},
        {"_id": "b", "priority": "low", "status": "resolved", "category": "documents",
         "latitude": 28.2, "longitude": 79.2, "subdistrict_name": "Bilsi"},
        {"_id": "c", "priority": "odd", "status": "odd", "category": "odd",
         "latitude": 28.3, "longitude": 79.3},
        {"_id": "d", "priority": "high"},  # no coordinates
    ]


def weights(fc):
    return [f["properties"]["_value"] for f in fc["features"]]


class TestComplaintHeatmap:
    def test_priority_weights(self, complaints):
        assert weights(complaint_heatmap(complaints, "priority")) == [25, 5, 5]

    def test_status_weights(self, complaints):
        assert weights(complaint_heatmap(complaints, "status")) == [20, 5, 10]

    def test_category_weights(self, complaints):
        assert weights(complaint_heatmap(complaints, "category")) == [25, 8, 10]

    def test_count_weights(self, complaints):
        assert weights(complaint_heatmap(complaints, "count")) == [1, 1, 1]

    def test_point_geometry_and_properties(self, complaints):
        feature = complaint_heatmap(complaints)["features"][0]
        assert feature["geometry"] == {"type": "Point", "coordinates": [79.1, 28.1]}
        assert feature["properties"]["complaintId"] == "a"
        assert feature["properties"]["subdistrict"] == "Budaun"

    def test_unknown_weighting(self, complaints):
        with pytest.raises(ValueError):
            complaint_heatmap(complaints, "loudness")

    def test_malformed_record_skipped(self, complaints):
        records = complaints + [{"priority": {"level": 1}, "latitude": 28.1, "longitude": 79.1}]
        assert weights(complaint_heatmap(records, "priority")) == [25, 5, 5]


class TestPopulationHeatmap:
    def test_weight_is_clamped(self):
        locations = [
            {"name": "Tiny", "latitude": 28.1, "longitude": 79.1, "totalPopulation": 500},
            {"name": "Mid", "latitude": 28.1, "longitude": 79.1, "totalPopulation": 20000},
            {"name": "Huge", "latitude": 28.1, "longitude": 79.1, "totalPopulation": 500000},
        ]
        assert weights(population_heatmap(locations)) == [1, 10, 50]

    def test_urban_and_rural(self):
        location = {"latitude": 28.1, "longitude": 79.1, "urbanPopulation": 8000, "ruralPopulation": 40000}
        assert weights(population_heatmap([location], "urban")) == [4]
        assert weights(population_heatmap([location], "rural")) == [20]

    def test_settlement_models(self):
        settlements = [
            SettlementPoint(entity_type="village", name="Kakrala", population=6000, latitude=28.1, longitude=79.1),
            SettlementPoint(entity_type="village", name="Pending", population=6000),
        ]
        fc = population_heatmap(settlements)
        assert weights(fc) == [3]
        assert fc["features"][0]["properties"]["name"] == "Kakrala"

    def test_skips_missing_or_non_numeric_coordinates(self):
        locations = [
            {"latitude": "28.1", "longitude": 79.1},
            {"latitude": 0, "longitude": 79.1},
            {"latitude": float("nan"), "longitude": 79.1},
        ]
        assert population_heatmap(locations)["features"] == []


class TestAssetHeatmap:
    def test_weight_property(self):
        assets = [
            {"name": "Pump", "latitude": 28.1, "longitude": 79.1, "capacity": 30},
            {"name": "Tank", "latitude": 28.1, "longitude": 79.1},
        ]
        assert weights(asset_heatmap(assets, "capacity")) == [30, 10]


class TestCombineAndFilter:
    def test_combine(self, complaints):
        fc = combine([complaint_heatmap(complaints), None, {"features": []}, complaint_heatmap(complaints[:1])])
        assert len(fc["features"]) == 4

    def test_filter_by_value_range(self, complaints):
        fc = filter_heatmap(complaint_heatmap(complaints), min_value=6, max_value=30)
        assert weights(fc) == [25]

    def test_filter_by_attributes(self, complaints):
        fc = complaint_heatmap(complaints)
        assert len(filter_heatmap(fc, priority="low")["features"]) == 1
        assert len(filter_heatmap(fc, subdistrict="Bilsi", status="resolved")["features"]) == 1
        assert filter_heatmap(fc, category="water")["features"] == []


class TestHeatmapStats:
    def test_stats(self, complaints):
        stats = heatmap_stats(complaint_heatmap(complaints))
        assert stats == {"count": 3, "min": 5, "max": 25, "avg": pytest.approx(35 / 3), "total": 35}

    def test_empty(self):
        assert heatmap_stats({"features": []}) == {"count": 0, "min": 0, "max": 0, "avg": 0, "total": 0}

    def test_ignores_zero_weights(self):
        fc = {"features": [{"properties": {"_value": 0}}, {"properties": {"_value": 4}}]}
        assert heatmap_stats(fc)["count"] == 1
