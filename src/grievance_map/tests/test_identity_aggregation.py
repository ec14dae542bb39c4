"""Tests for join keys and complaint aggregation."""

from grievance_map.mapping.aggregation import (
    count_by_keys,
    count_by_layer,
    count_by_subdistrict,
    count_for,
)
from grievance_map.models.schemas import ComplaintPoint
from grievance_map.utils.identity import code_key, keys_for, normalize


def complaint(**kwargs):
    return ComplaintPoint.model_validate(kwargs)


class TestNormalize:
    def test_lowercase_and_trim(self):
        assert normalize("  Bilsi ") == "bilsi"

    def test_zero_width_and_inner_whitespace(self):
        assert normalize("Ujhani\u200b  Khas\ufeff") == "ujhani khas"

    def test_empty(self):
        assert normalize(None) == ""
        assert normalize("   ") == ""


class TestKeysFor:
    def test_name_and_code(self):
        assert keys_for("Bilsi", 128456) == {"bilsi", "code_128456"}

    def test_code_only(self):
        assert keys_for(None, "128456") == {code_key("128456")}

    def test_unkeyed(self):
        assert keys_for() == set()
        assert keys_for("", "  ") == set()


class TestCountByKeys:
    def test_each_key_once_per_point(self):
        points = [{"keys": {"a", "code_1"}}, {"keys": {"a"}}, {"keys": set()}]
        counts = count_by_keys(points, lambda p: p["keys"])
        assert counts == {"a": 2, "code_1": 1}

    def test_sum_covers_every_keyed_point(self):
        points = [{"keys": {"a", "b"}}, {"keys": {"c"}}, {"keys": set()}]
        counts = count_by_keys(points, lambda p: p["keys"])
        keyed = sum(1 for p in points if p["keys"])
        assert sum(counts.values()) >= keyed

    def test_order_independent(self):
        points = [{"keys": {"a"}}, {"keys": {"b", "a"}}, {"keys": {"c"}}]
        forward = count_by_keys(points, lambda p: p["keys"])
        backward = count_by_keys(list(reversed(points)), lambda p: p["keys"])
        assert forward == backward


class TestCountBySubdistrict:
    def test_exact_text(self):
        complaints = [
            complaint(subdistrict_name="Budaun"),
            complaint(subdistrictName="Budaun"),
            complaint(subdistrict_name="budaun"),
            complaint(),
        ]
        assert count_by_subdistrict(complaints) == {"Budaun": 2, "budaun": 1}


class TestCountByLayer:
    def test_name_and_code_keys(self):
        complaints = [
            complaint(villageName="Kakrala", villageCode=1001),
            complaint(village_name=" kakrala"),
            complaint(village_lgd="1002"),
            complaint(townName="Ujhani"),
        ]
        counts = count_by_layer(complaints)
        assert counts["village"] == {"kakrala": 2, "code_1001": 1, "code_1002": 1}
        assert counts["town"] == {"ujhani": 1}
        assert counts["ward"] == {}

    def test_count_for_prefers_name(self):
        counts = {"kakrala": 2, "code_1001": 1}
        assert count_for(counts, "Kakrala", "1001") == 2

    def test_count_for_falls_back_to_code(self):
        counts = {"code_1002": 3}
        assert count_for(counts, "Renamed Village", 1002) == 3

    def test_count_for_unkeyed(self):
        assert count_for({"a": 1}, None, None) == 0


class TestComplaintRecord:
    def test_scalar_fields_become_text(self):
        c = complaint(category=7, priority=2.0, status="", ward_name=12, title=3.5)
        assert (c.category, c.priority, c.status) == ("7", "2", "pending")
        assert c.ward_name == "12"
        assert c.title == "3.5"

    def test_numeric_village_name_counts(self):
        counts = count_by_layer([complaint(village_name=1001), complaint(village_name="1001")])
        assert counts["village"] == {"1001": 2}
