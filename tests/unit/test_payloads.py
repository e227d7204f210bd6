"""Tests for the inbound request contract.

Validates:
- ``validate_payload`` reports missing keys
- ``parse_scene_request`` builds a typed ``SceneQuery``
- Geometry forms: bare ring, GeoJSON-wrapped ring, explicit bbox
- Bad dates, bboxes, and resolutions raise ``ContractError``
- ``SceneResponse`` serialises camelCase and omits ``None``
"""

from __future__ import annotations

import json

import pytest

from sentinel_scene.core.exceptions import ContractError
from sentinel_scene.models.payloads import SceneRequest, parse_scene_request, validate_payload
from sentinel_scene.models.response import DateStatistics, SceneResponse

RING = [[-70.6, -33.5], [-70.5, -33.5], [-70.5, -33.4], [-70.6, -33.4], [-70.6, -33.5]]


class TestValidatePayload:
    """Required-key checks."""

    def test_complete_payload_passes(self) -> None:
        validate_payload({"date": "2023-01-15"}, SceneRequest, endpoint="sentinel2")

    def test_missing_date(self) -> None:
        with pytest.raises(ContractError, match="date") as exc_info:
            validate_payload({"bbox": [0, 0, 1, 1]}, SceneRequest, endpoint="sentinel2")
        assert exc_info.value.code == "PAYLOAD_MISSING_KEYS"
        assert exc_info.value.stage == "sentinel2"

    def test_unknown_schema_is_ignored(self) -> None:
        validate_payload({}, dict, endpoint="x")


class TestParseSceneRequest:
    """parse_scene_request: raw dict → SceneQuery."""

    def test_bare_ring(self) -> None:
        query = parse_scene_request({"date": "2023-01-15", "coordinates": RING}, endpoint="e")
        assert query.requested_date == "2023-01-15"
        assert query.polygon == RING
        assert query.bbox is None
        assert query.compare_date is None
        assert query.seasonal is False
        assert query.variant == ""

    def test_geojson_wrapped_ring(self) -> None:
        query = parse_scene_request({"date": "2023-01-15", "coordinates": [RING]}, endpoint="e")
        assert query.polygon == RING

    def test_bbox(self) -> None:
        query = parse_scene_request(
            {"date": "2023-01-15", "bbox": [-70.6, -33.5, -70.5, -33.4]}, endpoint="e"
        )
        assert query.polygon is None
        assert query.bbox is not None
        assert query.bbox.to_list() == [-70.6, -33.5, -70.5, -33.4]

    def test_bbox_on_wgs84_limits_accepted(self) -> None:
        query = parse_scene_request(
            {"date": "2023-01-15", "bbox": [-180, -90, 180, 90]}, endpoint="e"
        )
        assert query.bbox is not None
        assert query.bbox.to_list() == [-180.0, -90.0, 180.0, 90.0]

    def test_coordinates_preferred_over_bbox(self) -> None:
        query = parse_scene_request(
            {"date": "2023-01-15", "coordinates": RING, "bbox": [0, 0, 1, 1]}, endpoint="e"
        )
        assert query.polygon == RING
        assert query.bbox is None

    def test_optional_fields(self) -> None:
        query = parse_scene_request(
            {
                "date": "2023-07-01",
                "bbox": [0, 0, 1, 1],
                "compareDate": "2023-08-01",
                "seasonal": True,
                "variant": "ndvi",
                "resolution": 20,
            },
            endpoint="e",
        )
        assert query.compare_date == "2023-08-01"
        assert query.seasonal is True
        assert query.variant == "ndvi"
        assert query.resolution_m == 20.0

    def test_timestamp_date_truncated(self) -> None:
        query = parse_scene_request(
            {"date": "2023-07-01T10:00:00Z", "bbox": [0, 0, 1, 1]}, endpoint="e"
        )
        assert query.requested_date == "2023-07-01"

    def test_json_round_trip_body(self) -> None:
        raw = json.loads(json.dumps({"date": "2023-01-15", "coordinates": [RING]}))
        assert parse_scene_request(raw, endpoint="e").polygon == RING

    @pytest.mark.parametrize(
        ("raw", "code"),
        [
            ([], "PAYLOAD_NOT_OBJECT"),
            ({"bbox": [0, 0, 1, 1]}, "PAYLOAD_MISSING_KEYS"),
            ({"date": "2023-01-15"}, "PAYLOAD_MISSING_KEYS"),
            ({"date": "15/01/2023", "bbox": [0, 0, 1, 1]}, "PAYLOAD_INVALID_DATE"),
            (
                {"date": "2023-01-15", "compareDate": "soon", "bbox": [0, 0, 1, 1]},
                "PAYLOAD_INVALID_DATE",
            ),
            ({"date": "2023-01-15", "bbox": [0, 0, 1]}, "PAYLOAD_INVALID_BBOX"),
            ({"date": "2023-01-15", "bbox": [-200, 0, -199, 1]}, "PAYLOAD_INVALID_BBOX"),
            ({"date": "2023-01-15", "bbox": [0, -91, 1, 1]}, "PAYLOAD_INVALID_BBOX"),
            ({"date": "2023-01-15", "bbox": [0, 0, "1e400", 1]}, "PAYLOAD_INVALID_BBOX"),
            ({"date": "2023-01-15", "bbox": [0, 0, float("inf"), 1]}, "PAYLOAD_INVALID_BBOX"),
            ({"date": "2023-01-15", "bbox": [0, 0, True, 1]}, "PAYLOAD_INVALID_BBOX"),
            ({"date": "2023-01-15", "bbox": [1, 0, 0, 1]}, "PAYLOAD_INVALID_BBOX"),
            ({"date": "2023-01-15", "coordinates": "ring"}, "PAYLOAD_INVALID_VALUE"),
            (
                {"date": "2023-01-15", "bbox": [0, 0, 1, 1], "resolution": 0},
                "PAYLOAD_INVALID_VALUE",
            ),
            (
                {"date": "2023-01-15", "bbox": [0, 0, 1, 1], "resolution": "10m"},
                "PAYLOAD_INVALID_VALUE",
            ),
        ],
    )
    def test_contract_violations(self, raw: object, code: str) -> None:
        with pytest.raises(ContractError) as exc_info:
            parse_scene_request(raw, endpoint="sentinel2")
        assert exc_info.value.code == code
        assert exc_info.value.category == "contract"


class TestSceneResponse:
    """SceneResponse serialisation."""

    def test_camel_case_and_none_omitted(self) -> None:
        response = SceneResponse(
            requested_date="2023-07-01",
            resolved_date="2023-01-15",
            tier="curated",
            used_bbox=[0.0, 0.0, 1.0, 1.0],
        )
        body = response.to_dict()
        assert body["hasCoverage"] is True
        assert body["requestedDate"] == "2023-07-01"
        assert body["resolvedDate"] == "2023-01-15"
        assert body["usedBbox"] == [0.0, 0.0, 1.0, 1.0]
        assert "image" not in body
        assert "deltaDb" not in body

    def test_nested_comparison(self) -> None:
        response = SceneResponse(
            requested_date="2023-07-01",
            comparison=DateStatistics(requested_date="2023-08-01", resolved_date="2023-08-03"),
            delta_db=-1.5,
        )
        body = json.loads(response.to_json())
        assert body["comparison"]["resolvedDate"] == "2023-08-03"
        assert body["deltaDb"] == -1.5

    def test_no_coverage_document(self) -> None:
        body = SceneResponse(
            has_coverage=False, requested_date="2023-07-01", suggested_dates=["2023-07-03"]
        ).to_dict()
        assert body["hasCoverage"] is False
        assert body["suggestedDates"] == ["2023-07-03"]
