"""
core.models 단위 테스트

업로드 계약 파싱, 리전 설정 별칭, 허용 목록 정규화를 테스트합니다.
"""

import pytest
from pydantic import ValidationError

from closurewatch.core.models import (
    Allowlist,
    ClosureEvent,
    NotificationGroup,
    Region,
    UploadBatch,
    polyline_centroid,
    to_epoch_ms,
)
from conftest import make_closure


class TestClosureEvent:
    """ClosureEvent 파싱 테스트"""

    def test_upload_contract_fields(self):
        """camelCase 업로드 필드 파싱"""
        event = ClosureEvent.model_validate({
            "id": 123,
            "segmentId": 42,
            "createdBy": "editor_a",
            "createdOn": 1_700_000_000_000,
            "isForward": False,
            "lat": 1.5,
            "lon": 2.5,
            "location": "Springfield, IL",
            "roadTypeEnum": 3,
            "duration": "1 hour",
            "status": "Active",
        })

        assert event.id == "123"
        assert event.segment_id == "42"
        assert event.direction == "B➜A"
        assert event.road_type_enum == 3
        assert event.has_coordinates

    def test_upstream_raw_closure(self):
        """업스트림 원본 closure (modificationData, geometry) 파싱"""
        event = ClosureEvent.model_validate({
            "id": "u1",
            "segID": 7,
            "forward": True,
            "closureStatus": "ACTIVE",
            "startDate": "2025-06-01T10:00:00Z",
            "endDate": "2025-06-01T11:00:00Z",
            "modificationData": {"createdBy": 304, "createdOn": 1_748_772_000_000},
            "geometry": {"coordinates": [[10.0, 50.0], [12.0, 52.0]]},
        })

        assert event.created_by == "304"
        assert event.created_on == 1_748_772_000_000
        assert event.lon == pytest.approx(11.0)
        assert event.lat == pytest.approx(51.0)
        assert event.end_date - event.start_date == 3_600_000
        assert event.status == "ACTIVE"

    def test_modification_data_does_not_override(self):
        """명시적 작성자는 modificationData로 덮어쓰지 않음"""
        event = ClosureEvent.model_validate({
            "id": "u2", "segmentId": "1", "createdBy": "named", "createdOn": 5,
            "modificationData": {"createdBy": 999, "createdOn": 10},
        })
        assert event.created_by == "named"
        assert event.created_on == 5

    def test_direction_string(self):
        """방향 문자열로 isForward 유도"""
        event = ClosureEvent.model_validate({"id": "d", "segmentId": "1", "createdOn": 1, "direction": "B➜A"})
        assert event.is_forward is False

        explicit = ClosureEvent.model_validate(
            {"id": "e", "segmentId": "1", "createdOn": 1, "direction": "B➜A", "isForward": True}
        )
        assert explicit.is_forward is True

    def test_blank_location_becomes_none(self):
        assert make_closure(location="   ").location is None

    def test_missing_required_fields(self):
        with pytest.raises(ValidationError):
            ClosureEvent.model_validate({"id": "x"})

    def test_frozen(self):
        event = make_closure()
        with pytest.raises(ValidationError):
            event.location = "elsewhere"


class TestHelpers:
    def test_to_epoch_ms(self):
        assert to_epoch_ms(None) is None
        assert to_epoch_ms("1700000000000") == 1_700_000_000_000
        assert to_epoch_ms("1970-01-01T00:00:01Z") == 1000

    def test_polyline_centroid_single_point(self):
        assert polyline_centroid([3.0, 4.0]) == (3.0, 4.0)


class TestRegion:
    """Region 설정 별칭 테스트"""

    def test_aliases_and_defaults(self):
        region = Region.model_validate({
            "name": "US",
            "locationKeywordsFilter": ["Springfield", " "],
            "departmentOfTransporationUrl": "https://dot.test/{lat}/{lon}",
            "webhooks": [{"type": "discord", "url": "u"}],
        })

        assert region.keywords == ("springfield",)
        assert region.external_map_url == "https://dot.test/{lat}/{lon}"
        assert region.group_by_segment is True
        assert region.max_closure_age_days == 3

    def test_matches_case_insensitive(self):
        region = Region(name="US", keywords=("springfield",))
        assert region.matches("Main St, SPRINGFIELD, IL")
        assert not region.matches("Chicago, IL")
        assert not region.matches(None)


class TestAllowlist:
    """허용 목록 정규화 테스트"""

    def test_list_means_all_approved(self):
        allow = Allowlist.from_raw(["alice", "bob"])
        assert allow.status("alice") == "approved"
        assert allow.status("bob") == "approved"
        assert allow.status("carol") == "unknown"

    def test_map_flags(self):
        allow = Allowlist.from_raw({"alice": True, "bob": False})
        assert allow.status("alice") == "approved"
        assert allow.status("bob") == "pending"
        assert allow.to_raw() == {"alice": True, "bob": False}

    def test_missing_is_empty(self):
        assert Allowlist.from_raw(None).status("anyone") == "unknown"

    def test_invalid_shape(self):
        with pytest.raises(ValueError):
            Allowlist.from_raw("alice")


class TestBatchAndGroup:
    def test_upload_batch(self):
        batch = UploadBatch.model_validate({
            "userName": "alice",
            "closures": [{"id": "1", "segmentId": "2", "createdOn": 3}],
        })
        assert batch.user_name == "alice"
        assert len(batch.closures) == 1

    def test_group_must_not_be_empty(self):
        with pytest.raises(ValidationError):
            NotificationGroup(region="US", events=[])

    def test_group_properties(self):
        grp = NotificationGroup(region="US", events=[make_closure("a"), make_closure("b")])
        assert grp.is_aggregate
        assert grp.segment_id == "42"
