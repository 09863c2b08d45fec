"""
ingestion.http_handlers 단위 테스트

업로드/추적 조회 엔드포인트의 순수 함수 동작을 테스트합니다.
"""

import json
import pytest

from closurewatch.core.models import TrackedEntry
from closurewatch.ingestion.http_handlers import handle_tracked, handle_upload
from conftest import make_region, make_snapshot


def body(data) -> bytes:
    return json.dumps(data).encode()


CLOSURE = {"id": "c1", "segmentId": "42", "createdBy": "alice", "createdOn": 1, "location": "Springfield"}


class TestHandleUpload:
    """handle_upload 테스트"""

    @pytest.fixture
    def snapshot(self):
        return make_snapshot(make_region("US"))

    def test_approved_user_gets_batch(self, snapshot):
        result = handle_upload(body({"userName": "alice", "closures": [CLOSURE]}), snapshot)

        assert result.status == 200
        assert result.body == "Upload complete"
        assert result.batch.user_name == "alice"
        assert [c.id for c in result.batch.closures] == ["c1"]
        assert result.provision is None

    def test_unknown_user_provisioned_and_404(self, snapshot):
        result = handle_upload(body({"userName": "carol", "closures": [CLOSURE]}), snapshot)

        assert result.status == 404
        assert result.provision == "carol"
        assert result.batch is None

    def test_pending_user_404_without_provision(self, snapshot):
        result = handle_upload(body({"userName": "bob", "closures": []}), snapshot)

        assert result.status == 404
        assert result.provision is None

    @pytest.mark.parametrize("user", ["undefined", "null", "", None, 5])
    def test_placeholder_users(self, snapshot, user):
        result = handle_upload(body({"userName": user, "closures": []}), snapshot)
        assert result.status == 404
        assert result.provision is None

    @pytest.mark.parametrize("raw", [b"", b"   ", b"{not json", b"[1, 2]"])
    def test_malformed_bodies(self, snapshot, raw):
        result = handle_upload(raw, snapshot)
        assert result.status == 400
        assert result.batch is None
        assert result.provision is None

    def test_malformed_closures(self, snapshot):
        result = handle_upload(body({"userName": "alice", "closures": [{"id": "x"}]}), snapshot)
        assert result.status == 400

        result = handle_upload(body({"userName": "alice", "closures": "x"}), snapshot)
        assert result.status == 400


class TestHandleTracked:
    """handle_tracked 테스트"""

    @pytest.fixture
    def snapshot(self):
        return make_snapshot(make_region("US", env="na"), make_region("UK", env="row"))

    @pytest.fixture
    def entries(self):
        return [
            TrackedEntry(closure_id="a", first_seen="t", region="US"),
            TrackedEntry(closure_id="b", first_seen="t", region="UK"),
            TrackedEntry(closure_id="c", first_seen="t", region="GONE"),
        ]

    def test_all_ids(self, snapshot, entries):
        result = handle_tracked(body({"userName": "alice"}), snapshot, entries)
        assert result.status == 200
        assert result.media_type == "application/json"
        assert result.body == ["a", "b", "c"]

    def test_env_filter(self, snapshot, entries):
        result = handle_tracked(body({"userName": "alice", "env": "row"}), snapshot, entries)
        assert result.body == ["b"]

    def test_gating(self, snapshot, entries):
        assert handle_tracked(body({"userName": "bob"}), snapshot, entries).status == 404
        unknown = handle_tracked(body({"userName": "zed"}), snapshot, entries)
        assert unknown.status == 404
        assert unknown.provision == "zed"
        assert handle_tracked(b"", snapshot, entries).status == 400
