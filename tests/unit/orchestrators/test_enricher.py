"""
FeatureEnricher 단위 테스트

캐시 적중/미스, 단일 업스트림 조회, 인증 실패 전파를 테스트합니다.
"""

import pytest
from unittest.mock import AsyncMock

from closurewatch.errors import UpstreamAuthError, UpstreamError
from closurewatch.orchestrators.enricher import FeatureEnricher, needs_lookup
from conftest import make_closure


def features_payload():
    return {
        "users": {"objects": [{"id": 304, "userName": "editor_a", "rank": 3}]},
        "segments": {"objects": [{"id": 42, "roadType": 2, "primaryStreetID": 7}]},
        "streets": {"objects": [{"id": 7, "name": "Main St", "cityID": 100}]},
        "cities": {"objects": [{"id": 100, "name": "Springfield", "stateID": 5, "countryID": 235}]},
        "states": {"objects": [{"id": 5, "name": "Illinois"}]},
        "countries": {"objects": [{"id": 235, "name": "United States", "abbr": "US"}]},
    }


def sparse_closure(closure_id="c1", **overrides):
    """업스트림 원본처럼 이름이 비어 있는 closure"""
    data = dict(createdBy=304, location=None, roadType=None, roadTypeEnum=None)
    data.update(overrides)
    return make_closure(closure_id, **data)


class TestFeatureEnricher:
    """FeatureEnricher 테스트"""

    @pytest.fixture
    def source(self):
        source = AsyncMock()
        source.fetch_features = AsyncMock(return_value=features_payload())
        return source

    @pytest.fixture
    def store(self):
        store = AsyncMock()
        store.save = AsyncMock(return_value=0)
        return store

    def test_needs_lookup(self):
        assert not needs_lookup(make_closure())
        assert needs_lookup(make_closure(createdBy="304"))
        assert needs_lookup(make_closure(location=None))
        assert needs_lookup(make_closure(roadType=None, roadTypeEnum=None))

    @pytest.mark.asyncio
    async def test_complete_event_needs_no_fetch(self, source):
        enricher = FeatureEnricher(source)
        event = make_closure()

        assert await enricher.enrich(event) is event
        source.fetch_features.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_miss_fetches_once_and_fills_fields(self, source, store):
        enricher = FeatureEnricher(source, store)

        enriched = await enricher.enrich(sparse_closure(), env="na")

        assert enriched.created_by == "editor_a"
        assert enriched.location == "Main St, Springfield, Illinois, United States"
        assert enriched.road_type_enum == 2
        source.fetch_features.assert_awaited_once()
        bbox, env = source.fetch_features.await_args.args
        assert env == "na"
        assert bbox[0] == pytest.approx(-89.645)
        store.save.assert_awaited_once()
        saved = store.save.await_args.args[0]
        assert set(saved) == {"users", "segments", "streets", "cities", "states", "countries"}

    @pytest.mark.asyncio
    async def test_cache_amortization(self, source):
        """한 번 채워진 세그먼트/거리는 추가 조회 없이 사용"""
        enricher = FeatureEnricher(source)
        await enricher.enrich(sparse_closure("c1"))

        second = await enricher.enrich(sparse_closure("c2"))

        assert second.location == "Main St, Springfield, Illinois, United States"
        assert source.fetch_features.await_count == 1

    @pytest.mark.asyncio
    async def test_second_miss_becomes_unknown(self, source):
        """조회 후에도 없는 사용자는 재시도 없이 Unknown"""
        enricher = FeatureEnricher(source)

        enriched = await enricher.enrich(sparse_closure(createdBy=999))

        assert enriched.created_by == "Unknown"
        assert source.fetch_features.await_count == 1

    @pytest.mark.asyncio
    async def test_auth_error_propagates(self, source):
        source.fetch_features.side_effect = UpstreamAuthError("denied", status=403)
        enricher = FeatureEnricher(source)

        with pytest.raises(UpstreamAuthError):
            await enricher.enrich(sparse_closure())

    @pytest.mark.asyncio
    async def test_upstream_error_is_a_miss(self, source):
        source.fetch_features.side_effect = UpstreamError("boom", status=500)
        enricher = FeatureEnricher(source)

        enriched = await enricher.enrich(sparse_closure())

        assert enriched.created_by == "Unknown"
        assert enriched.location is None

    @pytest.mark.asyncio
    async def test_no_coordinates_skips_fetch(self, source):
        enricher = FeatureEnricher(source)

        enriched = await enricher.enrich(sparse_closure(lat=None, lon=None))

        source.fetch_features.assert_not_awaited()
        assert enriched.created_by == "Unknown"

    @pytest.mark.asyncio
    async def test_load_from_store(self, source, store):
        from closurewatch.core.features import FeatureCache, hydrate
        cache, _ = hydrate(FeatureCache(), features_payload())
        store.load = AsyncMock(return_value=cache)
        enricher = FeatureEnricher(source, store)

        await enricher.load()
        enriched = await enricher.enrich(sparse_closure())

        assert enriched.created_by == "editor_a"
        source.fetch_features.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_known_gap_is_not_refetched(self, source):
        """업스트림이 돌려주지 않은 도시는 같은 세그먼트에서 다시 조회하지 않음"""
        payload = features_payload()
        del payload["cities"]
        source.fetch_features.return_value = payload
        enricher = FeatureEnricher(source)

        first = await enricher.enrich(sparse_closure("c1"))
        second = await enricher.enrich(sparse_closure("c2"))

        assert source.fetch_features.await_count == 1
        assert first.location == second.location == "Main St"
        assert second.created_by == "editor_a"

    @pytest.mark.asyncio
    async def test_new_user_on_known_segment_still_fetches(self, source):
        enricher = FeatureEnricher(source)
        await enricher.enrich(sparse_closure("c1"))

        source.fetch_features.return_value = {"users": {"objects": [{"id": 305, "userName": "editor_b"}]}}
        enriched = await enricher.enrich(sparse_closure("c2", createdBy=305))

        assert source.fetch_features.await_count == 2
        assert enriched.created_by == "editor_b"
