"""
hypothesis를 활용한 age policy 모듈 테스트

maxClosureAgeDays 0/양수/음수 각각의 경계를 검증합니다.
"""

from hypothesis import given, strategies as st

from closurewatch.core.policy import DAY_MS, FALLBACK_WINDOW_MS, evaluate, is_eligible
from conftest import make_closure, make_region

NOW = 1_750_000_000_000


class TestActiveOnly:
    """maxClosureAgeDays == 0"""

    def test_end_equal_now_is_eligible(self):
        event = make_closure(startDate=NOW - 1000, endDate=NOW)
        assert is_eligible(event, 0, NOW)

    def test_end_one_ms_before_now_is_not(self):
        event = make_closure(startDate=NOW - 1000, endDate=NOW - 1)
        assert not is_eligible(event, 0, NOW)

    def test_not_started_yet(self):
        event = make_closure(startDate=NOW + 1, endDate=NOW + 1000)
        assert not is_eligible(event, 0, NOW)

    def test_fallback_window_from_start(self):
        event = make_closure(startDate=NOW - FALLBACK_WINDOW_MS)
        assert is_eligible(event, 0, NOW)
        event = make_closure(startDate=NOW - FALLBACK_WINDOW_MS - 1)
        assert not is_eligible(event, 0, NOW)

    def test_created_on_used_when_start_missing(self):
        event = make_closure(createdOn=NOW - 10)
        assert is_eligible(event, 0, NOW)


class TestBoundedAge:
    """maxClosureAgeDays > 0"""

    @given(days=st.integers(min_value=1, max_value=30), offset=st.integers(min_value=0, max_value=5 * DAY_MS))
    def test_window(self, days, offset):
        event = make_closure(createdOn=NOW - offset)
        assert is_eligible(event, days, NOW) == (offset <= days * DAY_MS)

    def test_exact_boundary(self):
        assert is_eligible(make_closure(createdOn=NOW - 3 * DAY_MS), 3, NOW)
        assert not is_eligible(make_closure(createdOn=NOW - 3 * DAY_MS - 1), 3, NOW)


class TestUnlimited:
    @given(days=st.integers(max_value=-1), created=st.integers(min_value=0, max_value=NOW))
    def test_always_eligible(self, days, created):
        assert is_eligible(make_closure(createdOn=created), days, NOW)


def test_evaluate_uses_region_policy():
    region = make_region(maxClosureAgeDays=1)
    assert evaluate(make_closure(createdOn=NOW - DAY_MS), region, NOW)
    assert not evaluate(make_closure(createdOn=NOW - 2 * DAY_MS), region, NOW)
