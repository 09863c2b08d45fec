"""
hypothesis를 활용한 region 모듈 테스트

리전 해석의 결정성, 선언 순서 우선, 재배정 시 현재 리전 제외를 검증합니다.
"""

from hypothesis import given, strategies as st

from closurewatch.core.models import Region
from closurewatch.core.region import needs_reassignment, resolve

keyword = st.text(alphabet="abcdefgh", min_size=1, max_size=4)
regions_strategy = st.lists(
    st.tuples(st.text(alphabet="XYZ", min_size=1, max_size=3), st.lists(keyword, min_size=0, max_size=3)),
    min_size=0,
    max_size=5,
).map(lambda items: [Region(name=n, keywords=tuple(k)) for n, k in items])


class TestResolve:
    """resolve 속성 테스트"""

    @given(regions=regions_strategy, location=st.text(alphabet="abcdefgh ,", max_size=20))
    def test_deterministic(self, regions, location):
        """같은 설정과 위치는 항상 같은 결과"""
        first = resolve(location, regions)
        second = resolve(location, regions)
        assert (first.name if first else None) == (second.name if second else None)

    @given(regions=regions_strategy, location=st.text(alphabet="abcdefgh ,", max_size=20))
    def test_first_declared_match_wins(self, regions, location):
        """결과는 일치하는 리전 중 가장 먼저 선언된 것"""
        result = resolve(location, regions)
        matching = [r for r in regions if any(k in location.lower() for k in r.keywords)]
        if not location:
            assert result is None
        elif matching:
            assert result is matching[0]
        else:
            assert result is None

    def test_case_insensitive_substring(self):
        regions = [Region(name="US", keywords=("springfield",)), Region(name="CA", keywords=("ontario",))]
        assert resolve("Springfield, IL", regions).name == "US"
        assert resolve("Toronto, ONTARIO", regions).name == "CA"
        assert resolve("Paris", regions) is None
        assert resolve(None, regions) is None

    def test_exclude_current_region(self):
        regions = [Region(name="A", keywords=("main",)), Region(name="B", keywords=("main",))]
        assert resolve("Main St", regions).name == "A"
        assert resolve("Main St", regions, exclude="A").name == "B"
        assert resolve("Main St", regions[:1], exclude="A") is None

    def test_needs_reassignment(self):
        region = Region(name="US", keywords=("springfield",))
        assert not needs_reassignment(region, "Springfield, IL")
        assert needs_reassignment(region, "Shelbyville, IL")
        assert needs_reassignment(region, None)
