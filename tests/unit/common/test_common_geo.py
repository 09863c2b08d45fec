"""
common.geo 단위 테스트
"""

import pytest

from closurewatch.common.geo import bbox_around, round_half_up, validate_coordinates


class TestGeo:
    def test_validate_coordinates(self):
        assert validate_coordinates(0, 0)
        assert not validate_coordinates(91, 0)
        assert not validate_coordinates(0, -181)

    def test_round_half_up(self):
        assert round_half_up(0.125, 2) == pytest.approx(0.13)
        assert round_half_up(2.5, 0) == 3.0
        assert round_half_up(-1.2345, 2) == pytest.approx(-1.23)

    def test_bbox_around(self):
        lon1, lat1, lon2, lat2 = bbox_around(39.7817, -89.6501)
        assert lon1 == pytest.approx(-89.645)
        assert lat1 == pytest.approx(39.787)
        assert lon2 == pytest.approx(-89.655)
        assert lat2 == pytest.approx(39.777)
