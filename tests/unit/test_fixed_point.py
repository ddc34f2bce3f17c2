"""
test_fixed_point.py - Unit tests for integer fixed-point helpers
"""

import pytest

from chainflow import ConfigurationError
from chainflow.fixed_point import bps_of, from_wad, mul_div, to_wad, wad_scale


class TestWadScale:

    def test_native_18_decimals_is_identity(self):
        assert wad_scale(18) == 1

    def test_usdc_bridge_is_1e12(self):
        assert wad_scale(6) == 10 ** 12

    def test_zero_decimals(self):
        assert wad_scale(0) == 10 ** 18

    @pytest.mark.parametrize("decimals", [-1, 19, True, 6.0, "6"])
    def test_rejects_unsupported_decimals(self, decimals):
        with pytest.raises(ConfigurationError):
            wad_scale(decimals)


class TestConversions:

    def test_to_wad(self):
        assert to_wad(35_000_000, 6) == 35 * 10 ** 18

    def test_from_wad_truncates(self):
        assert from_wad(35 * 10 ** 18 + 999_999_999_999, 6) == 35_000_000

    def test_mul_div_truncates(self):
        assert mul_div(7, 3, 2) == 10

    def test_mul_div_zero_denominator(self):
        with pytest.raises(ZeroDivisionError):
            mul_div(1, 1, 0)

    def test_bps_of(self):
        assert bps_of(10_000_000, 500) == 500_000
        assert bps_of(50 * 10 ** 18, 7000) == 35 * 10 ** 18

    def test_bps_of_truncates(self):
        # 19 * 500 / 10000 = 0.95
        assert bps_of(19, 500) == 0
