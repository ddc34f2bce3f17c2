"""
test_tier_policy.py - Unit tests for credit tier terms

Tests:
- Default A/B/C table
- Tier letter and code parsing
- Parameter validation and overrides
"""

import pytest

from chainflow import TIER_A, TIER_B, TIER_C, ConfigurationError, TierParams, TierPolicy, parse_tier
from chainflow.tier_policy import validate_tier_params


class TestDefaults:

    def test_default_table(self):
        policy = TierPolicy()
        assert policy.lookup(TIER_A) == TierParams(ltv_bps=7000, apr_bps=600)
        assert policy.lookup(TIER_B) == TierParams(ltv_bps=6000, apr_bps=900)
        assert policy.lookup(TIER_C) == TierParams(ltv_bps=5000, apr_bps=1200)

    def test_lookup_by_letter(self):
        policy = TierPolicy()
        assert policy.lookup("A") == policy.lookup(2)
        assert policy.lookup(" b ") == policy.lookup(1)

    def test_as_dict_ordered_best_first(self):
        assert list(TierPolicy().as_dict()) == ["A", "B", "C"]

    def test_unknown_tier_lookup(self):
        with pytest.raises(ConfigurationError):
            TierPolicy().lookup(3)


class TestParseTier:

    @pytest.mark.parametrize("tier,code", [("A", 2), ("B", 1), ("C", 0), ("c", 0), (2, 2), (0, 0)])
    def test_valid(self, tier, code):
        assert parse_tier(tier) == code

    @pytest.mark.parametrize("tier", ["D", "", 3, -1, True, 1.0, None])
    def test_invalid(self, tier):
        with pytest.raises(ConfigurationError):
            parse_tier(tier)


class TestSetParams:

    def test_override_one_tier(self):
        policy = TierPolicy()
        policy.set_params("C", 5500, 1100)
        assert policy.lookup(TIER_C) == TierParams(5500, 1100)
        assert policy.lookup(TIER_B) == TierParams(6000, 900)

    def test_constructor_overrides(self):
        policy = TierPolicy({"A": TierParams(8000, 500)})
        assert policy.lookup(TIER_A).ltv_bps == 8000
        assert policy.lookup(TIER_B).ltv_bps == 6000

    def test_full_ltv_allowed(self):
        assert validate_tier_params(10_000, 0) == TierParams(10_000, 0)

    @pytest.mark.parametrize("ltv,apr", [(10_001, 600), (-1, 600), (7000, -1), (7000.0, 600), (7000, True)])
    def test_rejects_invalid(self, ltv, apr):
        with pytest.raises(ConfigurationError):
            TierPolicy().set_params("A", ltv, apr)

    def test_failed_update_keeps_previous(self):
        policy = TierPolicy()
        with pytest.raises(ConfigurationError):
            policy.set_params("A", 20_000, 600)
        assert policy.lookup(TIER_A) == TierParams(7000, 600)
