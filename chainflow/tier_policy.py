"""
tier_policy.py - Credit tier to lending terms

Static table mapping a credit tier to (max LTV, APR). Defaults follow the
ChainFlow borrow page: A 70% / 6%, B 60% / 9%, C 50% / 12%.
"""

from __future__ import annotations
from typing import Dict, Mapping, Optional

from .core import (
    BPS, TIER_A, TIER_B, TIER_C, TIER_LETTERS, TIER_NAMES,
    ConfigurationError, TierCode, TierParams,
)


DEFAULT_TIER_PARAMS: Dict[int, TierParams] = {
    TIER_A: TierParams(ltv_bps=7000, apr_bps=600),
    TIER_B: TierParams(ltv_bps=6000, apr_bps=900),
    TIER_C: TierParams(ltv_bps=5000, apr_bps=1200),
}


def parse_tier(tier: TierCode) -> int:
    """
    Map a tier letter ("A", "B", "C") or code (2, 1, 0) to its code.

    Raises:
        ConfigurationError: For anything else.
    """
    if isinstance(tier, str):
        code = TIER_LETTERS.get(tier.strip().upper())
        if code is None:
            raise ConfigurationError(f"Unknown tier {tier!r}")
        return code
    if isinstance(tier, bool) or not isinstance(tier, int) or tier not in TIER_NAMES:
        raise ConfigurationError(f"Unknown tier {tier!r}")
    return tier


def validate_tier_params(ltv_bps: int, apr_bps: int) -> TierParams:
    """Check an (ltv, apr) pair and return it as TierParams."""
    for name, value in (("ltv_bps", ltv_bps), ("apr_bps", apr_bps)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if ltv_bps < 0 or ltv_bps > BPS:
        raise ConfigurationError(f"ltv_bps must be in [0, {BPS}], got {ltv_bps}")
    if apr_bps < 0:
        raise ConfigurationError(f"apr_bps cannot be negative, got {apr_bps}")
    return TierParams(ltv_bps=ltv_bps, apr_bps=apr_bps)


class TierPolicy:
    """
    Lookup table of TierParams keyed by tier code.

    Lookups are pure. The only mutation is set_params(); access control
    for it lives on the ledger, which owns the admin capability.
    """

    def __init__(self, params: Optional[Mapping[TierCode, TierParams]] = None):
        self._params: Dict[int, TierParams] = dict(DEFAULT_TIER_PARAMS)
        if params:
            for tier, tier_params in params.items():
                self.set_params(tier, tier_params.ltv_bps, tier_params.apr_bps)

    def lookup(self, tier: TierCode) -> TierParams:
        """Return the terms for a tier; unknown tiers raise ConfigurationError."""
        return self._params[parse_tier(tier)]

    def set_params(self, tier: TierCode, ltv_bps: int, apr_bps: int) -> TierParams:
        code = parse_tier(tier)
        tier_params = validate_tier_params(ltv_bps, apr_bps)
        self._params[code] = tier_params
        return tier_params

    def as_dict(self) -> Dict[str, TierParams]:
        """Snapshot keyed by tier letter."""
        return {TIER_NAMES[code]: p for code, p in sorted(self._params.items(), reverse=True)}

    def __repr__(self):
        terms = ", ".join(f"{k}={p.ltv_bps}/{p.apr_bps}" for k, p in self.as_dict().items())
        return f"TierPolicy({terms})"
