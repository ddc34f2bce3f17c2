"""
credit_registry.py - Credit score registry

Stores the committed score hash and tier per borrower. A single updater
identity (the scoring service's wallet) may write; anyone may read. The
ledger consumes it as its CreditTierSource.

How a score is produced is outside this package; the registry only sees
the commitment and the resulting tier.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional
import hashlib
import threading

from .core import Identity, TierCode, Unauthorized, ConfigurationError
from .tier_policy import parse_tier


def score_commitment(address: Identity, score: int) -> str:
    """
    Hex sha256 of "address:score", the value committed for a score.

    Raises:
        ConfigurationError: If score is outside 0..100.
    """
    if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 100:
        raise ConfigurationError(f"score must be an integer in [0, 100], got {score!r}")
    return hashlib.sha256(f"{address}:{score}".encode()).hexdigest()


@dataclass(frozen=True, slots=True)
class ScoreRecord:
    score_hash: str
    tier: int


class CreditScoreRegistry:
    """Score hash and tier per user, writable by one updater."""

    def __init__(self, updater: Identity):
        self.updater = updater
        self._records: Dict[Identity, ScoreRecord] = {}
        self._lock = threading.Lock()

    def set_score(self, caller: Identity, user: Identity, score_hash: str, tier: TierCode) -> ScoreRecord:
        if caller != self.updater:
            raise Unauthorized(f"{caller} may not write credit scores")
        record = ScoreRecord(score_hash=score_hash, tier=parse_tier(tier))
        with self._lock:
            self._records[user] = record
        return record

    def commit_score(self, caller: Identity, user: Identity, score: int, tier: TierCode) -> ScoreRecord:
        """Hash a raw score and store it with its tier."""
        return self.set_score(caller, user, score_commitment(user, score), tier)

    def get_score(self, user: Identity) -> Optional[ScoreRecord]:
        with self._lock:
            return self._records.get(user)

    def get_tier(self, user: Identity) -> Optional[int]:
        record = self.get_score(user)
        return None if record is None else record.tier

    def __repr__(self):
        return f"CreditScoreRegistry(updater={self.updater!r}, users={len(self._records)})"
