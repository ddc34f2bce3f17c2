"""
custody.py - In-memory token custody and liquidity pool

Reference implementations of the CollateralCustody and LiquidityPool
collaborators, backed by simple integer token balances. They stand in
for the collateral vault and the funded lending contract of the
on-chain deployment and keep every token movement conservative: tokens
only move between holders, never appear or vanish (except by mint).

Each object carries its own lock because it is shared by all loans.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, Optional
import threading

from .core import CustodyError, Identity, require_amount


class TokenBalances:
    """
    Integer balances of a single token across holders.

    Example:
        usdc = TokenBalances("USDC", decimals=6)
        usdc.mint("pool", 10_000 * 10**6)
        usdc.transfer("pool", "alice", 35 * 10**6)
    """

    def __init__(self, symbol: str, decimals: int):
        self.symbol = symbol
        self.decimals = decimals
        self._balances: Dict[Identity, int] = defaultdict(int)
        self._lock = threading.RLock()

    def balance_of(self, holder: Identity) -> int:
        with self._lock:
            return self._balances.get(holder, 0)

    def mint(self, to: Identity, amount: int) -> None:
        require_amount("amount", amount)
        with self._lock:
            self._balances[to] += amount

    def transfer(self, source: Identity, dest: Identity, amount: int) -> None:
        """
        Move tokens between holders.

        Raises:
            CustodyError: If source holds less than amount.
        """
        require_amount("amount", amount, allow_zero=True)
        with self._lock:
            available = self._balances.get(source, 0)
            if available < amount:
                raise CustodyError(
                    f"{source} holds {available} {self.symbol}, cannot transfer {amount}"
                )
            self._balances[source] = available - amount
            self._balances[dest] += amount

    def total_supply(self) -> int:
        """Sum of all balances; constant apart from mint()."""
        with self._lock:
            return sum(self._balances[h] for h in sorted(self._balances))

    def __repr__(self):
        return f"TokenBalances({self.symbol}, holders={len(self._balances)})"


class CollateralVault:
    """
    Collateral custody over a collateral token.

    hold() pulls tokens from the borrower into the vault account and
    credits the borrower's held balance; release() pays held tokens out
    to the borrower or to a recipient such as a liquidator.
    """

    def __init__(self, token: TokenBalances, vault_id: Identity = "vault"):
        self.token = token
        self.vault_id = vault_id
        self._held: Dict[Identity, int] = defaultdict(int)
        self._lock = threading.RLock()

    def hold(self, borrower: Identity, amount: int) -> None:
        require_amount("amount", amount)
        with self._lock:
            self.token.transfer(borrower, self.vault_id, amount)
            self._held[borrower] += amount

    def release(self, borrower: Identity, amount: int, recipient: Optional[Identity] = None) -> int:
        """
        Pay out collateral held for borrower.

        Raises:
            CustodyError: If more than the borrower's held balance is requested.
        """
        require_amount("amount", amount, allow_zero=True)
        with self._lock:
            held = self._held.get(borrower, 0)
            if amount > held:
                raise CustodyError(f"Release {amount} exceeds {held} held for {borrower}")
            self.token.transfer(self.vault_id, recipient or borrower, amount)
            self._held[borrower] = held - amount
        return amount

    def held_by(self, borrower: Identity) -> int:
        with self._lock:
            return self._held.get(borrower, 0)

    def total_held(self) -> int:
        with self._lock:
            return sum(self._held.values())

    def __repr__(self):
        return f"CollateralVault({self.token.symbol}, held={self.total_held()})"


class LendingPool:
    """
    Liquidity pool over the debt token.

    The pool account funds disbursements and receives repayments and
    liquidator payments.
    """

    def __init__(self, token: TokenBalances, pool_id: Identity = "pool"):
        self.token = token
        self.pool_id = pool_id

    def balance(self) -> int:
        return self.token.balance_of(self.pool_id)

    def disburse(self, to: Identity, amount: int) -> None:
        self.token.transfer(self.pool_id, to, amount)

    def collect(self, from_: Identity, amount: int) -> None:
        self.token.transfer(from_, self.pool_id, amount)

    def __repr__(self):
        return f"LendingPool({self.token.symbol}, balance={self.balance()})"
