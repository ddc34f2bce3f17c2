"""
keeper.py - Liquidation Keeper

Drives liquidations of under-collateralized loans as time advances.

Execution order each step():
1. Advance ledger time
2. Scan active loans for health factor < 1.0 (on demand, nothing persisted)
3. Liquidate each eligible loan, sizing the repayment down to what the
   posted collateral can cover when a full repayment would over-seize

The ledger's event list is the audit trail; the keeper keeps no state of
its own besides the liquidator identity.
"""

from __future__ import annotations
from typing import List, Optional
import logging

from .core import (
    Identity, LendingError, LoanHealth, LoanLiquidated, LoanNotActive,
    SeizureExceedsCollateral,
)
from .ledger import LoanLedger
from .loans import calculate_max_coverable_repay


logger = logging.getLogger(__name__)


class LiquidationKeeper:
    """
    Liquidation bot for one ledger.

    The keeper repays on behalf of `liquidator`, which must hold enough
    debt tokens in the pool's token for the repayments it makes.
    """

    def __init__(self, ledger: LoanLedger, liquidator: Identity):
        self.ledger = ledger
        self.liquidator = liquidator

    def scan(self) -> List[LoanHealth]:
        """
        Health of every active loan that is currently liquidatable.

        Raises:
            OracleError: If the price feed is unusable.
        """
        eligible: List[LoanHealth] = []
        for loan in self.ledger.active_loans():
            try:
                health = self.ledger.loan_health(loan.id)
            except LoanNotActive:
                continue  # closed since the snapshot
            if health.liquidatable:
                eligible.append(health)
        return eligible

    def step(self, timestamp: int, max_repay: Optional[int] = None) -> List[LoanLiquidated]:
        """
        Advance time and liquidate every eligible loan.

        Args:
            timestamp: New ledger time
            max_repay: Per-loan repayment cap (default: the full current debt)

        Returns:
            Liquidation events produced by this step.
        """
        self.ledger.advance_time(timestamp)
        executed: List[LoanLiquidated] = []

        for health in self.scan():
            repay = health.current_debt if max_repay is None else min(max_repay, health.current_debt)
            try:
                event = self._liquidate(health, repay)
            except LendingError as exc:
                logger.warning(
                    "keeper skipped loan %d at %d: %s", health.loan_id, timestamp, exc
                )
                continue
            if event is not None:
                executed.append(event)
        return executed

    def _liquidate(self, health: LoanHealth, repay: int) -> Optional[LoanLiquidated]:
        try:
            return self.ledger.execute_liquidation(health.loan_id, self.liquidator, repay)
        except SeizureExceedsCollateral:
            loan = self.ledger.get_loan(health.loan_id)
            repay = calculate_max_coverable_repay(
                loan.collateral_amount,
                self.ledger.liquidation_params.bonus_bps,
                health.price,
                self.ledger.collateral_decimals,
                self.ledger.debt_decimals,
            )
        if repay == 0:
            logger.warning("keeper: loan %d has no coverable repayment", health.loan_id)
            return None
        return self.ledger.execute_liquidation(health.loan_id, self.liquidator, repay)
