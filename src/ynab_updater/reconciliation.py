"""Decide how to bring a YNAB account balance in line with the real balance."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional, Union

from ynab_updater.ynab_client import LedgerTransaction


MILLIUNITS_PER_UNIT = 1000

RECONCILIATION_PAYEE_NAME = "Reconciliation Balance Adjustment"
RECONCILIATION_MEMO = "Entered automatically by YNAB"
RECONCILIATION_CATEGORY = "Uncategorized"


@dataclass(frozen=True)
class NoOp:
    reason: str


@dataclass(frozen=True)
class Amend:
    """Fold the new difference into the existing reconciliation transaction."""

    transaction: LedgerTransaction
    new_amount: int
    new_date: date

    @property
    def transaction_id(self) -> str:
        return self.transaction.id

    def to_payload(self) -> Dict:
        return {
            **self.transaction.to_payload(),
            "amount": self.new_amount,
            "date": self.new_date.isoformat(),
        }


@dataclass(frozen=True)
class Create:
    amount: int
    date: date
    payee_id: Optional[str]
    account_id: str

    def to_payload(self) -> Dict:
        return {
            "account_id": self.account_id,
            "date": self.date.isoformat(),
            "amount": self.amount,
            "payee_id": self.payee_id,
            "payee_name": RECONCILIATION_PAYEE_NAME,
            "category_name": RECONCILIATION_CATEGORY,
            "memo": RECONCILIATION_MEMO,
            "cleared": "reconciled",
            "approved": True,
        }


Decision = Union[NoOp, Amend, Create]


def to_milliunits(amount: float, scale: int = MILLIUNITS_PER_UNIT) -> int:
    return int(round(amount * scale))


def to_major_units(milliunits: int, scale: int = MILLIUNITS_PER_UNIT) -> float:
    return milliunits / scale


def decide(
    observed_balance: float,
    ledger_balance: int,
    last_transaction: Optional[LedgerTransaction],
    reconciliation_payee_id: Optional[str],
    account_id: str,
    today: date,
    *,
    scale: int = MILLIUNITS_PER_UNIT,
) -> Decision:
    """Compare the real balance with the ledger and pick the write to make.

    ``ledger_balance`` and transaction amounts are integer milliunits. The
    first-of-month transaction is kept as a monthly snapshot of the account's
    value, so it is never amended and a run on the 1st leaves it alone.
    """

    target = to_milliunits(observed_balance, scale)
    adjustment = target - ledger_balance

    if adjustment == 0:
        return NoOp("real and YNAB balances are equal")

    if last_transaction is not None and today.day == 1 and last_transaction.date.day == 1:
        return NoOp("there's already a transaction for the 1st")

    if (
        last_transaction is not None
        and reconciliation_payee_id is not None
        and last_transaction.payee_id == reconciliation_payee_id
        and last_transaction.date.day != 1
    ):
        return Amend(
            transaction=last_transaction,
            new_amount=last_transaction.amount + adjustment,
            new_date=today,
        )

    return Create(amount=adjustment, date=today, payee_id=reconciliation_payee_id, account_id=account_id)
