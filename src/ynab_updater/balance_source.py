"""The capability every balance source provides to the updater."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class AccountConfig:
    """Which YNAB account a source feeds, and the payee its adjustments use."""

    account_id: str
    reconciliation_payee_id: Optional[str] = None


@runtime_checkable
class BalanceSource(Protocol):
    def fetch_balance(self) -> float:
        """Return the account's real balance in major currency units."""

    def account_config(self) -> AccountConfig:
        ...
