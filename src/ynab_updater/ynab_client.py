"""Client utilities for interacting with the YNAB API."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from ynab_updater.errors import LedgerError

LOGGER = logging.getLogger(__name__)

YNAB_API_URL = "https://api.ynab.com/v1"


@dataclass
class LedgerTransaction:
    """A YNAB transaction.

    Only ``date``, ``amount`` and ``payee_id`` are interpreted; every other
    field of the payload is kept in ``extra`` so it can be sent back untouched.
    """

    id: str
    date: date
    amount: int
    payee_id: Optional[str]
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict) -> "LedgerTransaction":
        try:
            extra = {k: v for k, v in payload.items() if k not in ("id", "date", "amount", "payee_id")}
            return cls(
                id=payload["id"],
                date=date.fromisoformat(payload["date"]),
                amount=int(payload["amount"]),
                payee_id=payload.get("payee_id"),
                extra=extra,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise LedgerError(f"Malformed transaction in YNAB response: {exc}") from exc

    def to_payload(self) -> Dict:
        return {
            **self.extra,
            "id": self.id,
            "date": self.date.isoformat(),
            "amount": self.amount,
            "payee_id": self.payee_id,
        }


@dataclass
class YnabAccount:
    id: str
    balance: int


class YnabClient:
    """Minimal HTTP client for the YNAB budget API."""

    def __init__(
        self,
        *,
        bearer_token: str,
        budget_id: str,
        base_url: str = YNAB_API_URL,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._bearer_token = bearer_token
        self._budget_id = budget_id
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()

    def get_account(self, account_id: str) -> YnabAccount:
        payload = self._request("GET", f"/budgets/{self._budget_id}/accounts/{account_id}")
        try:
            account = payload["account"]
            return YnabAccount(id=account["id"], balance=int(account["balance"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise LedgerError(f"Malformed account in YNAB response: {exc}") from exc

    def list_transactions(self, account_id: str) -> List[LedgerTransaction]:
        """Return the account's transactions, most recent last."""

        payload = self._request("GET", f"/budgets/{self._budget_id}/accounts/{account_id}/transactions")
        items = payload.get("transactions", [])
        transactions = [LedgerTransaction.from_payload(item) for item in items if not item.get("deleted")]
        transactions.sort(key=lambda txn: txn.date)
        LOGGER.info("YNAB returned %d transactions for account %s", len(transactions), account_id)
        return transactions

    def create_transaction(self, transaction: Dict) -> Dict:
        LOGGER.info("Creating transaction of %s on %s", transaction.get("amount"), transaction.get("date"))
        return self._request("POST", f"/budgets/{self._budget_id}/transactions", json={"transaction": transaction})

    def amend_transaction(self, transaction_id: str, transaction: Dict) -> Dict:
        LOGGER.info("Updating transaction %s", transaction_id)
        return self._request(
            "PUT",
            f"/budgets/{self._budget_id}/transactions/{transaction_id}",
            json={"transaction": transaction},
        )

    def _request(self, method: str, path: str, *, json: Optional[Dict] = None) -> Dict:
        url = f"{self._base_url}{path}"
        headers = {"Authorization": f"Bearer {self._bearer_token}"}
        LOGGER.debug("YNAB request %s %s", method, url)
        try:
            response = self._session.request(method, url, headers=headers, json=json, timeout=30)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise LedgerError(f"YNAB request {method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise LedgerError(f"YNAB response to {method} {path} is not JSON") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            raise LedgerError(f"YNAB response to {method} {path} has no data")
        return payload["data"]
