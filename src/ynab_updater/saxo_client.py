"""Balance source for a Saxo Bank account, read through the OpenAPI."""
from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from ynab_updater.auth_flow import AuthorizationFlow
from ynab_updater.balance_source import AccountConfig
from ynab_updater.config import SaxoSettings
from ynab_updater.errors import BalanceSourceError

LOGGER = logging.getLogger(__name__)

SAXO_API_URL = "https://gateway.saxobank.com/openapi"


class SaxoClient:
    """Fetches the total account value once the OAuth flow has produced a token."""

    def __init__(
        self,
        *,
        settings: SaxoSettings,
        auth_flow: AuthorizationFlow,
        base_url: str = SAXO_API_URL,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings
        self._auth_flow = auth_flow
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()

    def account_config(self) -> AccountConfig:
        return AccountConfig(
            account_id=self._settings.account_id,
            reconciliation_payee_id=self._settings.reconciliation_payee_id,
        )

    def fetch_balance(self) -> float:
        token = self._auth_flow.authorize()
        payload = self._request("GET", "/port/v1/balances/me", access_token=token.access_token)
        try:
            return float(payload["TotalValue"])
        except (KeyError, TypeError, ValueError) as exc:
            raise BalanceSourceError(f"Saxo balance response has no usable TotalValue: {exc}") from exc

    def _request(self, method: str, path: str, *, access_token: str) -> Dict:
        url = f"{self._base_url}{path}"
        headers = {"Authorization": f"Bearer {access_token}"}
        LOGGER.debug("Saxo request %s %s", method, url)
        try:
            response = self._session.request(method, url, headers=headers, timeout=30)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise BalanceSourceError(f"Saxo request {method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise BalanceSourceError(f"Saxo response to {method} {path} is not JSON") from exc
        if not isinstance(payload, dict):
            raise BalanceSourceError(f"Saxo response to {method} {path} is not a JSON object")
        return payload
