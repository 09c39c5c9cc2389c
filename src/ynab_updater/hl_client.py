"""Balance source that logs into the Hargreaves Lansdown portal and scrapes the total."""
from __future__ import annotations

import logging
import re
from typing import List, Optional

import requests
from bs4 import BeautifulSoup

from ynab_updater.balance_source import AccountConfig
from ynab_updater.config import HLSettings
from ynab_updater.errors import BalanceSourceError

LOGGER = logging.getLogger(__name__)

HL_BASE_URL = "https://online.hl.co.uk/my-accounts"

_SECURE_DIGIT_RE = re.compile(r"Enter the (\d)\w{2} digit from your Secure Number")
_AMOUNT_RE = re.compile(r"-?\d[\d,]*(?:\.\d+)?")
_TOTAL_SELECTOR = "#content-body-full > div > div.main-content > table > tfoot > tr > td:nth-child({})"
_TOTAL_COLUMNS = (2, 3)


class HargreavesLansdownClient:
    """Walks the two-step login and sums the totals row of the accounts page.

    The session keeps the portal's cookies between steps.
    """

    def __init__(
        self,
        *,
        settings: HLSettings,
        base_url: str = HL_BASE_URL,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()

    def account_config(self) -> AccountConfig:
        return AccountConfig(
            account_id=self._settings.account_id,
            reconciliation_payee_id=self._settings.reconciliation_payee_id,
        )

    def fetch_balance(self) -> float:
        hl_vt = self._get_hl_vt()
        self._login_step_one(hl_vt)
        indices = self._secure_number_indices()
        accounts_page = self._submit_secure_numbers(hl_vt, indices)
        return parse_total(accounts_page)

    def _get_hl_vt(self) -> str:
        soup = _soup(self._get("/login-step-one"))
        node = soup.select_one('input[name="hl_vt"]')
        if node is None or not node.get("value"):
            raise BalanceSourceError("HL login page has no hl_vt token")
        return node["value"]

    def _login_step_one(self, hl_vt: str) -> None:
        self._post(
            "/login-step-one",
            {
                "hl_vt": hl_vt,
                "username": self._settings.username,
                "date-of-birth": self._settings.date_of_birth,
            },
        )

    def _secure_number_indices(self) -> List[int]:
        return parse_secure_number_indices(self._get("/login-step-two"))

    def _submit_secure_numbers(self, hl_vt: str, indices: List[int]) -> str:
        digits = self._settings.secure_numbers
        try:
            form = {
                "hl_vt": hl_vt,
                "online-password-verification": self._settings.password,
                "secure-number[1]": digits[indices[0]],
                "secure-number[2]": digits[indices[1]],
                "secure-number[3]": digits[indices[2]],
                "submit": " Log in   ",
            }
        except IndexError as exc:
            raise BalanceSourceError("HL asked for a secure number digit outside the configured six") from exc
        return self._post("/login-step-two", form)

    def _get(self, path: str) -> str:
        return self._send("GET", path)

    def _post(self, path: str, form: dict) -> str:
        return self._send("POST", path, data=form)

    def _send(self, method: str, path: str, *, data: Optional[dict] = None) -> str:
        url = f"{self._base_url}{path}"
        LOGGER.debug("HL request %s %s", method, url)
        try:
            response = self._session.request(method, url, data=data, timeout=30)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise BalanceSourceError(f"HL request {method} {path} failed: {exc}") from exc
        return response.text


def parse_secure_number_indices(html: str) -> List[int]:
    """Return the zero-based secure number positions the login page asks for."""

    soup = _soup(html)
    indices: List[int] = []
    for position in (1, 2, 3):
        node = soup.select_one(f'input[id="secure-number-{position}"]')
        if node is None:
            raise BalanceSourceError(f"HL login page has no secure-number-{position} input")
        match = _SECURE_DIGIT_RE.search(node.get("title", ""))
        if not match:
            raise BalanceSourceError(f"Unable to read which digit secure-number-{position} wants")
        index = int(match.group(1)) - 1
        if index < 0:
            raise BalanceSourceError(f"HL asked for digit {match.group(1)} of the secure number")
        indices.append(index)
    return indices


def parse_total(html: str) -> float:
    """Sum the figures in the totals row of the accounts page."""

    soup = _soup(html)
    total = 0.0
    for column in _TOTAL_COLUMNS:
        cell = soup.select_one(_TOTAL_SELECTOR.format(column))
        if cell is None:
            raise BalanceSourceError(f"HL accounts page has no total in column {column}")
        text = cell.get_text(strip=True)
        match = _AMOUNT_RE.search(text)
        if not match:
            raise BalanceSourceError(f"Unable to parse HL total {text!r}")
        total += float(match.group(0).replace(",", ""))
    return total


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")
