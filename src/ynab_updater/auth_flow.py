"""OAuth authorization-code and refresh-token flow for the Saxo OpenAPI."""
from __future__ import annotations

import functools
import logging
from typing import Callable, Dict, Optional

import requests

from ynab_updater import token_cache
from ynab_updater.config import SaxoSettings
from ynab_updater.errors import AuthFlowError
from ynab_updater.notifier import PushoverNotifier
from ynab_updater.redirect_receiver import await_code
from ynab_updater.token_cache import CachedToken

LOGGER = logging.getLogger(__name__)

SAXO_AUTH_URL = "https://live.logonvalidation.net/authorize"
SAXO_TOKEN_URL = "https://live.logonvalidation.net/token"
LOGIN_STATE = "0"


class AuthorizationFlow:
    """Produce a freshly refreshed token pair, logging the user in if needed.

    A cached token is only ever used to seed a refresh; it is never handed
    out directly. Every successful call rotates the cache file.
    """

    def __init__(
        self,
        settings: SaxoSettings,
        notifier: PushoverNotifier,
        *,
        session: Optional[requests.Session] = None,
        code_receiver: Optional[Callable[[], str]] = None,
        auth_url: str = SAXO_AUTH_URL,
        token_url: str = SAXO_TOKEN_URL,
    ) -> None:
        self._settings = settings
        self._notifier = notifier
        self._session = session or requests.Session()
        self._code_receiver = code_receiver or functools.partial(
            await_code, settings.redirect_bind_addr, timeout=settings.redirect_timeout
        )
        self._auth_url = auth_url
        self._token_url = token_url

    def authorize(self) -> CachedToken:
        cache_path = self._settings.access_token_path
        token = token_cache.load(cache_path)
        if token is None:
            LOGGER.info("No usable cached token, starting interactive login")
            token = self._login()
            self._save(token)
        else:
            LOGGER.info("Using cached refresh token issued at %s", token.issued_at.isoformat())

        refreshed = self.refresh(token)
        self._save(refreshed)
        return refreshed

    def login_url(self) -> str:
        params = {
            "response_type": "code",
            "client_id": self._settings.client_id,
            "state": LOGIN_STATE,
            "redirect_uri": self._settings.redirect_uri,
        }
        return requests.Request("GET", self._auth_url, params=params).prepare().url

    def exchange_code(self, code: str) -> CachedToken:
        return self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._settings.redirect_uri,
            }
        )

    def refresh(self, token: CachedToken) -> CachedToken:
        return self._request_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": token.refresh_token,
                "redirect_uri": self._settings.redirect_uri,
            }
        )

    def _save(self, token: CachedToken) -> None:
        cache_path = self._settings.access_token_path
        try:
            token_cache.save(cache_path, token)
        except OSError as exc:
            raise AuthFlowError(f"Unable to write token cache {cache_path}: {exc}") from exc

    def _login(self) -> CachedToken:
        url = self.login_url()
        LOGGER.info("Login link: %s", url)
        self._notifier.send("Login to Saxo", "Log in to let ynab-updater read your balance", url=url, url_title="Login link")
        code = self._code_receiver()
        LOGGER.info("Received auth code, exchanging it for a token")
        return self.exchange_code(code)

    def _request_token(self, form: Dict[str, str]) -> CachedToken:
        data = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            **form,
        }
        grant_type = form["grant_type"]
        LOGGER.debug("Token request grant_type=%s", grant_type)
        try:
            response = self._session.request("POST", self._token_url, data=data, timeout=30)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise AuthFlowError(f"Token request ({grant_type}) failed: {exc}") from exc
        except ValueError as exc:
            raise AuthFlowError(f"Token response ({grant_type}) is not JSON") from exc

        if not isinstance(payload, dict):
            raise AuthFlowError(f"Token response ({grant_type}) is not a JSON object")
        try:
            return CachedToken.from_payload(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthFlowError(f"Token response ({grant_type}) is incomplete: {exc}") from exc
