"""Push notifications via Pushover."""
from __future__ import annotations

import logging
from typing import Optional

import requests

LOGGER = logging.getLogger(__name__)

PUSHOVER_MESSAGES_URL = "https://api.pushover.net/1/messages.json"


class PushoverNotifier:
    """Fire-and-forget notifier; delivery failures are logged, never raised."""

    def __init__(
        self,
        *,
        api_key: str,
        user_key: str,
        url: str = PUSHOVER_MESSAGES_URL,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._user_key = user_key
        self._url = url
        self._session = session or requests.Session()

    def send(self, title: str, message: str, *, url: Optional[str] = None, url_title: Optional[str] = None) -> bool:
        data = {
            "token": self._api_key,
            "user": self._user_key,
            "title": title,
            "message": message,
        }
        if url:
            data["url"] = url
            if url_title:
                data["url_title"] = url_title
        try:
            response = self._session.request("POST", self._url, data=data, timeout=30)
            response.raise_for_status()
        except requests.RequestException as exc:
            LOGGER.error("Failed to send notification %r: %s", title, exc)
            return False
        LOGGER.info("Sent notification %r", title)
        return True
