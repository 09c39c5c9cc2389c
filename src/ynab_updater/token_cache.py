"""On-disk cache for the OAuth token pair of an interactive balance source.

The cache file holds the identity provider's token response verbatim. Its
modification time doubles as the time the token was issued, so the file must
only ever be written when a token is genuinely exchanged or refreshed.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Mapping, Optional

LOGGER = logging.getLogger(__name__)

TOKEN_FIELDS = ("access_token", "expires_in", "refresh_token", "refresh_token_expires_in")


@dataclass
class CachedToken:
    """An access/refresh token pair and the lifetimes the provider granted."""

    access_token: str
    refresh_token: str
    expires_in: int
    refresh_token_expires_in: int
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), compare=False)

    @classmethod
    def from_payload(cls, payload: Mapping, *, issued_at: Optional[datetime] = None) -> "CachedToken":
        """Create a :class:`CachedToken` from a token endpoint response.

        Raises ``KeyError``, ``TypeError`` or ``ValueError`` for incomplete payloads.
        """

        missing = [name for name in TOKEN_FIELDS if name not in payload]
        if missing:
            raise KeyError(f"token payload is missing {', '.join(missing)}")
        access_token = payload["access_token"]
        refresh_token = payload["refresh_token"]
        if not isinstance(access_token, str) or not isinstance(refresh_token, str):
            raise TypeError("token values must be strings")
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(payload["expires_in"]),
            refresh_token_expires_in=int(payload["refresh_token_expires_in"]),
            issued_at=issued_at or datetime.now(timezone.utc),
        )

    def to_payload(self) -> Dict:
        return {
            "access_token": self.access_token,
            "expires_in": self.expires_in,
            "refresh_token": self.refresh_token,
            "refresh_token_expires_in": self.refresh_token_expires_in,
        }

    @property
    def access_ttl(self) -> timedelta:
        return timedelta(seconds=self.expires_in)

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(seconds=self.refresh_token_expires_in)

    @property
    def refresh_expires_at(self) -> datetime:
        return self.issued_at + self.refresh_ttl

    def is_refreshable(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now <= self.refresh_expires_at


def load(path: Path, now: Optional[datetime] = None) -> Optional[CachedToken]:
    """Return the cached token if it can still be refreshed, otherwise ``None``.

    Missing, unreadable, corrupt and expired cache files are all treated as
    "no token".
    """

    path = Path(path)
    try:
        modified_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        LOGGER.info("No cached token at %s", path)
        return None
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.warning("Ignoring unreadable token cache %s: %s", path, exc)
        return None
    if not isinstance(payload, dict):
        LOGGER.warning("Ignoring token cache %s: not a JSON object", path)
        return None
    try:
        token = CachedToken.from_payload(payload, issued_at=modified_at)
    except (KeyError, TypeError, ValueError) as exc:
        LOGGER.warning("Ignoring malformed token cache %s: %s", path, exc)
        return None

    if not token.is_refreshable(now):
        LOGGER.info("Cached refresh token expired at %s", token.refresh_expires_at.isoformat())
        return None
    return token


def save(path: Path, token: CachedToken) -> None:
    """Atomically replace the cache file with ``token``."""

    path = Path(path)
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
            json.dump(token.to_payload(), tmp_file)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    LOGGER.debug("Saved token to %s", path)
