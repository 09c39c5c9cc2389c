"""Exceptions raised while updating a YNAB account balance."""
from __future__ import annotations


class UpdaterError(Exception):
    """Base class for every failure that aborts an update run."""


class ConfigError(UpdaterError):
    """Settings are missing or malformed."""


class AuthFlowError(UpdaterError):
    """The OAuth login, redirect or token exchange failed."""


class LedgerError(UpdaterError):
    """The YNAB API rejected a request or returned something unusable."""


class BalanceSourceError(UpdaterError):
    """The real balance could not be fetched from its source."""
