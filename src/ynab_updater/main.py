"""Entrypoint for reconciling a YNAB account against its real balance."""
from __future__ import annotations

import argparse
import logging
from datetime import date
from typing import Optional, Sequence

import requests

from ynab_updater.auth_flow import AuthorizationFlow
from ynab_updater.balance_source import BalanceSource
from ynab_updater.config import LOG_LEVELS, Settings, load_settings
from ynab_updater.errors import ConfigError, UpdaterError
from ynab_updater.hl_client import HargreavesLansdownClient
from ynab_updater.notifier import PushoverNotifier
from ynab_updater.reconciliation import Amend, Create, Decision, NoOp, decide, to_major_units
from ynab_updater.saxo_client import SaxoClient
from ynab_updater.ynab_client import YnabClient

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOGGER = logging.getLogger(__name__)

SOURCES = ("saxo", "hl")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("source", choices=SOURCES, help="Which balance source to reconcile")
    parser.add_argument(
        "--config",
        type=str,
        metavar="PATH",
        help="Path to the JSON config file (defaults to $YNAB_CONFIG or config/config.json)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the planned YNAB change without applying it",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Override the configured log level",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    try:
        settings = load_settings(args.config)
    except ConfigError:
        LOGGER.exception("Unable to load settings")
        return 1
    logging.getLogger().setLevel(args.log_level or settings.log_level)

    session = requests.Session()
    notifier = PushoverNotifier(
        api_key=settings.pushover.api_key,
        user_key=settings.pushover.user_key,
        session=session,
    )
    ledger = YnabClient(
        bearer_token=settings.ynab.bearer_token,
        budget_id=settings.ynab.budget_id,
        session=session,
    )
    try:
        try:
            source = build_source(args.source, settings, notifier)
        except ConfigError as exc:
            notify_failure(notifier, exc)
            raise
        run_update(
            source,
            ledger,
            notifier,
            default_payee_id=settings.ynab.reconciliation_payee_id,
            dry_run=args.dry_run,
        )
    except UpdaterError:
        LOGGER.exception("Failed to update YNAB from %s", args.source)
        return 1
    return 0


def build_source(
    name: str,
    settings: Settings,
    notifier: PushoverNotifier,
    session: Optional[requests.Session] = None,
) -> BalanceSource:
    if name == "saxo":
        if settings.saxo is None:
            raise ConfigError("Saxo settings are missing from the config")
        session = session or requests.Session()
        auth_flow = AuthorizationFlow(settings.saxo, notifier, session=session)
        return SaxoClient(settings=settings.saxo, auth_flow=auth_flow, session=session)
    if name == "hl":
        if settings.hl is None:
            raise ConfigError("Hargreaves Lansdown settings are missing from the config")
        return HargreavesLansdownClient(settings=settings.hl, session=session)
    raise ConfigError(f"Unknown balance source {name!r}")


def run_update(
    source: BalanceSource,
    ledger: YnabClient,
    notifier: PushoverNotifier,
    *,
    default_payee_id: Optional[str] = None,
    today: Optional[date] = None,
    dry_run: bool = False,
) -> Decision:
    """Run one update, notifying the user before re-raising any failure."""

    try:
        return update_ledger(source, ledger, default_payee_id=default_payee_id, today=today, dry_run=dry_run)
    except Exception as exc:
        notify_failure(notifier, exc)
        raise


def notify_failure(notifier: PushoverNotifier, exc: BaseException) -> None:
    notifier.send("Failed to update YNAB", str(exc))


def update_ledger(
    source: BalanceSource,
    ledger: YnabClient,
    *,
    default_payee_id: Optional[str] = None,
    today: Optional[date] = None,
    dry_run: bool = False,
) -> Decision:
    account = source.account_config()
    payee_id = account.reconciliation_payee_id or default_payee_id

    real_balance = source.fetch_balance()
    LOGGER.info("Real balance: %.2f", real_balance)

    ynab_balance = ledger.get_account(account.account_id).balance
    LOGGER.info("YNAB balance: %.2f", to_major_units(ynab_balance))

    transactions = ledger.list_transactions(account.account_id)
    last_transaction = transactions[-1] if transactions else None

    decision = decide(
        real_balance,
        ynab_balance,
        last_transaction,
        payee_id,
        account.account_id,
        today or date.today(),
    )
    LOGGER.info("Decision: %s", _describe_decision(decision))

    if dry_run:
        LOGGER.info("Dry-run: not applying the decision")
    else:
        apply_decision(ledger, decision)
    return decision


def apply_decision(ledger: YnabClient, decision: Decision) -> None:
    if isinstance(decision, Amend):
        ledger.amend_transaction(decision.transaction_id, decision.to_payload())
    elif isinstance(decision, Create):
        ledger.create_transaction(decision.to_payload())


def _describe_decision(decision: Decision) -> str:
    if isinstance(decision, NoOp):
        return f"no change ({decision.reason})"
    if isinstance(decision, Amend):
        return (
            f"amend reconciliation {decision.transaction_id} to "
            f"{to_major_units(decision.new_amount):.2f} dated {decision.new_date.isoformat()}"
        )
    return (
        f"create reconciliation of {to_major_units(decision.amount):.2f} "
        f"dated {decision.date.isoformat()}"
    )


if __name__ == "__main__":
    raise SystemExit(main())
