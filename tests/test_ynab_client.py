from datetime import date

import pytest
import requests

from ynab_updater.errors import LedgerError
from ynab_updater.ynab_client import LedgerTransaction, YnabClient


@pytest.fixture
def transaction_payload():
    return {
        "id": "txn-1",
        "date": "2024-03-15",
        "amount": 2000,
        "payee_id": "payee-1",
        "memo": "note",
        "cleared": "reconciled",
        "subtransactions": [],
    }


def _client(session):
    return YnabClient(bearer_token="secret", budget_id="budget", session=session)


def test_transaction_round_trips_unknown_fields(transaction_payload):
    txn = LedgerTransaction.from_payload(transaction_payload)
    assert txn.date == date(2024, 3, 15)
    assert txn.amount == 2000
    assert txn.extra == {"memo": "note", "cleared": "reconciled", "subtransactions": []}
    assert txn.to_payload() == transaction_payload


def test_malformed_transaction_raises(transaction_payload):
    with pytest.raises(LedgerError):
        LedgerTransaction.from_payload({**transaction_payload, "date": "yesterday"})


def test_get_account_reads_balance(make_session, make_response):
    session = make_session([make_response({"data": {"account": {"id": "acc", "balance": 100000}}})])
    account = _client(session).get_account("acc")

    assert account.balance == 100000
    method, url, kwargs = session.request_calls[0]
    assert method == "GET"
    assert url == "https://api.ynab.com/v1/budgets/budget/accounts/acc"
    assert kwargs["headers"]["Authorization"] == "Bearer secret"


def test_list_transactions_orders_most_recent_last(make_session, make_response, transaction_payload):
    items = [
        {**transaction_payload, "id": "late", "date": "2024-03-20"},
        {**transaction_payload, "id": "early", "date": "2024-03-01"},
        {**transaction_payload, "id": "gone", "date": "2024-03-25", "deleted": True},
        {**transaction_payload, "id": "mid", "date": "2024-03-15"},
    ]
    session = make_session([make_response({"data": {"transactions": items}})])
    transactions = _client(session).list_transactions("acc")

    assert [txn.id for txn in transactions] == ["early", "mid", "late"]
    assert session.request_calls[0][1].endswith("/budgets/budget/accounts/acc/transactions")


def test_list_transactions_handles_empty_history(make_session, make_response):
    session = make_session([make_response({"data": {"transactions": []}})])
    assert _client(session).list_transactions("acc") == []


def test_create_and_amend_wrap_transaction(make_session, make_response):
    session = make_session([make_response({"data": {}}), make_response({"data": {}})])
    client = _client(session)
    client.create_transaction({"amount": 5000})
    client.amend_transaction("txn-1", {"amount": 7000})

    create, amend = session.request_calls
    assert create[0] == "POST" and create[1].endswith("/budgets/budget/transactions")
    assert create[2]["json"] == {"transaction": {"amount": 5000}}
    assert amend[0] == "PUT" and amend[1].endswith("/budgets/budget/transactions/txn-1")
    assert amend[2]["json"] == {"transaction": {"amount": 7000}}


@pytest.mark.parametrize(
    "response",
    [
        requests.ConnectionError("down"),
        "error",
        "not-json",
        "no-data",
    ],
)
def test_failures_raise_ledger_error(make_session, make_response, response):
    if response == "error":
        response = make_response({"error": {"id": "404"}}, status_code=404)
    elif response == "not-json":
        response = make_response(None)
    elif response == "no-data":
        response = make_response({"unexpected": True})
    session = make_session([response])
    with pytest.raises(LedgerError):
        _client(session).get_account("acc")
