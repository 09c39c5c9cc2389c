import pytest

from ynab_updater.config import HLSettings
from ynab_updater.errors import BalanceSourceError
from ynab_updater.hl_client import HargreavesLansdownClient, parse_secure_number_indices, parse_total

STEP_ONE_PAGE = """
<html><body><form>
  <input type="hidden" name="hl_vt" value="vt-token"/>
  <input name="username"/>
</form></body></html>
"""

STEP_TWO_PAGE = """
<html><body><form>
  <input id="secure-number-1" title="Enter the 2nd digit from your Secure Number"/>
  <input id="secure-number-2" title="Enter the 4th digit from your Secure Number"/>
  <input id="secure-number-3" title="Enter the 6th digit from your Secure Number"/>
</form></body></html>
"""

ACCOUNTS_PAGE = """
<html><body>
<div id="content-body-full"><div><div class="main-content">
  <table>
    <tbody><tr><td>ISA</td><td>&pound;1.00</td><td>&pound;2.00</td></tr></tbody>
    <tfoot><tr><td>Total</td><td>&pound;12,345.67</td><td>&pound;100.33</td></tr></tfoot>
  </table>
</div></div></div>
</body></html>
"""


@pytest.fixture
def settings():
    return HLSettings(
        username="user",
        date_of_birth="010190",
        password="hunter2",
        secure_numbers=("1", "2", "3", "4", "5", "6"),
        account_id="hl-account",
    )


def test_parse_total_sums_footer_columns():
    assert parse_total(ACCOUNTS_PAGE) == pytest.approx(12446.00)


def test_parse_total_rejects_unexpected_page():
    with pytest.raises(BalanceSourceError):
        parse_total("<html><body><p>Maintenance</p></body></html>")


def test_parse_secure_number_indices_are_zero_based():
    assert parse_secure_number_indices(STEP_TWO_PAGE) == [1, 3, 5]


def test_parse_secure_number_indices_rejects_unknown_prompt():
    page = STEP_TWO_PAGE.replace("Enter the 4th digit", "Type something")
    with pytest.raises(BalanceSourceError):
        parse_secure_number_indices(page)


def test_fetch_balance_walks_login(settings, make_session, make_response):
    session = make_session(
        [
            make_response(text=STEP_ONE_PAGE),
            make_response(text=""),
            make_response(text=STEP_TWO_PAGE),
            make_response(text=ACCOUNTS_PAGE),
        ]
    )
    client = HargreavesLansdownClient(settings=settings, session=session)

    assert client.fetch_balance() == pytest.approx(12446.00)

    methods = [(method, url.rsplit("/", 1)[-1]) for method, url, _ in session.request_calls]
    assert methods == [
        ("GET", "login-step-one"),
        ("POST", "login-step-one"),
        ("GET", "login-step-two"),
        ("POST", "login-step-two"),
    ]
    assert session.request_calls[1][2]["data"] == {
        "hl_vt": "vt-token",
        "username": "user",
        "date-of-birth": "010190",
    }
    submitted = session.request_calls[3][2]["data"]
    assert submitted["hl_vt"] == "vt-token"
    assert submitted["online-password-verification"] == "hunter2"
    assert [submitted[f"secure-number[{i}]"] for i in (1, 2, 3)] == ["2", "4", "6"]


def test_fetch_balance_fails_without_hl_vt(settings, make_session, make_response):
    session = make_session([make_response(text="<html></html>")])
    client = HargreavesLansdownClient(settings=settings, session=session)
    with pytest.raises(BalanceSourceError):
        client.fetch_balance()


def test_fetch_balance_wraps_http_errors(settings, make_session, make_response):
    session = make_session([make_response(text="", status_code=503)])
    client = HargreavesLansdownClient(settings=settings, session=session)
    with pytest.raises(BalanceSourceError):
        client.fetch_balance()


def test_account_config_uses_account_payee(settings):
    client = HargreavesLansdownClient(settings=settings)
    assert client.account_config().account_id == "hl-account"
    assert client.account_config().reconciliation_payee_id is None


def test_parse_secure_number_indices_rejects_zeroth_digit():
    page = STEP_TWO_PAGE.replace("Enter the 2nd digit", "Enter the 0th digit")
    with pytest.raises(BalanceSourceError):
        parse_secure_number_indices(page)
