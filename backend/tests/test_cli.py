from courtside.services import ledger_service, shift_service
from courtside.services.ledger_service import SALE_CASH

from conftest import STAFF_ID


def invoke(app, *args):
    return app.test_cli_runner().invoke(args=list(args))


def test_open_and_close_shift(app, db_session):
    result = invoke(app, "shifts", "open", "--staff-id", str(STAFF_ID), "--opening", "50.00")
    assert result.exit_code == 0, result.output
    assert "opened with float 50,00 Kč" in result.output

    ledger_service.append_entry(SALE_CASH, 750, "Court 1", user_id=STAFF_ID)
    db_session.commit()

    result = invoke(app, "shifts", "current")
    assert "drawer balance: 57,50 Kč" in result.output

    result = invoke(app, "shifts", "close", "--staff-id", str(STAFF_ID), "--counted", "57")
    assert result.exit_code == 0, result.output
    assert "expected: 57,50 Kč" in result.output
    assert "WARN variance: -0,50 Kč" in result.output


def test_second_open_fails_cleanly(app, open_shift):
    result = invoke(app, "shifts", "open", "--staff-id", "8")
    assert result.exit_code != 0
    assert "already open" in result.output


def test_report_and_ledger_list(app, open_shift):
    result = invoke(app, "shifts", "report", str(open_shift.id))
    assert result.exit_code == 0, result.output
    assert "Expected closing" in result.output

    result = invoke(app, "ledger", "list", "--shift-id", str(open_shift.id))
    assert "cash_in" in result.output
    assert "shift_open" in result.output

    assert invoke(app, "shifts", "report", "999").exit_code != 0


def test_current_without_shift(app, db_session):
    assert shift_service.get_current_shift() is None
    assert "No open shift." in invoke(app, "shifts", "current").output
