import random

import pytest

from courtside.models import LedgerEntry, Payment
from courtside.services import checkout_service, ledger_service, payment_service, settings_service, shift_service
from courtside.services.ledger_service import QR_IN, SALE_CASH
from courtside.validation import (
    AuthenticationRequiredError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

from conftest import STAFF_ID


def checkout_with_account(total_cents, name="Racket rental"):
    checkout = checkout_service.create_checkout(STAFF_ID)
    account = checkout.accounts[0]
    checkout_service.add_item(
        checkout.id, {"kind": "equipment", "name": name, "unit_price_cents": total_cents}, account.id
    )
    return checkout, checkout_service.get_account(account.id)


def payment_entries(payment_id):
    return ledger_service.query_entries(reference_type="checkout_payment", reference_id=payment_id)


class TestCashPayments:
    def test_walk_in_cash_sale_reconciles(self, db_session):
        """Float 50 Kč, 7.50 Kč item, 10 Kč tendered: 2.50 Kč change, 57.50 Kč expected at close."""
        shift_service.open_shift(STAFF_ID, 5000)
        checkout, account = checkout_with_account(750)

        payment = payment_service.process_cash_payment(account.id, 750, 1000, user_id=STAFF_ID)

        assert payment.status == "confirmed"
        assert payment.cash_change_cents == 250
        assert checkout_service.get_account(account.id).status == "paid"
        assert checkout_service.get_checkout(checkout.id).status == "completed"

        [entry] = payment_entries(payment.id)
        assert (entry.entry_type, entry.amount_cents) == (SALE_CASH, 750)
        assert payment.ledger_entry_id == entry.id

        assert shift_service.get_summary()["current_balance_cents"] == 5750
        shift = shift_service.close_shift(5750)
        assert shift.expected_closing_cents == 5750
        assert shift.variance_cents == 0

    def test_exact_amount_when_received_is_omitted(self, open_shift):
        _, account = checkout_with_account(2000)
        payment = payment_service.process_cash_payment(account.id, 2000, user_id=STAFF_ID)
        assert payment.cash_received_cents == 2000
        assert payment.cash_change_cents == 0

    def test_partial_payments(self, open_shift):
        checkout, account = checkout_with_account(3000)

        payment_service.process_cash_payment(account.id, 1000, user_id=STAFF_ID)
        assert payment_service.get_remaining_balance(account.id) == 2000
        assert checkout_service.get_checkout(checkout.id).status == "partial"

    def test_overpayment_is_rejected(self, open_shift):
        _, account = checkout_with_account(750)
        with pytest.raises(ValidationError):
            payment_service.process_cash_payment(account.id, 751, 1000, user_id=STAFF_ID)
        assert payment_service.get_account_payments(account.id) == []

    @pytest.mark.parametrize("amount,received", [(0, None), (-100, None), (750, 500), ("7.50", None)])
    def test_invalid_amounts(self, open_shift, amount, received):
        _, account = checkout_with_account(750)
        with pytest.raises(ValidationError):
            payment_service.process_cash_payment(account.id, amount, received, user_id=STAFF_ID)

    def test_no_open_shift_rolls_everything_back(self, db_session):
        _, account = checkout_with_account(750)

        with pytest.raises(ConflictError):
            payment_service.process_cash_payment(account.id, 750, user_id=STAFF_ID)

        assert db_session.query(Payment).count() == 0
        assert db_session.query(LedgerEntry).count() == 0
        account = checkout_service.get_account(account.id)
        assert account.paid_amount_cents == 0
        assert account.status == "unpaid"

    def test_cash_disabled(self, open_shift):
        _, account = checkout_with_account(750)
        settings_service.update_payment_settings({"cash_enabled": False}, user_id=STAFF_ID)
        with pytest.raises(ConflictError):
            payment_service.process_cash_payment(account.id, 750, user_id=STAFF_ID)

    def test_cancelled_checkout_takes_no_money(self, open_shift):
        checkout, account = checkout_with_account(750)
        checkout_service.cancel_checkout(checkout.id)
        with pytest.raises(ConflictError):
            payment_service.process_cash_payment(account.id, 750, user_id=STAFF_ID)

    def test_unknown_account(self, open_shift):
        with pytest.raises(NotFoundError):
            payment_service.process_cash_payment(9999, 100, user_id=STAFF_ID)


class TestPaymentRequests:
    def test_generate_is_pending_and_posts_nothing(self, db_session):
        checkout, account = checkout_with_account(28000)

        result = payment_service.generate_payment_request(account.id, user_id=STAFF_ID)

        payment = result["payment"]
        assert payment.status == "pending"
        assert payment.amount_cents == 28000
        assert payment.request_reference == f"{account.id:06d}"
        assert result["encoded_request"].startswith("SPD*1.0*ACC:123456789/0100*AM:280.00*CC:CZK*RN:Tennis Club")
        assert f"*X-VS:{account.id:06d}" in result["encoded_request"]
        assert result["display_string"] == "280.00 CZK"
        assert result["qr_image"].startswith("data:image/png;base64,")

        assert db_session.query(LedgerEntry).count() == 0
        assert checkout_service.get_account(account.id).paid_amount_cents == 0

    def test_iban_account_and_reference_prefix(self, db_session):
        settings_service.update_payment_settings(
            {"qr_account": "CZ65 0800 0000 1920 0014 5399", "qr_reference_prefix": "77"}, user_id=STAFF_ID
        )
        _, account = checkout_with_account(10000)

        encoded = payment_service.generate_payment_request(account.id, 5000)["encoded_request"]

        assert "*ACC:CZ6508000000192000145399*AM:50.00*" in encoded
        assert f"*X-VS:77{account.id:06d}" in encoded

    def test_request_above_balance_or_range(self, db_session):
        _, account = checkout_with_account(6000000)
        with pytest.raises(ValidationError):
            payment_service.generate_payment_request(account.id, 6000001)
        # Above the configured 50 000 Kč ceiling
        with pytest.raises(ValidationError):
            payment_service.generate_payment_request(account.id)

    def test_qr_disabled(self, db_session):
        settings_service.update_payment_settings({"qr_enabled": False}, user_id=STAFF_ID)
        _, account = checkout_with_account(1000)
        with pytest.raises(ConflictError):
            payment_service.generate_payment_request(account.id)

    def test_qr_off_for_reservations_only(self, db_session, singles_reservation):
        settings_service.update_payment_settings({"qr_enabled_for_reservations": False}, user_id=STAFF_ID)
        booking = checkout_service.create_checkout(STAFF_ID, "R-100")
        _, walk_in = checkout_with_account(1000)

        with pytest.raises(ConflictError, match="reservation"):
            payment_service.generate_payment_request(booking.accounts[0].id)
        assert db_session.query(Payment).count() == 0

        assert payment_service.generate_payment_request(walk_in.id)["payment"].status == "pending"

    def test_qr_off_for_bar_only(self, db_session, singles_reservation):
        settings_service.update_payment_settings({"qr_enabled_for_bar": False}, user_id=STAFF_ID)
        booking = checkout_service.create_checkout(STAFF_ID, "R-100")
        _, walk_in = checkout_with_account(1000)

        with pytest.raises(ConflictError, match="bar"):
            payment_service.generate_payment_request(walk_in.id)

        result = payment_service.generate_payment_request(booking.accounts[0].id)
        assert result["payment"].amount_cents == 75000

    def test_confirm_posts_once(self, open_shift):
        checkout, account = checkout_with_account(28000)
        payment = payment_service.generate_payment_request(account.id)["payment"]

        first = payment_service.confirm_payment_request(payment.id, user_id=STAFF_ID)
        second = payment_service.confirm_payment_request(payment.id, user_id=STAFF_ID)

        assert first.id == second.id
        assert second.status == "confirmed"
        assert second.confirmed_by_user_id == STAFF_ID
        entries = payment_entries(payment.id)
        assert [(e.entry_type, e.amount_cents) for e in entries] == [(QR_IN, 28000)]

        account = checkout_service.get_account(account.id)
        assert account.paid_amount_cents == 28000
        assert checkout_service.get_checkout(checkout.id).status == "completed"
        # Bank money never reaches the drawer
        assert shift_service.get_summary()["current_balance_cents"] == 100000
        assert shift_service.get_summary()["qr_inflow_cents"] == 28000

    def test_confirm_requires_staff(self, open_shift):
        _, account = checkout_with_account(1000)
        payment = payment_service.generate_payment_request(account.id)["payment"]
        with pytest.raises(AuthenticationRequiredError):
            payment_service.confirm_payment_request(payment.id, user_id=None)

    def test_confirm_without_shift_leaves_request_pending(self, db_session):
        _, account = checkout_with_account(1000)
        payment = payment_service.generate_payment_request(account.id)["payment"]

        with pytest.raises(ConflictError):
            payment_service.confirm_payment_request(payment.id, user_id=STAFF_ID)
        assert payment_service.get_payment(payment.id).status == "pending"

    def test_confirm_after_balance_paid_in_cash(self, open_shift):
        _, account = checkout_with_account(1000)
        payment = payment_service.generate_payment_request(account.id)["payment"]
        payment_service.process_cash_payment(account.id, 1000, user_id=STAFF_ID)

        with pytest.raises(ConflictError):
            payment_service.confirm_payment_request(payment.id, user_id=STAFF_ID)
        assert checkout_service.get_account(account.id).paid_amount_cents == 1000

    def test_cancel_request(self, open_shift):
        _, account = checkout_with_account(1000)
        payment = payment_service.generate_payment_request(account.id)["payment"]

        cancelled = payment_service.cancel_payment_request(payment.id, user_id=STAFF_ID, reason="Paid cash")
        assert cancelled.status == "cancelled"
        assert cancelled.notes == "Paid cash"
        assert payment_service.cancel_payment_request(payment.id).status == "cancelled"

        with pytest.raises(ConflictError):
            payment_service.confirm_payment_request(payment.id, user_id=STAFF_ID)

    def test_cannot_cancel_confirmed_or_cash(self, open_shift):
        _, account = checkout_with_account(2000)
        request = payment_service.generate_payment_request(account.id, 1000)["payment"]
        payment_service.confirm_payment_request(request.id, user_id=STAFF_ID)
        cash = payment_service.process_cash_payment(account.id, 1000, user_id=STAFF_ID)

        with pytest.raises(ConflictError):
            payment_service.cancel_payment_request(request.id)
        with pytest.raises(ConflictError):
            payment_service.cancel_payment_request(cash.id)


def test_payment_reference():
    assert payment_service.payment_reference(42) == "000042"
    assert payment_service.payment_reference(42, "12") == "12000042"
    with pytest.raises(ValidationError):
        payment_service.payment_reference(42, "AB")
    with pytest.raises(ValidationError):
        payment_service.payment_reference(1234567, "9999")


def test_account_payments_in_order(open_shift):
    _, account = checkout_with_account(3000)
    cash = payment_service.process_cash_payment(account.id, 1000, user_id=STAFF_ID)
    request = payment_service.generate_payment_request(account.id)["payment"]

    assert [p.id for p in payment_service.get_account_payments(account.id)] == [cash.id, request.id]
    with pytest.raises(NotFoundError):
        payment_service.get_account_payments(9999)


def test_ledger_and_accounts_stay_consistent(open_shift, db_session):
    """Random mix of cash, confirmed and abandoned requests across several accounts."""
    rng = random.Random(1019)
    checkout = checkout_service.create_checkout(STAFF_ID)
    accounts = [checkout.accounts[0].id] + [
        checkout_service.create_account(checkout.id, f"Player {n}").id for n in range(1, 4)
    ]
    for account_id in accounts:
        checkout_service.add_item(
            checkout.id,
            {"kind": "court", "name": "Court share", "unit_price_cents": rng.randint(500, 40000)},
            account_id,
        )

    for _ in range(40):
        account_id = rng.choice(accounts)
        remaining = payment_service.get_remaining_balance(account_id)
        if remaining == 0:
            continue
        amount = rng.randint(1, remaining)
        action = rng.choice(["cash", "confirm", "abandon"])
        if action == "cash":
            payment_service.process_cash_payment(account_id, amount, amount + rng.randint(0, 500), user_id=STAFF_ID)
        else:
            payment = payment_service.generate_payment_request(account_id, amount)["payment"]
            if action == "confirm":
                payment_service.confirm_payment_request(payment.id, user_id=STAFF_ID)
            else:
                payment_service.cancel_payment_request(payment.id)

    confirmed = db_session.query(Payment).filter_by(status="confirmed").all()
    entries = ledger_service.query_entries(reference_type="checkout_payment")
    assert len(entries) == len(confirmed)
    assert sum(e.amount_cents for e in entries) == sum(p.amount_cents for p in confirmed)

    for account_id in accounts:
        account = checkout_service.get_account(account_id)
        paid = sum(p.amount_cents for p in confirmed if p.account_id == account_id)
        assert account.paid_amount_cents == paid
        assert account.paid_amount_cents <= account.total_amount_cents

    cash_total = sum(p.amount_cents for p in confirmed if p.method == "cash")
    assert shift_service.get_summary()["current_balance_cents"] == 100000 + cash_total
