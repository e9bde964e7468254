# Overview: Service-layer operations for checkouts, payer accounts and line items.

"""
Checkout Service

WHY: A court booking turns into one bill that several players settle in
different ways. The checkout owns the items and the payer accounts; account
totals, the checkout total and every status are derived by recalculation and
never written directly by callers.

DESIGN PRINCIPLES:
- Every mutation locks the checkout row and bumps its version, so concurrent
  edits of one checkout serialize (or retry) instead of interleaving
- Accounts with a confirmed payment are frozen against item churn; corrections
  are made with compensating items
- A recalculation that would leave an account paid above its total is refused
- Cancelled checkouts are terminal
"""

from __future__ import annotations

from typing import Any

from flask import current_app

from ..extensions import db
from ..models import Checkout, LineItem, PayerAccount, Payment
from ..money import multiply
from ..reservations import court_price_cents, get_reservation_lookup
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_cents,
    coerce_id,
    coerce_quantity,
    optional_text,
    require_payload,
    require_text,
)
from .concurrency import lock_for_update, run_with_retry
from .settings_service import get_payment_settings
from .split_service import (
    DEFAULT_GROUP,
    SPLIT_BY_ITEM,
    SPLIT_EQUAL,
    SPLIT_PERCENTAGE,
    compute_account_totals,
    normalize_split_type,
    parse_split_config,
)


# =============================================================================
# CONSTANTS
# =============================================================================

ITEM_KIND_COURT = "court"
ITEM_KIND_MERCHANDISE = "merchandise"
ITEM_KIND_EQUIPMENT = "equipment"
ITEM_KIND_SURCHARGE = "surcharge"
ITEM_KIND_DISCOUNT = "discount"

ITEM_KINDS = (
    ITEM_KIND_COURT,
    ITEM_KIND_MERCHANDISE,
    ITEM_KIND_EQUIPMENT,
    ITEM_KIND_SURCHARGE,
    ITEM_KIND_DISCOUNT,
)

CHECKOUT_OPEN = "open"
CHECKOUT_PARTIAL = "partial"
CHECKOUT_COMPLETED = "completed"
CHECKOUT_CANCELLED = "cancelled"
CHECKOUT_STATUSES = (CHECKOUT_OPEN, CHECKOUT_PARTIAL, CHECKOUT_COMPLETED, CHECKOUT_CANCELLED)

ACCOUNT_UNPAID = "unpaid"
ACCOUNT_PARTIAL = "partial"
ACCOUNT_PAID = "paid"

DEFAULT_ACCOUNT_NAME = "Shared account"


# =============================================================================
# DERIVED STATE
# =============================================================================

def account_status(paid_cents: int, total_cents: int) -> str:
    if paid_cents == 0:
        return ACCOUNT_UNPAID
    if paid_cents < total_cents:
        return ACCOUNT_PARTIAL
    return ACCOUNT_PAID


def checkout_status(current: str, accounts: list[PayerAccount]) -> str:
    """
    Derive the checkout status from its accounts.

    Accounts with nothing to pay (an empty shared account, the zero share of
    a 1-cent equal split) stay `unpaid` but are already settled; completion
    needs at least one account that actually owes money.
    """
    if current == CHECKOUT_CANCELLED:
        return CHECKOUT_CANCELLED
    billed = [a for a in accounts if a.total_amount_cents > 0]
    if billed and all(a.status == ACCOUNT_PAID for a in billed):
        return CHECKOUT_COMPLETED
    if any(a.paid_amount_cents > 0 for a in accounts):
        return CHECKOUT_PARTIAL
    return CHECKOUT_OPEN


def recalculate_locked(checkout: Checkout) -> Checkout:
    """
    Recompute totals and statuses of an already-locked checkout (no commit).

    Raises:
        ValidationError: The split configuration is inconsistent
        ConflictError: An account would end up with paid > total
    """
    # Pending relationship changes (item moves) must reach the columns first
    db.session.flush()

    accounts = list(checkout.accounts)
    items = list(checkout.items)
    totals = compute_account_totals(accounts, items)

    for account in accounts:
        total = totals[account.id]
        if account.paid_amount_cents > total:
            raise ConflictError(
                f"Account '{account.name}' has {account.paid_amount_cents} paid; "
                f"its total cannot drop to {total}"
            )
        account.total_amount_cents = total
        account.status = account_status(account.paid_amount_cents, total)

    checkout.total_amount_cents = sum(i.total_price_cents for i in items if i.account_id is not None)

    previous = checkout.status
    checkout.status = checkout_status(previous, accounts)
    if checkout.status == CHECKOUT_COMPLETED and previous != CHECKOUT_COMPLETED:
        checkout.completed_at = utcnow()
    elif checkout.status != CHECKOUT_COMPLETED:
        checkout.completed_at = None

    # Always touch the row so the version check covers every mutation
    checkout.updated_at = utcnow()
    db.session.flush()
    return checkout


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def lock_checkout(checkout_id: int) -> Checkout:
    checkout = lock_for_update(db.session.query(Checkout).filter_by(id=checkout_id)).first()
    if not checkout:
        raise NotFoundError(f"Checkout {checkout_id} not found")
    return checkout


def _ensure_mutable(checkout: Checkout) -> None:
    if checkout.status == CHECKOUT_CANCELLED:
        raise ConflictError(f"Checkout {checkout.id} is cancelled")


def get_account(account_id: int) -> PayerAccount:
    account = db.session.get(PayerAccount, account_id)
    if not account:
        raise NotFoundError(f"Account {account_id} not found")
    return account


def _account_in(checkout: Checkout, account_id: int) -> PayerAccount:
    account = get_account(account_id)
    if account.checkout_id != checkout.id:
        raise ConflictError(f"Account {account_id} belongs to another checkout")
    return account


def is_frozen(account: PayerAccount) -> bool:
    """An account with a confirmed payment no longer accepts item moves."""
    return (
        db.session.query(Payment.id)
        .filter_by(account_id=account.id, status="confirmed")
        .first()
        is not None
    )


def _next_position(checkout: Checkout) -> int:
    positions = [a.position for a in checkout.accounts]
    return max(positions) + 1 if positions else 0


def normalize_players(players: Any) -> list[dict]:
    """Players as [{"id", "name"}]; bare strings are used for both."""
    if players is None:
        return []
    if not isinstance(players, list):
        raise ValidationError("players must be a list")
    normalized = []
    for player in players:
        if isinstance(player, dict) and player.get("id") is not None:
            normalized.append({"id": str(player["id"]), "name": str(player.get("name") or player["id"])})
        elif isinstance(player, (str, int)) and not isinstance(player, bool) and str(player).strip():
            normalized.append({"id": str(player).strip(), "name": str(player).strip()})
        else:
            raise ValidationError("Each player must be a name or an object with an id")
    return normalized


def _player_ids(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError("assigned_player_ids must be a list")
    return [str(v) for v in value]


def build_line_item(item_data: dict) -> dict:
    """
    Validate an item payload into column values.

    Regular lines: total = round(unit x quantity) - discount, never negative.
    Discount lines: quantity 1, no unit price, total = -discount.
    """
    item_data = require_payload(item_data)

    kind = item_data.get("kind")
    if kind not in ITEM_KINDS:
        raise ValidationError(f"Invalid item kind: {kind}. Must be one of {list(ITEM_KINDS)}")

    values = {
        "kind": kind,
        "name": require_text(item_data.get("name"), "name", max_length=128),
        "description": optional_text(item_data.get("description"), "description", max_length=255),
        "plu_code": optional_text(item_data.get("plu_code"), "plu_code", max_length=32),
        "assigned_player_ids": _player_ids(item_data.get("assigned_player_ids")),
    }

    if kind == ITEM_KIND_DISCOUNT:
        discount = coerce_cents(item_data.get("discount_cents"), "discount_cents", allow_zero=False)
        if item_data.get("unit_price_cents") not in (None, 0, "0"):
            raise ValidationError("Discount items carry their amount in discount_cents")
        quantity = coerce_quantity(item_data.get("quantity"))
        if quantity != 1:
            raise ValidationError("Discount items must have quantity 1")
        values.update(quantity=quantity, unit_price_cents=0, discount_cents=discount, total_price_cents=-discount)
        return values

    quantity = coerce_quantity(item_data.get("quantity"))
    unit = coerce_cents(item_data.get("unit_price_cents"), "unit_price_cents")
    discount = coerce_cents(item_data.get("discount_cents", 0), "discount_cents")
    total = multiply(unit, quantity) - discount
    if total < 0:
        raise ValidationError("Item discount cannot exceed its price")
    values.update(quantity=quantity, unit_price_cents=unit, discount_cents=discount, total_price_cents=total)
    return values


# =============================================================================
# CHECKOUT LIFECYCLE
# =============================================================================

def create_checkout(
    user_id: int | None = None,
    source_reservation_id: str | None = None,
    notes: str | None = None,
) -> Checkout:
    """
    Create a checkout with its default account.

    From a reservation, the default account holds the reservation's players
    and, when the facility includes court prices, a court line priced from
    the booking.

    Raises:
        NotFoundError: Unknown reservation
    """
    notes = optional_text(notes, "notes", max_length=2000)
    reservation = None
    include_court = False
    court_price = 0

    if source_reservation_id is not None:
        source_reservation_id = require_text(source_reservation_id, "source_reservation_id", max_length=64)
        reservation = get_reservation_lookup().get_reservation(source_reservation_id)
        include_court = get_payment_settings().include_court_price
        if include_court:
            court_price = court_price_cents(reservation, current_app.config["DEFAULT_COURT_HOURLY_RATE_CENTS"])

    def _op():
        checkout = Checkout(
            status=CHECKOUT_OPEN,
            source_reservation_id=source_reservation_id,
            include_court_price=include_court,
            notes=notes,
            created_by_user_id=user_id,
        )
        db.session.add(checkout)

        players = [p.to_dict() for p in reservation.participants] if reservation else []
        account = PayerAccount(
            checkout=checkout,
            position=0,
            name=DEFAULT_ACCOUNT_NAME,
            assigned_players=players,
            split_type=SPLIT_BY_ITEM,
            split_config={},
        )
        db.session.add(account)

        if include_court:
            db.session.add(LineItem(
                checkout=checkout,
                account=account,
                kind=ITEM_KIND_COURT,
                name=f"{reservation.court_name} {reservation.start_time:%H:%M}-{reservation.end_time:%H:%M}",
                description=f"Reservation {reservation.id}",
                quantity=1,
                unit_price_cents=court_price,
                discount_cents=0,
                total_price_cents=court_price,
                assigned_player_ids=[p["id"] for p in players],
                created_by_user_id=user_id,
            ))

        db.session.flush()
        recalculate_locked(checkout)
        db.session.commit()
        return checkout

    checkout = run_with_retry(_op)
    current_app.logger.info(
        "Checkout %s created (reservation %s, court price %s)",
        checkout.id, source_reservation_id, court_price if include_court else None,
    )
    return checkout


def get_checkout(checkout_id: int) -> Checkout:
    checkout = db.session.get(Checkout, checkout_id)
    if not checkout:
        raise NotFoundError(f"Checkout {checkout_id} not found")
    return checkout


def list_checkouts(status: str | None = None, limit: int = 50) -> list[Checkout]:
    q = db.session.query(Checkout)
    if status:
        if status not in CHECKOUT_STATUSES:
            raise ValidationError(f"Invalid checkout status: {status}")
        q = q.filter_by(status=status)
    return q.order_by(Checkout.created_at.desc(), Checkout.id.desc()).limit(limit).all()


def recalculate(checkout_id: int) -> Checkout:
    """Idempotent: recomputing an unchanged checkout changes no totals."""
    def _op():
        checkout = lock_checkout(checkout_id)
        recalculate_locked(checkout)
        db.session.commit()
        return checkout

    return run_with_retry(_op)


def cancel_checkout(checkout_id: int, *, user_id: int | None = None) -> Checkout:
    """
    Cancel a checkout that has taken no money.

    Pending payment requests are cancelled with it. Cancelling twice is a no-op.

    Raises:
        ConflictError: A payment has already been confirmed
    """
    def _op():
        checkout = lock_checkout(checkout_id)
        if checkout.status == CHECKOUT_CANCELLED:
            return checkout

        payments = db.session.query(Payment).filter_by(checkout_id=checkout.id).all()
        if any(p.status == "confirmed" for p in payments):
            raise ConflictError("Cannot cancel a checkout with confirmed payments")

        now = utcnow()
        for payment in payments:
            if payment.status == "pending":
                payment.status = "cancelled"
                payment.cancelled_at = now
                payment.cancelled_by_user_id = user_id

        checkout.status = CHECKOUT_CANCELLED
        checkout.cancelled_at = now
        checkout.completed_at = None
        db.session.commit()
        return checkout

    checkout = run_with_retry(_op)
    current_app.logger.info("Checkout %s cancelled by staff %s", checkout.id, user_id)
    return checkout


# =============================================================================
# ITEMS
# =============================================================================

def add_item(
    checkout_id: int,
    item_data: dict,
    account_id: int | None = None,
    *,
    user_id: int | None = None,
) -> LineItem:
    """
    Add a line item, optionally straight into an account.

    Adding to a frozen account is allowed: that is how compensating items
    (a late surcharge, a goodwill discount) reach an account that has
    already taken money. A discount that would push the account below what
    it has paid is refused by the recalculation.

    Raises:
        ValidationError: Bad kind, quantity, price or discount
        NotFoundError: Unknown checkout or account
        ConflictError: Cancelled checkout, foreign account, or paid > total
    """
    values = build_line_item(item_data)
    if account_id is None:
        account_id = item_data.get("account_id")
    if account_id is not None:
        account_id = coerce_id(account_id, "account_id")

    def _op():
        checkout = lock_checkout(checkout_id)
        _ensure_mutable(checkout)
        account = _account_in(checkout, account_id) if account_id is not None else None

        item = LineItem(checkout=checkout, account=account, created_by_user_id=user_id, **values)
        db.session.add(item)
        recalculate_locked(checkout)
        db.session.commit()
        return item

    return run_with_retry(_op)


def move_item_to_account(item_id: int, account_id: int | None) -> LineItem:
    """
    Assign an item to an account, or unassign it with None.

    Raises:
        NotFoundError: Unknown item or account
        ConflictError: Source or destination account is frozen, the
            destination belongs to another checkout, or the checkout is cancelled
    """
    if account_id is not None:
        account_id = coerce_id(account_id, "account_id")
    item = db.session.get(LineItem, item_id)
    if not item:
        raise NotFoundError(f"Item {item_id} not found")
    checkout_id = item.checkout_id

    def _op():
        checkout = lock_checkout(checkout_id)
        _ensure_mutable(checkout)
        moving = db.session.get(LineItem, item_id)

        if moving.account_id == account_id:
            return moving

        if moving.account is not None and is_frozen(moving.account):
            raise ConflictError(f"Account '{moving.account.name}' has a confirmed payment; its items are frozen")

        destination = None
        if account_id is not None:
            destination = _account_in(checkout, account_id)
            if is_frozen(destination):
                raise ConflictError(f"Account '{destination.name}' has a confirmed payment; its items are frozen")

        moving.account = destination
        recalculate_locked(checkout)
        db.session.commit()
        return moving

    return run_with_retry(_op)


# =============================================================================
# ACCOUNTS
# =============================================================================

def create_account(checkout_id: int, name: str, players: list | None = None) -> PayerAccount:
    """New accounts start unpaid with a zero total and a by_item split."""
    name = require_text(name, "name", max_length=128)
    players = normalize_players(players)

    def _op():
        checkout = lock_checkout(checkout_id)
        _ensure_mutable(checkout)
        account = PayerAccount(
            checkout=checkout,
            position=_next_position(checkout),
            name=name,
            assigned_players=players,
            split_type=SPLIT_BY_ITEM,
            split_config={},
            total_amount_cents=0,
            paid_amount_cents=0,
            status=ACCOUNT_UNPAID,
        )
        db.session.add(account)
        recalculate_locked(checkout)
        db.session.commit()
        return account

    return run_with_retry(_op)


def remove_account(account_id: int) -> None:
    """
    Delete an account nobody has used yet.

    Raises:
        ConflictError: The account has items or payments, or is the last one
    """
    account = get_account(account_id)
    checkout_id = account.checkout_id

    def _op():
        checkout = lock_checkout(checkout_id)
        _ensure_mutable(checkout)
        target = _account_in(checkout, account_id)

        if target.items:
            raise ConflictError("Move the account's items elsewhere before removing it")
        if db.session.query(Payment.id).filter_by(account_id=target.id).first() is not None:
            raise ConflictError("Cannot remove an account with payments")
        if len(checkout.accounts) <= 1:
            raise ConflictError("A checkout needs at least one account")

        checkout.accounts.remove(target)
        db.session.delete(target)
        recalculate_locked(checkout)
        db.session.commit()

    run_with_retry(_op)


def update_account_split(account_id: int, split_type: str, split_config: dict | None = None) -> PayerAccount:
    """
    Change one account's split.

    The whole checkout is re-validated, so percentage groups are easier to
    set up at once with configure_split().
    """
    config = parse_split_config(split_type, split_config)
    account = get_account(account_id)
    checkout_id = account.checkout_id

    def _op():
        checkout = lock_checkout(checkout_id)
        _ensure_mutable(checkout)
        target = _account_in(checkout, account_id)
        target.split_type = config.split_type
        target.split_config = config.to_config()
        recalculate_locked(checkout)
        db.session.commit()
        return target

    return run_with_retry(_op)


def configure_split(
    checkout_id: int,
    split_type: str,
    shares: dict | list,
    *,
    group: str = DEFAULT_GROUP,
) -> Checkout:
    """
    Put several accounts into one split group in a single transaction.

    Args:
        split_type: equal, percentage, fixed_amounts or by_item
        shares: {account_id: percent | amount_cents}; for equal and by_item
            a plain list of account ids is enough
        group: split group name shared by the accounts

    Raises:
        ValidationError: Shares that do not add up, or no accounts given
    """
    split_type = normalize_split_type(split_type)
    if isinstance(shares, list):
        if split_type not in (SPLIT_EQUAL, SPLIT_BY_ITEM):
            raise ValidationError(f"{split_type} splits need a value per account")
        shares = {account_id: None for account_id in shares}
    if not isinstance(shares, dict) or not shares:
        raise ValidationError("At least one account is required")

    configs = {}
    for raw_id, value in shares.items():
        try:
            account_id = int(raw_id)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid account id: {raw_id!r}")
        if split_type == SPLIT_PERCENTAGE:
            payload = {"group": group, "percent": value}
        elif split_type == SPLIT_EQUAL or split_type == SPLIT_BY_ITEM:
            payload = {"group": group}
        else:
            payload = {"group": group, "amount_cents": value}
        configs[account_id] = parse_split_config(split_type, payload)

    def _op():
        checkout = lock_checkout(checkout_id)
        _ensure_mutable(checkout)
        for account_id, config in configs.items():
            account = _account_in(checkout, account_id)
            account.split_type = config.split_type
            account.split_config = config.to_config()
        recalculate_locked(checkout)
        db.session.commit()
        return checkout

    checkout = run_with_retry(_op)
    current_app.logger.info(
        "Checkout %s: %s split configured for accounts %s", checkout.id, split_type, sorted(configs)
    )
    return checkout


# =============================================================================
# SUMMARY
# =============================================================================

def get_checkout_summary(checkout_id: int) -> dict:
    checkout = get_checkout(checkout_id)
    accounts = sorted(checkout.accounts, key=lambda a: (a.position, a.id))
    payments = db.session.query(Payment).filter_by(checkout_id=checkout.id).all()

    player_ids = set()
    for account in accounts:
        player_ids.update(p["id"] for p in account.assigned_players or [])
    for item in checkout.items:
        player_ids.update(item.assigned_player_ids or [])

    confirmed = [p for p in payments if p.status == "confirmed"]
    paid = sum(a.paid_amount_cents for a in accounts)

    return {
        "checkout_id": checkout.id,
        "status": checkout.status,
        "total_amount_cents": checkout.total_amount_cents,
        "paid_amount_cents": paid,
        "remaining_cents": sum(a.remaining_cents for a in accounts),
        "unassigned_amount_cents": sum(i.total_price_cents for i in checkout.items if i.account_id is None),
        "item_count": len(checkout.items),
        "account_count": len(accounts),
        "player_count": len(player_ids),
        "paid_account_count": sum(1 for a in accounts if a.status == ACCOUNT_PAID),
        "cash_payment_count": sum(1 for p in confirmed if p.method == "cash"),
        "payment_request_count": sum(1 for p in confirmed if p.method == "payment_request"),
        "pending_request_count": sum(1 for p in payments if p.status == "pending"),
    }
