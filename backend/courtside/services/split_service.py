# Overview: Pure split-billing calculator; turns items + split configuration into per-account totals.

"""
Split-Billing Calculator

WHY: One court booking, four players, three ways to pay. Totals must add up
to the last haléř no matter how the bill is divided.

SPLIT GROUPS:
Accounts using the same non-by_item split type and the same `group` name
form a split group. The group's pool is the sum of the items assigned to
any of its accounts; the pool is then divided among the members. Items
assigned to no account are not part of any total.

Everything here is pure: no database access, no session, no clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Union

from ..money import allocate, split_equal
from ..validation import ValidationError, coerce_cents


SPLIT_BY_ITEM = "by_item"
SPLIT_EQUAL = "equal"
SPLIT_PERCENTAGE = "percentage"
SPLIT_FIXED_AMOUNTS = "fixed_amounts"

SPLIT_TYPES = (SPLIT_BY_ITEM, SPLIT_EQUAL, SPLIT_PERCENTAGE, SPLIT_FIXED_AMOUNTS)

# Names used by older clients
_ALIASES = {
    "items": SPLIT_BY_ITEM,
    "byItem": SPLIT_BY_ITEM,
    "amounts": SPLIT_FIXED_AMOUNTS,
    "fixedAmounts": SPLIT_FIXED_AMOUNTS,
}

DEFAULT_GROUP = "default"
PERCENT_TOLERANCE = Decimal("0.01")
HUNDRED = Decimal(100)


@dataclass(frozen=True)
class ByItemSplit:
    split_type = SPLIT_BY_ITEM

    def to_config(self) -> dict:
        return {}


@dataclass(frozen=True)
class EqualSplit:
    group: str = DEFAULT_GROUP
    split_type = SPLIT_EQUAL

    def to_config(self) -> dict:
        return {"group": self.group}


@dataclass(frozen=True)
class PercentageSplit:
    percent: Decimal
    group: str = DEFAULT_GROUP
    split_type = SPLIT_PERCENTAGE

    def to_config(self) -> dict:
        # Stored as a string so JSON columns never round-trip it through float
        return {"group": self.group, "percent": str(self.percent)}


@dataclass(frozen=True)
class FixedAmountSplit:
    amount_cents: int
    group: str = DEFAULT_GROUP
    split_type = SPLIT_FIXED_AMOUNTS

    def to_config(self) -> dict:
        return {"group": self.group, "amount_cents": self.amount_cents}


SplitConfig = Union[ByItemSplit, EqualSplit, PercentageSplit, FixedAmountSplit]


def normalize_split_type(split_type: str | None) -> str:
    if not split_type:
        raise ValidationError("split_type is required")
    split_type = _ALIASES.get(split_type, split_type)
    if split_type not in SPLIT_TYPES:
        raise ValidationError(f"Invalid split type: {split_type}. Must be one of {list(SPLIT_TYPES)}")
    return split_type


def _group(payload: dict) -> str:
    group = payload.get("group") or DEFAULT_GROUP
    group = str(group).strip()
    if not group or len(group) > 32:
        raise ValidationError("split group must be 1-32 characters")
    return group


def _percent(value) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError("percent is required for percentage splits")
    try:
        pct = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError("percent must be a number")
    if not pct.is_finite() or pct <= 0 or pct > HUNDRED:
        raise ValidationError("percent must be greater than 0 and at most 100")
    if pct.as_tuple().exponent < -4:
        raise ValidationError("percent supports at most 4 decimal places")
    return pct


def parse_split_config(split_type: str, payload: dict | None) -> SplitConfig:
    """Validate an untyped split payload into its tagged variant."""
    split_type = normalize_split_type(split_type)
    payload = payload or {}
    if not isinstance(payload, dict):
        raise ValidationError("split_config must be an object")

    if split_type == SPLIT_BY_ITEM:
        return ByItemSplit()
    if split_type == SPLIT_EQUAL:
        return EqualSplit(group=_group(payload))
    if split_type == SPLIT_PERCENTAGE:
        return PercentageSplit(percent=_percent(payload.get("percent")), group=_group(payload))
    return FixedAmountSplit(
        amount_cents=coerce_cents(payload.get("amount_cents"), "amount_cents"),
        group=_group(payload),
    )


def split_config_of(account) -> SplitConfig:
    return parse_split_config(account.split_type, account.split_config)


def _ordered(accounts) -> list:
    return sorted(accounts, key=lambda a: (a.position, a.id))


def _group_shares(split_type: str, pool: int, configs: list[SplitConfig], group: str) -> list[int]:
    if split_type == SPLIT_EQUAL:
        return split_equal(pool, len(configs))

    if split_type == SPLIT_PERCENTAGE:
        percents = [c.percent for c in configs]
        total_pct = sum(percents, Decimal(0))
        if abs(total_pct - HUNDRED) > PERCENT_TOLERANCE:
            raise ValidationError(
                f"Percentages in split group '{group}' sum to {total_pct}, expected 100"
            )
        return allocate(pool, percents)

    amounts = [c.amount_cents for c in configs]
    if sum(amounts) != pool:
        raise ValidationError(
            f"Fixed amounts in split group '{group}' sum to {sum(amounts)}, expected {pool}"
        )
    return amounts


def compute_account_totals(accounts: Iterable, items: Iterable) -> dict[int, int]:
    """
    Total for every account of one checkout.

    Args:
        accounts: objects with id, position, split_type, split_config
        items: objects with account_id, total_price_cents

    Raises:
        ValidationError: percentages not summing to 100, fixed amounts not
            matching the pool, or an account ending up negative
    """
    accounts = _ordered(accounts)
    own = {a.id: 0 for a in accounts}
    for item in items:
        if item.account_id in own:
            own[item.account_id] += item.total_price_cents

    totals: dict[int, int] = {}
    groups: dict[tuple[str, str], list[tuple[object, SplitConfig]]] = {}

    for account in accounts:
        config = split_config_of(account)
        if isinstance(config, ByItemSplit):
            totals[account.id] = own[account.id]
        else:
            groups.setdefault((config.split_type, config.group), []).append((account, config))

    for (split_type, group), members in groups.items():
        pool = sum(own[a.id] for a, _ in members)
        shares = _group_shares(split_type, pool, [c for _, c in members], group)
        for (account, _), share in zip(members, shares):
            totals[account.id] = share

    for account in accounts:
        if totals[account.id] < 0:
            raise ValidationError(f"Account '{account.name}' total cannot be negative")

    return totals


def compute_account_total(account, accounts: Iterable | None, items: Iterable) -> int:
    """
    Total for a single account.

    `accounts` are the account's checkout siblings; they are needed for any
    split other than by_item. With None the account is treated as the only
    member of its group.
    """
    peers = list(accounts) if accounts is not None else [account]
    if all(a.id != account.id for a in peers):
        peers.append(account)
    return compute_account_totals(peers, items)[account.id]
