from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Mapping, Optional, Union

from greenfee.models import RateSheet, ReducedPolicyType

WALKIN = "walkin"
GUEST = "guest"
MEMBER_PREFIX = "member_"
MEMBER_BASE = "member_1"

ADD_ON_DESCRIPTION = "加打9洞"
ADD_ON_ESTIMATE_DESCRIPTION = "加打9洞（估算{percent}%）"

DEFAULT_ADD_ON_ESTIMATE_RATE = 0.5
DEFAULT_REDUCED_MIN_RATE = 0.6

# Legacy flat column -> identity code
LEGACY_PRICE_FIELDS = {
    "price_walkin": WALKIN,
    "price_guest": GUEST,
    "price_member1": "member_1",
    "price_member2": "member_2",
    "price_member3": "member_3",
    "price_member4": "member_4",
}


def normalize_code(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip().lower()
    return value or None


def round_money(value, places: int = 2) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_whole(value) -> float:
    return round_money(value, 0)


def add_on_estimate_description(estimate_rate: float) -> str:
    return ADD_ON_ESTIMATE_DESCRIPTION.format(percent=f"{round_money(estimate_rate * 100, 1):g}")


def to_amount(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def canonical_price_map(raw: Optional[Mapping]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for key, value in (raw or {}).items():
        code = normalize_code(key)
        amount = to_amount(value)
        if code and amount is not None:
            out[code] = amount
    return out


def normalize_prices(sheet: Optional[RateSheet]) -> Dict[str, float]:
    """
    Identity-code price map of a sheet.

    Sheets written before the `prices` map existed only carry the flat
    `price_walkin` / `price_guest` / `price_member1..4` columns; those are
    folded into `walkin` / `guest` / `member_1..4`.
    """
    if sheet is None:
        return {}
    prices = canonical_price_map(sheet.prices)
    if prices:
        return prices
    for attr, code in LEGACY_PRICE_FIELDS.items():
        amount = to_amount(getattr(sheet, attr, None))
        if amount is not None:
            prices[code] = amount
    return prices


def lookup_identity_price(prices: Mapping[str, float], identity_code: Optional[str]) -> Optional[float]:
    """exact -> member_1 (for member_*) -> walkin. None when nothing applies."""
    code = normalize_code(identity_code) or WALKIN
    if code in prices:
        return prices[code]
    if code.startswith(MEMBER_PREFIX) and MEMBER_BASE in prices:
        return prices[MEMBER_BASE]
    return prices.get(WALKIN)


def _field(obj, name):
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def resolve_identity_code(player) -> str:
    """
    Pricing identity of a player (dict or object).

    Explicit `identity_code` wins; legacy `member_type == "member"` with a
    `member_level` becomes `member_<level>`; otherwise the raw member type.
    """
    explicit = normalize_code(_field(player, "identity_code"))
    if explicit:
        return explicit

    member_type = normalize_code(_field(player, "member_type")) or normalize_code(_field(player, "type"))
    level = _field(player, "member_level")
    if member_type == "member" and level:
        return f"{MEMBER_PREFIX}{level}"
    return member_type or WALKIN


# ---------------------------------------------------------------------------
# Reduced-play policies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NoRefund:
    type: str = ReducedPolicyType.no_refund.value


@dataclass(frozen=True)
class FixedRate:
    fixed_prices: Dict[str, float] = field(default_factory=dict)
    rate: Optional[float] = None
    type: str = ReducedPolicyType.fixed_rate.value


@dataclass(frozen=True)
class Proportional:
    rate: Optional[float] = None
    type: str = ReducedPolicyType.proportional.value


ReducedPolicy = Union[NoRefund, FixedRate, Proportional]


def parse_reduced_policy(raw: Optional[Mapping]) -> ReducedPolicy:
    raw = raw or {}
    policy_type = normalize_code(raw.get("type"))
    rate = to_amount(raw.get("rate"))
    if policy_type == ReducedPolicyType.no_refund.value:
        return NoRefund()
    if policy_type == ReducedPolicyType.fixed_rate.value:
        return FixedRate(fixed_prices=canonical_price_map(raw.get("fixedPrices") or raw.get("fixed_prices")), rate=rate)
    # Unknown or missing type behaves as proportional.
    return Proportional(rate=rate)


# ---------------------------------------------------------------------------
# Fee resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddOnFee:
    fee: float
    available: bool
    description: str
    estimated: bool = False


@dataclass(frozen=True)
class ReducedFee:
    fee: float
    policy_type: str
    standard_fee: float
    holes_played: int
    holes_booked: int
    charge_rate: Optional[float] = None


def get_green_fee(sheet: Optional[RateSheet], identity_code: Optional[str]) -> float:
    if sheet is None:
        return 0.0
    price = lookup_identity_price(normalize_prices(sheet), identity_code)
    return float(price) if price is not None else 0.0


def get_add_on_fee(
    sheet: Optional[RateSheet],
    identity_code: Optional[str],
    estimate_rate: float = DEFAULT_ADD_ON_ESTIMATE_RATE,
) -> AddOnFee:
    if sheet is None:
        return AddOnFee(fee=0.0, available=False, description=ADD_ON_DESCRIPTION)

    add_on_prices = canonical_price_map(sheet.add_on_prices)
    if add_on_prices:
        price = lookup_identity_price(add_on_prices, identity_code)
        if price is None:
            return AddOnFee(fee=0.0, available=False, description=ADD_ON_DESCRIPTION)
        return AddOnFee(fee=float(price), available=True, description=ADD_ON_DESCRIPTION)

    standard = get_green_fee(sheet, identity_code)
    return AddOnFee(
        fee=round_whole(standard * estimate_rate),
        available=True,
        description=add_on_estimate_description(estimate_rate),
        estimated=True,
    )


def completion_ratio(holes_played: int, holes_booked: int) -> float:
    if not holes_booked or holes_booked <= 0:
        return 1.0
    return min(1.0, max(0.0, float(holes_played or 0) / float(holes_booked)))


def _proportional_fee(standard: float, ratio: float, floor_rate: float) -> tuple[float, float]:
    charge_rate = max(ratio, floor_rate)
    return round_whole(standard * charge_rate), charge_rate


def get_reduced_fee(
    sheet: Optional[RateSheet],
    identity_code: Optional[str],
    holes_played: int,
    holes_booked: int,
    default_min_rate: float = DEFAULT_REDUCED_MIN_RATE,
) -> ReducedFee:
    """
    Fee for a round stopped before the booked hole count.

    Proportional charging never goes below the policy floor rate:
    `round(standard * max(played / booked, floor))`.
    """
    standard = get_green_fee(sheet, identity_code)
    policy = parse_reduced_policy(sheet.reduced_play_policy if sheet is not None else None)
    ratio = completion_ratio(holes_played, holes_booked)

    common = dict(standard_fee=standard, holes_played=int(holes_played or 0), holes_booked=int(holes_booked or 0))

    if isinstance(policy, NoRefund):
        return ReducedFee(fee=standard, policy_type=policy.type, charge_rate=1.0, **common)

    if isinstance(policy, FixedRate):
        fixed = lookup_identity_price(policy.fixed_prices, identity_code)
        if fixed is not None:
            return ReducedFee(fee=float(fixed), policy_type=policy.type, **common)
        floor_rate = policy.rate if policy.rate is not None else default_min_rate
        fee, charge_rate = _proportional_fee(standard, ratio, floor_rate)
        return ReducedFee(
            fee=fee, policy_type=ReducedPolicyType.proportional.value, charge_rate=charge_rate, **common
        )

    if isinstance(policy, Proportional):
        floor_rate = policy.rate if policy.rate is not None else default_min_rate
        fee, charge_rate = _proportional_fee(standard, ratio, floor_rate)
        return ReducedFee(fee=fee, policy_type=policy.type, charge_rate=charge_rate, **common)

    raise TypeError(f"Unsupported reduced-play policy: {policy!r}")
