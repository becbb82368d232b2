from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from greenfee import store
from greenfee.models import DayType, SheetStatus
from greenfee.pricing import GUEST, MEMBER_PREFIX, WALKIN, canonical_price_map, normalize_code, to_amount

logger = logging.getLogger(__name__)

SURCHARGE_DAY_TYPES = {DayType.weekend.value, DayType.holiday.value}

# Legacy package pricing keys -> identity code
LEGACY_PACKAGE_FIELDS = {
    "priceWalkin": WALKIN,
    "priceGuest": GUEST,
    "priceMember1": "member_1",
    "priceMember2": "member_2",
    "priceMember3": "member_3",
    "priceMember4": "member_4",
}


@dataclass(frozen=True)
class PackagePrice:
    package_id: int
    package_name: Optional[str]
    package_code: Optional[str]
    package_price: float
    weekend_surcharge: float = 0.0
    includes: Dict = field(default_factory=dict)

    @property
    def caddy_included(self) -> bool:
        return bool(self.includes.get("caddyIncluded"))

    @property
    def cart_included(self) -> bool:
        return bool(self.includes.get("cartIncluded"))


def normalize_package_prices(pricing: Optional[Mapping]) -> Dict[str, float]:
    """Identity-code price map from either `pricing.prices` or the legacy per-level keys."""
    pricing = pricing or {}
    prices = canonical_price_map(pricing.get("prices"))
    if prices:
        return prices
    for key, code in LEGACY_PACKAGE_FIELDS.items():
        amount = to_amount(pricing.get(key))
        if amount:
            prices[code] = amount
    return prices


def package_base_price(pricing: Optional[Mapping], identity_code: Optional[str]) -> float:
    """exact identity -> walkin -> basePrice -> legacy memberPrice (members only)."""
    pricing = pricing or {}
    prices = normalize_package_prices(pricing)
    code = normalize_code(identity_code) or WALKIN

    if code in prices:
        return prices[code]
    if WALKIN in prices:
        return prices[WALKIN]
    base = to_amount(pricing.get("basePrice"))
    if base:
        return base
    if code.startswith(MEMBER_PREFIX):
        member_price = to_amount(pricing.get("memberPrice"))
        if member_price:
            return member_price
    return 0.0


def calculate_package_price(
    db: Session,
    club_id: str,
    package_id,
    identity_code: Optional[str],
    day_type: str,
) -> Optional[PackagePrice]:
    if not package_id:
        return None

    try:
        pkg = store.get_package(db, package_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("stay_packages lookup failed for club=%s package=%s: %s", club_id, package_id, e)
        return None

    if pkg is None or pkg.status != SheetStatus.active.value:
        return None
    if pkg.club_id != club_id:
        logger.info("stay package=%s belongs to club=%s, not club=%s", package_id, pkg.club_id, club_id)
        return None

    pricing = pkg.pricing or {}
    price = package_base_price(pricing, identity_code)
    surcharge = 0.0
    if day_type in SURCHARGE_DAY_TYPES:
        surcharge = to_amount(pricing.get("weekendSurcharge")) or 0.0
        price += surcharge

    return PackagePrice(
        package_id=pkg.id,
        package_name=pkg.package_name,
        package_code=pkg.package_code,
        package_price=price,
        weekend_surcharge=surcharge,
        includes=dict(pkg.includes or {}),
    )
