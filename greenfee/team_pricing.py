from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from greenfee import store
from greenfee.pricing import round_money
from greenfee.pricing_settings import DEFAULT_PRICING_CONFIG

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeamTier:
    min_players: int
    max_players: Optional[int]
    discount_rate: float
    label: str = ""

    def contains(self, total_players: int) -> bool:
        upper = self.max_players if self.max_players else float("inf")
        return self.min_players <= total_players <= upper


@dataclass(frozen=True)
class TeamDiscount:
    discount_rate: float = 1.0
    label: str = ""
    floor_price_rate: float = DEFAULT_PRICING_CONFIG.default_floor_rate

    @property
    def applies(self) -> bool:
        return self.discount_rate < 1


@dataclass(frozen=True)
class AppliedTeamDiscount:
    original_green_fee: float
    discounted_green_fee: float
    discount_amount: float
    floor_applied: bool


def parse_tiers(raw) -> List[TeamTier]:
    tiers = []
    for item in raw or []:
        try:
            min_players = int(item.get("minPlayers") or 0)
            max_players = item.get("maxPlayers")
            tiers.append(
                TeamTier(
                    min_players=min_players,
                    max_players=int(max_players) if max_players else None,
                    discount_rate=float(item.get("discountRate") or 1),
                    label=str(item.get("label") or ""),
                )
            )
        except (AttributeError, TypeError, ValueError):
            logger.warning("Skipping malformed team pricing tier: %r", item)
    return tiers


def select_tier(tiers: List[TeamTier], total_players: int) -> Optional[TeamTier]:
    for tier in sorted(tiers, key=lambda t: t.min_players, reverse=True):
        if tier.contains(total_players):
            return tier
    return None


def get_team_discount(
    db: Session,
    club_id: str,
    total_players: int,
    default_floor_rate: float = DEFAULT_PRICING_CONFIG.default_floor_rate,
) -> TeamDiscount:
    no_discount = TeamDiscount(floor_price_rate=default_floor_rate)
    if not total_players or total_players < 2:
        return no_discount

    try:
        config = store.get_team_pricing_config(db, club_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("team_pricing lookup failed for club=%s: %s", club_id, e)
        return no_discount

    if config is None or not config.enabled:
        return no_discount

    tier = select_tier(parse_tiers(config.tiers), total_players)
    if tier is None:
        return no_discount

    floor_rate = config.floor_price_rate if config.floor_price_rate is not None else default_floor_rate
    return TeamDiscount(discount_rate=tier.discount_rate, label=tier.label, floor_price_rate=float(floor_rate))


def apply_team_discount(base_green_fee: float, team: TeamDiscount) -> AppliedTeamDiscount:
    """Discounted amount, held at or above the club's floor price."""
    discounted = base_green_fee * team.discount_rate
    floor_amount = base_green_fee * team.floor_price_rate
    final_amount = max(discounted, floor_amount)
    # Never charge more than the undiscounted fee.
    final_amount = min(final_amount, base_green_fee)
    return AppliedTeamDiscount(
        original_green_fee=base_green_fee,
        discounted_green_fee=round_money(final_amount),
        discount_amount=round_money(base_green_fee - final_amount),
        floor_applied=floor_amount > discounted,
    )
