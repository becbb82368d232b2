from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from greenfee import models, store
from greenfee.models import UsageField
from greenfee.schemas import BenefitSet, PlayerBenefits, RemainingEntitlements, UsageCounters

logger = logging.getLogger(__name__)

UNLIMITED = "unlimited"


def _int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def get_active_membership(db: Session, club_id: str, player_id: str) -> Optional[models.Membership]:
    try:
        return store.find_active_membership(db, club_id, player_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("memberships lookup failed for club=%s player=%s: %s", club_id, player_id, e)
        return None


def get_player_benefits(db: Session, club_id: str, player_id: str) -> PlayerBenefits:
    """
    Current entitlements of a player.

    `free_rounds = 0` is unlimited (remaining shows "unlimited");
    `guest_quota = 0` is no guest allowance at all.
    """
    membership = get_active_membership(db, club_id, player_id)
    if membership is None:
        return PlayerBenefits()

    total_free_rounds = _int(membership.free_rounds)
    total_guest_quota = _int(membership.guest_quota)
    rounds_used = _int(membership.rounds_used)
    guest_brought = _int(membership.guest_brought)

    if total_free_rounds > 0:
        remaining_free_rounds = max(0, total_free_rounds - rounds_used)
        can_use_free_round = remaining_free_rounds > 0
    else:
        remaining_free_rounds = UNLIMITED
        can_use_free_round = True
    remaining_guest_quota = max(0, total_guest_quota - guest_brought)

    benefits = BenefitSet(
        free_rounds=total_free_rounds,
        discount_rate=membership.discount_rate,
        guest_quota=total_guest_quota,
        guest_discount=membership.guest_discount,
        priority_booking=bool(membership.priority_booking),
        free_caddy=bool(membership.free_caddy),
        free_cart=bool(membership.free_cart),
        free_locker=bool(membership.free_locker),
        free_parking=bool(membership.free_parking),
    )

    return PlayerBenefits(
        has_membership=True,
        membership_id=membership.id,
        membership_no=membership.membership_no,
        plan_name=membership.plan_name,
        plan_category=membership.plan_category,
        status=membership.status,
        benefits=benefits,
        usage=UsageCounters(
            rounds_used=rounds_used,
            guest_brought=guest_brought,
            total_consumption=float(membership.total_consumption or 0),
        ),
        remaining=RemainingEntitlements(free_rounds=remaining_free_rounds, guest_quota=remaining_guest_quota),
        can_use_free_round=can_use_free_round,
        can_bring_guest=remaining_guest_quota > 0,
        discount_rate=float(membership.discount_rate or 1),
        priority_booking=benefits.priority_booking,
        free_caddy=benefits.free_caddy,
        free_cart=benefits.free_cart,
        free_locker=benefits.free_locker,
        free_parking=benefits.free_parking,
    )


def _consume(
    db: Session,
    club_id: str,
    player_id: str,
    field: UsageField,
    delta,
    allowance_field: Optional[str],
) -> bool:
    membership = get_active_membership(db, club_id, player_id)
    if membership is None:
        logger.info("No active membership for club=%s player=%s; %s not recorded", club_id, player_id, field.value)
        return False

    try:
        applied = store.update_membership_usage(db, membership.id, field, delta, allowance_field=allowance_field)
    except SQLAlchemyError as e:
        logger.warning("Failed to update %s for membership=%s: %s", field.value, membership.id, e)
        return False

    if applied:
        logger.debug("membership=%s %s += %s", membership.id, field.value, delta)
    else:
        logger.info("membership=%s %s allowance exhausted", membership.id, field.value)
    return applied


def consume_free_round(db: Session, club_id: str, player_id: str) -> bool:
    """Use one free round; False when the allowance is used up (0 = unlimited)."""
    return _consume(db, club_id, player_id, UsageField.rounds_used, 1, "free_rounds")


def consume_guest_quota(db: Session, club_id: str, player_id: str, count: int = 1) -> bool:
    if count <= 0:
        return False
    return _consume(db, club_id, player_id, UsageField.guest_brought, int(count), "guest_quota")


def add_consumption(db: Session, club_id: str, player_id: str, amount) -> bool:
    """Add to lifetime spend. Unbounded; returns False only when there is no membership to record it on."""
    return _consume(db, club_id, player_id, UsageField.total_consumption, float(amount), None)
