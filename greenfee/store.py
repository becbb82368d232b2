from __future__ import annotations
# greenfee/store.py
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from greenfee import models

logger = logging.getLogger(__name__)

DEFAULT_RATE_SHEET_SCAN_LIMIT = 20
MEMBERSHIP_SCAN_LIMIT = 10


def find_special_date(db: Session, club_id: str, date_str: str) -> Optional[models.SpecialDate]:
    return (
        db.query(models.SpecialDate)
        .filter(models.SpecialDate.club_id == club_id, models.SpecialDate.date == date_str)
        .order_by(models.SpecialDate.id)
        .first()
    )


def find_active_membership(db: Session, club_id: str, player_id: str) -> Optional[models.Membership]:
    """Most recently created active/expiring membership among the player's latest ten."""
    rows = (
        db.query(models.Membership)
        .filter(models.Membership.club_id == club_id, models.Membership.player_id == player_id)
        .order_by(models.Membership.created_at.desc(), models.Membership.id.desc())
        .limit(MEMBERSHIP_SCAN_LIMIT)
        .all()
    )
    for row in rows:
        if row.status in models.ACTIVE_MEMBERSHIP_STATUSES:
            return row
    return None


def query_rate_sheets(
    db: Session,
    club_id: str,
    day_type: str,
    time_slot: str,
    limit: int = DEFAULT_RATE_SHEET_SCAN_LIMIT,
) -> List[models.RateSheet]:
    # Equal priorities fall back to insertion order (lowest id first).
    return (
        db.query(models.RateSheet)
        .filter(
            models.RateSheet.club_id == club_id,
            models.RateSheet.day_type == day_type,
            models.RateSheet.time_slot == time_slot,
            models.RateSheet.status == models.SheetStatus.active.value,
        )
        .order_by(models.RateSheet.priority.desc(), models.RateSheet.id.asc())
        .limit(limit)
        .all()
    )


def get_package(db: Session, package_id) -> Optional[models.StayPackage]:
    return db.query(models.StayPackage).filter(models.StayPackage.id == package_id).first()


def get_team_pricing_config(db: Session, club_id: str) -> Optional[models.TeamPricingConfig]:
    return db.query(models.TeamPricingConfig).filter(models.TeamPricingConfig.club_id == club_id).first()


def update_membership_usage(
    db: Session,
    membership_id: int,
    field: models.UsageField,
    delta,
    allowance_field: Optional[str] = None,
) -> bool:
    """
    Atomically add `delta` to one usage counter of a membership.

    The bound is part of the UPDATE's WHERE clause, so the database checks it
    against the row as it exists when the write happens. Reading the counter
    in Python and writing back `used + 1` would let two concurrent bookings
    both pass the check and both consume the last unit; do not do that here.

    With `allowance_field` set, the update only applies when the allowance is
    0 (unlimited) or `used + delta <= allowance`. The membership must still be
    active/expiring at write time.

    Returns True when exactly one row was updated.
    """
    field = models.UsageField(field)
    counter = getattr(models.Membership, field.value)
    current = func.coalesce(counter, 0)

    conditions = [
        models.Membership.id == membership_id,
        models.Membership.status.in_(models.ACTIVE_MEMBERSHIP_STATUSES),
    ]
    if allowance_field:
        allowance = func.coalesce(getattr(models.Membership, allowance_field), 0)
        conditions.append(or_(allowance == 0, current + delta <= allowance))

    try:
        applied = (
            db.query(models.Membership)
            .filter(*conditions)
            .update(
                {counter: current + delta, models.Membership.updated_at: datetime.utcnow()},
                synchronize_session=False,
            )
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if applied:
        # Loaded instances still hold the pre-update counters.
        db.expire_all()
    return applied == 1
