from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from greenfee import store
from greenfee.models import DayType, TimeSlot

logger = logging.getLogger(__name__)

DAY_TYPE_LABELS = {
    DayType.weekday.value: "平日",
    DayType.weekend.value: "周末",
    DayType.holiday.value: "假日",
}

TIME_SLOT_LABELS = {
    TimeSlot.morning.value: "早场",
    TimeSlot.afternoon.value: "午场",
    TimeSlot.twilight.value: "黄昏",
}


@dataclass(frozen=True)
class DayInfo:
    day_type: str
    date_name: Optional[str] = None
    is_closed: bool = False


def parse_date(date_str: str) -> date:
    return datetime.strptime(str(date_str).strip(), "%Y-%m-%d").date()


def day_type_for_date(on_date: date) -> str:
    # Python weekday(): Monday=0 ... Sunday=6
    return DayType.weekend.value if on_date.weekday() >= 5 else DayType.weekday.value


def determine_day_type(db: Session, club_id: str, date_str: str) -> DayInfo:
    """
    Classify a date for pricing.

    A special-date row for (club, date) wins outright; otherwise Saturday and
    Sunday are weekend and everything else weekday. A failed lookup is logged
    and treated as "no special date".
    """
    on_date = parse_date(date_str)

    try:
        special = store.find_special_date(db, club_id, on_date.isoformat())
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("special_dates lookup failed for club=%s date=%s: %s", club_id, date_str, e)
        special = None

    if special is not None:
        return DayInfo(
            day_type=special.pricing_override or special.date_type or DayType.holiday.value,
            date_name=special.date_name or None,
            is_closed=bool(special.is_closed),
        )

    return DayInfo(day_type=day_type_for_date(on_date))


def determine_time_slot(tee_time: Optional[str]) -> str:
    if not tee_time:
        return TimeSlot.morning.value
    try:
        hour = int(str(tee_time).strip().split(":")[0])
    except ValueError:
        return TimeSlot.morning.value
    if hour < 12:
        return TimeSlot.morning.value
    if hour < 16:
        return TimeSlot.afternoon.value
    return TimeSlot.twilight.value
