from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from greenfee import models, store
from greenfee.classifiers import DAY_TYPE_LABELS, TIME_SLOT_LABELS, parse_date
from greenfee.models import DayType, RateSheet, TimeSlot

logger = logging.getLogger(__name__)

DAY_TYPES = [d.value for d in DayType]
TIME_SLOTS = [t.value for t in TimeSlot]


def _parse_bound(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return parse_date(value)
    except ValueError:
        # Unreadable bound: treat as open-ended.
        return None


def _sheet_applies(sheet: RateSheet, course_id: Optional[str], holes: Optional[int], on_date: date) -> bool:
    # A sheet without course/holes applies to all; a request without them accepts any sheet.
    if sheet.course_id and course_id and sheet.course_id != course_id:
        return False
    if sheet.holes and holes and int(sheet.holes) != int(holes):
        return False

    valid_from = _parse_bound(sheet.valid_from)
    if valid_from is not None and on_date < valid_from:
        return False
    valid_to = _parse_bound(sheet.valid_to)
    if valid_to is not None and on_date > valid_to:
        return False
    return True


def select_rate_sheet_from_list(
    sheets: Iterable[RateSheet],
    course_id: Optional[str],
    holes: Optional[int],
    on_date: date,
) -> Optional[RateSheet]:
    """First applicable sheet; `sheets` must already be in priority order."""
    for sheet in sheets:
        if _sheet_applies(sheet, course_id, holes, on_date):
            return sheet
    return None


def match_rate_sheet(
    db: Session,
    club_id: str,
    course_id: Optional[str],
    day_type: str,
    time_slot: str,
    holes: Optional[int],
    date_str: Optional[str],
    scan_limit: int = store.DEFAULT_RATE_SHEET_SCAN_LIMIT,
) -> Optional[RateSheet]:
    on_date = parse_date(date_str) if date_str else date.today()
    try:
        candidates = store.query_rate_sheets(db, club_id, day_type, time_slot, limit=scan_limit)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(
            "rate_sheets lookup failed for club=%s day_type=%s time_slot=%s: %s",
            club_id, day_type, time_slot, e,
        )
        return None
    return select_rate_sheet_from_list(candidates, course_id, holes, on_date)


def build_rate_matrix(db: Session, club_id: str) -> dict:
    """Highest-priority active sheet for every day type x time slot cell."""
    rules = (
        db.query(RateSheet)
        .filter(RateSheet.club_id == club_id, RateSheet.status == models.SheetStatus.active.value)
        .order_by(RateSheet.priority.desc(), RateSheet.id.asc())
        .limit(100)
        .all()
    )

    matrix: Dict[str, Dict[str, Optional[RateSheet]]] = {}
    for day_type in DAY_TYPES:
        matrix[day_type] = {}
        for time_slot in TIME_SLOTS:
            matrix[day_type][time_slot] = next(
                (r for r in rules if r.day_type == day_type and r.time_slot == time_slot),
                None,
            )

    return {
        "matrix": matrix,
        "day_types": [{"key": d, "label": DAY_TYPE_LABELS[d]} for d in DAY_TYPES],
        "time_slots": [{"key": t, "label": TIME_SLOT_LABELS[t]} for t in TIME_SLOTS],
        "total_rules": len(rules),
    }


def default_rule_name(day_type: str, time_slot: str) -> str:
    return f"{DAY_TYPE_LABELS.get(day_type, day_type)}{TIME_SLOT_LABELS.get(time_slot, time_slot)}价格"


def build_default_matrix(
    club_id: str,
    base_prices: Dict[str, Dict[str, float]],
    course_id: Optional[str] = None,
    caddy_fee: float = 0.0,
    cart_fee: float = 0.0,
    insurance_fee: float = 0.0,
    priority: int = 100,
) -> List[RateSheet]:
    """
    Nine unsaved sheets (3 day types x 3 time slots).

    `base_prices` maps a day type to its identity-code price map; every slot
    of that day type gets a copy of it.
    """
    sheets = []
    for day_type in DAY_TYPES:
        prices = base_prices.get(day_type)
        if not prices:
            continue
        for time_slot in TIME_SLOTS:
            sheets.append(
                RateSheet(
                    club_id=club_id,
                    course_id=course_id,
                    rule_name=default_rule_name(day_type, time_slot),
                    day_type=day_type,
                    time_slot=time_slot,
                    holes=18,
                    status=models.SheetStatus.active.value,
                    priority=priority,
                    prices=dict(prices),
                    caddy_fee=caddy_fee,
                    cart_fee=cart_fee,
                    insurance_fee=insurance_fee,
                )
            )
    return sheets


def upsert_rate_sheets(db: Session, sheets: Iterable[RateSheet]) -> tuple[int, int]:
    """
    Save sheets, updating an existing row with the same club, course,
    day type and time slot instead of adding a duplicate.

    Returns (added, updated). The caller commits.
    """
    added = 0
    updated = 0
    for sheet in sheets:
        existing = (
            db.query(RateSheet)
            .filter(
                RateSheet.club_id == sheet.club_id,
                RateSheet.course_id.is_(None) if sheet.course_id is None else RateSheet.course_id == sheet.course_id,
                RateSheet.day_type == sheet.day_type,
                RateSheet.time_slot == sheet.time_slot,
            )
            .first()
        )
        if existing:
            for attr in (
                "rule_name", "holes", "status", "priority", "prices", "caddy_fee", "cart_fee", "insurance_fee",
            ):
                setattr(existing, attr, getattr(sheet, attr))
            updated += 1
        else:
            db.add(sheet)
            added += 1
    return added, updated
