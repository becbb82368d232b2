#!/usr/bin/env python3
"""
Seed the default day type x time slot rate matrix (9 sheets) for a club.

Examples:
  python populate_rate_sheets.py
  python populate_rate_sheets.py --club-id club_a --walkin 800 --guest 700 --member 500
  python populate_rate_sheets.py --weekend-markup 1.25 --holiday-markup 1.5 --caddy-fee 200
"""

from __future__ import annotations

import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from greenfee.database import DB_INFO, DB_SOURCE, SessionLocal, init_db
from greenfee.models import DayType
from greenfee.pricing import round_whole
from greenfee.rate_sheets import build_default_matrix, upsert_rate_sheets


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the default rate sheet matrix in the active database.")
    parser.add_argument("--club-id", default="default", help="Club identifier (default: default)")
    parser.add_argument("--course-id", default=None, help="Limit the sheets to one course")
    parser.add_argument("--walkin", type=float, default=800, help="Weekday walk-in green fee")
    parser.add_argument("--guest", type=float, default=700, help="Weekday guest green fee")
    parser.add_argument("--member", type=float, default=500, help="Weekday level-1 member green fee")
    parser.add_argument("--member-step", type=float, default=50, help="Reduction per higher member level")
    parser.add_argument("--weekend-markup", type=float, default=1.25)
    parser.add_argument("--holiday-markup", type=float, default=1.5)
    parser.add_argument("--caddy-fee", type=float, default=0)
    parser.add_argument("--cart-fee", type=float, default=0)
    parser.add_argument("--insurance-fee", type=float, default=0)
    return parser.parse_args(argv)


def _weekday_prices(args: argparse.Namespace) -> dict:
    prices = {"walkin": args.walkin, "guest": args.guest}
    for level in range(1, 5):
        prices[f"member_{level}"] = max(0.0, args.member - args.member_step * (level - 1))
    return prices


def _scaled(prices: dict, factor: float) -> dict:
    return {code: round_whole(amount * factor) for code, amount in prices.items()}


def main(argv: list[str]) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    weekday = _weekday_prices(args)
    base_prices = {
        DayType.weekday.value: weekday,
        DayType.weekend.value: _scaled(weekday, args.weekend_markup),
        DayType.holiday.value: _scaled(weekday, args.holiday_markup),
    }
    sheets = build_default_matrix(
        args.club_id,
        base_prices,
        course_id=args.course_id,
        caddy_fee=args.caddy_fee,
        cart_fee=args.cart_fee,
        insurance_fee=args.insurance_fee,
    )

    init_db()
    db = SessionLocal()
    try:
        print("Populating rate sheets...")
        added, updated = upsert_rate_sheets(db, sheets)
        db.commit()
        for sheet in sheets:
            print(f"  {sheet.rule_name}: walkin={sheet.prices.get('walkin')}")
        print(f"\nOK: {added} added, {updated} updated ({len(sheets)} total).")
        print(f"DB: source={DB_SOURCE} driver={(DB_INFO or {}).get('driver')}")
        return 0
    except SQLAlchemyError as e:
        db.rollback()
        print(f"ERROR: Database error: {str(e)[:240]}")
        return 3
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
