from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from greenfee.classifiers import (
    DAY_TYPE_LABELS,
    TIME_SLOT_LABELS,
    DayInfo,
    determine_day_type,
    determine_time_slot,
)
from greenfee.models import RateSheet
from greenfee.packages import calculate_package_price
from greenfee.pricing import (
    get_add_on_fee,
    get_green_fee,
    get_reduced_fee,
    resolve_identity_code,
    round_money,
    round_whole,
)
from greenfee.pricing_settings import PricingConfig, get_pricing_config
from greenfee.rate_sheets import match_rate_sheet
from greenfee.schemas import (
    AddOnInfo,
    BookingPriceRequest,
    DayPricePreview,
    FeeStandards,
    PackageInfo,
    PlayerLine,
    Quote,
    ReducedInfo,
    TeamDiscountInfo,
)
from greenfee.team_pricing import apply_team_discount, get_team_discount

logger = logging.getLogger(__name__)

MODE_STANDARD = "standard"
MODE_ADD_ON = "add_on"
MODE_REDUCED = "reduced"
MODE_PACKAGE = "package"

# Tee sheet used by the day price preview: 07:00 to 16:48 every 12 minutes.
PREVIEW_FIRST_HOUR = 7
PREVIEW_LAST_HOUR = 16
PREVIEW_INTERVAL_MINUTES = 12


def _unit_fee(sheet: Optional[RateSheet], attr: str) -> float:
    if sheet is None:
        return 0.0
    return float(getattr(sheet, attr, None) or 0)


def _fee_standards(sheet: Optional[RateSheet]) -> Optional[FeeStandards]:
    if sheet is None:
        return None
    return FeeStandards(
        caddy_fee_unit=_unit_fee(sheet, "caddy_fee"),
        cart_fee_unit=_unit_fee(sheet, "cart_fee"),
        insurance_fee_unit=_unit_fee(sheet, "insurance_fee"),
    )


def _pricing_mode(req: BookingPriceRequest) -> str:
    if req.is_add_on:
        return MODE_ADD_ON
    if req.is_reduced:
        return MODE_REDUCED
    return MODE_STANDARD


def _closed_quote(req: BookingPriceRequest, day: DayInfo) -> Quote:
    return Quote(
        success=False,
        error=f"{req.date} 为封场日（{day.date_name or ''}），无法预订",
        is_closed=True,
        day_type=day.day_type,
        day_type_name=DAY_TYPE_LABELS.get(day.day_type, day.day_type),
        date_name=day.date_name,
    )


def _package_quote(
    db: Session,
    req: BookingPriceRequest,
    day: DayInfo,
    time_slot: str,
    sheet: Optional[RateSheet],
) -> Optional[Quote]:
    first_identity = resolve_identity_code(req.players[0]) if req.players else resolve_identity_code(None)
    pkg = calculate_package_price(db, req.club_id, req.package_id, first_identity, day.day_type)
    if pkg is None:
        return None

    green_fee = pkg.package_price
    caddy_fee = 0.0 if pkg.caddy_included or not req.need_caddy else _unit_fee(sheet, "caddy_fee")
    cart_fee = 0.0 if pkg.cart_included or not req.need_cart else _unit_fee(sheet, "cart_fee")
    insurance_fee = _unit_fee(sheet, "insurance_fee") * len(req.players)
    total_fee = round_money(green_fee + caddy_fee + cart_fee + insurance_fee)

    return Quote(
        price_source="package",
        mode=MODE_PACKAGE,
        day_type=day.day_type,
        day_type_name=DAY_TYPE_LABELS.get(day.day_type, day.day_type),
        date_name=day.date_name,
        time_slot=time_slot,
        time_slot_name=TIME_SLOT_LABELS.get(time_slot, time_slot),
        rate_sheet_id=sheet.id if sheet is not None else None,
        rate_sheet_name=sheet.rule_name if sheet is not None else None,
        has_rate_sheet=sheet is not None,
        green_fee=green_fee,
        caddy_fee=caddy_fee,
        cart_fee=cart_fee,
        insurance_fee=insurance_fee,
        discount=0.0,
        total_fee=total_fee,
        per_player_fee=round_whole(green_fee / len(req.players)) if req.players else 0.0,
        package=PackageInfo(
            package_id=pkg.package_id,
            package_name=pkg.package_name,
            package_code=pkg.package_code,
            package_price=pkg.package_price,
            weekend_surcharge=pkg.weekend_surcharge,
            includes=pkg.includes,
        ),
        fee_standards=_fee_standards(sheet),
    )


def _price_player(player, sheet: Optional[RateSheet], req: BookingPriceRequest, mode: str, config: PricingConfig) -> PlayerLine:
    identity = resolve_identity_code(player)

    if mode == MODE_ADD_ON:
        add_on = get_add_on_fee(sheet, identity, estimate_rate=config.add_on_estimate_rate)
        return PlayerLine(
            name=player.name,
            identity_code=identity,
            green_fee=add_on.fee,
            add_on_info=AddOnInfo(
                fee=add_on.fee,
                available=add_on.available,
                description=add_on.description,
                estimated=add_on.estimated,
            ),
        )

    if mode == MODE_REDUCED:
        holes_played = req.holes_played if req.holes_played is not None else req.holes
        reduced = get_reduced_fee(sheet, identity, holes_played, req.holes, default_min_rate=config.reduced_min_rate)
        return PlayerLine(
            name=player.name,
            identity_code=identity,
            green_fee=reduced.fee,
            reduced_info=ReducedInfo(
                fee=reduced.fee,
                policy_type=reduced.policy_type,
                standard_fee=reduced.standard_fee,
                holes_played=reduced.holes_played,
                holes_booked=reduced.holes_booked,
                charge_rate=reduced.charge_rate,
            ),
        )

    return PlayerLine(name=player.name, identity_code=identity, green_fee=get_green_fee(sheet, identity))


def calculate_booking_price(db: Session, request) -> Quote:
    """
    Price a booking request.

    Order: day type (closed dates stop here) -> time slot -> rate sheet ->
    package (standard mode only) -> per-player fees -> flat fees -> team
    discount (standard mode, large groups) -> total. The returned Quote keeps
    the sheet id, classifications and per-player lines so the total can be
    explained afterwards.
    """
    req = request if isinstance(request, BookingPriceRequest) else BookingPriceRequest.model_validate(request)
    config = get_pricing_config(db, req.club_id)

    day = determine_day_type(db, req.club_id, req.date)
    if day.is_closed:
        logger.info("Quote refused: club=%s date=%s is closed", req.club_id, req.date)
        return _closed_quote(req, day)

    time_slot = determine_time_slot(req.tee_time)
    sheet = match_rate_sheet(
        db,
        req.club_id,
        req.course_id,
        day.day_type,
        time_slot,
        req.holes,
        req.date,
        scan_limit=config.rate_sheet_scan_limit,
    )
    if sheet is None:
        logger.info(
            "No rate sheet for club=%s day_type=%s time_slot=%s; pricing at zero",
            req.club_id, day.day_type, time_slot,
        )

    mode = _pricing_mode(req)

    if req.package_id and mode == MODE_STANDARD:
        package_quote = _package_quote(db, req, day, time_slot, sheet)
        if package_quote is not None:
            return package_quote

    breakdown: List[PlayerLine] = []
    total_green_fee = 0.0
    for player in req.players:
        line = _price_player(player, sheet, req, mode, config)
        total_green_fee += line.green_fee
        breakdown.append(line)

    caddy_fee = _unit_fee(sheet, "caddy_fee") if req.need_caddy else 0.0
    cart_fee = _unit_fee(sheet, "cart_fee") if req.need_cart else 0.0
    # An add-on extends a round that is already insured.
    insurance_fee = 0.0 if mode == MODE_ADD_ON else _unit_fee(sheet, "insurance_fee") * len(req.players)

    discount = 0.0
    team_info = None
    effective_total = req.total_players or len(req.players)
    if effective_total >= config.team_discount_min_players and mode == MODE_STANDARD:
        team = get_team_discount(db, req.club_id, effective_total, default_floor_rate=config.default_floor_rate)
        if team.applies:
            applied = apply_team_discount(total_green_fee, team)
            discount = applied.discount_amount
            team_info = TeamDiscountInfo(
                total_players=effective_total,
                discount_rate=team.discount_rate,
                label=team.label,
                floor_price_rate=team.floor_price_rate,
                original_green_fee=applied.original_green_fee,
                discounted_green_fee=applied.discounted_green_fee,
                discount_amount=applied.discount_amount,
                floor_applied=applied.floor_applied,
            )

    total_fee = round_money(total_green_fee + caddy_fee + cart_fee + insurance_fee - discount)

    logger.debug(
        "Quote club=%s date=%s slot=%s sheet=%s mode=%s total=%s",
        req.club_id, req.date, time_slot, sheet.id if sheet is not None else None, mode, total_fee,
    )

    return Quote(
        price_source="auto",
        mode=mode,
        day_type=day.day_type,
        day_type_name=DAY_TYPE_LABELS.get(day.day_type, day.day_type),
        date_name=day.date_name,
        time_slot=time_slot,
        time_slot_name=TIME_SLOT_LABELS.get(time_slot, time_slot),
        rate_sheet_id=sheet.id if sheet is not None else None,
        rate_sheet_name=sheet.rule_name if sheet is not None else None,
        has_rate_sheet=sheet is not None,
        green_fee=total_green_fee,
        caddy_fee=caddy_fee,
        cart_fee=cart_fee,
        insurance_fee=insurance_fee,
        discount=discount,
        total_fee=total_fee,
        per_player_fee=round_whole(total_green_fee / len(req.players)) if req.players else 0.0,
        player_breakdown=breakdown,
        team_discount=team_info,
        fee_standards=_fee_standards(sheet),
    )


def _preview_times() -> List[str]:
    times = []
    for hour in range(PREVIEW_FIRST_HOUR, PREVIEW_LAST_HOUR + 1):
        for minute in range(0, 60, PREVIEW_INTERVAL_MINUTES):
            times.append(f"{hour:02d}:{minute:02d}")
    return times


def preview_day_prices(db: Session, club_id: str, date_str: str, identity_code: Optional[str]) -> DayPricePreview:
    """Green fee per tee time for one identity; free/unpriced times are left out."""
    day = determine_day_type(db, club_id, date_str)
    if day.is_closed:
        return DayPricePreview(date=date_str, day_type=day.day_type, is_closed=True)

    config = get_pricing_config(db, club_id)
    slot_cache: Dict[str, Optional[RateSheet]] = {}
    prices: Dict[str, float] = {}
    for tee_time in _preview_times():
        time_slot = determine_time_slot(tee_time)
        if time_slot not in slot_cache:
            slot_cache[time_slot] = match_rate_sheet(
                db, club_id, None, day.day_type, time_slot, 18, date_str,
                scan_limit=config.rate_sheet_scan_limit,
            )
        fee = get_green_fee(slot_cache[time_slot], identity_code)
        if fee > 0:
            prices[tee_time] = fee

    return DayPricePreview(date=date_str, day_type=day.day_type, prices=prices)
