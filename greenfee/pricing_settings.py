from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from greenfee import models


DEFAULT_PRICING_SETTINGS: Dict[str, float] = {
    "team_discount_min_players": 8,
    "add_on_estimate_rate": 0.5,
    "reduced_min_rate": 0.6,
    "rate_sheet_scan_limit": 20,
    "default_floor_rate": 0.6,
}

SETTING_KEYS = {
    "team_discount_min_players": "pricing_team_discount_min_players",
    "add_on_estimate_rate": "pricing_add_on_estimate_rate",
    "reduced_min_rate": "pricing_reduced_min_rate",
    "rate_sheet_scan_limit": "pricing_rate_sheet_scan_limit",
    "default_floor_rate": "pricing_default_floor_rate",
}


@dataclass(frozen=True)
class PricingConfig:
    team_discount_min_players: int = 8
    add_on_estimate_rate: float = 0.5
    reduced_min_rate: float = 0.6
    rate_sheet_scan_limit: int = 20
    default_floor_rate: float = 0.6


DEFAULT_PRICING_CONFIG = PricingConfig()


def _setting_value(db: Session, key: str):
    row = db.query(models.ClubSetting).filter(models.ClubSetting.key == key).first()
    if not row or row.value is None:
        return None
    raw = str(row.value).strip()
    return raw or None


def _club_setting_float(db: Session, club_id: str | None, key: str, default: float) -> float:
    try:
        raw = None
        if club_id:
            raw = _setting_value(db, f"{club_id}:{key}")
        if raw is None:
            raw = _setting_value(db, key)
    except SQLAlchemyError:
        db.rollback()
        return float(default)
    if raw is None:
        return float(default)
    try:
        value = float(raw)
    except Exception:
        return float(default)
    # "nan" and "inf" parse but are not usable settings
    if not math.isfinite(value):
        return float(default)
    return value


def get_pricing_config(db: Session, club_id: str | None = None) -> PricingConfig:
    values = {
        name: _club_setting_float(db, club_id, SETTING_KEYS[name], default)
        for name, default in DEFAULT_PRICING_SETTINGS.items()
    }
    return PricingConfig(
        team_discount_min_players=max(2, int(values["team_discount_min_players"])),
        add_on_estimate_rate=min(1.0, max(0.0, values["add_on_estimate_rate"])),
        reduced_min_rate=min(1.0, max(0.0, values["reduced_min_rate"])),
        rate_sheet_scan_limit=max(1, int(values["rate_sheet_scan_limit"])),
        default_floor_rate=min(1.0, max(0.0, values["default_floor_rate"])),
    )
