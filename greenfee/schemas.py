# greenfee/schemas.py

from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Literal, Optional, Union
from datetime import datetime

# ------------------------------------------------------------------
# PRICING REQUEST
# ------------------------------------------------------------------

class PlayerIn(BaseModel):
    name: str = ""
    identity_code: Optional[str] = None  # walkin | guest | member_1..member_4 | custom
    # Legacy identity fields
    member_type: Optional[str] = None  # member | guest | walkin
    type: Optional[str] = None
    member_level: Optional[int] = None


class BookingPriceRequest(BaseModel):
    club_id: str = "default"
    date: str
    tee_time: Optional[str] = None  # HH:MM
    course_id: Optional[str] = None
    holes: int = Field(18, ge=1)
    players: List[PlayerIn] = Field(default_factory=list)
    need_caddy: bool = False
    need_cart: bool = False
    package_id: Optional[int] = None
    total_players: int = Field(0, ge=0)  # whole group size when larger than this booking
    is_add_on: bool = False
    is_reduced: bool = False
    holes_played: Optional[int] = Field(None, ge=0)

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        value = str(value).strip()
        datetime.strptime(value, "%Y-%m-%d")
        return value


# ------------------------------------------------------------------
# QUOTE
# ------------------------------------------------------------------

class AddOnInfo(BaseModel):
    model_config = {"frozen": True}

    fee: float
    available: bool
    description: str
    estimated: bool = False


class ReducedInfo(BaseModel):
    model_config = {"frozen": True}

    fee: float
    policy_type: str
    standard_fee: float
    holes_played: int
    holes_booked: int
    charge_rate: Optional[float] = None


class PlayerLine(BaseModel):
    model_config = {"frozen": True}

    name: str = ""
    identity_code: str
    green_fee: float
    add_on_info: Optional[AddOnInfo] = None
    reduced_info: Optional[ReducedInfo] = None


class TeamDiscountInfo(BaseModel):
    model_config = {"frozen": True}

    total_players: int
    discount_rate: float
    label: str = ""
    floor_price_rate: float
    original_green_fee: float
    discounted_green_fee: float
    discount_amount: float
    floor_applied: bool = False


class PackageInfo(BaseModel):
    model_config = {"frozen": True}

    package_id: int
    package_name: Optional[str] = None
    package_code: Optional[str] = None
    package_price: float
    weekend_surcharge: float = 0.0
    includes: Dict = Field(default_factory=dict)
    is_package: bool = True


class FeeStandards(BaseModel):
    model_config = {"frozen": True}

    caddy_fee_unit: float = 0.0
    cart_fee_unit: float = 0.0
    insurance_fee_unit: float = 0.0


class Quote(BaseModel):
    model_config = {"frozen": True}

    success: bool = True
    error: Optional[str] = None
    is_closed: bool = False
    price_source: Optional[Literal["auto", "package"]] = None
    mode: Literal["standard", "add_on", "reduced", "package"] = "standard"

    day_type: str
    day_type_name: Optional[str] = None
    date_name: Optional[str] = None
    time_slot: Optional[str] = None
    time_slot_name: Optional[str] = None
    rate_sheet_id: Optional[int] = None
    rate_sheet_name: Optional[str] = None
    has_rate_sheet: bool = False

    green_fee: float = 0.0
    caddy_fee: float = 0.0
    cart_fee: float = 0.0
    insurance_fee: float = 0.0
    discount: float = 0.0
    total_fee: float = 0.0
    per_player_fee: float = 0.0

    player_breakdown: List[PlayerLine] = Field(default_factory=list)
    team_discount: Optional[TeamDiscountInfo] = None
    package: Optional[PackageInfo] = None
    fee_standards: Optional[FeeStandards] = None


class DayPricePreview(BaseModel):
    model_config = {"frozen": True}

    date: str
    day_type: str
    is_closed: bool = False
    prices: Dict[str, float] = Field(default_factory=dict)  # "HH:MM" -> green fee


# ------------------------------------------------------------------
# MEMBERSHIP BENEFITS
# ------------------------------------------------------------------

class BenefitSet(BaseModel):
    model_config = {"frozen": True, "from_attributes": True}

    free_rounds: int = 0
    discount_rate: Optional[float] = None
    guest_quota: int = 0
    guest_discount: Optional[float] = None
    priority_booking: bool = False
    free_caddy: bool = False
    free_cart: bool = False
    free_locker: bool = False
    free_parking: bool = False


class UsageCounters(BaseModel):
    model_config = {"frozen": True, "from_attributes": True}

    rounds_used: int = 0
    guest_brought: int = 0
    total_consumption: float = 0.0


class RemainingEntitlements(BaseModel):
    model_config = {"frozen": True}

    free_rounds: Union[int, Literal["unlimited"]] = 0
    guest_quota: int = 0


class PlayerBenefits(BaseModel):
    model_config = {"frozen": True}

    has_membership: bool = False
    membership_id: Optional[int] = None
    membership_no: Optional[str] = None
    plan_name: Optional[str] = None
    plan_category: Optional[str] = None
    status: Optional[str] = None
    benefits: Optional[BenefitSet] = None
    usage: Optional[UsageCounters] = None
    remaining: Optional[RemainingEntitlements] = None
    can_use_free_round: bool = False
    can_bring_guest: bool = False
    discount_rate: float = 1.0
    priority_booking: bool = False
    free_caddy: bool = False
    free_cart: bool = False
    free_locker: bool = False
    free_parking: bool = False
