# greenfee/models.py
from sqlalchemy import Column, Integer, String, DateTime, Float, Boolean, JSON, Text
from datetime import datetime
import enum
from greenfee.database import Base


class DayType(str, enum.Enum):
    weekday = "weekday"
    weekend = "weekend"
    holiday = "holiday"


class TimeSlot(str, enum.Enum):
    morning = "morning"
    afternoon = "afternoon"
    twilight = "twilight"


class SheetStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"


class MembershipStatus(str, enum.Enum):
    active = "active"
    expiring = "expiring"
    expired = "expired"
    suspended = "suspended"
    cancelled = "cancelled"
    pending = "pending"


ACTIVE_MEMBERSHIP_STATUSES = (MembershipStatus.active.value, MembershipStatus.expiring.value)


class ReducedPolicyType(str, enum.Enum):
    no_refund = "no_refund"
    fixed_rate = "fixed_rate"
    proportional = "proportional"


class UsageField(str, enum.Enum):
    rounds_used = "rounds_used"
    guest_brought = "guest_brought"
    total_consumption = "total_consumption"


class RateSheet(Base):
    """
    One priced rule: club x day type x time slot, optionally narrowed to a
    course and a hole count, with a priority and an inclusive validity window.

    Prices live in the `prices` JSON map keyed by identity code
    (walkin | guest | member_1..member_4 | custom). Older rows only carry the
    flat `price_*` columns; `pricing.normalize_prices` folds those into the map.
    """
    __tablename__ = "rate_sheets"

    id = Column(Integer, primary_key=True, index=True)
    club_id = Column(String(64), nullable=False, index=True, default="default")
    course_id = Column(String(64), nullable=True, index=True)  # null = every course
    rule_name = Column(String(200), nullable=True)
    day_type = Column(String(20), nullable=False, index=True)   # DayType values
    time_slot = Column(String(20), nullable=False, index=True)  # TimeSlot values
    start_time = Column(String(5), nullable=True)  # display only, HH:MM
    end_time = Column(String(5), nullable=True)
    holes = Column(Integer, nullable=True)  # null/0 = any
    status = Column(String(20), default=SheetStatus.active.value, index=True)
    priority = Column(Integer, default=100, index=True)
    valid_from = Column(String(10), nullable=True)  # YYYY-MM-DD, inclusive
    valid_to = Column(String(10), nullable=True)    # YYYY-MM-DD, inclusive

    prices = Column(JSON, nullable=True)
    add_on_prices = Column(JSON, nullable=True)
    reduced_play_policy = Column(JSON, nullable=True)  # {"type": ..., "rate": ..., "fixedPrices": {...}}

    # Legacy flat prices
    price_walkin = Column(Float, nullable=True)
    price_guest = Column(Float, nullable=True)
    price_member1 = Column(Float, nullable=True)
    price_member2 = Column(Float, nullable=True)
    price_member3 = Column(Float, nullable=True)
    price_member4 = Column(Float, nullable=True)

    caddy_fee = Column(Float, default=0.0)
    cart_fee = Column(Float, default=0.0)
    insurance_fee = Column(Float, default=0.0)

    created_at = Column(DateTime, default=datetime.utcnow)


class SpecialDate(Base):
    __tablename__ = "special_dates"

    id = Column(Integer, primary_key=True, index=True)
    club_id = Column(String(64), nullable=False, index=True, default="default")
    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    pricing_override = Column(String(20), nullable=True)
    date_type = Column(String(20), nullable=True)
    date_name = Column(String(120), nullable=True)
    is_closed = Column(Boolean, default=False)


class TeamPricingConfig(Base):
    """
    Volume discount tiers for one club.

    `tiers` is a JSON list of {"minPlayers", "maxPlayers", "discountRate", "label"};
    `discountRate` is the fraction of the green fee still charged (0.8 = 20% off).
    """
    __tablename__ = "team_pricing"

    id = Column(Integer, primary_key=True, index=True)
    club_id = Column(String(64), nullable=False, unique=True, index=True)
    enabled = Column(Boolean, default=False)
    floor_price_rate = Column(Float, nullable=True)
    tiers = Column(JSON, nullable=True)


class StayPackage(Base):
    __tablename__ = "stay_packages"

    id = Column(Integer, primary_key=True, index=True)
    club_id = Column(String(64), nullable=False, index=True, default="default")
    package_name = Column(String(200), nullable=True)
    package_code = Column(String(50), nullable=True)
    status = Column(String(20), default=SheetStatus.active.value)
    # {"prices": {...}, "basePrice", "weekendSurcharge", legacy "priceWalkin"/"priceGuest"/"priceMember1..4"/"memberPrice"}
    pricing = Column(JSON, nullable=True)
    # {"caddyIncluded": bool, "cartIncluded": bool, ...}
    includes = Column(JSON, nullable=True)


class Membership(Base):
    """
    A player's membership at a club.

    Benefits and usage counters are plain columns so consumption can be a
    single guarded UPDATE (see `store.update_membership_usage`).
    `free_rounds = 0` means unlimited free rounds; `guest_quota = 0` means no
    guest allowance on the read path.
    """
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, index=True)
    club_id = Column(String(64), nullable=False, index=True, default="default")
    player_id = Column(String(64), nullable=False, index=True)
    membership_no = Column(String(50), nullable=True)
    plan_name = Column(String(120), nullable=True)
    plan_category = Column(String(50), nullable=True)
    status = Column(String(20), default=MembershipStatus.pending.value, index=True)

    # Benefits
    free_rounds = Column(Integer, default=0)
    discount_rate = Column(Float, nullable=True)
    guest_quota = Column(Integer, default=0)
    guest_discount = Column(Float, nullable=True)
    priority_booking = Column(Boolean, default=False)
    free_caddy = Column(Boolean, default=False)
    free_cart = Column(Boolean, default=False)
    free_locker = Column(Boolean, default=False)
    free_parking = Column(Boolean, default=False)

    # Usage
    rounds_used = Column(Integer, default=0)
    guest_brought = Column(Integer, default=0)
    total_consumption = Column(Float, default=0.0)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow)


class ClubSetting(Base):
    __tablename__ = "club_settings"
    key = Column(String(200), primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow)
