"""
Reservation pricing.
Pure functions mapping a space and a time interval (plus an optional promo
code) to a price. No database access, safe to call for live previews.

Tiers, by booked duration in hours:
- hourly:    0 < h <= 4   -> ceil(h) x hourly_rate
- half_day:  4 < h <= 8   -> daily_rate / 2 (flat)
- day:       8 < h < 24   -> daily_rate (flat)
- multi_day: h >= 24      -> ceil(h / 24) x daily_rate

Optional duration discounts (per non-hourly tier) come first, then the flat
promo deduction. The result is rounded to a whole currency unit and never
goes below zero. All amounts are integer minor units.

'discount' is never negative: when rounding pushes the total above
base_amount - discount, the difference is reported as 'rounding', so
base_amount - discount + rounding == total always holds.
"""

import math
from datetime import datetime, timedelta
from decimal import Decimal

from models.errors import InvalidInterval, ValidationError
from utils.money import round_minor, round_to_unit, to_decimal, units_to_minor

SECONDS_PER_HOUR = 3600

TIER_HOURLY = 'hourly'
TIER_HALF_DAY = 'half_day'
TIER_DAY = 'day'
TIER_MULTI_DAY = 'multi_day'

HOURLY_TIER_MAX_HOURS = Decimal(4)
HALF_DAY_TIER_MAX_HOURS = Decimal(8)
HOURS_PER_DAY = Decimal(24)

# Flat deductions in whole currency units
DEFAULT_PROMO_CODES = {
    'BIENVENUE10': 10,
    'COWORK20': 20,
}


def booked_hours(start: datetime, end: datetime) -> Decimal:
    """
    Exact duration between two instants, in hours.

    Raises:
        InvalidInterval: If end is not strictly after start
    """
    delta = end - start
    if delta <= timedelta(0):
        raise InvalidInterval(start=str(start), end=str(end))
    seconds = Decimal(delta.days * 86400 + delta.seconds) + Decimal(delta.microseconds) / 1000000
    return seconds / SECONDS_PER_HOUR


def pricing_tier(hours: Decimal) -> str:
    """Pick the pricing tier for a positive duration."""
    if hours <= HOURLY_TIER_MAX_HOURS:
        return TIER_HOURLY
    if hours <= HALF_DAY_TIER_MAX_HOURS:
        return TIER_HALF_DAY
    if hours < HOURS_PER_DAY:
        return TIER_DAY
    return TIER_MULTI_DAY


def base_price(space: dict, hours: Decimal) -> int:
    """Undiscounted price of a duration for a space, in minor units."""
    tier = pricing_tier(hours)
    hourly_rate = int(space['hourly_rate'])
    daily_rate = int(space['daily_rate'])

    if tier == TIER_HOURLY:
        return math.ceil(hours) * hourly_rate
    if tier == TIER_HALF_DAY:
        return round_to_unit(Decimal(daily_rate) / 2)
    if tier == TIER_DAY:
        return daily_rate
    return math.ceil(hours / HOURS_PER_DAY) * daily_rate


def promo_deduction(promo_code: str = None, promo_codes: dict = None) -> int:
    """
    Flat deduction for a promo code, in minor units.

    Lookup is case-insensitive. Unknown or empty codes deduct nothing.
    """
    if not promo_code:
        return 0
    table = DEFAULT_PROMO_CODES if promo_codes is None else promo_codes
    normalized = {str(code).strip().upper(): value for code, value in table.items()}
    value = normalized.get(promo_code.strip().upper())
    if value is None:
        return 0
    return max(0, units_to_minor(value))


def duration_discount(base_amount: int, tier: str, duration_discounts: dict = None) -> int:
    """
    Duration-based reduction for half-day and longer tiers, in minor units.

    Args:
        base_amount: Undiscounted price
        tier: Pricing tier of the booking
        duration_discounts: Mapping tier -> rate, e.g. {'half_day': '0.05'}

    Raises:
        ValidationError: Rate outside [0, 1]
    """
    if not duration_discounts or tier == TIER_HOURLY:
        return 0
    rate = duration_discounts.get(tier)
    if rate is None:
        return 0
    rate = to_decimal(rate, 'duration_discount')
    if rate < 0 or rate > 1:
        raise ValidationError(field='duration_discount', value=str(rate))
    return round_minor(Decimal(base_amount) * rate)


def quote_price(
    space: dict,
    start_time: datetime,
    end_time: datetime,
    promo_code: str = None,
    promo_codes: dict = None,
    duration_discounts: dict = None
) -> dict:
    """
    Price a booking with a full breakdown.

    Args:
        space: Space dict with hourly_rate and daily_rate (minor units)
        start_time: Booking start
        end_time: Booking end (strictly after start)
        promo_code: Optional promo code
        promo_codes: Promo table {code: whole units}; defaults to DEFAULT_PROMO_CODES
        duration_discounts: Optional tier -> rate mapping

    Returns:
        dict: {
            'hours': Decimal, 'tier': str,
            'base_amount': int, 'duration_discount': int,
            'promo_discount': int, 'discount': int, 'rounding': int,
            'total': int
        }

    Raises:
        InvalidInterval: If end_time <= start_time
    """
    hours = booked_hours(start_time, end_time)
    tier = pricing_tier(hours)
    base_amount = base_price(space, hours)

    reduced = base_amount - duration_discount(base_amount, tier, duration_discounts)
    after_duration = reduced
    promo = min(promo_deduction(promo_code, promo_codes), max(reduced, 0))
    reduced -= promo

    total = max(0, round_to_unit(reduced))
    discount = max(0, base_amount - total)

    return {
        'hours': hours,
        'tier': tier,
        'base_amount': base_amount,
        'duration_discount': base_amount - after_duration,
        'promo_discount': promo,
        'discount': discount,
        'rounding': total - (base_amount - discount),
        'total': total,
    }


def price_for(
    space: dict,
    start_time: datetime,
    end_time: datetime,
    promo_code: str = None,
    promo_codes: dict = None,
    duration_discounts: dict = None
) -> int:
    """Final price of a booking in minor units. See quote_price()."""
    return quote_price(
        space, start_time, end_time,
        promo_code=promo_code,
        promo_codes=promo_codes,
        duration_discounts=duration_discounts,
    )['total']
