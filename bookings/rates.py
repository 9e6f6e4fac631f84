from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from .exceptions import ValidationError

HOURS_PER_DAY = 24


def to_money(value, field):
    """Parse ``value`` as a finite Decimal. Blank values come back as None."""
    if value is None or value == '':
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field} must be a number', details={'field': field})
    if not amount.is_finite():
        raise ValidationError(f'{field} must be a finite number', details={'field': field})
    return amount


@dataclass(frozen=True)
class GroundConfig:
    day_rate: Decimal
    night_rate: Decimal
    night_start_hour: int = 17
    night_end_hour: int = 7
    advance_minimum: Decimal = Decimal('0')
    pending_hold_minutes: int = 30


@dataclass(frozen=True)
class HourlyRate:
    amount: Decimal
    is_night: bool


def validate_hour(hour):
    if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour < HOURS_PER_DAY:
        raise ValidationError(
            f'Slot hour must be an integer between 0 and 23, got {hour!r}',
            details={'hour': hour},
        )
    return hour


def is_night_hour(hour, config):
    start, end = config.night_start_hour, config.night_end_hour
    # A window such as 17:00-07:00 wraps past midnight.
    if start > end:
        return hour >= start or hour < end
    return start <= hour < end


def rate_for(hour, config):
    validate_hour(hour)
    night = is_night_hour(hour, config)
    return HourlyRate(amount=config.night_rate if night else config.day_rate, is_night=night)


def quote(hours, config):
    return sum((rate_for(hour, config).amount for hour in hours), Decimal('0'))


def slot_label(hour):
    return f'{hour:02d}:00'
