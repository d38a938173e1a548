import logging
import math
from datetime import datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

TIMEZONE_MAP = {
    "NL": "Europe/Amsterdam",
    "NLD": "Europe/Amsterdam",
    "DE": "Europe/Berlin",
    "DEU": "Europe/Berlin",
    "BE": "Europe/Brussels",
    "BEL": "Europe/Brussels",
    "FR": "Europe/Paris",
    "FRA": "Europe/Paris",
    "AT": "Europe/Vienna",
    "AUT": "Europe/Vienna",
    "CH": "Europe/Zurich",
    "CHE": "Europe/Zurich",
    "GB": "Europe/London",
    "GBR": "Europe/London",
    "UK": "Europe/London",
}

# Imputed meter readings (Wh) are kept at this resolution
IMPUTATION_QUANTUM = Decimal("0.0001")

# Resolution of monetary and volume totals in a rated session
TOTALS_QUANTUM = Decimal("0.0001")

SECONDS_PER_HOUR = Decimal(3600)
WH_PER_KWH = Decimal(1000)


def is_within_range(value, min_val, max_val) -> bool:
    if min_val is not None and value < min_val:
        return False
    if max_val is not None and value >= max_val:
        return False
    return True


def is_in_time_range(start_time: Optional[time], end_time: Optional[time], check_time: time) -> bool:
    if start_time is None and end_time is None:
        return True
    if start_time is None:
        return check_time < end_time
    if end_time is None:
        return check_time >= start_time
    if start_time < end_time:
        return start_time <= check_time < end_time
    else:  # crosses midnight
        return check_time >= start_time or check_time < end_time


def round_up_to_step(volume: Decimal, step_size: int) -> Decimal:
    """Round `volume` up to the next whole multiple of `step_size`."""
    if step_size <= 0:
        return volume
    steps = math.ceil(volume / Decimal(step_size))
    return Decimal(steps) * Decimal(step_size)


def to_seconds(duration: timedelta) -> Decimal:
    # Exact, unlike timedelta.total_seconds()
    return Decimal(duration // timedelta(microseconds=1)) / Decimal(1_000_000)


def seconds_to_hours(seconds: Decimal) -> Decimal:
    return seconds / SECONDS_PER_HOUR


def wh_to_kwh(energy_wh: Decimal) -> Decimal:
    return energy_wh / WH_PER_KWH


def quantize_total(value: Decimal) -> Decimal:
    return value.quantize(TOTALS_QUANTUM, rounding=ROUND_HALF_UP)


def get_local_time(dt: datetime, country_code: Optional[str]) -> datetime:
    """
    Convert `dt` into the local time of the given country.
    Naive datetimes and unknown countries are returned unchanged.
    """
    if not country_code or dt.tzinfo is None:
        return dt

    tz_name = TIMEZONE_MAP.get(country_code.upper())
    if tz_name is None:
        return dt
    try:
        return dt.astimezone(ZoneInfo(tz_name))
    except ZoneInfoNotFoundError:
        logger.warning("Time zone %s unavailable, using the timestamp offset", tz_name)
        return dt
