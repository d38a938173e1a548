"""
Splitting of a session into charging periods.

The periods of one rating run live in a plain list; `previous` and `next`
are indices into that list. Each period stops where the next one starts,
the last one stops at the end of the session.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from ocpi_rating.core.enums import TariffDimensionType
from ocpi_rating.core.exceptions import ImputationImpossible
from ocpi_rating.core.utils import IMPUTATION_QUANTUM, to_seconds
from ocpi_rating.v2_1_1.models import (
    CdrDimension,
    MeteringSample,
    MeteringValue,
    PriceComponent,
    Tariff,
)

logger = logging.getLogger(__name__)

KW_PER_WH_PER_SECOND = Decimal("3.6")


class ChargingPeriodRW(BaseModel):
    index: int
    start_date_time: datetime
    stop_date_time: Optional[datetime] = None

    previous: Optional[int] = None
    next: Optional[int] = None

    start_metering_value: Optional[MeteringValue] = None
    stop_metering_value: Optional[MeteringValue] = None

    energy: Decimal = Decimal(0)
    power_average: Decimal = Decimal(0)

    tariff_element: Optional[int] = None
    price_components: Dict[TariffDimensionType, PriceComponent] = Field(default_factory=dict)
    dimensions: List[CdrDimension] = Field(default_factory=list)

    @property
    def duration(self) -> timedelta:
        return self.stop_date_time - self.start_date_time


def collect_time_markers(
    start: datetime,
    stop: datetime,
    samples: Sequence[MeteringSample],
    tariff: Tariff,
) -> List[datetime]:
    """
    Every instant at which billing may change: the session start, the
    metering sample timestamps and the min/max duration thresholds of the
    tariff elements. Markers outside `[start, stop)` are dropped.
    """
    markers = {start}
    markers.update(sample.timestamp for sample in samples)

    for element in tariff.elements:
        restrictions = element.restrictions
        if restrictions is None:
            continue
        if restrictions.min_duration is not None:
            markers.add(start + timedelta(seconds=restrictions.min_duration))
        if restrictions.max_duration is not None:
            markers.add(start + timedelta(seconds=restrictions.max_duration))

    return sorted(marker for marker in markers if start <= marker < stop)


def build_charging_periods(markers: Sequence[datetime], stop: datetime) -> List[ChargingPeriodRW]:
    periods: List[ChargingPeriodRW] = []

    for position, marker in enumerate(markers):
        period = ChargingPeriodRW(index=position + 1, start_date_time=marker)
        if periods:
            previous = periods[-1]
            previous.next = position
            previous.stop_date_time = marker
            period.previous = position - 1
        periods.append(period)

    if periods:
        periods[-1].stop_date_time = stop

    logger.debug("Built %d charging period(s) from %d marker(s)", len(periods), len(markers))
    return periods


def _find_next_anchor(periods: List[ChargingPeriodRW], position: int) -> Optional[MeteringValue]:
    """The nearest resolved start after `position`, else the stop value of the last period."""
    current = periods[position]
    while current.next is not None:
        current = periods[current.next]
        if current.start_metering_value is not None:
            return current.start_metering_value
    return current.stop_metering_value


def _interpolate(previous_mv: MeteringValue, next_mv: MeteringValue, timestamp: datetime) -> Decimal:
    span = to_seconds(next_mv.timestamp - previous_mv.timestamp)
    if span == 0:
        return previous_mv.value
    elapsed = to_seconds(timestamp - previous_mv.timestamp)
    value = previous_mv.value + (next_mv.value - previous_mv.value) * elapsed / span
    return value.quantize(IMPUTATION_QUANTUM)


def resolve_metering_values(
    periods: List[ChargingPeriodRW], samples: Sequence[MeteringSample]
) -> List[ChargingPeriodRW]:
    """
    Assign a start and stop meter reading to every period and derive its
    energy (Wh) and average power (kW). Boundaries without a sample get a
    value linearly interpolated over time between the surrounding readings.
    """
    readings = {sample.timestamp: sample.energy_wh for sample in samples}

    for period in periods:
        if period.start_date_time in readings:
            period.start_metering_value = MeteringValue.measured(
                period.start_date_time, readings[period.start_date_time]
            )

    last = periods[-1]
    if last.stop_date_time in readings:
        last.stop_metering_value = MeteringValue.measured(
            last.stop_date_time, readings[last.stop_date_time]
        )

    imputed = 0
    for position, period in enumerate(periods):
        if period.start_metering_value is not None:
            continue

        if period.previous is None:
            raise ImputationImpossible(
                f"No reading precedes charging period {period.index} at {period.start_date_time.isoformat()}"
            )
        previous_mv = periods[period.previous].start_metering_value

        next_mv = _find_next_anchor(periods, position)
        if next_mv is None:
            raise ImputationImpossible(
                f"No reading follows charging period {period.index} at {period.start_date_time.isoformat()}"
            )

        period.start_metering_value = MeteringValue.imputed(
            period.start_date_time,
            _interpolate(previous_mv, next_mv, period.start_date_time),
        )
        imputed += 1

    if last.stop_metering_value is None:
        raise ImputationImpossible(f"No reading at the end of the session {last.stop_date_time.isoformat()}")

    for period in periods:
        if period.next is not None:
            period.stop_metering_value = periods[period.next].start_metering_value

        period.energy = period.stop_metering_value.value - period.start_metering_value.value
        seconds = to_seconds(period.duration)
        period.power_average = period.energy * KW_PER_WH_PER_SECOND / seconds if seconds else Decimal(0)

    logger.debug("Imputed %d of %d period start reading(s)", imputed, len(periods))
    return periods
