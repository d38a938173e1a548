import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from ocpi_rating.core.enums import CdrDimensionType, TariffDimensionType
from ocpi_rating.core.exceptions import NoTariffAvailable, RatingError, RatingFailed
from ocpi_rating.core.utils import (
    get_local_time,
    quantize_total,
    round_up_to_step,
    seconds_to_hours,
    to_seconds,
    wh_to_kwh,
)
from ocpi_rating.v2_1_1.metering import derive_metering_samples, validate_metering_samples
from ocpi_rating.v2_1_1.models import (
    CdrDimension,
    MeteringSample,
    RatedChargingPeriod,
    RatedSession,
    Session,
    Tariff,
)
from ocpi_rating.v2_1_1.periods import (
    ChargingPeriodRW,
    build_charging_periods,
    collect_time_markers,
    resolve_metering_values,
)

logger = logging.getLogger(__name__)


class TierBucket(BaseModel):
    # Wh for energy tiers, seconds for time tiers, occurrences for flat tiers
    volume: Decimal = Decimal(0)
    # Sum of volume * price, in the same raw unit as volume
    weighted_price: Decimal = Decimal(0)
    # Price of the latest contribution, applied to the rounding remainder
    price: Decimal = Decimal(0)

    def add(self, volume: Decimal, price: Decimal):
        self.volume += volume
        self.weighted_price += volume * price
        self.price = price

    def billed_cost(self, billed_volume: Decimal) -> Decimal:
        return self.weighted_price + (billed_volume - self.volume) * self.price


class CostAccumulator(BaseModel):
    """Billable quantities of one rating run, grouped by step size."""

    energy_tiers: Dict[int, TierBucket] = Field(default_factory=dict)
    time_tiers: Dict[int, TierBucket] = Field(default_factory=dict)
    flat_tiers: Dict[int, TierBucket] = Field(default_factory=dict)

    # Raw sums over all periods, Wh and seconds
    total_energy: Decimal = Decimal(0)
    total_time: Decimal = Decimal(0)
    total_parking_time: Decimal = Decimal(0)

    # Filled by finalize(), kWh and hours
    billed_energy: Decimal = Decimal(0)
    billed_time: Decimal = Decimal(0)
    total_energy_cost: Decimal = Decimal(0)
    total_time_cost: Decimal = Decimal(0)
    total_flat_cost: Decimal = Decimal(0)
    total_cost: Decimal = Decimal(0)

    unbilled_parking: bool = False

    def add_period(self, period: ChargingPeriodRW):
        seconds = to_seconds(period.duration)

        self.total_energy += period.energy
        self.total_time += seconds
        if period.energy == 0:
            self.total_parking_time += seconds

        components = period.price_components

        energy_component = components.get(TariffDimensionType.ENERGY)
        if energy_component and energy_component.price > 0:
            # Zero energy is still recorded so that 0 kWh can be invoiced
            period.dimensions.append(
                CdrDimension(type=CdrDimensionType.ENERGY, volume=wh_to_kwh(period.energy))
            )
            self.energy_tiers.setdefault(energy_component.step_size, TierBucket()).add(
                period.energy, energy_component.price
            )

        time_component = components.get(TariffDimensionType.TIME)
        if time_component and time_component.price > 0:
            period.dimensions.append(
                CdrDimension(type=CdrDimensionType.TIME, volume=seconds_to_hours(seconds))
            )
            self.time_tiers.setdefault(time_component.step_size, TierBucket()).add(
                seconds, time_component.price
            )

        flat_component = components.get(TariffDimensionType.FLAT)
        if flat_component and flat_component.price > 0:
            self.flat_tiers.setdefault(flat_component.step_size, TierBucket()).add(
                Decimal(1), flat_component.price
            )

        if TariffDimensionType.PARKING_TIME in components and not self.unbilled_parking:
            # TODO: bill PARKING_TIME components once parking periods are detected per period
            logger.warning("PARKING_TIME price components are not billed")
            self.unbilled_parking = True

    def finalize(self):
        """Round every tier up to its step size and compute the totals."""
        for step_size, bucket in self.energy_tiers.items():
            billed = round_up_to_step(bucket.volume, step_size)
            self.total_energy_cost += wh_to_kwh(bucket.billed_cost(billed))
            self.billed_energy += wh_to_kwh(billed)

        for step_size, bucket in self.time_tiers.items():
            billed = round_up_to_step(bucket.volume, step_size)
            self.total_time_cost += seconds_to_hours(bucket.billed_cost(billed))
            self.billed_time += seconds_to_hours(billed)

        for bucket in self.flat_tiers.values():
            self.total_flat_cost += bucket.weighted_price

        self.total_cost = self.total_energy_cost + self.total_time_cost + self.total_flat_cost
        return self


def select_tariff(session: Session, tariffs: Optional[Sequence[Tariff]] = None) -> Tariff:
    """The first candidate tariff is authoritative."""
    candidates = list(tariffs) if tariffs else session.tariffs
    if not candidates:
        raise NoTariffAvailable(f"No tariff provided and no tariffs found for session {session.id}")
    return candidates[0]


def find_active_element(
    tariff: Tariff,
    period: ChargingPeriodRW,
    session_start: datetime,
    country_code: Optional[str] = None,
) -> Optional[int]:
    """Position of the first element whose restrictions hold for `period`."""
    local_start = get_local_time(period.start_date_time, country_code)
    session_duration = to_seconds(period.start_date_time - session_start)
    energy_kwh = wh_to_kwh(period.energy)

    for position, element in enumerate(tariff.elements):
        if element.is_active(local_start, session_duration, energy_kwh, period.power_average):
            return position

    return None


def match_tariff_elements(
    periods: List[ChargingPeriodRW],
    tariff: Tariff,
    session_start: datetime,
    country_code: Optional[str] = None,
) -> List[ChargingPeriodRW]:
    for period in periods:
        position = find_active_element(tariff, period, session_start, country_code)
        if position is None:
            logger.debug("Charging period %d: no active tariff element", period.index)
            continue
        period.tariff_element = position
        period.price_components = tariff.elements[position].active_components()
        logger.debug("Charging period %d: tariff element %d", period.index, position)

    return periods


def assemble_rated_session(
    session: Session,
    tariff: Tariff,
    periods: List[ChargingPeriodRW],
    accumulator: CostAccumulator,
) -> RatedSession:
    charging_periods = [
        RatedChargingPeriod(
            index=period.index,
            start_date_time=period.start_date_time,
            stop_date_time=period.stop_date_time,
            start_metering_value=period.start_metering_value,
            stop_metering_value=period.stop_metering_value,
            energy=period.energy,
            power_average=period.power_average,
            tariff_element=period.tariff_element,
            price_components={
                dimension: price_component.model_copy(deep=True)
                for dimension, price_component in period.price_components.items()
            },
            dimensions=list(period.dimensions),
        )
        for period in periods
    ]

    return RatedSession(
        id=session.id,
        start_date_time=session.start_date_time,
        stop_date_time=session.stop_date_time,
        currency=tariff.currency,
        tariffs=[tariff.model_copy(deep=True)],
        charging_periods=charging_periods,
        total_cost=quantize_total(accumulator.total_cost),
        total_energy_cost=quantize_total(accumulator.total_energy_cost),
        total_time_cost=quantize_total(accumulator.total_time_cost),
        total_flat_cost=quantize_total(accumulator.total_flat_cost),
        total_energy=quantize_total(wh_to_kwh(accumulator.total_energy)),
        billed_energy=quantize_total(accumulator.billed_energy),
        total_time=quantize_total(seconds_to_hours(accumulator.total_time)),
        billed_time=quantize_total(accumulator.billed_time),
        total_parking_time=quantize_total(seconds_to_hours(accumulator.total_parking_time)),
    )


def _rate(
    session: Session,
    metering_samples: Optional[Sequence[MeteringSample]],
    tariffs: Optional[Sequence[Tariff]],
) -> RatedSession:
    tariff = select_tariff(session, tariffs)

    if metering_samples is None:
        metering_samples = derive_metering_samples(session)
    samples = validate_metering_samples(metering_samples, session.start_date_time, session.stop_date_time)

    markers = collect_time_markers(session.start_date_time, session.stop_date_time, samples, tariff)
    periods = build_charging_periods(markers, session.stop_date_time)
    resolve_metering_values(periods, samples)
    match_tariff_elements(periods, tariff, session.start_date_time, session.country_code)

    accumulator = CostAccumulator()
    for period in periods:
        accumulator.add_period(period)
    accumulator.finalize()

    return assemble_rated_session(session, tariff, periods, accumulator)


def rate_session(
    session: Session,
    metering_samples: Optional[Sequence[MeteringSample]] = None,
    tariffs: Optional[Sequence[Tariff]] = None,
    extrapolate_ongoing: bool = False,
) -> RatedSession:
    """
    Split a completed session into charging periods, price each of them
    with the first matching element of the authoritative tariff and
    compute the session totals.

    `metering_samples` defaults to the samples derived from the session,
    `tariffs` to the tariffs of the session. Only the first tariff is used.
    Raises `RatingFailed` wrapping the cause of any failure.
    """
    if extrapolate_ongoing:
        raise NotImplementedError("Rating of ongoing sessions is not implemented")

    try:
        return _rate(session, metering_samples, tariffs)
    except RatingError as error:
        logger.info("Rating of session %s failed: %s", session.id, error.kind.value)
        raise RatingFailed(error) from error


def calculate_cdr_cost(session: Session, tariff: Optional[Tariff] = None) -> Decimal:
    """
    Wrapper returning only the total cost of a session.
    If no tariff is provided, the first tariff of the session is used.
    """
    rated = rate_session(session, tariffs=[tariff] if tariff is not None else None)
    return rated.total_cost
