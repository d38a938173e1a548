from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, List, Optional, Self

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

from ocpi_rating.core.enums import (
    CdrDimensionType,
    DayOfWeek,
    MeteringValueSource,
    TariffDimensionType,
)
from ocpi_rating.core.utils import is_in_time_range, is_within_range


class PriceComponent(BaseModel):
    type: TariffDimensionType
    price: Decimal = Field(ge=0)
    # Wh for ENERGY, seconds for TIME and PARKING_TIME
    step_size: int = Field(ge=1)


class TariffRestrictions(BaseModel):
    # Local time of the charging location, "HH:MM"
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_kwh: Optional[Decimal] = None
    max_kwh: Optional[Decimal] = None
    min_power: Optional[Decimal] = None
    max_power: Optional[Decimal] = None
    # Durations in seconds since the start of the session
    min_duration: Optional[int] = None
    max_duration: Optional[int] = None
    day_of_week: Optional[List[DayOfWeek]] = None

    def is_valid_at_start_date_time(self, start_date_time: datetime) -> bool:
        """
        Checks if this restriction is valid at `start_date_time`, which must
        already be expressed in the local time of the charging location.
        End times and end dates are exclusive.
        """
        if self.start_time or self.end_time:
            if not is_in_time_range(self.start_time, self.end_time, start_date_time.time()):
                return False

        if self.start_date or self.end_date:
            current_date = start_date_time.date()
            if self.start_date and current_date < self.start_date:
                return False
            if self.end_date and current_date >= self.end_date:
                return False

        if self.day_of_week:
            day_name = start_date_time.strftime("%A").upper()
            if day_name not in self.day_of_week:
                return False

        return True

    def is_valid_at_session_duration(self, duration_seconds: Decimal) -> bool:
        # Both bounds inclusive, a period starting exactly at max_duration still matches
        if self.min_duration is not None and duration_seconds < self.min_duration:
            return False
        if self.max_duration is not None and duration_seconds > self.max_duration:
            return False
        return True

    def is_valid_at_energy(self, energy_kwh: Decimal) -> bool:
        return is_within_range(energy_kwh, self.min_kwh, self.max_kwh)

    def is_valid_at_power(self, power_kw: Decimal) -> bool:
        return is_within_range(power_kw, self.min_power, self.max_power)


class TariffElement(BaseModel):
    price_components: List[PriceComponent] = Field(min_length=1)
    restrictions: Optional[TariffRestrictions] = None

    def is_active(
        self,
        start_date_time: datetime,
        session_duration_seconds: Decimal,
        energy_kwh: Decimal,
        power_kw: Decimal,
    ) -> bool:
        if self.restrictions is None:
            return True
        return (
            self.restrictions.is_valid_at_start_date_time(start_date_time)
            and self.restrictions.is_valid_at_session_duration(session_duration_seconds)
            and self.restrictions.is_valid_at_energy(energy_kwh)
            and self.restrictions.is_valid_at_power(power_kw)
        )

    def active_components(self) -> Dict[TariffDimensionType, PriceComponent]:
        """Only the first price component of each type is used."""
        components: Dict[TariffDimensionType, PriceComponent] = {}
        for price_component in self.price_components:
            components.setdefault(price_component.type, price_component)
        return components


class Tariff(BaseModel):
    id: str
    currency: str
    tariff_alt_url: Optional[str] = None
    elements: List[TariffElement] = Field(min_length=1)
    last_updated: Optional[datetime] = None


class MeteringSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: AwareDatetime
    energy_wh: Decimal = Field(ge=0)


class SignedValue(BaseModel):
    nature: str
    plain_data: str
    signed_data: Optional[str] = None


class SignedData(BaseModel):
    encoding_method: Optional[str] = None
    public_key: Optional[str] = None
    signed_values: List[SignedValue] = Field(default_factory=list)
    url: Optional[str] = None


class CdrDimension(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: CdrDimensionType
    # kWh for ENERGY, hours for TIME and PARKING_TIME
    volume: Decimal


class ChargingPeriod(BaseModel):
    """A charging period as reported by an existing CDR."""

    start_date_time: datetime
    dimensions: List[CdrDimension] = Field(default_factory=list)


class Session(BaseModel):
    id: str
    start_date_time: AwareDatetime
    stop_date_time: AwareDatetime
    currency: str
    country_code: Optional[str] = None
    meter_id: Optional[str] = None
    metering_samples: Optional[List[MeteringSample]] = None
    signed_data: Optional[SignedData] = None
    charging_periods: List[ChargingPeriod] = Field(default_factory=list)
    tariffs: List[Tariff] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_session_window(self) -> Self:
        if self.stop_date_time <= self.start_date_time:
            raise ValueError("stop_date_time must be after start_date_time")
        return self


class MeteringValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    value: Decimal
    source: MeteringValueSource = MeteringValueSource.MEASURED

    @classmethod
    def measured(cls, timestamp: datetime, value: Decimal) -> "MeteringValue":
        return cls(timestamp=timestamp, value=value, source=MeteringValueSource.MEASURED)

    @classmethod
    def imputed(cls, timestamp: datetime, value: Decimal) -> "MeteringValue":
        return cls(timestamp=timestamp, value=value, source=MeteringValueSource.IMPUTED)


class RatedChargingPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    start_date_time: datetime
    stop_date_time: datetime
    start_metering_value: MeteringValue
    stop_metering_value: MeteringValue
    # Wh
    energy: Decimal
    # kW
    power_average: Decimal
    # Position of the matched element in the tariff, None if nothing matched
    tariff_element: Optional[int] = None
    price_components: Dict[TariffDimensionType, PriceComponent] = Field(default_factory=dict)
    dimensions: List[CdrDimension] = Field(default_factory=list)

    @property
    def duration(self):
        return self.stop_date_time - self.start_date_time


class RatedSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    start_date_time: datetime
    stop_date_time: datetime
    currency: str
    tariffs: List[Tariff]
    charging_periods: List[RatedChargingPeriod]

    total_cost: Decimal
    total_energy_cost: Decimal
    total_time_cost: Decimal
    total_flat_cost: Decimal

    # kWh
    total_energy: Decimal
    billed_energy: Decimal
    # hours
    total_time: Decimal
    billed_time: Decimal
    total_parking_time: Decimal

    # Not computed by the rating engine
    total_fixed_cost: Decimal = Decimal("0")
    total_parking_cost: Decimal = Decimal("0")
    total_reservation_cost: Decimal = Decimal("0")
