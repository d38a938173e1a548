from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from ocpi_rating.core.enums import TariffDimensionType
from ocpi_rating.v2_1_1.models import (
    MeteringSample,
    PriceComponent,
    Session,
    Tariff,
    TariffElement,
    TariffRestrictions,
)


def utc(hour: int, minute: int = 0, second: int = 0, day: int = 4, month: int = 3, year: int = 2024) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


def samples(*points: Tuple[datetime, int]) -> List[MeteringSample]:
    return [MeteringSample(timestamp=ts, energy_wh=Decimal(wh)) for ts, wh in points]


def component(type: TariffDimensionType, price: str, step_size: int = 1) -> PriceComponent:
    return PriceComponent(type=type, price=Decimal(price), step_size=step_size)


def element(*components: PriceComponent, **restrictions) -> TariffElement:
    return TariffElement(
        price_components=list(components),
        restrictions=TariffRestrictions(**restrictions) if restrictions else None,
    )


def tariff(*elements: TariffElement, id: str = "T1", currency: str = "EUR") -> Tariff:
    return Tariff(id=id, currency=currency, elements=list(elements))


def session(
    start: datetime,
    stop: datetime,
    metering_samples: Optional[List[MeteringSample]] = None,
    tariffs: Optional[List[Tariff]] = None,
    **kwargs,
) -> Session:
    return Session(
        id="S1",
        start_date_time=start,
        stop_date_time=stop,
        currency="EUR",
        metering_samples=metering_samples,
        tariffs=tariffs or [],
        **kwargs,
    )


