import pytest

from builders import component, element, samples, session, tariff, utc
from ocpi_rating.core.enums import TariffDimensionType
from ocpi_rating.v2_1_1.models import Session, Tariff


@pytest.fixture
def energy_tariff() -> Tariff:
    """0.30 per kWh, billed per Wh."""
    return tariff(element(component(TariffDimensionType.ENERGY, "0.30")))


@pytest.fixture
def one_hour_session(energy_tariff) -> Session:
    """10:00 to 11:00 with a linear 5 kWh meter."""
    return session(
        utc(10),
        utc(11),
        metering_samples=samples((utc(10), 0), (utc(11), 5000)),
        tariffs=[energy_tariff],
    )
