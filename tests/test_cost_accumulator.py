from datetime import timedelta
from decimal import Decimal

from builders import component, utc
from ocpi_rating.core.enums import CdrDimensionType, TariffDimensionType
from ocpi_rating.v2_1_1.periods import ChargingPeriodRW
from ocpi_rating.v2_1_1.tariff_calculator import CostAccumulator


def _period(start, duration, energy, *components, index=1):
    return ChargingPeriodRW(
        index=index,
        start_date_time=start,
        stop_date_time=start + duration,
        energy=Decimal(energy),
        price_components={c.type: c for c in components},
    )


def _accumulate(*periods):
    accumulator = CostAccumulator()
    for period in periods:
        accumulator.add_period(period)
    return accumulator.finalize()


def test_energy_is_billed_in_whole_steps():
    """2.1 kWh with a 2 kWh step size is billed as 4 kWh."""
    energy = component(TariffDimensionType.ENERGY, "0.30", step_size=2000)
    accumulator = _accumulate(_period(utc(10), timedelta(hours=1), "2100", energy))

    assert accumulator.total_energy == Decimal(2100)
    assert accumulator.billed_energy == Decimal(4)
    assert accumulator.total_energy_cost == Decimal("1.20")
    assert accumulator.total_cost == Decimal("1.20")


def test_time_is_billed_in_whole_steps():
    """1h58m23s at 2.00 per hour with 5 minute steps is billed as 2 hours."""
    time = component(TariffDimensionType.TIME, "2.00", step_size=300)
    period = _period(utc(21, 39, 9), timedelta(seconds=7103), "15342", time)
    accumulator = _accumulate(period)

    assert accumulator.billed_time == Decimal(2)
    assert accumulator.total_time_cost == Decimal("4.00")
    assert len(period.dimensions) == 1
    assert period.dimensions[0].type == CdrDimensionType.TIME
    assert period.dimensions[0].volume == Decimal(7103) / Decimal(3600)


def test_step_size_applies_to_the_tier_total():
    energy = component(TariffDimensionType.ENERGY, "0.20", step_size=500)
    accumulator = _accumulate(
        _period(utc(10), timedelta(minutes=30), "4300", energy, index=1),
        _period(utc(10, 30), timedelta(minutes=30), "1100", energy, index=2),
    )
    # 5.4 kWh rounded up to 5.5 kWh, not 4.5 + 1.5
    assert accumulator.billed_energy == Decimal("5.5")
    assert accumulator.total_energy_cost == Decimal("1.10")


def test_tiers_are_kept_per_step_size():
    per_wh = component(TariffDimensionType.ENERGY, "0.20", step_size=1)
    per_kwh = component(TariffDimensionType.ENERGY, "0.40", step_size=1000)
    accumulator = _accumulate(
        _period(utc(10), timedelta(minutes=30), "1500", per_wh, index=1),
        _period(utc(10, 30), timedelta(minutes=30), "1500", per_kwh, index=2),
    )
    assert set(accumulator.energy_tiers) == {1, 1000}
    # 1.5 kWh * 0.20 + 2 kWh * 0.40
    assert accumulator.billed_energy == Decimal("3.5")
    assert accumulator.total_energy_cost == Decimal("1.10")


def test_flat_fee_is_charged_per_matching_period():
    flat = component(TariffDimensionType.FLAT, "0.50")
    accumulator = _accumulate(
        _period(utc(10), timedelta(minutes=30), "1000", flat, index=1),
        _period(utc(10, 30), timedelta(minutes=30), "1000", flat, index=2),
        _period(utc(11), timedelta(minutes=30), "1000", index=3),
    )
    assert accumulator.total_flat_cost == Decimal("1.00")
    assert accumulator.total_cost == Decimal("1.00")


def test_zero_price_components_are_not_billed():
    free_energy = component(TariffDimensionType.ENERGY, "0")
    free_time = component(TariffDimensionType.TIME, "0.00", step_size=60)
    period = _period(utc(10), timedelta(hours=1), "3000", free_energy, free_time)
    accumulator = _accumulate(period)

    assert period.dimensions == []
    assert accumulator.energy_tiers == {}
    assert accumulator.time_tiers == {}
    assert accumulator.total_energy == Decimal(3000)
    assert accumulator.total_cost == Decimal(0)


def test_zero_energy_period_is_recorded_and_counts_as_parking():
    energy = component(TariffDimensionType.ENERGY, "0.30")
    charging = _period(utc(10), timedelta(hours=1), "5000", energy, index=1)
    idle = _period(utc(11), timedelta(minutes=45), "0", energy, index=2)
    accumulator = _accumulate(charging, idle)

    assert idle.dimensions[0].type == CdrDimensionType.ENERGY
    assert idle.dimensions[0].volume == Decimal(0)
    assert accumulator.total_parking_time == Decimal(2700)
    assert accumulator.total_time == Decimal(6300)
    assert accumulator.total_cost == Decimal("1.50")


def test_parking_time_components_are_not_billed(caplog):
    parking = component(TariffDimensionType.PARKING_TIME, "5.00", step_size=60)
    accumulator = _accumulate(
        _period(utc(10), timedelta(hours=1), "0", parking, index=1),
        _period(utc(11), timedelta(hours=1), "0", parking, index=2),
    )
    assert accumulator.total_cost == Decimal(0)
    assert accumulator.total_parking_time == Decimal(7200)
    assert caplog.text.count("PARKING_TIME price components are not billed") == 1


def test_unpriced_periods_only_count_towards_totals():
    accumulator = _accumulate(_period(utc(10), timedelta(hours=1), "5000"))
    assert accumulator.total_energy == Decimal(5000)
    assert accumulator.total_time == Decimal(3600)
    assert accumulator.billed_energy == Decimal(0)
    assert accumulator.total_cost == Decimal(0)
