import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional

from ocpi_rating.core.enums import CdrDimensionType
from ocpi_rating.core.exceptions import (
    DecreasingMeterReading,
    MissingMeteringData,
    OutOfBoundsSample,
    require,
)
from ocpi_rating.core.utils import WH_PER_KWH
from ocpi_rating.v2_1_1.models import MeteringSample, Session, SignedData

logger = logging.getLogger(__name__)


def _parse_reading(plain_data: str) -> Optional[Decimal]:
    try:
        return Decimal(plain_data.strip())
    except InvalidOperation:
        return None


def _samples_from_signed_data(signed_data: SignedData, session: Session) -> List[MeteringSample]:
    """Two-point meter data: plain-text readings (Wh) of the `Start` and `End` signed values."""
    readings = {}
    for signed_value in signed_data.signed_values:
        nature = signed_value.nature.strip().lower()
        if nature not in ("start", "end") or nature in readings:
            continue
        reading = _parse_reading(signed_value.plain_data)
        if reading is not None and reading >= 0:
            readings[nature] = reading

    if len(readings) < 2:
        return []

    return [
        MeteringSample(timestamp=session.start_date_time, energy_wh=readings["start"]),
        MeteringSample(timestamp=session.stop_date_time, energy_wh=readings["end"]),
    ]


def _samples_from_charging_periods(session: Session) -> List[MeteringSample]:
    """The energy of the last reported charging period, paired with a zero reading at session start."""
    if not session.charging_periods:
        return []

    for dimension in session.charging_periods[-1].dimensions:
        if dimension.type == CdrDimensionType.ENERGY:
            return [
                MeteringSample(timestamp=session.start_date_time, energy_wh=Decimal(0)),
                MeteringSample(
                    timestamp=session.stop_date_time,
                    energy_wh=dimension.volume * WH_PER_KWH,
                ),
            ]
    return []


def derive_metering_samples(session: Session) -> List[MeteringSample]:
    """
    Source the metering samples of a session.

    Preference order: the session's own samples, the `Start`/`End` readings
    of its signed meter data, then the energy of its last charging period.
    Returns an empty list when none of them is available.
    """
    if session.metering_samples:
        return list(session.metering_samples)

    if session.signed_data is not None:
        samples = _samples_from_signed_data(session.signed_data, session)
        if samples:
            logger.debug("Session %s: metering samples taken from signed data", session.id)
            return samples

    samples = _samples_from_charging_periods(session)
    if samples:
        logger.debug("Session %s: metering samples taken from the last charging period", session.id)
    return samples


def validate_metering_samples(
    samples: Iterable[MeteringSample], start: datetime, stop: datetime
) -> List[MeteringSample]:
    """
    Order the samples by time and check they can anchor a rating of `[start, stop]`.

    Samples sharing a timestamp are collapsed, the first one wins.
    """
    ordered: List[MeteringSample] = []
    for sample in sorted(samples, key=lambda s: s.timestamp):
        if ordered and ordered[-1].timestamp == sample.timestamp:
            if ordered[-1].energy_wh != sample.energy_wh:
                logger.warning(
                    "Conflicting metering samples at %s, keeping %s Wh",
                    sample.timestamp.isoformat(),
                    ordered[-1].energy_wh,
                )
            continue
        ordered.append(sample)

    require(
        len(ordered) >= 2,
        f"At least two energy metering values are expected, got {len(ordered)}",
        MissingMeteringData,
    )

    first, last = ordered[0], ordered[-1]
    require(
        first.timestamp >= start,
        f"Metering sample at {first.timestamp.isoformat()} precedes the session start {start.isoformat()}",
        OutOfBoundsSample,
    )
    require(
        last.timestamp <= stop,
        f"Metering sample at {last.timestamp.isoformat()} follows the session end {stop.isoformat()}",
        OutOfBoundsSample,
    )
    require(
        first.timestamp == start,
        f"No metering sample at the session start {start.isoformat()}",
        OutOfBoundsSample,
    )
    require(
        last.timestamp == stop,
        f"No metering sample at the session end {stop.isoformat()}",
        OutOfBoundsSample,
    )

    for previous, current in zip(ordered, ordered[1:]):
        require(
            current.energy_wh >= previous.energy_wh,
            f"Meter reading decreases from {previous.energy_wh} Wh to {current.energy_wh} Wh "
            f"at {current.timestamp.isoformat()}",
            DecreasingMeterReading,
        )

    return ordered
