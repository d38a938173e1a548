from ocpi_rating.core.exceptions import (
    DecreasingMeterReading,
    ImputationImpossible,
    MissingMeteringData,
    NoTariffAvailable,
    OutOfBoundsSample,
    RatingError,
    RatingErrorKind,
    RatingFailed,
)
from ocpi_rating.v2_1_1 import (
    MeteringSample,
    RatedSession,
    Session,
    Tariff,
    calculate_cdr_cost,
    rate_session,
)

__all__ = [
    "DecreasingMeterReading",
    "ImputationImpossible",
    "MeteringSample",
    "MissingMeteringData",
    "NoTariffAvailable",
    "OutOfBoundsSample",
    "RatedSession",
    "RatingError",
    "RatingErrorKind",
    "RatingFailed",
    "Session",
    "Tariff",
    "calculate_cdr_cost",
    "rate_session",
]
