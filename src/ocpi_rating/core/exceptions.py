from enum import Enum
from typing import Optional


class RatingErrorKind(str, Enum):
    MISSING_METERING_DATA = "MissingMeteringData"
    OUT_OF_BOUNDS_SAMPLE = "OutOfBoundsSample"
    DECREASING_METER_READING = "DecreasingMeterReading"
    NO_TARIFF_AVAILABLE = "NoTariffAvailable"
    IMPUTATION_IMPOSSIBLE = "ImputationImpossible"
    RATING_FAILED = "RatingFailed"


class RatingError(Exception):
    """Base class of every error raised while rating a session."""

    kind: RatingErrorKind = RatingErrorKind.RATING_FAILED


class MissingMeteringData(RatingError):
    kind = RatingErrorKind.MISSING_METERING_DATA


class OutOfBoundsSample(RatingError):
    kind = RatingErrorKind.OUT_OF_BOUNDS_SAMPLE


class DecreasingMeterReading(RatingError):
    kind = RatingErrorKind.DECREASING_METER_READING


class NoTariffAvailable(RatingError):
    kind = RatingErrorKind.NO_TARIFF_AVAILABLE


class ImputationImpossible(RatingError):
    kind = RatingErrorKind.IMPUTATION_IMPOSSIBLE


class RatingFailed(RatingError):
    """
    Raised by `rate_session` for any failure of the pipeline.
    The triggering error is kept in `cause` (and as `__cause__`).
    """

    kind = RatingErrorKind.RATING_FAILED

    def __init__(self, cause: RatingError):
        super().__init__(f"{cause.kind.value}: {cause}")
        self.cause: Optional[RatingError] = cause

    @property
    def cause_kind(self) -> RatingErrorKind:
        return self.cause.kind if self.cause is not None else self.kind


def require(condition: bool, message: str, exc: type[RatingError] = RatingError):
    """Raise the given exception if condition is False."""
    if not condition:
        raise exc(message)
