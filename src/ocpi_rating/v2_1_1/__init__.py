from .models import MeteringSample, RatedSession, Session, Tariff
from .tariff_calculator import calculate_cdr_cost, rate_session

__all__ = ["MeteringSample", "RatedSession", "Session", "Tariff", "calculate_cdr_cost", "rate_session"]
