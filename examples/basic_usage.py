"""
Basic Usage Example for the OCPI Rating Package.

This script rates a one hour charging session against a tariff that
charges energy and time at a higher price after the first 30 minutes, and prints
the resulting charging periods and totals.
"""

import logging

from ocpi_rating import RatingFailed, Session, rate_session

logging.basicConfig(level=logging.DEBUG)

# Sample Data
session_data = {
    "id": "session-1",
    "start_date_time": "2024-01-01T12:00:00Z",
    "stop_date_time": "2024-01-01T13:00:00Z",
    "currency": "EUR",
    "country_code": "NLD",
    "metering_samples": [
        {"timestamp": "2024-01-01T12:00:00Z", "energy_wh": 0},
        {"timestamp": "2024-01-01T12:20:00Z", "energy_wh": 3700},
        {"timestamp": "2024-01-01T13:00:00Z", "energy_wh": 9100},
    ],
    "tariffs": [
        {
            "id": "tariff-1",
            "currency": "EUR",
            "elements": [
                {
                    "price_components": [
                        {"type": "ENERGY", "price": "0.35", "step_size": 100},
                        {"type": "TIME", "price": "1.20", "step_size": 300},
                    ],
                    "restrictions": {"min_duration": 1800},
                },
                {
                    "price_components": [
                        {"type": "ENERGY", "price": "0.25", "step_size": 1},
                        {"type": "FLAT", "price": "0.50", "step_size": 1},
                    ]
                },
            ],
        }
    ],
}

# Rate
try:
    rated = rate_session(Session(**session_data))
except RatingFailed as error:
    print(f"Rating failed ({error.cause_kind.value}): {error.cause}")
    raise SystemExit(1)

for period in rated.charging_periods:
    print(
        f"#{period.index} {period.start_date_time:%H:%M}-{period.stop_date_time:%H:%M} "
        f"{period.energy} Wh ({period.start_metering_value.source.value} start), "
        f"element {period.tariff_element}"
    )

print(f"Total Energy: {rated.total_energy} kWh (billed {rated.billed_energy} kWh)")
print(f"Total Time: {rated.total_time} h (billed {rated.billed_time} h)")
print(f"Total Cost: {rated.total_cost} {rated.currency}")
