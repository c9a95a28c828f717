"""Delay-compensation eligibility check.

Only decides eligibility and estimates the amount; claims are filed elsewhere.
"""

from enum import Enum

from pydantic import BaseModel

from commute_watch.models.transit import Itinerary

DELAY_THRESHOLD_MINUTES = 20
COMPENSATION_RATE_PER_MINUTE = 6.5  # SEK per minute of delay
CURRENCY = "SEK"


class TicketType(str, Enum):
    SINGLE = "single"
    SEVEN_DAY = "7-day"
    THIRTY_DAY = "30-day"
    ANNUAL = "annual"
    PERIOD = "period"


TICKET_MULTIPLIERS: dict[TicketType, float] = {
    TicketType.SINGLE: 0.5,
    TicketType.SEVEN_DAY: 0.8,
    TicketType.THIRTY_DAY: 1.0,
    TicketType.ANNUAL: 1.2,
    TicketType.PERIOD: 1.0,
}


class CompensationEligibility(BaseModel):
    eligible: bool
    delay_minutes: int
    threshold_minutes: int = DELAY_THRESHOLD_MINUTES
    estimated_amount: int = 0
    currency: str = CURRENCY


def estimate_amount(delay_minutes: int, ticket_type: TicketType) -> int:
    """Estimated compensation in whole kronor."""
    return round(delay_minutes * COMPENSATION_RATE_PER_MINUTE * TICKET_MULTIPLIERS[ticket_type])


def check_compensation(
    itinerary: Itinerary, ticket_type: TicketType = TicketType.PERIOD
) -> CompensationEligibility:
    """Check whether an itinerary's arrival delay qualifies for compensation."""
    delay = itinerary.delay_minutes
    if delay < DELAY_THRESHOLD_MINUTES:
        return CompensationEligibility(eligible=False, delay_minutes=delay)

    return CompensationEligibility(
        eligible=True,
        delay_minutes=delay,
        estimated_amount=estimate_amount(delay, ticket_type),
    )
