"""Aggregate delay signals for a synthesized itinerary."""

from commute_watch.models.transit import DelayEvaluation, Itinerary, TransitLeg

# A delay above this on a multi-ride itinerary likely eats the transfer buffer
MISSED_CONNECTION_DELAY_MINUTES = 10


def leg_delay_minutes(leg: TransitLeg) -> int:
    """Non-negative delay of one ride: the worse of departure and arrival delay."""
    return max(0, leg.departure_delay_minutes, leg.arrival_delay_minutes)


def evaluate(itinerary: Itinerary) -> DelayEvaluation:
    """Derive total delay, cancellation and missed-connection signals.

    Walking legs contribute no delay. Early running never offsets a delay
    elsewhere in the itinerary.

    Args:
        itinerary: A synthesized itinerary.

    Returns:
        DelayEvaluation for the itinerary.
    """
    transit_legs = itinerary.transit_legs
    total_delay = sum(leg_delay_minutes(leg) for leg in transit_legs)
    has_cancellations = any(leg.cancelled for leg in transit_legs)
    missed_connection_risk = (
        len(transit_legs) > 1 and total_delay > MISSED_CONNECTION_DELAY_MINUTES
    )

    return DelayEvaluation(
        total_delay_minutes=total_delay,
        has_cancellations=has_cancellations,
        missed_connection_risk=missed_connection_risk,
    )
