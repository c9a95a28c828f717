from commute_watch.app import mcp
from commute_watch.models.commute import TimeMode
from commute_watch.models.responses import PlanTripResponse
from commute_watch.services.compensation import TicketType
from commute_watch.services.planner_service import plan_trip as _plan_trip


@mcp.tool()
async def plan_trip(
    origin: str,
    destination: str,
    time: str | None = None,
    arrive_by: bool = False,
    limit: int = 3,
    ticket_type: TicketType = TicketType.PERIOD,
) -> PlanTripResponse:
    """Plan a trip between two stations with live delay information.

    Each itinerary comes with its total delay, cancellation and
    missed-connection flags, and whether the delay qualifies for
    compensation (20 minutes or more).

    Args:
        origin: Origin station - name or stop id (e.g., "Odenplan", "740000001")
        destination: Destination station - same format as origin
        time: Time as HH:MM (default: now)
        arrive_by: If True, `time` is the latest arrival instead of the departure
        limit: Maximum itineraries to return (1-5, default: 3)
        ticket_type: Ticket used for the compensation estimate

    Returns:
        PlanTripResponse with itineraries sorted by departure (or latest arrival).
    """
    # Clamp limit
    if limit < 1:
        limit = 1
    elif limit > 5:
        limit = 5

    return await _plan_trip(
        origin=origin,
        destination=destination,
        time_str=time,
        mode=TimeMode.ARRIVE if arrive_by else TimeMode.DEPART,
        limit=limit,
        ticket_type=ticket_type,
    )
