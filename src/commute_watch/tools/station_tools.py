from commute_watch.app import mcp
from commute_watch.models.responses import ResolveStationResponse
from commute_watch.services.planner_service import resolve_station as _resolve_station


@mcp.tool()
async def resolve_station(query: str, limit: int = 5) -> ResolveStationResponse:
    """Find stations matching a name.

    Results are ranked rail stations first, then metro, then bus terminals,
    then everything else, alphabetically within each group. Abbreviations
    like "S:t" and "C" (central) are understood, and accents are optional.

    Examples:
        resolve_station("Stockholm C")
        resolve_station("sodra")
        resolve_station("S:t Eriksplan")

    Args:
        query: Station name (free text).
        limit: Maximum number of stations to return (default 5, max 20).

    Returns:
        ResolveStationResponse with ranked stations. is_fallback=True means the
        live lookup failed and only a small set of major stations was searched.
    """
    if limit < 1:
        limit = 1
    elif limit > 20:
        limit = 20

    return await _resolve_station(query=query, limit=limit)
