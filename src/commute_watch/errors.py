"""Exception types shared across the commute-watch core."""


class CommuteWatchError(Exception):
    """Base class for all commute-watch errors."""


class UpstreamUnavailable(CommuteWatchError):
    """The upstream transit data source failed, timed out, or returned an error."""


class NoItineraryFound(CommuteWatchError):
    """The upstream source has no itinerary for the requested origin/destination/time."""


class MalformedUpstreamData(CommuteWatchError):
    """A raw trip is missing fields required to build an itinerary."""


class RouteConfigError(CommuteWatchError):
    """A stored commute route cannot be turned into a valid CommuteRoute."""
