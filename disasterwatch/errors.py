class DisasterWatchError(Exception):
    """Base class for errors raised by the disaster query clients."""


class ConfigurationError(DisasterWatchError):
    """A required setting (e.g. the generation service API key) is missing."""


class GenerationServiceError(DisasterWatchError):
    """The generation service could not be reached or rejected the request."""


class MalformedResponseError(DisasterWatchError):
    """The generation service answered, but not in the expected shape."""


class EventDetailsError(GenerationServiceError):
    """A situation report for a single event could not be produced."""
