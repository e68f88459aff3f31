"""
Error taxonomy for network loading, directions lookups and journey planning.

Only DataIntegrityError and InvalidInput are meant to reach a caller. Directions
errors are recovered inside the planner with local distance estimates.
"""


class TransitPlannerError(Exception):
    """Base class for all planner errors."""


class DataIntegrityError(TransitPlannerError):
    """Network dataset is inconsistent (missing route sequence, conflicting stop ids)."""


class InvalidInput(TransitPlannerError, ValueError):
    """Caller supplied coordinates or parameters that can never be planned."""


class DirectionsError(TransitPlannerError):
    """Any failure of the external directions provider."""


class InvalidCoordinates(DirectionsError, InvalidInput):
    """Provider (or local validation) rejected the coordinates. Never retried."""


class RateLimited(DirectionsError):
    """Local request budget exhausted or provider answered 429."""


class ProviderFailure(DirectionsError):
    """Provider could not produce a usable answer."""


class ProviderUnavailable(ProviderFailure):
    """Timeout, 5xx after retries, or provider not configured."""


class MalformedResponse(ProviderFailure):
    """Provider answered but the payload is unusable."""


class NoSequenceValidBoardingStop(TransitPlannerError):
    """No stop precedes the destination stop on a shared route."""


class NoStopsInRange(TransitPlannerError):
    """No stop lies within the search radius of the destination."""
