"""
Errors that cross the engine boundary.

Extraction misses, retrieval failures and plan parse failures are handled
inside the engine and never show up here.
"""


class TripPlannerError(Exception):
    """Base class for engine errors."""


class InvalidInputError(TripPlannerError):
    """The utterance is missing, empty or not a string."""


class GenerationBackendError(TripPlannerError):
    """The generative backend call failed (transport, auth, rate limit, empty reply)."""


class GenerationConfigError(GenerationBackendError):
    """The generative backend has no credentials or configuration."""


MISSING_CREDENTIALS_MESSAGE = (
    "API key not configured. Please set GITHUB_TOKEN or OPENAI_API_KEY environment variable."
)
