"""Errors raised by the learning services.

Routers translate these into HTTP responses; services never build HTTP
responses themselves.
"""


class LearningError(Exception):
    """Base class for learning service errors."""


class NotFoundError(LearningError):
    """Requested topic, question or student does not exist (or has no questions)."""


class ValidationError(LearningError):
    """A value passed to a service is malformed."""


class AuthenticationError(LearningError):
    """Credentials or role did not match a known user."""
