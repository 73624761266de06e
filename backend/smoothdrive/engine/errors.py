"""
Engine error taxonomy.

Malformed samples and out-of-range speed readings are expected under
normal sampling jitter and are dropped without raising; only the
conditions below reach the caller.
"""


class SmoothDriveError(Exception):
    """Base class for engine errors."""


class SensorUnavailable(SmoothDriveError):
    """Motion or location capability is missing; the session cannot start."""


class PermissionDenied(SmoothDriveError):
    """The user (or platform) refused motion sensor access."""


class PositionFixError(SmoothDriveError):
    """A position fix could not be acquired. Non-fatal."""


class SessionError(SmoothDriveError):
    """Operation not allowed in the current session state."""
