"""
errors.py

Failure taxonomy for talking to the timing authority.
"""

from typing import Optional


class RaceTimerError(RuntimeError):
    """Base class for errors raised by the race timer client."""
    pass


class TransportFailure(RaceTimerError):
    """Network unreachable, timed out, or answered with a non-2xx status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class MalformedResponse(RaceTimerError):
    """Response body could not be decoded into the expected shape."""
    pass
