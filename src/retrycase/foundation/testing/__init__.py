"""Testing utilities: scripted units of work with invocation recording."""

from .mocks import FlakyWork, Invocation, SlowWork, SoftFailureWork, StatusCodeWork, StatusError

__all__ = ["StatusError", "Invocation", "FlakyWork", "SlowWork", "SoftFailureWork", "StatusCodeWork"]
