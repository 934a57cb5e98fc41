"""Failure types raised inside the verification pipeline.

None of these escape FusionEngine.perform_comprehensive_verification: provider
failures become critical warnings, malformed items are skipped where they occur.
"""


class VerificationError(Exception):
    """Base class for verification pipeline errors."""


class ProviderFailure(VerificationError):
    """A named signal provider raised or timed out."""

    def __init__(self, subsystem: str, cause: BaseException) -> None:
        self.subsystem = subsystem
        self.cause = cause
        super().__init__(f"{subsystem} failed: {cause!r}")


class MalformedInput(VerificationError):
    """A single input item (URL, photo reference) cannot be interpreted."""

    def __init__(self, item: str, reason: str) -> None:
        self.item = item
        self.reason = reason
        super().__init__(f"{reason}: {item!r}")


class SignalUnavailable(VerificationError):
    """A provider contract has no backing implementation for this signal."""
