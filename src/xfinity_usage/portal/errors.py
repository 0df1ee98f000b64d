from __future__ import annotations


class ExtractionError(RuntimeError):
    """
    Base class for every failure surfaced by a usage extraction.

    `reason` is a human-readable string; callers decide how to classify/present it.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class AuthenticationIncomplete(ExtractionError):
    """
    The login sequence ran, but the usage endpoint never returned the target payload
    (wrong credentials, an unexpected challenge, or a markup change).
    """


class ElementWaitTimeout(AuthenticationIncomplete):
    """A login field never became visible within the element timeout."""

    def __init__(self, reason: str, *, selector: str = "") -> None:
        super().__init__(reason)
        self.selector = selector


class ExtractionTimeout(AuthenticationIncomplete):
    """The overall extraction deadline passed before a terminal event."""


class SessionSetupFailure(ExtractionError):
    """The browser session could not be created, or the login page could not be reached."""


class PayloadParseFailure(ExtractionError):
    """The target response was observed but its body is not a JSON object."""
