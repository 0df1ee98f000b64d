from .errors import (
    AuthenticationIncomplete,
    ElementWaitTimeout,
    ExtractionError,
    ExtractionTimeout,
    PayloadParseFailure,
    SessionSetupFailure,
)
from .selectors import PortalSelectors

__all__ = [
    "PortalSelectors",
    "ExtractionError",
    "AuthenticationIncomplete",
    "ElementWaitTimeout",
    "ExtractionTimeout",
    "SessionSetupFailure",
    "PayloadParseFailure",
]
