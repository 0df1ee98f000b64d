__version__ = "0.1.0"

from .models import Credentials, ExtractionOutcome, TrafficDecision, UsagePayload
from .portal.client import XfinityPortalClient

__all__ = [
    "__version__",
    "XfinityPortalClient",
    "Credentials",
    "ExtractionOutcome",
    "TrafficDecision",
    "UsagePayload",
]
