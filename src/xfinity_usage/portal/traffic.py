from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlparse

from playwright.async_api import Route

from ..models import TrafficDecision
from .selectors import PortalSelectors


logger = logging.getLogger(__name__)


def classify_request(url: str, resource_type: str, selectors: Optional[PortalSelectors] = None) -> TrafficDecision:
    """
    Decide whether an outgoing request may be sent. First match wins:
    images, then tracking vendors, then audio/video. Everything else is allowed.
    """
    sel = selectors or PortalSelectors()
    kind = (resource_type or "").strip().lower()
    lowered = (url or "").lower()

    if kind in sel.blocked_resource_types:
        return TrafficDecision.ABORT

    if any(s in lowered for s in sel.tracking_url_substrings):
        return TrafficDecision.ABORT

    if kind in sel.media_resource_types:
        return TrafficDecision.ABORT
    path = urlparse(lowered).path or lowered
    if path.endswith(sel.video_extensions) or lowered.endswith(sel.video_extensions):
        return TrafficDecision.ABORT

    return TrafficDecision.ALLOW


class TrafficFilter:
    """
    Playwright route handler (`page.route("**/*", traffic.handle)`).

    Every intercepted request gets exactly one `abort()` or `continue_()`; an undecided route
    stalls the page load forever.
    """

    def __init__(self, selectors: Optional[PortalSelectors] = None) -> None:
        self.selectors = selectors or PortalSelectors()
        self.allowed = 0
        self.aborted = 0

    def decide(self, url: str, resource_type: str) -> TrafficDecision:
        try:
            return classify_request(url, resource_type, self.selectors)
        except Exception:
            logger.debug("Traffic classification failed for url=%s; allowing.", url, exc_info=True)
            return TrafficDecision.ALLOW

    async def handle(self, route: Route) -> None:
        request = route.request
        decision = self.decide(request.url, request.resource_type)
        if decision is TrafficDecision.ABORT:
            self.aborted += 1
            await route.abort()
            return
        self.allowed += 1
        await route.continue_()
