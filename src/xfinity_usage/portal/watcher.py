from __future__ import annotations

import asyncio
import logging
from typing import Any

from playwright.async_api import Response

from ..models import UsagePayload
from .errors import PayloadParseFailure


logger = logging.getLogger(__name__)


class ResponseWatcher:
    """
    `response` listener that captures the usage endpoint's JSON body.

    Installed before the first navigation and left in place for the lifetime of the page.
    Only the first matching response is captured; the one-shot `future` is never resolved twice.
    """

    def __init__(self, target_prefix: str, future: "asyncio.Future[UsagePayload]") -> None:
        self.target_prefix = target_prefix
        self.future = future
        self.triggered = False
        self.ignored_matches = 0

    def matches(self, url: str) -> bool:
        return bool(url) and url.startswith(self.target_prefix)

    async def on_response(self, response: Response) -> None:
        url = response.url
        if not self.matches(url):
            return

        # Claim before the first await so a second matching response can't race us.
        if self.triggered:
            self.ignored_matches += 1
            logger.debug("Ignoring repeat usage response (url=%s)", url)
            return
        self.triggered = True
        logger.info("Usage response observed (status=%s)", getattr(response, "status", "?"))

        try:
            body: Any = await response.json()
        except Exception as e:
            self._resolve_error(PayloadParseFailure(f"Usage response was not valid JSON: {e}"))
            return

        if not isinstance(body, dict):
            self._resolve_error(
                PayloadParseFailure(f"Usage response was JSON but not an object (got {type(body).__name__})")
            )
            return

        if not self.future.done():
            self.future.set_result(body)

    def _resolve_error(self, err: PayloadParseFailure) -> None:
        if self.future.done():
            return
        logger.warning("%s", err.reason)
        self.future.set_exception(err)
