from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Awaitable, Callable, Optional

from ..config import PortalConfig
from ..models import Credentials, ExtractionOutcome, UsagePayload
from .errors import (
    AuthenticationIncomplete,
    ExtractionError,
    ExtractionTimeout,
    SessionSetupFailure,
)
from .navigation import NavigationDriver
from .selectors import PortalSelectors
from .session import BrowserSession, open_browser_session
from .traffic import TrafficFilter
from .watcher import ResponseWatcher


logger = logging.getLogger(__name__)

SessionFactory = Callable[..., Awaitable[BrowserSession]]


class XfinityPortalClient:
    """
    Xfinity customer portal automation: log in with a real browser and capture the internet usage JSON
    that the portal front-end fetches for itself.

    One `extract()` call owns one browser session from start to finish; calls must not share a client
    concurrently.
    """

    def __init__(
        self,
        *,
        settings: Optional[PortalConfig] = None,
        selectors: Optional[PortalSelectors] = None,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self.settings = settings or PortalConfig()
        self.selectors = selectors or PortalSelectors()
        self._session_factory = session_factory or open_browser_session

    def fetch_usage(self, creds: Credentials, *, debug: bool = False) -> UsagePayload:
        """
        Blocking convenience wrapper: run one extraction and return the payload (or raise its error).
        """
        return asyncio.run(self.extract(creds, debug=debug)).unwrap()

    async def extract(self, creds: Credentials, *, debug: bool = False) -> ExtractionOutcome:
        """
        Run one extraction. `debug` only makes the browser visible.

        Never raises `ExtractionError`; it is returned inside the outcome instead.
        """
        try:
            payload = await self._extract(creds, debug=debug)
        except ExtractionError as e:
            logger.warning("Usage extraction failed: %s", e.reason)
            return ExtractionOutcome.failure(e)
        logger.info("Usage extraction succeeded.")
        return ExtractionOutcome.success(payload)

    async def _extract(self, creds: Credentials, *, debug: bool) -> UsagePayload:
        try:
            session = await self._session_factory(
                headless=not debug,
                user_agent=self.selectors.user_agent,
                slow_mo_ms=self.settings.slow_mo_ms,
            )
        except Exception as e:
            raise SessionSetupFailure(f"Could not start a browser session: {e}") from e

        try:
            return await self._run_session(session, creds)
        except ExtractionError as e:
            if not isinstance(e, SessionSetupFailure):
                await self._save_debug(session, name_prefix=type(e).__name__)
            raise
        finally:
            await session.close()

    async def _run_session(self, session: BrowserSession, creds: Credentials) -> UsagePayload:
        page = session.page
        captured: asyncio.Future[UsagePayload] = asyncio.get_running_loop().create_future()

        # Both hooks must be live before the first navigation, or early requests slip through.
        traffic = TrafficFilter(self.selectors)
        watcher = ResponseWatcher(self.settings.usage_url, captured)
        try:
            await page.route("**/*", traffic.handle)
            page.on("response", watcher.on_response)
        except Exception as e:
            raise SessionSetupFailure(f"Could not install request/response hooks: {e}") from e

        driver = NavigationDriver(page, creds=creds, settings=self.settings, selectors=self.selectors)
        driver_task = asyncio.ensure_future(driver.run())
        try:
            done, _ = await asyncio.wait(
                {captured, driver_task},
                timeout=self.settings.overall_timeout_s,
                return_when=asyncio.FIRST_COMPLETED,
            )

            if captured in done:
                # Payload (or parse failure) is in; the rest of the click-path is moot.
                await self._cancel(driver_task)
                return captured.result()

            if not done:
                await self._cancel(driver_task)
                raise ExtractionTimeout(
                    f"No usage payload within {self.settings.overall_timeout_s:g}s "
                    f"(stuck at step {driver.step.value if driver.step else '?'})."
                )

            # Driver finished first. The response listener runs as its own task, so give a capture that
            # is already in flight a moment to land.
            grace_s = self.settings.capture_grace_ms / 1000
            await asyncio.wait({captured}, timeout=grace_s)
            err = driver_task.exception()
            if captured.done():
                if err is not None:
                    logger.debug("Navigation failed after the usage response arrived: %s", err)
                return captured.result()

            if err is not None:
                if isinstance(err, ExtractionError):
                    raise err
                raise AuthenticationIncomplete(f"Navigation failed: {err}") from err
            raise AuthenticationIncomplete(
                "No usage payload captured: the portal never returned the usage response "
                "(check credentials, or the portal may have added a login challenge)."
            )
        finally:
            if not driver_task.done():
                await self._cancel(driver_task)
            logger.debug(
                "Traffic filter: allowed=%d aborted=%d; steps completed=%s",
                traffic.allowed,
                traffic.aborted,
                [s.value for s in driver.completed],
            )
            if not captured.done():
                captured.cancel()

    async def _cancel(self, task: "asyncio.Future[None]") -> None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.debug("Navigation ended with an error after the outcome was decided.", exc_info=True)

    async def _save_debug(self, session: BrowserSession, *, name_prefix: str) -> None:
        if not self.settings.debug_dir:
            return
        page = session.page
        safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", name_prefix).strip("_")[:60] or "failure"
        try:
            out_dir = Path(self.settings.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(out_dir / f"{safe}.png"), full_page=True)
            (out_dir / f"{safe}.html").write_text(await page.content(), encoding="utf-8")
        except Exception:
            logger.debug("Failed to save debug artifacts.", exc_info=True)
