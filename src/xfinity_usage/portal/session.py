from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright


logger = logging.getLogger(__name__)


class BrowserSession:
    """
    One browser + context + page, exclusively owned by a single extraction.

    `close()` is idempotent: the first call tears everything down, later calls are no-ops.
    """

    def __init__(
        self,
        *,
        page: Page,
        context: Optional[BrowserContext] = None,
        browser: Optional[Browser] = None,
        playwright: Optional[Playwright] = None,
    ) -> None:
        self.page = page
        self._context = context
        self._browser = browser
        self._playwright = playwright
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        # Tear down inside-out; keep going so no browser process outlives us.
        if self._context is not None:
            try:
                await self._context.close()
            except Exception:
                logger.debug("Failed to close browser context.", exc_info=True)
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception:
                logger.debug("Failed to close browser.", exc_info=True)
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception:
                logger.debug("Failed to stop Playwright.", exc_info=True)


async def _launch_chromium(p: Playwright, *, headless: bool, slow_mo_ms: int) -> Browser:
    # Prefer Playwright's bundled Chromium, but fall back to a system-installed browser if the
    # Playwright browser cache is missing.
    try:
        return await p.chromium.launch(headless=headless, slow_mo=slow_mo_ms)
    except Exception as e:
        msg = str(e)
        if "Executable doesn't exist" not in msg:
            raise

        logger.warning(
            "Playwright Chromium executable missing; falling back to system browser channel. (%s)",
            msg,
        )

        # Try Chrome first, then Edge.
        try:
            return await p.chromium.launch(headless=headless, slow_mo=slow_mo_ms, channel="chrome")
        except Exception:
            return await p.chromium.launch(headless=headless, slow_mo=slow_mo_ms, channel="msedge")


async def open_browser_session(*, headless: bool = True, user_agent: str = "", slow_mo_ms: int = 0) -> BrowserSession:
    """
    Start Playwright, launch Chromium and open a single page.

    Anything started before a failure is stopped again before the error propagates.
    """
    p = await async_playwright().start()
    browser: Optional[Browser] = None
    context: Optional[BrowserContext] = None
    try:
        browser = await _launch_chromium(p, headless=headless, slow_mo_ms=int(slow_mo_ms or 0))

        ctx_kwargs: dict = {"color_scheme": "light"}
        if user_agent:
            ctx_kwargs["user_agent"] = user_agent
        context = await browser.new_context(**ctx_kwargs)
        page = await context.new_page()
    except BaseException:
        await BrowserSession(page=None, context=context, browser=browser, playwright=p).close()  # type: ignore[arg-type]
        raise

    return BrowserSession(page=page, context=context, browser=browser, playwright=p)
