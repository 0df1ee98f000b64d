from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import PortalConfig
from ..models import Credentials
from .errors import AuthenticationIncomplete, ElementWaitTimeout, SessionSetupFailure
from .selectors import PortalSelectors


logger = logging.getLogger(__name__)


class NavigationStep(Enum):
    LOGIN_PAGE = "login_page"
    ENTER_IDENTITY = "enter_identity"
    ENTER_SECRET = "enter_secret"
    POST_LOGIN_NAVIGATE = "post_login_navigate"
    OPTIONAL_REAUTH = "optional_reauth"
    REQUEST_DATA = "request_data"


class NavigationDriver:
    """
    Replays the human click-path through the Xfinity login, then requests the usage endpoint directly.

    The driver never inspects the usage response itself; a `ResponseWatcher` on the same page does that
    and may finish (and cancel this driver) at any await point.
    """

    def __init__(
        self,
        page: Page,
        *,
        creds: Credentials,
        settings: Optional[PortalConfig] = None,
        selectors: Optional[PortalSelectors] = None,
    ) -> None:
        self.page = page
        self.creds = creds
        self.settings = settings or PortalConfig()
        self.selectors = selectors or PortalSelectors()
        self.step: Optional[NavigationStep] = None
        self.completed: list[NavigationStep] = []

    async def run(self) -> None:
        await self._login_page()
        await self._enter_identity()
        await self._enter_secret()
        await self._post_login_navigate()
        await self._optional_reauth()
        await self._request_data()

    def _enter(self, step: NavigationStep) -> None:
        self.step = step
        logger.info("Step %02d %s (url=%s)", len(self.completed) + 1, step.value, getattr(self.page, "url", ""))

    def _done(self) -> None:
        if self.step is not None:
            self.completed.append(self.step)

    async def _login_page(self) -> None:
        self._enter(NavigationStep.LOGIN_PAGE)
        try:
            await self.page.goto(
                self.settings.login_url,
                wait_until="domcontentloaded",
                timeout=self.settings.navigation_timeout_ms,
            )
        except PlaywrightError as e:
            raise SessionSetupFailure(f"Could not load the login page ({self.settings.login_url}): {e}") from e
        self._done()

    async def _enter_identity(self) -> None:
        self._enter(NavigationStep.ENTER_IDENTITY)
        # The login form is populated asynchronously; wait for the field instead of a blind sleep.
        await self._wait_for_visible(self.selectors.identity_input)
        await self._fill_and_submit(self.selectors.identity_input, self.creds.identity)
        self._done()

    async def _enter_secret(self) -> None:
        self._enter(NavigationStep.ENTER_SECRET)
        await self._wait_for_visible(self.selectors.secret_input)
        await self._fill_and_submit(self.selectors.secret_input, self.creds.secret)
        self._done()

    async def _post_login_navigate(self) -> None:
        self._enter(NavigationStep.POST_LOGIN_NAVIGATE)
        try:
            await self.page.goto(
                self.settings.landing_url,
                wait_until="domcontentloaded",
                timeout=self.settings.navigation_timeout_ms,
            )
        except PlaywrightError as e:
            raise AuthenticationIncomplete(f"Could not open the account landing page: {e}") from e
        # No element reliably signals "authenticated" here; fall back to a fixed settle delay.
        await self.page.wait_for_timeout(self.settings.settle_ms)
        self._done()

    async def _optional_reauth(self) -> None:
        """
        The portal sometimes asks for the password again after landing. Absence of the prompt, or any
        error while answering it, is not a failure.
        """
        self._enter(NavigationStep.OPTIONAL_REAUTH)
        try:
            if await self.page.locator(self.selectors.secret_input).count() > 0:
                logger.info("Portal re-prompted for the password; re-submitting.")
                await self._fill_and_submit(self.selectors.secret_input, self.creds.secret)
                await self.page.wait_for_timeout(self.settings.settle_ms)
            else:
                logger.debug("No re-authentication prompt.")
        except Exception:
            logger.debug("Optional re-authentication failed; continuing.", exc_info=True)
        self._done()

    async def _request_data(self) -> None:
        self._enter(NavigationStep.REQUEST_DATA)
        try:
            await self.page.goto(
                self.settings.usage_url,
                wait_until="domcontentloaded",
                timeout=self.settings.navigation_timeout_ms,
            )
        except PlaywrightError as e:
            raise AuthenticationIncomplete(f"Could not request the usage endpoint: {e}") from e
        self._done()

    async def _wait_for_visible(self, selector: str) -> None:
        try:
            await self.page.wait_for_selector(
                selector,
                state="visible",
                timeout=self.settings.element_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            step = self.step.value if self.step else "?"
            raise ElementWaitTimeout(
                f"Timed out after {self.settings.element_timeout_ms}ms waiting for {selector!r} during {step} "
                "(wrong credentials, an unexpected challenge, or the login markup changed).",
                selector=selector,
            ) from e

    async def _fill_and_submit(self, selector: str, value: str) -> None:
        step = self.step.value if self.step else "?"
        try:
            await self.page.fill(selector, value)
            async with self.page.expect_navigation(
                wait_until="networkidle",
                timeout=self.settings.navigation_timeout_ms,
            ):
                await self.page.click(self.selectors.submit_button)
        except PlaywrightError as e:
            raise AuthenticationIncomplete(f"Login step {step} failed: {e}") from e
