from __future__ import annotations

import asyncio
import gc
import logging
from pathlib import Path

import pytest

from xfinity_usage.config import PortalConfig
from xfinity_usage.models import Credentials, ExtractionOutcome
from xfinity_usage.portal.client import XfinityPortalClient
from xfinity_usage.portal.errors import (
    AuthenticationIncomplete,
    ElementWaitTimeout,
    ExtractionTimeout,
    PayloadParseFailure,
    SessionSetupFailure,
)
from xfinity_usage.portal.selectors import PortalSelectors

from fake_portal import (
    LANDING_URL,
    LOGIN_URL,
    USAGE_BODY,
    USAGE_URL,
    FakePage,
    SessionFactory,
    fast_settings,
)


CREDS = Credentials(identity="me@example.com", secret="hunter2")
EXPECTED = {"usageMonths": [{"totalUsage": 120, "allowableUsage": 1024}]}


def _extract(page: FakePage, *, debug: bool = False, **settings) -> tuple[ExtractionOutcome, SessionFactory]:
    factory = SessionFactory(page)
    client = XfinityPortalClient(settings=fast_settings(**settings), session_factory=factory)
    outcome = asyncio.run(client.extract(CREDS, debug=debug))
    return outcome, factory


def test_valid_credentials_resolve_with_usage_document() -> None:
    page = FakePage(responses={USAGE_URL: [(USAGE_URL, USAGE_BODY)]})
    outcome, factory = _extract(page)

    assert outcome.ok
    assert outcome.unwrap() == EXPECTED
    assert factory.context.close_count == 1


def test_hooks_are_installed_before_first_navigation() -> None:
    page = FakePage(responses={USAGE_URL: [(USAGE_URL, USAGE_BODY)]})
    _extract(page)

    first_goto = page.events.index(f"goto:{LOGIN_URL}")
    assert page.events.index("route:**/*") < first_goto
    assert page.events.index("on:response") < first_goto


def test_session_uses_fixed_user_agent_and_debug_controls_visibility() -> None:
    page = FakePage(responses={USAGE_URL: [(USAGE_URL, USAGE_BODY)]})
    _, factory = _extract(page, debug=True)
    assert factory.calls[0]["headless"] is False
    assert factory.calls[0]["user_agent"] == PortalSelectors().user_agent
    assert "Chrome/" in factory.calls[0]["user_agent"]
    assert factory.calls[0]["slow_mo_ms"] == 0

    page = FakePage(responses={USAGE_URL: [(USAGE_URL, USAGE_BODY)]})
    _, factory = _extract(page, slow_mo_ms=250)
    assert factory.calls[0]["headless"] is True
    assert factory.calls[0]["slow_mo_ms"] == 250


def test_user_agent_is_not_configurable_separately() -> None:
    assert "user_agent" not in PortalConfig.model_fields


def test_late_capture_after_navigation_error_is_kept_quietly(caplog) -> None:
    # The usage request errors out on the driver's side, but its response still reaches the listener.
    page = FakePage(late_responses={USAGE_URL: [(USAGE_URL, USAGE_BODY)]}, fail_after_goto=[USAGE_URL])
    with caplog.at_level(logging.ERROR, logger="asyncio"):
        outcome, factory = _extract(page)
        gc.collect()

    assert outcome.ok
    assert outcome.unwrap() == EXPECTED
    assert factory.context.close_count == 1
    assert not [r for r in caplog.records if "never retrieved" in r.getMessage()]


def test_capture_during_landing_page_cancels_remaining_navigation() -> None:
    # The landing page's own front-end fetches the usage API; the driver is still settling.
    page = FakePage(
        responses={LANDING_URL: [(USAGE_URL, USAGE_BODY)]},
        real_timeouts=True,
    )
    outcome, factory = _extract(page, settle_ms=2_000, overall_timeout_s=10)

    assert outcome.unwrap() == EXPECTED
    assert USAGE_URL not in page.navigations
    assert factory.context.close_count == 1


def test_repeated_endpoint_hits_produce_one_payload() -> None:
    page = FakePage(
        responses={
            USAGE_URL: [
                (USAGE_URL, USAGE_BODY),
                (USAGE_URL, '{"usageMonths":[{"totalUsage":1,"allowableUsage":2}]}'),
            ]
        }
    )
    outcome, _ = _extract(page)
    assert outcome.unwrap() == EXPECTED


def test_exhausted_sequence_without_capture_is_authentication_incomplete() -> None:
    page = FakePage()
    outcome, factory = _extract(page)

    assert not outcome.ok
    assert type(outcome.error) is AuthenticationIncomplete
    assert "No usage payload captured" in outcome.reason
    assert factory.context.close_count == 1
    with pytest.raises(AuthenticationIncomplete):
        outcome.unwrap()


def test_reauth_submit_error_still_succeeds() -> None:
    page = FakePage(
        present={"#passwd"},
        fail_clicks={3},
        responses={USAGE_URL: [(USAGE_URL, USAGE_BODY)]},
    )
    outcome, _ = _extract(page)
    assert outcome.unwrap() == EXPECTED


def test_invalid_body_is_payload_parse_failure_and_session_closed() -> None:
    page = FakePage(responses={USAGE_URL: [(USAGE_URL, "<html>Please sign in</html>")]})
    outcome, factory = _extract(page)

    assert isinstance(outcome.error, PayloadParseFailure)
    assert factory.context.close_count == 1


def test_browser_launch_failure_is_session_setup_failure() -> None:
    factory = SessionFactory(FakePage(), error=RuntimeError("Executable doesn't exist at /ms-playwright"))
    client = XfinityPortalClient(settings=fast_settings(), session_factory=factory)
    outcome = asyncio.run(client.extract(CREDS))

    assert isinstance(outcome.error, SessionSetupFailure)
    assert "Executable doesn't exist" in outcome.reason


def test_unreachable_login_page_closes_session() -> None:
    page = FakePage(fail_goto={LOGIN_URL})
    outcome, factory = _extract(page)

    assert isinstance(outcome.error, SessionSetupFailure)
    assert factory.context.close_count == 1


def test_login_markup_change_surfaces_as_element_timeout() -> None:
    page = FakePage(visible=())
    outcome, factory = _extract(page)

    assert isinstance(outcome.error, ElementWaitTimeout)
    assert isinstance(outcome.error, AuthenticationIncomplete)
    assert factory.context.close_count == 1


def test_hung_navigation_hits_overall_deadline() -> None:
    page = FakePage(hang_on=LANDING_URL)
    outcome, factory = _extract(page, overall_timeout_s=0.2)

    assert isinstance(outcome.error, ExtractionTimeout)
    assert "post_login_navigate" in outcome.reason
    assert factory.context.close_count == 1


def test_failure_writes_debug_artifacts(tmp_path: Path) -> None:
    page = FakePage()
    outcome, _ = _extract(page, debug_dir=str(tmp_path))

    assert not outcome.ok
    assert (tmp_path / "AuthenticationIncomplete.png").exists()
    assert (tmp_path / "AuthenticationIncomplete.html").exists()


def test_fetch_usage_unwraps() -> None:
    page = FakePage(responses={USAGE_URL: [(USAGE_URL, USAGE_BODY)]})
    client = XfinityPortalClient(settings=fast_settings(), session_factory=SessionFactory(page))
    assert client.fetch_usage(CREDS) == EXPECTED

    client = XfinityPortalClient(settings=fast_settings(), session_factory=SessionFactory(FakePage()))
    with pytest.raises(AuthenticationIncomplete):
        client.fetch_usage(CREDS)
