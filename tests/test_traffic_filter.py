from __future__ import annotations

import asyncio

import pytest

from xfinity_usage.models import TrafficDecision
from xfinity_usage.portal.traffic import TrafficFilter, classify_request

from fake_portal import FakeRequest, FakeRoute


@pytest.mark.parametrize(
    "url,kind",
    [
        ("https://login.xfinity.com/logo.svg", "image"),
        ("https://assets.adobedtm.com/launch.js", "script"),
        ("https://dpm.DEMDEX.net/id?d_visid_ver=1", "xhr"),
        ("https://cdn.quantummetric.com/qscripts/quantum-comcast.js", "script"),
        ("https://www.xfinity.com/promo/hero", "media"),
        ("https://www.xfinity.com/promo/hero.MP4", "other"),
        ("https://www.xfinity.com/promo/hero.webm.mov?autoplay=1", "fetch"),
    ],
)
def test_images_tracking_and_video_are_aborted(url: str, kind: str) -> None:
    assert classify_request(url, kind) is TrafficDecision.ABORT


@pytest.mark.parametrize(
    "url,kind",
    [
        ("https://login.xfinity.com/login", "document"),
        ("https://login.xfinity.com/static/app.js", "script"),
        ("https://customer.xfinity.com/apis/csp/account/me/services/internet/usage?filter=internet", "xhr"),
        ("https://customer.xfinity.com/styles/main.css", "stylesheet"),
    ],
)
def test_everything_else_is_allowed(url: str, kind: str) -> None:
    assert classify_request(url, kind) is TrafficDecision.ALLOW


def test_image_rule_wins_over_allowlisted_looking_url() -> None:
    # First match wins: a same-site image is still blocked.
    assert classify_request("https://customer.xfinity.com/apis/avatar", "image") is TrafficDecision.ABORT


def test_handle_decides_each_request_exactly_once() -> None:
    traffic = TrafficFilter()
    routes = [
        FakeRoute(FakeRequest("https://login.xfinity.com/login", "document")),
        FakeRoute(FakeRequest("https://login.xfinity.com/bg.png", "image")),
        FakeRoute(FakeRequest("https://assets.adobedtm.com/x.js", "script")),
        FakeRoute(FakeRequest("https://login.xfinity.com/intro.flv", "media")),
    ]

    async def _run() -> None:
        for r in routes:
            await traffic.handle(r)

    asyncio.run(_run())

    assert [r.calls for r in routes] == [["continue"], ["abort"], ["abort"], ["abort"]]
    assert traffic.allowed == 1
    assert traffic.aborted == 3


def test_classification_error_falls_back_to_allow(monkeypatch) -> None:
    import xfinity_usage.portal.traffic as traffic_mod

    def _boom(*_a, **_kw):
        raise RuntimeError("bad url")

    monkeypatch.setattr(traffic_mod, "classify_request", _boom)
    route = FakeRoute(FakeRequest("https://login.xfinity.com/login", "document"))
    asyncio.run(TrafficFilter().handle(route))
    assert route.calls == ["continue"]
