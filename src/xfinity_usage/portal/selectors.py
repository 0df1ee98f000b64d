from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PortalSelectors:
    """
    The Xfinity portal has no public API; everything here is scraped from its markup and front-end traffic.
    Keep all UI selectors/URLs/text hooks here for easy maintenance. They WILL break when the portal changes.
    """

    # Login (two-step: identity page, then secret page)
    identity_input: str = "#user"
    secret_input: str = "#passwd"
    submit_button: str = "#sign_in"

    # Outbound identification; an old desktop Chrome UA draws fewer bot challenges than HeadlessChrome.
    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/44.0.2403.157 Safari/537.36"
    )

    # Traffic filter
    blocked_resource_types: tuple[str, ...] = ("image",)
    tracking_url_substrings: tuple[str, ...] = ("adobedtm", "demdex", "quantummetric")
    media_resource_types: tuple[str, ...] = ("media",)
    video_extensions: tuple[str, ...] = (".mp4", ".avi", ".flv", ".mov", ".wmv")


DEFAULT_LOGIN_URL = "https://login.xfinity.com/login"
DEFAULT_LANDING_URL = "https://customer.xfinity.com/#/devices#usage"
# The front-end fetches this internally; we navigate to it directly once authenticated.
DEFAULT_USAGE_URL = "https://customer.xfinity.com/apis/csp/account/me/services/internet/usage?filter=internet"
