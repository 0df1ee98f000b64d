from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from . import __version__
from .config import AppConfig, load_config
from .credentials_store import CredentialStore
from .logging_config import configure_logging, register_secret
from .models import Credentials
from .portal.client import XfinityPortalClient
from .usage import summarize


logger = logging.getLogger("xfinity_usage")


class CredentialsMissingError(ValueError):
    pass


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="xfin", description="CLI to avoid the Xfinity website")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    p.add_argument("-e", "--email", default="", help="Email address")
    p.add_argument("-p", "--password", default="", help="Password")
    p.add_argument(
        "-s",
        "--save",
        action="store_true",
        help="Save the email and password in PLAIN TEXT for later runs",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    usage = sub.add_parser("usage", help="Get the amount of usage left for this pay period")
    usage.add_argument("--json", action="store_true", help="Output as JSON")
    usage.add_argument("--show", action="store_true", help="Show the Chrome browser while it is being scraped")
    usage.add_argument("--slowmo-ms", type=int, default=0, help="Playwright slow motion in milliseconds (debug).")

    config = sub.add_parser("config", help="Print the path where saved credentials are stored")
    config_sub = config.add_subparsers(dest="config_cmd")
    config_sub.add_parser("clear", help="Wipe the saved credentials file")

    return p


def resolve_credentials(
    *,
    email: str,
    password: str,
    cfg: AppConfig,
    store: CredentialStore,
    save: bool = False,
) -> Optional[Credentials]:
    """
    Pick credentials from (in order) command-line flags, env/config, then the saved store.

    Returns None when nothing is configured at all; raises if only half of the pair is known.
    """
    saved = store.load()
    # Passwords may legitimately contain spaces; emails never do.
    resolved_email = (
        (email or "").strip() or (cfg.credentials.email or "").strip() or (saved.get("email") or "").strip()
    )
    resolved_password = password or cfg.credentials.password or saved.get("password", "")

    if not resolved_email and resolved_password:
        raise CredentialsMissingError("Missing email with password")
    if resolved_email and not resolved_password:
        raise CredentialsMissingError("Missing password with email")
    if not resolved_email or not resolved_password:
        return None

    if save:
        store.update({"email": resolved_email, "password": resolved_password})
        logger.info("Saved credentials to %s", store.path)

    return Credentials(identity=resolved_email, secret=resolved_password)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    cfg = load_config(args.config)
    configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path or None)
    store = CredentialStore(cfg.store.resolved_path())

    if args.cmd == "config":
        if args.config_cmd == "clear":
            store.clear()
            return 0
        print(store.path)
        return 0

    if args.cmd == "usage":
        try:
            creds = resolve_credentials(
                email=args.email,
                password=args.password,
                cfg=cfg,
                store=store,
                save=args.save,
            )
        except CredentialsMissingError as e:
            print(f"error: {e}")
            return 1
        if creds is None:
            print("error: Missing credentials (use --email/--password or XFIN_EMAIL/XFIN_PASSWORD)")
            return 1
        register_secret(creds.secret)

        settings = cfg.portal
        if args.slowmo_ms:
            settings = settings.model_copy(update={"slow_mo_ms": args.slowmo_ms})
        portal = XfinityPortalClient(settings=settings)
        try:
            payload = portal.fetch_usage(creds, debug=args.show)
            summary = summarize(payload)
        except KeyboardInterrupt:
            print("Interrupted.")
            return 130
        except Exception as e:
            logger.debug("Usage command failed.", exc_info=True)
            print(f"error: Failed to get usage details due to: {e}")
            return 1

        if args.json:
            print(json.dumps(summary.to_json_dict()))
        else:
            print(summary.format_human())
        return 0

    raise AssertionError("Unhandled command")
