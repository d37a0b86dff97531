from __future__ import annotations

import argparse
import json
import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import AppConfig, load_config
from .errors import ErrorKind, KeywordScraperError, http_status_for
from .logging_config import configure_logging
from .models import ScrapeRequest
from .orchestrator import AccountOrchestrator
from .platforms import DEFAULT_TAB, KNOWN_PLATFORMS, RESULT_TABS
from .session_store import SessionStore
from .util.debug_bundle import create_debug_bundle


logger = logging.getLogger("keywordtool_scraper")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _parse_max_volume(raw: str) -> Optional[int]:
    s = (raw or "").strip().lower()
    if s in {"", "unlimited", "inf", "infinity"}:
        return None
    try:
        return int(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"--max-volume must be an integer or 'unlimited' (got {raw!r})")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="keywordtool-scraper")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )
    p.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")

    sub = p.add_subparsers(dest="cmd", required=True)

    scrape = sub.add_parser("scrape", help="Scrape keyword research data, failing over across configured accounts")
    scrape.add_argument("keyword", help="Search term")
    scrape.add_argument(
        "--platform",
        default="google",
        help=f"One of: {', '.join(KNOWN_PLATFORMS)} (default: google)",
    )
    scrape.add_argument(
        "--tab",
        default=DEFAULT_TAB,
        help=f"Result tab, one of: {', '.join(RESULT_TABS)} (default: {DEFAULT_TAB})",
    )
    scrape.add_argument("--min-volume", type=int, default=0, help="Minimum search volume (default: 0)")
    scrape.add_argument(
        "--max-volume",
        type=_parse_max_volume,
        default=None,
        help="Maximum search volume, or 'unlimited' (default: unlimited)",
    )
    scrape.add_argument("--headful", action="store_true", help="Run browser headful (debug)")
    scrape.add_argument("--no-guest", action="store_true", help="Fail an account instead of scraping as guest when login fails")
    scrape.add_argument("--output", default="", help="Write the JSON response to this file instead of stdout")

    sub.add_parser("list-platforms", help="List supported platforms and result tabs")
    sub.add_parser("list-accounts", help="List configured accounts and whether a saved session exists")

    clear = sub.add_parser("clear-sessions", help="Delete saved sessions (forces a fresh login next run)")
    clear.add_argument("--account", default="", help="Only clear this account (email)")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    if args.cmd == "list-platforms":
        for info in KNOWN_PLATFORMS.values():
            print(f"{info.slug}\t{info.display_name}\t{info.url}")
        print()
        for key, label in RESULT_TABS.items():
            print(f"tab:{key}\t{label}")
        return EXIT_OK

    cfg = load_config(args.config)
    configure_logging(
        level=cfg.logging.level,
        file_path=cfg.logging.file_path,
        secrets=[a.password for a in cfg.accounts],
    )

    if args.cmd == "list-accounts":
        store = SessionStore()
        if not cfg.accounts:
            print("No accounts configured.")
            return EXIT_OK
        for i, account in enumerate(cfg.accounts, start=1):
            state = "session" if store.exists(account) else "no session"
            print(f"{i}\t{account.email}\t{state}\t{account.session_file}")
        return EXIT_OK

    if args.cmd == "clear-sessions":
        store = SessionStore()
        targets = [a for a in cfg.accounts if not args.account or a.email == args.account]
        if args.account and not targets:
            print(f"No configured account matches {args.account!r}")
            return EXIT_USAGE
        removed = sum(1 for a in targets if store.delete(a))
        print(f"Removed {removed} saved session(s).")
        return EXIT_OK

    if args.cmd == "scrape":
        return _run_scrape(cfg, args)

    raise AssertionError("Unhandled command")


def _run_scrape(cfg: AppConfig, args: argparse.Namespace) -> int:
    if args.headful:
        cfg = cfg.model_copy(update={"browser": cfg.browser.model_copy(update={"headless": False})})
    if args.no_guest:
        cfg = cfg.model_copy(update={"scrape": cfg.scrape.model_copy(update={"guest_fallback": False})})

    orchestrator = AccountOrchestrator.from_config(cfg)

    t0 = time.time()
    try:
        request = ScrapeRequest.create(
            args.keyword,
            args.platform,
            tab=args.tab,
            min_volume=args.min_volume,
            max_volume=args.max_volume,
        )
        logger.info(
            "Scraping keywordtool.io for %r on %s (tab=%s volume=%s-%s accounts=%d)",
            request.keyword,
            request.platform,
            request.tab,
            request.filter.min_volume,
            request.filter.max_volume if request.filter.max_volume is not None else "unlimited",
            len(cfg.accounts),
        )
        result = orchestrator.run(request)
    except KeywordScraperError as e:
        logger.error("Scrape failed (%s): %s", e.kind.value, e)
        payload = {
            "error": "Failed to scrape keyword data",
            "kind": e.kind.value,
            "status": http_status_for(e),
            "message": e.message,
            "failures": [f.model_dump(mode="json") for f in getattr(e, "failures", [])],
            "is_success": False,
        }
        _emit(payload, args.output)
        if e.kind in (ErrorKind.INVALID_INPUT, ErrorKind.NO_ACCOUNTS_CONFIGURED):
            return EXIT_USAGE
        _write_debug_bundle(cfg)
        return EXIT_FAILED

    payload = {
        "keyword": request.keyword,
        "platform": request.platform,
        "tab": request.tab,
        "scraped_at": datetime.now(timezone.utc).isoformat(),
        "scrape_duration_ms": int((time.time() - t0) * 1000),
        **result.model_dump(mode="json"),
        "is_success": True,
    }
    _emit(payload, args.output)
    return EXIT_OK


def _emit(payload: dict, output: str) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        out = Path(output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text + "\n", encoding="utf-8")
        logger.info("Wrote %s", out)
    else:
        print(text)


def _write_debug_bundle(cfg: AppConfig) -> None:
    try:
        bundle = create_debug_bundle(
            debug_dir=cfg.browser.debug_dir,
            log_file=cfg.logging.file_path or "data/scraper.log",
            out_dir="data",
            label="keywordtool",
        )
        logger.error("Wrote debug bundle: %s", bundle)
    except Exception:
        logger.debug("Failed to create debug bundle.", exc_info=True)
