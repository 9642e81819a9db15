"""
Command-line entry point for the board export.

Usage:
    board-export
    board-export --config path/to/config.yaml --output board.json --yes
"""

import argparse
import logging
import os
import signal
import sys

from playwright.sync_api import sync_playwright, TimeoutError as PlaywrightTimeout

from board_export.exporter import run_export, write_export
from board_export.locator import BoardLocator
from board_export.log_sink import LogWebhook
from board_export.utils import (
    setup_logging, load_config, get_session_path, capture_diagnostics, RemoteLogHandler,
)

BOARD_READY_TIMEOUT = 30_000   # ms before asking the user to bring the board up


def _setup_remote_logging(logger, config: dict) -> None:
    """Attach the webhook log handler when log_webhook_url is configured."""
    url = config.get("log_webhook_url")
    if not url:
        return
    handler = RemoteLogHandler(
        LogWebhook(url),
        flush_interval=config["log_flush_interval"],
        flush_threshold=config["log_flush_threshold"],
    )
    logger.addHandler(handler)
    logger.info(f"Remote log handler attached: {url}")


def _confirm_prompt(total_items: int, total_groups: int) -> bool:
    print("\n" + "=" * 60)
    print(f"  Found {total_items} tasks across {total_groups} groups.")
    print("=" * 60)
    choice = input("Proceed? (y/n): ").strip().lower()
    return choice in ("y", "yes")


def _open_board(locator: BoardLocator, config: dict, logger) -> None:
    """Load the board; in headed mode give the user a chance to sign in first."""
    try:
        locator.open_board(config["board_url"], timeout=BOARD_READY_TIMEOUT)
        return
    except PlaywrightTimeout:
        if config["headless"]:
            raise
    logger.warning("Board columns not visible yet.")
    print("\n" + "=" * 60)
    print("  Open the board in the browser window (sign in if needed),")
    print("  then press Enter here to continue.")
    print("=" * 60)
    input()
    locator.open_board(None)


def _on_interrupt(*_):
    print("\nCtrl+C pressed. Exiting...")
    os._exit(1)


def main():
    # Ctrl+C before or during the export: nothing partial is written
    signal.signal(signal.SIGINT, _on_interrupt)

    # ── Parse arguments ──────────────────────────────────────────────
    parser = argparse.ArgumentParser(
        description="Export an Asana board's tasks and comment histories, grouped by column"
    )
    parser.add_argument("--config", "-c", default=None, help="Path to config.yaml (default: ./config.yaml)")
    parser.add_argument("--output", "-o", default=None, help="Output JSON path (overrides output_path)")
    parser.add_argument("--yes", "-y", action="store_true", help="Skip the confirmation prompt")
    parser.add_argument("--headless", action="store_true", help="Run the browser headless")
    args = parser.parse_args()

    # ── Setup ────────────────────────────────────────────────────────
    logger = setup_logging()
    config = load_config(args.config)
    if args.output:
        config["output_path"] = args.output
    if args.yes:
        config["auto_confirm"] = True
    if args.headless:
        config["headless"] = True

    _setup_remote_logging(logger, config)

    logger.info("Configuration loaded:")
    logger.info(f"  Board:            {config['board_url']}")
    logger.info(f"  Output:           {config['output_path']}")
    logger.info(f"  Headless:         {config['headless']}")
    logger.info(f"  Attach over CDP:  {config['cdp_url'] or 'no'}")
    logger.info(f"  Timeout scale:    {config['timeout_multiplier']}")

    confirm = (lambda total_items, total_groups: True) if config["auto_confirm"] else _confirm_prompt

    # ── Launch or attach browser ─────────────────────────────────────
    session_path = get_session_path()
    exit_code = 0

    with sync_playwright() as p:
        if config["cdp_url"]:
            browser = p.chromium.connect_over_cdp(config["cdp_url"])
            context = browser.contexts[0] if browser.contexts else browser.new_context()
        else:
            browser = p.chromium.launch(headless=bool(config["headless"]))
            ctx_opts: dict = {}
            if os.path.exists(session_path):
                logger.info("Loading saved session...")
                ctx_opts["storage_state"] = session_path
            if config["headless"]:
                ctx_opts["viewport"] = {"width": 1920, "height": 1080}
            context = browser.new_context(**ctx_opts)

        page = context.pages[0] if context.pages else context.new_page()
        locator = BoardLocator(page)

        try:
            _open_board(locator, config, logger)
            if not config["cdp_url"]:
                context.storage_state(path=session_path)
                logger.debug(f"Session saved to: {session_path}")

            document = run_export(locator, config, confirm=confirm)
            if document is not None:
                write_export(document, config["output_path"])
        except Exception as e:
            logger.error(f"Export failed: {e.__class__.__name__}: {e}")
            capture_diagnostics(page, "export_failed")
            exit_code = 1
        finally:
            logger.info("Closing browser...")
            try:
                browser.close()
            except Exception:
                pass

    logging.shutdown()
    sys.exit(exit_code)
