# src/makecommand/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, picks up a Google OAuth callback URL
(if one was passed on the command line) or a stored token, then runs the console REPL.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from ..cli.bootstrap import close_state, create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="makecommand", description="MakeCommand console.")
    parser.add_argument(
        "--callback-url",
        default=None,
        help="Address the browser was redirected to after Google sign-in.",
    )
    return parser.parse_args(argv)


async def _run(callback_url: str | None) -> None:
    settings = get_settings()

    try:
        state = create_initial_state(settings=settings)
    except RuntimeError as e:
        logger.error("%s", e)
        return

    try:
        await state.board.load(callback_url)
        for note in state.board.drain_notices():
            print(note)
        await run_console_loop(state)
    finally:
        await close_state(state)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)
    try:
        asyncio.run(_run(args.callback_url))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
