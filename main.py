"""Command-line entry point for the blind assist runtime."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
import sys

from config import load_config
from core.app import AppConfig, build_app
from core.logging import enable_file_logging, logger, set_level


def configure_logging(level_name: str) -> None:
    """Configure application logging."""

    level = set_level(level_name)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Raw command-line arguments.

    Returns:
        Parsed arguments namespace.
    """

    parser = argparse.ArgumentParser(
        description="Announce nearby obstacles from a live camera feed."
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Run diagnostics probes and exit.",
    )
    parser.add_argument(
        "--autostart",
        action="store_true",
        help="Start detection immediately instead of waiting for a voice command.",
    )
    parser.add_argument(
        "--no-voice",
        action="store_true",
        help="Disable voice commands.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Write logs to this file in addition to the console.",
    )
    return parser.parse_args(argv)


def run_diagnostics_report() -> int:
    from diagnostics.probes import ALL_PROBES
    from diagnostics.runner import format_results, run_diagnostics

    results = run_diagnostics(ALL_PROBES)
    print(format_results(results))
    return 1 if any(result.failed for result in results) else 0


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Process exit code.
    """

    if argv is None:
        argv = sys.argv[1:]

    args = parse_args(argv)
    config = load_config()
    configure_logging(config.get("logging_level", "INFO"))

    if args.diagnostics:
        return run_diagnostics_report()

    log_file = args.log_file
    if log_file is None and config.get("file_logging_enabled", False):
        log_file = Path(config.get("log_file_path", "logs/blind_assist.log"))
    if log_file is not None:
        enable_file_logging(log_file)
        logger.info("Writing logs to %s", log_file)

    app_config = AppConfig(autostart=args.autostart, voice_enabled=not args.no_voice)
    try:
        app = build_app(config, app_config)
    except Exception as exc:
        logger.exception("Runtime startup failed: %s", exc)
        return 1

    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Program terminated by user")
    except Exception as exc:
        logger.exception("An unexpected error occurred: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
