# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Command-line entry point.

Loads configuration once, runs the pipeline and maps the outcome to the
process exit code: 0 when the run reaches its summary, 1 on any fatal
condition. Under GitHub Actions the failure is also reported as an
::error:: workflow command.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

import structlog

from neonvault import __version__
from neonvault.core import format_summary, run_backup
from neonvault.env import create_config_from_env
from neonvault.exceptions import NeonVaultError

logger = structlog.get_logger()


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog for console or JSON output."""
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="neonvault",
        description=(
            "Back up Neon branches with recent activity to Google Drive. "
            "Configuration is read from the environment or a .env file."
        ),
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load variables from this .env file (default: ./.env if present)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def report_failure(message: str) -> None:
    """Surface a one-line failure to the invoking environment."""
    single_line = " ".join(message.split())
    print(f"Backup process failed: {single_line}", file=sys.stderr)
    if os.getenv("GITHUB_ACTIONS"):
        # Workflow command; the runner marks the step as failed
        print(f"::error::{single_line}", flush=True)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level, args.json_logs)

    try:
        config = create_config_from_env(env_file=args.env_file)
        summary = asyncio.run(run_backup(config))
    except NeonVaultError as e:
        logger.error("backup_process_failed", error_type=type(e).__name__, error=str(e))
        report_failure(str(e))
        return 1
    except Exception as e:
        logger.exception("backup_process_crashed", error=str(e))
        report_failure(f"{type(e).__name__}: {e}")
        return 1

    print(format_summary(summary))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
