# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
NeonVault Backup Manager - Local staging directory housekeeping.

This module names backup files, prunes old ones from the staging
directory and formats sizes for humans.
"""

import hashlib
import math
import re
from datetime import datetime, timedelta, UTC
from pathlib import Path
from typing import Iterable, Tuple

import structlog

logger = structlog.get_logger()

# Extensions produced by pg_dump (custom/plain) and by plain-dump compression
BACKUP_EXTENSIONS = (".dump", ".sql", ".zst")

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_SAFE_CHAR = re.compile(r"[A-Za-z0-9-]")
_MAX_COMPONENT_LENGTH = 100

# Encoded components never contain ".." (every "." starts a hex escape)
_TRUNCATION_MARKER = ".."
_TRUNCATION_HASH_LENGTH = 12


def sanitize_name_component(name: str) -> str:
    """
    Make a project or branch name safe for use in a file name.

    Letters, digits and hyphens are kept. Every other character is
    written as one ".XX" hex escape per UTF-8 byte, so the encoding is
    reversible and never produces "_", which stays free for separating
    components. An encoding longer than the component limit is cut and
    ends in ".." plus a hash of the full name; ".." never occurs in an
    uncut encoding.
    """
    encoded = "".join(
        char if _SAFE_CHAR.fullmatch(char) else "".join(f".{b:02X}" for b in char.encode("utf-8"))
        for char in name
    )
    if len(encoded) <= _MAX_COMPONENT_LENGTH:
        return encoded

    name_hash = hashlib.sha256(name.encode("utf-8")).hexdigest()[:_TRUNCATION_HASH_LENGTH]
    keep = _MAX_COMPONENT_LENGTH - len(_TRUNCATION_MARKER) - _TRUNCATION_HASH_LENGTH
    return f"{encoded[:keep]}{_TRUNCATION_MARKER}{name_hash}"


def build_backup_filename(
    project_name: str,
    branch_name: str,
    timestamp: datetime,
    extension: str,
) -> str:
    """
    Build the file name for one backup.

    Format: {project}_{branch}_{YYYY-MM-DD_HH-MM-SS}.{ext}, timestamp in UTC.

    Args:
        project_name: Neon project name
        branch_name: Neon branch name
        timestamp: Backup time (second granularity)
        extension: File extension without the leading dot

    Returns:
        A file name containing only [A-Za-z0-9_.-]
    """
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(UTC)
    stamp = timestamp.strftime(TIMESTAMP_FORMAT)
    return (
        f"{sanitize_name_component(project_name)}_"
        f"{sanitize_name_component(branch_name)}_{stamp}.{extension.lstrip('.')}"
    )


def _file_mtime(path: Path) -> datetime:
    """Modification time at microsecond precision, without float rounding."""
    mtime_ns = path.stat().st_mtime_ns
    seconds, remainder = divmod(mtime_ns, 1_000_000_000)
    return datetime.fromtimestamp(seconds, UTC) + timedelta(microseconds=remainder // 1000)


def prune_old_backups(
    output_dir: Path,
    retention_days: int,
    now: datetime | None = None,
    extensions: Iterable[str] = BACKUP_EXTENSIONS,
) -> Tuple[int, int]:
    """
    Delete backup files older than retention_days.

    A file modified exactly at the cutoff is kept. Errors are logged per
    file and never raised.

    Args:
        output_dir: Staging directory
        retention_days: Maximum age in days
        now: Reference time (default: current UTC time)
        extensions: File extensions considered backups

    Returns:
        Tuple of (files_deleted, bytes_freed)
    """
    cutoff = (now or datetime.now(UTC)) - timedelta(days=retention_days)
    suffixes = tuple(extensions)

    if not output_dir.exists():
        return (0, 0)

    files_deleted = 0
    bytes_freed = 0

    for backup_file in sorted(output_dir.iterdir()):
        if not backup_file.is_file() or not backup_file.name.endswith(suffixes):
            continue
        try:
            mtime = _file_mtime(backup_file)

            if mtime < cutoff:
                file_size = backup_file.stat().st_size
                backup_file.unlink()
                files_deleted += 1
                bytes_freed += file_size

                logger.info(
                    "local_backup_pruned",
                    path=str(backup_file),
                    modified_at=mtime.isoformat(),
                )

        except Exception as e:
            logger.warning(
                "prune_file_error",
                path=str(backup_file),
                error=str(e),
            )

    logger.info(
        "local_pruning_complete",
        files_deleted=files_deleted,
        bytes_freed=bytes_freed,
        retention_days=retention_days,
    )

    return (files_deleted, bytes_freed)


def format_file_size(num_bytes: int) -> str:
    """Format a byte count as e.g. '1.5 MB'."""
    sizes = ["Bytes", "KB", "MB", "GB", "TB"]
    if num_bytes <= 0:
        return "0 Bytes"
    i = min(int(math.floor(math.log(num_bytes, 1024))), len(sizes) - 1)
    return f"{round(num_bytes / math.pow(1024, i), 2):g} {sizes[i]}"
