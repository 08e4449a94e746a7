# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
NeonVault Compressor - zstd compression for plain SQL dumps.

Plain dumps can be large, so they are streamed through the compressor
in a worker thread instead of being read into memory.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Tuple

import structlog
import zstandard as zstd

from neonvault.exceptions import BackupError

logger = structlog.get_logger()

# Thread pool for CPU-bound compression; one dump at a time
_executor = ThreadPoolExecutor(max_workers=1)

# Highest non-ultra zstd level
DEFAULT_ZSTD_LEVEL = 19

COMPRESSED_SUFFIX = ".zst"


async def compress_file(
    source: Path,
    destination: Path | None = None,
    level: int = DEFAULT_ZSTD_LEVEL,
) -> Tuple[Path, int, int]:
    """
    Compress a file into a single zstd frame.

    The output is written to a temp file and renamed into place, so a
    partial archive never carries the final name.

    Args:
        source: File to compress
        destination: Output path (default: source + '.zst')
        level: zstd compression level

    Returns:
        Tuple of (destination, original_size, compressed_size)
    """
    target = destination or source.with_name(source.name + COMPRESSED_SUFFIX)
    try:
        loop = asyncio.get_event_loop()
        original_size, compressed_size = await loop.run_in_executor(
            _executor, _compress_file_sync, source, target, level
        )
    except Exception as e:
        raise BackupError(
            f"Compression failed for {source.name}: {e}",
            details={"source": str(source)},
        ) from e

    stats = get_compression_stats(original_size, compressed_size)
    logger.info(
        "compression_complete",
        file=target.name,
        original_size=original_size,
        compressed_size=compressed_size,
        compression_ratio=f"{stats['compression_ratio']:.2f}x",
    )
    return (target, original_size, compressed_size)


def _compress_file_sync(source: Path, destination: Path, level: int) -> Tuple[int, int]:
    """Synchronous streaming zstd compression."""
    temp_path = destination.with_name(destination.name + ".tmp")
    original_size = source.stat().st_size
    cctx = zstd.ZstdCompressor(level=level)

    try:
        with open(source, "rb") as src, open(temp_path, "wb") as dst:
            cctx.copy_stream(src, dst, size=original_size)
        temp_path.rename(destination)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise

    return (original_size, destination.stat().st_size)


def get_compression_stats(
    original_size: int,
    compressed_size: int,
) -> dict:
    """
    Calculate compression statistics.

    Args:
        original_size: Original data size in bytes
        compressed_size: Compressed data size in bytes

    Returns:
        Dict with compression statistics
    """
    if compressed_size == 0:
        return {
            "original_size": original_size,
            "compressed_size": compressed_size,
            "compression_ratio": 0,
            "space_saved_bytes": 0,
            "space_saved_percent": 0,
        }

    ratio = original_size / compressed_size
    saved_bytes = original_size - compressed_size
    saved_percent = (saved_bytes / original_size) * 100 if original_size > 0 else 0

    return {
        "original_size": original_size,
        "compressed_size": compressed_size,
        "compression_ratio": round(ratio, 2),
        "space_saved_bytes": saved_bytes,
        "space_saved_percent": round(saved_percent, 2),
    }
