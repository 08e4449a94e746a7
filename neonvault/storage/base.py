# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Archive uploader contract.

The orchestrator depends only on ArchiveUploader; which concrete variant
it gets is decided once, when the uploader is created.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Sequence

import structlog

from neonvault.exceptions import UploadError
from neonvault.models import BackupArtifact, UploadResult, UploadSummary

logger = structlog.get_logger()


class ArchiveUploader(ABC):
    """Upload backup artifacts to remote storage and enforce remote retention."""

    # Human-readable variant name used in log lines
    variant: str = "uploader"

    def __init__(self, upload_delay_seconds: float = 0.5):
        self.upload_delay_seconds = upload_delay_seconds

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the destination (e.g. resolve the backup folder)."""

    @abstractmethod
    async def test_connection(self) -> bool:
        """Cheap read-only liveness probe. Never raises."""

    @abstractmethod
    async def upload_one(self, local_path: Path, display_name: str | None = None) -> UploadResult:
        """Upload one file. Remote failures are reported in the result."""

    @abstractmethod
    async def cleanup_older_than(self, days: int, now: datetime | None = None) -> int:
        """Delete remote backups created before now - days. Returns the count deleted."""

    async def upload_many(self, artifacts: Sequence[BackupArtifact]) -> UploadSummary:
        """
        Upload every successful artifact, one at a time.

        A flat delay separates uploads. A failing file is counted and the
        batch moves on.

        Raises:
            UploadError: If the destination itself cannot be prepared
        """
        candidates = [a for a in artifacts if a.success and a.local_path is not None]
        summary = UploadSummary()

        logger.info("upload_batch_started", variant=self.variant, files=len(candidates))
        if not candidates:
            return summary

        try:
            await self.initialize()
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(f"Failed to prepare upload destination: {e}") from e

        for index, artifact in enumerate(candidates):
            if index > 0 and self.upload_delay_seconds > 0:
                await asyncio.sleep(self.upload_delay_seconds)

            name = artifact.file_name or artifact.local_path.name
            try:
                result = await self.upload_one(artifact.local_path, name)
            except Exception as e:
                logger.error("upload_unexpected_error", file=name, error=str(e))
                result = UploadResult(success=False, file_name=name, error=str(e))

            summary.results.append(result)
            if result.success:
                summary.succeeded += 1
            else:
                summary.failed += 1

        logger.info(
            "upload_batch_complete",
            variant=self.variant,
            succeeded=summary.succeeded,
            failed=summary.failed,
        )
        return summary
