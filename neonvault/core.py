# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
NeonVault Core - The backup pipeline orchestrator.

One run is a straight line:

    VERIFY -> DISCOVER -> (nothing active? done) -> BACKUP
    -> (no successful backup? fatal) -> UPLOAD -> CLEANUP -> SUMMARIZE

Errors before BACKUP end the run. After that, individual failures are
counted rather than raised, except when every backup failed.
"""

from datetime import datetime, UTC
from typing import Callable, List, Sequence

import structlog
from ulid import ULID

from neonvault.backup.manager import format_file_size
from neonvault.backup.producer import BackupProducer
from neonvault.config import BackupConfig
from neonvault.discovery.catalog import CatalogClient, NeonCatalogClient
from neonvault.discovery.discoverer import ResourceDiscoverer
from neonvault.exceptions import (
    CleanupError,
    ConfigurationError,
    ConnectivityError,
    NoSuccessfulBackupsError,
)
from neonvault.models import (
    ActiveResource,
    BackupArtifact,
    RunOutcome,
    RunSummary,
    UploadSummary,
)
from neonvault.storage.base import ArchiveUploader
from neonvault.storage.drive import create_uploader

logger = structlog.get_logger()


class BackupOrchestrator:
    """
    Compose discovery, backup, upload and retention into one run.

    The uploader variant is chosen here, once; a configuration problem
    surfaces as ConfigurationError before anything touches the network.
    """

    def __init__(
        self,
        config: BackupConfig,
        catalog: CatalogClient | None = None,
        producer: BackupProducer | None = None,
        uploader: ArchiveUploader | None = None,
        discoverer: ResourceDiscoverer | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config
        self._clock = clock or (lambda: datetime.now(UTC))

        if discoverer is None:
            if catalog is None:
                raise ConfigurationError("A catalog client or a discoverer is required")
            discoverer = ResourceDiscoverer(
                catalog,
                lookback=config.lookback,
                preferred_database=config.preferred_database,
                clock=clock,
            )
        self.discoverer = discoverer

        self.uploader = uploader or create_uploader(config)

        self.producer = producer or BackupProducer(
            config.output_dir,
            options=config.dump_options,
            pg_dump_path=config.pg_dump_path,
            backup_delay_seconds=config.backup_delay_seconds,
        )

    async def run(self) -> RunSummary:
        """
        Execute one pipeline run.

        Returns:
            RunSummary (outcome NOTHING_TO_DO when no branch was active)

        Raises:
            ConnectivityError: If the storage probe fails
            DiscoveryError: If projects cannot be listed
            NoSuccessfulBackupsError: If every backup attempt failed
        """
        run_id = str(ULID())
        log = logger.bind(run_id=run_id)
        started = self._clock()

        log.info(
            "backup_run_started",
            activity_policy=self.config.activity_policy.value,
            lookback_hours=self.config.lookback.total_seconds() / 3600,
            dump_format=self.config.dump_options.format.value,
            uploader=self.uploader.variant,
        )

        # Stage 1: connectivity
        await self.verify_connections()

        # Stage 2: discovery
        resources = await self.discoverer.discover_active_resources()
        if not resources:
            log.info("no_active_resources", message="No active resources found. No backups needed.")
            return self._summarize(
                run_id, started, RunOutcome.NOTHING_TO_DO, resources, [], UploadSummary()
            )

        # Stage 3: backups
        artifacts = await self.producer.create_multiple_backups(resources)
        if not any(a.success for a in artifacts):
            log.error("no_successful_backups", attempted=len(artifacts))
            raise NoSuccessfulBackupsError(
                "No successful backups created",
                details={"attempted": len(artifacts)},
            )
        await self.producer.discard_intermediate_files(artifacts)

        # Stage 4: upload
        uploads = await self.uploader.upload_many(artifacts)

        # Stage 5: retention
        if self.config.cleanup_enabled:
            await self.cleanup()

        # Stage 6: summary
        return self._summarize(run_id, started, RunOutcome.COMPLETED, resources, artifacts, uploads)

    async def verify_connections(self) -> None:
        """
        Probe remote storage and the dump tool before any expensive work.

        Raises:
            ConnectivityError: If the storage probe fails
        """
        if not await self.uploader.test_connection():
            raise ConnectivityError(
                "Google Drive connection test failed",
                details={"variant": self.uploader.variant},
            )

        if not await self.producer.check_tool_availability():
            logger.warning(
                "pg_dump_unavailable",
                path=self.producer.pg_dump_path,
                message="pg_dump --version failed; backups will likely fail",
            )

        logger.info("connection_checks_passed")

    async def cleanup(self) -> None:
        """Apply local then remote retention. Failures are logged only."""
        now = self._clock()

        await self.producer.cleanup_old_backups(
            self.config.effective_local_retention_days, now=now
        )

        try:
            await self.uploader.cleanup_older_than(self.config.remote_retention_days, now=now)
        except CleanupError as e:
            logger.error("remote_cleanup_failed", error=str(e))
        except Exception as e:
            logger.error("remote_cleanup_failed", error=str(e), unexpected=True)

    def _summarize(
        self,
        run_id: str,
        started: datetime,
        outcome: RunOutcome,
        resources: Sequence[ActiveResource],
        artifacts: List[BackupArtifact],
        uploads: UploadSummary,
    ) -> RunSummary:
        finished = self._clock()
        succeeded = [a for a in artifacts if a.success]

        summary = RunSummary(
            run_id=run_id,
            outcome=outcome,
            resources_discovered=len(resources),
            backups_succeeded=len(succeeded),
            backups_failed=len(artifacts) - len(succeeded),
            uploads_succeeded=uploads.succeeded,
            uploads_failed=uploads.failed,
            total_bytes=sum(a.file_size_bytes for a in succeeded),
            duration_seconds=(finished - started).total_seconds(),
            completed_at=finished,
        )

        logger.info(
            "run_summary",
            run_id=run_id,
            outcome=outcome.value,
            resources_discovered=summary.resources_discovered,
            backups_succeeded=summary.backups_succeeded,
            backups_failed=summary.backups_failed,
            uploads_succeeded=summary.uploads_succeeded,
            uploads_failed=summary.uploads_failed,
            total_size=format_file_size(summary.total_bytes),
            duration_seconds=round(summary.duration_seconds, 2),
        )
        return summary


def format_summary(summary: RunSummary) -> str:
    """Render a RunSummary as the human-readable block printed after a run."""
    completed = summary.completed_at.isoformat() if summary.completed_at else "-"
    lines = [
        "BACKUP PROCESS SUMMARY",
        "======================",
        f"Run id:               {summary.run_id}",
        f"Outcome:              {summary.outcome.value}",
        f"Resources discovered: {summary.resources_discovered}",
        f"Successful backups:   {summary.backups_succeeded}",
        f"Failed backups:       {summary.backups_failed}",
        f"Successful uploads:   {summary.uploads_succeeded}",
        f"Failed uploads:       {summary.uploads_failed}",
        f"Total backup size:    {format_file_size(summary.total_bytes)}",
        f"Duration:             {summary.duration_seconds:.1f}s",
        f"Completed at:         {completed}",
    ]
    return "\n".join(lines)


async def run_backup(config: BackupConfig) -> RunSummary:
    """Open a Neon catalog client and execute one full run."""
    async with NeonCatalogClient(config.neon_api_key, base_url=config.neon_api_base_url) as catalog:
        orchestrator = BackupOrchestrator(config, catalog=catalog)
        return await orchestrator.run()
