# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
NeonVault Backup Producer - pg_dump invocation and artifact bookkeeping.

Each resource moves through PENDING -> DUMPING -> DUMPED -> (COMPRESSING)
-> ARCHIVED, or ends in FAILED. A failure is recorded on the artifact and
never stops the batch; there are no retries.
"""

import asyncio
import os
import shutil
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Tuple
from urllib.parse import parse_qs, unquote, urlparse

import aiofiles.os
import structlog

from neonvault.backup.compressor import compress_file
from neonvault.backup.manager import build_backup_filename, format_file_size, prune_old_backups
from neonvault.config import DumpFormat, DumpOptions
from neonvault.errors import explain_pg_dump_missing
from neonvault.exceptions import BackupError
from neonvault.models import ActiveResource, BackupArtifact, BackupState

logger = structlog.get_logger()

DEFAULT_PG_PORT = 5432

WINDOWS_PG_DUMP_PATHS = [
    rf"C:\Program Files{arch}\PostgreSQL\{version}\bin\pg_dump.exe"
    for arch in ("", " (x86)")
    for version in (17, 16, 15, 14)
]


def locate_pg_dump(explicit_path: str | None = None) -> str:
    """
    Find the pg_dump executable.

    Order: explicit path, PATH lookup, common Windows install
    directories, then the bare name (left for the OS to resolve).
    """
    if explicit_path:
        return explicit_path

    found = shutil.which("pg_dump")
    if found:
        return found

    if sys.platform == "win32":
        for candidate in WINDOWS_PG_DUMP_PATHS:
            if Path(candidate).exists():
                logger.info("pg_dump_found", path=candidate)
                return candidate

    return "pg_dump"


@dataclass(frozen=True)
class ConnectionParams:
    """Connection settings parsed from a postgres:// URI."""

    host: str
    port: int
    user: str
    database: str
    password: str = field(default="", repr=False)
    sslmode: str = "require"


def parse_connection_uri(uri: str) -> ConnectionParams:
    """
    Parse a postgres:// connection URI.

    SSL is always required, whatever the URI says.

    Raises:
        BackupError: If host, user or database is missing
    """
    parsed = urlparse(uri)
    host = parsed.hostname or ""
    user = unquote(parsed.username or "")
    database = unquote(parsed.path.lstrip("/"))

    if not host or not user or not database:
        raise BackupError(
            "Invalid connection URI - missing required fields",
            details={"host": host, "user": user, "database": database},
        )

    query = parse_qs(parsed.query)
    sslmode = query.get("sslmode", ["require"])[0]
    if sslmode in ("disable", "allow", "prefer"):
        sslmode = "require"

    return ConnectionParams(
        host=host,
        port=parsed.port or DEFAULT_PG_PORT,
        user=user,
        database=database,
        password=unquote(parsed.password or ""),
        sslmode=sslmode,
    )


def build_pg_dump_args(
    params: ConnectionParams,
    file_path: Path,
    options: DumpOptions,
) -> List[str]:
    """
    Build the pg_dump argument list.

    The password is never an argument; it travels in PGPASSWORD.
    """
    args = [
        f"--host={params.host}",
        f"--port={params.port}",
        f"--username={params.user}",
        f"--dbname={params.database}",
    ]

    if options.format == DumpFormat.CUSTOM:
        args.append("--format=custom")
        args.append(f"--compress={options.compression_level}")
    else:
        args.append("--format=plain")

    if options.include_blobs:
        args.append("--blobs")

    if options.strip_privileges:
        args.append("--no-privileges")

    args.extend(["--verbose", "--no-password", f"--file={file_path}"])
    return args


class BackupProducer:
    """Run pg_dump for active resources into the local staging directory."""

    def __init__(
        self,
        output_dir: Path,
        options: DumpOptions | None = None,
        pg_dump_path: str | None = None,
        backup_delay_seconds: float = 1.0,
        clock: Callable[[], datetime] | None = None,
    ):
        self.output_dir = Path(output_dir)
        self.options = options or DumpOptions()
        self.pg_dump_path = locate_pg_dump(pg_dump_path)
        self.backup_delay_seconds = backup_delay_seconds
        self._clock = clock or (lambda: datetime.now(UTC))

    async def initialize(self) -> None:
        """Create the staging directory."""
        await aiofiles.os.makedirs(self.output_dir, exist_ok=True)
        logger.info("backup_directory_ready", path=str(self.output_dir))

    async def create_backup(
        self,
        resource: ActiveResource,
        options: DumpOptions | None = None,
    ) -> BackupArtifact:
        """
        Dump one resource.

        Args:
            resource: Branch to dump, with its connection URI
            options: Overrides for the producer's dump options

        Returns:
            BackupArtifact; success=False carries the reason in error
        """
        start = time.monotonic()
        opts = options or self.options

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        if not resource.connection_uri:
            return BackupArtifact(
                success=False,
                error="No connection URI provided",
                state=BackupState.FAILED,
                resource=resource,
            )

        logger.info("backup_started", resource=resource.label, format=opts.format.value)
        state = BackupState.PENDING

        try:
            params = parse_connection_uri(resource.connection_uri)

            file_name = build_backup_filename(
                resource.project_name,
                resource.branch_name,
                self._clock(),
                opts.extension,
            )
            file_path = self.output_dir / file_name
            args = build_pg_dump_args(params, file_path, opts)

            env = {
                **os.environ,
                "PGPASSWORD": params.password,
                "PGSSLMODE": params.sslmode,
            }

            state = BackupState.DUMPING
            error = await self._execute_pg_dump(args, env)
            if error is not None:
                await self._remove_quietly(file_path)
                logger.error("backup_failed", resource=resource.label, error=error)
                return BackupArtifact(
                    success=False,
                    error=error,
                    duration_ms=elapsed_ms(),
                    state=BackupState.FAILED,
                    resource=resource,
                )
            state = BackupState.DUMPED

            uncompressed_path: Path | None = None
            if opts.format == DumpFormat.PLAIN:
                state = BackupState.COMPRESSING
                uncompressed_path = file_path
                try:
                    file_path, _, _ = await compress_file(file_path)
                except BackupError:
                    await self._remove_quietly(uncompressed_path)
                    raise
                file_name = file_path.name

            stat = await aiofiles.os.stat(file_path)
            duration_ms = elapsed_ms()

            logger.info(
                "backup_completed",
                resource=resource.label,
                file=file_name,
                size=format_file_size(stat.st_size),
                duration_ms=duration_ms,
            )

            return BackupArtifact(
                success=True,
                local_path=file_path,
                file_name=file_name,
                file_size_bytes=stat.st_size,
                duration_ms=duration_ms,
                state=BackupState.ARCHIVED,
                resource=resource,
                uncompressed_path=uncompressed_path,
            )

        except Exception as e:
            logger.error(
                "backup_failed",
                resource=resource.label,
                stage=state.value,
                error=str(e),
            )
            return BackupArtifact(
                success=False,
                error=str(e),
                duration_ms=elapsed_ms(),
                state=BackupState.FAILED,
                resource=resource,
            )

    async def _execute_pg_dump(self, args: List[str], env: Dict[str, str]) -> str | None:
        """
        Run pg_dump and wait for it.

        Returns:
            None on success, otherwise an error message that carries the
            exit code and the full stderr output
        """
        try:
            returncode, stderr = await self._run(args, env)
        except FileNotFoundError:
            return explain_pg_dump_missing()
        except OSError as e:
            return f"Failed to start pg_dump: {e}"

        if returncode != 0:
            return f"pg_dump exited with code {returncode}. stderr: {stderr}"
        return None

    async def _run(self, args: Sequence[str], env: Dict[str, str] | None = None) -> Tuple[int, str]:
        process = await asyncio.create_subprocess_exec(
            self.pg_dump_path,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
        _, stderr = await process.communicate()
        return (process.returncode or 0, stderr.decode("utf-8", errors="replace"))

    async def _remove_quietly(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("partial_dump_remove_failed", path=str(path), error=str(e))

    async def create_multiple_backups(
        self,
        resources: Sequence[ActiveResource],
        options: DumpOptions | None = None,
    ) -> List[BackupArtifact]:
        """
        Dump resources one after another.

        A fixed delay separates attempts to limit load on the source
        databases. The result has exactly one artifact per resource, in
        input order.
        """
        logger.info("backup_batch_started", resources=len(resources))
        await self.initialize()

        results: List[BackupArtifact] = []

        for index, resource in enumerate(resources):
            if index > 0 and self.backup_delay_seconds > 0:
                await asyncio.sleep(self.backup_delay_seconds)
            try:
                results.append(await self.create_backup(resource, options))
            except Exception as e:
                logger.error("backup_unexpected_error", resource=resource.label, error=str(e))
                results.append(
                    BackupArtifact(
                        success=False,
                        error=str(e),
                        state=BackupState.FAILED,
                        resource=resource,
                    )
                )

        succeeded = sum(1 for r in results if r.success)
        logger.info(
            "backup_batch_complete",
            succeeded=succeeded,
            failed=len(results) - succeeded,
            output_dir=str(self.output_dir),
        )
        return results

    async def discard_intermediate_files(self, artifacts: Sequence[BackupArtifact]) -> int:
        """Delete the uncompressed dumps left behind by plain-format backups."""
        removed = 0
        for artifact in artifacts:
            if artifact.uncompressed_path is None:
                continue
            await self._remove_quietly(artifact.uncompressed_path)
            removed += 1
        return removed

    async def cleanup_old_backups(
        self,
        retention_days: int,
        now: datetime | None = None,
    ) -> Tuple[int, int]:
        """
        Prune the staging directory. Best effort: errors are only logged.

        Returns:
            Tuple of (files_deleted, bytes_freed)
        """
        logger.info("local_cleanup_started", retention_days=retention_days)
        try:
            loop = asyncio.get_event_loop()
            return await loop.run_in_executor(
                None, prune_old_backups, self.output_dir, retention_days, now
            )
        except Exception as e:
            logger.error("local_cleanup_failed", error=str(e))
            return (0, 0)

    async def check_tool_availability(self) -> bool:
        """True if `pg_dump --version` runs and exits 0."""
        try:
            returncode, _ = await self._run(["--version"])
        except OSError:
            return False
        return returncode == 0
