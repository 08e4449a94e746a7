# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Google Drive uploaders.

Two variants share one implementation and differ only in how they
authenticate, how they probe liveness and whether retention filtering
is pushed into the Drive query:

- ServiceAccountDriveUploader: application identity from a service
  account key. Suited to shared drives; a service account has no storage
  quota of its own.
- OAuthDriveUploader: acts for an end user through a refresh token, so
  uploads count against that user's own quota.

The googleapiclient is synchronous; every request runs on a single
worker thread so the event loop is never blocked and requests never
overlap.
"""

import asyncio
import time
from abc import abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, UTC
from pathlib import Path
from typing import Any, Callable, Dict, List

import aiofiles.os
import structlog

from neonvault.backup.manager import format_file_size
from neonvault.config import (
    DEFAULT_DRIVE_FOLDER_NAME,
    BackupConfig,
    OAuthCredentials,
    ServiceAccountCredentials,
)
from neonvault.exceptions import CleanupError, ConfigurationError, UploadError
from neonvault.models import RemoteFile, UploadResult
from neonvault.storage.base import ArchiveUploader

logger = structlog.get_logger()

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.file"]
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

# httplib2 transports are not thread-safe; one worker serializes requests
_executor = ThreadPoolExecutor(max_workers=1)


def _quote(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _rfc3339(moment: datetime) -> str:
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class DriveUploader(ArchiveUploader):
    """Shared Drive logic: folder resolution, uploads, listing, retention."""

    variant = "drive"

    # Push the createdTime filter into the files.list query
    server_side_time_filter = False

    def __init__(
        self,
        folder_name: str = DEFAULT_DRIVE_FOLDER_NAME,
        parent_folder_id: str | None = None,
        upload_delay_seconds: float = 0.5,
        delete_delay_seconds: float = 0.1,
        service: Any = None,
    ):
        super().__init__(upload_delay_seconds=upload_delay_seconds)
        self.folder_name = folder_name
        self.parent_folder_id = parent_folder_id
        self.delete_delay_seconds = delete_delay_seconds
        self._service = service
        self._folder_id: str | None = None

    @abstractmethod
    def _build_service(self) -> Any:
        """Build an authenticated Drive v3 service."""

    @abstractmethod
    def _probe_request(self, service: Any) -> Any:
        """Return the request used as a liveness probe."""

    @property
    def service(self) -> Any:
        if self._service is None:
            self._service = self._build_service()
        return self._service

    @property
    def folder_id(self) -> str | None:
        return self._folder_id

    async def _execute(self, build_request: Callable[[Any], Any]) -> Dict[str, Any]:
        """Build and execute one Drive request on the worker thread."""

        def run() -> Dict[str, Any]:
            return build_request(self.service).execute()

        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(_executor, run)

    async def initialize(self) -> None:
        folder_id = await self.resolve_folder()
        logger.info("drive_initialized", variant=self.variant, folder_id=folder_id)

    async def test_connection(self) -> bool:
        try:
            await self._execute(self._probe_request)
        except Exception as e:
            logger.error("drive_connection_failed", variant=self.variant, error=str(e))
            return False
        logger.info("drive_connection_ok", variant=self.variant)
        return True

    async def resolve_folder(self) -> str:
        """
        Find the backup folder by exact name, creating it if absent.

        The id is cached for the lifetime of this uploader.
        """
        if self._folder_id:
            return self._folder_id

        query = (
            f"name='{_quote(self.folder_name)}' and mimeType='{FOLDER_MIME_TYPE}' "
            "and trashed=false"
        )
        if self.parent_folder_id:
            query += f" and '{_quote(self.parent_folder_id)}' in parents"

        response = await self._execute(
            lambda service: service.files().list(
                q=query,
                fields="files(id, name)",
                spaces="drive",
            )
        )
        files = response.get("files") or []
        if files:
            self._folder_id = files[0]["id"]
            logger.info("drive_folder_found", folder=self.folder_name, folder_id=self._folder_id)
            return self._folder_id

        body: Dict[str, Any] = {"name": self.folder_name, "mimeType": FOLDER_MIME_TYPE}
        if self.parent_folder_id:
            body["parents"] = [self.parent_folder_id]

        created = await self._execute(
            lambda service: service.files().create(body=body, fields="id")
        )
        self._folder_id = created["id"]
        logger.info("drive_folder_created", folder=self.folder_name, folder_id=self._folder_id)
        return self._folder_id

    async def upload_one(self, local_path: Path, display_name: str | None = None) -> UploadResult:
        start = time.monotonic()
        local_path = Path(local_path)
        file_name = display_name or local_path.name

        try:
            if not await aiofiles.os.path.exists(local_path):
                raise UploadError(f"Backup file not found: {local_path}")

            folder_id = await self.resolve_folder()
            stat = await aiofiles.os.stat(local_path)
            logger.info("upload_started", file=file_name, size=format_file_size(stat.st_size))

            body = {
                "name": file_name,
                "parents": [folder_id],
                "description": f"Neon database backup created on {datetime.now(UTC).isoformat()}",
            }

            def create_request(service: Any) -> Any:
                from googleapiclient.http import MediaFileUpload

                media = MediaFileUpload(
                    str(local_path),
                    mimetype="application/octet-stream",
                    resumable=True,
                )
                return service.files().create(
                    body=body,
                    media_body=media,
                    fields="id, name, webViewLink, size",
                )

            response = await self._execute(create_request)

        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.error("upload_failed", file=file_name, error=str(e))
            return UploadResult(
                success=False,
                file_name=file_name,
                error=str(e),
                duration_ms=duration_ms,
            )

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "upload_completed",
            file=file_name,
            file_id=response.get("id"),
            duration_ms=duration_ms,
        )
        return UploadResult(
            success=True,
            file_name=file_name,
            file_id=response.get("id"),
            web_view_link=response.get("webViewLink"),
            duration_ms=duration_ms,
        )

    async def list_remote_files(self, created_before: datetime | None = None) -> List[RemoteFile]:
        """
        List files directly under the backup folder, following pagination.

        created_before narrows the query server-side when this variant
        supports it; callers still filter the result themselves.
        """
        folder_id = await self.resolve_folder()
        query = f"'{_quote(folder_id)}' in parents and trashed=false"
        if created_before is not None and self.server_side_time_filter:
            query += f" and createdTime < '{_rfc3339(created_before)}'"

        files: List[RemoteFile] = []
        page_token: str | None = None

        while True:
            response = await self._execute(
                lambda service: service.files().list(
                    q=query,
                    spaces="drive",
                    fields="nextPageToken, files(id, name, createdTime)",
                    orderBy="createdTime",
                    pageSize=1000,
                    pageToken=page_token,
                )
            )
            for item in response.get("files") or []:
                try:
                    files.append(RemoteFile.from_api(item))
                except (KeyError, ValueError) as e:
                    logger.warning("remote_file_unreadable", file=item.get("name"), error=str(e))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        return files

    async def list_backup_files(self, max_results: int = 100) -> List[Dict[str, Any]]:
        """Newest backups in the folder, with sizes and links."""
        folder_id = await self.resolve_folder()
        response = await self._execute(
            lambda service: service.files().list(
                q=f"'{_quote(folder_id)}' in parents and trashed=false",
                fields="files(id, name, size, createdTime, modifiedTime, webViewLink)",
                orderBy="createdTime desc",
                pageSize=max_results,
            )
        )
        files = response.get("files") or []
        logger.info("remote_backups_listed", count=len(files))
        return files

    async def get_folder_info(self) -> Dict[str, Any] | None:
        """Metadata of the backup folder, or None if it cannot be read."""
        try:
            folder_id = await self.resolve_folder()
            return await self._execute(
                lambda service: service.files().get(
                    fileId=folder_id,
                    fields="id, name, createdTime, modifiedTime, webViewLink, parents",
                )
            )
        except Exception as e:
            logger.error("drive_folder_info_failed", error=str(e))
            return None

    async def cleanup_older_than(self, days: int, now: datetime | None = None) -> int:
        """
        Delete backups created strictly before now - days.

        Raises:
            CleanupError: If the folder cannot be listed. Individual
                delete failures are logged and skipped.
        """
        cutoff = (now or datetime.now(UTC)) - timedelta(days=days)
        logger.info("remote_cleanup_started", variant=self.variant, cutoff=cutoff.isoformat())

        try:
            files = await self.list_remote_files(created_before=cutoff)
        except Exception as e:
            raise CleanupError(f"Failed to list remote backups: {e}") from e

        expired = [f for f in files if f.created_at < cutoff]
        deleted = 0

        for index, remote in enumerate(expired):
            if index > 0 and self.delete_delay_seconds > 0:
                await asyncio.sleep(self.delete_delay_seconds)
            try:
                await self._execute(
                    lambda service, file_id=remote.id: service.files().delete(fileId=file_id)
                )
            except Exception as e:
                logger.error("remote_delete_failed", file=remote.name, error=str(e))
                continue
            deleted += 1
            logger.info(
                "remote_backup_deleted",
                file=remote.name,
                created_at=remote.created_at.isoformat(),
            )

        logger.info("remote_cleanup_complete", variant=self.variant, deleted=deleted)
        return deleted


class ServiceAccountDriveUploader(DriveUploader):
    """Drive uploader authenticated as a service account."""

    variant = "service_account"
    server_side_time_filter = True

    def __init__(self, credentials: ServiceAccountCredentials, **kwargs: Any):
        super().__init__(**kwargs)
        self.credentials = credentials

    def _build_service(self) -> Any:
        from google.oauth2 import service_account
        from googleapiclient.discovery import build

        creds = service_account.Credentials.from_service_account_info(
            self.credentials.info, scopes=DRIVE_SCOPES
        )
        return build("drive", "v3", credentials=creds, cache_discovery=False)

    def _probe_request(self, service: Any) -> Any:
        return service.files().list(pageSize=1, fields="files(id, name)")


class OAuthDriveUploader(DriveUploader):
    """Drive uploader acting for a user via a stored refresh token."""

    variant = "oauth"

    def __init__(self, credentials: OAuthCredentials, **kwargs: Any):
        super().__init__(**kwargs)
        self.credentials = credentials

    def _build_service(self) -> Any:
        from google.oauth2.credentials import Credentials
        from googleapiclient.discovery import build

        # No access token yet; google-auth refreshes on the first request
        creds = Credentials(
            token=None,
            refresh_token=self.credentials.refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self.credentials.client_id,
            client_secret=self.credentials.client_secret,
        )
        return build("drive", "v3", credentials=creds, cache_discovery=False)

    def _probe_request(self, service: Any) -> Any:
        return service.about().get(fields="user")


def create_uploader(config: BackupConfig, service: Any = None) -> DriveUploader:
    """
    Build the uploader variant matching the configured credentials.

    Raises:
        ConfigurationError: If no supported credential is configured
    """
    options: Dict[str, Any] = {
        "folder_name": config.drive_folder_name,
        "parent_folder_id": config.drive_parent_folder_id,
        "upload_delay_seconds": config.upload_delay_seconds,
        "service": service,
    }
    creds = config.drive_credentials

    if isinstance(creds, ServiceAccountCredentials):
        logger.info("drive_auth_selected", variant="service_account", client=creds.client_email)
        return ServiceAccountDriveUploader(creds, **options)
    if isinstance(creds, OAuthCredentials):
        logger.info("drive_auth_selected", variant="oauth")
        return OAuthDriveUploader(creds, **options)

    raise ConfigurationError("No Google Drive credentials configured")
