# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
NeonVault Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation and is built once
at the process boundary, then passed down explicitly. Pipeline components
never read the environment themselves.
"""

from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List

DEFAULT_NEON_API_BASE_URL = "https://console.neon.tech/api/v2"
DEFAULT_DRIVE_FOLDER_NAME = "neonbackups"
DEFAULT_DATABASE_NAME = "neondb"

# Keys a service account JSON document must carry for JWT signing
REQUIRED_SERVICE_ACCOUNT_KEYS = ("client_email", "private_key")


class DumpFormat(str, Enum):
    """pg_dump output format."""

    CUSTOM = "custom"  # pg_dump custom archive, compressed by pg_dump itself
    PLAIN = "plain"  # SQL script, compressed with zstd afterwards


class ActivityPolicy(str, Enum):
    """How the activity lookback window is expressed."""

    DAYS = "days"  # Canonical: configurable whole days
    HOURS = "hours"  # Alternate: fixed hour window (e.g. 23h for daily runs)


@dataclass(frozen=True)
class DumpOptions:
    """Flags that drive the pg_dump invocation."""

    format: DumpFormat = DumpFormat.CUSTOM

    # Compression level passed to pg_dump for the custom format (0-9)
    compression_level: int = 6

    # Include large objects (--blobs)
    include_blobs: bool = True

    # Strip GRANT/REVOKE statements (--no-privileges)
    strip_privileges: bool = True

    @property
    def extension(self) -> str:
        return "dump" if self.format == DumpFormat.CUSTOM else "sql"

    def with_updates(self, **kwargs) -> "DumpOptions":
        return replace(self, **kwargs)


@dataclass(frozen=True)
class ServiceAccountCredentials:
    """Service account key used by the delegated-credential uploader."""

    info: Dict[str, Any] = field(repr=False)

    @property
    def client_email(self) -> str:
        return str(self.info.get("client_email", ""))


@dataclass(frozen=True)
class OAuthCredentials:
    """Installed-app OAuth client plus a long-lived refresh token."""

    client_id: str
    client_secret: str = field(repr=False)
    refresh_token: str = field(repr=False)


DriveCredentials = ServiceAccountCredentials | OAuthCredentials


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for a backup run.

    Exactly one Google Drive credential shape is carried in
    drive_credentials; the uploader variant is derived from its type.
    """

    # Required: Neon API key for the catalog service
    neon_api_key: str = field(repr=False)

    # Required: service account or OAuth credentials for Google Drive
    drive_credentials: DriveCredentials | None = None

    # Activity lookback window in days (canonical policy)
    lookback_days: int = 7

    # Alternate fixed-hours lookback; overrides lookback_days when set
    lookback_hours: int | None = None

    # Local staging directory for dump files
    output_dir: Path = field(default_factory=lambda: Path("./backups"))

    # Enforce retention locally and in Drive after uploading
    cleanup_enabled: bool = True

    # Delete Drive backups older than this many days
    remote_retention_days: int = 30

    # Delete local backups older than this many days (defaults to remote value)
    local_retention_days: int | None = None

    # pg_dump flags
    dump_options: DumpOptions = field(default_factory=DumpOptions)

    # Drive destination folder
    drive_folder_name: str = DEFAULT_DRIVE_FOLDER_NAME
    drive_parent_folder_id: str | None = None

    # Database to dump when a branch has several
    preferred_database: str = DEFAULT_DATABASE_NAME

    # Explicit pg_dump executable (auto-detected when unset)
    pg_dump_path: str | None = None

    neon_api_base_url: str = DEFAULT_NEON_API_BASE_URL

    # Flat pacing between dumps (database load) and uploads (API rate limits)
    backup_delay_seconds: float = 1.0
    upload_delay_seconds: float = 0.5

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not self.neon_api_key:
            errors.append("neon_api_key is required")

        if self.drive_credentials is None:
            errors.append("drive_credentials is required (service account or OAuth)")
        elif isinstance(self.drive_credentials, ServiceAccountCredentials):
            missing = [
                key
                for key in REQUIRED_SERVICE_ACCOUNT_KEYS
                if not self.drive_credentials.info.get(key)
            ]
            if missing:
                errors.append(f"service account credentials missing: {', '.join(missing)}")
        elif isinstance(self.drive_credentials, OAuthCredentials):
            creds = self.drive_credentials
            if not (creds.client_id and creds.client_secret and creds.refresh_token):
                errors.append("OAuth credentials need client_id, client_secret and refresh_token")
        else:
            errors.append(
                f"Unsupported drive_credentials type: {type(self.drive_credentials).__name__}"
            )

        if self.lookback_days < 0:
            errors.append(f"lookback_days must be >= 0, got {self.lookback_days}")

        if self.lookback_hours is not None and self.lookback_hours < 1:
            errors.append(f"lookback_hours must be >= 1, got {self.lookback_hours}")

        if self.remote_retention_days < 0:
            errors.append(
                f"remote_retention_days must be >= 0, got {self.remote_retention_days}"
            )

        if self.local_retention_days is not None and self.local_retention_days < 0:
            errors.append(
                f"local_retention_days must be >= 0, got {self.local_retention_days}"
            )

        if not 0 <= self.dump_options.compression_level <= 9:
            errors.append(
                "dump compression_level must be between 0 and 9, "
                f"got {self.dump_options.compression_level}"
            )

        if not self.drive_folder_name:
            errors.append("drive_folder_name must not be empty")

        if self.backup_delay_seconds < 0 or self.upload_delay_seconds < 0:
            errors.append("pacing delays must be >= 0")

        # Raise all errors at once
        if errors:
            from neonvault.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def activity_policy(self) -> ActivityPolicy:
        return ActivityPolicy.HOURS if self.lookback_hours else ActivityPolicy.DAYS

    @property
    def lookback(self) -> timedelta:
        """The activity window as a timedelta."""
        if self.lookback_hours:
            return timedelta(hours=self.lookback_hours)
        return timedelta(days=self.lookback_days)

    @property
    def effective_local_retention_days(self) -> int:
        if self.local_retention_days is None:
            return self.remote_retention_days
        return self.local_retention_days

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        return replace(self, **kwargs)
