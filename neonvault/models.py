# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
NeonVault data model.

Projects and branches mirror the Neon catalog (read-only). Everything
else is transient and lives only for the duration of one run.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List


def parse_timestamp(value: str | None) -> datetime:
    """
    Parse an RFC 3339 timestamp from the catalog or Drive API.

    Naive values are taken to be UTC.

    Raises:
        ValueError: If the value is missing or not a timestamp
    """
    if not value:
        raise ValueError("empty timestamp")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class Project:
    """A Neon project."""

    id: str
    name: str
    region: str
    created_at: str
    updated_at: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            region=data.get("region_id", ""),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass(frozen=True)
class Branch:
    """A Neon branch. updated_at is the only activity signal available."""

    id: str
    name: str
    project_id: str
    created_at: str
    updated_at: str
    is_primary: bool = False
    is_default: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any], project_id: str) -> "Branch":
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            project_id=project_id,
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            is_primary=bool(data.get("primary", False)),
            is_default=bool(data.get("default", False)),
        )


@dataclass
class ActiveResource:
    """A branch selected for backup, with a connection URI resolved."""

    project_id: str
    project_name: str
    branch_id: str
    branch_name: str
    has_recent_activity: bool
    last_activity_date: str | None
    connection_uri: str = field(repr=False)

    @property
    def label(self) -> str:
        return f"{self.project_name}/{self.branch_name}"


class BackupState(str, Enum):
    """Per-resource backup lifecycle."""

    PENDING = "pending"
    DUMPING = "dumping"
    DUMPED = "dumped"
    COMPRESSING = "compressing"
    ARCHIVED = "archived"
    FAILED = "failed"


@dataclass
class BackupArtifact:
    """Result of one backup attempt."""

    success: bool
    local_path: Path | None = None
    file_name: str | None = None
    file_size_bytes: int = 0
    duration_ms: int = 0
    error: str | None = None
    state: BackupState = BackupState.PENDING
    resource: ActiveResource | None = field(default=None, repr=False)
    # Pre-compression file of a plain dump, kept for cleanup
    uncompressed_path: Path | None = None


@dataclass(frozen=True)
class RemoteFile:
    """A file in the Drive backup folder, as last listed."""

    id: str
    name: str
    created_at: datetime

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteFile":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            created_at=parse_timestamp(data.get("createdTime")),
        )


@dataclass
class UploadResult:
    """Result of uploading one file."""

    success: bool
    file_name: str
    file_id: str | None = None
    web_view_link: str | None = None
    error: str | None = None
    duration_ms: int = 0


@dataclass
class UploadSummary:
    """Normalized outcome of a batch upload, identical for every uploader variant."""

    succeeded: int = 0
    failed: int = 0
    results: List[UploadResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    NOTHING_TO_DO = "nothing_to_do"


@dataclass
class RunSummary:
    """Informational totals for one pipeline run."""

    run_id: str
    outcome: RunOutcome
    resources_discovered: int = 0
    backups_succeeded: int = 0
    backups_failed: int = 0
    uploads_succeeded: int = 0
    uploads_failed: int = 0
    total_bytes: int = 0
    duration_seconds: float = 0.0
    completed_at: datetime | None = None
