# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Storage Layer - Upload archives to Google Drive and enforce remote retention.
"""

from neonvault.storage.base import ArchiveUploader
from neonvault.storage.drive import (
    DriveUploader,
    OAuthDriveUploader,
    ServiceAccountDriveUploader,
    create_uploader,
)

__all__ = [
    "ArchiveUploader",
    "DriveUploader",
    "OAuthDriveUploader",
    "ServiceAccountDriveUploader",
    "create_uploader",
]
