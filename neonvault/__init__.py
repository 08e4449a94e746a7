# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
NeonVault - Back up recently active Neon branches to Google Drive.

Discovers branches with recent writes, dumps each with pg_dump, uploads
the archives to a Drive folder and enforces retention both locally and
remotely. Package name: neonvault.
"""

__version__ = "0.1.0"

# Configuration
from neonvault.config import BackupConfig, DumpFormat, DumpOptions
from neonvault.env import create_config_from_env

# Core orchestration
from neonvault.core import BackupOrchestrator, format_summary, run_backup

__all__ = [
    # Version
    "__version__",
    # Configuration
    "BackupConfig",
    "DumpFormat",
    "DumpOptions",
    "create_config_from_env",
    # Core orchestration
    "BackupOrchestrator",
    "format_summary",
    "run_backup",
]
