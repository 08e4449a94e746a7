# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - pg_dump production, compression and local retention.
"""

from neonvault.backup.manager import (
    build_backup_filename,
    format_file_size,
    prune_old_backups,
    sanitize_name_component,
)

from neonvault.backup.producer import (
    BackupProducer,
    build_pg_dump_args,
    locate_pg_dump,
    parse_connection_uri,
)

__all__ = [
    # Manager
    "build_backup_filename",
    "format_file_size",
    "prune_old_backups",
    "sanitize_name_component",
    # Producer
    "BackupProducer",
    "build_pg_dump_args",
    "locate_pg_dump",
    "parse_connection_uri",
]
