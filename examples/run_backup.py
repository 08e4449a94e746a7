# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example: run NeonVault programmatically.

Builds the configuration from the environment, tightens it for a daily
schedule and runs one backup pass. This is what the `neonvault` command
does, plus an inventory of what is stored in Drive afterwards.

Run with:
    python examples/run_backup.py

Environment variables:
    NEON_API_KEY: Neon API key
    GOOGLE_DRIVE_CREDENTIALS: service account JSON (or the OAuth trio
        GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET / GOOGLE_REFRESH_TOKEN)
"""

import asyncio
import sys

from neonvault import BackupOrchestrator, create_config_from_env, format_summary
from neonvault.backup.manager import format_file_size
from neonvault.cli import configure_logging
from neonvault.discovery import NeonCatalogClient
from neonvault.exceptions import NeonVaultError


async def main() -> int:
    configure_logging("INFO")

    try:
        config = create_config_from_env()
    except NeonVaultError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    # Scheduled once a day: look back 23 hours, keep two weeks in Drive
    config = config.with_updates(lookback_hours=23, remote_retention_days=14)

    async with NeonCatalogClient(config.neon_api_key, base_url=config.neon_api_base_url) as catalog:
        orchestrator = BackupOrchestrator(config, catalog=catalog)
        try:
            summary = await orchestrator.run()
        except NeonVaultError as e:
            print(f"Backup failed: {e}", file=sys.stderr)
            return 1

        print(format_summary(summary))

        # Inventory of the Drive folder after retention
        for item in await orchestrator.uploader.list_backup_files(max_results=20):
            size = format_file_size(int(item.get("size", 0)))
            print(f"  {item['createdTime']}  {size:>10}  {item['name']}")

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
