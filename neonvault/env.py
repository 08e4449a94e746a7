# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration.

Reads the well-known environment variables (or GitHub Actions inputs)
once and turns them into a validated BackupConfig. This is the only
module that looks at the process environment.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Mapping

from dotenv import find_dotenv, load_dotenv

from neonvault.config import (
    DEFAULT_DATABASE_NAME,
    DEFAULT_DRIVE_FOLDER_NAME,
    DEFAULT_NEON_API_BASE_URL,
    REQUIRED_SERVICE_ACCOUNT_KEYS,
    BackupConfig,
    DriveCredentials,
    DumpFormat,
    DumpOptions,
    OAuthCredentials,
    ServiceAccountCredentials,
)
from neonvault.errors import (
    explain_ambiguous_drive_credentials,
    explain_invalid_bool_env,
    explain_invalid_days_env,
    explain_invalid_dump_format_env,
    explain_invalid_hours_env,
    explain_invalid_service_account_json,
    explain_missing_api_key_env,
    explain_missing_drive_credentials,
    explain_partial_oauth_credentials,
)
from neonvault.exceptions import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def get_input(name: str, environ: Mapping[str, str] | None = None) -> str:
    """
    Read a setting from GitHub Actions inputs or the environment.

    Under GitHub Actions, `with:` inputs arrive as INPUT_<NAME> variables
    and take precedence over plain environment variables.
    """
    env = os.environ if environ is None else environ
    value = ""
    if env.get("GITHUB_ACTIONS"):
        value = env.get(f"INPUT_{name.replace(' ', '_').upper()}", "").strip()
    if not value:
        value = env.get(name, "").strip()
    return value


def _parse_days(name: str, value: str, default: int) -> int:
    if not value:
        return default
    try:
        days = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_days_env(name, value)) from exc
    if days < 0:
        raise ConfigurationError(explain_invalid_days_env(name, value))
    return days


def _parse_hours(value: str) -> int | None:
    if not value:
        return None
    try:
        hours = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_hours_env(value)) from exc
    if hours < 1:
        raise ConfigurationError(explain_invalid_hours_env(value))
    return hours


def _parse_bool(name: str, value: str, default: bool) -> bool:
    if not value:
        return default
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(explain_invalid_bool_env(name, value))


def _parse_dump_format(value: str) -> DumpFormat:
    if not value:
        return DumpFormat.CUSTOM
    try:
        return DumpFormat(value.lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_dump_format_env(value)) from exc


def _parse_service_account(raw: str) -> ServiceAccountCredentials:
    try:
        info = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            explain_invalid_service_account_json(f"invalid JSON ({exc.msg})")
        ) from exc
    if not isinstance(info, dict):
        raise ConfigurationError(explain_invalid_service_account_json("not a JSON object"))
    missing = [key for key in REQUIRED_SERVICE_ACCOUNT_KEYS if not info.get(key)]
    if missing:
        raise ConfigurationError(
            explain_invalid_service_account_json(f"missing {', '.join(missing)}")
        )
    return ServiceAccountCredentials(info=info)


def _select_drive_credentials(env: Mapping[str, str] | None) -> DriveCredentials:
    """
    Pick the single configured Drive credential shape.

    Never falls back to a default: zero, two, or a partial OAuth triple is
    a configuration error.
    """
    service_account_raw = get_input("GOOGLE_DRIVE_CREDENTIALS", env)
    oauth_values = {
        "GOOGLE_CLIENT_ID": get_input("GOOGLE_CLIENT_ID", env),
        "GOOGLE_CLIENT_SECRET": get_input("GOOGLE_CLIENT_SECRET", env),
        "GOOGLE_REFRESH_TOKEN": get_input("GOOGLE_REFRESH_TOKEN", env),
    }
    oauth_present = [name for name, value in oauth_values.items() if value]
    oauth_missing = [name for name, value in oauth_values.items() if not value]

    if service_account_raw and oauth_present:
        raise ConfigurationError(explain_ambiguous_drive_credentials())

    if service_account_raw:
        return _parse_service_account(service_account_raw)

    if not oauth_present:
        raise ConfigurationError(explain_missing_drive_credentials())

    if oauth_missing:
        raise ConfigurationError(explain_partial_oauth_credentials(oauth_missing))

    return OAuthCredentials(
        client_id=oauth_values["GOOGLE_CLIENT_ID"],
        client_secret=oauth_values["GOOGLE_CLIENT_SECRET"],
        refresh_token=oauth_values["GOOGLE_REFRESH_TOKEN"],
    )


def create_config_from_env(
    environ: Mapping[str, str] | None = None,
    *,
    env_file: Path | str | None = None,
    load_env_file: bool = True,
) -> BackupConfig:
    """
    Create a BackupConfig from environment variables.

    A .env file is loaded first (without overriding variables that are
    already set) to support local development. Without env_file, the
    nearest .env at or above the working directory is used.

    Required:
        - NEON_API_KEY: Neon API key
        - GOOGLE_DRIVE_CREDENTIALS: service account JSON, or
        - GOOGLE_CLIENT_ID + GOOGLE_CLIENT_SECRET + GOOGLE_REFRESH_TOKEN

    Optional environment variables:
        - BACKUP_RETENTION_DAYS: activity lookback in days (default: 7)
        - BACKUP_LOOKBACK_HOURS: fixed-hours lookback, overrides days
        - OUTPUT_DIR: local staging directory (default: ./backups)
        - CLEANUP_OLD_BACKUPS: enable retention cleanup (default: true)
        - CLEANUP_RETENTION_DAYS: Drive retention in days (default: 30)
        - LOCAL_RETENTION_DAYS: local retention in days (default: Drive value)
        - DUMP_FORMAT: 'custom' | 'plain' (default: custom)
        - GOOGLE_DRIVE_FOLDER_NAME: destination folder (default: neonbackups)
        - GOOGLE_DRIVE_PARENT_FOLDER_ID: parent of the destination folder
        - NEON_DATABASE_NAME: preferred database (default: neondb)
        - PG_DUMP_PATH: explicit pg_dump executable
        - NEON_API_BASE_URL: catalog API base URL
    """
    if load_env_file and environ is None:
        load_dotenv(env_file or find_dotenv(usecwd=True), override=False)

    api_key = get_input("NEON_API_KEY", environ)
    if not api_key:
        raise ConfigurationError(explain_missing_api_key_env())

    drive_credentials = _select_drive_credentials(environ)

    remote_retention_days = _parse_days(
        "CLEANUP_RETENTION_DAYS", get_input("CLEANUP_RETENTION_DAYS", environ), 30
    )
    local_retention_raw = get_input("LOCAL_RETENTION_DAYS", environ)
    local_retention_days = (
        _parse_days("LOCAL_RETENTION_DAYS", local_retention_raw, remote_retention_days)
        if local_retention_raw
        else None
    )

    output_dir = get_input("OUTPUT_DIR", environ)

    return BackupConfig(
        neon_api_key=api_key,
        drive_credentials=drive_credentials,
        lookback_days=_parse_days(
            "BACKUP_RETENTION_DAYS", get_input("BACKUP_RETENTION_DAYS", environ), 7
        ),
        lookback_hours=_parse_hours(get_input("BACKUP_LOOKBACK_HOURS", environ)),
        output_dir=Path(output_dir) if output_dir else Path("./backups"),
        cleanup_enabled=_parse_bool(
            "CLEANUP_OLD_BACKUPS", get_input("CLEANUP_OLD_BACKUPS", environ), True
        ),
        remote_retention_days=remote_retention_days,
        local_retention_days=local_retention_days,
        dump_options=DumpOptions(format=_parse_dump_format(get_input("DUMP_FORMAT", environ))),
        drive_folder_name=get_input("GOOGLE_DRIVE_FOLDER_NAME", environ)
        or DEFAULT_DRIVE_FOLDER_NAME,
        drive_parent_folder_id=get_input("GOOGLE_DRIVE_PARENT_FOLDER_ID", environ) or None,
        preferred_database=get_input("NEON_DATABASE_NAME", environ) or DEFAULT_DATABASE_NAME,
        pg_dump_path=get_input("PG_DUMP_PATH", environ) or None,
        neon_api_base_url=get_input("NEON_API_BASE_URL", environ) or DEFAULT_NEON_API_BASE_URL,
    )
