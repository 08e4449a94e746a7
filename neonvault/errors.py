# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for NeonVault.

These helpers centralize wording for common configuration and tooling
errors so that all modules present consistent, actionable messages.
"""


def explain_missing_api_key_env() -> str:
    """
    Explain that the Neon API key environment variable is missing.
    """

    return (
        "Neon API key is not configured. "
        "Set the NEON_API_KEY environment variable (or the NEON_API_KEY action input)."
    )


def explain_missing_drive_credentials() -> str:
    """
    Explain that no Google Drive credential is configured.
    """

    return (
        "Google Drive credentials are not configured. "
        "Set GOOGLE_DRIVE_CREDENTIALS to a service account JSON document, or set "
        "GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GOOGLE_REFRESH_TOKEN for OAuth."
    )


def explain_ambiguous_drive_credentials() -> str:
    """
    Explain that both Google Drive credential shapes are configured.
    """

    return (
        "Both a service account (GOOGLE_DRIVE_CREDENTIALS) and OAuth credentials "
        "(GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET/GOOGLE_REFRESH_TOKEN) are configured. "
        "Configure exactly one. Use OAuth when backups must count against a personal "
        "Drive quota; service accounts have no storage quota of their own."
    )


def explain_partial_oauth_credentials(missing: list[str]) -> str:
    """
    Explain that the OAuth credential triple is incomplete.
    """

    return (
        f"Incomplete Google OAuth configuration, missing: {', '.join(missing)}. "
        "GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GOOGLE_REFRESH_TOKEN must all be set."
    )


def explain_invalid_service_account_json(reason: str) -> str:
    """
    Explain that GOOGLE_DRIVE_CREDENTIALS could not be used.
    """

    return (
        f"GOOGLE_DRIVE_CREDENTIALS is not a usable service account key: {reason}. "
        "Paste the full JSON key file downloaded from the Google Cloud console."
    )


def explain_invalid_days_env(name: str, value: str | None) -> str:
    """
    Explain that a day-count variable is invalid.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "It must be a non-negative integer number of days."
    )


def explain_invalid_hours_env(value: str | None) -> str:
    """
    Explain that BACKUP_LOOKBACK_HOURS is invalid.
    """

    return (
        f"Invalid BACKUP_LOOKBACK_HOURS value: {value!r}. "
        "It must be a positive integer number of hours, or unset to use days."
    )


def explain_invalid_dump_format_env(value: str | None) -> str:
    """
    Explain that DUMP_FORMAT is invalid.
    """

    return (
        f"Invalid DUMP_FORMAT value: {value!r}. "
        "Expected 'custom' (pg_dump custom archive) or 'plain' (SQL, then compressed)."
    )


def explain_invalid_bool_env(name: str, value: str | None) -> str:
    return (
        f"Invalid {name} value: {value!r}. "
        "Expected one of: true, false, 1, 0, yes, no."
    )


def explain_pg_dump_missing() -> str:
    """
    Explain that the pg_dump executable could not be found.
    """

    return (
        "pg_dump not found. Please install PostgreSQL client tools "
        "(apt install postgresql-client, brew install libpq, or on Windows: "
        "winget install PostgreSQL.PostgreSQL) or set PG_DUMP_PATH."
    )
