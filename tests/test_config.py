# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for configuration loading and validation.
"""

import json
from datetime import timedelta
from pathlib import Path

import pytest

from neonvault.config import (
    ActivityPolicy,
    BackupConfig,
    DumpFormat,
    DumpOptions,
    OAuthCredentials,
    ServiceAccountCredentials,
)
from neonvault.env import create_config_from_env, get_input
from neonvault.exceptions import ConfigurationError

from tests.conftest import SERVICE_ACCOUNT_INFO, make_config

SA_JSON = json.dumps(SERVICE_ACCOUNT_INFO)

OAUTH_ENV = {
    "GOOGLE_CLIENT_ID": "cid.apps.googleusercontent.com",
    "GOOGLE_CLIENT_SECRET": "GOCSPX-secret",
    "GOOGLE_REFRESH_TOKEN": "1//refresh",
}


def env(**values) -> dict:
    base = {"NEON_API_KEY": "neon-key", "GOOGLE_DRIVE_CREDENTIALS": SA_JSON}
    base.update(values)
    return {k: v for k, v in base.items() if v is not None}


class TestCreateConfigFromEnv:

    def test_defaults(self):
        config = create_config_from_env(env())

        assert config.neon_api_key == "neon-key"
        assert isinstance(config.drive_credentials, ServiceAccountCredentials)
        assert config.drive_credentials.client_email == SERVICE_ACCOUNT_INFO["client_email"]
        assert config.lookback_days == 7
        assert config.lookback == timedelta(days=7)
        assert config.activity_policy == ActivityPolicy.DAYS
        assert config.output_dir == Path("./backups")
        assert config.cleanup_enabled is True
        assert config.remote_retention_days == 30
        assert config.effective_local_retention_days == 30
        assert config.dump_options.format == DumpFormat.CUSTOM
        assert config.drive_folder_name == "neonbackups"
        assert config.preferred_database == "neondb"
        assert config.pg_dump_path is None

    def test_overrides(self):
        config = create_config_from_env(env(
            BACKUP_RETENTION_DAYS="3",
            OUTPUT_DIR="/var/backups/neon",
            CLEANUP_OLD_BACKUPS="false",
            CLEANUP_RETENTION_DAYS="14",
            LOCAL_RETENTION_DAYS="2",
            DUMP_FORMAT="PLAIN",
            GOOGLE_DRIVE_FOLDER_NAME="db",
            GOOGLE_DRIVE_PARENT_FOLDER_ID="0AFolder",
            NEON_DATABASE_NAME="app",
            PG_DUMP_PATH="/usr/lib/postgresql/16/bin/pg_dump",
        ))

        assert config.lookback == timedelta(days=3)
        assert config.output_dir == Path("/var/backups/neon")
        assert config.cleanup_enabled is False
        assert config.remote_retention_days == 14
        assert config.effective_local_retention_days == 2
        assert config.dump_options.format == DumpFormat.PLAIN
        assert config.drive_folder_name == "db"
        assert config.drive_parent_folder_id == "0AFolder"
        assert config.preferred_database == "app"
        assert config.pg_dump_path == "/usr/lib/postgresql/16/bin/pg_dump"

    def test_hours_policy_overrides_days(self):
        config = create_config_from_env(env(BACKUP_RETENTION_DAYS="7", BACKUP_LOOKBACK_HOURS="23"))

        assert config.activity_policy == ActivityPolicy.HOURS
        assert config.lookback == timedelta(hours=23)

    def test_missing_api_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_config_from_env(env(NEON_API_KEY=None))
        assert "NEON_API_KEY" in str(exc_info.value)

    @pytest.mark.parametrize("name,value", [
        ("BACKUP_RETENTION_DAYS", "seven"),
        ("BACKUP_RETENTION_DAYS", "-1"),
        ("CLEANUP_RETENTION_DAYS", "1.5"),
        ("BACKUP_LOOKBACK_HOURS", "0"),
        ("CLEANUP_OLD_BACKUPS", "maybe"),
        ("DUMP_FORMAT", "directory"),
    ])
    def test_invalid_values(self, name, value):
        with pytest.raises(ConfigurationError) as exc_info:
            create_config_from_env(env(**{name: value}))
        assert name in str(exc_info.value)

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("1", True), ("YES", True), ("off", False), ("0", False),
    ])
    def test_bool_spellings(self, value, expected):
        config = create_config_from_env(env(CLEANUP_OLD_BACKUPS=value))
        assert config.cleanup_enabled is expected


class TestDriveCredentialSelection:
    """Exactly one credential shape must be configured."""

    def test_oauth(self):
        config = create_config_from_env(env(GOOGLE_DRIVE_CREDENTIALS=None, **OAUTH_ENV))

        creds = config.drive_credentials
        assert isinstance(creds, OAuthCredentials)
        assert creds.refresh_token == "1//refresh"
        assert "1//refresh" not in repr(creds)

    def test_both_shapes(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_config_from_env(env(**OAUTH_ENV))
        assert "exactly one" in str(exc_info.value)

    def test_neither_shape(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_config_from_env(env(GOOGLE_DRIVE_CREDENTIALS=None))
        assert "not configured" in str(exc_info.value)

    def test_partial_oauth(self):
        partial = dict(OAUTH_ENV, GOOGLE_REFRESH_TOKEN=None)
        with pytest.raises(ConfigurationError) as exc_info:
            create_config_from_env(env(GOOGLE_DRIVE_CREDENTIALS=None, **partial))
        assert "GOOGLE_REFRESH_TOKEN" in str(exc_info.value)

    @pytest.mark.parametrize("raw,reason", [
        ("{not json", "invalid JSON"),
        ("[1, 2]", "not a JSON object"),
        (json.dumps({"client_email": "x@y"}), "private_key"),
    ])
    def test_invalid_service_account(self, raw, reason):
        with pytest.raises(ConfigurationError) as exc_info:
            create_config_from_env(env(GOOGLE_DRIVE_CREDENTIALS=raw))
        assert reason in str(exc_info.value)

    def test_service_account_key_hidden_from_repr(self):
        config = create_config_from_env(env())
        assert "PRIVATE KEY" not in repr(config)
        assert "neon-key" not in repr(config)


class TestGitHubActionsInputs:

    def test_inputs_take_precedence(self):
        values = env(
            GITHUB_ACTIONS="true",
            INPUT_NEON_API_KEY="from-input",
            INPUT_BACKUP_RETENTION_DAYS="2",
            BACKUP_RETENTION_DAYS="9",
        )

        config = create_config_from_env(values)

        assert config.neon_api_key == "from-input"
        assert config.lookback_days == 2

    def test_inputs_ignored_outside_actions(self):
        values = env(INPUT_NEON_API_KEY="from-input")
        assert create_config_from_env(values).neon_api_key == "neon-key"

    def test_blank_input_falls_back_to_env(self):
        values = {"GITHUB_ACTIONS": "true", "INPUT_OUTPUT_DIR": "  ", "OUTPUT_DIR": "/tmp/out"}
        assert get_input("OUTPUT_DIR", values) == "/tmp/out"


class TestDotenv:

    def test_env_file_loaded_without_override(self, temp_dir, monkeypatch):
        for name in ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_REFRESH_TOKEN",
                     "GITHUB_ACTIONS", "BACKUP_LOOKBACK_HOURS", "BACKUP_RETENTION_DAYS"):
            # set then delete so monkeypatch also undoes what load_dotenv adds
            monkeypatch.setenv(name, "")
            monkeypatch.delenv(name)
        monkeypatch.setenv("NEON_API_KEY", "from-process")
        monkeypatch.setenv("GOOGLE_DRIVE_CREDENTIALS", SA_JSON)
        env_file = temp_dir / ".env"
        env_file.write_text("NEON_API_KEY=from-file\nBACKUP_RETENTION_DAYS=4\n")

        config = create_config_from_env(env_file=env_file)

        assert config.neon_api_key == "from-process"
        assert config.lookback_days == 4

    def test_env_file_found_in_working_directory(self, temp_dir, monkeypatch):
        for name in ("NEON_API_KEY", "GOOGLE_DRIVE_CREDENTIALS", "GOOGLE_CLIENT_ID",
                     "GOOGLE_CLIENT_SECRET", "GOOGLE_REFRESH_TOKEN", "GITHUB_ACTIONS",
                     "BACKUP_LOOKBACK_HOURS", "BACKUP_RETENTION_DAYS"):
            monkeypatch.setenv(name, "")
            monkeypatch.delenv(name)
        (temp_dir / ".env").write_text(
            f"NEON_API_KEY=from-cwd\nGOOGLE_DRIVE_CREDENTIALS='{SA_JSON}'\n"
        )
        monkeypatch.chdir(temp_dir)

        config = create_config_from_env()

        assert config.neon_api_key == "from-cwd"
        assert isinstance(config.drive_credentials, ServiceAccountCredentials)


class TestBackupConfigValidation:

    def test_collects_all_errors(self):
        with pytest.raises(ConfigurationError) as exc_info:
            BackupConfig(
                neon_api_key="",
                drive_credentials=None,
                lookback_days=-1,
                remote_retention_days=-5,
                dump_options=DumpOptions(compression_level=12),
            )

        errors = exc_info.value.details["errors"]
        assert len(errors) == 5

    def test_incomplete_oauth_object(self):
        with pytest.raises(ConfigurationError):
            BackupConfig(
                neon_api_key="k",
                drive_credentials=OAuthCredentials(client_id="c", client_secret="", refresh_token="r"),
            )

    def test_with_updates(self, temp_dir):
        config = make_config(temp_dir)

        updated = config.with_updates(remote_retention_days=90)

        assert updated.remote_retention_days == 90
        assert config.remote_retention_days == 30
        assert updated.drive_credentials is config.drive_credentials

    def test_with_updates_revalidates(self, temp_dir):
        with pytest.raises(ConfigurationError):
            make_config(temp_dir).with_updates(lookback_hours=0)

    def test_frozen(self, temp_dir):
        config = make_config(temp_dir)
        with pytest.raises(AttributeError):
            config.lookback_days = 1

    def test_dump_options_extension(self):
        assert DumpOptions().extension == "dump"
        assert DumpOptions(format=DumpFormat.PLAIN).extension == "sql"
        assert DumpOptions().with_updates(compression_level=9).compression_level == 9
