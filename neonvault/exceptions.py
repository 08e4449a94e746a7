# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
NeonVault Exceptions - Custom exceptions for the neonvault package.

Fatal conditions (configuration, connectivity, zero successful backups)
abort a run. The remaining classes are raised inside a stage and caught
at the granularity they isolate: project, branch, resource or file.
"""


class NeonVaultError(Exception):
    """Base exception for all neonvault errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(NeonVaultError):
    """Raised when configuration is invalid or incomplete."""

    pass


class ConnectivityError(NeonVaultError):
    """Raised when a liveness probe fails before the pipeline starts."""

    pass


class DiscoveryError(NeonVaultError):
    """Raised when the catalog cannot enumerate projects or branches."""

    pass


class ConnectionResolutionError(NeonVaultError):
    """Raised when no connection URI can be resolved for a branch."""

    pass


class BackupError(NeonVaultError):
    """Raised when backup operations fail."""

    pass


class NoSuccessfulBackupsError(BackupError):
    """Raised when every attempted backup in a run failed."""

    pass


class UploadError(NeonVaultError):
    """Raised when archive uploads fail."""

    pass


class CleanupError(NeonVaultError):
    """Raised when retention cleanup fails."""

    pass
