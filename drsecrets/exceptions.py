# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Exceptions - Custom exceptions for the drsecrets package.
"""


class DRSecretsError(Exception):
    """Base exception for all drsecrets errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(DRSecretsError):
    """Raised when configuration is invalid."""

    pass


class ProfileResolutionError(DRSecretsError):
    """Raised when a cluster's S3 profile has no entry in the profile directory."""

    pass


class SecretPropagationError(DRSecretsError):
    """Raised when adding or removing a secret on a cluster fails."""

    pass


class CatalogReadError(DRSecretsError):
    """Raised when the policy catalog cannot be listed."""

    pass


class RegistryError(DRSecretsError):
    """Raised when registry operations fail."""

    pass


class VaultError(DRSecretsError):
    """Raised when vault operations fail."""

    pass


class GuardReentryError(DRSecretsError):
    """Raised when a lifecycle operation tries to re-acquire a held guard."""

    pass
