# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Audit Vault - Append-only record of secret lifecycle operations.
"""

from drsecrets.vault.sqlite_vault import (
    init_vault_db,
    record_operation,
    complete_operation,
    record_placements,
    get_operation,
    list_operations,
    get_placements_by_operation,
    get_vault_stats,
    OperationRecord,
    PlacementRecord,
)

__all__ = [
    # Vault functions
    "init_vault_db",
    "record_operation",
    "complete_operation",
    "record_placements",
    "get_operation",
    "list_operations",
    "get_placements_by_operation",
    "get_vault_stats",
    # Types
    "OperationRecord",
    "PlacementRecord",
]
