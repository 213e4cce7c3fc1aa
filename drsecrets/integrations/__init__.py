# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Framework Integrations - FastAPI admin API and lifespan.
"""

from drsecrets.integrations.fastapi import (
    drsecrets_lifespan,
    register_drsecrets_routes,
    verify_api_key,
)

__all__ = [
    "drsecrets_lifespan",
    "register_drsecrets_routes",
    "verify_api_key",
]
