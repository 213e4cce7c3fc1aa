# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets FastAPI Integration - Admin API for policy secret lifecycle.

This module provides a complete integration with FastAPI including:
- Lifespan management (startup/shutdown)
- Protected endpoints to register clusters and policies
- Deploy and undeploy triggers
- Per-cluster requirement reports, metrics and health checks
"""

import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, UTC
from typing import List

import aiosqlite
import structlog
from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from drsecrets.config import DRSecretsConfig
from drsecrets.core import (
    SecretsState,
    cluster_requirements,
    get_metrics,
    initialize_state,
    propagate_policy,
    shutdown_state,
    undeploy_policy,
)
from drsecrets.exceptions import (
    CatalogReadError,
    DRSecretsError,
    ProfileResolutionError,
    RegistryError,
    SecretPropagationError,
)
from drsecrets.models import DRCluster, DRPolicy
from drsecrets.registry import (
    get_registry_stats,
    list_clusters,
    list_policies,
    upsert_cluster,
    upsert_policy,
)
from drsecrets.vault import (
    get_operation,
    get_placements_by_operation,
    get_vault_stats,
    list_operations,
)

logger = structlog.get_logger()

# Security
security = HTTPBearer(auto_error=False)


class ClusterSpec(BaseModel):
    """Body for registering a managed cluster."""

    s3_profile_name: str = ""


class PolicySpec(BaseModel):
    """Body for registering a DR policy."""

    clusters: List[str]
    deploy: bool = True


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> bool:
    """
    Verify API key from Authorization header.

    The API key is read from the DRSECRETS_ADMIN_API_KEY environment variable.
    Requests must include: Authorization: Bearer <api_key>

    Raises:
        HTTPException: If API key is missing or invalid
    """
    api_key = os.getenv("DRSECRETS_ADMIN_API_KEY")

    if not api_key:
        raise HTTPException(
            status_code=500,
            detail="DRSECRETS_ADMIN_API_KEY environment variable not set",
        )

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Authorization header required",
        )

    if credentials.credentials != api_key:
        raise HTTPException(
            status_code=403,
            detail="Invalid API key",
        )

    return True


def _http_error(error: DRSecretsError) -> HTTPException:
    """Map a drsecrets error to an HTTP error."""
    if isinstance(error, ProfileResolutionError):
        status_code = 422
    elif isinstance(error, (SecretPropagationError, CatalogReadError)):
        status_code = 502
    elif isinstance(error, RegistryError) and "policy" in error.details:
        status_code = 404
    else:
        status_code = 500
    return HTTPException(
        status_code=status_code,
        detail={"message": error.message, "details": error.details},
    )


def register_drsecrets_routes(
    app: FastAPI,
    config: DRSecretsConfig,
    state: SecretsState,
    prefix: str = "/admin/drsecrets",
) -> None:
    """
    Register drsecrets admin endpoints on a FastAPI app.

    All endpoints require Bearer token authentication.

    Args:
        app: FastAPI application
        config: drsecrets configuration
        state: Runtime state
        prefix: URL prefix for endpoints (default: /admin/drsecrets)
    """

    @app.put(f"{prefix}/clusters/{{cluster_name}}", dependencies=[Depends(verify_api_key)])
    async def put_cluster(cluster_name: str, spec: ClusterSpec) -> dict:
        """
        Register a managed cluster or change its S3 profile.
        """
        cluster = DRCluster(name=cluster_name, s3_profile_name=spec.s3_profile_name)
        async with aiosqlite.connect(state["registry_db_path"]) as db:
            await upsert_cluster(db, cluster)
        return asdict(cluster)

    @app.get(f"{prefix}/clusters", dependencies=[Depends(verify_api_key)])
    async def get_clusters() -> list:
        async with aiosqlite.connect(state["registry_db_path"]) as db:
            return [asdict(c) for c in await list_clusters(db)]

    @app.get(
        f"{prefix}/clusters/{{cluster_name}}/requirements",
        dependencies=[Depends(verify_api_key)],
    )
    async def get_cluster_requirements(cluster_name: str) -> dict:
        """
        Compare the secrets a cluster must have with what it holds.
        """
        return await cluster_requirements(config, state, cluster_name)

    @app.put(f"{prefix}/policies/{{policy_name}}", dependencies=[Depends(verify_api_key)])
    async def put_policy(policy_name: str, spec: PolicySpec) -> dict:
        """
        Register a policy and, unless deploy is false, deploy its secrets.
        """
        policy = DRPolicy(name=policy_name, clusters=tuple(spec.clusters))
        async with aiosqlite.connect(state["registry_db_path"]) as db:
            await upsert_policy(db, policy)

        response: dict = {"policy": asdict(policy), "deploy": None}
        if spec.deploy:
            try:
                result = await propagate_policy(config, state, policy_name)
            except DRSecretsError as e:
                raise _http_error(e) from e
            response["deploy"] = asdict(result)
        return response

    @app.get(f"{prefix}/policies", dependencies=[Depends(verify_api_key)])
    async def get_policies() -> list:
        async with aiosqlite.connect(state["registry_db_path"]) as db:
            return [asdict(p) for p in await list_policies(db)]

    @app.post(
        f"{prefix}/policies/{{policy_name}}/deploy",
        dependencies=[Depends(verify_api_key)],
    )
    async def deploy_policy(policy_name: str) -> dict:
        """
        Re-run secret deployment for a registered policy.
        """
        try:
            result = await propagate_policy(config, state, policy_name)
        except DRSecretsError as e:
            raise _http_error(e) from e
        return asdict(result)

    @app.delete(f"{prefix}/policies/{{policy_name}}", dependencies=[Depends(verify_api_key)])
    async def delete_policy(policy_name: str) -> dict:
        """
        Reclaim the secrets only this policy needed, then remove it.
        """
        try:
            result = await undeploy_policy(config, state, policy_name)
        except DRSecretsError as e:
            raise _http_error(e) from e
        return asdict(result)

    @app.get(f"{prefix}/status", dependencies=[Depends(verify_api_key)])
    async def get_status() -> dict:
        """
        Get current lifecycle status.
        """
        return {
            "last_run_at": (
                state["last_run_at"].isoformat() if state["last_run_at"] else None
            ),
            "total_deploys": state["total_deploys"],
            "total_undeploys": state["total_undeploys"],
            "distribution_enabled": config.secret_distribution_enabled,
            "backup_format_enabled": config.backup_format_enabled,
            "guard_locked": state["guard"].locked(),
        }

    @app.get(f"{prefix}/metrics", dependencies=[Depends(verify_api_key)])
    async def get_lifecycle_metrics() -> dict:
        metrics = await get_metrics(config, state)
        data = asdict(metrics)
        data["last_run_at"] = metrics.last_run_at.isoformat() if metrics.last_run_at else None
        return data

    @app.get(f"{prefix}/operations", dependencies=[Depends(verify_api_key)])
    async def get_operations(
        limit: int = 50,
        offset: int = 0,
        policy: str | None = None,
    ) -> list:
        """
        List lifecycle operations with pagination.

        Args:
            limit: Maximum number of operations to return
            offset: Number of operations to skip
            policy: Filter by policy name
        """
        async with aiosqlite.connect(state["vault_db_path"]) as vault_db:
            return await list_operations(vault_db, limit, offset, policy)

    @app.get(
        f"{prefix}/operations/{{operation_id}}",
        dependencies=[Depends(verify_api_key)],
    )
    async def get_operation_detail(operation_id: str) -> dict:
        async with aiosqlite.connect(state["vault_db_path"]) as vault_db:
            operation = await get_operation(vault_db, operation_id)
            if operation is None:
                raise HTTPException(status_code=404, detail="Operation not found")
            placements = await get_placements_by_operation(vault_db, operation_id)
        return {"operation": operation, "placements": placements}

    @app.get(f"{prefix}/health", dependencies=[Depends(verify_api_key)])
    async def health_check() -> dict:
        """
        Health check endpoint.

        Verifies the registry and vault databases are readable.
        """
        registry_ok = False
        registry_error = None
        try:
            async with aiosqlite.connect(state["registry_db_path"]) as db:
                registry = await get_registry_stats(db)
            registry_ok = True
        except Exception as e:
            registry = None
            registry_error = str(e)

        vault_ok = False
        vault_error = None
        try:
            async with aiosqlite.connect(state["vault_db_path"]) as vault_db:
                vault = await get_vault_stats(vault_db)
            vault_ok = True
        except Exception as e:
            vault = None
            vault_error = str(e)

        status = "healthy"
        if not registry_ok or not vault_ok:
            status = "degraded"
        if not registry_ok and not vault_ok:
            status = "unhealthy"

        return {
            "status": status,
            "registry_accessible": registry_ok,
            "registry_error": registry_error,
            "registry": registry,
            "vault_accessible": vault_ok,
            "vault_error": vault_error,
            "vault": vault,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    @app.get(f"{prefix}/config", dependencies=[Depends(verify_api_key)])
    async def get_config() -> dict:
        """
        Get current configuration. Secret names are listed, never contents.
        """
        return {
            "deployment_automation_enabled": config.deployment_automation_enabled,
            "s3_secret_distribution_enabled": config.s3_secret_distribution_enabled,
            "backup_integration_enabled": config.backup_integration_enabled,
            "backup_namespace": config.backup_namespace,
            "operator_namespace": config.operator_namespace,
            "dr_cluster_operator_namespace": config.dr_cluster_operator_namespace,
            "s3_store_profiles": [asdict(p) for p in config.s3_store_profiles],
        }


@asynccontextmanager
async def drsecrets_lifespan(
    app: FastAPI,
    config: DRSecretsConfig,
    prefix: str = "/admin/drsecrets",
):
    """
    Lifespan context manager for FastAPI.

        app = FastAPI(lifespan=lambda app: drsecrets_lifespan(app, config))

    Args:
        app: FastAPI application
        config: drsecrets configuration
        prefix: URL prefix for admin endpoints
    """
    logger.info("drsecrets_lifespan_starting")

    state = await initialize_state(config)
    app.state.drsecrets_state = state
    app.state.drsecrets_config = config

    register_drsecrets_routes(app, config, state, prefix)

    logger.info("drsecrets_lifespan_started")

    try:
        yield
    finally:
        logger.info("drsecrets_lifespan_stopping")
        await shutdown_state(state)
        logger.info("drsecrets_lifespan_stopped")


def get_drsecrets_state(app: FastAPI) -> SecretsState:
    """
    Get drsecrets state from a FastAPI app.

    Raises:
        RuntimeError: If drsecrets is not initialized
    """
    state = getattr(app.state, "drsecrets_state", None)
    if not state:
        raise RuntimeError("drsecrets not initialized. Use drsecrets_lifespan first.")
    return state


def get_drsecrets_config(app: FastAPI) -> DRSecretsConfig:
    """
    Get drsecrets config from a FastAPI app.

    Raises:
        RuntimeError: If drsecrets is not initialized
    """
    config = getattr(app.state, "drsecrets_config", None)
    if not config:
        raise RuntimeError("drsecrets not initialized. Use drsecrets_lifespan first.")
    return config
