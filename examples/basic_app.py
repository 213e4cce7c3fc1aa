# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example FastAPI Application with drsecrets Integration.

This example runs the drsecrets admin API on a hub. Clusters and policies
are registered over HTTP; registering a policy deploys its S3 secrets and
deleting it reclaims the secrets no other policy still needs.

Run with:
    uvicorn examples.basic_app:app --reload

Environment variables:
    DRSECRETS_ADMIN_API_KEY: API key for admin endpoints
    DRSECRETS_STATE_PATH: Registry and vault directory
    DRSECRETS_BACKUP_NAMESPACE: Enables the backup tool format if set

Try it:
    curl -X PUT -H "Authorization: Bearer $KEY" -H "Content-Type: application/json" \\
        -d '{"s3_profile_name": "s3-east"}' localhost:8000/admin/drsecrets/clusters/east
    curl -X PUT -H "Authorization: Bearer $KEY" -H "Content-Type: application/json" \\
        -d '{"clusters": ["east", "west"]}' localhost:8000/admin/drsecrets/policies/east-west
"""

import os

from fastapi import FastAPI

from drsecrets.builder import (
    build_config,
    create_empty_config,
    enable_backup_integration,
    enable_deployment_automation,
    enable_secret_distribution,
    with_s3_profile,
    with_state_path,
)
from drsecrets.integrations.fastapi import drsecrets_lifespan


def create_drsecrets_config():
    """
    Create drsecrets configuration from environment variables.

    This uses the functional builder pattern for clean, composable configuration.
    """
    config = create_empty_config()

    config = enable_deployment_automation(config)
    config = enable_secret_distribution(config)

    # Two profiles share one secret; a third has its own
    config = with_s3_profile(config, "s3-east", "s3-secret-primary")
    config = with_s3_profile(config, "s3-east-replica", "s3-secret-primary")
    config = with_s3_profile(config, "s3-west", "s3-secret-west")

    backup_namespace = os.getenv("DRSECRETS_BACKUP_NAMESPACE")
    if backup_namespace:
        config = enable_backup_integration(config, backup_namespace)

    config = with_state_path(config, os.getenv("DRSECRETS_STATE_PATH", "./drsecrets_state"))

    return build_config(config)


drsecrets_config = create_drsecrets_config()

app = FastAPI(
    title="DR Hub with drsecrets",
    description="Example hub distributing S3 secrets for DR policies",
    version="1.0.0",
    lifespan=lambda app: drsecrets_lifespan(app, drsecrets_config),
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "DR hub running", "admin": "/admin/drsecrets/status"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
