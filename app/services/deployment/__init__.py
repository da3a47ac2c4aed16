"""Deployment lifecycle service module"""

from app.services.deployment.deployment_service import (
    DeploymentService,
    deployment_service,
    default_env,
    generate_app_name,
    resolve_env,
)

__all__ = [
    "DeploymentService",
    "deployment_service",
    "default_env",
    "generate_app_name",
    "resolve_env",
]
