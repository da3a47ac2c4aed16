"""Deployment router"""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db, get_db_session
from app.models import User
from app.schemas.deployment import (
    CreateDeploymentRequest,
    CreateDeploymentResponse,
    DeleteDeploymentResponse,
    DeploymentListItem,
    DeploymentListResponse,
    DeploymentLogsResponse,
    DeploymentResponse,
    UpdateEnvRequest,
    UpdateEnvResponse,
)
from app.services.deployment import deployment_service
from app.services.firebase import get_current_user
from app.services.ledger_service import ledger_service
from app.utils.sentry_utils import wrap_with_sentry

router = APIRouter(prefix="/deploy", tags=["Deployments"])


@router.post("", response_model=CreateDeploymentResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_deployment(
    data: CreateDeploymentRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Deploy a bot.

    Charges the bot's cost and reserves hosting capacity immediately, then
    provisions the Heroku app in the background. Poll the deployment to see
    it become active or failed (failed deployments are refunded).
    """
    deployment = await deployment_service.create(db, user, data.bot_id, data.cost)

    background_tasks.add_task(provision_deployment_task, deployment_id=deployment.id)

    return CreateDeploymentResponse(
        deployment_id=deployment.id,
        app_name=deployment.app_name,
        status=deployment.status,
        cost=deployment.cost,
        new_balance=await ledger_service.get_balance(db, user.id),
    )


@router.get("/deployments", response_model=DeploymentListResponse)
async def list_deployments(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await deployment_service.list_for_user(db, user)
    return DeploymentListResponse(
        deployments=[
            DeploymentListItem(
                id=deployment.id,
                bot_id=deployment.bot_id,
                bot_name=bot_name,
                app_name=deployment.app_name,
                status=deployment.status,
                cost=deployment.cost,
                env_count=deployment.env_count,
                error_message=deployment.error_message,
                created_at=deployment.created_at,
                activated_at=deployment.activated_at,
            )
            for deployment, bot_name in rows
        ]
    )


@router.get("/deployments/{deployment_id}", response_model=DeploymentResponse)
async def get_deployment(
    deployment_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    deployment = await deployment_service.get_owned(db, user, deployment_id)
    return DeploymentResponse.model_validate(deployment)


@router.put("/deployments/{deployment_id}/env", response_model=UpdateEnvResponse)
async def update_environment(
    deployment_id: UUID,
    data: UpdateEnvRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply new environment variables and restart the app (charged)."""
    deployment, new_balance = await deployment_service.update_env(
        db, user, deployment_id, data.env_variables
    )
    return UpdateEnvResponse(
        deployment=DeploymentResponse.model_validate(deployment),
        new_balance=new_balance,
    )


@router.post("/deployments/{deployment_id}/restart", response_model=DeploymentResponse)
async def restart_deployment(
    deployment_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    deployment = await deployment_service.restart(db, user, deployment_id)
    return DeploymentResponse.model_validate(deployment)


@router.get("/deployments/{deployment_id}/logs", response_model=DeploymentLogsResponse)
async def get_deployment_logs(
    deployment_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Deployment journal and the app's recent runtime logs."""
    logs = await deployment_service.runtime_logs(db, user, deployment_id)
    deployment = await deployment_service.get_owned(db, user, deployment_id)
    return DeploymentLogsResponse(deployment_id=deployment.id, status=deployment.status, **logs)


@router.delete("/deployments/{deployment_id}", response_model=DeleteDeploymentResponse)
async def delete_deployment(
    deployment_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete the deployment and its Heroku app. Only a deployment still provisioning is refunded."""
    teardown_error = await deployment_service.delete(db, user, deployment_id)
    return DeleteDeploymentResponse(message="Deployment deleted", teardown_error=teardown_error)


@wrap_with_sentry
async def provision_deployment_task(deployment_id: UUID):
    """Background task: provision a freshly created deployment."""
    async with get_db_session() as db:
        await deployment_service.provision(db, deployment_id)
