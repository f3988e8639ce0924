from fastapi import APIRouter, Depends, HTTPException
from tfdash.modules.deployments.schemas import (
    DeploymentCreate, DeploymentResponse, DeploymentLogsResponse, DeploymentActionResponse, DeploymentStatus
)
from tfdash.modules.deployments.service import DeploymentService
from tfdash.modules.deployments.dispatcher import DeploymentDispatcher
from tfdash.core.dependencies import get_deployment_service, get_dispatcher, get_current_user_id
from typing import List, Optional

router = APIRouter(prefix="/deployments", tags=["deployments"])


@router.post("", response_model=DeploymentResponse, status_code=201)
async def create_deployment(
    deployment_data: DeploymentCreate,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: DeploymentService = Depends(get_deployment_service),
    dispatcher: DeploymentDispatcher = Depends(get_dispatcher),
):
    """
    Create a deployment and start provisioning in the background.
    The name gets a numeric suffix when already taken; poll /logs for progress.
    """
    deployment = service.create_deployment(deployment_data, user_id)
    dispatcher.submit_apply(deployment.id)
    return deployment


@router.get("", response_model=List[DeploymentResponse])
async def list_deployments(
    status: Optional[DeploymentStatus] = None,
    template_id: Optional[str] = None,
    service: DeploymentService = Depends(get_deployment_service),
):
    """List deployments, newest first"""
    return service.list_deployments(status=status, template_id=template_id)


@router.get("/{deployment_id}", response_model=DeploymentResponse)
async def get_deployment(
    deployment_id: str,
    service: DeploymentService = Depends(get_deployment_service),
):
    """Get deployment by ID"""
    return service.get_deployment_by_id(deployment_id)


@router.get("/{deployment_id}/logs", response_model=DeploymentLogsResponse)
async def get_deployment_logs(
    deployment_id: str,
    service: DeploymentService = Depends(get_deployment_service),
):
    """
    Poll for deployment logs.
    Returns current logs and deployment status.
    """
    deployment = service.get_deployment_by_id(deployment_id)
    return DeploymentLogsResponse(
        deployment_id=deployment.id,
        logs=deployment.deployment_logs or [],
        status=deployment.status,
        has_more=deployment.status.is_active,
    )


@router.delete("/{deployment_id}", response_model=DeploymentActionResponse, status_code=202)
async def destroy_deployment(
    deployment_id: str,
    service: DeploymentService = Depends(get_deployment_service),
    dispatcher: DeploymentDispatcher = Depends(get_dispatcher),
):
    """
    Tear down the deployment's infrastructure in the background.
    Allowed in any state; a destroy requested while the apply is still running
    waits for it to finish. Returns once the destroying state is persisted.
    """
    deployment = service.get_deployment_by_id(deployment_id)
    busy = dispatcher.is_busy(deployment_id)
    if deployment.status == DeploymentStatus.DESTROYING and busy:
        raise HTTPException(status_code=409, detail="Deployment is already being destroyed")
    message = "Destroy queued" if busy else "Destroy requested"
    updated = service.update_deployment_status(deployment_id, DeploymentStatus.DESTROYING, logs=[message])
    dispatcher.submit_destroy(deployment_id)
    return DeploymentActionResponse(deployment_id=deployment_id, status=updated.status, message=message)


@router.post("/{deployment_id}/cancel", response_model=DeploymentActionResponse)
async def cancel_deployment(
    deployment_id: str,
    service: DeploymentService = Depends(get_deployment_service),
    dispatcher: DeploymentDispatcher = Depends(get_dispatcher),
):
    """Cancel the running sequence. Terminates the terraform process; the sequence ends in a failed state."""
    deployment = service.get_deployment_by_id(deployment_id)
    if deployment.status.is_terminal:
        raise HTTPException(status_code=400, detail="Deployment cannot be cancelled")
    if not dispatcher.cancel(deployment_id):
        raise HTTPException(status_code=409, detail="No running process for this deployment")
    return DeploymentActionResponse(
        deployment_id=deployment_id,
        status=deployment.status,
        message="Cancellation requested",
    )
