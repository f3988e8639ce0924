from fastapi import APIRouter, Depends
from tfdash.modules.schedules.schemas import ScheduledActionCreate, ScheduledActionResponse
from tfdash.modules.schedules.service import ScheduleService
from tfdash.core.dependencies import get_schedule_service, get_current_user_id
from typing import List, Optional

router = APIRouter(prefix="/schedules", tags=["schedules"])


@router.post("", response_model=ScheduledActionResponse, status_code=201)
async def create_scheduled_action(
    action_data: ScheduledActionCreate,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Schedule a start or stop of a compute instance, once or recurring"""
    return service.create_action(action_data, user_id)


@router.get("", response_model=List[ScheduledActionResponse])
async def list_scheduled_actions(
    resource_id: Optional[str] = None,
    service: ScheduleService = Depends(get_schedule_service),
):
    """List enabled scheduled actions, soonest first"""
    return service.list_actions(resource_id)


@router.delete("/{action_id}", response_model=ScheduledActionResponse)
async def cancel_scheduled_action(
    action_id: str,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Cancel (disable) a scheduled action"""
    return service.cancel_action(action_id)
