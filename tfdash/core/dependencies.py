"""
Core dependencies: shared store, services and background runners for the routes
"""

from fastapi import Depends, Header
from tfdash.database.store import RecordStore, create_store
from tfdash.modules.templates.service import TemplateService
from tfdash.modules.deployments.service import DeploymentService
from tfdash.modules.deployments.deployment_worker import DeploymentWorker
from tfdash.modules.deployments.dispatcher import DeploymentDispatcher
from tfdash.modules.schedules.service import ScheduleService
from tfdash.modules.schedules.scheduler import ActionScheduler
from tfdash.modules.schedules.resource_actions import Ec2ResourceActions
from typing import Optional
import logging

logger = logging.getLogger(__name__)

_store: Optional[RecordStore] = None
_dispatcher: Optional[DeploymentDispatcher] = None
_scheduler: Optional[ActionScheduler] = None


def get_store() -> RecordStore:
    """Get or create the process-wide record store"""
    global _store
    if _store is None:
        _store = create_store()
    return _store


def get_template_service(store: RecordStore = Depends(get_store)) -> TemplateService:
    return TemplateService(store)


def get_deployment_service(store: RecordStore = Depends(get_store)) -> DeploymentService:
    return DeploymentService(store)


def get_schedule_service(store: RecordStore = Depends(get_store)) -> ScheduleService:
    return ScheduleService(store)


def get_dispatcher() -> DeploymentDispatcher:
    """Get or create the dispatcher running apply/destroy sequences"""
    global _dispatcher
    if _dispatcher is None:
        worker = DeploymentWorker(DeploymentService(get_store()))
        _dispatcher = DeploymentDispatcher(worker)
    return _dispatcher


def get_scheduler() -> ActionScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = ActionScheduler(ScheduleService(get_store()), Ec2ResourceActions())
    return _scheduler


def shutdown_dispatcher(wait: bool = True) -> None:
    global _dispatcher
    if _dispatcher is not None:
        _dispatcher.shutdown(wait=wait)
        _dispatcher = None


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Owner id forwarded by the authenticating proxy; None for anonymous callers"""
    if x_user_id is not None and not x_user_id.strip():
        return None
    return x_user_id
