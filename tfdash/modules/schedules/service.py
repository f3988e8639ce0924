from tfdash.database.store import RecordStore
from tfdash.modules.schedules.schemas import ScheduledActionCreate, ScheduledActionResponse
from tfdash.core.exceptions import NotFoundError
from typing import List, Optional
from datetime import datetime, timezone
import uuid
import logging

logger = logging.getLogger(__name__)

TABLE = "scheduled_actions"


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ScheduleService:
    def __init__(self, store: RecordStore):
        self.store = store

    def create_action(self, action_data: ScheduledActionCreate, user_id: Optional[str] = None) -> ScheduledActionResponse:
        """Schedule a start/stop of a compute resource"""
        action = ScheduledActionResponse(
            id=str(uuid.uuid4()),
            resource_id=action_data.resource_id,
            action=action_data.action,
            scheduled_time=as_utc(action_data.scheduled_time),
            recurring=action_data.recurring,
            enabled=True,
            user_id=user_id,
            created_at=datetime.now(timezone.utc),
        )
        self.store.put(TABLE, action.model_dump(mode="json"))
        logger.info(
            f"Scheduled {action.action.value} for resource {action.resource_id} at {action.scheduled_time.isoformat()}"
        )
        return action

    def get_action_by_id(self, action_id: str) -> ScheduledActionResponse:
        record = self.store.get(TABLE, action_id)
        if not record:
            raise NotFoundError("Scheduled action not found")
        return ScheduledActionResponse(**record)

    def list_actions(self, resource_id: Optional[str] = None) -> List[ScheduledActionResponse]:
        """Enabled actions, soonest first, optionally for one resource."""
        filters = {"enabled": True}
        if resource_id:
            filters["resource_id"] = resource_id
        records = self.store.list(TABLE, filters=filters)
        actions = [ScheduledActionResponse(**r) for r in records]
        return sorted(actions, key=lambda a: as_utc(a.scheduled_time))

    def cancel_action(self, action_id: str) -> ScheduledActionResponse:
        """Disable an action. Cancelled actions are kept, never deleted."""
        action = self.get_action_by_id(action_id)
        cancelled = action.model_copy(update={"enabled": False})
        self.store.put(TABLE, cancelled.model_dump(mode="json"))
        logger.info(f"Cancelled scheduled action {action_id}")
        return cancelled

    def list_due_actions(self, now: datetime) -> List[ScheduledActionResponse]:
        """Enabled actions whose current occurrence is at or before ``now`` and has not run."""
        now = as_utc(now)
        due = []
        for action in self.list_actions():
            if as_utc(action.scheduled_time) > now:
                continue
            if action.last_executed is not None and as_utc(action.last_executed) >= as_utc(action.scheduled_time):
                continue
            due.append(action)
        return due

    def save_action(self, action: ScheduledActionResponse) -> ScheduledActionResponse:
        self.store.put(TABLE, action.model_dump(mode="json"))
        return action
