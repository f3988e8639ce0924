import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from tfdash.config import settings
from tfdash.modules.schedules.resource_actions import ResourceActions
from tfdash.modules.schedules.schemas import ActionKind, ScheduledActionResponse
from tfdash.modules.schedules.service import ScheduleService, as_utc

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActionScheduler:
    """
    Periodically executes due start/stop actions.

    An action is due when it is enabled, its ``scheduled_time`` has passed and it
    has not run since that time. After a successful run a one-shot action is
    disabled and a recurring one moves forward by whole periods to the first
    occurrence after now, so missed occurrences are collapsed into one run.
    """

    def __init__(
        self,
        schedule_service: ScheduleService,
        resource_actions: ResourceActions,
        clock: Callable[[], datetime] = utc_now,
        interval: Optional[float] = None,
        period: Optional[timedelta] = None,
    ):
        self.schedule_service = schedule_service
        self.resource_actions = resource_actions
        self.clock = clock
        self.interval = interval if interval is not None else settings.scheduler_interval_sec
        self.period = period or timedelta(hours=settings.scheduler_recurring_period_hours)
        if self.period <= timedelta(0):
            raise ValueError("Recurring period must be positive")
        self._task: Optional[asyncio.Task] = None

    def _execute(self, action: ScheduledActionResponse) -> None:
        if action.action == ActionKind.START:
            self.resource_actions.start_resource(action.resource_id)
        else:
            self.resource_actions.stop_resource(action.resource_id)

    def _next_occurrence(self, scheduled_time: datetime, now: datetime) -> datetime:
        next_time = as_utc(scheduled_time)
        while next_time <= now:
            next_time += self.period
        return next_time

    def tick(self) -> List[str]:
        """Run every due action once. Returns the ids that executed."""
        now = as_utc(self.clock())
        due = self.schedule_service.list_due_actions(now)
        if not due:
            logger.debug("No scheduled actions due")
            return []

        logger.info(f"Found {len(due)} scheduled action(s) due")
        executed = []
        for action in due:
            try:
                self._execute(action)
            except Exception as e:
                # Left unchanged so it is picked up again on the next scan
                logger.error(f"Scheduled {action.action.value} of {action.resource_id} ({action.id}) failed: {str(e)}")
                continue

            update = {"last_executed": now}
            if action.recurring:
                update["scheduled_time"] = self._next_occurrence(action.scheduled_time, now)
            else:
                update["enabled"] = False
            try:
                self.schedule_service.save_action(action.model_copy(update=update))
            except Exception as e:
                logger.error(f"Executed scheduled action {action.id} but could not record it: {str(e)}")
            executed.append(action.id)
            logger.info(f"Executed scheduled {action.action.value} for resource {action.resource_id}")
        return executed

    async def run_forever(self) -> None:
        """Background loop; the blocking tick runs in a worker thread."""
        while True:
            try:
                await asyncio.to_thread(self.tick)
            except Exception as e:
                logger.error(f"Error in action scheduler loop: {str(e)}")
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
            logger.info(f"Action scheduler started - checking every {self.interval:g} seconds")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Action scheduler stopped")
