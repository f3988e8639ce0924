from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ActionKind(str, Enum):
    START = "start"
    STOP = "stop"


class ScheduledActionCreate(BaseModel):
    resource_id: str = Field(min_length=1)
    action: ActionKind
    scheduled_time: datetime
    recurring: bool = False


class ScheduledActionResponse(BaseModel):
    id: str
    resource_id: str
    action: ActionKind
    scheduled_time: datetime
    recurring: bool = False
    enabled: bool = True
    last_executed: Optional[datetime] = None
    user_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
