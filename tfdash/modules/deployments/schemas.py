from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime


class DeploymentStatus(str, Enum):
    PLANNING = "planning"
    APPLYING = "applying"
    SUCCESS = "success"
    ERROR = "error"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"
    DESTROY_FAILED = "destroy_failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return not self.is_terminal


TERMINAL_STATUSES = frozenset({
    DeploymentStatus.SUCCESS,
    DeploymentStatus.ERROR,
    DeploymentStatus.DESTROYED,
    DeploymentStatus.DESTROY_FAILED,
})


class DeploymentCreate(BaseModel):
    name: str = Field(min_length=1)
    template_id: str
    environment: Optional[str] = None
    terraform_vars: Dict[str, Any] = Field(default_factory=dict)


class DeploymentResponse(BaseModel):
    id: str
    name: str
    template_id: str
    user_id: Optional[str] = None
    environment: str
    status: DeploymentStatus
    terraform_vars: Dict[str, Any] = Field(default_factory=dict)
    deployment_logs: List[str] = Field(default_factory=list)
    workspace_path: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeploymentLogsResponse(BaseModel):
    deployment_id: str
    logs: List[str]
    status: DeploymentStatus
    has_more: bool = False


class DeploymentActionResponse(BaseModel):
    deployment_id: str
    status: DeploymentStatus
    message: str
