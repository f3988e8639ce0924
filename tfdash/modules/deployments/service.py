from tfdash.database.store import RecordStore
from tfdash.modules.deployments.schemas import DeploymentCreate, DeploymentResponse, DeploymentStatus
from tfdash.modules.templates.service import TemplateService
from tfdash.core.exceptions import NameExhausted, NotFoundError
from tfdash.config import settings
from typing import Dict, List, Optional
from contextlib import contextmanager
from datetime import datetime, timezone
import threading
import uuid
import logging

logger = logging.getLogger(__name__)

TABLE = "deployments"

# Serializes name probing + insert so two concurrent creates cannot claim the same name
_name_lock = threading.Lock()
# Per-deployment write locks: read-modify-write of logs must not interleave for one id.
# Entries carry a holder count and are dropped once nobody holds or waits on them.
_write_locks: Dict[str, List] = {}
_write_locks_guard = threading.Lock()


@contextmanager
def _write_lock(deployment_id: str):
    with _write_locks_guard:
        entry = _write_locks.setdefault(deployment_id, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _write_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                _write_locks.pop(deployment_id, None)


class DeploymentService:
    def __init__(self, store: RecordStore, max_name_attempts: Optional[int] = None):
        self.store = store
        self.template_service = TemplateService(store)
        self.max_name_attempts = max_name_attempts or settings.max_name_attempts

    def name_exists(self, name: str) -> bool:
        return bool(self.store.list(TABLE, filters={"name": name}))

    def resolve_unique_name(self, name: str) -> str:
        """Return ``name`` or the first free ``name-N`` (N = 1..max_name_attempts)."""
        if not self.name_exists(name):
            return name
        for counter in range(1, self.max_name_attempts + 1):
            candidate = f"{name}-{counter}"
            if not self.name_exists(candidate):
                return candidate
        raise NameExhausted(name, self.max_name_attempts)

    def create_deployment(self, deployment_data: DeploymentCreate, user_id: Optional[str] = None) -> DeploymentResponse:
        """Create a new deployment record in the initial planning state"""
        # Raises NotFoundError before anything is written
        self.template_service.get_template_by_id(deployment_data.template_id)

        with _name_lock:
            final_name = self.resolve_unique_name(deployment_data.name)
            if final_name != deployment_data.name:
                logger.info(f"Deployment name '{deployment_data.name}' taken, using '{final_name}'")
            deployment = DeploymentResponse(
                id=str(uuid.uuid4()),
                name=final_name,
                template_id=deployment_data.template_id,
                user_id=user_id,
                environment=deployment_data.environment or settings.default_environment,
                status=DeploymentStatus.PLANNING,
                terraform_vars=deployment_data.terraform_vars or {},
                deployment_logs=["Deployment created"],
                created_at=datetime.now(timezone.utc),
            )
            self.store.put(TABLE, deployment.model_dump(mode="json"))
        logger.info(f"Created deployment {deployment.id} ({final_name})")
        return deployment

    def get_deployment_by_id(self, deployment_id: str) -> DeploymentResponse:
        """Get deployment by ID"""
        record = self.store.get(TABLE, deployment_id)
        if not record:
            raise NotFoundError("Deployment not found")
        return DeploymentResponse(**record)

    def list_deployments(
        self,
        status: Optional[DeploymentStatus] = None,
        template_id: Optional[str] = None,
    ) -> List[DeploymentResponse]:
        """List deployments, newest first"""
        filters = {}
        if status:
            filters["status"] = DeploymentStatus(status).value
        if template_id:
            filters["template_id"] = template_id
        records = self.store.list(TABLE, filters=filters or None, order_by="created_at", desc=True)
        return [DeploymentResponse(**r) for r in records]

    def update_deployment_status(
        self,
        deployment_id: str,
        status: DeploymentStatus,
        logs: Optional[List[str]] = None,
        workspace_path: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> DeploymentResponse:
        """Update status and append ``logs`` to the stored log, atomically per deployment id."""
        status = DeploymentStatus(status)
        with _write_lock(deployment_id):
            current = self.get_deployment_by_id(deployment_id)
            now = datetime.now(timezone.utc)
            update_data = {"status": status, "updated_at": now}

            if logs:
                update_data["deployment_logs"] = current.deployment_logs + [line for line in logs if line.strip()]

            if workspace_path:
                update_data["workspace_path"] = workspace_path

            if error_message:
                update_data["error_message"] = error_message

            if status.is_terminal:
                update_data["completed_at"] = now
            else:
                update_data["completed_at"] = None

            updated = current.model_copy(update=update_data)
            self.store.put(TABLE, updated.model_dump(mode="json"))
            return updated
