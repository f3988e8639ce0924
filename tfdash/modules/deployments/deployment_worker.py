"""
Deployment lifecycle sequences.

``apply``: render -> workspace -> init -> plan -> apply, ending in ``success``
or ``error``. ``destroy``: init -> destroy against the existing workspace,
ending in ``destroyed`` or ``destroy_failed``. Each sequence stops at the first
failure; later stages never run. Both run on dispatcher threads, one sequence
per deployment id at a time.
"""
import logging
import threading
import time
from typing import List, Optional

from tfdash.config import settings
from tfdash.core.exceptions import NotFoundError, TfDashError
from tfdash.modules.deployments import process_registry
from tfdash.modules.deployments.process_runner import RunContext, TerraformRunner
from tfdash.modules.deployments.schemas import DeploymentStatus
from tfdash.modules.deployments.service import DeploymentService
from tfdash.modules.deployments.workspace import WorkspaceManager
from tfdash.modules.templates.renderer import render

logger = logging.getLogger(__name__)

STAGE_ARGS = {
    "init": ["-input=false", "-no-color"],
    "plan": ["-input=false", "-no-color"],
    "apply": ["-auto-approve", "-input=false", "-no-color"],
    "destroy": ["-auto-approve", "-input=false", "-no-color"],
}


class DeploymentLog:
    """
    Collects log lines for one sequence and writes them together with the
    status. Streamed stage output is buffered and flushed at most every
    ``flush_interval`` seconds; ``persist`` always writes immediately.
    """

    def __init__(
        self,
        service: DeploymentService,
        deployment_id: str,
        status: DeploymentStatus,
        flush_interval: float,
    ):
        self.service = service
        self.deployment_id = deployment_id
        self.status = status
        self.flush_interval = flush_interval
        self._buffer: List[str] = []
        self._lock = threading.Lock()
        self._last_flush = time.monotonic()

    def sink(self, lines: List[str]) -> None:
        """Log sink handed to the runner; called from its output thread."""
        filtered = [line for line in lines if line.strip()]
        if not filtered:
            return
        with self._lock:
            self._buffer.extend(filtered)
            if time.monotonic() - self._last_flush < self.flush_interval:
                return
            try:
                self._write(self.status)
            except Exception as e:
                # Lines stay buffered and go out with the next status write
                logger.error(f"Error updating logs for deployment {self.deployment_id}: {str(e)}")

    def persist(self, status: DeploymentStatus, *lines: str, **fields) -> None:
        with self._lock:
            self._buffer.extend(lines)
            self._write(status, **fields)

    def _write(self, status: DeploymentStatus, **fields) -> None:
        self.service.update_deployment_status(self.deployment_id, status, logs=list(self._buffer), **fields)
        self.status = status
        self._buffer.clear()
        self._last_flush = time.monotonic()


class DeploymentWorker:
    def __init__(
        self,
        deployment_service: DeploymentService,
        workspaces: Optional[WorkspaceManager] = None,
        runner: Optional[TerraformRunner] = None,
        stage_timeout: Optional[float] = None,
        log_flush_interval: Optional[float] = None,
    ):
        self.deployment_service = deployment_service
        self.template_service = deployment_service.template_service
        self.workspaces = workspaces or WorkspaceManager()
        self.runner = runner or TerraformRunner()
        self.stage_timeout = stage_timeout if stage_timeout is not None else settings.stage_timeout_sec
        self.log_flush_interval = (
            log_flush_interval if log_flush_interval is not None else settings.log_flush_interval_sec
        )

    def _run_stage(self, log: DeploymentLog, work_dir, stage: str, context: RunContext, status: DeploymentStatus):
        log.persist(status, f"Running terraform {stage}...")
        self.runner.run(
            work_dir,
            stage,
            STAGE_ARGS[stage],
            log_sink=log.sink,
            context=context,
            timeout=self.stage_timeout,
        )
        log.persist(status, f"terraform {stage} completed successfully")

    def _fail(self, log: DeploymentLog, status: DeploymentStatus, error: Exception) -> None:
        message = error.message if isinstance(error, TfDashError) else str(error)
        try:
            log.persist(status, f"Error: {message}", error_message=message)
        except Exception as update_error:
            logger.error(f"Failed to update deployment {log.deployment_id} status: {str(update_error)}")

    def apply(self, deployment_id: str, context: Optional[RunContext] = None) -> Optional[DeploymentStatus]:
        """Run the create/apply sequence. Returns the final status (None if the record is gone)."""
        context = context or RunContext()
        process_registry.register(deployment_id, context)
        log = DeploymentLog(self.deployment_service, deployment_id, DeploymentStatus.PLANNING, self.log_flush_interval)
        try:
            deployment = self.deployment_service.get_deployment_by_id(deployment_id)
            template = self.template_service.get_template_by_id(deployment.template_id)

            documents = render(
                template,
                deployment.terraform_vars,
                environment=deployment.environment,
                region=settings.aws_region,
            )
            work_dir = self.workspaces.prepare(deployment_id, documents)
            log.persist(
                DeploymentStatus.PLANNING,
                "Generated Terraform configuration files",
                workspace_path=str(work_dir),
            )

            self._run_stage(log, work_dir, "init", context, DeploymentStatus.PLANNING)
            self._run_stage(log, work_dir, "plan", context, DeploymentStatus.PLANNING)
            self._run_stage(log, work_dir, "apply", context, DeploymentStatus.APPLYING)

            log.persist(DeploymentStatus.SUCCESS, "Deployment completed successfully!")
            logger.info(f"Deployment {deployment_id} completed successfully")
            return DeploymentStatus.SUCCESS

        except NotFoundError as e:
            logger.error(f"Deployment {deployment_id} cannot run: {e.message}")
            if not self._record_exists(deployment_id):
                return None
            self._fail(log, DeploymentStatus.ERROR, e)
            return DeploymentStatus.ERROR
        except TfDashError as e:
            logger.error(f"Deployment {deployment_id} failed: {e.message}")
            self._fail(log, DeploymentStatus.ERROR, e)
            return DeploymentStatus.ERROR
        except Exception as e:
            logger.exception(f"Deployment worker error for {deployment_id}: {str(e)}")
            self._fail(log, DeploymentStatus.ERROR, e)
            return DeploymentStatus.ERROR
        finally:
            process_registry.unregister(deployment_id, context)

    def destroy(self, deployment_id: str, context: Optional[RunContext] = None) -> Optional[DeploymentStatus]:
        """Run the teardown sequence against the deployment's existing workspace."""
        context = context or RunContext()
        process_registry.register(deployment_id, context)
        log = DeploymentLog(self.deployment_service, deployment_id, DeploymentStatus.DESTROYING, self.log_flush_interval)
        try:
            if not self._record_exists(deployment_id):
                logger.error(f"Destroy requested for unknown deployment {deployment_id}")
                return None

            log.persist(DeploymentStatus.DESTROYING, "Starting destruction...")

            if not self.workspaces.exists(deployment_id):
                log.persist(DeploymentStatus.DESTROYED, "No Terraform workspace found - marking as destroyed")
                logger.info(f"Deployment {deployment_id} had no workspace, marked destroyed")
                return DeploymentStatus.DESTROYED

            work_dir = self.workspaces.path_for(deployment_id)
            # init again: local .terraform state may be gone after a restart
            self._run_stage(log, work_dir, "init", context, DeploymentStatus.DESTROYING)
            self._run_stage(log, work_dir, "destroy", context, DeploymentStatus.DESTROYING)
            log.persist(DeploymentStatus.DESTROYED, "Infrastructure destroyed successfully")

            removed, reason = self.workspaces.destroy(work_dir)
            if removed:
                log.persist(DeploymentStatus.DESTROYED, "Workspace cleaned up")
            else:
                log.persist(DeploymentStatus.DESTROYED, f"Warning: Failed to clean up workspace directory: {reason}")
            logger.info(f"Destroy of deployment {deployment_id} completed successfully")
            return DeploymentStatus.DESTROYED

        except TfDashError as e:
            logger.error(f"Destroy of deployment {deployment_id} failed: {e.message}")
            self._fail(log, DeploymentStatus.DESTROY_FAILED, e)
            return DeploymentStatus.DESTROY_FAILED
        except Exception as e:
            logger.exception(f"Destroy worker error for {deployment_id}: {str(e)}")
            self._fail(log, DeploymentStatus.DESTROY_FAILED, e)
            return DeploymentStatus.DESTROY_FAILED
        finally:
            process_registry.unregister(deployment_id, context)

    def _record_exists(self, deployment_id: str) -> bool:
        try:
            self.deployment_service.get_deployment_by_id(deployment_id)
            return True
        except NotFoundError:
            return False
