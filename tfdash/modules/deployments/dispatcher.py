import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Deque, Dict, Optional

from tfdash.config import settings
from tfdash.modules.deployments import process_registry
from tfdash.modules.deployments.deployment_worker import DeploymentWorker

logger = logging.getLogger(__name__)


class DeploymentDispatcher:
    """
    Runs lifecycle sequences on a bounded thread pool.

    Sequences for different deployments run concurrently; sequences for the same
    deployment id run strictly one after another in submission order, so a
    destroy requested while an apply is in flight waits for the apply to finish.
    """

    def __init__(self, worker: DeploymentWorker, max_workers: Optional[int] = None):
        self.worker = worker
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.max_concurrent_deployments,
            thread_name_prefix="deployment",
        )
        self._lock = threading.Lock()
        self._pending: Dict[str, Deque[Callable[[], None]]] = {}
        self._active: set = set()

    def submit_apply(self, deployment_id: str) -> None:
        self._submit(deployment_id, "apply", lambda: self.worker.apply(deployment_id))

    def submit_destroy(self, deployment_id: str) -> None:
        self._submit(deployment_id, "destroy", lambda: self.worker.destroy(deployment_id))

    def cancel(self, deployment_id: str) -> bool:
        """Hard-cancel the running sequence for deployment_id, if any."""
        return process_registry.terminate(deployment_id)

    def is_busy(self, deployment_id: str) -> bool:
        with self._lock:
            return deployment_id in self._active

    def _submit(self, deployment_id: str, action: str, job: Callable[[], None]) -> None:
        with self._lock:
            self._pending.setdefault(deployment_id, deque()).append(job)
            if deployment_id in self._active:
                logger.info(f"Queued {action} for deployment {deployment_id} behind running sequence")
                return
            self._active.add(deployment_id)
        logger.info(f"Dispatching {action} for deployment {deployment_id}")
        self._executor.submit(self._drain, deployment_id)

    def _drain(self, deployment_id: str) -> None:
        while True:
            with self._lock:
                queue = self._pending.get(deployment_id)
                if not queue:
                    self._pending.pop(deployment_id, None)
                    self._active.discard(deployment_id)
                    return
                job = queue.popleft()
            try:
                job()
            except Exception as e:
                logger.exception(f"Unhandled error in sequence for deployment {deployment_id}: {str(e)}")

    def shutdown(self, wait: bool = True) -> None:
        logger.info("Shutting down deployment dispatcher")
        self._executor.shutdown(wait=wait)
