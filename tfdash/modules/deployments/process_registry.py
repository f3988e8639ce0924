"""Thread-safe registry of deployment_id -> RunContext of the running sequence, for hard cancel."""
import threading
import logging

from tfdash.modules.deployments.process_runner import RunContext

logger = logging.getLogger(__name__)
_lock = threading.Lock()
_registry: dict[str, RunContext] = {}


def register(deployment_id: str, context: RunContext) -> None:
    with _lock:
        _registry[deployment_id] = context
        logger.debug(f"Registered run context for deployment {deployment_id}")


def unregister(deployment_id: str, context: RunContext | None = None) -> None:
    """Remove the entry; when ``context`` is given only if it is still the registered one."""
    with _lock:
        if context is not None and _registry.get(deployment_id) is not context:
            return
        _registry.pop(deployment_id, None)
        logger.debug(f"Unregistered deployment {deployment_id}")


def get_context(deployment_id: str) -> RunContext | None:
    with _lock:
        return _registry.get(deployment_id)


def terminate(deployment_id: str, wait_seconds: float = 3.0) -> bool:
    """Cancel the running sequence for deployment_id. Returns True if one was found."""
    with _lock:
        context = _registry.get(deployment_id)
    if context is None:
        return False
    context.cancel(wait_seconds)
    logger.info(f"Cancelled running sequence for deployment {deployment_id}")
    return True
