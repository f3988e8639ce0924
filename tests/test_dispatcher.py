"""Tests for per-deployment serialization of lifecycle sequences."""
import threading

import pytest

from tfdash.modules.deployments import process_registry
from tfdash.modules.deployments.dispatcher import DeploymentDispatcher
from tfdash.modules.deployments.process_runner import RunContext


class BlockingWorker:
    """Records start/finish of each sequence; apply blocks until released."""

    def __init__(self):
        self.events = []
        self.release = threading.Event()
        self.started = {}
        self._lock = threading.Lock()

    def _record(self, event):
        with self._lock:
            self.events.append(event)

    def apply(self, deployment_id):
        self._record(("apply-start", deployment_id))
        self.started.setdefault(deployment_id, threading.Event()).set()
        self.release.wait(timeout=5)
        self._record(("apply-end", deployment_id))

    def destroy(self, deployment_id):
        self._record(("destroy-start", deployment_id))
        self._record(("destroy-end", deployment_id))


@pytest.fixture
def worker():
    worker = BlockingWorker()
    yield worker
    worker.release.set()


class TestDeploymentDispatcher:
    def test_same_id_runs_in_submission_order(self, worker):
        dispatcher = DeploymentDispatcher(worker, max_workers=4)
        dispatcher.submit_apply("d1")
        worker.started.setdefault("d1", threading.Event()).wait(timeout=5)
        dispatcher.submit_destroy("d1")

        assert dispatcher.is_busy("d1")
        assert ("destroy-start", "d1") not in worker.events

        worker.release.set()
        dispatcher.shutdown(wait=True)
        assert worker.events == [
            ("apply-start", "d1"),
            ("apply-end", "d1"),
            ("destroy-start", "d1"),
            ("destroy-end", "d1"),
        ]
        assert not dispatcher.is_busy("d1")

    def test_different_ids_run_concurrently(self, worker):
        dispatcher = DeploymentDispatcher(worker, max_workers=4)
        dispatcher.submit_apply("d1")
        dispatcher.submit_apply("d2")

        assert worker.started.setdefault("d1", threading.Event()).wait(timeout=5)
        assert worker.started.setdefault("d2", threading.Event()).wait(timeout=5)

        worker.release.set()
        dispatcher.shutdown(wait=True)

    def test_failing_sequence_does_not_block_queue(self):
        calls = []

        class FailingWorker:
            def apply(self, deployment_id):
                calls.append("apply")
                raise RuntimeError("boom")

            def destroy(self, deployment_id):
                calls.append("destroy")

        dispatcher = DeploymentDispatcher(FailingWorker(), max_workers=1)
        dispatcher.submit_apply("d1")
        dispatcher.submit_destroy("d1")
        dispatcher.shutdown(wait=True)
        assert calls == ["apply", "destroy"]

    def test_cancel_uses_registered_context(self, worker):
        dispatcher = DeploymentDispatcher(worker, max_workers=1)
        context = RunContext()
        process_registry.register("d9", context)
        try:
            assert dispatcher.cancel("d9") is True
            assert context.cancelled
        finally:
            process_registry.unregister("d9")
        assert dispatcher.cancel("d9") is False
        dispatcher.shutdown(wait=True)
