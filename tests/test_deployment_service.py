"""Tests for deployment records: naming, creation and status updates."""
import threading

import pytest

from tfdash.core.exceptions import NameExhausted, NotFoundError
from tfdash.modules.deployments import service as deployment_service_module
from tfdash.modules.deployments.schemas import DeploymentCreate, DeploymentStatus


def create(service, template, name="demo", **kwargs):
    return service.create_deployment(DeploymentCreate(name=name, template_id=template.id, **kwargs))


class TestDeploymentNaming:
    def test_collisions_get_numeric_suffix(self, deployment_service, template):
        names = [create(deployment_service, template).name for _ in range(3)]
        assert names == ["demo", "demo-1", "demo-2"]

    def test_exhausted_after_max_attempts(self, deployment_service, template):
        # base name plus five suffixes
        for _ in range(6):
            create(deployment_service, template)
        with pytest.raises(NameExhausted) as exc_info:
            create(deployment_service, template)
        assert exc_info.value.attempts == 5

    def test_other_names_unaffected(self, deployment_service, template):
        create(deployment_service, template, name="demo")
        assert create(deployment_service, template, name="other").name == "other"


class TestCreateDeployment:
    def test_initial_record(self, deployment_service, template):
        deployment = create(deployment_service, template, terraform_vars={"instance_type": "t3.small"})
        assert deployment.status == DeploymentStatus.PLANNING
        assert deployment.environment == "dev"
        assert deployment.terraform_vars == {"instance_type": "t3.small"}
        assert deployment.deployment_logs == ["Deployment created"]
        assert deployment.completed_at is None
        assert deployment_service.get_deployment_by_id(deployment.id) == deployment

    def test_unknown_template(self, deployment_service):
        with pytest.raises(NotFoundError):
            deployment_service.create_deployment(DeploymentCreate(name="demo", template_id="missing"))
        assert deployment_service.list_deployments() == []

    def test_get_unknown_deployment(self, deployment_service):
        with pytest.raises(NotFoundError):
            deployment_service.get_deployment_by_id("missing")


class TestUpdateDeploymentStatus:
    def test_logs_are_appended_in_order(self, deployment_service, template):
        deployment = create(deployment_service, template)
        deployment_service.update_deployment_status(deployment.id, DeploymentStatus.PLANNING, logs=["one", " ", "two"])
        deployment_service.update_deployment_status(deployment.id, DeploymentStatus.APPLYING, logs=["three"])
        stored = deployment_service.get_deployment_by_id(deployment.id)
        assert stored.deployment_logs == ["Deployment created", "one", "two", "three"]
        assert stored.status == DeploymentStatus.APPLYING
        assert stored.updated_at is not None

    def test_terminal_status_sets_completed_at(self, deployment_service, template):
        deployment = create(deployment_service, template)
        updated = deployment_service.update_deployment_status(
            deployment.id, DeploymentStatus.ERROR, logs=["Error: boom"], error_message="boom"
        )
        assert updated.completed_at is not None
        assert updated.error_message == "boom"

        reopened = deployment_service.update_deployment_status(deployment.id, DeploymentStatus.DESTROYING)
        assert reopened.completed_at is None

    def test_concurrent_updates_keep_every_line(self, deployment_service, template):
        deployment = create(deployment_service, template)

        def write(prefix):
            for i in range(20):
                deployment_service.update_deployment_status(
                    deployment.id, DeploymentStatus.APPLYING, logs=[f"{prefix}-{i}"]
                )

        threads = [threading.Thread(target=write, args=(p,)) for p in ("a", "b", "c")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        logs = deployment_service.get_deployment_by_id(deployment.id).deployment_logs
        assert len(logs) == 61
        assert [line for line in logs if line.startswith("a-")] == [f"a-{i}" for i in range(20)]

    def test_write_locks_released_after_update(self, deployment_service, template):
        deployments = [create(deployment_service, template, name=f"d{i}") for i in range(3)]
        for deployment in deployments:
            deployment_service.update_deployment_status(deployment.id, DeploymentStatus.SUCCESS, logs=["done"])
        assert deployment_service_module._write_locks == {}

    def test_list_filters(self, deployment_service, template):
        first = create(deployment_service, template)
        create(deployment_service, template)
        deployment_service.update_deployment_status(first.id, DeploymentStatus.SUCCESS)

        succeeded = deployment_service.list_deployments(status=DeploymentStatus.SUCCESS)
        assert [d.id for d in succeeded] == [first.id]
        assert len(deployment_service.list_deployments(template_id=template.id)) == 2
