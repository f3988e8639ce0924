import os
import stat
import textwrap

import pytest

from tfdash.core.exceptions import StageCancelled, StageFailure
from tfdash.database.store import MemoryRecordStore
from tfdash.modules.deployments.service import DeploymentService
from tfdash.modules.deployments.workspace import WorkspaceManager
from tfdash.modules.templates.schemas import TemplateCreate, TemplateVariable, VariableType
from tfdash.modules.templates.service import TemplateService


INSTANCE_TEMPLATE = textwrap.dedent('''\
    variable "instance_type" {
      type        = string
      description = "EC2 instance type"
      default     = "t2.micro"
    }

    resource "aws_instance" "web" {
      ami           = "ami-123456"
      instance_type = var.instance_type
      tags = {
        Name = "web-${var.environment}"
      }
    }
    ''')


class FakeRunner:
    """Scripted stand-in for TerraformRunner: one exit code per stage call."""

    def __init__(self, exit_codes=()):
        self.exit_codes = list(exit_codes)
        self.calls = []

    def run(self, workspace_path, command, args=None, log_sink=None, context=None, timeout=None):
        self.calls.append(command)
        if context is not None and context.cancelled:
            raise StageCancelled(command)
        code = self.exit_codes.pop(0) if self.exit_codes else 0
        if log_sink:
            log_sink([f"{command}: output line"])
        if code != 0:
            raise StageFailure(command, code)


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.fixture
def template_service(store):
    return TemplateService(store)


@pytest.fixture
def deployment_service(store):
    return DeploymentService(store, max_name_attempts=5)


@pytest.fixture
def workspaces(tmp_path):
    return WorkspaceManager(tmp_path / "workspaces")


@pytest.fixture
def template(template_service):
    return template_service.create_template(
        TemplateCreate(
            name="web-server",
            description="Single EC2 instance",
            category="Compute",
            terraform_code=INSTANCE_TEMPLATE,
            variables=[
                TemplateVariable(
                    name="instance_type",
                    type=VariableType.STRING,
                    description="EC2 instance type",
                    required=False,
                    default="t2.micro",
                ),
            ],
        )
    )


@pytest.fixture
def stub_terraform(tmp_path):
    """Write an executable shell script and return its path."""

    def _make(body: str, name: str = "terraform") -> str:
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + textwrap.dedent(body))
        os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _make


@pytest.fixture
def make_runner():
    return FakeRunner


@pytest.fixture
def instance_template_code():
    return INSTANCE_TEMPLATE
