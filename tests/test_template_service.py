"""Tests for the template catalogue."""
import pytest

from tfdash.core.exceptions import MissingVariable, NotFoundError, TemplateInUse
from tfdash.modules.deployments.schemas import DeploymentCreate
from tfdash.modules.templates.schemas import TemplateCreate, TemplateUpdate


class TestTemplateService:
    def test_create_parses_variables_when_omitted(self, template_service):
        template = template_service.create_template(TemplateCreate(
            name="vpc",
            terraform_code=(
                'variable "cidr" {\n  type        = string\n  description = "VPC CIDR"\n}\n\n'
                'resource "aws_vpc" "main" {\n  cidr_block = var.cidr\n}\n'
            ),
        ), user_id="user-1")
        assert [v.name for v in template.variables] == ["cidr"]
        assert template.variables[0].required is True
        assert template.validation_passed is True
        assert template.category == "Custom"
        assert template.user_id == "user-1"

    def test_invalid_body_is_stored_with_issues(self, template_service):
        template = template_service.create_template(TemplateCreate(
            name="broken", terraform_code='resource "aws_vpc" "main" {\n', variables=[],
        ))
        assert template.validation_passed is False
        assert template.validation_issues

    def test_get_unknown(self, template_service):
        with pytest.raises(NotFoundError):
            template_service.get_template_by_id("missing")

    def test_list_by_category(self, template_service, template):
        template_service.create_template(TemplateCreate(name="other", category="Storage", terraform_code="", variables=[]))
        assert [t.id for t in template_service.list_templates(category="Compute")] == [template.id]
        assert len(template_service.list_templates()) == 2
        assert len(template_service.list_templates(limit=1)) == 1

    def test_update_unreferenced(self, template_service, template):
        updated = template_service.update_template(template.id, TemplateUpdate(description="Bigger"))
        assert updated.description == "Bigger"
        assert updated.updated_at is not None
        assert template_service.get_template_by_id(template.id).description == "Bigger"

    def test_referenced_template_is_immutable(self, template_service, deployment_service, template):
        deployment_service.create_deployment(DeploymentCreate(name="demo", template_id=template.id))
        with pytest.raises(TemplateInUse):
            template_service.update_template(template.id, TemplateUpdate(name="renamed"))
        with pytest.raises(TemplateInUse):
            template_service.delete_template(template.id)
        assert template_service.get_template_by_id(template.id).name == "web-server"

    def test_delete(self, template_service, template):
        assert template_service.delete_template(template.id) is True
        with pytest.raises(NotFoundError):
            template_service.get_template_by_id(template.id)

    def test_render_preview(self, template_service, template):
        documents = template_service.render_template(template.id, {"instance_type": "t3.large"}, "qa")
        assert 'instance_type = "t3.large"' in documents.values_file
        assert 'environment = "qa"' in documents.values_file
        assert 'resource "aws_instance" "web"' in documents.configuration

    def test_render_preview_missing_variable(self, template_service):
        template = template_service.create_template(TemplateCreate(
            name="needs-ami",
            terraform_code='variable "ami_id" {\n  type = string\n}\n',
        ))
        with pytest.raises(MissingVariable):
            template_service.render_template(template.id, {})
