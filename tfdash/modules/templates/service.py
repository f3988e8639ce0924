from tfdash.database.store import RecordStore
from tfdash.modules.templates.schemas import (
    TemplateCreate, TemplateUpdate, TemplateResponse, TemplateVariable
)
from tfdash.modules.templates.terraform_parser import parse_terraform_variables
from tfdash.modules.templates.terraform_validator import TerraformValidator
from tfdash.modules.templates.renderer import render, RenderedDocuments
from tfdash.core.exceptions import NotFoundError, TemplateInUse
from tfdash.config import settings
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
import uuid
import logging

logger = logging.getLogger(__name__)

TABLE = "templates"


class TemplateService:
    def __init__(self, store: RecordStore):
        self.store = store
        self.validator = TerraformValidator()

    def _resolve_variables(
        self, terraform_code: str, variables: Optional[List[TemplateVariable]]
    ) -> List[TemplateVariable]:
        """Explicit declarations win; otherwise parse them from the body's variable blocks."""
        if variables is not None:
            return variables
        try:
            return parse_terraform_variables(terraform_code)
        except Exception as e:
            logger.warning(f"Could not parse template variables, storing none: {str(e)}")
            return []

    def create_template(self, template_data: TemplateCreate, user_id: Optional[str] = None) -> TemplateResponse:
        """Create a new template"""
        is_valid, validation_issues = self.validator.validate(template_data.terraform_code)
        if not is_valid:
            logger.warning(f"Template '{template_data.name}' failed validation: {validation_issues}")

        variables = self._resolve_variables(template_data.terraform_code, template_data.variables)
        template = TemplateResponse(
            id=str(uuid.uuid4()),
            name=template_data.name,
            description=template_data.description,
            category=template_data.category or "Custom",
            terraform_code=template_data.terraform_code,
            variables=variables,
            validation_passed=is_valid,
            validation_issues=validation_issues,
            user_id=user_id,
            created_at=datetime.now(timezone.utc),
        )
        self.store.put(TABLE, template.model_dump(mode="json"))
        logger.info(f"Created template {template.id} ({template.name}) with {len(variables)} variable(s)")
        return template

    def get_template_by_id(self, template_id: str) -> TemplateResponse:
        """Get template by ID."""
        record = self.store.get(TABLE, template_id)
        if not record:
            raise NotFoundError("Template not found")
        return TemplateResponse(**record)

    def list_templates(
        self,
        category: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[TemplateResponse]:
        """List templates, newest first, optionally filtered by category."""
        filters = {"category": category} if category else None
        records = self.store.list(TABLE, filters=filters, order_by="created_at", desc=True)
        return [TemplateResponse(**r) for r in records[offset:offset + limit]]

    def is_referenced(self, template_id: str) -> bool:
        return bool(self.store.list("deployments", filters={"template_id": template_id}))

    def update_template(self, template_id: str, template_data: TemplateUpdate) -> TemplateResponse:
        """Update template. Templates already used by a deployment are immutable."""
        template = self.get_template_by_id(template_id)
        if self.is_referenced(template_id):
            raise TemplateInUse("Cannot modify template that is being used in deployments")

        update_data: Dict[str, Any] = {}
        if template_data.name:
            update_data["name"] = template_data.name
        if template_data.description is not None:
            update_data["description"] = template_data.description
        if template_data.category:
            update_data["category"] = template_data.category
        if template_data.terraform_code is not None:
            update_data["terraform_code"] = template_data.terraform_code
            is_valid, validation_issues = self.validator.validate(template_data.terraform_code)
            update_data["validation_passed"] = is_valid
            update_data["validation_issues"] = validation_issues
        if template_data.variables is not None or template_data.terraform_code is not None:
            update_data["variables"] = self._resolve_variables(
                update_data.get("terraform_code", template.terraform_code), template_data.variables
            )

        updated = template.model_copy(update={**update_data, "updated_at": datetime.now(timezone.utc)})
        # model_copy skips validation, so round-trip through the model for nested variables
        updated = TemplateResponse(**updated.model_dump())
        self.store.put(TABLE, updated.model_dump(mode="json"))
        return updated

    def delete_template(self, template_id: str) -> bool:
        """Delete template unless a deployment references it."""
        self.get_template_by_id(template_id)
        if self.is_referenced(template_id):
            raise TemplateInUse("Cannot delete template that is being used in deployments")
        deleted = self.store.delete(TABLE, template_id)
        logger.info(f"Deleted template {template_id}")
        return deleted

    def render_template(
        self, template_id: str, values: Dict[str, Any], environment: Optional[str] = None
    ) -> RenderedDocuments:
        """Preview the documents a deployment of this template would get."""
        template = self.get_template_by_id(template_id)
        return render(
            template,
            values,
            environment=environment or settings.default_environment,
            region=settings.aws_region,
        )
