from fastapi import APIRouter, Depends
from tfdash.modules.templates.schemas import (
    TemplateCreate, TemplateUpdate, TemplateResponse, RenderPreviewRequest, RenderPreviewResponse
)
from tfdash.modules.templates.service import TemplateService
from tfdash.core.dependencies import get_template_service, get_current_user_id
from typing import List, Optional

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=List[TemplateResponse])
async def list_templates(
    category: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    service: TemplateService = Depends(get_template_service),
):
    """List templates, optionally filtered by category."""
    return service.list_templates(category=category, limit=limit, offset=offset)


@router.post("", response_model=TemplateResponse, status_code=201)
async def create_template(
    template_data: TemplateCreate,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service)
):
    """
    Create a new Terraform template.
    Variables are parsed from the body's variable blocks when not supplied;
    validation issues are stored with the template.
    """
    return service.create_template(template_data, user_id)


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: str,
    service: TemplateService = Depends(get_template_service)
):
    """Get template by ID"""
    return service.get_template_by_id(template_id)


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    template_data: TemplateUpdate,
    service: TemplateService = Depends(get_template_service)
):
    """Update template (refused once a deployment uses it)"""
    return service.update_template(template_id, template_data)


@router.delete("/{template_id}", status_code=204)
async def delete_template(
    template_id: str,
    service: TemplateService = Depends(get_template_service)
):
    """Delete template (refused while a deployment references it)"""
    service.delete_template(template_id)


@router.post("/{template_id}/render", response_model=RenderPreviewResponse)
async def render_template(
    template_id: str,
    request: RenderPreviewRequest,
    service: TemplateService = Depends(get_template_service)
):
    """Preview the configuration and values file a deployment would receive"""
    documents = service.render_template(template_id, request.values, request.environment)
    return RenderPreviewResponse(configuration=documents.configuration, values_file=documents.values_file)
