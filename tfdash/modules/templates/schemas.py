from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime


class VariableType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    MAP = "map"

    @classmethod
    def from_declared(cls, raw: Optional[str]) -> "VariableType":
        """Map a Terraform type expression (``list(string)``, ``bool``, ...) onto a tag."""
        if not raw:
            return cls.STRING
        normalized = raw.strip().lower()
        head = normalized.split("(", 1)[0].strip()
        if head in ("number",):
            return cls.NUMBER
        if head in ("bool", "boolean"):
            return cls.BOOLEAN
        if head in ("list", "set", "tuple"):
            return cls.LIST
        if head in ("map", "object"):
            return cls.MAP
        return cls.STRING

    @classmethod
    def infer(cls, value: Any) -> Optional["VariableType"]:
        """Tag for an undeclared value; None when the value has no tfvars representation."""
        # bool first: bool is a subclass of int
        if isinstance(value, bool):
            return cls.BOOLEAN
        if isinstance(value, (int, float)):
            return cls.NUMBER
        if isinstance(value, str):
            return cls.STRING
        if isinstance(value, (list, tuple)):
            return cls.LIST
        if isinstance(value, dict):
            return cls.MAP
        return None

    @property
    def terraform_type(self) -> str:
        return {
            VariableType.STRING: "string",
            VariableType.NUMBER: "number",
            VariableType.BOOLEAN: "bool",
            VariableType.LIST: "list(string)",
            VariableType.MAP: "map(any)",
        }[self]


class TemplateVariable(BaseModel):
    name: str
    type: VariableType = VariableType.STRING
    description: str = ""
    required: bool = True
    default: Optional[Any] = None
    allowed_values: Optional[List[Any]] = None
    sensitive: bool = False


class TemplateCreate(BaseModel):
    name: str
    description: Optional[str] = None
    category: str = "Custom"
    terraform_code: str
    # Parsed from the terraform_code variable blocks when omitted
    variables: Optional[List[TemplateVariable]] = None


class TemplateUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    terraform_code: Optional[str] = None
    variables: Optional[List[TemplateVariable]] = None


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    category: str = "Custom"
    terraform_code: str
    variables: List[TemplateVariable] = Field(default_factory=list)
    validation_passed: bool = True
    validation_issues: List[str] = Field(default_factory=list)
    user_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RenderPreviewRequest(BaseModel):
    values: Dict[str, Any] = Field(default_factory=dict)
    environment: Optional[str] = None


class RenderPreviewResponse(BaseModel):
    configuration: str
    values_file: str
