"""
Render a stored template plus parameter values into the two documents a
Terraform workspace needs: ``main.tf`` and ``terraform.tfvars``.

Templates are frequently assembled by concatenating snippets, so the same
``variable``/``data``/``output``/``resource`` block may appear more than once,
which Terraform rejects as a duplicate declaration. The body is split into
top-level blocks by a small scanner and only the first block per key is kept.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from tfdash.core.exceptions import InvalidVariableValue, MissingVariable, RenderError
from tfdash.modules.templates.schemas import TemplateVariable, VariableType

logger = logging.getLogger(__name__)

CONFIGURATION_FILE = "main.tf"
VALUES_FILE = "terraform.tfvars"

BLOCK_KINDS = ("variable", "data", "output", "resource")

PROVIDER_PREAMBLE = """terraform {
  required_version = ">= 1.0"
  required_providers {
    aws = {
      source  = "hashicorp/aws"
      version = "~> 5.0"
    }
  }
}

provider "aws" {
  region = var.aws_region

  default_tags {
    tags = {
      Environment = var.environment
      ManagedBy   = "tfdash"
    }
  }
}
"""

IMPLICIT_VARIABLES = """variable "aws_region" {
  type        = string
  description = "AWS region"
  default     = "us-east-1"
}

variable "environment" {
  type        = string
  description = "Environment name"
  default     = "dev"
}
"""

_LABEL = r'(?:"([^"\n]*)"|([A-Za-z_][A-Za-z0-9_-]*))'
_HEADER_RE = re.compile(
    r"[ \t]*(" + "|".join(BLOCK_KINDS) + r")[ \t]+" + _LABEL + r"(?:[ \t]+" + _LABEL + r")?[ \t]*\{"
)
_HEREDOC_RE = re.compile(r"<<-?([A-Za-z_][A-Za-z0-9_-]*)[ \t]*\r?\n")


@dataclass(frozen=True)
class Segment:
    """A slice of template text; ``key`` is set for top-level declaration blocks."""

    text: str
    kind: Optional[str] = None
    key: Optional[Tuple[str, ...]] = None

    @property
    def is_block(self) -> bool:
        return self.key is not None


@dataclass(frozen=True)
class RenderedDocuments:
    configuration: str
    values_file: str


def _line_no(text: str, pos: int) -> int:
    return text.count("\n", 0, pos) + 1


def _skip_string(text: str, pos: int) -> int:
    """Return the index just past the quoted string starting at ``pos``."""
    n = len(text)
    j = pos + 1
    while j < n:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == '"':
            return j + 1
        if c == "\n":
            break
        if text.startswith("$${", j) or text.startswith("%%{", j):
            j += 3
            continue
        if text.startswith("${", j) or text.startswith("%{", j):
            j = _skip_interpolation(text, j + 2)
            continue
        j += 1
    raise RenderError(f"Unterminated string literal at line {_line_no(text, pos)}")


def _skip_interpolation(text: str, pos: int) -> int:
    n = len(text)
    depth = 1
    j = pos
    while j < n:
        c = text[j]
        if c == '"':
            j = _skip_string(text, j)
            continue
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return j + 1
        j += 1
    raise RenderError(f"Unterminated template interpolation at line {_line_no(text, pos)}")


def _skip_heredoc(text: str, match: "re.Match") -> int:
    """Return the index of the newline ending the heredoc terminator line."""
    marker = match.group(1)
    pos = match.end()
    while True:
        nl = text.find("\n", pos)
        line = text[pos:] if nl == -1 else text[pos:nl]
        if line.strip() == marker:
            return len(text) if nl == -1 else nl
        if nl == -1:
            raise RenderError(f"Unterminated heredoc <<{marker} at line {_line_no(text, match.start())}")
        pos = nl + 1


def scan_blocks(text: str) -> List[Segment]:
    """
    Split ``text`` into plain-text segments and top-level declaration blocks.

    Brace depth is tracked across the whole document while skipping string
    literals (including ``${...}`` interpolations), comments and heredocs, so
    braces inside those never affect block boundaries. A block segment runs from
    the start of its header line to the closing brace, plus the rest of that
    line when it is blank.
    """
    segments: List[Segment] = []
    n = len(text)
    depth = 0
    i = 0
    text_start = 0
    line_start = True
    block: Optional[Tuple[str, Tuple[str, ...], int]] = None

    while i < n:
        if line_start and depth == 0:
            header = _HEADER_RE.match(text, i)
            if header:
                if i > text_start:
                    segments.append(Segment(text[text_start:i]))
                kind = header.group(1)
                first = header.group(2) if header.group(2) is not None else header.group(3)
                second = header.group(4) if header.group(4) is not None else header.group(5)
                key = (kind, first) if second is None else (kind, first, second)
                block = (kind, key, i)
                depth = 1
                i = header.end()
                line_start = False
                continue

        c = text[i]
        if c == "\n":
            line_start = True
            i += 1
            continue
        line_start = False

        if c == '"':
            i = _skip_string(text, i)
            continue
        if c == "#" or text.startswith("//", i):
            nl = text.find("\n", i)
            i = n if nl == -1 else nl
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                raise RenderError(f"Unterminated block comment at line {_line_no(text, i)}")
            i = end + 2
            continue
        if text.startswith("<<", i):
            heredoc = _HEREDOC_RE.match(text, i)
            if heredoc:
                i = _skip_heredoc(text, heredoc)
                continue

        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth < 0:
                raise RenderError(f"Unbalanced closing brace at line {_line_no(text, i)}")
            if depth == 0 and block is not None:
                kind, key, start = block
                end = i + 1
                nl = text.find("\n", end)
                rest_end = n if nl == -1 else nl + 1
                if not text[end:rest_end].strip():
                    end = rest_end
                segments.append(Segment(text[start:end], kind, key))
                block = None
                text_start = end
                line_start = end == 0 or text[end - 1] == "\n"
                i = end
                continue
        i += 1

    if block is not None:
        kind, key, start = block
        raise RenderError(f"Unterminated {kind} block {'.'.join(key[1:])} starting at line {_line_no(text, start)}")
    if depth != 0:
        raise RenderError(f"Unbalanced braces: {depth} block(s) left open")
    if text_start < n:
        segments.append(Segment(text[text_start:]))
    return segments


def deduplicate(text: str, seen: Optional[Set[Tuple[str, ...]]] = None) -> str:
    """Drop every declaration block whose key was already seen; the first occurrence wins."""
    seen = set() if seen is None else seen
    kept = []
    for segment in scan_blocks(text):
        if segment.is_block:
            if segment.key in seen:
                logger.debug(f"Dropping duplicate {'.'.join(segment.key)} block")
                continue
            seen.add(segment.key)
        kept.append(segment.text)
    return "".join(kept)


def format_value(var_type: VariableType, value: Any) -> str:
    """Render one tfvars literal. Every VariableType member has exactly one branch."""
    if var_type is VariableType.LIST:
        return "[" + ", ".join(json.dumps(str(item), ensure_ascii=False) for item in value) + "]"
    if var_type is VariableType.STRING:
        return json.dumps(str(value), ensure_ascii=False)
    if var_type is VariableType.BOOLEAN:
        return "true" if value else "false"
    if var_type is VariableType.NUMBER:
        return json.dumps(value)
    if var_type is VariableType.MAP:
        return json.dumps(value, sort_keys=True, ensure_ascii=False)
    raise ValueError(f"Unhandled variable type: {var_type}")


def coerce_value(variable: TemplateVariable, value: Any) -> Any:
    """Convert a submitted value to the declared type (form inputs often arrive as strings)."""
    var_type = variable.type
    if var_type is VariableType.NUMBER:
        if isinstance(value, bool):
            raise InvalidVariableValue(variable.name, "expected a number")
        if isinstance(value, (int, float)):
            coerced = value
        elif isinstance(value, str):
            try:
                coerced = int(value)
            except ValueError:
                try:
                    coerced = float(value)
                except ValueError:
                    raise InvalidVariableValue(variable.name, f"'{value}' is not a number")
        else:
            raise InvalidVariableValue(variable.name, "expected a number")
    elif var_type is VariableType.BOOLEAN:
        if isinstance(value, bool):
            coerced = value
        elif isinstance(value, str) and value.strip().lower() in ("true", "false"):
            coerced = value.strip().lower() == "true"
        else:
            raise InvalidVariableValue(variable.name, "expected a boolean")
    elif var_type is VariableType.LIST:
        if not isinstance(value, (list, tuple)):
            raise InvalidVariableValue(variable.name, "expected a list")
        coerced = list(value)
    elif var_type is VariableType.MAP:
        if not isinstance(value, dict):
            raise InvalidVariableValue(variable.name, "expected a map")
        coerced = value
    elif var_type is VariableType.STRING:
        if isinstance(value, (list, tuple, dict)):
            raise InvalidVariableValue(variable.name, "expected a string")
        coerced = str(value).lower() if isinstance(value, bool) else str(value)
    else:
        raise ValueError(f"Unhandled variable type: {var_type}")

    if variable.allowed_values and coerced not in variable.allowed_values:
        allowed = ", ".join(str(v) for v in variable.allowed_values)
        raise InvalidVariableValue(variable.name, f"must be one of: {allowed}")
    return coerced


def resolve_values(
    variables: List[TemplateVariable],
    values: Dict[str, Any],
    environment: str,
    region: str,
) -> Dict[str, Tuple[VariableType, Any]]:
    """Merge reserved entries and user values into an ordered name -> (tag, value) map."""
    for variable in variables:
        if values.get(variable.name) is None and variable.required and variable.default is None:
            raise MissingVariable(variable.name)

    declared = {v.name: v for v in variables}
    resolved: Dict[str, Tuple[VariableType, Any]] = {
        "aws_region": (VariableType.STRING, region),
        "environment": (VariableType.STRING, environment),
    }
    for name, value in values.items():
        if value is None:
            continue
        if name in declared:
            resolved[name] = (declared[name].type, coerce_value(declared[name], value))
            continue
        var_type = VariableType.infer(value)
        if var_type is None:
            raise InvalidVariableValue(name, f"unsupported value type {type(value).__name__}")
        resolved[name] = (var_type, value)
    return resolved


def _declaration_block(variable: TemplateVariable) -> str:
    description = variable.description or f"Variable {variable.name}"
    lines = [
        f'variable "{variable.name}" {{',
        f"  type        = {variable.type.terraform_type}",
        f"  description = {json.dumps(description, ensure_ascii=False)}",
    ]
    if variable.default is not None:
        default = coerce_value(variable, variable.default)
        lines.append(f"  default     = {format_value(variable.type, default)}")
    if variable.sensitive:
        lines.append("  sensitive   = true")
    lines.append("}")
    return "\n".join(lines) + "\n"


def render_configuration(terraform_code: str, variables: Optional[List[TemplateVariable]] = None) -> str:
    """
    Build ``main.tf``: provider preamble, implicit variables, declarations for
    catalogued variables the body does not declare itself, then the deduplicated
    body. Declarations in the body always win over generated ones.
    """
    body_keys = {segment.key for segment in scan_blocks(terraform_code) if segment.is_block}
    seen = set(body_keys)
    implicit = deduplicate(IMPLICIT_VARIABLES, seen)
    generated = deduplicate("\n".join(_declaration_block(v) for v in variables or []), seen)

    body = deduplicate(terraform_code)
    parts = [PROVIDER_PREAMBLE, implicit, generated, body]
    configuration = "\n\n".join(part.strip("\n") for part in parts if part.strip())
    return configuration + "\n"


def render_values_file(resolved: Dict[str, Tuple[VariableType, Any]]) -> str:
    lines = [f"{name} = {format_value(var_type, value)}" for name, (var_type, value) in resolved.items()]
    return "\n".join(lines) + "\n"


def render(template: Any, values: Dict[str, Any], *, environment: str, region: str) -> RenderedDocuments:
    """
    Render ``template`` (anything with ``terraform_code`` and ``variables``) with
    ``values``. Pure: the same inputs always give byte-identical output.

    Raises MissingVariable, InvalidVariableValue or RenderError.
    """
    variables = list(template.variables or [])
    resolved = resolve_values(variables, values or {}, environment, region)
    configuration = render_configuration(template.terraform_code, variables)
    return RenderedDocuments(configuration=configuration, values_file=render_values_file(resolved))
