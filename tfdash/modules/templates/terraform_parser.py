from typing import Dict, List, Any, Tuple
import logging

try:
    import hcl2
except ImportError:
    raise ImportError("Please install python-hcl2: pip install python-hcl2")

from tfdash.modules.templates.schemas import TemplateVariable, VariableType

logger = logging.getLogger(__name__)


def _unwrap(value: Any) -> Any:
    """
    Normalize python-hcl2 output across versions: single values may come back
    wrapped in a list, type expressions as ``${string}`` and string literals
    with their quotes kept.
    """
    if isinstance(value, list) and len(value) == 1:
        value = value[0]
    if isinstance(value, str):
        value = value.strip()
        if value.startswith("${") and value.endswith("}"):
            value = value[2:-1].strip()
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
    return value


def iter_variable_blocks(parsed: Dict[str, Any]) -> List[Tuple[str, Dict[str, Any]]]:
    """Return (name, config) pairs for every ``variable`` block in an hcl2.loads() result."""
    var_block = parsed.get("variable")
    var_items: List[Tuple[str, Dict[str, Any]]] = []
    if isinstance(var_block, dict):
        for var_name, var_config in var_block.items():
            var_items.append((var_name, var_config if isinstance(var_config, dict) else {}))
    elif isinstance(var_block, list):
        # HCL2 returns variables as a list of dicts: [{'var_name': {...}}, ...]
        for var_item in var_block:
            if not isinstance(var_item, dict):
                logger.warning(f"Unexpected variable item type: {type(var_item)}")
                continue
            for var_name, var_config in var_item.items():
                if var_name.startswith("__"):
                    continue
                var_items.append((_unwrap(var_name), var_config if isinstance(var_config, dict) else {}))
    elif var_block is not None:
        logger.warning(f"Unexpected variable block type: {type(var_block)}")
    return var_items


def parse_terraform_variables(terraform_code: str) -> List[TemplateVariable]:
    """
    Extract variable declarations from a template body so the catalogue can
    drive form generation and required-variable checks.
    Repeated declarations keep the first one, matching how the renderer dedupes.
    """
    parsed = hcl2.loads(terraform_code)

    variables: Dict[str, TemplateVariable] = {}
    for var_name, var_config in iter_variable_blocks(parsed):
        if var_name in variables:
            continue
        var_info = {
            "name": var_name,
            "type": VariableType.STRING,
            "description": "",
            "default": None,
            "required": True,
            "sensitive": False,
        }
        if "type" in var_config:
            var_info["type"] = VariableType.from_declared(str(_unwrap(var_config["type"])))
        if "description" in var_config:
            var_info["description"] = str(_unwrap(var_config["description"]))
        if "default" in var_config:
            default = var_config["default"]
            # A list default is the value itself, not an hcl2 wrapper
            if var_info["type"] is not VariableType.LIST:
                default = _unwrap(default)
            var_info["default"] = default
            var_info["required"] = False
        if "sensitive" in var_config:
            sensitive = _unwrap(var_config["sensitive"])
            var_info["sensitive"] = sensitive is True or str(sensitive).lower() == "true"
        variables[var_name] = TemplateVariable(**var_info)

    return list(variables.values())
