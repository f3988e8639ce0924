from typing import List, Tuple
import logging

try:
    import hcl2
except ImportError:
    raise ImportError("Please install python-hcl2: pip install python-hcl2")

from tfdash.core.exceptions import RenderError
from tfdash.modules.templates.renderer import scan_blocks
from tfdash.modules.templates.terraform_parser import iter_variable_blocks

logger = logging.getLogger(__name__)


class TerraformValidator:
    """Validate a template body against best practices"""

    @staticmethod
    def validate(terraform_code: str) -> Tuple[bool, List[str]]:
        """
        Validate a Terraform template body.
        Returns (is_valid, list_of_errors_or_warnings)
        """
        errors = []
        warnings = []

        if not terraform_code or not terraform_code.strip():
            errors.append("Template body is empty")
            return False, errors

        # Block boundaries must be recoverable or the template can never render
        try:
            segments = scan_blocks(terraform_code)
        except RenderError as e:
            errors.append(f"Malformed block structure: {e.message}")
            return False, errors

        seen = set()
        for segment in segments:
            if not segment.is_block:
                continue
            if segment.key in seen:
                warnings.append(f"Duplicate {'.'.join(segment.key)} declaration will be ignored")
            seen.add(segment.key)

        try:
            parsed = hcl2.loads(terraform_code)
        except Exception as e:
            error_type = type(e).__name__
            errors.append(f"Syntax error ({error_type}): {str(e)}")
            return False, errors + warnings

        for var_name, var_config in iter_variable_blocks(parsed):
            if "description" not in var_config:
                warnings.append(f"Variable '{var_name}' is missing a description")
            if "type" not in var_config:
                warnings.append(f"Variable '{var_name}' is missing a type definition")

        if "resource" not in parsed and "module" not in parsed:
            warnings.append("Template declares no resources or modules")

        all_issues = errors + warnings
        return len(errors) == 0, all_issues
