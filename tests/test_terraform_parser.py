"""Tests for variable extraction and template validation."""
from tfdash.modules.templates.schemas import VariableType
from tfdash.modules.templates.terraform_parser import parse_terraform_variables
from tfdash.modules.templates.terraform_validator import TerraformValidator


VARIABLES = '''
variable "instance_type" {
  type        = string
  description = "EC2 instance type"
  default     = "t2.micro"
}

variable "instance_count" {
  type        = number
  description = "How many instances"
}

variable "subnets" {
  type        = list(string)
  description = "Subnet ids"
}

resource "aws_instance" "web" {
  count         = var.instance_count
  instance_type = var.instance_type
}
'''


class TestParseTerraformVariables:
    def test_extracts_declarations(self):
        variables = {v.name: v for v in parse_terraform_variables(VARIABLES)}
        assert set(variables) == {"instance_type", "instance_count", "subnets"}

        instance_type = variables["instance_type"]
        assert instance_type.type == VariableType.STRING
        assert instance_type.description == "EC2 instance type"
        assert instance_type.default == "t2.micro"
        assert instance_type.required is False

        assert variables["instance_count"].type == VariableType.NUMBER
        assert variables["instance_count"].required is True
        assert variables["subnets"].type == VariableType.LIST

    def test_no_variables(self):
        assert parse_terraform_variables('resource "aws_vpc" "main" {\n  cidr_block = "10.0.0.0/16"\n}\n') == []


class TestVariableType:
    def test_from_declared(self):
        assert VariableType.from_declared("bool") == VariableType.BOOLEAN
        assert VariableType.from_declared("set(string)") == VariableType.LIST
        assert VariableType.from_declared("object({ name = string })") == VariableType.MAP
        assert VariableType.from_declared(None) == VariableType.STRING

    def test_infer_checks_bool_before_number(self):
        assert VariableType.infer(True) == VariableType.BOOLEAN
        assert VariableType.infer(3) == VariableType.NUMBER
        assert VariableType.infer(object()) is None


class TestTerraformValidator:
    def test_valid_template(self):
        is_valid, issues = TerraformValidator.validate(VARIABLES)
        assert is_valid is True
        assert issues == []

    def test_empty_body(self):
        assert TerraformValidator.validate("   ") == (False, ["Template body is empty"])

    def test_malformed_blocks(self):
        is_valid, issues = TerraformValidator.validate('resource "aws_vpc" "main" {\n')
        assert is_valid is False
        assert issues[0].startswith("Malformed block structure")

    def test_warnings_do_not_fail_validation(self):
        code = 'variable "region" {}\n\nresource "aws_vpc" "main" {\n  cidr_block = "10.0.0.0/16"\n}\n'
        is_valid, issues = TerraformValidator.validate(code)
        assert is_valid is True
        assert "Variable 'region' is missing a description" in issues
        assert "Variable 'region' is missing a type definition" in issues

    def test_no_resources_warning(self):
        code = 'variable "region" {\n  type        = string\n  description = "Region"\n}\n'
        is_valid, issues = TerraformValidator.validate(code)
        assert is_valid is True
        assert issues == ["Template declares no resources or modules"]
