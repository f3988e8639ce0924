"""
Seed Templates Script
Populates the template catalogue with starter templates.
Existing templates (matched by name) are left untouched, so it is safe to rerun.
"""

import sys
from tfdash.database.store import create_store
from tfdash.modules.templates.schemas import TemplateCreate, TemplateVariable, VariableType
from tfdash.modules.templates.service import TemplateService
from typing import List
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


S3_BUCKET = '''resource "aws_s3_bucket" "main" {
  bucket = var.bucket_name

  tags = {
    Name        = var.bucket_name
    Environment = var.environment
  }
}

resource "aws_s3_bucket_versioning" "main" {
  bucket = aws_s3_bucket.main.id
  versioning_configuration {
    status = var.versioning_enabled ? "Enabled" : "Disabled"
  }
}

resource "aws_s3_bucket_server_side_encryption_configuration" "main" {
  bucket = aws_s3_bucket.main.id

  rule {
    apply_server_side_encryption_by_default {
      sse_algorithm = var.encryption_algorithm
    }
  }
}

resource "aws_s3_bucket_public_access_block" "main" {
  bucket = aws_s3_bucket.main.id

  block_public_acls       = var.block_public_access
  block_public_policy     = var.block_public_access
  ignore_public_acls      = var.block_public_access
  restrict_public_buckets = var.block_public_access
}
'''

EC2_INSTANCE = '''data "aws_ami" "amazon_linux" {
  most_recent = true
  owners      = ["amazon"]

  filter {
    name   = "name"
    values = ["al2023-ami-*-x86_64"]
  }
}

resource "aws_instance" "main" {
  ami                    = data.aws_ami.amazon_linux.id
  instance_type          = var.instance_type
  vpc_security_group_ids = var.security_group_ids

  tags = {
    Name        = var.instance_name
    Environment = var.environment
  }
}

output "instance_id" {
  value = aws_instance.main.id
}

output "public_ip" {
  value = aws_instance.main.public_ip
}
'''

STARTER_TEMPLATES = [
    TemplateCreate(
        name="S3 Bucket",
        description="Create an S3 bucket with encryption and versioning",
        category="Storage",
        terraform_code=S3_BUCKET,
        variables=[
            TemplateVariable(name="bucket_name", description="S3 bucket name (must be globally unique)"),
            TemplateVariable(name="versioning_enabled", type=VariableType.BOOLEAN,
                             description="Enable S3 bucket versioning", required=False, default=True),
            TemplateVariable(name="encryption_algorithm", description="Server-side encryption algorithm",
                             required=False, default="AES256", allowed_values=["AES256", "aws:kms"]),
            TemplateVariable(name="block_public_access", type=VariableType.BOOLEAN,
                             description="Block all public access to the bucket", required=False, default=True),
        ],
    ),
    TemplateCreate(
        name="EC2 Instance",
        description="Launch a single Amazon Linux EC2 instance",
        category="Compute",
        terraform_code=EC2_INSTANCE,
        variables=[
            TemplateVariable(name="instance_name", description="Name tag for the instance"),
            TemplateVariable(name="instance_type", description="EC2 instance type", required=False,
                             default="t3.micro", allowed_values=["t3.micro", "t3.small", "t3.medium"]),
            TemplateVariable(name="security_group_ids", type=VariableType.LIST,
                             description="Security groups to attach", required=False, default=[]),
        ],
    ),
]


def seed_templates(service: TemplateService, templates: List[TemplateCreate] = STARTER_TEMPLATES) -> int:
    """Create each template whose name is not in the catalogue yet. Returns the number created."""
    logger.info("Seeding templates...")
    existing_names = {t.name for t in service.list_templates(limit=10_000)}
    created_count = 0

    for template in templates:
        if template.name in existing_names:
            logger.debug(f"Template already present: {template.name}")
            continue
        try:
            service.create_template(template)
            created_count += 1
            logger.debug(f"Created template: {template.name}")
        except Exception as e:
            logger.error(f"Error creating template {template.name}: {e}")

    logger.info(f"Templates seeded: {created_count} created, {len(templates) - created_count} skipped")
    return created_count


def main():
    """Main function to seed the template catalogue"""
    try:
        seed_templates(TemplateService(create_store()))
        logger.info("Seeding completed successfully!")
    except Exception as e:
        logger.error(f"Error during seeding: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
