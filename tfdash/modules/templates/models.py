# Record store table: templates
# This file documents the expected record shape
# Actual operations are handled via the RecordStore in service.py

"""
Expected templates table structure:
- id: uuid (primary key)
- name: text (not null)
- description: text (nullable)
- category: text (not null, default: 'Custom')
- terraform_code: text (not null) - raw configuration body, may repeat blocks
- variables: jsonb (not null, default: []) - [{name, type, description, required, default, allowed_values, sensitive}]
- validation_passed: boolean (default: true)
- validation_issues: text[] (default: [])
- user_id: uuid (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

A template referenced by any deployments.template_id can be neither updated nor deleted.
"""
