# Record store table: deployments
# This file documents the expected record shape
# Actual operations are handled via the RecordStore in service.py

"""
Expected deployments table structure:
- id: uuid (primary key)
- name: text (not null, unique) - auto-suffixed (-1, -2, ...) on collision
- template_id: uuid (foreign key to templates.id, not null)
- user_id: uuid (nullable) - owner reference
- environment: text (not null)
- status: text (not null, default: 'planning') - values: planning, applying, success, error,
  destroying, destroyed, destroy_failed
- terraform_vars: jsonb (not null, default: {})
- deployment_logs: text[] (default: [])
- workspace_path: text (nullable)
- error_message: text (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
- completed_at: timestamp (nullable) - set on success, error, destroyed, destroy_failed
"""
