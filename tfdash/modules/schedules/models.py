# Record store table: scheduled_actions
# This file documents the expected record shape
# Actual operations are handled via the RecordStore in service.py

"""
Expected scheduled_actions table structure:
- id: uuid (primary key)
- resource_id: text (not null) - compute instance id, e.g. i-0abc...
- action: text (not null) - values: start, stop
- scheduled_time: timestamptz (not null) - next occurrence
- recurring: boolean (default: false)
- enabled: boolean (default: true) - cancellation and one-shot completion set this false
- last_executed: timestamptz (nullable)
- user_id: uuid (nullable)
- created_at: timestamp (default: now())
"""
