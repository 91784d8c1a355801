# Supabase table: gardens
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

gardens:
- id: uuid (primary key, default: gen_random_uuid())
- name: text (not null)
- is_indoor: boolean (not null)
- length: numeric (not null)
- width: numeric (not null)
- region: integer (not null) - 0 through 7, not constrained
- timestamp: bigint (not null) - creation time in ms since epoch
- plants: jsonb (not null, default: '[]') - [{plant_id, x_value, y_value}, ...]

Ownership lives on users.gardens; a garden row has no owner column.
"""
