# Supabase tables: users, auth.users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

users:
- id: uuid (primary key, references auth.users.id)
- email: text (not null) - email at registration time
- profile_pic: text (not null, default: 'none') - public URL or the sentinel 'none'
- gardens: text[] (not null, default: '{}') - ids of the user's gardens, set semantics

Functions (see supabase/migrations):
- add_user_garden(p_user_id uuid, p_garden_id text) - appends the id unless present
- remove_user_garden(p_user_id uuid, p_garden_id text) - removes every occurrence

Storage:
- bucket 'profile-images', objects keyed profiles/<email>
"""
