from garden_backend.database.supabase_client import (
    SupabaseClient, get_request_supabase, get_service_supabase, get_supabase
)

__all__ = ["SupabaseClient", "get_request_supabase", "get_service_supabase", "get_supabase"]
