from typing import Optional

from supabase import create_client, Client
from garden_backend.config import settings


class SupabaseClient:
    _client: Client = None
    _service_client: Client = None

    @classmethod
    def get_client(cls) -> Client:
        """Process-wide anon client, for code that owns a single user's session."""
        if cls._client is None:
            cls._client = cls.new_client()
        return cls._client

    @classmethod
    def new_client(cls) -> Client:
        """Fresh anon client. HTTP requests each get one so sign-ins never leak across users."""
        return create_client(settings.supabase_url, settings.supabase_key)

    @classmethod
    def get_service_client(cls) -> Optional[Client]:
        """Client with the service_role key, or None when no key is configured."""
        if cls._service_client is None and settings.supabase_service_role_key:
            cls._service_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._service_client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def get_request_supabase() -> Client:
    return SupabaseClient.new_client()


def get_service_supabase() -> Optional[Client]:
    return SupabaseClient.get_service_client()
