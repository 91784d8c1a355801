"""
Core dependencies for route protection and service construction
"""

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from garden_backend.core.exceptions import AuthError
from garden_backend.database.supabase_client import get_request_supabase, get_service_supabase
from garden_backend.modules.gardens.service import GardenRepository
from garden_backend.modules.session.schemas import Session
from garden_backend.modules.session.service import SessionManager
from supabase import Client
from typing import Optional

security = HTTPBearer()


def get_session_manager(
    supabase: Client = Depends(get_request_supabase),
    admin_client: Optional[Client] = Depends(get_service_supabase)
) -> SessionManager:
    """One manager and one client per request; nothing signed in outlives the request"""
    return SessionManager(supabase, admin_client=admin_client)


def get_current_session(
    credentials: HTTPAuthorizationCredentials = Security(security),
    manager: SessionManager = Depends(get_session_manager)
) -> Session:
    """Resolve the bearer token into a session on the request's manager"""
    try:
        return manager.resume(credentials.credentials)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message
        )


def get_garden_repository(
    session: Session = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager)
) -> GardenRepository:
    # resume() has bound the token to the manager's client
    return GardenRepository(manager.supabase, session)
