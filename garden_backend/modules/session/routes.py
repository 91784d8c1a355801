from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from garden_backend.core.dependencies import get_current_session, get_session_manager
from garden_backend.core.exceptions import AuthError
from garden_backend.modules.session.schemas import (
    ChangeEmailRequest, LoginRequest, MessageResponse, PasswordResetRequest,
    ProfileImage, Session, SessionResponse
)
from garden_backend.modules.session.service import SessionManager
from typing import Optional

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=SessionResponse, status_code=201)
async def register(
    email: str = Form(...),
    password: str = Form(...),
    image: Optional[UploadFile] = File(None),
    manager: SessionManager = Depends(get_session_manager)
):
    """Register a new user with an optional profile picture"""
    profile_image = None
    if image is not None and image.filename:
        profile_image = ProfileImage(
            content=await image.read(),
            content_type=image.content_type or "image/jpeg"
        )
    try:
        session = manager.register(email, password, profile_image)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=f"Error: {e.message}")
    return SessionResponse(**session.model_dump())


@router.post("/login", response_model=SessionResponse)
async def login(
    login_data: LoginRequest,
    manager: SessionManager = Depends(get_session_manager)
):
    """Login and get access token"""
    session = manager.login(login_data.email, login_data.password)
    return SessionResponse(**session.model_dump())


@router.post("/logout", response_model=MessageResponse)
async def logout(
    session: Session = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager)
):
    """Sign out the current user"""
    manager.logout()
    return MessageResponse(message="Logged out successfully")


@router.post("/password-reset", response_model=MessageResponse)
async def request_password_reset(
    request: PasswordResetRequest,
    manager: SessionManager = Depends(get_session_manager)
):
    """Email a password reset link"""
    try:
        message = manager.request_password_reset(request.email)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return MessageResponse(message=message)


@router.put("/email", response_model=SessionResponse)
async def change_email(
    request: ChangeEmailRequest,
    session: Session = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager)
):
    """Change the current user's email"""
    updated = manager.change_email(request.new_email)
    return SessionResponse(**updated.model_dump())


@router.get("/me", response_model=SessionResponse)
async def get_current_user(session: Session = Depends(get_current_session)):
    """Current session and cached profile picture"""
    return SessionResponse(**session.model_dump())
