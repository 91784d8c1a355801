from pydantic import BaseModel, EmailStr
from typing import Optional, List

NO_PROFILE_PIC = "none"


class Session(BaseModel):
    """Authenticated identity plus the cached reference to its profile row."""
    user_id: str
    email: str
    profile_pic: str = NO_PROFILE_PIC
    access_token: Optional[str] = None

    @property
    def profile_ref(self) -> str:
        """Key of the identity's row in the users table."""
        return self.user_id


class ProfileImage(BaseModel):
    content: bytes
    content_type: str = "image/jpeg"


class Profile(BaseModel):
    id: str
    email: str
    profile_pic: str = NO_PROFILE_PIC
    gardens: List[str] = []


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class ChangeEmailRequest(BaseModel):
    new_email: EmailStr


class SessionResponse(BaseModel):
    user_id: str
    email: str
    profile_pic: str
    access_token: Optional[str] = None


class MessageResponse(BaseModel):
    message: str
