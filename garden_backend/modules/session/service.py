import logging
from typing import Callable, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, AuthRetryableError
from supabase import AuthError as SupabaseAuthError

from garden_backend.config import settings
from garden_backend.core.exceptions import AuthError, GardenBackendError, TransientNetworkError
from garden_backend.modules.session.schemas import NO_PROFILE_PIC, ProfileImage, Session
from garden_backend.modules.session.storage import get_image_storage, profile_image_key

logger = logging.getLogger(__name__)

EMAIL_IN_USE = "email-already-in-use"
EMAIL_NOT_FOUND = "email-not-found"
NO_CURRENT_USER = "no-current-user"
PROFILE_NOT_CREATED = "profile-not-created"
RESET_LINK_SENT = "The reset link has been sent!"


def _category(error: Exception) -> str:
    """Platform error code, falling back to a generic category."""
    return getattr(error, "code", None) or "unknown-error"


class SessionManager:
    """Owns the current identity and the reference to its profile row.

    A session comes either from register/login on this manager's client, or
    from ``resume`` with an access token issued elsewhere. Token sessions are
    never signed in on the client, so logout and email changes go through the
    auth admin API for that token's user. The garden repository receives
    ``current_session`` explicitly instead of reading shared module state.
    """

    def __init__(self, supabase: Client, image_storage=None, admin_client: Optional[Client] = None):
        self.supabase = supabase
        self.image_storage = image_storage or get_image_storage(supabase)
        self.admin_client = admin_client
        self._session: Optional[Session] = None
        self._token_session = False

    @property
    def current_session(self) -> Optional[Session]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def profile_ref(self) -> Optional[str]:
        return self._session.profile_ref if self._session else None

    @property
    def profile_pic(self) -> Optional[str]:
        return self._session.profile_pic if self._session else None

    def require_session(self) -> Session:
        if self._session is None:
            raise AuthError("no current user", category=NO_CURRENT_USER)
        return self._session

    def register(self, email: str, password: str, image: Optional[ProfileImage] = None) -> Session:
        """Upload the optional profile picture, create the identity, then its profile row."""
        # Checked before the upload so a duplicate never touches the owner's picture
        if self._email_registered(email):
            logger.warning("Registration rejected for %s: email already registered", email)
            raise AuthError.from_category(EMAIL_IN_USE)

        image_key = None
        url = NO_PROFILE_PIC
        if image is not None:
            image_key = profile_image_key(email)
            try:
                url = self.image_storage.upload_file(image.content, image_key, image.content_type)
            except FileExistsError:
                # No profile owns this email, so the object is left from an earlier failed attempt
                logger.warning("Replacing unowned profile picture %s", image_key)
                url = self.image_storage.upload_file(image.content, image_key, image.content_type, overwrite=True)

        try:
            auth_response = self.supabase.auth.sign_up({
                "email": email,
                "password": password,
            })
        except (AuthRetryableError, httpx.TransportError) as e:
            self._discard_image(image_key)
            raise TransientNetworkError(f"Registration failed: {str(e)}") from e
        except SupabaseAuthError as e:
            self._discard_image(image_key)
            logger.warning("Registration rejected for %s: %s", email, e)
            raise AuthError.from_category(_category(e)) from e

        user = auth_response.user
        # With email confirmation on, Supabase answers a duplicate signup
        # with a user that has no identities instead of an error.
        if user is None or getattr(user, "identities", None) == []:
            self._discard_image(image_key)
            logger.warning("Registration rejected for %s: email already registered", email)
            raise AuthError.from_category(EMAIL_IN_USE)

        # Without a session (email confirmation pending) only the service client may write the row
        writer = self.admin_client or self.supabase
        try:
            writer.table("users").insert({
                "id": user.id,
                "email": email,
                "gardens": [],
                "profile_pic": url,
            }).execute()
        except (APIError, httpx.TransportError) as e:
            logger.error("Profile row for user %s not created: %s", user.id, e)
            self._discard_image(image_key)
            self._discard_identity(user.id)
            raise AuthError("account could not be created", category=PROFILE_NOT_CREATED) from e

        self._session = Session(
            user_id=user.id,
            email=user.email or email,
            profile_pic=url,
            access_token=self._access_token(auth_response),
        )
        self._token_session = False
        logger.info("Registered user %s", user.id)
        return self._session

    def login(self, email: str, password: str, on_success: Optional[Callable[[Session], None]] = None) -> Session:
        """Sign in and cache the profile picture; calls ``on_success`` with the new session."""
        try:
            auth_response = self.supabase.auth.sign_in_with_password({
                "email": email,
                "password": password
            })
        except (AuthRetryableError, httpx.TransportError) as e:
            raise TransientNetworkError(f"Login failed: {str(e)}") from e
        except SupabaseAuthError as e:
            # The platform does not say whether the email or the password was wrong
            logger.info("Login rejected for %s: %s", email, e)
            raise AuthError("incorrect email or password", category=_category(e)) from e

        user = auth_response.user
        if user is None:
            raise AuthError("incorrect email or password")

        self._session = Session(
            user_id=user.id,
            email=user.email or email,
            profile_pic=self._fetch_profile_pic(user.id),
            access_token=self._access_token(auth_response),
        )
        self._token_session = False
        logger.info("User %s logged in", user.id)
        if on_success is not None:
            on_success(self._session)
        return self._session

    def resume(self, access_token: str) -> Session:
        """Establish the session from an access token issued by an earlier login."""
        try:
            user_response = self.supabase.auth.get_user(jwt=access_token)
        except (AuthRetryableError, httpx.TransportError) as e:
            raise TransientNetworkError(f"Authentication failed: {str(e)}") from e
        except SupabaseAuthError as e:
            raise AuthError("invalid or expired token", category=_category(e)) from e

        if not user_response or not user_response.user:
            raise AuthError("invalid or expired token")
        user = user_response.user
        # Row level security on users only shows the caller's own row
        self.supabase.postgrest.auth(access_token)
        self._session = Session(
            user_id=user.id,
            email=user.email or "",
            profile_pic=self._fetch_profile_pic(user.id),
            access_token=access_token,
        )
        self._token_session = True
        return self._session

    def on_identity_change(self, callback: Callable[[Session], None]):
        """Observe auth state transitions.

        Whenever a signed-in identity is reported the cached session is refreshed
        and ``callback`` runs with it. Returns the platform subscription; call its
        ``unsubscribe()`` to stop observing.
        """
        def handle(event, auth_session):
            if auth_session is None or auth_session.user is None:
                return
            user = auth_session.user
            if self._session is not None and self._session.user_id == user.id:
                profile_pic = self._session.profile_pic
            else:
                profile_pic = self._fetch_profile_pic(user.id)
            self._session = Session(
                user_id=user.id,
                email=user.email or "",
                profile_pic=profile_pic,
                access_token=getattr(auth_session, "access_token", None),
            )
            self._token_session = False
            logger.debug("Auth state %s for user %s", event, user.id)
            callback(self._session)

        return self.supabase.auth.on_auth_state_change(handle)

    def request_password_reset(self, email: str) -> str:
        """Send a password reset link. Returns the confirmation message for the user."""
        if not self._email_registered(email):
            raise AuthError("email was not found", category=EMAIL_NOT_FOUND)

        options = {}
        if settings.password_reset_redirect_url:
            options["redirect_to"] = settings.password_reset_redirect_url
        try:
            self.supabase.auth.reset_password_for_email(email, options)
        except (AuthRetryableError, httpx.TransportError) as e:
            raise TransientNetworkError(f"Password reset failed: {str(e)}") from e
        except SupabaseAuthError as e:
            logger.warning("Password reset rejected for %s: %s", email, e)
            raise AuthError.from_category(_category(e)) from e
        return RESET_LINK_SENT

    def logout(self) -> None:
        if self._token_session:
            # Revokes the refresh tokens of the token's user only
            self.supabase.auth.admin.sign_out(self._session.access_token)
        else:
            self.supabase.auth.sign_out()
        if self._session is not None:
            logger.info("User %s logged out", self._session.user_id)
        self._session = None
        self._token_session = False

    def change_email(self, new_email: str) -> Session:
        """Request an email change for the signed-in identity."""
        session = self.require_session()
        try:
            if self._token_session:
                response = self._require_admin().auth.admin.update_user_by_id(
                    session.user_id,
                    {"email": new_email}
                )
            else:
                response = self.supabase.auth.update_user({"email": new_email})
        except (AuthRetryableError, httpx.TransportError) as e:
            raise TransientNetworkError(f"Email change failed: {str(e)}") from e
        except SupabaseAuthError as e:
            raise AuthError.from_category(_category(e)) from e

        # Supabase keeps the old address until the change is confirmed
        if response is not None and response.user is not None and response.user.email:
            if response.user.id == session.user_id:
                self._session = session.model_copy(update={"email": response.user.email})
        return self._session

    def _email_registered(self, email: str) -> bool:
        """Ask the database whether a profile uses ``email``; the function sees past row level security."""
        try:
            result = self.supabase.rpc("profile_email_exists", {"p_email": email}).execute()
        except httpx.TransportError as e:
            raise TransientNetworkError(f"Profile lookup failed: {str(e)}") from e
        return bool(result.data)

    def _fetch_profile_pic(self, user_id: str) -> str:
        result = self.supabase.table("users")\
            .select("profile_pic")\
            .eq("id", user_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            logger.warning("No profile row for user %s", user_id)
            return NO_PROFILE_PIC
        return result.data.get("profile_pic") or NO_PROFILE_PIC

    def _require_admin(self) -> Client:
        if self.admin_client is None:
            raise GardenBackendError("Service role key not configured. Cannot update users by id.")
        return self.admin_client

    def _discard_image(self, key: Optional[str]) -> None:
        if key is not None:
            self.image_storage.delete_file(key)

    def _discard_identity(self, user_id: str) -> None:
        if self.admin_client is None:
            logger.error("Identity %s has no profile row and no service key to remove it", user_id)
            return
        try:
            self.admin_client.auth.admin.delete_user(user_id)
        except Exception as e:
            logger.error("Failed to remove identity %s without profile: %s", user_id, e)

    @staticmethod
    def _access_token(auth_response) -> Optional[str]:
        session = getattr(auth_response, "session", None)
        return session.access_token if session else None
