# app/services/auth_service.py
import logging
import uuid

from fastapi import HTTPException, status
from supabase import AuthError, Client

from app.schemas.auth import AuthSession, Credentials
from app.services.search_history import RecentSearches

logger = logging.getLogger(__name__)


class AuthService:
    """
    Account flows delegated to Supabase Auth.

    The API never sees password hashes; it only relays credentials and
    returns the issued tokens. Profiles are provisioned lazily by the
    auth dependency on the first authenticated request.
    """

    def __init__(self, client: Client, recent_searches: RecentSearches):
        self.client = client
        self.recent_searches = recent_searches

    def signup(self, payload: Credentials) -> AuthSession:
        try:
            response = self.client.auth.sign_up(
                {"email": payload.email, "password": payload.password}
            )
        except AuthError as e:
            logger.warning("Signup failed for %s: %s", payload.email, e)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Signup failed: {e}",
            )

        if response.user is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Signup failed",
            )

        # session is None while email confirmation is pending
        return self._to_auth_session(response.user, response.session, payload.email)

    def login(self, payload: Credentials) -> AuthSession:
        try:
            response = self.client.auth.sign_in_with_password(
                {"email": payload.email, "password": payload.password}
            )
        except AuthError as e:
            logger.info("Login failed for %s: %s", payload.email, e)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Login failed: {e}",
            )

        if response.user is None or response.session is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Login failed",
            )

        return self._to_auth_session(response.user, response.session, payload.email)

    def logout(self, user_id: uuid.UUID, access_token: str) -> None:
        """
        Revoke the session's refresh tokens and forget per-session state.
        """
        try:
            self.client.auth.admin.sign_out(access_token)
        except AuthError as e:
            logger.warning("Logout failed for user %s: %s", user_id, e)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Logout failed: {e}",
            )
        self.recent_searches.clear(user_id)

    @staticmethod
    def _to_auth_session(user, session, fallback_email: str) -> AuthSession:
        return AuthSession(
            user_id=uuid.UUID(str(user.id)),
            email=user.email or fallback_email,
            access_token=session.access_token if session else None,
            refresh_token=session.refresh_token if session else None,
            expires_in=session.expires_in if session else None,
        )
