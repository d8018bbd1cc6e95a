# app/routers/auth.py
from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials

from app.core.auth import bearer_scheme, require_auth
from app.core.supabase_client import supabase_public
from app.models.user import User
from app.schemas.auth import AuthSession, Credentials, LogoutResponse
from app.services.auth_service import AuthService
from app.services.search_history import recent_searches

router = APIRouter(prefix="/auth", tags=["Auth"])


def get_auth_service() -> AuthService:
    return AuthService(supabase_public(), recent_searches)


@router.post(
    "/signup",
    response_model=AuthSession,
    status_code=status.HTTP_201_CREATED,
)
def signup(
    payload: Credentials,
    service: AuthService = Depends(get_auth_service),
):
    """
    Register with email + password via Supabase Auth.

    Tokens are empty while email confirmation is pending.
    """
    return service.signup(payload)


@router.post("/login", response_model=AuthSession)
def login(
    payload: Credentials,
    service: AuthService = Depends(get_auth_service),
):
    """
    Sign in and receive a Supabase access token for the Authorization header.
    """
    return service.login(payload)


@router.post("/logout", response_model=LogoutResponse)
def logout(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    current_user: User = Depends(require_auth),
    service: AuthService = Depends(get_auth_service),
):
    """
    Revoke the current session.
    """
    service.logout(current_user.id, credentials.credentials)
    return LogoutResponse(message="Logged out")
