"""
Authentication routes for Renoir
"""
import os
import asyncio
import logging
from asyncio import TimeoutError as AsyncTimeoutError
from typing import Optional, Union

from fastapi import APIRouter, HTTPException, status, Depends
from fastapi.security import HTTPAuthorizationCredentials
from supabase import Client

from auth.dependencies import get_current_user, security
from auth.middleware import get_auth_middleware
from auth.utils import password_problems
from models.user import AuthResponse, RegistrationPendingResponse, UserCreate, UserLogin, UserResponse
from services.clients import get_auth_client, get_supabase
from services.ledger_service import LedgerService

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = logging.getLogger(__name__)

REGISTRATION_TIMEOUT = int(os.getenv("REGISTRATION_TIMEOUT", "120"))


def _session_token(auth_response) -> str:
    session = getattr(auth_response, "session", None)
    if session and session.access_token:
        return session.access_token
    return get_auth_middleware().create_access_token(auth_response.user.id, auth_response.user.email)


@router.post("/register", response_model=Union[AuthResponse, RegistrationPendingResponse])
async def register(
    request: UserCreate,
    auth_client: Client = Depends(get_auth_client),
    supabase: Client = Depends(get_supabase)
):
    """
    Register a new user and give them an empty subscription record
    """
    problems = password_problems(request.password)
    if problems:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=problems[0]
        )

    frontend_url = os.getenv("PUBLIC_URL", "http://localhost:3000").rstrip("/")
    try:
        auth_response = await asyncio.wait_for(
            asyncio.to_thread(
                auth_client.auth.sign_up,
                {
                    "email": request.email,
                    "password": request.password,
                    "options": {
                        "data": {"full_name": request.full_name},
                        "email_redirect_to": f"{frontend_url}/confirm-email"
                    }
                }
            ),
            timeout=REGISTRATION_TIMEOUT
        )
    except AsyncTimeoutError:
        logger.error(f"Registration timeout for email: {request.email}")
        raise HTTPException(
            status_code=status.HTTP_408_REQUEST_TIMEOUT,
            detail="Registration request timed out. Please try again."
        )
    except Exception as e:
        logger.error(f"Registration error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Registration failed. Email might already be registered."
        )

    if auth_response.user is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Registration failed. Email might already be registered."
        )

    await LedgerService(supabase).ensure_user_record(auth_response.user.id)

    if not auth_response.user.email_confirmed_at:
        logger.info(f"User registered but needs email confirmation: {request.email}")
        return RegistrationPendingResponse(
            message="Registration successful. Please check your email to confirm your account.",
            user_id=auth_response.user.id,
        )

    logger.info(f"User registered and confirmed successfully: {request.email}")
    return AuthResponse(
        access_token=_session_token(auth_response),
        user=UserResponse(id=auth_response.user.id, email=auth_response.user.email),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    request: UserLogin,
    auth_client: Client = Depends(get_auth_client),
    supabase: Client = Depends(get_supabase)
):
    """
    Login user and return access token
    """
    try:
        auth_response = await asyncio.to_thread(
            auth_client.auth.sign_in_with_password,
            {"email": request.email, "password": request.password}
        )
    except Exception as e:
        logger.error(f"Login error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if auth_response.user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    await LedgerService(supabase).ensure_user_record(auth_response.user.id)

    logger.info(f"User logged in successfully: {request.email}")
    return AuthResponse(
        access_token=_session_token(auth_response),
        user=UserResponse(id=auth_response.user.id, email=auth_response.user.email),
    )


@router.post("/logout")
async def logout(
    current_user: dict = Depends(get_current_user),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_client: Client = Depends(get_auth_client)
):
    """
    Logout user by revoking the sessions behind their token
    """
    try:
        if credentials:
            auth_client.auth.admin.sign_out(credentials.credentials)
    except Exception as e:
        # Logout never fails from the client's point of view
        logger.error(f"Logout error: {str(e)}")

    logger.info(f"User logged out: {current_user['id']}")
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: dict = Depends(get_current_user)):
    """
    Get the authenticated identity
    """
    return UserResponse(id=current_user["id"], email=current_user["email"])
