"""
Auth API Endpoints.

Sign-in, registration and the current user's profile.
"""

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from api.dependencies import get_auth_client, get_principal
from api.models import LoginRequest, LoginResponse, RegisterRequest, RegisterResponse, UserResponse
from domain.user import Principal
from services.auth_service import SessionManager, register

router = APIRouter()


@router.post(
    "/auth/login",
    response_model=LoginResponse,
    summary="Sign In",
    description="Sign in with a username or email address and receive a bearer access token."
)
def login(request: LoginRequest, client: Client = Depends(get_auth_client)):
    """
    Sign in.

    **Errors:**
    - 401 with `No account found for that username.` when the username is unknown
    - 401 with the auth provider's message when the password is rejected
    - 401 when the account is inactive or has no portal profile
    """
    session = SessionManager(client)
    principal = session.login(request.identifier, request.password)
    if principal is None:
        raise HTTPException(status_code=401, detail=session.last_error.message)

    return LoginResponse(
        access_token=principal.access_token,
        user=UserResponse.from_domain(principal.user),
    )


@router.post(
    "/auth/register",
    response_model=RegisterResponse,
    status_code=201,
    summary="Register Account",
)
def register_account(request: RegisterRequest, client: Client = Depends(get_auth_client)):
    result = register(
        client,
        full_name=request.full_name,
        username=request.username,
        email=request.email,
        password=request.password,
        role=request.role,
        notes=request.notes,
    )

    if result.confirmation_required:
        message = "Registration successful! Please check your email to confirm your account before logging in."
    else:
        message = "Account created successfully! You can now log in."
    return RegisterResponse(
        user_id=result.user_id,
        confirmation_required=result.confirmation_required,
        message=message,
    )


@router.get("/auth/me", response_model=UserResponse, summary="Current User")
def current_user(principal: Principal = Depends(get_principal)):
    return UserResponse.from_domain(principal.user)
