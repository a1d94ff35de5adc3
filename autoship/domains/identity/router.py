import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from autoship.core.config import settings
from autoship.core.deps import get_auth, get_session, get_store, get_user_store_factory
from autoship.core.errors import ApiError, AuthError, StoreError
from autoship.core.security import bearer_token
from autoship.core.supabase import SupabaseAuth, SupabaseTables
from autoship.domains.identity.schemas import AdminSetupIn, LoginIn, LoginOut, SessionOut, SignupIn, SignupOut
from autoship.domains.identity.service import (
    SessionState,
    UserStoreFactory,
    classify_admin_access,
    fetch_profile_privileged,
    friendly_auth_error,
    grant_admin_role,
    login,
    signup,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/auth/login", response_model=LoginOut)
def login_route(
    payload: LoginIn,
    auth: SupabaseAuth = Depends(get_auth),
    store: SupabaseTables = Depends(get_store),
    user_store_factory: UserStoreFactory = Depends(get_user_store_factory),
) -> LoginOut:
    try:
        data = login(payload.email, payload.password, auth=auth, store=store, user_store_factory=user_store_factory)
    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail={"code": "LOGIN_FAILED", "message": e.message})
    return LoginOut(**data)


@router.post("/auth/signup", response_model=SignupOut)
def signup_route(payload: SignupIn, auth: SupabaseAuth = Depends(get_auth)) -> SignupOut:
    try:
        data = signup(
            auth=auth,
            email=payload.email,
            password=payload.password,
            full_name=payload.full_name,
            phone=payload.phone,
            company_name=payload.company_name,
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "SIGNUP_FAILED", "message": friendly_auth_error(e.message)},
        )
    return SignupOut(**data)


@router.post("/auth/logout", response_model=dict)
def logout_route(request: Request, auth: SupabaseAuth = Depends(get_auth)) -> dict:
    token = bearer_token(request.headers.get("authorization"))
    if token:
        try:
            auth.logout(token)
        except AuthError as e:
            # The client drops its stored session either way.
            logger.warning("upstream logout failed: %s", e)
    return {"ok": True}


@router.get("/auth/session", response_model=SessionOut)
def session_route(session: SessionState = Depends(get_session)) -> SessionOut:
    user = {"id": session.user.sub, "email": session.user.email} if session.user else None
    return SessionOut(
        state=session.kind.value,
        admin_access=classify_admin_access(session).value,
        user=user,
        profile=session.profile,
        error=session.error,
    )


@router.get("/api/profile/{user_id}")
def privileged_profile(user_id: str, store: SupabaseTables = Depends(get_store)) -> dict:
    try:
        profile = fetch_profile_privileged(store, user_id)
    except StoreError as e:
        raise ApiError(status.HTTP_404_NOT_FOUND, e.message)
    if not profile:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Profile not found")
    logger.info("profile found id=%s role=%s", profile.get("id"), profile.get("role"))
    return profile


@router.post("/api/admin/setup")
def admin_setup(
    payload: AdminSetupIn,
    store: SupabaseTables = Depends(get_store),
    x_setup_token: str | None = Header(default=None),
) -> dict:
    if settings.admin_setup_token and x_setup_token != settings.admin_setup_token:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Invalid setup token")
    if not payload.user_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "User ID is required")
    try:
        rows = grant_admin_role(store, payload.user_id)
    except StoreError as e:
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, e.message)
    if not rows:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Profile not found")
    return {"success": True, "message": "User role updated to admin successfully", "data": rows}
