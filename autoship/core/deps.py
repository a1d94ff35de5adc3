from fastapi import Depends, HTTPException, Request, status

from autoship.core.supabase import (
    SupabaseAuth,
    SupabaseStorage,
    SupabaseTables,
    auth_client,
    service_tables,
    storage_client,
    user_tables,
)
from autoship.core.security import bearer_token
from autoship.domains.identity.service import (
    AdminAccess,
    SessionState,
    UserStoreFactory,
    classify_admin_access,
    resolve_session,
)

LOGIN_PATH = "/auth/login"
DASHBOARD_PATH = "/dashboard"


def get_store() -> SupabaseTables:
    return service_tables()


def get_auth() -> SupabaseAuth:
    return auth_client()


def get_storage() -> SupabaseStorage:
    return storage_client()


def get_user_store_factory() -> UserStoreFactory:
    return user_tables


def get_session(
    request: Request,
    auth: SupabaseAuth = Depends(get_auth),
    store: SupabaseTables = Depends(get_store),
    user_store_factory: UserStoreFactory = Depends(get_user_store_factory),
) -> SessionState:
    token = bearer_token(request.headers.get("authorization"))
    return resolve_session(token, auth=auth, store=store, user_store_factory=user_store_factory)


def _not_authenticated() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "NOT_AUTHENTICATED", "message": "Sign in to continue.", "redirect_to": LOGIN_PATH},
    )


def require_user(session: SessionState = Depends(get_session)) -> SessionState:
    if session.user is None:
        raise _not_authenticated()
    return session


def require_admin(session: SessionState = Depends(get_session)) -> SessionState:
    access = classify_admin_access(session)
    if access == AdminAccess.NOT_AUTHENTICATED:
        raise _not_authenticated()
    if access != AdminAccess.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "NOT_ADMIN", "message": "Admin role required", "redirect_to": DASHBOARD_PATH},
        )
    return session
