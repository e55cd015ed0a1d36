"""
Security module — Firebase JWT verification + Mock auth + Role guard.

Auth Flow:
1. User logs in via Firebase → gets JWT
2. Frontend sends JWT to FastAPI
3. FastAPI verifies JWT using Firebase Admin SDK
4. Backend resolves the user profile through the identity resolver (by email)
5. Backend injects: user_id, role, department
6. Route-level role guard runs; record-level ownership is checked by the workflow

Token issuance is not handled here. Unknown users are rejected.
"""

import os
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from odtrack.core.config import settings
from odtrack.core.dependencies import get_identity
from odtrack.core.exceptions import NotFound
from odtrack.core.logging_config import logger, set_user_id
from odtrack.models.user import Actor, UserRef
from odtrack.services.identity import IdentityResolver

security_scheme = HTTPBearer()

# ---------------------------------------------------------------------------
# Firebase initialization (lazy)
# ---------------------------------------------------------------------------
_firebase_app = None


def _init_firebase():
    global _firebase_app
    if _firebase_app is not None:
        return
    import firebase_admin
    from firebase_admin import credentials as fb_credentials

    cred_path = settings.FIREBASE_CREDENTIALS_PATH
    if os.path.exists(cred_path):
        cred = fb_credentials.Certificate(cred_path)
        _firebase_app = firebase_admin.initialize_app(cred)
    else:
        # Try default credentials
        _firebase_app = firebase_admin.initialize_app()


def _to_user_dict(user: UserRef, uid: str) -> dict:
    return {
        "uid": uid,
        "email": user.email,
        "role": user.role.value,
        "name": user.name,
        "user_id": user.id,
        "department": user.department,
        "year": user.year,
        "register_no": user.register_no,
        "faculty_advisor": user.faculty_advisor,
    }


# ---------------------------------------------------------------------------
# Token verification
# ---------------------------------------------------------------------------
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
    identity: IdentityResolver = Depends(get_identity),
) -> dict:
    """Validate the Bearer token and return the user dict."""
    token = credentials.credentials

    if settings.AUTH_MODE == "mock":
        user = _mock_auth(token, identity)
    else:
        user = _firebase_auth(token, identity)

    set_user_id(user["user_id"])
    return user


def _mock_auth(token: str, identity: IdentityResolver) -> dict:
    """Mock mode: token is "mock-<email>" of a known user."""
    if token.startswith("mock-"):
        email = token[5:]
        try:
            return _to_user_dict(identity.get_user_by_email(email), uid=token)
        except NotFound:
            logger.warning(f"Mock login for unknown user {email}")

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid token. Only registered institutional users can login.",
    )


def _firebase_auth(token: str, identity: IdentityResolver) -> dict:
    """Firebase mode: verify JWT, then resolve the profile."""
    _init_firebase()
    from firebase_admin import auth as fb_auth

    try:
        decoded = fb_auth.verify_id_token(token)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired Firebase token",
        )

    try:
        user = identity.get_user_by_email(decoded.get("email", ""))
    except NotFound:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not registered in any institution. Contact your institution admin.",
        )
    return _to_user_dict(user, uid=decoded["uid"])


# ---------------------------------------------------------------------------
# Role guard dependency
# ---------------------------------------------------------------------------
def require_role(allowed_roles: list[str]):
    """
    Usage:
        @router.get("/admin-only")
        async def endpoint(user=Depends(require_role(["admin"]))):
    """

    async def role_checker(
        user: dict = Depends(get_current_user),
    ) -> dict:
        if user["role"] not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user['role']}' not authorized. Required: {allowed_roles}",
            )
        return user

    return role_checker


def actor_of(user: dict) -> Actor:
    return Actor.from_user(user)
