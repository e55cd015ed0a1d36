"""
Auth router — who am I. Token issuance lives with the identity provider.
"""

from fastapi import APIRouter, Depends
from odtrack.core.security import get_current_user
from odtrack.schemas.auth import UserProfile
from odtrack.utils.response import success_response

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    return success_response(data=UserProfile.model_validate(user))
