"""
Shared OD router — one request, for anyone bound to it.
"""

from fastapi import APIRouter, Depends
from odtrack.core.dependencies import get_workflow
from odtrack.core.security import actor_of, get_current_user
from odtrack.services.workflow import ODWorkflow
from odtrack.utils.response import success_response

router = APIRouter(prefix="/api/od", tags=["OD"])


@router.get("/{od_id}")
async def get_od_request(
    od_id: str,
    user: dict = Depends(get_current_user),
    workflow: ODWorkflow = Depends(get_workflow),
):
    return success_response(data=workflow.get_request(actor_of(user), od_id))
