"""
HOD router — HOD queue and HOD-level OD decision.
"""

from fastapi import APIRouter, Depends
from odtrack.core.dependencies import get_workflow
from odtrack.core.security import actor_of, require_role
from odtrack.schemas.workflow import ODAction
from odtrack.services.workflow import ODWorkflow
from odtrack.utils.response import success_response

router = APIRouter(prefix="/api/hod", tags=["HOD"])


@router.get("/od/pending")
async def get_pending_od_hod(
    user: dict = Depends(require_role(["hod"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    return success_response(data=workflow.list_for_hod(actor_of(user)))


@router.patch("/od/{od_id}/action")
async def hod_od_action(
    od_id: str,
    body: ODAction,
    user: dict = Depends(require_role(["hod"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    record = await workflow.hod_decision(actor_of(user), od_id, body.action, body.comment)
    return success_response(data=record, message=f"OD {body.action.value}d by HOD")
