"""
Faculty router — class-advisor queue, advisor decision, proof verification.
"""

from fastapi import APIRouter, Depends
from odtrack.core.dependencies import get_workflow
from odtrack.core.security import actor_of, require_role
from odtrack.schemas.workflow import ODAction, ProofVerify
from odtrack.services.workflow import ODWorkflow
from odtrack.utils.response import success_response

router = APIRouter(prefix="/api/faculty", tags=["Faculty"])


@router.get("/od/pending")
async def get_pending_od(
    user: dict = Depends(require_role(["faculty"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    return success_response(data=workflow.list_for_advisor(actor_of(user), pending_only=True))


@router.get("/od/requests")
async def get_advisee_requests(
    user: dict = Depends(require_role(["faculty"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    """Every request where this faculty member is the class advisor."""
    return success_response(data=workflow.list_for_advisor(actor_of(user)))


@router.patch("/od/{od_id}/action")
async def faculty_od_action(
    od_id: str,
    body: ODAction,
    user: dict = Depends(require_role(["faculty"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    record = await workflow.advisor_decision(actor_of(user), od_id, body.action, body.comment)
    return success_response(data=record, message=f"OD {body.action.value}d by faculty")


@router.patch("/od/{od_id}/verify-proof")
async def verify_proof(
    od_id: str,
    body: ProofVerify,
    user: dict = Depends(require_role(["faculty"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    record = await workflow.verify_proof(actor_of(user), od_id, body.verified)
    message = "Proof verified" if body.verified else "Proof marked as not verified"
    return success_response(data=record, message=message)
