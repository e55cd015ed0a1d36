"""
Student router — Apply OD, track status, submit proof, download OD letter.
"""

import os

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from odtrack.core.dependencies import get_workflow
from odtrack.core.security import actor_of, require_role
from odtrack.schemas.workflow import ODApply, ProofSubmit
from odtrack.services.workflow import ODWorkflow
from odtrack.utils.response import success_response

router = APIRouter(prefix="/api/student", tags=["Student"])


@router.post("/od/apply", status_code=201)
async def apply_od(
    body: ODApply,
    user: dict = Depends(require_role(["student"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    record = await workflow.create_request(actor_of(user), body)
    return success_response(data=record, message="OD request submitted")


@router.get("/od/status")
async def get_my_od_requests(
    user: dict = Depends(require_role(["student"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    return success_response(data=workflow.list_for_student(actor_of(user)))


@router.put("/od/{od_id}/proof")
async def submit_proof(
    od_id: str,
    body: ProofSubmit,
    user: dict = Depends(require_role(["student"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    record = await workflow.submit_proof(actor_of(user), od_id, body.proof_document)
    return success_response(data=record, message="Proof submitted")


@router.get("/od/{od_id}/letter")
async def download_letter(
    od_id: str,
    user: dict = Depends(require_role(["student"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    """Generate the OD letter at whatever stage the request is in and send it."""
    path = await workflow.generate_letter(actor_of(user), od_id)
    return FileResponse(path, media_type="application/pdf", filename=os.path.basename(path))
