"""
Admin router — OD oversight, forward-to-HOD override, system settings.

Admin can:
- See every OD request
- Forward a request to the HOD (normally one the sweeper escalated)
- Tune auto-forward timeout and the auto-forward / notification toggles
- Run an auto-forward sweep on demand
"""

from typing import Optional

from fastapi import APIRouter, Depends
from odtrack.core.dependencies import get_sweeper, get_system_settings, get_workflow
from odtrack.core.security import actor_of, require_role
from odtrack.schemas.workflow import SystemSettingsUpdate
from odtrack.services.auto_forward import AutoForwardSweeper
from odtrack.services.system_settings import SystemSettingsProvider
from odtrack.services.workflow import ODWorkflow
from odtrack.utils.response import success_response

router = APIRouter(prefix="/api/admin", tags=["Admin"])


# ═══════════════════════════════════════════════════════════
# OD OVERSIGHT
# ═══════════════════════════════════════════════════════════

@router.get("/od/all")
async def list_all_od(
    year: Optional[str] = None,
    register_no: Optional[str] = None,
    user: dict = Depends(require_role(["admin"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    records = workflow.list_all(actor_of(user), year=year, register_no=register_no)
    return success_response(data=records)


@router.get("/student-stats")
async def student_stats(
    user: dict = Depends(require_role(["admin"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    """Active students per year."""
    return success_response(data=workflow.student_stats(actor_of(user)))


@router.put("/od/{od_id}/forward-to-hod")
async def forward_to_hod(
    od_id: str,
    user: dict = Depends(require_role(["admin"])),
    workflow: ODWorkflow = Depends(get_workflow),
):
    record = await workflow.forward_to_hod(actor_of(user), od_id)
    return success_response(data=record, message="OD forwarded to HOD")


# ═══════════════════════════════════════════════════════════
# SYSTEM SETTINGS
# ═══════════════════════════════════════════════════════════

@router.get("/system-settings")
async def get_settings(
    user: dict = Depends(require_role(["admin"])),
    system_settings: SystemSettingsProvider = Depends(get_system_settings),
):
    return success_response(data=system_settings.get())


@router.put("/system-settings")
async def update_settings(
    body: SystemSettingsUpdate,
    user: dict = Depends(require_role(["admin"])),
    system_settings: SystemSettingsProvider = Depends(get_system_settings),
):
    updated = system_settings.update(**body.model_dump())
    return success_response(data=updated, message="System settings updated")


@router.post("/auto-forward/run")
async def run_auto_forward(
    user: dict = Depends(require_role(["admin"])),
    sweeper: AutoForwardSweeper = Depends(get_sweeper),
):
    results = await sweeper.sweep()
    return success_response(data=results, message=f"Forwarded {len(results['forwarded'])} request(s)")
