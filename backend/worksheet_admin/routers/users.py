from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ..assignments import AssignmentLedger
from ..deps import get_assignment_ledger, get_result_ledger
from ..results import ResultLedger, export_spreadsheet
from .auth import User, get_current_user, require_admin

router = APIRouter(prefix="/users", tags=["users"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("")
async def list_users(
	q: str = "",
	ledger: ResultLedger = Depends(get_result_ledger),
	user: User = Depends(get_current_user),
):
	return [
		{"id": u.id, "email": u.email, "role": u.role, "createdAt": u.created_at}
		for u in ledger.list_users(q)
	]


@router.post("/assignments/backfill")
async def backfill_assignments(
	ledger: AssignmentLedger = Depends(get_assignment_ledger),
	admin: User = Depends(require_admin),
):
	return {"migrated": ledger.backfill_attached_at()}


@router.get("/{user_id}")
async def get_user(
	user_id: str,
	ledger: ResultLedger = Depends(get_result_ledger),
	user: User = Depends(get_current_user),
):
	account = ledger.get_user(user_id)
	return {
		"id": account.id,
		"email": account.email,
		"role": account.role,
		"createdAt": account.created_at,
		"assignedSets": {k: v.to_store() for k, v in account.assigned_sets.items()},
		"quizResults": sorted(account.quiz_results.keys()),
	}


@router.get("/{user_id}/assignments")
async def list_assignments(
	user_id: str,
	ledger: AssignmentLedger = Depends(get_assignment_ledger),
	user: User = Depends(get_current_user),
):
	return {k: v.to_store() for k, v in ledger.list_assignments(user_id).items()}


@router.delete("/{user_id}/assignments/{set_name}", status_code=204)
async def unassign(
	user_id: str,
	set_name: str,
	ledger: AssignmentLedger = Depends(get_assignment_ledger),
	admin: User = Depends(require_admin),
):
	ledger.unassign(user_id, set_name)


@router.get("/{user_id}/results")
async def list_results(
	user_id: str,
	ledger: ResultLedger = Depends(get_result_ledger),
	user: User = Depends(get_current_user),
):
	return {k: v.model_dump(by_alias=True, mode="json") for k, v in ledger.list_results_for(user_id).items()}


@router.get("/{user_id}/results/export.xlsx")
async def export_results(
	user_id: str,
	quiz_id: Optional[str] = None,
	ledger: ResultLedger = Depends(get_result_ledger),
	user: User = Depends(get_current_user),
):
	data = export_spreadsheet(ledger.report_rows(user_id, quiz_id))
	filename = f"{user_id}-{quiz_id}.xlsx" if quiz_id else f"{user_id}-results.xlsx"
	return Response(
		content=data,
		media_type=XLSX_MEDIA_TYPE,
		headers={"Content-Disposition": f'attachment; filename="{filename}"'},
	)


@router.get("/{user_id}/results/{quiz_id}")
async def get_result(
	user_id: str,
	quiz_id: str,
	ledger: ResultLedger = Depends(get_result_ledger),
	user: User = Depends(get_current_user),
):
	return ledger.get_result(user_id, quiz_id).model_dump(by_alias=True, mode="json")
