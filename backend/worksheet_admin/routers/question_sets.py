from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from pydantic import BaseModel, Field

from ..assignments import AssignmentLedger
from ..deps import get_assignment_ledger, get_set_assembler, get_settings
from ..pagination import export_set_pdf
from ..question_sets import QuestionSetAssembler
from ..settings import Settings
from .auth import User, get_current_user, require_admin

router = APIRouter(prefix="/question-sets", tags=["question_sets"])


class AddMemberRequest(BaseModel):
	model_config = {"populate_by_name": True}

	label: str = ""
	question_id: str = Field(alias="questionId")


class AttachRequest(BaseModel):
	model_config = {"populate_by_name": True}

	user: str
	question_ids: Optional[List[str]] = Field(default=None, alias="questionIds")


@router.get("")
async def list_sets(
	q: str = "",
	sets: QuestionSetAssembler = Depends(get_set_assembler),
	user: User = Depends(get_current_user),
):
	if q.strip():
		return [{"name": name} for name in sets.search_sets(q)]
	return sets.list_sets()


@router.post("/members", status_code=201)
async def add_member(
	req: AddMemberRequest,
	sets: QuestionSetAssembler = Depends(get_set_assembler),
	admin: User = Depends(require_admin),
):
	name = sets.add_question_to_set(req.label, req.question_id)
	return {"set": name, "questionId": req.question_id}


@router.get("/{set_name}")
async def load_set(
	set_name: str,
	sets: QuestionSetAssembler = Depends(get_set_assembler),
	user: User = Depends(get_current_user),
):
	questions = sets.load_set(set_name)
	return {"name": set_name, "questions": [q.model_dump(by_alias=True, mode="json") for q in questions]}


@router.delete("/{set_name}", status_code=204)
async def delete_set(
	set_name: str,
	sets: QuestionSetAssembler = Depends(get_set_assembler),
	admin: User = Depends(require_admin),
):
	sets.delete_set(set_name)


@router.delete("/{set_name}/members/{question_id}", status_code=204)
async def delete_member(
	set_name: str,
	question_id: str,
	sets: QuestionSetAssembler = Depends(get_set_assembler),
	admin: User = Depends(require_admin),
):
	sets.delete_member(set_name, question_id)


@router.get("/{set_name}/export.pdf")
async def export_pdf(
	set_name: str,
	answers: bool = False,
	sets: QuestionSetAssembler = Depends(get_set_assembler),
	cfg: Settings = Depends(get_settings),
	user: User = Depends(get_current_user),
):
	data = export_set_pdf(
		sets.load_set(set_name),
		page_width_mm=cfg.export_page_width_mm,
		page_height_mm=cfg.export_page_height_mm,
		margin_mm=cfg.export_margin_mm,
		title=set_name,
		show_answers=answers,
	)
	return Response(
		content=data,
		media_type="application/pdf",
		headers={"Content-Disposition": f'attachment; filename="{set_name}.pdf"'},
	)


@router.post("/{set_name}/attach")
async def attach(
	set_name: str,
	req: AttachRequest,
	ledger: AssignmentLedger = Depends(get_assignment_ledger),
	admin: User = Depends(require_admin),
):
	uid, created = ledger.attach(req.user, set_name, req.question_ids)
	return {"userId": uid, "created": created, "set": set_name}
