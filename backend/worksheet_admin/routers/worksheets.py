from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..deps import get_gemini_factory, get_result_ledger, get_worksheet_repository
from ..errors import NotFoundError
from ..gemini_client import GeminiClient
from ..results import ResultLedger
from ..worksheets import WorksheetRepository, build_worksheet_prompt, latest_result, parse_worksheet
from .auth import User, get_current_user, require_admin
from .gemini import run_prompt

router = APIRouter(prefix="/worksheets", tags=["worksheets"])


class WorksheetRequest(BaseModel):
	model_config = {"populate_by_name": True}

	grade: str = "3"
	topic: Optional[str] = None
	sub_topic: Optional[str] = Field(default=None, alias="subTopic")
	levels: List[str] = Field(default_factory=list)
	# Optional child account whose latest quiz result shapes the prompt
	child_id: Optional[str] = Field(default=None, alias="childId")


class SaveWorksheetRequest(BaseModel):
	model_config = {"populate_by_name": True}

	name: Optional[str] = None
	grade: str = ""
	topic: str = ""
	sub_topic: str = Field(default="", alias="subTopic")
	questions: List[Dict[str, Any]] = Field(default_factory=list)


@router.post("/generate")
async def generate(
	req: WorksheetRequest,
	make_client: Callable[[], GeminiClient] = Depends(get_gemini_factory),
	results: ResultLedger = Depends(get_result_ledger),
	admin: User = Depends(require_admin),
):
	history = None
	if req.child_id:
		try:
			history = latest_result(results.list_results_for(req.child_id))
		except NotFoundError:
			history = None
	prompt = build_worksheet_prompt(req.grade, req.topic, req.sub_topic, req.levels, history)
	text = await run_prompt(make_client, prompt, "Failed to generate worksheet.")
	return {"questions": parse_worksheet(text)}


@router.post("", status_code=201)
async def save(
	req: SaveWorksheetRequest,
	repo: WorksheetRepository = Depends(get_worksheet_repository),
	admin: User = Depends(require_admin),
):
	key = repo.save_generated(req.questions, name=req.name, grade=req.grade, topic=req.topic, sub_topic=req.sub_topic)
	return {"id": key}


@router.get("")
async def list_generated(
	repo: WorksheetRepository = Depends(get_worksheet_repository),
	user: User = Depends(get_current_user),
):
	return repo.list_generated()


@router.get("/manual")
async def list_manual(
	repo: WorksheetRepository = Depends(get_worksheet_repository),
	user: User = Depends(get_current_user),
):
	return repo.list_manual()
