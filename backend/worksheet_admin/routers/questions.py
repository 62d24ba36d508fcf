from __future__ import annotations
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from ..deps import get_image_storage, get_question_store
from ..question_store import QuestionStore
from ..schemas import Choice, CompositeQuestion, Question, QuestionFilter
from ..storage import ImageStorage
from .auth import User, get_current_user, require_admin

router = APIRouter(prefix="/questions", tags=["questions"])


class QuestionPatch(BaseModel):
	"""Partial edit; only fields that were sent are written."""

	model_config = {"populate_by_name": True}

	question: Optional[str] = None
	question_image: Optional[str] = Field(default=None, alias="questionImage")
	kind: Optional[str] = Field(default=None, alias="type")
	options: Optional[List[Choice]] = None
	correct_answer: Optional[Choice] = Field(default=None, alias="correctAnswer")
	grade: Optional[str] = None
	topic: Optional[str] = None
	subtopic: Optional[str] = Field(default=None, alias="topicList")
	difficulty: Optional[str] = Field(default=None, alias="difficultyLevel")


def _dump(record: Any) -> Dict[str, Any]:
	return record.model_dump(by_alias=True, mode="json")


@router.get("")
async def list_questions(
	grade: str = "all",
	topic: str = "all",
	subtopic: str = "all",
	difficulty: str = "all",
	kind: str = "all",
	store: QuestionStore = Depends(get_question_store),
	user: User = Depends(get_current_user),
):
	criteria = QuestionFilter(grade=grade, topic=topic, subtopic=subtopic, difficulty=difficulty, kind=kind)
	return [_dump(q) for q in store.filter(criteria, viewer_grade=user.grade)]


@router.post("", status_code=201)
async def create_question(
	question: Question,
	store: QuestionStore = Depends(get_question_store),
	admin: User = Depends(require_admin),
):
	return {"id": store.create(question)}


@router.post("/images", status_code=201)
async def upload_image(
	file: UploadFile = File(...),
	images: Optional[ImageStorage] = Depends(get_image_storage),
	admin: User = Depends(require_admin),
):
	if images is None:
		raise HTTPException(status_code=503, detail="Image storage is not configured")
	content = await file.read()
	return {"url": images.upload(file.filename or "image", content, file.content_type)}


@router.post("/multi", status_code=201)
async def create_multi(
	composite: CompositeQuestion,
	store: QuestionStore = Depends(get_question_store),
	admin: User = Depends(require_admin),
):
	return {"id": store.create_multi(composite)}


@router.get("/multi/{multi_id}")
async def get_multi(
	multi_id: str,
	store: QuestionStore = Depends(get_question_store),
	user: User = Depends(get_current_user),
):
	return _dump(store.get_multi(multi_id))


@router.put("/multi/{multi_id}")
async def update_multi(
	multi_id: str,
	composite: CompositeQuestion,
	store: QuestionStore = Depends(get_question_store),
	admin: User = Depends(require_admin),
):
	return _dump(store.update_multi(multi_id, composite))


@router.delete("/multi/{multi_id}", status_code=204)
async def delete_multi(
	multi_id: str,
	store: QuestionStore = Depends(get_question_store),
	admin: User = Depends(require_admin),
):
	store.delete_multi(multi_id)


@router.get("/{question_id}")
async def get_question(
	question_id: str,
	store: QuestionStore = Depends(get_question_store),
	user: User = Depends(get_current_user),
):
	question = store.get(question_id)
	if question is None:
		raise HTTPException(status_code=404, detail=f"Question '{question_id}' not found")
	return _dump(question)


@router.patch("/{question_id}")
async def update_question(
	question_id: str,
	patch: QuestionPatch,
	store: QuestionStore = Depends(get_question_store),
	admin: User = Depends(require_admin),
):
	fields = patch.model_dump(by_alias=True, exclude_unset=True, mode="json")
	return _dump(store.update(question_id, fields))


@router.delete("/{question_id}", status_code=204)
async def delete_question(
	question_id: str,
	store: QuestionStore = Depends(get_question_store),
	admin: User = Depends(require_admin),
):
	store.delete(question_id)
