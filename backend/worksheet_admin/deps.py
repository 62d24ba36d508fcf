from __future__ import annotations
import logging
from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from .accounts import AccountService
from .assignments import AssignmentLedger
from .db import get_db
from .errors import UpstreamError
from .gemini_client import GeminiClient
from .question_sets import QuestionSetAssembler
from .question_store import QuestionStore
from .results import ResultLedger
from .settings import Settings, settings
from .storage import ImageStorage
from .tree_store import TreeStore
from .worksheets import WorksheetRepository

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
	return settings


def get_tree(db: Session = Depends(get_db)) -> TreeStore:
	return TreeStore(db)


@lru_cache(maxsize=1)
def _image_storage() -> ImageStorage:
	return ImageStorage.from_settings(settings)


def get_image_storage() -> Optional[ImageStorage]:
	try:
		return _image_storage()
	except UpstreamError as exc:
		logger.warning("image storage unavailable: %s", exc.message)
		return None


def get_question_store(
	tree: TreeStore = Depends(get_tree),
	images: Optional[ImageStorage] = Depends(get_image_storage),
) -> QuestionStore:
	return QuestionStore(tree, images)


def get_set_assembler(
	tree: TreeStore = Depends(get_tree),
	questions: QuestionStore = Depends(get_question_store),
) -> QuestionSetAssembler:
	return QuestionSetAssembler(tree, questions)


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
	return AccountService(db)


def get_assignment_ledger(
	tree: TreeStore = Depends(get_tree),
	accounts: AccountService = Depends(get_account_service),
	sets: QuestionSetAssembler = Depends(get_set_assembler),
	cfg: Settings = Depends(get_settings),
) -> AssignmentLedger:
	return AssignmentLedger(tree, accounts, sets, cfg.default_user_password)


def get_result_ledger(
	tree: TreeStore = Depends(get_tree),
	questions: QuestionStore = Depends(get_question_store),
) -> ResultLedger:
	return ResultLedger(tree, questions)


def get_worksheet_repository(tree: TreeStore = Depends(get_tree)) -> WorksheetRepository:
	return WorksheetRepository(tree)


def get_gemini_factory(cfg: Settings = Depends(get_settings)) -> Callable[[], GeminiClient]:
	# Clients are built lazily so request validation runs before configuration checks
	return lambda: GeminiClient.from_settings(cfg)
