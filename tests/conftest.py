from typing import List, Optional, Set

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from worksheet_admin import models  # noqa: F401
from worksheet_admin.accounts import AccountService
from worksheet_admin.db import Base, get_db
from worksheet_admin.deps import get_gemini_factory, get_image_storage
from worksheet_admin.question_sets import QuestionSetAssembler
from worksheet_admin.question_store import QuestionStore
from worksheet_admin.storage import ImageStorage
from worksheet_admin.tree_store import TreeStore


class FakeBucket:
	def __init__(self) -> None:
		self.uploaded: List[str] = []
		self.removed: List[str] = []
		self.fail: Set[str] = set()

	def upload(self, path, data, options=None):
		self.uploaded.append(path)

	def get_public_url(self, path):
		return f"https://demo.supabase.co/storage/v1/object/public/questions/{path}"

	def remove(self, paths):
		for path in paths:
			if path in self.fail:
				raise RuntimeError(f"cannot remove {path}")
			self.removed.append(path)


class FakeSupabase:
	def __init__(self) -> None:
		self.bucket = FakeBucket()

	@property
	def storage(self):
		return self

	def from_(self, name):
		return self.bucket


class FakeGemini:
	def __init__(self, text: str = "generated", error: Optional[Exception] = None) -> None:
		self.text = text
		self.error = error
		self.prompts: List[str] = []
		self.closed = False

	async def generate(self, prompt, *, role="user"):
		self.prompts.append(prompt)
		if self.error is not None:
			raise self.error
		return self.text

	async def aclose(self):
		self.closed = True


@pytest.fixture
def session():
	engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
	Base.metadata.create_all(engine)
	db = sessionmaker(bind=engine, autoflush=False)()
	try:
		yield db
	finally:
		db.close()
		engine.dispose()


@pytest.fixture
def tree(session):
	return TreeStore(session)


@pytest.fixture
def supabase():
	return FakeSupabase()


@pytest.fixture
def images(supabase):
	return ImageStorage(supabase, "questions")


@pytest.fixture
def store(tree, images):
	return QuestionStore(tree, images)


@pytest.fixture
def sets(tree, store):
	return QuestionSetAssembler(tree, store)


@pytest.fixture
def accounts(session):
	return AccountService(session)


@pytest.fixture
def gemini():
	return FakeGemini()


@pytest.fixture
def raw_client(session, images, gemini):
	from worksheet_admin.main import app

	def override_db():
		yield session

	app.dependency_overrides[get_db] = override_db
	app.dependency_overrides[get_image_storage] = lambda: images
	app.dependency_overrides[get_gemini_factory] = lambda: (lambda: gemini)
	try:
		yield TestClient(app)
	finally:
		app.dependency_overrides.clear()


@pytest.fixture
def client(raw_client):
	from worksheet_admin.main import app
	from worksheet_admin.routers.auth import User, get_current_user

	admin = User(username="admin@example.com", role="admin", grade="admin")
	app.dependency_overrides[get_current_user] = lambda: admin
	return raw_client


def seed_questions(tree):
	tree.set("questions/q1", {
		"question": "2 + 2 = ?", "type": "MCQ",
		"options": [{"text": "3"}, {"text": "4"}], "correctAnswer": {"text": "4"},
		"grade": "G3", "topic": "G3A", "topicList": "Addition", "difficultyLevel": "L1",
		"timestamp": 100,
	})
	tree.set("questions/q2", {
		"question": "Capital of France is ____", "type": "FILL_IN_THE_BLANKS",
		"correctAnswer": {"text": "Paris"},
		"grade": "G4", "topic": "G4E", "difficultyLevel": "L2",
		"timestamp": 200,
	})
	tree.set("questions/q3", {
		"question": "5 - 1 = ?", "type": "MCQ",
		"options": [{"text": "4"}, {"text": "6"}], "correctAnswer": {"text": "4"},
		"grade": "Grade 3", "topic": "G3B", "difficultyLevel": "L2",
		"timestamp": 50,
	})
	tree.set("multiQuestions/m1", {
		"mainQuestion": "<p>Read the <b>story</b></p>",
		"grade": "G4", "topic": "G4A", "difficultyLevel": "L1",
		"createdAt": 300,
		"subQuestions": [
			{"question": "Who ran?", "type": "FILL_IN_THE_BLANKS", "correctAnswer": {"text": "Tom"}},
			{
				"question": "Where?", "type": "MCQ",
				"options": [{"text": "Home"}, {"text": "School"}], "correctAnswer": {"text": "Home"},
			},
		],
	})


@pytest.fixture
def seeded(tree):
	seed_questions(tree)
	return tree
