import pytest

from worksheet_admin.errors import NotFoundError, ValidationError
from worksheet_admin.question_store import timestamp_value
from worksheet_admin.schemas import Choice, Question, QuestionFilter, QuestionKind


def test_list_all_flattens_and_sorts(store, seeded):
	records = store.list_all()
	assert [r.id for r in records] == ["m1-0", "m1-1", "q2", "q1", "q3"]
	sub = records[1]
	assert sub.multi_id == "m1" and sub.sub_index == 1
	assert sub.main_question == "Read the story"
	assert sub.grade == "G4"
	assert sub.options[1].text == "School"


def test_invalid_timestamp_sorts_last(store, seeded):
	seeded.set("questions/q9", {"question": "?", "type": "TRIVIA", "timestamp": "abc"})
	assert store.list_all()[-1].id == "q9"
	assert timestamp_value(float("nan")) == 0
	assert timestamp_value(None) == 0


def test_filter_by_grade(store, seeded):
	g3 = store.filter(QuestionFilter(grade="G3"))
	assert {r.id for r in g3} == {"q1", "q3"}
	g4 = store.filter(QuestionFilter(grade="G4", difficulty="L1"))
	assert {r.id for r in g4} == {"m1-0", "m1-1"}
	assert len(store.filter(QuestionFilter())) == 5


def test_filter_is_scoped_to_viewer_grade(store, seeded):
	viewer = store.filter(QuestionFilter(), viewer_grade="G3")
	assert {r.id for r in viewer} == {"q1", "q3"}
	assert store.filter(QuestionFilter(grade="G4"), viewer_grade="G3") == []


def test_sub_question_ids_stay_stable_across_gaps(store, seeded):
	store.delete("m1-0")
	ids = [r.id for r in store.list_all() if r.id.startswith("m1")]
	assert ids == ["m1-1"]
	assert store.get("m1-1").question == "Where?"
	assert store.get("m1-0") is None


def test_create_and_get(store):
	qid = store.create(Question(
		question="What is 5 + 5?",
		options=[Choice(text="10"), Choice(text="11")],
		correct_answer=Choice(text="10"),
		grade="G1",
	))
	saved = store.get(qid)
	assert saved.question == "What is 5 + 5?"
	assert saved.kind == QuestionKind.MULTIPLE_CHOICE
	assert saved.date


def test_create_rejects_empty_question(store):
	with pytest.raises(ValidationError):
		store.create(Question(question="", options=["a"]))
	with pytest.raises(ValidationError):
		store.create(Question(question="Pick one"))


def test_update_top_level(store, seeded):
	updated = store.update("q1", {"question": "2 + 3 = ?", "correctAnswer": {"text": "5"}, "options": [{"text": "5"}]})
	assert updated.question == "2 + 3 = ?"
	assert updated.correct_answer.text == "5"
	assert timestamp_value(updated.timestamp) > 100
	assert updated.grade == "G3"


def test_update_sub_question_keeps_composite_classification(store, seeded):
	updated = store.update("m1-1", {"question": "Where did Tom go?", "grade": "G1"})
	assert updated.question == "Where did Tom go?"
	assert updated.grade == "G4"
	assert "grade" not in seeded.get("multiQuestions/m1/subQuestions/1")


def test_update_missing(store, seeded):
	with pytest.raises(NotFoundError):
		store.update("nope", {"question": "x"})
	with pytest.raises(NotFoundError):
		store.update("nope-0", {"question": "x"})
	with pytest.raises(NotFoundError):
		store.update("m1-7", {"question": "x"})


def test_update_rejects_blank_question(store, seeded):
	with pytest.raises(ValidationError):
		store.update("q2", {"question": ""})
	assert store.get("q2").question == "Capital of France is ____"


def test_delete_cleans_images_even_when_one_fails(store, tree, supabase):
	base = "https://demo.supabase.co/storage/v1/object/public/questions/"
	tree.set("questions/qi", {
		"question": "Which shape?", "type": "MCQ",
		"questionImage": base + "1.png",
		"options": [{"text": "A", "image": base + "2.png"}, {"text": "B", "image": base + "3.png"}],
		"correctAnswer": {"text": "A", "image": base + "2.png"},
	})
	supabase.bucket.fail.add("2.png")
	store.delete("qi")
	assert store.get("qi") is None
	assert "1.png" in supabase.bucket.removed
	assert "3.png" in supabase.bucket.removed


def test_delete_multi(store, seeded):
	store.delete_multi("m1")
	assert [r.id for r in store.list_all()] == ["q2", "q1", "q3"]
	with pytest.raises(NotFoundError):
		store.get_multi("m1")


def test_update_to_trivia_drops_classification_and_answer(store, seeded):
	updated = store.update("q1", {"type": "TRIVIA"})
	assert updated.kind == QuestionKind.TRIVIA
	raw = seeded.get("questions/q1")
	for key in ("grade", "topic", "topicList", "difficultyLevel", "options", "correctAnswer"):
		assert key not in raw
	assert raw["question"] == "2 + 2 = ?"


def test_trivia_update_cannot_add_classification(store, seeded):
	seeded.set("questions/t1", {"question": "Fun fact", "type": "TRIVIA", "timestamp": 10})
	store.update("t1", {"grade": "G2", "difficultyLevel": "L1"})
	raw = seeded.get("questions/t1")
	assert "grade" not in raw and "difficultyLevel" not in raw
	assert raw["type"] == "TRIVIA"


def test_deleted_question_leaves_list_all(store, seeded):
	store.delete("q1")
	assert "q1" not in {r.id for r in store.list_all()}
	assert len(store.list_all()) == 4
