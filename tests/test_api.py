from worksheet_admin.errors import UpstreamError
from worksheet_admin.gemini_client import GeminiClient
from worksheet_admin.main import app
from worksheet_admin.deps import get_gemini_factory


def test_generate_proxy(client, gemini):
	gemini.text = "Hello there"
	r = client.post("/generate", json={"prompt": "Say hello"})
	assert r.status_code == 200
	assert r.json() == {"text": "Hello there"}
	assert gemini.prompts == ["Say hello"]
	assert gemini.closed


def test_generate_worksheet_proxy(client, gemini):
	gemini.text = '{"sections": []}'
	r = client.post("/generate-worksheet", json={"prompt": "Make a worksheet"})
	assert r.status_code == 200
	assert r.json() == {"result": '{"sections": []}'}


def test_proxies_reject_bad_prompts(client, gemini):
	for path in ("/generate", "/generate-worksheet"):
		for body in ({}, {"prompt": ""}, {"prompt": "   "}, {"prompt": 42}, {"prompt": ["a"]}):
			r = client.post(path, json=body)
			assert r.status_code == 400, (path, body)
	assert gemini.prompts == []


def test_proxies_report_upstream_failure(client, gemini):
	gemini.error = UpstreamError("Gemini request failed with status 503")
	assert client.post("/generate", json={"prompt": "hi"}).status_code == 500
	assert client.post("/generate-worksheet", json={"prompt": "hi"}).status_code == 500


def test_proxy_without_api_key(client):
	app.dependency_overrides[get_gemini_factory] = lambda: (lambda: GeminiClient(None))
	r = client.post("/generate", json={"prompt": "hi"})
	assert r.status_code == 500
	assert client.post("/generate", json={}).status_code == 400


def test_question_routes(client, seeded):
	r = client.get("/questions", params={"grade": "G3"})
	assert r.status_code == 200
	assert {q["id"] for q in r.json()} == {"q1", "q3"}

	r = client.post("/questions", json={
		"question": "3 x 3 = ?", "type": "MCQ",
		"options": [{"text": "9"}, {"text": "6"}], "correctAnswer": 0, "grade": "G3",
	})
	assert r.status_code == 201
	qid = r.json()["id"]
	assert client.get(f"/questions/{qid}").json()["correctAnswer"]["text"] == "9"

	r = client.patch(f"/questions/{qid}", json={"difficultyLevel": "L3"})
	assert r.status_code == 200
	assert r.json()["difficultyLevel"] == "L3"

	assert client.delete(f"/questions/{qid}").status_code == 204
	assert client.get(f"/questions/{qid}").status_code == 404
	r = client.patch("/questions/nope", json={"question": "x"})
	assert r.status_code == 404
	assert r.json()["detail"] == "Question 'nope' not found"


def test_multi_question_routes(client, seeded):
	r = client.get("/questions/multi/m1")
	assert r.status_code == 200
	assert len(r.json()["subQuestions"]) == 2
	assert client.get("/questions/m1-1").json()["multiId"] == "m1"
	assert client.delete("/questions/multi/m1").status_code == 204
	assert client.get("/questions/multi/m1").status_code == 404


def test_set_and_assignment_flow(client, seeded):
	r = client.post("/question-sets/members", json={"label": "Week 1", "questionId": "q1"})
	assert r.status_code == 201
	name = r.json()["set"]
	client.post("/question-sets/members", json={"label": "Week 1", "questionId": "m1-0"})

	r = client.get(f"/question-sets/{name}")
	assert [q["id"] for q in r.json()["questions"]] == ["q1", "m1-0"]
	assert client.get("/question-sets", params={"q": "week"}).json() == [{"name": name}]

	r = client.post(f"/question-sets/{name}/attach", json={"user": "alice"})
	assert r.status_code == 200
	body = r.json()
	assert body["created"] is True
	uid = body["userId"]

	users = client.get("/users", params={"q": "alice"}).json()
	assert [u["email"] for u in users] == ["alice@gmail.com"]
	assignments = client.get(f"/users/{uid}/assignments").json()
	assert assignments[name]["questionIds"] == ["q1", "m1-0"]

	assert client.delete(f"/users/{uid}/assignments/{name}").status_code == 204
	assert client.get(f"/users/{uid}/assignments").json() == {}

	r = client.get(f"/question-sets/{name}/export.pdf")
	assert r.status_code == 200
	assert r.content.startswith(b"%PDF")

	assert client.delete(f"/question-sets/{name}/members/q1").status_code == 204
	assert client.delete(f"/question-sets/{name}").status_code == 204
	assert client.get(f"/question-sets/{name}").status_code == 404


def test_bad_set_label(client, seeded):
	r = client.post("/question-sets/members", json={"label": "  ", "questionId": "q1"})
	assert r.status_code == 400


def test_upload_image(client, supabase):
	r = client.post("/questions/images", files={"file": ("shape.png", b"\x89PNG data", "image/png")})
	assert r.status_code == 201
	assert r.json()["url"].startswith("https://demo.supabase.co/storage/v1/object/public/questions/")
	assert supabase.bucket.uploaded[0].endswith(".png")


def test_taxonomy_and_info(client):
	body = client.get("/taxonomy").json()
	assert [g["code"] for g in body["grades"]] == ["G1", "G2", "G3", "G4"]
	assert "L1" in body["difficultyLevels"]
	assert client.get("/info").json()["status"] == "ok"


def test_login_and_roles(raw_client, accounts):
	accounts.create_account("boss@example.com", "pw", role="admin")
	accounts.create_account("kid@gmail.com", "123456", role="user")

	r = raw_client.post("/auth/token", data={"username": "kid@gmail.com", "password": "123456"})
	assert r.status_code == 401
	r = raw_client.post("/auth/token", data={"username": "boss@example.com", "password": "bad"})
	assert r.status_code == 401

	r = raw_client.post("/auth/token", data={"username": "boss@example.com", "password": "pw"})
	assert r.status_code == 200
	headers = {"Authorization": f"Bearer {r.json()['access_token']}"}
	assert raw_client.get("/auth/me", headers=headers).json()["role"] == "admin"

	r = raw_client.post("/auth/accounts", headers=headers, json={"username": "g3", "password": "pw", "grade": "Grade 3"})
	assert r.status_code == 201
	assert r.json() == {"username": "g3", "role": "viewer", "grade": "G3"}

	r = raw_client.post("/auth/token", data={"username": "g3", "password": "pw"})
	viewer = {"Authorization": f"Bearer {r.json()['access_token']}"}
	assert raw_client.post("/questions", headers=viewer, json={"question": "x"}).status_code == 403
	assert raw_client.get("/questions", headers=viewer).status_code == 200
	assert raw_client.get("/questions").status_code == 401


def test_worksheet_routes(client, gemini, seeded):
	gemini.text = '{"sections": [{"difficulty": "Easy", "questions": [{"question_text": "1 + 1?", "options": ["2", "3"], "answer": "2"}]}]}'
	seeded.set("users/u1", {"email": "kid@gmail.com", "quizResults": {"r1": {"score": 75, "correctAnswers": 3, "selectedSet": "s"}}})
	r = client.post("/worksheets/generate", json={"grade": "3", "topic": "Addition", "childId": "u1"})
	assert r.status_code == 200
	questions = r.json()["questions"]
	assert questions[0]["difficulty"] == "Easy"
	assert "Score: 75" in gemini.prompts[-1]

	r = client.post("/worksheets", json={"name": "Week 1", "grade": "3", "questions": questions})
	assert r.status_code == 201
	listed = client.get("/worksheets").json()
	assert [w["name"] for w in listed] == ["Week 1"]
	assert client.get("/worksheets/manual").json() == []
	assert client.post("/worksheets", json={"questions": []}).status_code == 400


def test_worksheet_generation_rejects_bad_reply(client, gemini):
	gemini.text = "no json here"
	r = client.post("/worksheets/generate", json={"grade": "3"})
	assert r.status_code == 400
	assert r.json()["detail"] == "Gemini returned invalid JSON. Please try again."
