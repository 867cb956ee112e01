import asyncio
from datetime import date, timedelta

import pytest
from fastapi import HTTPException

from remediation.models import AuthUser, DailyTask, KnowledgeEntity, LearningGap
from remediation.routers.auth import RegisterRequest, register
from remediation.planner import week_days

from .conftest import StubSuggester


def _submit(client, answers, section=None):
    body = {"paperId": "paper1", "userAnswers": answers}
    if section:
        body["sectionType"] = section
    return client.post("/exam-attempts/create", json=body)


def test_end_to_end_attempt_gap_plan(client, paper):
    r = _submit(client, {"q1": "B", "q2": "B", "q3": "C"})
    assert r.status_code == 200
    body = r.json()
    assert body["correctCount"] == 2
    assert body["totalQuestions"] == 3
    assert body["attempt"]["score"] == 67
    attempt_id = body["attempt"]["id"]

    r = client.post("/learning-gaps/create", json={
        "questionId": "q1",
        "attemptId": attempt_id,
        "gapType": "grammar",
        "gapDetail": "被动语态不理解",
        "knowledgePoints": ["grammar.voice"],
        "userAnswer": "B",
        "correctAnswer": "A",
    })
    assert r.status_code == 200
    gap = r.json()["gap"]
    assert gap["status"] == "active"

    r = client.post("/generate-plan")
    assert r.status_code == 200
    tasks = r.json()["tasks"]
    assert len(tasks) == 1
    task = tasks[0]
    days = week_days(date.today())
    assert task["task_type"] == "grammar_video"
    assert task["scheduled_date"] in {days[1].isoformat(), days[3].isoformat()}
    assert task["content"]["knowledge_point"] == "被动语态不理解"
    assert task["content"]["gap_id"] == gap["id"]
    assert task["source_gap_id"] == gap["id"]


def test_endpoints_require_authentication(anonymous_client, paper):
    assert anonymous_client.post("/generate-plan").status_code == 401
    assert anonymous_client.post("/exam-attempts/create", json={"paperId": "paper1", "userAnswers": {}}).status_code == 401
    assert anonymous_client.post("/learning-gaps/create", json={}).status_code == 401
    assert anonymous_client.get("/daily-tasks").status_code == 401


def test_missing_fields_are_400(client, paper):
    assert client.post("/exam-attempts/create", json={"userAnswers": {}}).status_code == 400
    assert client.post("/exam-attempts/create", json={"paperId": "paper1"}).status_code == 400
    r = client.post("/learning-gaps/create", json={"questionId": "q1", "gapType": "vocab", "gapDetail": "x"})
    assert r.status_code == 400
    assert client.post("/daily-tasks/complete", json={}).status_code == 400


def test_empty_section_scope_is_400(client, paper):
    r = _submit(client, {}, section="writing")
    assert r.status_code == 400


def test_invalid_gap_type_is_400(client, paper):
    attempt_id = _submit(client, {}).json()["attempt"]["id"]
    r = client.post("/learning-gaps/create", json={"questionId": "q1", "attemptId": attempt_id, "gapType": "spelling", "gapDetail": "x"})
    assert r.status_code == 400


def test_careless_gap_without_detail(client, paper):
    attempt_id = _submit(client, {}).json()["attempt"]["id"]
    r = client.post("/learning-gaps/create", json={"questionId": "q2", "attemptId": attempt_id, "gapType": "careless"})
    assert r.status_code == 200
    assert r.json()["gap"]["gap_detail"] == "粗心大意"
    # careless gaps produce no tasks
    assert client.post("/generate-plan").json()["tasks"] == []


def test_no_gaps_plan(client, paper, session_factory):
    r = client.post("/generate-plan")
    assert r.status_code == 200
    assert r.json() == {"message": "暂无需要补短板的漏洞", "tasks": []}
    with session_factory() as s:
        assert s.query(DailyTask).count() == 0


def test_user_ids_in_bodies_are_ignored(client, auth, paper, session_factory):
    attempt_id = _submit(client, {"q1": "B"}).json()["attempt"]["id"]
    client.post("/learning-gaps/create", json={
        "questionId": "q1", "attemptId": attempt_id, "gapType": "vocab", "gapDetail": "bridge", "userId": "bob",
    })

    auth.as_user("bob")
    # bob cannot attach gaps to alice's attempt
    r = client.post("/learning-gaps/create", json={"questionId": "q1", "attemptId": attempt_id, "gapType": "vocab", "gapDetail": "x"})
    assert r.status_code == 404
    assert client.get("/learning-gaps").json() == []
    assert client.get("/exam-attempts").json() == []
    assert client.post("/generate-plan").json()["tasks"] == []

    auth.as_user("alice")
    gaps = client.get("/learning-gaps").json()
    assert [g["user_id"] for g in gaps] == ["alice"]
    assert gaps[0]["question"]["id"] == "q1"
    tasks = client.post("/generate-plan").json()["tasks"]
    assert [t["user_id"] for t in tasks] == ["alice"]

    auth.as_user("bob")
    r = client.post("/daily-tasks/complete", json={"taskId": tasks[0]["id"]})
    assert r.status_code == 404
    with session_factory() as s:
        assert s.get(DailyTask, tasks[0]["id"]).is_completed is False
        assert s.query(LearningGap).filter(LearningGap.user_id == "bob").count() == 0


def test_complete_task_is_idempotent(client, paper):
    attempt_id = _submit(client, {}).json()["attempt"]["id"]
    client.post("/learning-gaps/create", json={"questionId": "q3", "attemptId": attempt_id, "gapType": "logic", "gapDetail": "转折关系"})
    (task,) = client.post("/generate-plan").json()["tasks"]
    assert task["scheduled_date"] == week_days(date.today())[4].isoformat()

    first = client.post("/daily-tasks/complete", json={"taskId": task["id"], "completionData": {"answers": ["A"]}})
    assert first.status_code == 200
    done = first.json()["task"]
    assert done["is_completed"] is True
    assert done["completion_data"] == {"answers": ["A"]}

    second = client.post("/daily-tasks/complete", json={"taskId": task["id"], "completionData": {"answers": ["B"]}})
    assert second.status_code == 200
    assert second.json()["task"]["completed_at"] == done["completed_at"]
    assert second.json()["task"]["completion_data"] == {"answers": ["A"]}


def test_daily_tasks_by_date(client, paper):
    attempt_id = _submit(client, {}).json()["attempt"]["id"]
    client.post("/learning-gaps/create", json={"questionId": "q2", "attemptId": attempt_id, "gapType": "vocab", "gapDetail": "ambition"})
    (task,) = client.post("/generate-plan").json()["tasks"]
    monday = week_days(date.today())[0]
    assert task["scheduled_date"] == monday.isoformat()
    r = client.get("/daily-tasks", params={"date": monday.isoformat()})
    assert [t["id"] for t in r.json()] == [task["id"]]
    r = client.get("/daily-tasks", params={"date": (monday + timedelta(days=1)).isoformat()})
    assert r.json() == []


def test_plan_with_ai_suggester(client, paper, suggester_holder):
    suggester_holder["suggester"] = StubSuggester(payload={"word": "ambition", "definition": "雄心", "example": "Ambition drives her."})
    attempt_id = _submit(client, {}).json()["attempt"]["id"]
    client.post("/learning-gaps/create", json={"questionId": "q2", "attemptId": attempt_id, "gapType": "vocab", "gapDetail": "ambition"})
    body = client.post("/generate-plan").json()
    assert body["message"] == "成功生成 1 个任务 (AI Enhanced)"
    assert body["tasks"][0]["content"]["definition"] == "雄心"


def test_master_action_resolves_gap(client, paper):
    attempt_id = _submit(client, {}).json()["attempt"]["id"]
    gap = client.post("/learning-gaps/create", json={"questionId": "q1", "attemptId": attempt_id, "gapType": "grammar", "gapDetail": "时态"}).json()["gap"]
    r = client.post("/learning-actions/create", json={"gapId": gap["id"], "actionType": "master_gap"})
    assert r.status_code == 200
    assert r.json()["action"]["action_type"] == "master_gap"
    assert client.get("/learning-gaps").json() == []
    assert client.post("/generate-plan").json()["tasks"] == []


def test_completed_sections(client, paper):
    _submit(client, {"q1": "A"}, section="single_choice")
    _submit(client, {"q3": "C"}, section="cloze")
    _submit(client, {"q1": "A"}, section="single_choice")
    r = client.get("/exam-papers/paper1/completed-sections")
    assert sorted(r.json()["completedSections"]) == ["cloze", "single_choice"]


def test_papers_and_questions(client, paper):
    assert [p["id"] for p in client.get("/exam-papers").json()] == ["paper1"]
    assert client.get("/exam-papers/nope").status_code == 404
    questions = client.get("/questions", params={"paperId": "paper1"}).json()
    assert [q["order_index"] for q in questions] == [1, 2, 3]
    assert client.get("/questions").status_code == 400


def test_error_options_use_question_knowledge_points(client, paper, session_factory):
    with session_factory() as s:
        s.add(KnowledgeEntity(code="grammar.voice", name="被动语态", description=None))
        s.commit()
    r = client.post("/generate-error-options", json={"gapType": "grammar", "questionId": "q1"})
    assert r.status_code == 200
    assert r.json()["options"] == [{"value": "被动语态不理解", "label": "被动语态不理解"}]


def test_knowledge_point_lookup_defaults_to_last_segment(client, session_factory):
    with session_factory() as s:
        s.add(KnowledgeEntity(code="grammar.tense", name="时态", description="各种时态"))
        s.commit()
    r = client.get("/knowledge-points", params={"codes": "grammar.tense,logic.inference"})
    assert r.json() == [
        {"code": "grammar.tense", "name": "时态", "description": "各种时态"},
        {"code": "logic.inference", "name": "inference", "description": None},
    ]
    kps = client.post("/generate-knowledge-points", json={"gapType": "vocab"}).json()["knowledgePoints"]
    assert kps[0]["code"] == "vocab.common"


def test_register_login_and_me(anonymous_client):
    r = anonymous_client.post("/auth/register", json={"username": "carol", "password": "s3cret-pass"})
    assert r.status_code == 201
    assert anonymous_client.post("/auth/register", json={"username": "carol", "password": "x"}).status_code == 409
    r = anonymous_client.post("/auth/token", data={"username": "carol", "password": "s3cret-pass"})
    assert r.status_code == 200
    token = r.json()["access_token"]
    me = anonymous_client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json() == {"username": "carol"}
    assert anonymous_client.post("/auth/token", data={"username": "carol", "password": "wrong"}).status_code == 401


def test_requests_without_a_body_are_400(client, paper):
    for path in ("/exam-attempts/create", "/learning-gaps/create", "/learning-actions/create", "/daily-tasks/complete", "/generate-error-options"):
        r = client.post(path)
        assert r.status_code == 400, path
        assert isinstance(r.json()["detail"], str)


def test_null_answers_count_as_wrong(client, paper):
    r = _submit(client, {"q1": "A", "q2": None})
    assert r.status_code == 200
    body = r.json()
    assert (body["correctCount"], body["totalQuestions"]) == (1, 3)
    assert body["attempt"]["score"] == 33
    assert body["attempt"]["user_answers"] == {"q1": "A"}


def test_plan_store_failure_is_500_with_message(client, paper, engine):
    attempt_id = _submit(client, {}).json()["attempt"]["id"]
    client.post("/learning-gaps/create", json={"questionId": "q2", "attemptId": attempt_id, "gapType": "vocab", "gapDetail": "ambition"})
    with engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE learning_gaps")
    r = client.post("/generate-plan")
    assert r.status_code == 500
    assert r.json()["detail"].startswith("load active gaps failed")


def test_register_race_on_username_is_409(db, session_factory, monkeypatch):
    with session_factory() as other:
        other.add(AuthUser(username="carol", password_hash="x"))
        other.commit()

    class _NoMatch:
        def filter(self, *args):
            return self

        def first(self):
            return None

    # The existence check misses the row a concurrent request just inserted
    monkeypatch.setattr(db, "query", lambda *args: _NoMatch())
    with pytest.raises(HTTPException) as exc:
        asyncio.run(register(RegisterRequest(username="carol", password="s3cret-pass"), db))
    assert exc.value.status_code == 409
