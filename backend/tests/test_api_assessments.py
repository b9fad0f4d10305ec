"""Tests for assessment and profile API endpoints."""
import pytest
from neurorisk.main import limiter
from neurorisk.models.database import db, get_db_connection
from neurorisk.services.audit_logger import get_audit_logs


USER_HEADERS = {"X-User-Id": "user-1"}
OTHER_HEADERS = {"X-User-Id": "user-2"}

# memory_recall averages to 50, every other domain to 60
TASK_RESULTS = [
    {"task_type": "memory_recall", "task_name": "Word recall", "user_score": 40},
    {"task_type": "memory_recall", "task_name": "Story recall", "user_score": 60},
    {"task_type": "attention", "task_name": "Digit span", "user_score": 60},
    {"task_type": "language", "task_name": "Naming", "user_score": 60},
    {"task_type": "executive_function", "task_name": "Trail making", "user_score": 60},
    {"task_type": "visuospatial", "task_name": "Clock drawing", "user_score": 60},
]


async def _create_assessment(client, headers=USER_HEADERS, assessment_type="comprehensive"):
    resp = await client.post(
        "/api/assessments/",
        json={"assessment_type": assessment_type},
        headers=headers,
    )
    assert resp.status_code == 200
    return resp.json()


async def _record_tasks(client, assessment_id):
    for task in TASK_RESULTS:
        resp = await client.post(
            f"/api/assessments/{assessment_id}/tasks",
            json=task,
            headers=USER_HEADERS,
        )
        assert resp.status_code == 200


@pytest.mark.asyncio
class TestHealth:
    async def test_root(self, client):
        resp = await client.get("/")
        assert resp.json()["message"] == "NeuroRisk API"

    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.json() == {"status": "healthy"}


@pytest.mark.asyncio
class TestCreateAssessment:
    async def test_create_success(self, client):
        data = await _create_assessment(client)
        assert data["assessment_type"] == "comprehensive"
        assert data["status"] == "in_progress"
        assert data["language"] == "en"
        assert data["user_id"] == "user-1"

    async def test_create_no_user(self, client):
        resp = await client.post("/api/assessments/", json={"assessment_type": "speech"})
        assert resp.status_code == 401

    async def test_create_missing_type(self, client):
        resp = await client.post("/api/assessments/", json={}, headers=USER_HEADERS)
        assert resp.status_code == 422

    async def test_create_is_audited(self, client):
        data = await _create_assessment(client)
        logs = get_audit_logs(action="create_assessment", resource_id=data["id"])
        assert len(logs) == 1


@pytest.mark.asyncio
class TestGetAssessments:
    async def test_list_own_only(self, client):
        await _create_assessment(client)
        await _create_assessment(client, headers=OTHER_HEADERS)
        resp = await client.get("/api/assessments/", headers=USER_HEADERS)
        assert resp.status_code == 200
        assert len(resp.json()) == 1
        assert resp.json()[0]["risk_scores"] == []

    async def test_list_no_user(self, client):
        resp = await client.get("/api/assessments/")
        assert resp.status_code == 401

    async def test_get_with_related(self, client):
        created = await _create_assessment(client)
        await _record_tasks(client, created["id"])
        resp = await client.get(f"/api/assessments/{created['id']}", headers=USER_HEADERS)
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["assessment_tasks"]) == len(TASK_RESULTS)
        assert data["speech_analysis"] == []
        assert data["risk_scores"] == []

    async def test_get_other_users_assessment(self, client):
        created = await _create_assessment(client)
        resp = await client.get(f"/api/assessments/{created['id']}", headers=OTHER_HEADERS)
        assert resp.status_code == 404

    async def test_get_missing(self, client):
        resp = await client.get("/api/assessments/missing", headers=USER_HEADERS)
        assert resp.status_code == 404


@pytest.mark.asyncio
class TestUpdateAssessment:
    async def test_complete(self, client):
        created = await _create_assessment(client)
        resp = await client.patch(
            f"/api/assessments/{created['id']}",
            json={"status": "completed", "notes": "Finished all tasks"},
            headers=USER_HEADERS,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "completed"
        assert data["completed_at"] is not None
        assert data["notes"] == "Finished all tasks"

    async def test_empty_update(self, client):
        created = await _create_assessment(client)
        resp = await client.patch(
            f"/api/assessments/{created['id']}", json={}, headers=USER_HEADERS
        )
        assert resp.status_code == 400

    async def test_invalid_status(self, client):
        created = await _create_assessment(client)
        resp = await client.patch(
            f"/api/assessments/{created['id']}",
            json={"status": "archived"},
            headers=USER_HEADERS,
        )
        assert resp.status_code == 422

    async def test_update_other_users_assessment(self, client):
        created = await _create_assessment(client)
        resp = await client.patch(
            f"/api/assessments/{created['id']}",
            json={"status": "completed"},
            headers=OTHER_HEADERS,
        )
        assert resp.status_code == 404


@pytest.mark.asyncio
class TestRecordEntries:
    async def test_record_task(self, client):
        created = await _create_assessment(client)
        resp = await client.post(
            f"/api/assessments/{created['id']}/tasks",
            json={"task_type": "memory_recall", "user_score": 80,
                  "user_response": {"recalled": 4}},
            headers=USER_HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["user_response"] == {"recalled": 4}

    async def test_record_task_unknown_assessment(self, client):
        resp = await client.post(
            "/api/assessments/missing/tasks",
            json={"task_type": "attention", "user_score": 50},
            headers=USER_HEADERS,
        )
        assert resp.status_code == 404

    async def test_record_speech(self, client):
        created = await _create_assessment(client)
        resp = await client.post(
            f"/api/assessments/{created['id']}/speech",
            json={"speech_rate": 130, "pause_frequency": 7},
            headers=USER_HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["speech_rate"] == 130
        assert resp.json()["voice_tremor_score"] is None


@pytest.mark.asyncio
class TestAnalyzeAssessment:
    async def test_analyze_defaults_for_missing_speech(self, client):
        created = await _create_assessment(client)
        await _record_tasks(client, created["id"])

        resp = await client.post(
            f"/api/assessments/{created['id']}/analyze", headers=USER_HEADERS
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        result = data["risk_assessment"]
        assert result["cognitive_score"] == 57
        assert result["speech_score"] == 88
        assert result["memory_score"] == 50
        assert result["overall_risk_score"] == 35
        assert result["risk_level"] == "moderate"
        assert result["risk_factors"] == [
            "Significant cognitive impairment detected",
            "Severe memory impairment",
        ]
        assert len(result["recommendations"]) == 5
        assert 0.75 <= result["confidence_level"] <= 0.90

    async def test_analyze_persists_result(self, client):
        created = await _create_assessment(client)
        await _record_tasks(client, created["id"])
        resp = await client.post(
            f"/api/assessments/{created['id']}/analyze", headers=USER_HEADERS
        )
        risk_score_id = resp.json()["risk_score_id"]

        stored = db.get_latest_risk_score(created["id"])
        assert stored["id"] == risk_score_id
        assert stored["ai_model_version"] == "v1.0.0"
        assert stored["risk_factors"] == resp.json()["risk_assessment"]["risk_factors"]

        assessment = db.get_assessment(created["id"])
        assert assessment["risk_level"] == "moderate"
        assert assessment["total_score"] == 57

        assert len(get_audit_logs(action="analyze_assessment", resource_id=created["id"])) == 1

    async def test_analyze_uses_profile(self, client):
        await client.put(
            "/api/profile",
            json={"date_of_birth": "1930-05-01", "education_level": "low"},
            headers=USER_HEADERS,
        )
        created = await _create_assessment(client)
        await _record_tasks(client, created["id"])
        resp = await client.post(
            f"/api/assessments/{created['id']}/analyze", headers=USER_HEADERS
        )
        factors = resp.json()["risk_assessment"]["risk_factors"]
        assert factors[-2:] == ["Advanced age (>75 years)", "Limited educational background"]

    async def test_analyze_uses_latest_speech(self, client):
        created = await _create_assessment(client)
        await client.post(
            f"/api/assessments/{created['id']}/speech",
            json={"speech_rate": 130},
            headers=USER_HEADERS,
        )
        await client.post(
            f"/api/assessments/{created['id']}/speech",
            json={"speech_rate": 40, "pause_frequency": 30, "voice_tremor_score": 100,
                  "articulation_clarity": 1, "semantic_fluency_score": 1,
                  "phonemic_fluency_score": 1},
            headers=USER_HEADERS,
        )
        resp = await client.post(
            f"/api/assessments/{created['id']}/analyze", headers=USER_HEADERS
        )
        result = resp.json()["risk_assessment"]
        # 8 + 4.5 + 0 + 0.25 + 0.15 + 0.15 = 13.05
        assert result["speech_score"] == 13
        assert "Significant speech and language abnormalities" in result["risk_factors"]
        assert result["recommendations"][-1] == "Speech therapy evaluation may be helpful"

    async def test_analyze_no_tasks(self, client):
        created = await _create_assessment(client)
        resp = await client.post(
            f"/api/assessments/{created['id']}/analyze", headers=USER_HEADERS
        )
        result = resp.json()["risk_assessment"]
        assert result["cognitive_score"] == 75
        assert result["memory_score"] == 75
        assert result["speech_score"] == 88

    async def test_analyze_other_user(self, client):
        created = await _create_assessment(client)
        resp = await client.post(
            f"/api/assessments/{created['id']}/analyze", headers=OTHER_HEADERS
        )
        assert resp.status_code == 404

    async def test_analyze_no_user(self, client):
        created = await _create_assessment(client)
        resp = await client.post(f"/api/assessments/{created['id']}/analyze")
        assert resp.status_code == 401

    async def test_analyze_save_failure_keeps_nothing(self, client):
        created = await _create_assessment(client)
        await _record_tasks(client, created["id"])

        conn = get_db_connection()
        conn.execute(
            "CREATE TRIGGER fail_update BEFORE UPDATE ON assessments "
            "BEGIN SELECT RAISE(ABORT, 'update blocked'); END"
        )
        conn.commit()
        conn.close()

        resp = await client.post(
            f"/api/assessments/{created['id']}/analyze", headers=USER_HEADERS
        )
        assert resp.status_code == 500
        assert db.get_risk_scores(created["id"]) == []
        assert db.get_assessment(created["id"])["risk_level"] is None


@pytest.mark.asyncio
class TestResults:
    async def test_results_after_analyze(self, client):
        created = await _create_assessment(client)
        await _record_tasks(client, created["id"])
        analyzed = await client.post(
            f"/api/assessments/{created['id']}/analyze", headers=USER_HEADERS
        )
        resp = await client.get(
            f"/api/assessments/{created['id']}/results", headers=USER_HEADERS
        )
        assert resp.status_code == 200
        assert resp.json()["id"] == analyzed.json()["risk_score_id"]
        assert resp.json()["overall_risk_score"] == 35

    async def test_results_not_analyzed(self, client):
        created = await _create_assessment(client)
        resp = await client.get(
            f"/api/assessments/{created['id']}/results", headers=USER_HEADERS
        )
        assert resp.status_code == 404


@pytest.mark.asyncio
class TestHistory:
    async def test_history_newest_first(self, client):
        created = await _create_assessment(client)
        await client.post(
            f"/api/assessments/{created['id']}/tasks",
            json={"task_type": "attention", "user_score": 70},
            headers=USER_HEADERS,
        )
        resp = await client.get(
            f"/api/assessments/{created['id']}/history", headers=USER_HEADERS
        )
        assert resp.status_code == 200
        assert [entry["action"] for entry in resp.json()] == [
            "record_task",
            "create_assessment",
        ]
        assert resp.json()[0]["details"] == {"task_type": "attention", "user_score": 70}

    async def test_history_other_user(self, client):
        created = await _create_assessment(client)
        resp = await client.get(
            f"/api/assessments/{created['id']}/history", headers=OTHER_HEADERS
        )
        assert resp.status_code == 404

    async def test_history_no_user(self, client):
        created = await _create_assessment(client)
        resp = await client.get(f"/api/assessments/{created['id']}/history")
        assert resp.status_code == 401


@pytest.fixture
def rate_limited():
    limiter.enabled = True
    limiter.reset()
    yield limiter
    limiter.enabled = False
    limiter.reset()


@pytest.mark.asyncio
class TestRateLimit:
    async def test_default_limit_returns_429(self, client, rate_limited):
        statuses = [(await client.get("/health")).status_code for _ in range(101)]
        assert statuses[:100] == [200] * 100
        assert statuses[100] == 429


@pytest.mark.asyncio
class TestProfile:
    async def test_get_missing_profile(self, client):
        resp = await client.get("/api/profile", headers=USER_HEADERS)
        assert resp.status_code == 404

    async def test_put_and_get(self, client):
        resp = await client.put(
            "/api/profile",
            json={"full_name": "Jane Doe", "date_of_birth": "1950-07-04"},
            headers=USER_HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["date_of_birth"] == "1950-07-04"

        resp = await client.get("/api/profile", headers=USER_HEADERS)
        assert resp.json()["full_name"] == "Jane Doe"

    async def test_invalid_date(self, client):
        resp = await client.put(
            "/api/profile", json={"date_of_birth": "not-a-date"}, headers=USER_HEADERS
        )
        assert resp.status_code == 422

    async def test_profile_no_user(self, client):
        resp = await client.put("/api/profile", json={"education_level": "low"})
        assert resp.status_code == 401
