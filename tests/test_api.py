"""HTTP API tests — FastAPI app driven through TestClient.

Each test gets a fresh application (in-memory store) with a fast polling
interval so ``/intake/summary/wait`` settles in milliseconds.  The
``with`` block runs the lifespan, so background extraction tasks live on
the client's event loop for the duration of the test.

Covers: session routes, the 422 validation body, error mapping,
Idempotency-Key replay, upload → wait → confirm → adaptive question,
reference lookups and admin auth.
"""

import pytest
from fastapi.testclient import TestClient

from interview_server.app import create_app
from interview_server.config import ServerSettings

from conftest import LOW_RISK_ANSWERS

ADMIN_KEY = "test-admin-key"


@pytest.fixture
def client():
    settings = ServerSettings(
        poll_interval=0.01,
        max_poll_attempts=500,
        max_upload_bytes=1024,
        admin_api_key=ADMIN_KEY,
    )
    with TestClient(create_app(settings)) as c:
        yield c


def _create_session(client, **body) -> str:
    resp = client.post("/v1/sessions", json=body or None)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _answer(client, session_id, question_id, value, **extra):
    return client.post(
        f"/v1/sessions/{session_id}/answers",
        json={"questionId": question_id, "answer": value, **extra},
    )


def _upload(client, session_id, content: bytes, filename="gp.txt", mime="text/plain"):
    return client.post(
        "/v1/intake/files",
        files={"file": (filename, content, mime)},
        data={"sessionId": session_id},
    )


# =====================================================================
# Sessions
# =====================================================================


class TestSessions:

    def test_create_defaults_tenant(self, client):
        resp = client.post("/v1/sessions")
        assert resp.status_code == 201
        body = resp.json()
        assert body["tenantId"] == "demo-tenant"
        assert body["status"] == "active"
        assert body["currentQuestionIndex"] == 0

    def test_create_with_tenant(self, client):
        session_id = _create_session(client, tenantId="acme")
        assert client.get(f"/v1/sessions/{session_id}").json()["tenantId"] == "acme"

    def test_unknown_session_404(self, client):
        resp = client.get("/v1/sessions/session-missing")
        assert resp.status_code == 404
        assert resp.json() == {"error": {"code": "not_found", "message": "Session not found"}}

    def test_full_interview_accepted(self, client):
        session_id = _create_session(client)
        first = client.get(f"/v1/sessions/{session_id}/next-question").json()
        assert first["question"]["id"] == "q-001"
        assert first["isTerminal"] is False

        for question_id, value in LOW_RISK_ANSWERS:
            resp = _answer(client, session_id, question_id, value)
            assert resp.status_code == 200, resp.text

        envelope = resp.json()["nextQuestion"]
        assert envelope["isTerminal"] is True
        assert envelope["question"] is None
        assert envelope["decision"] == "accept"
        assert envelope["decisionReason"] == "Low risk profile"

        again = client.get(f"/v1/sessions/{session_id}/next-question").json()
        assert again == envelope

    def test_validation_error_body(self, client):
        session_id = _create_session(client)
        resp = _answer(client, session_id, "q-001", "")
        assert resp.status_code == 422
        assert resp.json() == {
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "This field is required",
                "fieldErrors": [{"questionId": "q-001", "message": "This field is required"}],
            }
        }
        session = client.get(f"/v1/sessions/{session_id}").json()
        assert session["currentQuestionIndex"] == 0

    def test_wrong_question_400(self, client):
        session_id = _create_session(client)
        resp = _answer(client, session_id, "q-005", 70)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_question"

    def test_end_session_then_answer_409(self, client):
        session_id = _create_session(client)
        resp = client.delete(f"/v1/sessions/{session_id}")
        assert resp.json() == {"id": session_id, "status": "completed"}
        assert client.delete(f"/v1/sessions/{session_id}").status_code == 200

        resp = _answer(client, session_id, "q-001", "Jane Doe")
        assert resp.status_code == 409

    def test_transcript(self, client):
        session_id = _create_session(client)
        _answer(client, session_id, "q-001", "Jane Doe", inputMode="text")
        body = client.get(f"/v1/sessions/{session_id}/transcript").json()
        assert body["sessionId"] == session_id
        assert [i["role"] for i in body["items"]] == ["system", "user", "assistant"]
        assert body["items"][1]["redacted"] is True
        assert "Jane" not in body["items"][1]["text"]


# =====================================================================
# Idempotency
# =====================================================================


def test_idempotent_answer_replayed(client):
    session_id = _create_session(client)
    headers = {"Idempotency-Key": "retry-1"}
    payload = {"questionId": "q-001", "answer": "Jane Doe"}

    first = client.post(f"/v1/sessions/{session_id}/answers", json=payload, headers=headers)
    second = client.post(f"/v1/sessions/{session_id}/answers", json=payload, headers=headers)

    assert first.status_code == second.status_code == 200
    assert "Idempotent-Replayed" not in first.headers
    assert second.headers["Idempotent-Replayed"] == "true"
    assert second.json() == first.json()

    session = client.get(f"/v1/sessions/{session_id}").json()
    assert session["currentQuestionIndex"] == 1, "Replay must not re-run the answer"


def test_idempotency_key_reused_with_different_body(client):
    session_id = _create_session(client)
    headers = {"Idempotency-Key": "retry-3"}
    url = f"/v1/sessions/{session_id}/answers"

    first = client.post(url, json={"questionId": "q-001", "answer": "Jane Doe"}, headers=headers)
    assert first.status_code == 200

    resp = client.post(url, json={"questionId": "q-001", "answer": "John Roe"}, headers=headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "idempotency_key_reused"

    session = client.get(f"/v1/sessions/{session_id}").json()
    assert session["currentQuestionIndex"] == 1, "A mismatched body must not run"


def test_failed_request_not_cached(client):
    session_id = _create_session(client)
    headers = {"Idempotency-Key": "retry-2"}
    bad = _answer(client, session_id, "q-001", "J")
    assert bad.status_code == 422

    url = f"/v1/sessions/{session_id}/answers"
    assert client.post(url, json={"questionId": "q-001", "answer": "J"}, headers=headers).status_code == 422
    good = client.post(url, json={"questionId": "q-001", "answer": "Jane Doe"}, headers=headers)
    assert good.status_code == 200


# =====================================================================
# Intake
# =====================================================================


class TestIntake:

    def test_summary_pending_before_upload(self, client):
        session_id = _create_session(client)
        body = client.get("/v1/intake/summary", params={"sessionId": session_id}).json()
        assert body["status"] == "pending"
        assert body["extractionStatus"] == "pending"
        assert body["candidates"] == []

    def test_summary_requires_session_id(self, client):
        resp = client.get("/v1/intake/summary")
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Session ID required"

    def test_upload_extract_confirm_adapt(self, client):
        session_id = _create_session(client)

        resp = _upload(client, session_id, b"GP letter: long-standing asthma, well controlled.")
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["fileId"].startswith("file-")
        assert body["message"] == "File uploaded successfully"

        summary = client.get("/v1/intake/summary/wait", params={"sessionId": session_id}).json()
        assert summary["status"] == "completed"
        (candidate,) = summary["candidates"]
        assert candidate["canonical"]["code"] == "ASTHMA"
        assert candidate["matchType"] == "keyword"
        assert candidate["evidence"]["docId"] == body["fileId"]

        resp = client.patch(
            f"/v1/intake/candidates/{candidate['id']}",
            json={"sessionId": session_id, "severity": "mild"},
        )
        assert resp.status_code == 200
        assert resp.json()["severity"] == "mild"

        resp = client.post(
            "/v1/intake/confirmations",
            json={
                "sessionId": session_id,
                "confirmed": [{"candidateId": candidate["id"]}],
                "rejected": [],
                "manualAdd": [{"code": "HYPERTENSION", "label": "Hypertension"}],
            },
        )
        assert resp.status_code == 200, resp.text
        result = resp.json()
        assert result["confirmedCount"] == 1
        (prefill,) = result["prefill"]
        assert prefill["questionId"] == "q-007"
        assert prefill["answer"] == ["Asthma", "Hypertension"]
        assert prefill["evidenceRefs"] == [f"{body['fileId']}:1"]

        locked = client.patch(
            f"/v1/intake/candidates/{candidate['id']}",
            json={"sessionId": session_id, "severity": "severe"},
        )
        assert locked.status_code == 409

        for question_id, value in LOW_RISK_ANSWERS[:6]:
            resp = _answer(client, session_id, question_id, value)
        envelope = resp.json()["nextQuestion"]
        assert envelope["question"]["id"] == "q-007"
        assert envelope["question"]["prompt"].startswith("We noted Asthma, Hypertension")
        assert envelope["prefillContext"]["confirmedConditions"] == ["Asthma", "Hypertension"]

    def test_confirmation_without_extraction_404(self, client):
        session_id = _create_session(client)
        resp = client.post(
            "/v1/intake/confirmations",
            json={"sessionId": session_id, "confirmed": [], "rejected": [], "manualAdd": []},
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Extraction not found for session"

    def test_upload_rejections(self, client):
        session_id = _create_session(client)

        resp = _upload(client, session_id, b"MZ", filename="a.exe", mime="application/x-msdownload")
        assert resp.status_code == 400
        assert "Invalid file type" in resp.json()["error"]["message"]

        resp = _upload(client, session_id, b"x" * 2048)
        assert resp.status_code == 413

        resp = _upload(client, "session-missing", b"asthma")
        assert resp.status_code == 404

        resp = client.post("/v1/intake/files", files={"file": ("a.txt", b"asthma", "text/plain")})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Session ID required"

        resp = client.post("/v1/intake/files", data={"sessionId": session_id})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "No file uploaded"


# =====================================================================
# Reference data
# =====================================================================


class TestReference:

    def test_questions(self, client):
        questions = client.get("/v1/questions").json()
        assert len(questions) == 10
        assert questions[0]["helpText"] == "Example: John Michael Smith"

    def test_dictionary_search(self, client):
        hits = client.get("/v1/dictionary/search", params={"q": "asthma"}).json()
        assert hits[0] == {"code": "ASTHMA", "label": "Asthma", "category": "respiratory"}

    def test_dictionary_short_query(self, client):
        assert client.get("/v1/dictionary/search", params={"q": "a"}).json() == []

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok", "store": "memory"}


# =====================================================================
# Admin
# =====================================================================


class TestAdmin:

    def test_missing_key_401(self, client):
        assert client.post("/v1/admin/cleanup/expired").status_code == 401

    def test_wrong_key_403(self, client):
        resp = client.post("/v1/admin/cleanup/expired", headers={"X-Admin-Key": "nope"})
        assert resp.status_code == 403

    def test_cleanup(self, client):
        resp = client.post("/v1/admin/cleanup/expired", headers={"X-Admin-Key": ADMIN_KEY})
        assert resp.status_code == 200
        assert resp.json() == {"affectedRows": 0, "action": "purge_expired"}

    def test_disabled_without_key(self):
        with TestClient(create_app(ServerSettings())) as c:
            resp = c.post("/v1/admin/cleanup/expired", headers={"X-Admin-Key": "anything"})
        assert resp.status_code == 403
