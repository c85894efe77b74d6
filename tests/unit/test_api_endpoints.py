"""
Unit tests for API endpoints.
"""
from thread_memory.summary.errors import ExtractionFailure
from thread_memory.summary.schemas import MemorySettings

PAIR = {"thread_id": "t1", "user_msg_id": "u1", "assistant_msg_id": "a1"}


def test_health_endpoint(client):
    """Test health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "version" in data
    assert isinstance(data["components"], dict)


def test_summarize_creates_summary(client, extractor):
    extractor.push({"summary": "Named the project", "facts": {"name": "Atlas"}})

    response = client.post("/api/retrieval/summarize", json=PAIR)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "created"
    assert data["summary"] == {
        "version": 1,
        "core_text_length": len("Named the project"),
        "facts_count": 1,
        "decisions_count": 0,
    }
    assert data["changes"]["added"]["facts"] == ["name"]
    assert data["changes"]["removed"] == []


def test_summarize_twice_reports_duplicate(client):
    client.post("/api/retrieval/summarize", json=PAIR)

    response = client.post("/api/retrieval/summarize", json=PAIR)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "duplicate"
    assert data["message"] == "Message pair already processed"
    assert data["summary"]["version"] == 1


def test_summarize_disabled(client, services, extractor):
    services.memory_settings.upsert_memory_settings(MemorySettings(user_id="user_1", use_summarization=False))

    response = client.post("/api/retrieval/summarize", json=PAIR)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "disabled"
    assert data["message"] == "Summarization disabled"
    assert extractor.calls == []


def test_summarize_missing_fields_is_400(client):
    response = client.post("/api/retrieval/summarize", json={"thread_id": "t1"})

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert "user_msg_id" in data["error"]
    assert "assistant_msg_id" in data["error"]


def test_summarize_unknown_thread_is_404(client):
    response = client.post("/api/retrieval/summarize", json={**PAIR, "thread_id": "ghost"})

    assert response.status_code == 404
    assert response.json()["error_code"] == "thread_not_found"


def test_summarize_bad_pair_is_400(client):
    response = client.post("/api/retrieval/summarize", json={**PAIR, "assistant_msg_id": "a404"})

    assert response.status_code == 400
    assert response.json()["error_code"] == "message_pair_not_found"


def test_summarize_extraction_failure_is_502(client, services, extractor):
    extractor.push(ExtractionFailure("model returned invalid JSON"))

    response = client.post("/api/retrieval/summarize", json=PAIR)

    assert response.status_code == 502
    data = response.json()
    assert data["success"] is False
    assert data["error_code"] == "extraction_failed"
    assert services.summaries.get("t1") is None


def test_summarize_async_and_poll(client, services):
    response = client.post("/api/retrieval/summarize/async", json=PAIR)

    assert response.status_code == 202
    job_id = response.json()["job_id"]
    services.worker.wait(job_id, timeout=5)

    status = client.get(f"/api/retrieval/jobs/{job_id}")
    assert status.status_code == 200
    data = status.json()
    assert data["state"] == "succeeded"
    assert data["result"]["status"] == "created"
    assert data["trigger"]["assistant_msg_id"] == "a1"


def test_unknown_job_is_404(client):
    assert client.get("/api/retrieval/jobs/nope").status_code == 404


def test_get_summary(client, extractor):
    extractor.push({"goals": ["ship v1"]})
    client.post("/api/retrieval/summarize", json=PAIR)

    response = client.get("/api/retrieval/summaries/t1")

    assert response.status_code == 200
    data = response.json()
    assert data["thread_id"] == "t1"
    assert data["version"] == 1
    assert data["goals"] == ["ship v1"]
    assert data["last_message_id"] == "a1"


def test_get_missing_summary_is_404(client):
    assert client.get("/api/retrieval/summaries/t1").status_code == 404


def test_context(client, extractor):
    response = client.get("/api/retrieval/summaries/t1/context")
    assert response.json() == {"thread_id": "t1", "version": None, "context": None}

    extractor.push({"goals": ["ship v1"], "facts": {"name": "Atlas"}})
    client.post("/api/retrieval/summarize", json=PAIR)

    data = client.get("/api/retrieval/summaries/t1/context").json()
    assert data["version"] == 1
    assert data["context"] == "Goals: ship v1 | Facts: name: Atlas"


def test_events(client, extractor):
    client.post("/api/retrieval/summarize", json=PAIR)
    client.post("/api/retrieval/summarize", json=PAIR)

    response = client.get("/api/retrieval/summaries/t1/events")
    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert [e["event_type"] for e in data["events"]] == ["created", "reconcile"]

    filtered = client.get("/api/retrieval/summaries/t1/events", params={"event_type": "reconcile"}).json()
    assert filtered["count"] == 1


def test_delete_thread(client, services):
    client.post("/api/retrieval/summarize", json=PAIR)

    response = client.delete("/api/retrieval/threads/t1")

    assert response.status_code == 200
    assert response.json() == {"thread_id": "t1", "messages": 2, "summary": True, "events": 1}
    assert services.summaries.get("t1") is None
    assert services.events.count("t1") == 0
    assert services.messages.get_thread_owner("t1") is None
