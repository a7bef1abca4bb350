"""Tests for the FastAPI backend"""
import httpx
import pytest
from fastapi.testclient import TestClient

from web.backend import main
from orchestrator.remote import FALLBACK_ANSWER
from web.backend.services import ConversationService


def _install(monkeypatch, handler):
    monkeypatch.setattr(main.proxy, "transport", httpx.MockTransport(handler))


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def offline(monkeypatch):
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)
    _install(monkeypatch, handler)


class TestProxyRoutes:
    def test_analyze_upstream_error_envelope(self, client, monkeypatch):
        _install(monkeypatch, lambda request: httpx.Response(500, json={"detail": "boom"}))

        response = client.post("/api/ml-validation/analyze", json={"csv_text": "a\n1", "goal": None})

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "Upstream error"
        assert body["target"].endswith("/validation/analyze")

    def test_analyze_success_passthrough(self, client, monkeypatch):
        _install(monkeypatch, lambda request: httpx.Response(200, json={"success": True}))

        response = client.post("/api/ml-validation/analyze", json={"csv_text": "a\n1"})
        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_eda_multipart_forwarded(self, client, monkeypatch):
        received = {}

        def handler(request):
            received["content_type"] = request.headers["content-type"]
            received["body"] = request.content
            return httpx.Response(200, json={"status": "done"})

        _install(monkeypatch, handler)
        response = client.post(
            "/api/agents/eda",
            files={"file": ("data.csv", b"a,b\n1,2\n", "text/csv")},
            data={"goal": "explore"},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "done"}
        assert received["content_type"].startswith("multipart/form-data; boundary=")
        assert b"a,b\n1,2\n" in received["body"]
        assert b"explore" in received["body"]

    def test_file_validation_network_error(self, client, offline):
        response = client.post(
            "/api/ml-validation/validate",
            files={"file": ("d.csv", b"a\n1\n", "text/csv")},
            data={"goal": "predict a"},
        )

        assert response.status_code == 502
        assert response.json()["error"] == "Proxy error"

    def test_validation_without_goal_is_rejected_locally(self, client, monkeypatch):
        calls = []
        _install(monkeypatch, lambda request: calls.append(request) or httpx.Response(200, json={}))

        response = client.post("/api/ml-validation/validate", files={"file": ("d.csv", b"a\n1\n", "text/csv")})

        assert response.status_code == 400
        assert response.json()["detail"] == "No ML goal provided"
        assert calls == []

    def test_validation_without_file_is_rejected_locally(self, client, monkeypatch):
        calls = []
        _install(monkeypatch, lambda request: calls.append(request) or httpx.Response(200, json={}))

        response = client.post("/api/ml-validation/validate", data={"goal": "predict a"})

        assert response.status_code == 400
        assert response.json()["detail"] == "No file provided"
        assert calls == []

    def test_eda_without_file_is_rejected_locally(self, client, monkeypatch):
        calls = []
        _install(monkeypatch, lambda request: calls.append(request) or httpx.Response(200, json={}))

        response = client.post("/api/agents/eda", data={"goal": "explore"})

        assert response.status_code == 400
        assert calls == []

    def test_question_always_answers(self, client, offline):
        response = client.post("/api/validation/question", json={"question": "why?", "eda_results": {}})

        assert response.status_code == 200
        assert response.json()["answer"] == FALLBACK_ANSWER

    def test_assistant_requires_message(self, client, offline):
        response = client.post("/api/ml/assistant", json={"context": {}})
        assert response.status_code == 400

    def test_assistant_health_down(self, client, offline):
        response = client.get("/api/ml/assistant")

        assert response.status_code == 503
        assert response.json()["status"] == "disconnected"


class TestConversationRoutes:
    def _create(self, client, **body):
        response = client.post("/conversations", json=body)
        assert response.status_code == 200
        return response.json()

    def test_full_conversation(self, client, offline, sample_csv):
        conversation = self._create(client)
        cid = conversation["conversation_id"]
        assert conversation["state"] == "idle"

        response = client.post(f"/conversations/{cid}/dataset/text", json={"csv_text": sample_csv, "filename": "c.csv"})
        assert response.status_code == 200
        assert response.json()["state"] == "awaitingGoal"

        response = client.post(f"/conversations/{cid}/goal", json={"text": "predict churn"})
        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "ready"
        assert body["goal"]["type"] == "supervised"
        assert body["result"]["source"] == "local"
        assert body["result"]["validationChecks"]["dataQuality"] == "Limited"

        response = client.post(f"/conversations/{cid}/questions", json={"question": "Are there any outliers?"})
        assert response.status_code == 200
        assert response.json()["role"] == "agent"

        view = client.get(f"/conversations/{cid}").json()
        assert view["messages"][-1]["role"] == "agent"
        assert view["result"]["shape"] == {"rows": 5, "columns": 4}

    def test_file_upload(self, client, offline, sample_csv):
        cid = self._create(client)["conversation_id"]

        response = client.post(
            f"/conversations/{cid}/dataset",
            files={"file": ("my data.csv", sample_csv.encode("utf-8"), "text/csv")},
        )

        assert response.status_code == 200
        assert "Uploaded: my_data.csv" in [m["content"] for m in response.json()["messages"]]

    def test_non_csv_upload_rejected(self, client, offline):
        cid = self._create(client)["conversation_id"]
        response = client.post(f"/conversations/{cid}/dataset", files={"file": ("notes.txt", b"a\n1\n", "text/plain")})
        assert response.status_code == 400

    def test_bad_table_rejected(self, client, offline):
        cid = self._create(client)["conversation_id"]
        response = client.post(f"/conversations/{cid}/dataset/text", json={"csv_text": "header_only"})
        assert response.status_code == 400

    def test_goal_before_dataset_conflicts(self, client, offline):
        cid = self._create(client)["conversation_id"]
        response = client.post(f"/conversations/{cid}/goal", json={"text": "predict churn"})
        assert response.status_code == 409

    def test_unknown_conversation(self, client):
        assert client.get("/conversations/nope").status_code == 404

    def test_restore_session(self, client, offline):
        conversation = self._create(client, restore_session=True, session={
            "mlSession": {
                "dataPreview": {"columns": ["a", "b"], "rows": [["1", "2"]]},
                "userQuery": "find clusters",
            }
        })

        assert conversation["state"] == "awaitingGoal"
        assert conversation["pending_goal"] == "find clusters"

    def test_restore_malformed_session_starts_fresh(self, client, offline):
        conversation = self._create(client, restore_session=True, session={
            "mlSession": {"dataPreview": ["oops"], "userQuery": 42},
        })

        assert conversation["state"] == "idle"
        assert conversation["pending_goal"] is None


class TestConversationService:
    def test_oldest_conversation_evicted_at_cap(self):
        service = ConversationService(main.proxy, main.policy, max_conversations=2)
        first = service.create()
        second = service.create()
        third = service.create()

        assert service.get(first.id) is None
        assert service.get(second.id) is second
        assert service.get(third.id) is third
        assert len(service.conversations) == 2

    def test_recently_used_conversation_survives(self):
        service = ConversationService(main.proxy, main.policy, max_conversations=2)
        first = service.create()
        second = service.create()

        assert service.get(first.id) is first
        service.create()

        assert service.get(first.id) is first
        assert service.get(second.id) is None

    def test_sanitize_filename(self):
        service = ConversationService(main.proxy, main.policy)

        assert service.sanitize_filename("../etc/my data?.csv") == "my_data_.csv"
        assert service.sanitize_filename(None) == "dataset.csv"
