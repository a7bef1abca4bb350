"""Tests for the agent-service proxy"""
import asyncio

import httpx
import pytest

from analysis.errors import NetworkError, UpstreamError
from orchestrator.remote import FALLBACK_ANSWER, ProxyResponse, ServiceTargets


class TestServiceTargets:
    def test_defaults(self):
        targets = ServiceTargets()

        assert targets.analyze == "http://localhost:8000/validation/analyze"
        assert targets.question == "http://localhost:8000/validation/question"
        assert targets.chat == "http://localhost:8000/ml-assistant/chat"
        assert targets.health == "http://localhost:8000/ml-assistant/health"
        assert targets.ml_validation.endswith("/ml-validation/validate")

    def test_analyze_derived_from_validation_override(self):
        targets = ServiceTargets(ml_validation_url="https://agents.example.com/ml-validation/validate")

        assert targets.ml_validation == "https://agents.example.com/ml-validation/validate"
        assert targets.analyze == "https://agents.example.com/validation/analyze"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VALIDATION_AGENT_URL", "http://validator:9000")
        monkeypatch.delenv("ML_VALIDATION_URL", raising=False)

        targets = ServiceTargets.from_env()
        assert targets.question == "http://validator:9000/validation/question"


class TestRequestJson:
    def test_non_2xx_raises_upstream_error(self, failing_proxy):
        with pytest.raises(UpstreamError) as exc:
            asyncio.run(failing_proxy.request_json("http://svc/x", {}))
        assert exc.value.status_code == 500
        assert exc.value.target == "http://svc/x"

    def test_connection_failure_raises_network_error(self, unreachable_proxy):
        with pytest.raises(NetworkError):
            asyncio.run(unreachable_proxy.request_json("http://svc/x", {}))

    def test_timeout_raises_network_error(self, make_proxy):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        with pytest.raises(NetworkError) as exc:
            asyncio.run(make_proxy(handler).request_json("http://svc/x", {}))
        assert "timed out" in exc.value.message


class TestForwarding:
    def test_json_forward_passes_through_success(self, make_proxy):
        def handler(request):
            return httpx.Response(200, json={"ok": True})

        response = asyncio.run(make_proxy(handler).forward_json("http://svc/analyze", {"csv_text": "a\n1"}))
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_json_forward_wraps_upstream_error(self, failing_proxy):
        response = asyncio.run(failing_proxy.forward_json("http://svc/analyze", {}))

        assert response.status_code == 502
        assert response.json() == {
            "error": "Upstream error",
            "message": "API request failed: 500",
            "target": "http://svc/analyze",
        }

    def test_json_forward_wraps_network_error(self, unreachable_proxy):
        response = asyncio.run(unreachable_proxy.forward_json("http://svc/analyze", {}))

        assert response.status_code == 502
        assert response.json()["error"] == "Proxy error"
        assert response.json()["target"] == "http://svc/analyze"

    def test_multipart_body_forwarded_unchanged(self, make_proxy):
        body = b'--xyz\r\nContent-Disposition: form-data; name="goal"\r\n\r\npredict\r\n--xyz--\r\n'
        received = {}

        def handler(request):
            received["content"] = request.content
            received["content_type"] = request.headers["content-type"]
            return httpx.Response(201, content=b"<ok/>", headers={"content-type": "text/xml"})

        response = asyncio.run(make_proxy(handler).forward_multipart(
            "http://svc/upload", body, "multipart/form-data; boundary=xyz",
        ))

        assert received == {"content": body, "content_type": "multipart/form-data; boundary=xyz"}
        assert response.status_code == 201
        assert response.content == b"<ok/>"
        assert response.media_type == "text/xml"


class TestQuestionAndAssistant:
    def test_question_failure_still_answers(self, failing_proxy):
        response = asyncio.run(failing_proxy.ask_question({"question": "why?", "eda_results": {}}))

        assert response.status_code == 200
        assert response.json() == {"answer": FALLBACK_ANSWER, "fallback": True}

    def test_question_success_passes_answer(self, make_proxy):
        def handler(request):
            return httpx.Response(200, json={"answer": "Because."})

        response = asyncio.run(make_proxy(handler).ask_question({"question": "why?"}))
        assert response.json() == {"answer": "Because."}

    def test_chat_failure_has_fallback_response(self, unreachable_proxy):
        response = asyncio.run(unreachable_proxy.chat("hi"))

        assert response.status_code == 502
        assert "fallback_response" in response.json()

    def test_health_down_is_503(self, unreachable_proxy):
        response = asyncio.run(unreachable_proxy.health())

        assert response.status_code == 503
        assert response.json()["status"] == "disconnected"

    def test_health_up(self, make_proxy):
        def handler(request):
            assert request.method == "GET"
            return httpx.Response(200, json={"status": "healthy"})

        response = asyncio.run(make_proxy(handler).health())
        assert response.status_code == 200
        assert response.json() == {"status": "connected", "agent_status": {"status": "healthy"}}


class TestProxyResponse:
    def test_ok(self):
        assert ProxyResponse.from_json({}).ok
        assert not ProxyResponse.from_json({}, status_code=502).ok
