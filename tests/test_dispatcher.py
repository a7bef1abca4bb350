"""Tests for remote-first analysis with local fallback"""
import asyncio
import json

import httpx
import pytest

from analysis.csv_codec import parse
from analysis.eda import run_local_eda
from analysis.errors import ValidationError
from analysis.models import Dataset
from orchestrator.dispatcher import AnalysisDispatcher
from orchestrator.goals import classify


class TestAnalysisDispatcher:
    def test_upstream_error_falls_back_to_local(self, failing_proxy, sample_csv):
        dataset = parse(sample_csv)
        result = asyncio.run(AnalysisDispatcher(proxy=failing_proxy).analyze(dataset))

        assert result.source == "local"
        assert result.shape.rows == 5

    def test_network_error_falls_back_to_local(self, unreachable_proxy, sample_csv):
        dataset = parse(sample_csv)
        goal = classify("predict churn", dataset.headers)
        result = asyncio.run(AnalysisDispatcher(proxy=unreachable_proxy).analyze(dataset, goal))

        assert result.source == "local"
        assert result.goal == goal

    def test_timeout_falls_back_to_local(self, make_proxy, sample_csv):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        result = asyncio.run(AnalysisDispatcher(proxy=make_proxy(handler)).analyze(parse(sample_csv)))
        assert result.source == "local"

    def test_remote_result_is_used(self, make_proxy, sample_csv):
        dataset = parse(sample_csv)
        remote = run_local_eda(dataset).to_wire()
        remote["recommendations"] = ["Remote says hello"]
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            assert request.url.path == "/validation/analyze"
            return httpx.Response(200, json={"success": True, "result": remote})

        goal = classify("predict churn", dataset.headers)
        result = asyncio.run(AnalysisDispatcher(proxy=make_proxy(handler)).analyze(dataset, goal))

        assert result.source == "remote"
        assert result.recommendations == ["Remote says hello"]
        assert result.goal == goal
        assert result.remote_report["success"] is True
        assert seen[0]["goal"] == {"type": "supervised", "target": "churn", "description": goal.description}
        assert parse(seen[0]["csv_text"]) == dataset

    def test_report_with_eda_result_is_used(self, make_proxy, sample_csv):
        dataset = parse(sample_csv)
        report = {"validation": {"status": "ok"}, "eda_result": run_local_eda(dataset).to_wire()}

        def handler(request):
            return httpx.Response(200, json=report)

        result = asyncio.run(AnalysisDispatcher(proxy=make_proxy(handler)).analyze(dataset))
        assert result.source == "remote"
        assert result.remote_report == report

    def test_unusable_remote_body_falls_back(self, make_proxy, sample_csv):
        def handler(request):
            return httpx.Response(200, json={"status": "queued"})

        result = asyncio.run(AnalysisDispatcher(proxy=make_proxy(handler)).analyze(parse(sample_csv)))
        assert result.source == "local"

    def test_remote_result_failing_schema_falls_back(self, make_proxy, sample_csv):
        def handler(request):
            return httpx.Response(200, json={"shape": {"rows": "many"}})

        result = asyncio.run(AnalysisDispatcher(proxy=make_proxy(handler)).analyze(parse(sample_csv)))
        assert result.source == "local"

    def test_nan_literal_in_remote_summary_falls_back(self, make_proxy, sample_csv):
        dataset = parse(sample_csv)
        remote = run_local_eda(dataset).to_wire()
        remote["numericalSummary"]["age"]["mean"] = float("nan")

        def handler(request):
            return httpx.Response(200, content=json.dumps(remote).encode("utf-8"))

        result = asyncio.run(AnalysisDispatcher(proxy=make_proxy(handler)).analyze(dataset))

        assert result.source == "local"
        assert json.dumps(result.to_wire(), allow_nan=False)

    def test_non_json_body_falls_back(self, make_proxy, sample_csv):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        result = asyncio.run(AnalysisDispatcher(proxy=make_proxy(handler)).analyze(parse(sample_csv)))
        assert result.source == "local"

    def test_empty_dataset_rejected_before_any_request(self, make_proxy):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        dispatcher = AnalysisDispatcher(proxy=make_proxy(handler))
        with pytest.raises(ValidationError):
            asyncio.run(dispatcher.analyze(Dataset(headers=["a"], rows=[])))
        assert calls == []
