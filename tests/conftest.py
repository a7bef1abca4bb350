"""Shared fixtures: sample tables and proxies backed by httpx.MockTransport"""
import httpx
import pytest

from orchestrator.policies import PolicyManager
from orchestrator.remote import ServiceProxy, ServiceTargets

SAMPLE_CSV = (
    "age,income,city,churn\n"
    "25,50000,Paris,no\n"
    "32,64000,Lyon,yes\n"
    "47,81000,Paris,no\n"
    "51,90000,Nice,yes\n"
    "38,,Lyon,no\n"
)


def _always_500(request: httpx.Request) -> httpx.Response:
    return httpx.Response(500, json={"detail": "boom"})


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


@pytest.fixture
def sample_csv():
    return SAMPLE_CSV


@pytest.fixture
def make_proxy():
    """Build a ServiceProxy whose every request is answered by ``handler``"""
    def _make(handler, policy=None):
        return ServiceProxy(
            targets=ServiceTargets(),
            policy=policy or PolicyManager(),
            transport=httpx.MockTransport(handler),
        )
    return _make


@pytest.fixture
def failing_proxy(make_proxy):
    return make_proxy(_always_500)


@pytest.fixture
def unreachable_proxy(make_proxy):
    return make_proxy(_unreachable)
