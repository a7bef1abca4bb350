"""Outbound forwarding to the external agent services.

Every public coroutine on ServiceProxy returns a ProxyResponse and never
raises: network failures and non-2xx answers become a
``{error, message, target}`` envelope with status 502. The one exception is
``ask_question``, which answers 200 with a canned answer so the chat never
shows a raw error. ``request_json`` is the raising variant used by callers
that run their own fallback (dispatcher, conversation loop).
"""
import json
import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from analysis.errors import NetworkError, RemoteServiceError, UpstreamError
from .policies import PolicyManager

logger = logging.getLogger(__name__)

DEFAULT_ML_VALIDATION_URL = "https://ownquestaagents-production.up.railway.app/ml-validation/validate"
DEFAULT_VALIDATION_AGENT_URL = "http://localhost:8000"
DEFAULT_EDA_AGENT_URL = "http://localhost:8002/eda/upload_and_run"
DEFAULT_ML_ASSISTANT_URL = "http://localhost:8000/ml-assistant"

FALLBACK_ANSWER = (
    "I couldn't reach the validation agent just now. "
    "Your analysis results are still available; try asking again in a moment."
)


@dataclass
class ServiceTargets:
    validation_agent_url: str = DEFAULT_VALIDATION_AGENT_URL
    eda_agent_url: str = DEFAULT_EDA_AGENT_URL
    ml_assistant_url: str = DEFAULT_ML_ASSISTANT_URL
    ml_validation_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ServiceTargets":
        return cls(
            validation_agent_url=os.getenv("VALIDATION_AGENT_URL") or DEFAULT_VALIDATION_AGENT_URL,
            eda_agent_url=os.getenv("EDA_AGENT_URL") or DEFAULT_EDA_AGENT_URL,
            ml_assistant_url=os.getenv("ML_ASSISTANT_URL") or DEFAULT_ML_ASSISTANT_URL,
            ml_validation_url=os.getenv("ML_VALIDATION_URL") or None,
        )

    @property
    def ml_validation(self) -> str:
        return self.ml_validation_url or DEFAULT_ML_VALIDATION_URL

    @property
    def analyze(self) -> str:
        """CSV-text validation endpoint, derived from ML_VALIDATION_URL when set"""
        if self.ml_validation_url:
            base = self.ml_validation_url.replace("/ml-validation/validate", "")
            return f"{base.rstrip('/')}/validation/analyze"
        return f"{self.validation_agent_url.rstrip('/')}/validation/analyze"

    @property
    def question(self) -> str:
        return f"{self.validation_agent_url.rstrip('/')}/validation/question"

    @property
    def chat(self) -> str:
        return f"{self.ml_assistant_url.rstrip('/')}/chat"

    @property
    def health(self) -> str:
        return f"{self.ml_assistant_url.rstrip('/')}/health"


@dataclass
class ProxyResponse:
    status_code: int
    content: bytes
    media_type: Optional[str] = "application/json"
    target: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return json.loads(self.content or b"null")

    @classmethod
    def from_json(cls, payload: Any, status_code: int = 200, target: str = "") -> "ProxyResponse":
        return cls(status_code=status_code, content=json.dumps(payload, default=str).encode("utf-8"), target=target)

    @classmethod
    def envelope(cls, error: RemoteServiceError, status_code: int = 502, **extra: Any) -> "ProxyResponse":
        kind = "Upstream error" if isinstance(error, UpstreamError) else "Proxy error"
        payload = {"error": kind, "message": error.message, "target": error.target}
        payload.update(extra)
        return cls.from_json(payload, status_code=status_code, target=error.target)


class ServiceProxy:
    def __init__(
        self,
        targets: Optional[ServiceTargets] = None,
        policy: Optional[PolicyManager] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.targets = targets or ServiceTargets.from_env()
        self.policy = policy or PolicyManager()
        # injectable so tests can substitute httpx.MockTransport
        self.transport = transport

    async def _send(
        self,
        method: str,
        target: str,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        timeout = self.policy.remote_timeout if timeout is None else timeout
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                response = await client.request(method, target, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out after {timeout}s", target) from e
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            raise NetworkError(str(e) or e.__class__.__name__, target) from e

        if not response.is_success:
            raise UpstreamError(
                f"API request failed: {response.status_code}",
                target,
                status_code=response.status_code,
                body=response.text,
            )
        return response

    async def request_json(self, target: str, payload: Dict[str, Any], timeout: Optional[float] = None) -> Any:
        """POST a JSON body and decode the JSON answer; raises RemoteServiceError"""
        response = await self._send(
            "POST", target, timeout=timeout, json=payload,
            headers={"accept": "application/json"},
        )
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError("Response was not valid JSON", target, status_code=response.status_code, body=response.text) from e

    async def forward_json(self, target: str, payload: Dict[str, Any]) -> ProxyResponse:
        logger.info(f"[proxy] forwarding JSON request to target: {target}")
        try:
            data = await self.request_json(target, payload)
        except RemoteServiceError as e:
            logger.error(f"[proxy] JSON forward failed. target={target}: {e.message}")
            return ProxyResponse.envelope(e)
        return ProxyResponse.from_json(data, target=target)

    async def forward_multipart(self, target: str, body: bytes, content_type: Optional[str]) -> ProxyResponse:
        """Pass the raw multipart body and its content type through untouched"""
        logger.info(f"[proxy] forwarding multipart request to target: {target}")
        headers = {"accept": "application/json"}
        if content_type:
            headers["content-type"] = content_type
        try:
            response = await self._send("POST", target, content=body, headers=headers)
        except RemoteServiceError as e:
            logger.error(f"[proxy] multipart forward failed. target={target}: {e.message}")
            return ProxyResponse.envelope(e)
        return ProxyResponse(
            status_code=response.status_code,
            content=response.content,
            media_type=response.headers.get("content-type"),
            target=target,
        )

    async def ask_question(self, payload: Dict[str, Any]) -> ProxyResponse:
        """Always 200: a failed upstream call yields a safe fallback answer"""
        target = self.targets.question
        logger.info(f"Proxying question to validation agent: {payload.get('question')!r}")
        try:
            data = await self.request_json(target, payload)
        except RemoteServiceError as e:
            logger.warning(f"Validation agent unavailable ({e.message}); returning fallback answer")
            return ProxyResponse.from_json({"answer": FALLBACK_ANSWER, "fallback": True}, target=target)
        return ProxyResponse.from_json(data, target=target)

    async def chat(self, message: str, context: Optional[Dict[str, Any]] = None, conversation_id: Optional[str] = None) -> ProxyResponse:
        target = self.targets.chat
        payload = {"message": message, "context": context or {}, "conversation_id": conversation_id}
        try:
            data = await self.request_json(target, payload)
        except RemoteServiceError as e:
            logger.error(f"ML assistant error. target={target}: {e.message}")
            return ProxyResponse.envelope(
                e, fallback_response="I'm currently unable to connect to the ML Assistant service.",
            )
        return ProxyResponse.from_json(data, target=target)

    async def health(self) -> ProxyResponse:
        target = self.targets.health
        try:
            response = await self._send("GET", target, timeout=self.policy.health_timeout)
            agent_status = response.json()
        except RemoteServiceError as e:
            return ProxyResponse.from_json(
                {"status": "disconnected", "message": "ML Assistant service is not responding", "details": e.message},
                status_code=503, target=target,
            )
        except ValueError:
            agent_status = None
        return ProxyResponse.from_json({"status": "connected", "agent_status": agent_status}, target=target)
