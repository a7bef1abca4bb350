"""Remote-first analysis with an immediate local fallback"""
import logging
from typing import Any, Optional

import pydantic

from analysis.csv_codec import serialize
from analysis.eda import run_local_eda
from analysis.errors import NetworkError, UpstreamError, ValidationError
from analysis.models import AnalysisResult, Dataset, Goal
from .policies import PolicyManager
from .remote import ServiceProxy

logger = logging.getLogger(__name__)

_LOCAL_FIELDS = {"goal", "source", "remoteReport", "remote_report"}


class AnalysisDispatcher:
    def __init__(self, proxy: Optional[ServiceProxy] = None, policy: Optional[PolicyManager] = None):
        self.policy = policy or (proxy.policy if proxy else PolicyManager())
        self.proxy = proxy or ServiceProxy(policy=self.policy)

    async def analyze(self, dataset: Dataset, goal: Optional[Goal] = None) -> AnalysisResult:
        """Ask the remote validation service, else compute locally.

        Only an empty dataset raises (ValidationError, before any network
        call). Remote failures of any kind fall back to the local engine once,
        without retrying.
        """
        if dataset is None or dataset.is_empty:
            raise ValidationError("A dataset with a header and at least one row is required")

        target = self.proxy.targets.analyze
        payload = {"csv_text": serialize(dataset), "goal": goal.to_remote() if goal else None}
        try:
            data = await self.proxy.request_json(target, payload, timeout=self.policy.remote_timeout)
            result = self._parse_remote(data, goal)
            if result is not None:
                logger.info(f"Remote analysis succeeded via {target}")
                return result
            logger.warning(f"Remote analysis from {target} had no usable result; running local EDA")
        except UpstreamError as e:
            logger.warning(f"Remote analysis returned {e.status_code} from {e.target}; running local EDA")
            logger.debug(f"Upstream body: {e.body}")
        except NetworkError as e:
            logger.warning(f"Could not contact {e.target} ({e.message}); running local EDA")

        return run_local_eda(dataset, goal, self.policy.thresholds)

    def _parse_remote(self, data: Any, goal: Optional[Goal]) -> Optional[AnalysisResult]:
        """Accept a bare result, one wrapped in ``result``, or a report's ``eda_result``"""
        if not isinstance(data, dict):
            return None
        body = data.get("result", data)
        candidates = [body]
        if isinstance(body, dict):
            candidates.append(body.get("eda_result"))

        for candidate in candidates:
            if not isinstance(candidate, dict) or "shape" not in candidate:
                continue
            # provenance fields are always set locally
            candidate = {k: v for k, v in candidate.items() if k not in _LOCAL_FIELDS}
            try:
                result = AnalysisResult.model_validate(candidate)
            except pydantic.ValidationError as e:
                logger.warning(f"Remote result failed schema validation: {e.error_count()} error(s)")
                continue
            return result.model_copy(update={"source": "remote", "goal": goal, "remote_report": data})
        return None
