"""Timeouts and thresholds for remote calls and the conversation loop"""
import os
import logging

from analysis.eda import DEFAULT_THRESHOLDS, EDAThresholds

logger = logging.getLogger(__name__)

REMOTE_TIMEOUT_SECONDS = 10.0
HEALTH_TIMEOUT_SECONDS = 3.0
MAX_SUGGESTIONS = 3


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}; using {default}")
        return default


class PolicyManager:
    """Execution limits shared by the dispatcher, proxy and conversation loop"""

    def __init__(
        self,
        remote_timeout: float = REMOTE_TIMEOUT_SECONDS,
        health_timeout: float = HEALTH_TIMEOUT_SECONDS,
        max_suggestions: int = MAX_SUGGESTIONS,
        thresholds: EDAThresholds = DEFAULT_THRESHOLDS,
    ):
        self.remote_timeout = remote_timeout
        self.health_timeout = health_timeout
        self.max_suggestions = max_suggestions
        self.thresholds = thresholds

    @classmethod
    def from_env(cls) -> "PolicyManager":
        thresholds = DEFAULT_THRESHOLDS.model_copy(update={
            "missing_pct": _float_env("EDA_MISSING_PCT", DEFAULT_THRESHOLDS.missing_pct),
            "iqr_multiplier": _float_env("EDA_IQR_MULTIPLIER", DEFAULT_THRESHOLDS.iqr_multiplier),
            "strong_correlation": _float_env("EDA_STRONG_CORRELATION", DEFAULT_THRESHOLDS.strong_correlation),
        })
        return cls(
            remote_timeout=_float_env("REMOTE_TIMEOUT_SECONDS", REMOTE_TIMEOUT_SECONDS),
            health_timeout=_float_env("HEALTH_TIMEOUT_SECONDS", HEALTH_TIMEOUT_SECONDS),
            thresholds=thresholds,
        )
