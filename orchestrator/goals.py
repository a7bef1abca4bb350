"""Heuristic keyword classifier for free-text analysis goals"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from analysis.models import Goal

logger = logging.getLogger(__name__)

DEFAULT_GOAL = "eda"

# "supervised" itself is left out: it is a substring of "unsupervised"
GOAL_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "supervised": (
        "predict", "classif", "regress", "target", "label", "churn", "estimate", "outcome",
    ),
    "unsupervised": (
        "cluster", "segment", "unsupervised", "group", "anomal", "similar", "pattern",
    ),
    "eda": (
        "explor", "eda", "summar", "distribution", "insight", "overview", "understand",
        "visualiz", "describe", "statistic",
    ),
    "timeseries": (
        "time series", "timeseries", "time-series", "forecast", "trend", "seasonal",
        "over time", "temporal",
    ),
}

GOAL_METADATA: Dict[str, Tuple[str, List[str]]] = {
    "supervised": (
        "Supervised learning: predict a target column from the other features",
        ["target variable", "feature relevance", "class balance", "data leakage"],
    ),
    "unsupervised": (
        "Unsupervised learning: find structure in the data without labels",
        ["feature scaling", "cluster tendency", "correlated features", "outliers"],
    ),
    "timeseries": (
        "Time series analysis: model how values evolve over time",
        ["temporal ordering", "trend and seasonality", "missing periods", "autocorrelation"],
    ),
    "eda": (
        "Exploratory data analysis",
        ["distributions", "missing values", "outliers", "correlations"],
    ),
}


def guess_target(text: str, headers: Iterable[str]) -> Optional[str]:
    """Longest header name mentioned in the goal text, if any"""
    lowered = (text or "").lower()
    for header in sorted(headers, key=len, reverse=True):
        name = header.strip().lower()
        if len(name) >= 2 and name in lowered:
            return header
    return None


class GoalClassifier:
    def __init__(self, include_timeseries: bool = True):
        self.categories = [c for c in GOAL_KEYWORDS if include_timeseries or c != "timeseries"]

    def score(self, text: str) -> Dict[str, int]:
        lowered = (text or "").lower()
        return {
            category: sum(1 for kw in GOAL_KEYWORDS[category] if kw in lowered)
            for category in self.categories
        }

    def classify(self, text: str, headers: Optional[Iterable[str]] = None) -> Goal:
        scores = self.score(text)
        winner = DEFAULT_GOAL
        for category, value in scores.items():
            if value > 0 and all(value > other for c, other in scores.items() if c != category):
                winner = category
                break

        description, focus = GOAL_METADATA[winner]
        target = guess_target(text, headers) if headers is not None and winner == "supervised" else None
        logger.info(f"Classified goal as {winner} (scores={scores})")
        return Goal(type=winner, description=description, focus=list(focus), text=text or "", target=target)


_default_classifier = GoalClassifier()


def classify(text: str, headers: Optional[Iterable[str]] = None) -> Goal:
    return _default_classifier.classify(text, headers)
