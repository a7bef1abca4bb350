"""Local, deterministic exploratory data analysis over a Dataset.

Used whenever the remote validation service is unavailable. Everything here is
a pure function of the table (and optionally the goal), so two runs over the
same input always produce the same AnalysisResult.
"""
import logging
import math
from collections import Counter
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict

from .errors import ValidationError
from .models import (
    AnalysisResult,
    CategoricalSummary,
    Dataset,
    Goal,
    NumericSummary,
    Shape,
    TopValue,
    ValidationChecks,
)

logger = logging.getLogger(__name__)


class EDAThresholds(BaseModel):
    """Cut-offs used by the local engine"""
    model_config = ConfigDict(frozen=True)

    good_rows: int = 100            # rows > good_rows -> "Good"
    fair_rows: int = 30             # rows > fair_rows -> "Fair"
    missing_pct: float = 10.0       # column flagged above this % blank
    iqr_multiplier: float = 1.5
    strong_correlation: float = 0.7
    readiness_floor: int = 60
    wide_table_penalty: int = 30    # applied when columns > rows
    top_n: int = 5


DEFAULT_THRESHOLDS = EDAThresholds()

BASELINE_RECOMMENDATIONS = [
    "Review the summary statistics of every column before modeling.",
    "Hold out a validation split before fitting any model.",
    "Record each cleaning step so the analysis can be reproduced.",
]

GOAL_RECOMMENDATIONS = {
    "supervised": "Confirm the target column and check its class balance or value range.",
    "unsupervised": "Scale numeric features before clustering so no column dominates distances.",
    "timeseries": "Parse the date column and sort rows chronologically before modeling.",
    "eda": "Start with the distributions of the columns most relevant to your question.",
}


def _is_blank(value: str) -> bool:
    return value is None or str(value).strip() == ""


def _finite(x: float, digits: int = 4) -> float:
    try:
        x = float(x)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(x) or math.isinf(x):
        return 0.0
    return round(x, digits)


def _numeric_values(values: pd.Series) -> Optional[pd.Series]:
    """Float series of the non-blank values, or None when any fails to parse"""
    non_blank = values[~values.map(_is_blank)].astype(str).str.strip()
    if non_blank.empty:
        return None
    nums = pd.to_numeric(non_blank, errors="coerce")
    if nums.isna().any():
        return None
    return nums.astype(float)


def count_iqr_outliers(s: pd.Series, multiplier: float = 1.5) -> int:
    """Return count of outliers using Tukey's IQR fences"""
    s = s.dropna()
    if s.empty:
        return 0
    q1 = s.quantile(0.25)
    q3 = s.quantile(0.75)
    iqr = q3 - q1
    if iqr == 0:
        return 0
    lower = q1 - multiplier * iqr
    upper = q3 + multiplier * iqr
    return int(((s < lower) | (s > upper)).sum())


def _numeric_summary(s: pd.Series, thresholds: EDAThresholds) -> NumericSummary:
    n = len(s)
    std = s.std(ddof=1) if n >= 2 else 0.0
    skew = s.skew() if n >= 3 and std > 0 else 0.0
    return NumericSummary(
        count=n,
        mean=_finite(s.mean()),
        median=_finite(s.median()),
        std=_finite(std),
        skewness=_finite(skew),
        outliers=count_iqr_outliers(s, thresholds.iqr_multiplier),
    )


def _categorical_summary(values: pd.Series, thresholds: EDAThresholds) -> CategoricalSummary:
    non_blank = [str(v) for v in values if not _is_blank(v)]
    if not non_blank:
        return CategoricalSummary(unique=0, entropy=0.0, top_values=[])
    # stable sort keeps first-seen order among ties
    counts = pd.Series(Counter(non_blank)).sort_values(ascending=False, kind="stable")
    probs = counts / counts.sum()
    entropy = float(-(probs * np.log2(probs)).sum())
    top = [
        TopValue(value=str(value), percentage=round(100.0 * count / len(non_blank), 2))
        for value, count in counts.head(thresholds.top_n).items()
    ]
    return CategoricalSummary(unique=int(len(counts)), entropy=_finite(entropy), top_values=top)


def _correlation_matrix(numeric: pd.DataFrame) -> Dict[str, Dict[str, float]]:
    """Pairwise-complete Pearson matrix, symmetric by construction"""
    cols = list(numeric.columns)
    matrix: Dict[str, Dict[str, float]] = {c: {} for c in cols}
    for i, a in enumerate(cols):
        matrix[a][a] = 1.0
        for b in cols[i + 1:]:
            pair = numeric[[a, b]].dropna()
            r = 0.0
            if len(pair) >= 2 and pair[a].std() > 0 and pair[b].std() > 0:
                r = _finite(pair[a].corr(pair[b]))
            r = max(-1.0, min(1.0, r))
            matrix[a][b] = r
            matrix[b][a] = r
    return matrix


def _data_quality(rows: int, thresholds: EDAThresholds) -> str:
    if rows > thresholds.good_rows:
        return "Good"
    if rows > thresholds.fair_rows:
        return "Fair"
    return "Limited"


def readiness_score(rows: int, columns: int, thresholds: EDAThresholds = DEFAULT_THRESHOLDS) -> int:
    penalty = thresholds.wide_table_penalty if columns > rows else 0
    score = max(thresholds.readiness_floor, 100 - penalty)
    return int(min(100, max(0, score)))


def _missing_level(missing: Dict[str, float], thresholds: EDAThresholds) -> str:
    if not any(pct > 0 for pct in missing.values()):
        return "None"
    if any(pct > thresholds.missing_pct for pct in missing.values()):
        return "High"
    return "Low"


def strong_correlations(result: AnalysisResult, threshold: float = DEFAULT_THRESHOLDS.strong_correlation) -> List[Tuple[str, str, float]]:
    """Pairs with |r| above threshold, each pair reported once"""
    pairs = []
    cols = list(result.correlation.keys())
    for i, a in enumerate(cols):
        for b in cols[i + 1:]:
            r = result.correlation[a].get(b)
            if r is not None and abs(r) > threshold:
                pairs.append((a, b, r))
    return pairs


def _recommendations(
    rows: int,
    columns: int,
    quality: str,
    missing: Dict[str, float],
    numerical: Dict[str, NumericSummary],
    correlation: Dict[str, Dict[str, float]],
    goal: Optional[Goal],
    thresholds: EDAThresholds,
) -> List[str]:
    recs = list(BASELINE_RECOMMENDATIONS)

    for col, pct in missing.items():
        if pct > thresholds.missing_pct:
            recs.append(f"Column '{col}' is {pct:.1f}% empty; impute or drop it before modeling.")

    for col, summary in numerical.items():
        if summary.outliers > 0:
            recs.append(f"Column '{col}' has {summary.outliers} outlier(s) by the IQR rule; inspect them before modeling.")

    cols = list(correlation.keys())
    for i, a in enumerate(cols):
        for b in cols[i + 1:]:
            r = correlation[a][b]
            if abs(r) > thresholds.strong_correlation:
                recs.append(f"'{a}' and '{b}' are strongly correlated (r={r:.2f}); consider keeping only one.")

    if columns > rows:
        recs.append("There are more columns than rows; collect more rows or reduce the feature set.")
    if quality == "Limited":
        recs.append(f"Only {rows} rows are available; results will be unstable until more data is collected.")

    if goal is not None:
        recs.append(GOAL_RECOMMENDATIONS[goal.type])

    return recs


def run_local_eda(dataset: Dataset, goal: Optional[Goal] = None, thresholds: EDAThresholds = DEFAULT_THRESHOLDS) -> AnalysisResult:
    """Compute the full AnalysisResult for a dataset in-process"""
    if dataset.is_empty:
        raise ValidationError("Cannot analyze an empty dataset")

    frame = dataset.to_frame()
    rows, columns = dataset.row_count, dataset.column_count

    missing: Dict[str, float] = {}
    numerical: Dict[str, NumericSummary] = {}
    categorical: Dict[str, CategoricalSummary] = {}
    numeric_series: Dict[str, pd.Series] = {}

    for col in frame.columns:
        values = frame[col]
        blanks = int(values.map(_is_blank).sum())
        missing[col] = round(100.0 * blanks / rows, 2)

        nums = _numeric_values(values)
        if nums is not None:
            numerical[col] = _numeric_summary(nums, thresholds)
            numeric_series[col] = nums
        else:
            categorical[col] = _categorical_summary(values, thresholds)

    numeric_frame = pd.DataFrame(numeric_series, index=frame.index, columns=list(numeric_series))
    correlation = _correlation_matrix(numeric_frame)

    quality = _data_quality(rows, thresholds)
    checks = ValidationChecks(
        data_quality=quality,
        missing_data_level=_missing_level(missing, thresholds),
        readiness_score=readiness_score(rows, columns, thresholds),
    )

    logger.info(
        f"Local EDA: {rows}x{columns}, {len(numerical)} numeric, {len(categorical)} categorical, "
        f"quality={quality}, readiness={checks.readiness_score}"
    )

    return AnalysisResult(
        shape=Shape(rows=rows, columns=columns),
        numerical_summary=numerical,
        object_summary=categorical,
        correlation=correlation,
        validation_checks=checks,
        recommendations=_recommendations(rows, columns, quality, missing, numerical, correlation, goal, thresholds),
        missing_values=missing,
        source="local",
        goal=goal,
    )
