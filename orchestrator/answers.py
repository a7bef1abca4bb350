"""Rule-based answers over a cached AnalysisResult, plus follow-up suggestions"""
from typing import Callable, List, Tuple

from analysis.eda import strong_correlations
from analysis.models import AnalysisResult

GENERIC_ANSWER = (
    "I'm not sure how to answer that from the analysis. Try asking more specifically "
    "about data quality, missing values, outliers, correlations, columns or next steps."
)

DEFAULT_SUGGESTIONS = [
    "What is the data quality?",
    "Which columns have missing values?",
    "Are there any outliers?",
]

SUGGESTION_TABLE: List[Tuple[Tuple[str, ...], List[str]]] = [
    (("quality", "ready", "score"), [
        "Which columns have missing values?",
        "Are there any outliers?",
        "What should I do next?",
    ]),
    (("missing", "null", "empty", "blank"), [
        "What is the data quality?",
        "Are there any outliers?",
        "Which columns are numeric?",
    ]),
    (("outlier", "anomal", "extreme"), [
        "Which features are correlated?",
        "What is the readiness score?",
        "What should I do next?",
    ]),
    (("correlat", "relationship", "related"), [
        "Are there any outliers?",
        "Which columns are numeric?",
        "What should I do next?",
    ]),
    (("column", "feature", "shape", "size", "rows"), [
        "Which columns have missing values?",
        "Which features are correlated?",
        "What is the data quality?",
    ]),
    (("recommend", "next", "suggest", "should i"), [
        "What is the readiness score?",
        "Which columns have missing values?",
        "Which features are correlated?",
    ]),
]


def _quality(result: AnalysisResult) -> str:
    checks = result.validation_checks
    return (
        f"Data quality is {checks.data_quality} with a readiness score of {checks.readiness_score}/100 "
        f"({result.shape.rows} rows, {result.shape.columns} columns). "
        f"Missing data level: {checks.missing_data_level}."
    )


def _missing(result: AnalysisResult) -> str:
    gaps = sorted(
        ((col, pct) for col, pct in result.missing_values.items() if pct > 0),
        key=lambda item: item[1], reverse=True,
    )
    if not gaps:
        if result.validation_checks.missing_data_level == "None":
            return "No missing values were found in any column."
        return f"Missing data level is {result.validation_checks.missing_data_level}; no per-column breakdown is available."
    listed = ", ".join(f"{col} ({pct:.1f}%)" for col, pct in gaps[:5])
    return f"{len(gaps)} column(s) have missing values: {listed}."


def _outliers(result: AnalysisResult) -> str:
    flagged = [(col, s.outliers) for col, s in result.numerical_summary.items() if s.outliers > 0]
    if not flagged:
        if not result.numerical_summary:
            return "There are no numeric columns, so no IQR outlier check was run."
        return "No outliers were detected by the IQR rule in the numeric columns."
    listed = ", ".join(f"{col} ({n})" for col, n in flagged)
    return f"Outliers detected by the IQR rule: {listed}."


def _correlations(result: AnalysisResult) -> str:
    pairs = strong_correlations(result)
    if not pairs:
        return "No strongly correlated pairs (|r| > 0.7) were found among the numeric columns."
    listed = "; ".join(f"{a} & {b} (r={r:.2f})" for a, b, r in pairs[:5])
    return f"Strongly correlated pairs: {listed}."


def _columns(result: AnalysisResult) -> str:
    numeric = ", ".join(result.numerical_summary) or "none"
    categorical = ", ".join(result.object_summary) or "none"
    return (
        f"The dataset has {result.shape.rows} rows and {result.shape.columns} columns. "
        f"Numeric: {numeric}. Categorical: {categorical}."
    )


def _recommendations(result: AnalysisResult) -> str:
    if not result.recommendations:
        return "There are no recommendations for this dataset."
    return "Recommendations:\n" + "\n".join(f"{i}. {rec}" for i, rec in enumerate(result.recommendations[:5], 1))


def _overview(result: AnalysisResult) -> str:
    return f"Overview: {result.shape.rows} rows × {result.shape.columns} columns. " + _quality(result)


ANSWER_RULES: List[Tuple[Tuple[str, ...], Callable[[AnalysisResult], str]]] = [
    (("quality", "ready", "readiness", "score"), _quality),
    (("missing", "null", "empty", "blank"), _missing),
    (("outlier", "anomal", "extreme"), _outliers),
    (("correlat", "relationship", "related"), _correlations),
    (("column", "feature", "shape", "size", "how many rows"), _columns),
    (("recommend", "next step", "suggest", "should i", "what next"), _recommendations),
    (("insight", "summary", "overview"), _overview),
]


def answer_locally(question: str, result: AnalysisResult) -> str:
    """First matching keyword group wins; no match yields the generic answer"""
    q = (question or "").lower()
    for keywords, render in ANSWER_RULES:
        if any(kw in q for kw in keywords):
            return render(result)
    return GENERIC_ANSWER


def suggest_followups(question: str, limit: int = 3) -> List[str]:
    q = (question or "").lower()
    for keywords, suggestions in SUGGESTION_TABLE:
        if any(kw in q for kw in keywords):
            return suggestions[:limit]
    return DEFAULT_SUGGESTIONS[:limit]


def summarize_result(result: AnalysisResult) -> str:
    """Agent message shown once an analysis lands"""
    origin = "the validation agent" if result.source == "remote" else "local analysis"
    lines = [f"Analysis complete (via {origin}).", _quality(result)]
    pairs = strong_correlations(result)
    if pairs:
        lines.append(f"{len(pairs)} strongly correlated pair(s) found.")
    if result.recommendations:
        lines.append(f"Top recommendation: {result.recommendations[0]}")
    return "\n".join(lines)
