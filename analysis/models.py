"""Pydantic schemas for datasets, goals and analysis results"""
import math
from typing import Any, Dict, List, Literal, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

GoalType = Literal["supervised", "unsupervised", "timeseries", "eda"]
DataQuality = Literal["Good", "Fair", "Limited"]
MissingDataLevel = Literal["None", "Low", "High"]
ResultSource = Literal["remote", "local"]


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python; floats must be finite to stay JSON-safe"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Dataset(BaseModel):
    """Canonical table: ordered headers plus one string record per row.

    Rows are normalized on construction so every row carries a value for
    every header (missing cells become ``""``). With duplicate header names
    the record can only hold one value per name, so the last occurrence wins.
    """
    model_config = ConfigDict(frozen=True)

    headers: List[str]
    rows: List[Dict[str, str]] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _fill_rows(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        headers = [str(h) for h in data.get("headers") or []]
        rows = []
        for row in data.get("rows") or []:
            row = row or {}
            rows.append({h: "" if row.get(h) is None else str(row.get(h)) for h in headers})
        return {"headers": headers, "rows": rows}

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.headers)

    @property
    def is_empty(self) -> bool:
        return not self.headers or not self.rows

    def unique_headers(self) -> List[str]:
        return list(dict.fromkeys(self.headers))

    def column(self, name: str) -> List[str]:
        if name not in self.headers:
            raise KeyError(name)
        return [row[name] for row in self.rows]

    def head(self, n: int = 5) -> "Dataset":
        return Dataset(headers=list(self.headers), rows=self.rows[:n])

    def to_frame(self) -> pd.DataFrame:
        """All-string DataFrame, one column per distinct header"""
        cols = self.unique_headers()
        return pd.DataFrame([[row[c] for c in cols] for row in self.rows], columns=cols, dtype=object)


class Goal(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: GoalType
    description: str
    focus: List[str] = Field(default_factory=list)
    text: str = ""
    target: Optional[str] = None

    def to_remote(self) -> Dict[str, Any]:
        """Payload shape expected by the CSV-text validation endpoint"""
        return {"type": self.type, "target": self.target, "description": self.description}


class Shape(_WireModel):
    rows: int
    columns: int


class NumericSummary(_WireModel):
    count: int
    mean: float
    median: float
    std: float
    skewness: float
    outliers: int


class TopValue(_WireModel):
    value: str
    percentage: float


class CategoricalSummary(_WireModel):
    unique: int
    entropy: float
    top_values: List[TopValue] = Field(default_factory=list)


class ValidationChecks(_WireModel):
    data_quality: DataQuality
    missing_data_level: MissingDataLevel
    readiness_score: int = Field(ge=0, le=100)


class AnalysisResult(_WireModel):
    shape: Shape
    numerical_summary: Dict[str, NumericSummary] = Field(default_factory=dict)
    object_summary: Dict[str, CategoricalSummary] = Field(default_factory=dict)
    correlation: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    validation_checks: ValidationChecks
    recommendations: List[str] = Field(default_factory=list)
    missing_values: Dict[str, float] = Field(default_factory=dict)
    source: ResultSource = "local"
    goal: Optional[Goal] = None
    remote_report: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _check_correlation(self) -> "AnalysisResult":
        for a, row in self.correlation.items():
            for b, r in row.items():
                if math.isnan(r) or not -1.0 <= r <= 1.0:
                    raise ValueError(f"correlation[{a}][{b}] out of range: {r}")
                mirror = self.correlation.get(b, {}).get(a)
                if mirror is None or abs(mirror - r) > 1e-9:
                    raise ValueError(f"correlation matrix is not symmetric at ({a}, {b})")
            if a in row and row[a] != 1.0:
                raise ValueError(f"correlation[{a}][{a}] must be 1.0")
        return self

    @property
    def readiness_score(self) -> int:
        return self.validation_checks.readiness_score
