"""Pydantic models for analysis requests and results."""

import json
import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProCon(BaseModel):
    """A point in the document's favour or against it."""

    title: str = ""
    why_it_matters: str = ""


class RedFlag(BaseModel):
    """A risky clause with a suggested fix."""

    clause: str = ""
    """Short headline, e.g. "Label owns your songs"."""

    severity: str = ""
    """low, medium or high. Other values are scored as unknown."""

    explanation: str = ""
    suggested_language: str = ""

    source_excerpt: str | None = None
    """Verbatim quote from the document that triggered the flag."""

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v: Any) -> str:
        """Lowercase and trim severity."""
        return str(v or "").strip().lower()


class KeyClause(BaseModel):
    """Whether a standard clause was found, with an excerpt."""

    name: str = ""
    found: bool = False
    excerpt: str = ""

    @field_validator("excerpt", mode="before")
    @classmethod
    def coerce_excerpt(cls, v: Any) -> str:
        """Accept non-string excerpts by serializing them."""
        if v is None:
            return ""
        if isinstance(v, str):
            return v
        return json.dumps(v)


class AnalysisResult(BaseModel):
    """Structured analysis of one document (partial or merged)."""

    summary: str = ""
    pros: list[ProCon] = Field(default_factory=list)
    cons: list[ProCon] = Field(default_factory=list)
    red_flags: list[RedFlag] = Field(default_factory=list)
    key_clauses: list[KeyClause] = Field(default_factory=list)
    questions_for_counterparty: list[str] = Field(default_factory=list)
    negotiation_levers: list[str] = Field(default_factory=list)

    risk_score: int | None = None
    """0-100 once finalized. Raw model output may be out of range."""

    risk_label: str | None = None

    @field_validator("risk_score", mode="before")
    @classmethod
    def round_risk_score(cls, v: Any) -> int | None:
        """Round numeric scores half-up; drop anything non-numeric."""
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, str):
            try:
                v = float(v)
            except ValueError:
                return None
        if not isinstance(v, int | float):
            return None
        if not math.isfinite(v):
            return 0
        return math.floor(v + 0.5)

    @field_validator("summary", mode="before")
    @classmethod
    def coerce_summary(cls, v: Any) -> str:
        """Treat a missing summary as empty."""
        return "" if v is None else str(v)


class AnalyzeRequest(BaseModel):
    """Body of POST /analyze."""

    model_config = ConfigDict(populate_by_name=True)

    file_url: str | None = Field(default=None, alias="fileUrl")
    """Presigned http(s) URL of the document."""

    demo: bool = False
    """Return the canned demo analysis instead of analyzing a file."""


class AnalyzeResponse(BaseModel):
    """Successful analysis payload."""

    ok: bool = True
    result: AnalysisResult
    mode: str
    provider: str | None = None
    budget_pct: int | None = None
    budget_warn: str | None = None
    total_pages: int | None = None
    demo: bool | None = None
