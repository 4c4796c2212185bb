"""Contract analysis: extraction, map-reduce over the analyzer, risk scoring."""

from .models import (
    AnalysisResult,
    AnalyzeRequest,
    AnalyzeResponse,
    KeyClause,
    ProCon,
    RedFlag,
)
from .orchestrator import AnalysisOrchestrator, UsageMeter
from .parser import parse_analysis_payload, parse_analysis_text
from .risk import finalize
from .service import AnalysisService

__all__ = [
    "AnalysisOrchestrator",
    "AnalysisResult",
    "AnalysisService",
    "AnalyzeRequest",
    "AnalyzeResponse",
    "KeyClause",
    "ProCon",
    "RedFlag",
    "UsageMeter",
    "finalize",
    "parse_analysis_payload",
    "parse_analysis_text",
]
