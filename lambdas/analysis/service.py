"""Analysis service: admission, fetch, extraction and map-reduce."""

import math
import re

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit

from shared.admission import AdmissionController
from shared.exceptions import (
    AnalysisError,
    BudgetExhausted,
    InvalidInput,
    UnexpectedFailure,
)
from shared.modes import Mode, ModeController, get_policy
from shared.usage_ledger import UsageLedger
from shared.utils import fingerprint_bytes

from . import risk
from .chunking import plan_chunks
from .demo import DEMO_RESULT
from .extraction import extract_text
from .models import AnalysisResult, AnalyzeRequest, AnalyzeResponse
from .orchestrator import AnalysisOrchestrator, UsageMeter
from .source import FileSource

logger = Logger(child=True)
metrics = Metrics(namespace="ClauseGuard")

_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)

BUDGET_REACHED_WARNING = "Budget reached after this request."


class AnalysisService:
    """Runs one analysis request end to end.

    The mode is read once per request and every limit, chunk size and
    model choice for that request comes from its policy. Slots taken
    during admission are always released, and any token spend is
    recorded even when the pipeline fails part way.
    """

    def __init__(
        self,
        ledger: UsageLedger,
        modes: ModeController,
        admission: AdmissionController,
        orchestrator: AnalysisOrchestrator,
        source: FileSource,
        monthly_budget_usd: float,
        force_demo: bool = False,
    ):
        """Initialize analysis service.

        Args:
            ledger: Monthly usage ledger
            modes: Mode controller reading the same ledger
            admission: Per-user and global admission control
            orchestrator: Map-reduce driver wrapping the analyzer
            source: Document downloader
            monthly_budget_usd: Budget ceiling in USD
            force_demo: Serve the demo analysis for every request
        """
        self.ledger = ledger
        self.modes = modes
        self.admission = admission
        self.orchestrator = orchestrator
        self.source = source
        self.monthly_budget_usd = monthly_budget_usd
        self.force_demo = force_demo

    @property
    def provider(self) -> str:
        """Name of the analyzer provider in use."""
        return self.orchestrator.analyzer.name

    def analyze(self, user_key: str, request: AnalyzeRequest) -> AnalyzeResponse:
        """Process an analysis request for an authenticated user.

        Args:
            user_key: Verified user key (user:<id>)
            request: Parsed request body

        Returns:
            AnalyzeResponse with the finalized result

        Raises:
            AnalysisError: Any request-facing failure, tagged with the mode
        """
        try:
            mode = self.modes.current_mode()
        except Exception as e:
            logger.exception("Could not determine operating mode")
            raise UnexpectedFailure("Could not determine operating mode") from e

        if request.demo or self.force_demo:
            logger.info("Serving demo analysis", extra={"mode": mode.value})
            return AnalyzeResponse(
                result=risk.finalize(DEMO_RESULT),
                mode=mode.value,
                demo=True,
            )

        file_url = (request.file_url or "").strip()
        if not _HTTP_URL.match(file_url):
            raise InvalidInput(
                "Missing or invalid fileUrl (must be a presigned URL)", mode=mode.value
            )

        if not self.ledger.under_budget(self.monthly_budget_usd):
            logger.warning(
                "Monthly budget reached",
                extra={"budget_usd": self.monthly_budget_usd, "mode": mode.value},
            )
            raise BudgetExhausted(
                "Monthly budget reached. Please try again next month.", mode=mode.value
            )

        try:
            with self.admission.admit(user_key, mode):
                result, total_pages = self._run(file_url, mode)
        except AnalysisError as e:
            if e.mode is None:
                e.mode = mode.value
            raise
        except Exception as e:
            logger.exception("Analysis failed unexpectedly", extra={"mode": mode.value})
            raise UnexpectedFailure(str(e), mode=mode.value) from e

        return self._build_response(result, total_pages)

    def _run(self, file_url: str, mode: Mode) -> tuple[AnalysisResult, int]:
        policy = get_policy(mode)

        fetched = self.source.fetch(file_url, policy.max_bytes, mode)
        extracted = extract_text(fetched, file_url, mode)

        fingerprint = fingerprint_bytes(fetched.content)
        chunks = plan_chunks(extracted.text, policy.chunk_chars, policy.chunk_overlap)
        logger.info(
            "Analyzing document",
            extra={
                "mode": mode.value,
                "provider": self.provider,
                "chunks": len(chunks),
                "total_pages": extracted.total_pages,
            },
        )

        meter = UsageMeter()
        try:
            merged = self.orchestrator.analyze(chunks, mode, fingerprint, meter=meter)
        finally:
            self._record_usage(meter)

        return risk.finalize(merged), extracted.total_pages

    def _record_usage(self, meter: UsageMeter) -> None:
        if meter.calls == 0 and meter.cache_hits == 0:
            return
        self.ledger.record(
            meter.input_tokens,
            meter.output_tokens,
            budget_usd=self.monthly_budget_usd,
        )

    def _build_response(
        self, result: AnalysisResult, total_pages: int
    ) -> AnalyzeResponse:
        mode = self.modes.current_mode()
        budget_pct = self.ledger.budget_percent(self.monthly_budget_usd)
        budget_warn = (
            BUDGET_REACHED_WARNING
            if self.ledger.cost_usd() >= self.monthly_budget_usd
            else None
        )

        metrics.add_metric(name="AnalysesCompleted", unit=MetricUnit.Count, value=1)
        logger.info(
            "Analysis delivered",
            extra={
                "mode": mode.value,
                "risk_score": result.risk_score,
                "budget_pct": round(budget_pct, 2),
            },
        )

        return AnalyzeResponse(
            result=result,
            mode=mode.value,
            provider=self.provider,
            budget_pct=math.floor(budget_pct + 0.5),
            budget_warn=budget_warn,
            total_pages=total_pages,
        )
