"""Analysis Lambda handler for contract review requests."""

import json
from typing import Any

from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.event_handler import (
    APIGatewayRestResolver,
    CORSConfig,
    Response,
    content_types,
)
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import ValidationError

from analysis.analyzer import Analyzer
from analysis.models import AnalyzeRequest
from analysis.orchestrator import AnalysisOrchestrator
from analysis.service import AnalysisService
from analysis.source import FileSource
from shared.admission import AdmissionController
from shared.auth import IdentityVerifier
from shared.cache import ResultCache
from shared.config import Config, get_config
from shared.exceptions import AnalysisError, InvalidInput, UnexpectedFailure
from shared.modes import ModeController
from shared.usage_ledger import TokenPricing, UsageLedger

logger = Logger()
tracer = Tracer()
metrics = Metrics(namespace="ClauseGuard")

config = get_config()
cors_config = CORSConfig(
    allow_origin=("https://clauseguard.app" if config.is_production else "*"),
    extra_origins=(
        ["http://localhost:5173", "capacitor://localhost", "ionic://localhost"]
        if config.is_production
        else None
    ),
    allow_headers=["Content-Type", "Authorization", "X-User-Id", "X-Client-Info", "Apikey"],
)
app = APIGatewayRestResolver(cors=cors_config)

_service: AnalysisService | None = None
_verifier: IdentityVerifier | None = None


def create_analyzer(cfg: Config) -> Analyzer:
    """Build the analyzer client for the configured provider."""
    if cfg.model_provider == "mistral":
        from analysis.bedrock_client import BedrockClient

        logger.info("Using Mistral via Bedrock", extra={"model": cfg.bedrock_model_id})
        return BedrockClient(cfg.bedrock_model_id, cfg.bedrock_region)

    from analysis.claude_client import ClaudeClient
    from shared.secrets import get_anthropic_api_key

    logger.info("Using Claude via Anthropic API")
    return ClaudeClient(get_anthropic_api_key())


def get_service() -> AnalysisService:
    """Get or create the analysis service singleton.

    Ledger, admission counters and cache live for the lifetime of the
    warm container.
    """
    global _service
    if _service is None:
        ledger = UsageLedger(
            TokenPricing(
                input_per_m=config.input_price_per_m,
                output_per_m=config.output_price_per_m,
            )
        )
        _service = AnalysisService(
            ledger=ledger,
            modes=ModeController(ledger, config.monthly_budget_usd),
            admission=AdmissionController(config.global_max_active),
            orchestrator=AnalysisOrchestrator(
                create_analyzer(config),
                ResultCache(ttl_seconds=config.cache_ttl_seconds),
            ),
            source=FileSource(),
            monthly_budget_usd=config.monthly_budget_usd,
            force_demo=config.force_demo,
        )
    return _service


def get_verifier() -> IdentityVerifier:
    """Get or create the token verifier singleton."""
    global _verifier
    if _verifier is None:
        _verifier = IdentityVerifier(config.jwt_secret, config.jwt_audience)
    return _verifier


@app.exception_handler(AnalysisError)
def handle_analysis_error(error: AnalysisError) -> Response:
    """Render request-facing failures as JSON error bodies."""
    log = logger.warning if error.status_code < 500 else logger.error
    log(
        "Analysis request failed",
        extra={
            "error_code": error.code,
            "status_code": error.status_code,
            "error_message": error.message,
            "mode": error.mode,
        },
    )
    return Response(
        status_code=error.status_code,
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps(error.to_body()),
    )


def parse_request() -> AnalyzeRequest:
    """Parse the request body; unreadable JSON counts as an empty body."""
    try:
        body = app.current_event.json_body or {}
    except (TypeError, ValueError):
        body = {}
    if not isinstance(body, dict):
        body = {}
    try:
        return AnalyzeRequest.model_validate(body)
    except ValidationError as e:
        error_msg = e.errors()[0].get("msg", "Invalid request")
        raise InvalidInput(error_msg) from None


@app.post("/analyze")
@tracer.capture_method
def post_analyze() -> Response:
    """Analyze a contract document.

    Returns:
        Response with the finalized analysis
    """
    try:
        service = get_service()
        mode = service.modes.current_mode().value
    except Exception as e:
        logger.exception("Analysis service unavailable")
        raise UnexpectedFailure("Service unavailable. Please try again later.") from e

    try:
        user_key = get_verifier().require_user_key(app.current_event.headers)
        request = parse_request()
    except AnalysisError as e:
        if e.mode is None:
            e.mode = mode
        raise

    try:
        response = service.analyze(user_key, request)
    except AnalysisError:
        raise
    except Exception as e:
        logger.exception("Analysis failed unexpectedly", extra={"mode": mode})
        raise UnexpectedFailure("Internal error", mode=mode) from e

    return Response(
        status_code=200,
        content_type=content_types.APPLICATION_JSON,
        body=response.model_dump_json(exclude_none=True),
    )


@logger.inject_lambda_context
@tracer.capture_lambda_handler
@metrics.log_metrics
def lambda_handler(event: dict[str, Any], context: LambdaContext) -> dict[str, Any]:
    """Main Lambda entry point."""
    return app.resolve(event, context)
