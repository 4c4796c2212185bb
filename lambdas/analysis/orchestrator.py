"""Map-reduce driver over the external analyzer."""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit
from pydantic import ValidationError

from shared.cache import ResultCache, chunk_cache_key, merge_cache_key
from shared.exceptions import (
    MalformedOutputError,
    MergeFailed,
    ProviderError,
    ProviderFailed,
    TransientProviderError,
)
from shared.modes import Mode, Policy, get_policy
from shared.retry import PROVIDER_RETRY_POLICY, RetryPolicy, call_with_retry, jitter_factor
from shared.usage_ledger import estimate_tokens

from .analyzer import Analyzer, AnalyzerResponse
from .models import AnalysisResult
from .prompts import RESPONSE_SCHEMA, build_chunk_prompt, build_reduce_prompt

logger = Logger(child=True)
metrics = Metrics(namespace="ClauseGuard")

# The reduce call gets at least this many output tokens
REDUCE_MIN_OUTPUT_TOKENS = 1200

PACING_JITTER = 0.3


@dataclass
class UsageMeter:
    """Running token estimates for one request."""

    input_tokens: int = 0
    output_tokens: int = 0
    calls: int = 0
    cache_hits: int = 0

    def add_call(self, response: AnalyzerResponse) -> None:
        """Count a call that was actually made."""
        self.calls += 1
        self.input_tokens += response.input_tokens
        self.output_tokens += response.output_tokens

    def add_cache_hit(self, payload: str) -> None:
        """Count a reused result.

        Cached output counts toward the output estimate. No input tokens
        are charged.
        """
        self.cache_hits += 1
        self.output_tokens += estimate_tokens(payload)


class AnalysisOrchestrator:
    """Runs one analyzer call per chunk, then one reduce call.

    Chunks are processed strictly in order, one at a time, with a paced,
    jittered delay before every real call except the first.
    """

    def __init__(
        self,
        analyzer: Analyzer,
        cache: ResultCache,
        retry_policy: RetryPolicy = PROVIDER_RETRY_POLICY,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ):
        """Initialize orchestrator.

        Args:
            analyzer: External analyzer client
            cache: Shared result cache
            retry_policy: Retry policy for transient provider failures
            sleep: Called with pacing and backoff delays in seconds
            rng: Random source for jitter
        """
        self.analyzer = analyzer
        self.cache = cache
        self.retry_policy = retry_policy
        self._sleep = sleep
        self._rng = rng or random.Random()

    def analyze(
        self,
        chunks: list[str],
        mode: Mode,
        fingerprint: str,
        meter: UsageMeter | None = None,
    ) -> AnalysisResult:
        """Analyze chunks and merge the partial results.

        Args:
            chunks: Chunk texts in document order
            mode: Mode fixed for this request
            fingerprint: Content hash of the source document
            meter: Accumulator updated for every call and cache hit, so
                the caller can record spend even if this raises

        Returns:
            Merged AnalysisResult (risk not yet finalized)

        Raises:
            ProviderFailed: A call failed fatally or ran out of retries
            MergeFailed: The reduce call returned unusable output
        """
        if not chunks:
            raise ValueError("chunks must not be empty")

        policy = get_policy(mode)
        meter = meter if meter is not None else UsageMeter()
        model = self.analyzer.model_for(policy)
        provider = self.analyzer.name

        partials: list[AnalysisResult] = []
        for index, chunk in enumerate(chunks):
            key = chunk_cache_key(
                fingerprint, index, provider, model, policy.max_output_tokens
            )
            cached = self._load_cached(key, meter)
            if cached is not None:
                partials.append(cached)
                continue

            if index > 0:
                self._pace(policy)
            response = self._call(
                build_chunk_prompt(chunk),
                policy.max_output_tokens,
                model,
                stage="chunk",
                mode=mode,
            )
            meter.add_call(response)
            self._store(key, response.result)
            partials.append(response.result)

        reduce_tokens = max(policy.max_output_tokens, REDUCE_MIN_OUTPUT_TOKENS)
        key = merge_cache_key(fingerprint, provider, model, reduce_tokens)
        merged = self._load_cached(key, meter)
        if merged is None:
            if len(chunks) > 1:
                self._pace(policy)
            response = self._call(
                build_reduce_prompt([p.model_dump(exclude_none=True) for p in partials]),
                reduce_tokens,
                model,
                stage="reduce",
                mode=mode,
            )
            meter.add_call(response)
            self._store(key, response.result)
            merged = response.result

        logger.info(
            "Analysis complete",
            extra={
                "chunks": len(chunks),
                "calls": meter.calls,
                "cache_hits": meter.cache_hits,
                "input_tokens": meter.input_tokens,
                "output_tokens": meter.output_tokens,
            },
        )
        return merged

    def _load_cached(self, key: str, meter: UsageMeter) -> AnalysisResult | None:
        payload = self.cache.get(key)
        if payload is None:
            return None
        try:
            result = AnalysisResult.model_validate_json(payload)
        except ValidationError:
            logger.warning("Discarding unreadable cache entry", extra={"cache_key": key})
            self.cache.delete(key)
            return None
        logger.debug("Cache hit", extra={"cache_key": key})
        metrics.add_metric(name="CacheHits", unit=MetricUnit.Count, value=1)
        meter.add_cache_hit(payload)
        return result

    def _store(self, key: str, result: AnalysisResult) -> None:
        self.cache.set(key, result.model_dump_json())

    def _pace(self, policy: Policy) -> None:
        delay = policy.delay_ms / 1000 * jitter_factor(self._rng, PACING_JITTER)
        self._sleep(delay)

    def _call(
        self,
        prompt: str,
        max_output_tokens: int,
        model: str,
        stage: str,
        mode: Mode,
    ) -> AnalyzerResponse:
        def on_retry(attempt: int, error: Exception, delay: float) -> None:
            metrics.add_metric(name="ProviderRetries", unit=MetricUnit.Count, value=1)

        try:
            response = call_with_retry(
                lambda: self.analyzer.generate(
                    prompt=prompt,
                    schema=RESPONSE_SCHEMA,
                    max_output_tokens=max_output_tokens,
                    model=model,
                ),
                self.retry_policy,
                is_retryable=lambda e: isinstance(e, TransientProviderError),
                sleep=self._sleep,
                rng=self._rng,
                on_retry=on_retry,
            )
        except MalformedOutputError as e:
            logger.error(
                "Analyzer returned unusable output",
                extra={"stage": stage, "provider": self.analyzer.name, "error": str(e)},
            )
            if stage == "reduce":
                raise MergeFailed(f"Merge failed: {e.message}", mode=mode.value) from e
            raise ProviderFailed(
                f"{self.analyzer.name} failed: {e.message}", mode=mode.value
            ) from e
        except ProviderError as e:
            logger.error(
                "Analyzer call failed",
                extra={"stage": stage, "provider": self.analyzer.name, "error": str(e)},
            )
            raise ProviderFailed(
                f"{self.analyzer.name} failed after retries: {e.message}", mode=mode.value
            ) from e

        metrics.add_metric(name="AnalyzerCalls", unit=MetricUnit.Count, value=1)
        return response
