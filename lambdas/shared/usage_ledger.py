"""Monthly token spend ledger for budget protection."""

import math
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit

logger = Logger(child=True)
metrics = Metrics(namespace="ClauseGuard")

# Log a warning once spend passes this share of the budget
WARNING_THRESHOLD = 0.8


def get_month_key(now: datetime | None = None) -> str:
    """Get the billing period key (YYYY-MM, UTC)."""
    now = now or datetime.now(UTC)
    return now.strftime("%Y-%m")


def estimate_tokens(text: str | None) -> int:
    """Estimate token count from character length (4 chars per token)."""
    return math.ceil(len(text or "") / 4)


@dataclass(frozen=True)
class TokenPricing:
    """USD price per million tokens."""

    input_per_m: float = 0.30
    output_per_m: float = 2.50

    def cost(self, input_tokens: int, output_tokens: int) -> float:
        """Estimated cost in USD for the given token counts."""
        return (input_tokens / 1e6) * self.input_per_m + (
            output_tokens / 1e6
        ) * self.output_per_m


@dataclass(frozen=True)
class UsageSnapshot:
    """Point-in-time copy of the ledger."""

    period: str
    input_tokens: int
    output_tokens: int
    request_count: int


class UsageLedger:
    """Tracks estimated token spend for the current billing period in memory.

    Counts only grow within a period and reset to zero exactly when the
    month key changes. State lives for the lifetime of the process.
    """

    def __init__(
        self,
        pricing: TokenPricing | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize an empty ledger for the current period.

        Args:
            pricing: Token prices used for cost estimates
            clock: Returns the current UTC time. Defaults to datetime.now(UTC).
        """
        self.pricing = pricing or TokenPricing()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        self._period = get_month_key(self._clock())
        self._input_tokens = 0
        self._output_tokens = 0
        self._request_count = 0

    @property
    def period(self) -> str:
        """Current billing period key."""
        with self._lock:
            return self._period

    def _rotate_locked(self) -> bool:
        current = get_month_key(self._clock())
        # Period keys sort lexically; never move backwards.
        if current <= self._period:
            return False
        logger.info(
            "Billing period rolled over",
            extra={
                "previous_period": self._period,
                "period": current,
                "input_tokens": self._input_tokens,
                "output_tokens": self._output_tokens,
            },
        )
        self._period = current
        self._input_tokens = 0
        self._output_tokens = 0
        self._request_count = 0
        return True

    def rotate_if_needed(self) -> bool:
        """Reset counters when the billing period has advanced.

        Returns:
            True if a rollover happened
        """
        with self._lock:
            return self._rotate_locked()

    def snapshot(self) -> UsageSnapshot:
        """Get current usage after applying any period rollover."""
        with self._lock:
            self._rotate_locked()
            return UsageSnapshot(
                period=self._period,
                input_tokens=self._input_tokens,
                output_tokens=self._output_tokens,
                request_count=self._request_count,
            )

    def cost_usd(self) -> float:
        """Estimated spend for the current period."""
        usage = self.snapshot()
        return self.pricing.cost(usage.input_tokens, usage.output_tokens)

    def budget_percent(self, budget_usd: float) -> float:
        """Share of the budget consumed, capped at 100."""
        return min(100.0, self.cost_usd() / budget_usd * 100)

    def under_budget(self, budget_usd: float) -> bool:
        """Check if estimated spend is still below the budget."""
        return self.cost_usd() < budget_usd

    def record(
        self, input_tokens: int, output_tokens: int, budget_usd: float | None = None
    ) -> UsageSnapshot:
        """Add one request's token usage to the current period.

        Args:
            input_tokens: Input tokens estimated for the request
            output_tokens: Output tokens estimated for the request
            budget_usd: Optional budget, used only for the threshold warning

        Returns:
            UsageSnapshot after the increment
        """
        if input_tokens < 0 or output_tokens < 0:
            raise ValueError("token counts must be >= 0")

        with self._lock:
            self._rotate_locked()
            before = self.pricing.cost(self._input_tokens, self._output_tokens)
            self._input_tokens += input_tokens
            self._output_tokens += output_tokens
            self._request_count += 1
            snapshot = UsageSnapshot(
                period=self._period,
                input_tokens=self._input_tokens,
                output_tokens=self._output_tokens,
                request_count=self._request_count,
            )

        after = self.pricing.cost(snapshot.input_tokens, snapshot.output_tokens)
        logger.info(
            "Token usage recorded",
            extra={
                "period": snapshot.period,
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "period_input_tokens": snapshot.input_tokens,
                "period_output_tokens": snapshot.output_tokens,
                "estimated_cost_usd": round(after, 6),
            },
        )
        metrics.add_metric(
            name="TokensConsumed",
            unit=MetricUnit.Count,
            value=input_tokens + output_tokens,
        )

        if budget_usd:
            threshold = budget_usd * WARNING_THRESHOLD
            if before < threshold <= after:
                logger.warning(
                    "Approaching monthly budget",
                    extra={
                        "estimated_cost_usd": round(after, 4),
                        "budget_usd": budget_usd,
                        "percentage": round(after / budget_usd * 100, 1),
                    },
                )

        return snapshot
