"""Operating modes and their resource policies."""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from aws_lambda_powertools import Logger

from .config import read_mode_override
from .usage_ledger import UsageLedger

logger = Logger(child=True)

# Budget consumption (percent) at which each stricter mode kicks in
LIGHT_THRESHOLD_PCT = 50
CRITICAL_THRESHOLD_PCT = 75


class Mode(str, Enum):
    """Named resource policy, from most to least generous."""

    NORMAL = "normal"
    LIGHT = "light"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Policy:
    """Limits applied to every request processed under a mode.

    Stricter modes never loosen any limit.
    """

    max_pages: int
    max_bytes: int
    chunk_chars: int
    chunk_overlap: int
    delay_ms: int
    max_output_tokens: int
    per_user_daily_analyses: int
    per_user_concurrency: int
    model: str


POLICIES: dict[Mode, Policy] = {
    Mode.NORMAL: Policy(
        max_pages=50,
        max_bytes=10 * 1024 * 1024,
        chunk_chars=5000,
        chunk_overlap=500,
        delay_ms=700,
        max_output_tokens=1200,
        per_user_daily_analyses=50,
        per_user_concurrency=2,
        model="claude-3-5-haiku-20241022",
    ),
    Mode.LIGHT: Policy(
        max_pages=25,
        max_bytes=5 * 1024 * 1024,
        chunk_chars=4000,
        chunk_overlap=400,
        delay_ms=1200,
        max_output_tokens=700,
        per_user_daily_analyses=25,
        per_user_concurrency=1,
        model="claude-3-haiku-20240307",
    ),
    Mode.CRITICAL: Policy(
        max_pages=10,
        max_bytes=2 * 1024 * 1024,
        chunk_chars=3000,
        chunk_overlap=300,
        delay_ms=2000,
        max_output_tokens=400,
        per_user_daily_analyses=10,
        per_user_concurrency=1,
        model="claude-3-haiku-20240307",
    ),
}


def get_policy(mode: Mode) -> Policy:
    """Get the policy bound to a mode."""
    return POLICIES[Mode(mode)]


def mode_for_budget_percent(percent: float) -> Mode:
    """Map budget consumption to a mode.

    Args:
        percent: Share of the monthly budget already spent (0-100)

    Returns:
        CRITICAL at 75% or more, LIGHT at 50% or more, else NORMAL
    """
    if percent >= CRITICAL_THRESHOLD_PCT:
        return Mode.CRITICAL
    if percent >= LIGHT_THRESHOLD_PCT:
        return Mode.LIGHT
    return Mode.NORMAL


class ModeController:
    """Derives the active mode from the ledger unless an override is set."""

    def __init__(
        self,
        ledger: UsageLedger,
        monthly_budget_usd: float,
        override_loader: Callable[[], str | None] | None = None,
    ):
        """Initialize controller.

        Args:
            ledger: Usage ledger to read budget consumption from
            monthly_budget_usd: Monthly budget ceiling in USD
            override_loader: Returns the override mode name or None.
                Defaults to reading the MODE environment variable.
                Called at startup and again on every period rollover.
        """
        self.ledger = ledger
        self.monthly_budget_usd = monthly_budget_usd
        self._override_loader = override_loader or read_mode_override
        self._override = self._load_override()
        self._period = ledger.period
        self._last_mode: Mode | None = None
        self._lock = threading.Lock()

    def _load_override(self) -> Mode | None:
        raw = self._override_loader()
        return Mode(raw) if raw else None

    @property
    def override(self) -> Mode | None:
        """Currently configured override, if any."""
        return self._override

    def budget_percent(self) -> float:
        """Share of the monthly budget spent so far."""
        return self.ledger.budget_percent(self.monthly_budget_usd)

    def current_mode(self) -> Mode:
        """Get the mode new work should run under.

        Pure read of ledger state, apart from re-reading the override
        when the billing period has changed.
        """
        self.ledger.rotate_if_needed()
        with self._lock:
            period = self.ledger.period
            if period != self._period:
                self._override = self._load_override()
                self._period = period

            if self._override is not None:
                mode = self._override
            else:
                mode = mode_for_budget_percent(self.budget_percent())

            if mode != self._last_mode:
                if self._last_mode is not None:
                    logger.info(
                        "Operating mode changed",
                        extra={
                            "previous_mode": self._last_mode.value,
                            "mode": mode.value,
                            "override": self._override is not None,
                        },
                    )
                self._last_mode = mode
            return mode
