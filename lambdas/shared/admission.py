"""Per-user and global admission control for analysis requests."""

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from aws_lambda_powertools import Logger
from aws_lambda_powertools.metrics import MetricUnit, single_metric

from .exceptions import AnalysisError, DailyCapReached, ServerBusy, UserBusy
from .modes import Mode, get_policy

logger = Logger(child=True)

DAILY_CAP = "daily_cap"
USER_BUSY = "busy"
SERVER_BUSY = "server_busy"


def get_today_key(now: datetime | None = None) -> str:
    """Get today's date key in UTC."""
    now = now or datetime.now(UTC)
    return now.strftime("%Y-%m-%d")


@dataclass
class AdmissionDecision:
    """Outcome of an admission check."""

    granted: bool
    reason: str | None = None


@dataclass
class UserQuota:
    """Per-user counters for one calendar day."""

    day: str
    completed: int = 0
    active: int = 0


class AdmissionController:
    """Gates analysis work per user and globally.

    Daily cap is checked before per-user concurrency, so a user out of
    quota is told so rather than being told they are busy. Admission
    counts toward the daily cap immediately; release only frees the slot.
    """

    def __init__(
        self,
        global_max_active: int = 3,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize controller.

        Args:
            global_max_active: Ceiling on analyses in flight across all users
            clock: Returns the current UTC time. Defaults to datetime.now(UTC).
        """
        self.global_max_active = global_max_active
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        self._quotas: dict[str, UserQuota] = {}
        self._global_active = 0

    def try_acquire(self, user_key: str, mode: Mode) -> AdmissionDecision:
        """Try to take a per-user slot under the given mode's policy.

        Args:
            user_key: Stable user identity key
            mode: Mode fixed for this request

        Returns:
            AdmissionDecision, denied with DAILY_CAP or USER_BUSY
        """
        policy = get_policy(mode)
        today = get_today_key(self._clock())

        with self._lock:
            quota = self._quotas.get(user_key)
            if quota is None:
                quota = UserQuota(day=today)
                self._quotas[user_key] = quota
            if quota.day != today:
                quota.day = today
                quota.completed = 0
                quota.active = 0

            if quota.completed >= policy.per_user_daily_analyses:
                decision = AdmissionDecision(granted=False, reason=DAILY_CAP)
            elif quota.active >= policy.per_user_concurrency:
                decision = AdmissionDecision(granted=False, reason=USER_BUSY)
            else:
                quota.completed += 1
                quota.active += 1
                decision = AdmissionDecision(granted=True)

        if not decision.granted:
            _record_denial(decision.reason, user_key=user_key, mode=mode)
        return decision

    def release(self, user_key: str) -> None:
        """Free one of the user's active slots. Never touches the daily count."""
        with self._lock:
            quota = self._quotas.get(user_key)
            if quota is not None:
                quota.active = max(0, quota.active - 1)

    def try_acquire_global(self) -> AdmissionDecision:
        """Try to take a global slot."""
        with self._lock:
            if self._global_active >= self.global_max_active:
                decision = AdmissionDecision(granted=False, reason=SERVER_BUSY)
            else:
                self._global_active += 1
                decision = AdmissionDecision(granted=True)

        if not decision.granted:
            _record_denial(SERVER_BUSY, limit=self.global_max_active)
        return decision

    def release_global(self) -> None:
        """Free a global slot."""
        with self._lock:
            self._global_active = max(0, self._global_active - 1)

    @property
    def global_active(self) -> int:
        """Analyses currently in flight across all users."""
        with self._lock:
            return self._global_active

    def get_quota(self, user_key: str) -> UserQuota | None:
        """Copy of a user's counters, or None if never seen."""
        with self._lock:
            quota = self._quotas.get(user_key)
            if quota is None:
                return None
            return UserQuota(day=quota.day, completed=quota.completed, active=quota.active)

    @contextmanager
    def admit(self, user_key: str, mode: Mode) -> Iterator[None]:
        """Hold a per-user and a global slot for the duration of the block.

        Both slots are released exactly once on every exit path.

        Raises:
            DailyCapReached: User used up today's analyses
            UserBusy: User is at the concurrency cap
            ServerBusy: Global ceiling reached
        """
        decision = self.try_acquire(user_key, mode)
        if not decision.granted:
            raise denial_error(decision.reason, mode)

        global_decision = self.try_acquire_global()
        if not global_decision.granted:
            self.release(user_key)
            raise denial_error(SERVER_BUSY, mode)

        try:
            yield
        finally:
            self.release_global()
            self.release(user_key)


def _record_denial(reason: str | None, **fields) -> None:
    logger.info(
        "Request blocked by admission control",
        extra={"reason": reason, **{k: getattr(v, "value", v) for k, v in fields.items()}},
    )
    with single_metric(
        name="AdmissionDenied",
        unit=MetricUnit.Count,
        value=1,
        namespace="ClauseGuard",
    ) as metric:
        metric.add_dimension(name="Reason", value=reason or "unknown")


def get_denial_message(reason: str | None) -> str:
    """Get the user-facing message for a denial reason.

    Args:
        reason: DAILY_CAP, USER_BUSY or SERVER_BUSY

    Returns:
        Short message telling the client when to retry
    """
    if reason == DAILY_CAP:
        return "Daily limit reached. Try tomorrow."
    if reason == USER_BUSY:
        return "Another analysis in progress. Please wait."
    if reason == SERVER_BUSY:
        return "Server busy. Please try again shortly."
    return "Service temporarily unavailable. Please try again later."


def denial_error(reason: str | None, mode: Mode | None = None) -> AnalysisError:
    """Build the typed error for a denial reason."""
    mode_value = mode.value if mode is not None else None
    message = get_denial_message(reason)
    if reason == DAILY_CAP:
        return DailyCapReached(message, mode=mode_value)
    if reason == USER_BUSY:
        return UserBusy(message, mode=mode_value)
    return ServerBusy(message, mode=mode_value)
