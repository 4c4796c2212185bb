"""Tests for admission control."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from shared.admission import (
    DAILY_CAP,
    SERVER_BUSY,
    USER_BUSY,
    AdmissionController,
    denial_error,
    get_denial_message,
    get_today_key,
)
from shared.exceptions import DailyCapReached, ServerBusy, UserBusy
from shared.modes import Mode


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    """Clock pinned to a fixed day."""
    return FakeClock(datetime(2025, 3, 15, 9, 0, tzinfo=UTC))


@pytest.fixture
def controller(clock):
    """Controller with the default global ceiling."""
    return AdmissionController(global_max_active=3, clock=clock)


class TestPerUserSlots:
    """Tests for per-user admission."""

    def test_first_request_granted(self, controller):
        """A new user is admitted."""
        decision = controller.try_acquire("user:a", Mode.NORMAL)

        assert decision.granted is True
        assert decision.reason is None
        quota = controller.get_quota("user:a")
        assert quota.completed == 1
        assert quota.active == 1

    def test_concurrency_cap(self, controller):
        """Critical mode allows one active analysis per user."""
        assert controller.try_acquire("user:a", Mode.CRITICAL).granted is True

        decision = controller.try_acquire("user:a", Mode.CRITICAL)

        assert decision.granted is False
        assert decision.reason == USER_BUSY

    def test_release_frees_slot_but_keeps_count(self, controller):
        """Release frees the slot without refunding the daily count."""
        controller.try_acquire("user:a", Mode.CRITICAL)
        controller.release("user:a")

        assert controller.try_acquire("user:a", Mode.CRITICAL).granted is True
        assert controller.get_quota("user:a").completed == 2

    def test_daily_cap(self, controller):
        """The 11th critical-mode request in a day is refused."""
        for _ in range(10):
            assert controller.try_acquire("user:a", Mode.CRITICAL).granted is True
            controller.release("user:a")

        decision = controller.try_acquire("user:a", Mode.CRITICAL)

        assert decision.granted is False
        assert decision.reason == DAILY_CAP

    def test_daily_cap_checked_before_busy(self, controller):
        """A user at both limits is told about the daily cap."""
        for _ in range(9):
            controller.try_acquire("user:a", Mode.CRITICAL)
            controller.release("user:a")
        controller.try_acquire("user:a", Mode.CRITICAL)

        decision = controller.try_acquire("user:a", Mode.CRITICAL)

        assert decision.reason == DAILY_CAP

    def test_day_change_resets_counts(self, controller, clock):
        """A new UTC day starts a fresh quota."""
        for _ in range(10):
            controller.try_acquire("user:a", Mode.CRITICAL)
            controller.release("user:a")
        clock.now = datetime(2025, 3, 16, 0, 1, tzinfo=UTC)

        decision = controller.try_acquire("user:a", Mode.CRITICAL)

        assert decision.granted is True
        assert controller.get_quota("user:a").day == "2025-03-16"
        assert controller.get_quota("user:a").completed == 1

    def test_users_are_independent(self, controller):
        """One user's slots do not affect another's."""
        controller.try_acquire("user:a", Mode.CRITICAL)

        assert controller.try_acquire("user:b", Mode.CRITICAL).granted is True

    def test_release_never_goes_negative(self, controller):
        """Releasing an idle user is harmless."""
        controller.try_acquire("user:a", Mode.NORMAL)
        controller.release("user:a")
        controller.release("user:a")
        controller.release("user:unknown")

        assert controller.get_quota("user:a").active == 0
        assert controller.get_quota("user:unknown") is None

    def test_denial_emits_metric(self, controller):
        """Denials are logged and counted."""
        controller.try_acquire("user:a", Mode.CRITICAL)
        with patch("shared.admission.single_metric") as mock_metric:
            controller.try_acquire("user:a", Mode.CRITICAL)

        mock_metric.assert_called_once()
        assert mock_metric.call_args.kwargs["name"] == "AdmissionDenied"


class TestGlobalSlots:
    """Tests for the global ceiling."""

    def test_global_ceiling(self, controller):
        """Fourth concurrent analysis is refused."""
        for _ in range(3):
            assert controller.try_acquire_global().granted is True

        decision = controller.try_acquire_global()

        assert decision.granted is False
        assert decision.reason == SERVER_BUSY
        assert controller.global_active == 3

    def test_release_global(self, controller):
        """Releasing a global slot admits the next request."""
        for _ in range(3):
            controller.try_acquire_global()
        controller.release_global()

        assert controller.try_acquire_global().granted is True


class TestAdmit:
    """Tests for the admit context manager."""

    def test_releases_on_success(self, controller):
        """Both slots are freed after the block."""
        with controller.admit("user:a", Mode.NORMAL):
            assert controller.global_active == 1
            assert controller.get_quota("user:a").active == 1

        assert controller.global_active == 0
        assert controller.get_quota("user:a").active == 0
        assert controller.get_quota("user:a").completed == 1

    def test_releases_on_error(self, controller):
        """Both slots are freed when the block raises."""
        with pytest.raises(RuntimeError):
            with controller.admit("user:a", Mode.NORMAL):
                raise RuntimeError("boom")

        assert controller.global_active == 0
        assert controller.get_quota("user:a").active == 0

    def test_user_busy_raises(self, controller):
        """Busy user gets UserBusy tagged with the mode."""
        controller.try_acquire("user:a", Mode.CRITICAL)

        with pytest.raises(UserBusy) as exc_info:
            with controller.admit("user:a", Mode.CRITICAL):
                pass

        assert exc_info.value.mode == "critical"
        assert exc_info.value.status_code == 429

    def test_server_busy_releases_user_slot(self, controller):
        """Global refusal gives back the per-user slot."""
        for _ in range(3):
            controller.try_acquire_global()

        with pytest.raises(ServerBusy):
            with controller.admit("user:a", Mode.NORMAL):
                pass

        assert controller.get_quota("user:a").active == 0

    def test_burst_never_exceeds_ceilings(self):
        """Concurrent admissions respect per-user and global ceilings."""
        controller = AdmissionController(global_max_active=3)
        lock = threading.Lock()
        peak = {"global": 0, "user:a": 0}
        active = {"global": 0, "user:a": 0}
        barrier = threading.Barrier(8)

        def attempt(user_key: str) -> str:
            barrier.wait()
            try:
                with controller.admit(user_key, Mode.NORMAL):
                    with lock:
                        active["global"] += 1
                        peak["global"] = max(peak["global"], active["global"])
                        if user_key == "user:a":
                            active["user:a"] += 1
                            peak["user:a"] = max(peak["user:a"], active["user:a"])
                    threading.Event().wait(0.05)
                    with lock:
                        active["global"] -= 1
                        if user_key == "user:a":
                            active["user:a"] -= 1
                return "ok"
            except (UserBusy, ServerBusy) as e:
                return e.code

        users = ["user:a"] * 4 + [f"user:{i}" for i in range(4)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(attempt, users))

        assert peak["global"] <= 3
        assert peak["user:a"] <= 2
        assert "ok" in outcomes
        assert controller.global_active == 0


class TestDenialMessages:
    """Tests for denial messages and errors."""

    def test_messages(self):
        """Each reason has a specific message."""
        assert get_denial_message(DAILY_CAP) == "Daily limit reached. Try tomorrow."
        assert get_denial_message(USER_BUSY) == "Another analysis in progress. Please wait."
        assert get_denial_message(SERVER_BUSY) == "Server busy. Please try again shortly."
        assert "try again" in get_denial_message(None)

    def test_denial_error_types(self):
        """Reasons map to typed errors."""
        assert isinstance(denial_error(DAILY_CAP, Mode.LIGHT), DailyCapReached)
        assert isinstance(denial_error(USER_BUSY, Mode.LIGHT), UserBusy)
        assert isinstance(denial_error(SERVER_BUSY, Mode.LIGHT), ServerBusy)
        assert denial_error(DAILY_CAP, Mode.LIGHT).mode == "light"

    def test_today_key(self):
        """Day key is YYYY-MM-DD."""
        assert get_today_key(datetime(2025, 12, 31, 23, 59, tzinfo=UTC)) == "2025-12-31"
