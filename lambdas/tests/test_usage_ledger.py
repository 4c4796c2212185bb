"""Tests for the monthly usage ledger."""

from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from shared.usage_ledger import (
    TokenPricing,
    UsageLedger,
    estimate_tokens,
    get_month_key,
)


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    """Clock pinned to mid-March."""
    return FakeClock(datetime(2025, 3, 15, 12, 0, tzinfo=UTC))


@pytest.fixture
def ledger(clock):
    """Ledger with default pricing."""
    return UsageLedger(clock=clock)


class TestHelpers:
    """Tests for ledger helper functions."""

    def test_get_month_key_format(self):
        """Month key is YYYY-MM."""
        assert get_month_key(datetime(2025, 1, 31, 23, 59, tzinfo=UTC)) == "2025-01"

    def test_estimate_tokens_rounds_up(self):
        """Four characters per token, rounded up."""
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_estimate_tokens_empty(self):
        """Empty or missing text is zero tokens."""
        assert estimate_tokens("") == 0
        assert estimate_tokens(None) == 0

    def test_pricing_cost(self):
        """Cost uses per-million prices."""
        pricing = TokenPricing(input_per_m=0.30, output_per_m=2.50)
        assert pricing.cost(1_000_000, 1_000_000) == pytest.approx(2.80)


class TestUsageLedger:
    """Tests for UsageLedger."""

    def test_starts_empty(self, ledger):
        """New ledger has zero usage in the current period."""
        snapshot = ledger.snapshot()

        assert snapshot.period == "2025-03"
        assert snapshot.input_tokens == 0
        assert snapshot.output_tokens == 0
        assert snapshot.request_count == 0

    def test_record_accumulates(self, ledger):
        """Recording adds tokens and counts requests."""
        ledger.record(100, 50)
        snapshot = ledger.record(200, 25)

        assert snapshot.input_tokens == 300
        assert snapshot.output_tokens == 75
        assert snapshot.request_count == 2

    def test_record_rejects_negative(self, ledger):
        """Negative counts are a programming error."""
        with pytest.raises(ValueError):
            ledger.record(-1, 0)

    def test_cost_and_percent(self, ledger):
        """Cost and budget share follow pricing."""
        ledger.record(1_000_000, 1_000_000)

        assert ledger.cost_usd() == pytest.approx(2.80)
        assert ledger.budget_percent(20) == pytest.approx(14.0)
        assert ledger.under_budget(20) is True

    def test_budget_percent_capped(self, ledger):
        """Budget share never exceeds 100."""
        ledger.record(0, 10_000_000)

        assert ledger.budget_percent(20) == 100.0
        assert ledger.under_budget(20) is False

    def test_rollover_resets_counts(self, ledger, clock):
        """Counts reset when the month changes."""
        ledger.record(500, 500)
        clock.now = datetime(2025, 4, 1, 0, 0, tzinfo=UTC)

        assert ledger.rotate_if_needed() is True
        snapshot = ledger.snapshot()
        assert snapshot.period == "2025-04"
        assert snapshot.input_tokens == 0
        assert snapshot.request_count == 0

    def test_rollover_applied_on_record(self, ledger, clock):
        """Recording in a new month starts from zero."""
        ledger.record(500, 500)
        clock.now = datetime(2025, 4, 2, tzinfo=UTC)

        snapshot = ledger.record(10, 10)

        assert snapshot.period == "2025-04"
        assert snapshot.input_tokens == 10

    def test_same_month_does_not_rotate(self, ledger, clock):
        """Later time in the same month keeps counts."""
        ledger.record(10, 10)
        clock.now = datetime(2025, 3, 31, 23, 59, tzinfo=UTC)

        assert ledger.rotate_if_needed() is False
        assert ledger.snapshot().input_tokens == 10

    def test_clock_going_backwards_does_not_rotate(self, ledger, clock):
        """Period never moves backwards."""
        ledger.record(10, 10)
        clock.now = datetime(2025, 2, 1, tzinfo=UTC)

        assert ledger.rotate_if_needed() is False
        assert ledger.period == "2025-03"

    def test_warns_when_crossing_threshold(self, ledger):
        """A warning is logged once spend passes 80% of budget."""
        with patch("shared.usage_ledger.logger") as mock_logger:
            # 2.50 USD per million output tokens; 1 USD budget -> 0.8 USD threshold
            ledger.record(0, 400_000, budget_usd=1.0)
            mock_logger.warning.assert_called_once()
            assert "budget" in mock_logger.warning.call_args.args[0].lower()

    def test_no_warning_below_threshold(self, ledger):
        """No warning while under 80% of budget."""
        with patch("shared.usage_ledger.logger") as mock_logger:
            ledger.record(0, 100_000, budget_usd=1.0)
            mock_logger.warning.assert_not_called()
