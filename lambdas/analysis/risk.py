"""Deterministic risk scoring with hard safety caps.

The baseline formula only runs when the merged result has no score of
its own. The override rules always run afterwards and can only lower
the score.
"""

import math
import re
from collections.abc import Callable
from dataclasses import dataclass

from .models import AnalysisResult, RedFlag

BASELINE_SCORE = 70
PRO_BONUS = 4
CON_PENALTY = 4

SEVERITY_WEIGHTS = {"high": 25, "medium": 15, "low": 8}
UNKNOWN_SEVERITY_WEIGHT = 12

# Minimum score for each label, checked top to bottom
RISK_LABELS: list[tuple[int, str]] = [
    (85, "Safe to sign (low risk)"),
    (70, "Mostly OK (minor fixes)"),
    (55, "Caution (needs changes)"),
    (40, "Risky (major changes)"),
    (0, "Do not sign as-is"),
]

_HUNDRED_PERCENT = re.compile(r"100\s*%")
_PAYEE_TERM = re.compile(r"(manager|management|label|company)")
_INCOME_TERM = re.compile(r"(income|earnings|revenue|revenues|proceeds|gross|net)")
_PERPETUAL_ASSIGNMENT = re.compile(
    r"(assigns?|transfers?).{0,40}(all|entire).{0,15}"
    r"(rights|masters|copyright|ownership).{0,40}"
    r"(perpetuity|in\s+perpetuity|irrevocable)"
)


def clamp_score(value: float) -> int:
    """Round half-up and clamp to 0-100. Non-finite values become 0."""
    if not math.isfinite(value):
        return 0
    return max(0, min(100, math.floor(value + 0.5)))


def severity_weight(severity: str | None) -> int:
    """Score penalty for one red flag."""
    return SEVERITY_WEIGHTS.get((severity or "").lower(), UNKNOWN_SEVERITY_WEIGHT)


def risk_label_for(score: int) -> str:
    """Map a final score to its label."""
    for minimum, label in RISK_LABELS:
        if score >= minimum:
            return label
    return RISK_LABELS[-1][1]


def baseline_score(result: AnalysisResult) -> int:
    """Score from counts alone: 70, +4 per pro, -4 per con, minus flag weights."""
    score = BASELINE_SCORE
    score += len(result.pros) * PRO_BONUS
    score -= len(result.cons) * CON_PENALTY
    for flag in result.red_flags:
        score -= severity_weight(flag.severity)
    return clamp_score(score)


def flatten_text(result: AnalysisResult) -> str:
    """Lowercased text of every field, one part per line."""
    parts: list[str] = [result.summary]
    for item in [*result.pros, *result.cons]:
        parts.extend([item.title, item.why_it_matters])
    for flag in result.red_flags:
        parts.extend(
            [flag.clause, flag.explanation, flag.suggested_language, flag.source_excerpt or ""]
        )
    for clause in result.key_clauses:
        parts.extend([clause.name, clause.excerpt])
    parts.extend(result.questions_for_counterparty)
    parts.extend(result.negotiation_levers)
    return " \n ".join(parts).lower()


def gives_all_income_to_payee(text: str, result: AnalysisResult) -> bool:
    """Mentions 100% with a manager/label/company term and an income term.

    Caps the score at 10.
    """
    return bool(
        _HUNDRED_PERCENT.search(text)
        and _PAYEE_TERM.search(text)
        and _INCOME_TERM.search(text)
    )


def assigns_all_rights_forever(text: str, result: AnalysisResult) -> bool:
    """Assigns/transfers all or entire rights in perpetuity or irrevocably.

    Caps the score at 20. Matches within a single line of flattened text.
    """
    return bool(_PERPETUAL_ASSIGNMENT.search(text))


def has_many_high_flags(text: str, result: AnalysisResult) -> bool:
    """Three or more high-severity red flags. Caps the score at 30."""
    return sum(1 for flag in result.red_flags if _is_high(flag)) >= 3


def _is_high(flag: RedFlag) -> bool:
    return (flag.severity or "").lower() == "high"


@dataclass(frozen=True)
class OverrideRule:
    """A named predicate and the score it caps to."""

    name: str
    predicate: Callable[[str, AnalysisResult], bool]
    cap: int


OVERRIDE_RULES: list[OverrideRule] = [
    OverrideRule("all_income_to_payee", gives_all_income_to_payee, 10),
    OverrideRule("all_rights_forever", assigns_all_rights_forever, 20),
    OverrideRule("many_high_flags", has_many_high_flags, 30),
]


def triggered_rules(result: AnalysisResult) -> list[OverrideRule]:
    """Override rules whose predicate matches the result."""
    text = flatten_text(result)
    return [rule for rule in OVERRIDE_RULES if rule.predicate(text, result)]


def apply_overrides(result: AnalysisResult, score: int) -> int:
    """Cap score by every matching override rule."""
    for rule in triggered_rules(result):
        score = min(score, rule.cap)
    return clamp_score(score)


def finalize(result: AnalysisResult) -> AnalysisResult:
    """Return a copy with a final risk score and label.

    Args:
        result: Merged analysis, possibly carrying a model-provided score

    Returns:
        Copy with risk_score in 0-100 and the label matching that score
    """
    if result.risk_score is None:
        score = baseline_score(result)
    else:
        score = clamp_score(result.risk_score)

    score = apply_overrides(result, score)
    return result.model_copy(
        update={"risk_score": score, "risk_label": risk_label_for(score)}
    )
