"""Canned sample analysis returned on the demo path."""

from .models import AnalysisResult, KeyClause, ProCon, RedFlag

DEMO_RESULT = AnalysisResult(
    summary="Demo only. This is not legal advice.",
    pros=[ProCon(title="✅ Clear scope", why_it_matters="You know what is covered.")],
    cons=[
        ProCon(title="⚠️ One-sided term", why_it_matters="Gives them too much control.")
    ],
    red_flags=[
        RedFlag(
            clause="Manager gets 100% of artist income",
            severity="high",
            explanation="You keep no earnings. This is unfair.",
            suggested_language="Set commission to 15–20%, not 100%.",
            source_excerpt="Manager shall receive 100% of Artist’s income from all sources.",
        ),
        RedFlag(
            clause="All rights in perpetuity",
            severity="high",
            explanation="Rights never return. You lose control.",
            suggested_language="Add a 5–7 year reversion of rights.",
            source_excerpt="Artist hereby assigns all rights in perpetuity.",
        ),
    ],
    key_clauses=[
        KeyClause(name="Commission", found=True, excerpt="100% to Manager"),
        KeyClause(name="Term", found=True, excerpt="Initial period 4 years"),
    ],
    questions_for_counterparty=["Can we set commission to 15–20% instead of 100%?"],
    negotiation_levers=["Set commission at 15–20%.", "Add reversion after 5–7 years."],
)
