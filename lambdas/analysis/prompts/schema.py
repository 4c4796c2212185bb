"""JSON schema the analyzer must fill in."""

_PRO_CON = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "why_it_matters": {"type": "string"},
    },
    "required": ["title", "why_it_matters"],
}

RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "pros": {"type": "array", "items": _PRO_CON},
        "cons": {"type": "array", "items": _PRO_CON},
        "red_flags": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "clause": {"type": "string"},
                    "severity": {"type": "string", "enum": ["low", "medium", "high"]},
                    "explanation": {"type": "string"},
                    "suggested_language": {"type": "string"},
                    "source_excerpt": {"type": "string"},
                },
                "required": ["clause", "severity", "explanation", "suggested_language"],
            },
        },
        "key_clauses": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "found": {"type": "boolean"},
                    "excerpt": {"type": "string"},
                },
                "required": ["name", "found", "excerpt"],
            },
        },
        "questions_for_counterparty": {"type": "array", "items": {"type": "string"}},
        "negotiation_levers": {"type": "array", "items": {"type": "string"}},
        "risk_score": {"type": "integer", "minimum": 0, "maximum": 100},
        "risk_label": {"type": "string"},
    },
    "required": [
        "summary",
        "pros",
        "cons",
        "red_flags",
        "key_clauses",
        "questions_for_counterparty",
        "negotiation_levers",
    ],
}
