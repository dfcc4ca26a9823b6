"""JSON schemas for structured LLM output."""

SECURITY_LEVELS = ["low", "medium", "high", "critical"]

ANALYSIS_RESULT_SCHEMA = {
    "type": "object",
    "properties": {
        "confidence": {
            "type": "number",
            "minimum": 0,
            "maximum": 1,
            "description": "Confidence in your own analysis (0-1)",
        },
        "analysis_text": {
            "type": "string",
            "description": "Review of the report (1-3 paragraphs)",
        },
        "flagged_concerns": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "description": {"type": "string"},
                    "severity": {"type": "string", "enum": SECURITY_LEVELS},
                },
                "required": ["description", "severity"],
            },
            "description": "Concrete problems found in the report, most severe first",
        },
        "suggested_improvements": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Specific edits that would improve the report",
        },
        "security_assessment": {
            "type": "string",
            "enum": SECURITY_LEVELS,
            "description": "Overall security severity; must be backed by a flagged concern",
        },
        "completeness_score": {
            "type": "number",
            "minimum": 0,
            "maximum": 1,
            "description": "How complete the report is (0-1)",
        },
        "clarity_score": {
            "type": "number",
            "minimum": 0,
            "maximum": 1,
            "description": "How clear and unambiguous the report is (0-1)",
        },
    },
    "required": [
        "confidence",
        "analysis_text",
        "flagged_concerns",
        "security_assessment",
        "completeness_score",
        "clarity_score",
    ],
}
