"""
Intake flow step definitions served alongside a valid link, and the
required-field check applied to submissions.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from .errors import InvalidSubmissionError

TAX_YEAR_OPTIONS = 7


def intake_steps(today: Optional[date] = None) -> List[Dict[str, Any]]:
    current_year = (today or date.today()).year
    year_options = [str(current_year - i) for i in range(TAX_YEAR_OPTIONS)]
    return [
        {
            "id": "contact",
            "title": "Intake",
            "description": "Share your name, year, and anything else.",
            "fields": [
                {"id": "fullName", "label": "Name", "type": "text", "required": True},
                {
                    "id": "taxYears",
                    "label": "Year",
                    "type": "select",
                    "options": year_options,
                    "required": True,
                },
                {
                    "id": "notes",
                    "label": "Anything else?",
                    "type": "textarea",
                    "placeholder": "Add any extra details or questions here.",
                },
            ],
        },
    ]


def validate_responses(responses: Any, steps: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Check that every required field has a non-blank answer.

    Raises:
        InvalidSubmissionError: With code MISSING_FIELD:<field id>
    """
    if not isinstance(responses, dict):
        raise InvalidSubmissionError("responses must be an object")
    for step in steps:
        for f in step["fields"]:
            if not f.get("required"):
                continue
            value = responses.get(f["id"])
            if value is None or (isinstance(value, str) and not value.strip()) or value == []:
                raise InvalidSubmissionError(
                    f"{f['id']} is required", code=f"MISSING_FIELD:{f['id']}"
                )
    return responses
