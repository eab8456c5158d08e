"""Submission validation shared by every engine."""
from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from buybox.errors import ValidationError
from buybox.prompts import METHODOLOGIES
from buybox.schemas import COMPETENCIES, ValidationReport
from buybox.scorer import MIN_EVIDENCE_CHARS, coerce_rating

MIN_TEXT_CHARS = 10
MIN_HOURS = 10
MAX_HOURS = 80

_TEXT_FIELDS = (
    ("interests_topics", "Interests and topics"),
    ("recent_books", "Recent books field"),
    ("problem_to_solve", "Problem to solve"),
)

_MONEY_FIELDS = (
    ("total_liquid_capital", "total liquid capital"),
    ("potential_loan_amount", "potential loan amount"),
    ("min_annual_income", "minimum annual income"),
)


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def validate_submission(raw: Any) -> ValidationReport:
    """Check a raw form submission and collect every problem found."""
    if not isinstance(raw, Mapping):
        return ValidationReport(ok=False, errors=["Submission must be an object"])

    errors: list[str] = []

    for key in COMPETENCIES:
        entry = raw.get(key)
        if not isinstance(entry, Mapping):
            errors.append(f"{key} rating and evidence are required")
            continue
        if coerce_rating(entry.get("rating")) is None:
            errors.append(f"{key} rating must be an integer between 1 and 5")
        evidence = entry.get("evidence")
        if not isinstance(evidence, str) or len(evidence) < MIN_EVIDENCE_CHARS:
            errors.append(f"{key} evidence must be at least {MIN_EVIDENCE_CHARS} characters")

    for field, label in _TEXT_FIELDS:
        value = raw.get(field)
        if not isinstance(value, str) or len(value) < MIN_TEXT_CHARS:
            errors.append(f"{label} must be at least {MIN_TEXT_CHARS} characters")
    if not raw.get("customer_affinity"):
        errors.append("Customer affinity selection is required")

    for field, label in _MONEY_FIELDS:
        value = _number(raw.get(field))
        if value is None or value < 0:
            errors.append(f"Valid {label} is required")

    hours = _number(raw.get("time_commitment"))
    if hours is None or not MIN_HOURS <= hours <= MAX_HOURS:
        errors.append(f"Time commitment must be between {MIN_HOURS}-{MAX_HOURS} hours per week")
    if not raw.get("location_preference"):
        errors.append("Location preference is required")
    if not raw.get("risk_tolerance"):
        errors.append("Risk tolerance is required")

    methodology = raw.get("analysis_methodology")
    if methodology and (not isinstance(methodology, str) or methodology not in METHODOLOGIES):
        errors.append(f"Unknown analysis methodology: {methodology}")

    return ValidationReport(ok=not errors, errors=errors)


def ensure_valid(raw: Any) -> None:
    """Raise ``ValidationError`` if *raw* does not pass ``validate_submission``."""
    report = validate_submission(raw)
    if not report.ok:
        raise ValidationError(report.errors)
