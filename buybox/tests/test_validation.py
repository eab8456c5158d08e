"""Tests for submission validation."""
from __future__ import annotations

import pytest

from buybox.errors import ValidationError
from buybox.validation import ensure_valid, validate_submission


class TestValidateSubmission:
    def test_valid(self, submission):
        report = validate_submission(submission)
        assert report.ok is True
        assert report.errors == []

    def test_not_an_object(self):
        report = validate_submission(["not", "a", "dict"])
        assert report.ok is False
        assert report.errors == ["Submission must be an object"]

    def test_collects_every_problem(self):
        errors = validate_submission({}).errors
        assert "sales_marketing rating and evidence are required" in errors
        assert "Interests and topics must be at least 10 characters" in errors
        assert "Customer affinity selection is required" in errors
        assert "Valid total liquid capital is required" in errors
        assert "Time commitment must be between 10-80 hours per week" in errors
        assert "Location preference is required" in errors
        assert "Risk tolerance is required" in errors
        assert len(errors) == 15

    def test_short_evidence(self, submission):
        submission["team_culture"]["evidence"] = "Too short."
        assert validate_submission(submission).errors == [
            "team_culture evidence must be at least 200 characters"
        ]

    @pytest.mark.parametrize("rating", [0, 6, "x", None])
    def test_bad_rating(self, submission, rating):
        submission["product_technology"]["rating"] = rating
        assert validate_submission(submission).errors == [
            "product_technology rating must be an integer between 1 and 5"
        ]

    @pytest.mark.parametrize("hours, ok", [(9, False), (10, True), (80, True), (81, False), ("40", True)])
    def test_hours_bounds(self, submission, hours, ok):
        submission["time_commitment"] = hours
        assert validate_submission(submission).ok is ok

    def test_zero_money_accepted(self, submission):
        submission["potential_loan_amount"] = 0
        assert validate_submission(submission).ok is True

    @pytest.mark.parametrize("value", [-1, "lots", None, True])
    def test_bad_money(self, submission, value):
        submission["min_annual_income"] = value
        assert validate_submission(submission).errors == ["Valid minimum annual income is required"]

    @pytest.mark.parametrize("value", ["nan", "inf", "-inf", float("nan"), float("inf")])
    def test_non_finite_money(self, submission, value):
        submission["total_liquid_capital"] = value
        assert validate_submission(submission).errors == ["Valid total liquid capital is required"]

    @pytest.mark.parametrize("value", ["nan", float("inf")])
    def test_non_finite_hours(self, submission, value):
        submission["time_commitment"] = value
        assert validate_submission(submission).errors == [
            "Time commitment must be between 10-80 hours per week"
        ]

    def test_known_methodology_accepted(self, submission):
        submission["analysis_methodology"] = "swot_analysis"
        assert validate_submission(submission).ok is True

    def test_unknown_methodology(self, submission):
        submission["analysis_methodology"] = "astrology"
        assert validate_submission(submission).errors == ["Unknown analysis methodology: astrology"]

    def test_ensure_valid_raises(self, submission):
        submission["customer_affinity"] = ""
        with pytest.raises(ValidationError) as exc_info:
            ensure_valid(submission)
        assert exc_info.value.errors == ["Customer affinity selection is required"]
        assert "Customer affinity" in str(exc_info.value)
