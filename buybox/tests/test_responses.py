"""Tests for parsing completion text into structured fields."""
from __future__ import annotations

import pytest

from buybox.responses import (
    JsonResponseAdapter,
    MarkdownReportAdapter,
    ResponseParseError,
    advisor_adapter,
    analyst_adapter,
    extract_confidence,
    extract_score,
    extract_sections,
    find_archetype,
    find_industries,
    get_adapter,
)

ANALYST_RESPONSE = """\
ARCHETYPE ANALYSIS
Primary archetype: The Growth Catalyst with a composite score of 4.3/5 and 82% confidence.

COMPETENCY BREAKDOWN
Sales evidence is the strongest of the five.

INDUSTRY ASSESSMENT
1. Technology - strongest fit
2. E-commerce - good fit
3. Service businesses

CONFIDENCE EVALUATION
Overall confidence: 78%

ACQUISITION STRATEGY
Target a B2B software company with weak marketing.
"""

ANALYST_MARKDOWN_RESPONSE = """\
## 1. ARCHETYPE ANALYSIS
**The Financial Strategist**, composite score 4.0/5 with 70% confidence.

## 2. INDUSTRY ASSESSMENT
Finance first, then Real Estate.

## 3. CONFIDENCE EVALUATION
Overall confidence: 65%

## 4. ACQUISITION STRATEGY
The archetype analysis above points to a capital-light services firm.
Per the ARCHETYPE ANALYSIS, cash discipline is the lever; the industry assessment narrows it to finance.
Keep the confidence evaluation in mind before signing an LOI.
"""

ADVISOR_RESPONSE = """\
PRIMARY ARCHETYPE: The Efficiency Expert (score 4.1/5, confidence 85%)
COMPETENCY ANALYSIS
Operations evidence shows measurable process wins.
TARGET INDUSTRIES: Manufacturing, Real Estate, Healthcare
FINANCIAL PARAMETERS
SDE between $200,000 and $333,333.
ACQUISITION THESIS
Acquire a profitable distributor with manual processes.
BUYBOX CRITERIA
| Criterion | Your Target Profile | Rationale |
|---|---|---|
| Industries | Manufacturing | Operational leverage |
| Geography | Midwest | Close to home |
CONFIDENCE ASSESSMENT
Overall 80% confident in this profile.
"""

MARKDOWN_RESPONSE = """\
# Acquisition Report

## Part 1: Acquisition Thesis
You are **The Visionary Builder** with a 4.5/5 expertise score and 72% confidence.
Focus on companies with loyal customers and outdated products.

## Part 2: Personalized Buybox
| Criterion | Your Target Profile | Rationale |
|---|---|---|
| **Industries** | Education, Technology | Builder fit |
| Red Flags | Heavy debt | Risk |
"""

JSON_RESPONSE = """\
Here is the analysis:
```json
{
  "archetype": {"title": "The Financial Strategist"},
  "composite_score": 4.2,
  "archetype_confidence": 88,
  "confidence": 0.7,
  "industries": [
    {"industry": "Finance", "confidence": 0.9},
    {"industry": "Real Estate"},
    "finance",
    "banking"
  ],
  "thesis": "Buy an undervalued firm with loose financial controls.",
  "buybox": [
    {"criterion": "Industries", "target": "Finance", "rationale": "Fit"},
    {"criterion": "incomplete"}
  ]
}
```
"""


class TestExtractors:
    @pytest.mark.parametrize("text, expected", [
        ("composite score of 4.3/5", 4.3),
        ("rated 3 out of 5", 3.0),
        ("7/5 overall", 5.0),
        ("0.5 out of 5", 1.0),
        ("score: 2.5", 2.5),
    ])
    def test_extract_score(self, text, expected):
        assert extract_score(text) == pytest.approx(expected)

    def test_extract_score_missing(self):
        assert extract_score("no numbers here") is None
        assert extract_score("") is None

    @pytest.mark.parametrize("text, expected", [
        ("82% sure", 0.82),
        ("confidence: 0.65", 0.65),
        ("confidence 150%", 1.0),
        ("0.9 confidence", 0.9),
    ])
    def test_extract_confidence(self, text, expected):
        assert extract_confidence(text) == pytest.approx(expected)

    def test_extract_confidence_missing(self):
        assert extract_confidence("nothing") is None

    def test_find_archetype_uses_earliest_mention(self):
        assert find_archetype("an Efficiency Expert more than a Growth Catalyst") == "operations_systems"
        assert find_archetype("a growth catalyst, maybe an efficiency expert") == "sales_marketing"
        assert find_archetype("an astronaut") is None

    def test_find_industries_ranked_by_mention(self):
        matches = find_industries("Healthcare first, then e-commerce and finance; healthcare again")
        assert [m.industry for m in matches] == ["healthcare", "ecommerce", "finance"]
        assert [m.relevance_score for m in matches] == [10, 8, 6]
        assert [m.confidence for m in matches] == pytest.approx([0.9, 0.8, 0.7])

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            get_adapter("xml")


class TestSectionedAdapters:
    def test_analyst_response(self):
        parsed = analyst_adapter().parse(ANALYST_RESPONSE)
        assert parsed.archetype_key == "sales_marketing"
        assert parsed.composite_score == pytest.approx(4.3)
        assert parsed.archetype_confidence == pytest.approx(0.82)
        assert parsed.overall_confidence == pytest.approx(0.78)
        assert [m.industry for m in parsed.industries] == ["technology", "ecommerce", "service"]
        assert parsed.narrative == "Target a B2B software company with weak marketing."
        assert parsed.buybox_rows == []

    def test_markdown_headings_and_prose_mentions(self):
        parsed = analyst_adapter().parse(ANALYST_MARKDOWN_RESPONSE)
        assert parsed.archetype_key == "finance_analytics"
        assert parsed.composite_score == pytest.approx(4.0)
        assert parsed.archetype_confidence == pytest.approx(0.70)
        assert parsed.overall_confidence == pytest.approx(0.65)
        assert [m.industry for m in parsed.industries] == ["finance", "real_estate"]
        assert parsed.narrative.startswith("The archetype analysis above")
        assert "Per the ARCHETYPE ANALYSIS, cash discipline" in parsed.narrative
        assert parsed.narrative.endswith("before signing an LOI.")

    def test_prose_mentions_do_not_start_sections(self):
        text = ("ACQUISITION STRATEGY\n"
                "Lean on the archetype analysis and the Industry Assessment.\n"
                "This follows from the ARCHETYPE ANALYSIS.\n")
        sections = extract_sections(text, ("ARCHETYPE ANALYSIS", "INDUSTRY ASSESSMENT", "ACQUISITION STRATEGY"))
        assert list(sections) == ["ACQUISITION STRATEGY"]
        assert sections["ACQUISITION STRATEGY"].count("\n") == 2

    def test_advisor_response_with_inline_headers_and_table(self):
        parsed = advisor_adapter().parse(ADVISOR_RESPONSE)
        assert parsed.archetype_key == "operations_systems"
        assert parsed.composite_score == pytest.approx(4.1)
        assert parsed.archetype_confidence == pytest.approx(0.85)
        assert parsed.overall_confidence == pytest.approx(0.80)
        assert [m.industry for m in parsed.industries] == ["manufacturing", "real_estate", "healthcare"]
        assert [r.criterion for r in parsed.buybox_rows] == ["Industries", "Geography"]
        assert parsed.narrative == "Acquire a profitable distributor with manual processes."

    def test_no_headers_raises(self):
        with pytest.raises(ResponseParseError):
            analyst_adapter().parse("Sorry, I cannot help with that request.")

    def test_no_archetype_raises(self):
        text = "PRIMARY ARCHETYPE: unclear\nTARGET INDUSTRIES: Retail\n"
        with pytest.raises(ResponseParseError):
            advisor_adapter().parse(text)


class TestMarkdownAdapter:
    def test_two_part_report(self):
        parsed = MarkdownReportAdapter().parse(MARKDOWN_RESPONSE)
        assert parsed.archetype_key == "product_technology"
        assert parsed.composite_score == pytest.approx(4.5)
        assert parsed.overall_confidence == pytest.approx(0.72)
        assert [m.industry for m in parsed.industries] == ["education", "technology"]
        assert [r.criterion for r in parsed.buybox_rows] == ["Industries", "Red Flags"]
        assert parsed.narrative.startswith("You are **The Visionary Builder**")
        assert "#" not in parsed.narrative

    def test_without_part_headers(self):
        text = (
            "You are **The People Leader**.\n\n"
            "| Criterion | Your Target Profile | Rationale |\n"
            "|---|---|---|\n"
            "| Industries | Healthcare | Teams matter |\n"
        )
        parsed = MarkdownReportAdapter().parse(text)
        assert parsed.archetype_key == "team_culture"
        assert parsed.narrative == "You are **The People Leader**."
        assert [m.industry for m in parsed.industries] == ["healthcare"]
        assert parsed.composite_score is None
        assert parsed.overall_confidence is None

    @pytest.mark.parametrize("text", ["", "Just some words with no archetype at all."])
    def test_unparseable(self, text):
        with pytest.raises(ResponseParseError):
            MarkdownReportAdapter().parse(text)


class TestJsonAdapter:
    def test_fenced_object(self):
        parsed = JsonResponseAdapter().parse(JSON_RESPONSE)
        assert parsed.archetype_key == "finance_analytics"
        assert parsed.composite_score == pytest.approx(4.2)
        assert parsed.archetype_confidence == pytest.approx(0.88)
        assert parsed.overall_confidence == pytest.approx(0.7)
        assert [(m.industry, m.relevance_score) for m in parsed.industries] == [
            ("finance", 10), ("real_estate", 8)]
        assert parsed.industries[0].confidence == pytest.approx(0.9)
        assert parsed.industries[1].confidence == pytest.approx(0.8)
        assert len(parsed.buybox_rows) == 1
        assert parsed.narrative.startswith("Buy an undervalued firm")

    def test_canonical_key_accepted(self):
        parsed = JsonResponseAdapter().parse('{"archetype": "team_culture"}')
        assert parsed.archetype_key == "team_culture"
        assert parsed.industries == []
        assert parsed.composite_score is None

    @pytest.mark.parametrize("text", ["not json", "[1, 2, 3]", '{"archetype": "The Astronaut"}'])
    def test_invalid_payloads(self, text):
        with pytest.raises(ResponseParseError):
            JsonResponseAdapter().parse(text)
