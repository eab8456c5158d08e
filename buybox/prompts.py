"""Prompt templates for remote completion engines.

Prompts are plain string templates over a validated submission, so the same
input always yields the same prompt.  The ``format`` picks the answer shape
the matching response adapter in ``buybox.responses`` expects.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from buybox.report import TABLE_HEADER
from buybox.schemas import format_money
from buybox.scorer import ARCHETYPES

COMPETENCY_LABELS = {
    "sales_marketing": "Sales & Marketing",
    "operations_systems": "Operations & Systems",
    "finance_analytics": "Finance & Analytics",
    "team_culture": "Team & Culture",
    "product_technology": "Product & Technology",
}

SYSTEM_PROMPT = """\
You are an analytical acquisition advisor specializing in entrepreneur-business \
fit assessment. You evaluate evidence carefully and reason strategically.

You analyze entrepreneurs across 5 competency dimensions and assign them to one \
of 5 operator archetypes based on their strongest DEMONSTRATED capability:

{archetypes}

Method:
1. Evidence quality: specificity, quantitative results, achievement language
2. Competency scoring: weight evidence quality over self-ratings
3. Archetype selection: strongest demonstrated capability
4. Industry analysis: match interests with practical experience
5. Confidence calibration: certainty based on evidence depth

Always name the archetype by its exact title."""

_SECTIONS_FORMAT = """\
RESPONSE FORMAT:
Structure your response as clear sections, each header on its own line:

ARCHETYPE ANALYSIS:
[Archetype title, composite score as N/5, confidence as a percentage, reasoning]

COMPETENCY BREAKDOWN:
[Analysis of each competency with evidence evaluation]

INDUSTRY ASSESSMENT:
[3-5 industries from: technology, healthcare, finance, education, retail, \
ecommerce, service, manufacturing, real estate; most relevant first]

CONFIDENCE EVALUATION:
[Overall confidence as a percentage with justification]

ACQUISITION STRATEGY:
[2-3 paragraph acquisition thesis]

FINANCIAL MODELING:
[SDE range and valuation considerations]"""

_ADVISOR_FORMAT = """\
RESPONSE FORMAT:
Please structure your response with clear sections:

PRIMARY ARCHETYPE: [Archetype title, score as N/5, confidence as a percentage]

COMPETENCY ANALYSIS: [Evidence evaluation per competency]

TARGET INDUSTRIES: [3-5 industries, most relevant first]

FINANCIAL PARAMETERS: [SDE range and purchase price recommendations]

ACQUISITION THESIS: [2-3 paragraph strategic recommendation]

BUYBOX CRITERIA: [Markdown table with columns {header}]

CONFIDENCE ASSESSMENT: [Overall confidence as a percentage with reasoning]"""

_MARKDOWN_FORMAT = """\
RESPONSE FORMAT (markdown):

## Part 1: Your Acquisition Thesis
[2-3 paragraphs. Put the archetype title in **bold** the first time you name it. \
State your overall confidence as a percentage.]

## Part 2: Your Personalized Buybox
| {header_cells} |
|---|---|---|
[One row per criterion: Industries, Business Model, Size (SDE), Profit Margin, \
Geography, Owner Role, Team Structure, YOUR LEVERAGE, Red Flags]"""

_JSON_FORMAT = """\
Respond with ONLY valid JSON:
{
  "archetype": "<exact archetype title>",
  "composite_score": <1.0-5.0>,
  "archetype_confidence": <0.0-1.0>,
  "confidence": <0.0-1.0 overall>,
  "industries": [{"industry": "<name>", "confidence": <0.0-1.0>}],
  "thesis": "<2-3 paragraph acquisition thesis>",
  "buybox": [{"criterion": "...", "target": "...", "rationale": "..."}]
}"""


@dataclass(frozen=True)
class Methodology:
    """An analysis framework a remote engine can be asked to follow."""

    key: str
    name: str
    author: str
    description: str
    instructions: str
    transparency_text: str


METHODOLOGIES: dict[str, Methodology] = {
    "hedgehog_concept": Methodology(
        key="hedgehog_concept",
        name="The Hedgehog Concept",
        author="Jim Collins",
        description=("Find the intersection of what you're passionate about, what you can be "
                     "the best at, and what drives your economic engine."),
        instructions="""\
Structure the analysis around the three circles of the Hedgehog Concept \
(Jim Collins, "Good to Great"):
1. Passion: what the entrepreneur cares about most, from the interests section. \
The target industries must reflect it.
2. Best at: the one competency where the evidence shows they can excel. This \
defines the archetype and the leverage.
3. Economic engine: the financial constraints that make a deal viable. This \
drives the SDE range.
The acquisition thesis must name all three circles and explain how the \
recommendation sits at their intersection.""",
        transparency_text=(
            "This analysis was conducted using the Hedgehog Concept framework, popularized by "
            "Jim Collins. This model identifies the optimal business fit at the intersection of "
            "what you're passionate about, what you can be the best at, and what drives your "
            "economic engine."
        ),
    ),
    "swot_analysis": Methodology(
        key="swot_analysis",
        name="SWOT Analysis",
        author="Strategic Planning",
        description=("Evaluate your internal Strengths and Weaknesses against external "
                     "Opportunities and Threats to identify strategic acquisition paths."),
        instructions="""\
Structure the analysis as a SWOT from the entrepreneur's point of view:
1. Strengths: the strongest demonstrated competencies. They define the archetype \
and the leverage.
2. Weaknesses: the least developed competencies. Red flags should steer away \
from businesses that depend on them.
3. Opportunities: market trends or underserved niches matching the stated \
interests. They define the target industries.
4. Threats: market risks the entrepreneur would face in those industries.
The acquisition thesis should summarize the four points.""",
        transparency_text=(
            "This analysis was conducted using the SWOT framework. This model evaluates an "
            "entrepreneur's internal Strengths and Weaknesses against external market "
            "Opportunities and Threats to identify a strategic acquisition path."
        ),
    ),
    "entrepreneurial_orientation": Methodology(
        key="entrepreneurial_orientation",
        name="Entrepreneurial Orientation",
        author="Miller (1983)",
        description=("Assess your innovativeness, proactiveness, and risk-taking tendencies to "
                     "find a business environment that matches your entrepreneurial DNA."),
        instructions="""\
Structure the analysis around the three dimensions of the Entrepreneurial \
Orientation scale (Miller, 1983):
1. Innovativeness: appetite for new ideas, judged from the evidence and the \
problem to solve. A high score points to dynamic, tech-forward industries.
2. Proactiveness: readiness to act on opportunities, judged from the evidence. \
A high score fits businesses that need forward-looking leadership.
3. Risk-taking: willingness to commit resources under uncertainty, judged from \
the risk tolerance and career history. It shapes business model, growth stage \
and financial parameters.
The acquisition thesis must explain how the recommendation fits this profile.""",
        transparency_text=(
            "This analysis was conducted using the Entrepreneurial Orientation (EO) framework, "
            "based on the research of Miller (1983). This model assesses an entrepreneur's "
            "orientation toward innovativeness, proactiveness, and risk-taking to identify a "
            "business environment that aligns with their personal style."
        ),
    ),
    "traditional_ma_analysis": Methodology(
        key="traditional_ma_analysis",
        name="Traditional M&A Analysis",
        author="Expert M&A Advisory",
        description=("Comprehensive M&A analysis using proven methodologies for operator "
                     "archetype identification and strategic acquisition targeting."),
        instructions="""\
Work through the standard acquisition-fit steps:
1. Identify the single most dominant strength and the matching archetype.
2. Define the core leverage that archetype brings to an acquired business.
3. Pick 3-5 niche industries matching the interests where that leverage matters most.
4. Derive a realistic SDE range from capital, loan capacity and income needs.
5. Summarize the geographic preference.
The acquisition thesis must tie the recommendation to the archetype and its leverage.""",
        transparency_text=(
            "This analysis was conducted using Traditional M&A Analysis methodologies. This "
            "approach uses proven frameworks for operator archetype identification, core "
            "leverage definition, and strategic acquisition targeting to identify the optimal "
            "business fit for the entrepreneur."
        ),
    ),
}


def get_methodology(key: str) -> Methodology:
    try:
        return METHODOLOGIES[key]
    except KeyError:
        raise ValueError(f"Unknown analysis methodology: {key!r}") from None


FORMAT_INSTRUCTIONS = {
    "sections": _SECTIONS_FORMAT,
    "advisor": _ADVISOR_FORMAT.format(header=" | ".join(TABLE_HEADER)),
    "markdown": _MARKDOWN_FORMAT.format(header_cells=" | ".join(TABLE_HEADER)),
    "json": _JSON_FORMAT,
}


def system_prompt() -> str:
    lines = [
        f"- {COMPETENCY_LABELS[key]} -> \"{profile.title}\" (target: {profile.leverage})"
        for key, profile in ARCHETYPES.items()
    ]
    return SYSTEM_PROMPT.format(archetypes="\n".join(lines))


def build_analysis_prompt(raw: Mapping[str, Any], response_format: str = "sections",
                          methodology: str | None = None) -> str:
    """Render the analysis request for a validated submission.

    *methodology* names an entry of ``METHODOLOGIES`` whose framework
    instructions are added ahead of the answer format.
    """
    if response_format not in FORMAT_INSTRUCTIONS:
        raise ValueError(f"Unknown response format: {response_format!r}")
    framework = get_methodology(methodology) if methodology else None

    parts = ["Please conduct a comprehensive acquisition fit analysis for this entrepreneur:", "",
             "=== COMPETENCY EVIDENCE ===", ""]
    for key, label in COMPETENCY_LABELS.items():
        entry = raw.get(key) or {}
        parts.append(f"{label} (Self-Rating: {entry.get('rating')}/5):")
        parts.append(f"Evidence: \"{entry.get('evidence', '')}\"")
        parts.append("")

    parts += [
        "=== INTERESTS & MOTIVATIONS ===",
        "",
        f"Industry Interests: \"{raw.get('interests_topics', '')}\"",
        f"Recent Learning: \"{raw.get('recent_books', '')}\"",
        f"Problem Focus: \"{raw.get('problem_to_solve', '')}\"",
        f"Customer Preference: \"{raw.get('customer_affinity', '')}\"",
        "",
        "=== FINANCIAL & LIFESTYLE CONSTRAINTS ===",
        "",
        f"Available Capital: {format_money(float(raw.get('total_liquid_capital') or 0))}",
        f"Loan Capacity: {format_money(float(raw.get('potential_loan_amount') or 0))}",
        f"Income Requirement: {format_money(float(raw.get('min_annual_income') or 0))}",
        f"Time Commitment: {raw.get('time_commitment')} hours/week",
        f"Location: {raw.get('location_preference')}",
        f"Risk Tolerance: {raw.get('risk_tolerance')}",
        "",
        "Focus on demonstrated achievements and specific examples rather than self-assessments.",
        "",
    ]
    if framework is not None:
        parts += [f"=== ANALYSIS FRAMEWORK: {framework.name} ({framework.author}) ===", "",
                  framework.instructions, ""]
    parts.append(FORMAT_INSTRUCTIONS[response_format])
    return "\n".join(parts)
