"""Report composition: narrative thesis, buybox table, confidence and insights.

Everything here is templating over values computed elsewhere; the only
arithmetic is the confidence block and the evidence data-quality estimate.
The buybox table is also rendered to (and parsed back from) a markdown table,
which is the format remote engines are asked to answer in.
"""
from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from buybox.schemas import (
    COMPETENCIES,
    Archetype,
    BuyboxRow,
    ConfidenceScores,
    FinancialParameters,
    IndustryMatch,
    Insights,
    format_money,
)
from buybox.scorer import ARCHETYPES

BUYBOX_CRITERIA: tuple[str, ...] = (
    "Industries",
    "Business Model",
    "Size (SDE)",
    "Profit Margin",
    "Geography",
    "Owner Role",
    "Team Structure",
    "YOUR LEVERAGE",
    "Red Flags",
)

TABLE_HEADER = ("Criterion", "Your Target Profile", "Rationale")

_PIPE_SPLIT_RE = re.compile(r"(?<!\\)\|")
_SEPARATOR_CELL_RE = re.compile(r"^:?-{3,}:?$")
_MONEY_OR_PERCENT_RE = re.compile(r"\d+%")


@dataclass
class ComposedReport:
    narrative_thesis: str
    buybox_rows: list[BuyboxRow] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Confidence & data quality
# ---------------------------------------------------------------------------


def assess_data_quality(raw: Mapping[str, Any]) -> float:
    """Score how concrete the competency evidence is, 0..1."""
    quality = 0.0
    for key in COMPETENCIES:
        entry = raw.get(key) or {}
        evidence = str(entry.get("evidence") or "") if isinstance(entry, Mapping) else ""
        if len(evidence) >= 300:
            quality += 0.3
        if len(evidence) >= 200:
            quality += 0.2
        if "$" in evidence or _MONEY_OR_PERCENT_RE.search(evidence):
            quality += 0.2
        lowered = evidence.lower()
        if "result" in lowered or "outcome" in lowered:
            quality += 0.2
        if len(evidence.split(".")) > 3:
            quality += 0.1
    return min(1.0, quality / len(COMPETENCIES))


def average_confidence(matches: Sequence[IndustryMatch], default: float = 0.0) -> float:
    if not matches:
        return default
    return sum(m.confidence for m in matches) / len(matches)


def confidence_scores(
    archetype: Archetype,
    industry_matches: Sequence[IndustryMatch],
    raw: Mapping[str, Any],
) -> ConfidenceScores:
    archetype_conf = max(0.0, min(1.0, archetype.confidence))
    industry_conf = average_confidence(industry_matches)
    data_quality = assess_data_quality(raw)
    return ConfidenceScores(
        overall=archetype_conf * 0.4 + industry_conf * 0.4 + data_quality * 0.2,
        archetype=archetype_conf,
        industry=industry_conf,
        data_quality=data_quality,
    )


def _percent(value: float) -> int:
    return int(value * 100 + 0.5)


def _confidence_level(overall: float) -> str:
    if overall > 0.8:
        return "high"
    if overall > 0.6:
        return "medium"
    return "moderate"


def _geography(location: str) -> str:
    return "Location Agnostic" if location == "fully_remote" else location


# ---------------------------------------------------------------------------
# Composer
# ---------------------------------------------------------------------------


class ReportComposer:
    """Fill the narrative and buybox templates for one analysis."""

    def narrative(
        self,
        archetype: Archetype,
        industry_matches: Sequence[IndustryMatch],
        scores: ConfidenceScores,
    ) -> str:
        profile = ARCHETYPES[archetype.key]
        industries = ", ".join(m.industry for m in industry_matches) or "businesses that align with your interests"
        return (
            f"Based on our analysis with {_confidence_level(scores.overall)} confidence "
            f"({_percent(scores.overall)}%), you are a **{archetype.title}**. "
            f"Your greatest strength lies in {profile.description}, as evidenced by your "
            f"{archetype.composite_score:.1f}/5.0 composite expertise score.\n\n"
            f"The ideal business for you is one that has already achieved product-market fit "
            f"but has stagnated due to {archetype.leverage_thesis.lower()}. We identified "
            f"{len(industry_matches)} priority industries where your skills would create maximum "
            f"value: {industries}. These sectors show strong alignment with your demonstrated "
            f"interests and expertise (industry confidence: {_percent(scores.industry)}%).\n\n"
            f"Your acquisition strategy should focus on the \"fit-first\" approach, targeting "
            f"businesses where your unique {archetype.title} capabilities can unlock immediate "
            f"value. You are particularly well-suited for businesses requiring "
            f"{profile.value_add}, giving you a distinct competitive advantage in the "
            f"acquisition process."
        )

    def buybox_rows(
        self,
        archetype: Archetype,
        industry_matches: Sequence[IndustryMatch],
        financials: FinancialParameters,
        raw: Mapping[str, Any],
        scores: ConfidenceScores,
    ) -> list[BuyboxRow]:
        profile = ARCHETYPES[archetype.key]
        title = archetype.title
        industries = ", ".join(
            f"{m.industry} ({_percent(m.confidence)}% match)" for m in industry_matches
        )
        size_rationale = (
            f"Calculated using industry-weighted multiple of {financials.industry_multiple:.1f}x "
            f"based on your {format_money(financials.total_liquid_capital)} capital."
        )
        if financials.range_inverted:
            size_rationale += (
                f" Warning: your income and debt-service floor ({format_money(financials.sde_min)}) "
                f"exceeds what this capital can buy; revisit capital, loan or income targets."
            )
        risk = raw.get("risk_tolerance") or "stated"
        hours = raw.get("time_commitment") or "?"
        targets = (
            (industries, f"Sectors identified with {_percent(scores.industry)}% confidence based on "
                         f"your interests and expertise."),
            ("Recurring Revenue > 60%, Predictable Cash Flow",
             f"Aligns with your {risk} risk tolerance and provides stability for implementing "
             f"your {title} strategies."),
            (financials.sde_range, size_rationale),
            ("> 20% Net Margin, Healthy Unit Economics",
             "Indicates operational efficiency and provides room for your value-creation initiatives."),
            (_geography(str(raw.get("location_preference") or "")),
             f"Matches your {hours}hr/week commitment and lifestyle preferences."),
            ("Owner working IN vs ON the business",
             "Ensures you're acquiring scalable systems, not just purchasing a job for yourself."),
            ("Key managers in place, documented processes",
             f"Critical for smooth transition and implementing your {title} improvements."),
            (f"{archetype.leverage_thesis}: Target specific gaps like {profile.indicators}",
             f"Your skills as a {title} are the key to unlocking immediate value here "
             f"({_percent(archetype.composite_score / 5)}% strength match)."),
            ("Customer concentration >25%, declining 3-yr revenue, outdated systems, cultural issues",
             f"Avoid businesses with existential risks that fall outside your {title} competency zone."),
        )
        return [
            BuyboxRow(criterion=criterion, target=target, rationale=rationale)
            for criterion, (target, rationale) in zip(BUYBOX_CRITERIA, targets)
        ]

    def compose(
        self,
        archetype: Archetype,
        industry_matches: Sequence[IndustryMatch],
        financials: FinancialParameters,
        raw: Mapping[str, Any],
        scores: ConfidenceScores | None = None,
    ) -> ComposedReport:
        if scores is None:
            scores = confidence_scores(archetype, industry_matches, raw)
        return ComposedReport(
            narrative_thesis=self.narrative(archetype, industry_matches, scores),
            buybox_rows=self.buybox_rows(archetype, industry_matches, financials, raw, scores),
        )

    def insights(
        self,
        archetype: Archetype,
        industry_matches: Sequence[IndustryMatch],
        scores: ConfidenceScores,
    ) -> Insights:
        profile = ARCHETYPES[archetype.key]
        top = industry_matches[0] if industry_matches else None
        risks = []
        if scores.data_quality < 0.7:
            risks.append("Consider providing more detailed evidence for improved analysis")
        if scores.industry < 0.6:
            risks.append("Industry alignment could be stronger - consider expanding interest areas")
        risks.append("Avoid businesses requiring skills outside your primary archetype")
        return Insights(
            key_strengths=[
                f"{archetype.title} archetype with {archetype.composite_score:.1f}/5.0 composite score",
                f"Strong industry alignment across {len(industry_matches)} sectors",
                f"{_percent(scores.overall)}% overall analysis confidence",
            ],
            recommendations=[
                f"Focus on businesses with clear {profile.value_add} opportunities",
                f"Prioritize {top.industry if top else 'service'} sector acquisitions "
                f"(highest match: {_percent(top.confidence if top else 0.5)}%)",
                f"Target companies where current owner lacks your {archetype.title} expertise",
            ],
            risks=risks,
        )


# ---------------------------------------------------------------------------
# Markdown table
# ---------------------------------------------------------------------------


def _escape_cell(value: str) -> str:
    return value.replace("\\", "\\\\").replace("|", "\\|").replace("\n", " ")


def _unescape_cell(value: str) -> str:
    return value.replace("\\|", "|").replace("\\\\", "\\")


def _strip_bold(value: str) -> str:
    if len(value) > 4 and value.startswith("**") and value.endswith("**"):
        return value[2:-2].strip()
    return value


def render_buybox_markdown(rows: Sequence[BuyboxRow]) -> str:
    lines = [
        "| " + " | ".join(TABLE_HEADER) + " |",
        "|---|---|---|",
    ]
    for row in rows:
        cells = (_escape_cell(row.criterion), _escape_cell(row.target), _escape_cell(row.rationale))
        lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines)


def _split_row(line: str) -> list[str]:
    body = line.strip()
    if body.startswith("|"):
        body = body[1:]
    if body.endswith("|") and not body.endswith("\\|"):
        body = body[:-1]
    return [cell.strip() for cell in _PIPE_SPLIT_RE.split(body)]


def parse_buybox_table(text: str) -> list[BuyboxRow]:
    """Extract buybox rows from the first markdown table found in *text*.

    Header and separator lines are skipped; rows with fewer than three cells
    are ignored.  Returns an empty list when no table is present.
    """
    rows: list[BuyboxRow] = []
    in_table = False
    for line in (text or "").splitlines():
        stripped = line.strip()
        if not stripped.startswith("|"):
            if in_table and rows:
                break
            continue
        in_table = True
        cells = _split_row(stripped)
        if len(cells) < 3:
            continue
        if all(_SEPARATOR_CELL_RE.match(c.replace(" ", "")) for c in cells if c):
            continue
        if cells[0].strip("* ").lower() == TABLE_HEADER[0].lower():
            continue
        criterion, target, rationale = (_unescape_cell(_strip_bold(c)) for c in cells[:3])
        rows.append(BuyboxRow(criterion=criterion, target=target, rationale=rationale))
    return rows
