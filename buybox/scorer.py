"""Archetype scoring: composite per-competency score and deterministic selection.

Each of the five competencies is scored as::

    composite = 0.3*rating + 0.2*sentiment + 0.3*keyword_relevance
              + 0.1*confidence_language + 0.1*depth_specificity

All five inputs live on a 1-5 scale and the weights sum to 1, so the composite
does too.  The highest composite wins; an exact tie goes to the competency
with the strictly longer evidence text, and anything still tied goes to the
earlier competency in ``COMPETENCIES`` order.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from buybox import heuristics
from buybox.errors import ValidationError
from buybox.schemas import COMPETENCIES, Archetype, CompetencyEvidence, CompetencyScore

log = logging.getLogger(__name__)

MIN_EVIDENCE_CHARS = 200

WEIGHTS = {
    "rating": 0.3,
    "sentiment": 0.2,
    "keyword": 0.3,
    "confidence": 0.1,
    "depth": 0.1,
}


@dataclass(frozen=True)
class ArchetypeProfile:
    key: str
    title: str
    leverage: str
    key_phrases: tuple[str, ...]
    description: str
    value_add: str
    indicators: str


ARCHETYPES: dict[str, ArchetypeProfile] = {
    "sales_marketing": ArchetypeProfile(
        key="sales_marketing",
        title="The Growth Catalyst",
        leverage="Weak Marketing / Strong Product",
        key_phrases=("revenue", "growth", "customers", "marketing", "sales",
                     "acquisition", "conversion", "funnel", "leads", "campaigns"),
        description=("driving revenue growth, customer acquisition, and market expansion "
                     "through strategic sales and marketing initiatives"),
        value_add=("revenue acceleration, customer acquisition optimization, "
                   "and market expansion strategies"),
        indicators="low website traffic, poor conversion rates, no CRM system, weak brand presence",
    ),
    "operations_systems": ArchetypeProfile(
        key="operations_systems",
        title="The Efficiency Expert",
        leverage="Good Revenue / Inefficient Operations",
        key_phrases=("efficiency", "process", "systems", "automation", "workflow",
                     "optimization", "streamline", "cost reduction", "scalability", "operations"),
        description=("streamlining processes, improving efficiency, and building scalable "
                     "operational systems that reduce costs and increase productivity"),
        value_add="process optimization, cost reduction, and scalability improvements",
        indicators="manual processes, high error rates, poor inventory management, cost inefficiencies",
    ),
    "finance_analytics": ArchetypeProfile(
        key="finance_analytics",
        title="The Financial Strategist",
        leverage="Undervalued / Financial Restructuring Opportunities",
        key_phrases=("financial", "analytics", "data", "metrics", "roi", "profit",
                     "budget", "forecasting", "analysis", "strategy"),
        description=("financial analysis, strategic planning, and data-driven decision making "
                     "that optimizes profitability and growth"),
        value_add="financial restructuring, performance analytics, and strategic planning",
        indicators=("poor financial controls, no KPI tracking, inefficient capital allocation, "
                    "unclear profitability"),
    ),
    "team_culture": ArchetypeProfile(
        key="team_culture",
        title="The People Leader",
        leverage="High Turnover / Cultural Issues",
        key_phrases=("leadership", "team", "culture", "people", "management",
                     "collaboration", "mentoring", "hiring", "retention", "motivation"),
        description=("building high-performing teams, developing talent, and creating positive "
                     "organizational cultures that drive employee engagement and retention"),
        value_add="cultural transformation, talent development, and organizational effectiveness",
        indicators="high turnover, low engagement scores, poor communication, undefined roles",
    ),
    "product_technology": ArchetypeProfile(
        key="product_technology",
        title="The Visionary Builder",
        leverage="Loyal Customer Base / Outdated Products",
        key_phrases=("innovation", "technology", "product", "development", "features",
                     "technical", "software", "platform", "architecture", "engineering"),
        description=("product development, technological innovation, and digital transformation "
                     "that keeps businesses competitive and relevant"),
        value_add="digital transformation, product innovation, and technical modernization",
        indicators="outdated systems, no innovation pipeline, technical debt, poor user experience",
    ),
}


def archetype_stub(key: str, composite_score: float = 3.0, confidence: float = 0.5,
                   evidence: str = "") -> Archetype:
    """Archetype for *key* without a per-competency breakdown (remote engines)."""
    profile = ARCHETYPES[key]
    return Archetype(
        key=profile.key,  # type: ignore[arg-type]
        title=profile.title,
        leverage_thesis=profile.leverage,
        composite_score=composite_score,
        confidence=confidence,
        evidence=evidence,
    )


# ---------------------------------------------------------------------------
# Evidence normalization
# ---------------------------------------------------------------------------


def coerce_rating(value: Any) -> int | None:
    """Return *value* as an int rating in [1, 5], or None if it is not one."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not number.is_integer() or not 1 <= number <= 5:
        return None
    return int(number)


def evidence_from_submission(raw: Mapping[str, Any]) -> list[CompetencyEvidence]:
    """Build the five evidence records from a raw form submission."""
    items: list[CompetencyEvidence] = []
    errors: list[str] = []
    for key in COMPETENCIES:
        entry = raw.get(key)
        if not isinstance(entry, Mapping):
            errors.append(f"{key} rating and evidence are required")
            continue
        rating = coerce_rating(entry.get("rating"))
        if rating is None:
            errors.append(f"{key} rating must be an integer between 1 and 5")
            continue
        items.append(CompetencyEvidence(
            competency_key=key,  # type: ignore[arg-type]
            self_rating=rating,
            evidence_text=str(entry.get("evidence") or ""),
        ))
    if errors:
        raise ValidationError(errors)
    return items


def _index_evidence(
    evidence: Sequence[CompetencyEvidence] | Mapping[str, Any],
) -> dict[str, CompetencyEvidence]:
    if isinstance(evidence, Mapping):
        items = evidence_from_submission(evidence)
    else:
        items = list(evidence)
    indexed: dict[str, CompetencyEvidence] = {}
    for item in items:
        indexed.setdefault(item.competency_key, item)

    errors: list[str] = []
    for key in COMPETENCIES:
        item = indexed.get(key)
        if item is None:
            errors.append(f"{key} rating and evidence are required")
        elif coerce_rating(item.self_rating) is None:
            errors.append(f"{key} rating must be an integer between 1 and 5")
        elif len(item.evidence_text) < MIN_EVIDENCE_CHARS:
            errors.append(f"{key} evidence must be at least {MIN_EVIDENCE_CHARS} characters")
    if errors:
        raise ValidationError(errors)
    return indexed


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------


def score_competency(key: str, item: CompetencyEvidence) -> CompetencyScore:
    text = item.evidence_text
    rating = float(item.self_rating)
    sentiment = heuristics.sentiment(text)
    keyword = heuristics.keyword_relevance(text, ARCHETYPES[key].key_phrases)
    confidence = heuristics.confidence_language(text)
    depth = heuristics.depth_specificity(text)
    composite = (
        rating * WEIGHTS["rating"]
        + sentiment * WEIGHTS["sentiment"]
        + keyword * WEIGHTS["keyword"]
        + confidence * WEIGHTS["confidence"]
        + depth * WEIGHTS["depth"]
    )
    return CompetencyScore(
        rating=rating,
        sentiment_score=sentiment,
        keyword_score=keyword,
        confidence_score=confidence,
        depth_score=depth,
        composite_score=heuristics.clamp(composite),
    )


class ArchetypeScorer:
    """Select the operator archetype from five pieces of competency evidence."""

    def score(self, evidence: Sequence[CompetencyEvidence] | Mapping[str, Any]) -> Archetype:
        indexed = _index_evidence(evidence)
        scores = {key: score_competency(key, indexed[key]) for key in COMPETENCIES}

        best = COMPETENCIES[0]
        for key in COMPETENCIES[1:]:
            current = scores[key].composite_score
            top = scores[best].composite_score
            if math.isclose(current, top, rel_tol=0.0, abs_tol=1e-9):
                if len(indexed[key].evidence_text) > len(indexed[best].evidence_text):
                    best = key
            elif current > top:
                best = key

        profile = ARCHETYPES[best]
        winner = scores[best]
        log.debug("Archetype %s selected (composite %.3f)", best, winner.composite_score)
        return Archetype(
            key=profile.key,  # type: ignore[arg-type]
            title=profile.title,
            leverage_thesis=profile.leverage,
            composite_score=winner.composite_score,
            confidence=winner.confidence_score / heuristics.SCORE_MAX,
            scores=scores,
            evidence=indexed[best].evidence_text,
        )
