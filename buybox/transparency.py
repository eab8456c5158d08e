"""Transparency report: how an archetype was reached and how far to trust it.

The report is built from the per-competency breakdown the local scorer puts
on an ``Archetype``.  Remote answers carry no breakdown, so their report holds
only the data-quality block, the methodology note and the standing
limitations.
"""
from __future__ import annotations

import re
import string
from collections.abc import Mapping
from typing import Any

from buybox import heuristics
from buybox.schemas import (
    Archetype,
    CompetencyRank,
    CompetencyScore,
    ConfidenceScores,
    ScoreComponent,
    TransparencyReport,
)
from buybox.scorer import ARCHETYPES, WEIGHTS

LOCAL_ANALYSIS = "Multi-algorithm heuristic assessment"
REMOTE_ANALYSIS = "Language-model assessment"
FORMULA = "0.3×rating + 0.2×sentiment + 0.3×keywords + 0.1×confidence + 0.1×depth"
MAX_MATCHED_TERMS = 5
LOW_DATA_QUALITY = 0.6

LIMITATIONS = (
    "Sentiment analysis may not capture nuanced business context",
    "Keyword matching lacks true semantic understanding",
    "Self-reported data is subject to social desirability bias",
    "Analysis quality depends on the depth of the submitted evidence",
    "Industry multiples may not reflect current market conditions",
)

# Highest threshold first; the last entry catches everything below
_INTERPRETATIONS: dict[str, tuple[tuple[float, str], ...]] = {
    "rating": (
        (4.5, "Expert level self-assessment"),
        (3.5, "Advanced competency claimed"),
        (2.5, "Moderate competency level"),
        (0.0, "Developing competency area"),
    ),
    "sentiment": (
        (4.0, "Highly confident and positive language"),
        (3.5, "Generally positive and confident tone"),
        (3.0, "Neutral to slightly positive tone"),
        (0.0, "Less confident or more cautious language"),
    ),
    "keyword": (
        (4.0, "Strong domain vocabulary usage"),
        (3.0, "Moderate domain expertise evident"),
        (2.0, "Some relevant terminology used"),
        (0.0, "Limited domain-specific language"),
    ),
    "confidence": (
        (4.0, "Strong achievement language patterns"),
        (3.5, "Moderate achievement indicators"),
        (3.0, "Balanced confidence level"),
        (0.0, "More tentative or aspirational language"),
    ),
    "depth": (
        (4.0, "Highly detailed and specific responses"),
        (3.0, "Good level of detail provided"),
        (2.0, "Moderate detail and specificity"),
        (0.0, "Brief or general responses"),
    ),
}

_SENTENCE_RE = re.compile(r"[.!?]+")


def interpret(component: str, value: float) -> str:
    bands = _INTERPRETATIONS[component]
    for threshold, text in bands:
        if value >= threshold:
            return text
    return bands[-1][1]


def _component_values(score: CompetencyScore) -> dict[str, float]:
    return {
        "rating": score.rating,
        "sentiment": score.sentiment_score,
        "keyword": score.keyword_score,
        "confidence": score.confidence_score,
        "depth": score.depth_score,
    }


def rank_competencies(scores: Mapping[str, CompetencyScore]) -> list[CompetencyRank]:
    ordered = sorted(scores.items(), key=lambda item: item[1].composite_score, reverse=True)
    return [
        CompetencyRank(rank=i + 1, competency=key, composite_score=round(score.composite_score, 2))
        for i, (key, score) in enumerate(ordered)
    ]


def dominance_margin(scores: Mapping[str, CompetencyScore]) -> float | None:
    """Winner's lead over the runner-up as a percentage of the winner's composite."""
    ranked = sorted((s.composite_score for s in scores.values()), reverse=True)
    if not ranked:
        return None
    if len(ranked) < 2:
        return 100.0
    return round((ranked[0] - ranked[1]) / ranked[0] * 100, 1)


def matched_terms(key: str, evidence: str) -> list[str]:
    keywords = heuristics.extract_keywords(evidence)
    found = [p for p in ARCHETYPES[key].key_phrases if heuristics.phrase_matches(p, keywords)]
    return found[:MAX_MATCHED_TERMS]


def achievement_terms(evidence: str) -> list[str]:
    words = {w.strip(string.punctuation) for w in evidence.lower().split()}
    return sorted(words & heuristics.HIGH_ACHIEVEMENT_TERMS)


def depth_metrics(evidence: str) -> dict[str, int]:
    sentences = [s for s in _SENTENCE_RE.split(evidence) if len(s.strip()) > 10]
    return {
        "sentence_count": len(sentences),
        "word_count": len(evidence.split()),
        "average_sentence_length": round(len(evidence) / len(sentences)) if sentences else 0,
    }


def data_quality_recommendations(quality: float) -> list[str]:
    if quality < LOW_DATA_QUALITY:
        return [
            "Provide more detailed evidence examples",
            "Include specific metrics and outcomes",
            "Expand on your achievements with concrete details",
        ]
    return ["Data quality is sufficient for reliable analysis"]


def build_transparency(
    archetype: Archetype,
    confidence: ConfidenceScores,
    raw: Mapping[str, Any],
    methodology: str | None = None,
    scores: Mapping[str, CompetencyScore] | None = None,
    analysis_type: str | None = None,
) -> TransparencyReport:
    """Explain *archetype* using *scores* (default: the archetype's own breakdown)."""
    if scores is None:
        scores = archetype.scores
    report = TransparencyReport(
        analysis_type=analysis_type or (LOCAL_ANALYSIS if scores else REMOTE_ANALYSIS),
        data_quality=confidence.data_quality,
        data_quality_recommendations=data_quality_recommendations(confidence.data_quality),
        methodology=methodology,
        limitations=list(LIMITATIONS),
    )
    winner = scores.get(archetype.key)
    if winner is None:
        return report

    entry = raw.get(archetype.key)
    evidence = str(entry.get("evidence") or "") if isinstance(entry, Mapping) else archetype.evidence
    report.formula = FORMULA
    report.dominance_margin = dominance_margin(scores)
    report.components = {
        name: ScoreComponent(
            value=round(value, 2),
            weight=WEIGHTS[name],
            contribution=round(value * WEIGHTS[name], 2),
            interpretation=interpret(name, value),
        )
        for name, value in _component_values(winner).items()
    }
    report.matched_terms = matched_terms(archetype.key, evidence)
    report.achievement_terms = achievement_terms(evidence)
    report.depth_metrics = depth_metrics(evidence)
    report.ranking = rank_competencies(scores)
    return report
