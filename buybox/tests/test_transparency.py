"""Tests for the transparency report attached to analysis results."""
from __future__ import annotations

import pytest

from buybox.schemas import CompetencyScore, ConfidenceScores
from buybox.scorer import ArchetypeScorer, archetype_stub
from buybox.tests.conftest import SALES_EVIDENCE
from buybox.transparency import (
    FORMULA,
    LIMITATIONS,
    LOCAL_ANALYSIS,
    MAX_MATCHED_TERMS,
    REMOTE_ANALYSIS,
    achievement_terms,
    build_transparency,
    data_quality_recommendations,
    depth_metrics,
    dominance_margin,
    interpret,
    matched_terms,
    rank_competencies,
)


def _score(composite):
    return CompetencyScore(rating=3, sentiment_score=3, keyword_score=3, confidence_score=3,
                           depth_score=3, composite_score=composite)


def _confidence(quality):
    return ConfidenceScores(overall=0.7, archetype=0.7, industry=0.7, data_quality=quality)


class TestHelpers:
    @pytest.mark.parametrize("component, value, expected", [
        ("rating", 5.0, "Expert level self-assessment"),
        ("rating", 4.5, "Expert level self-assessment"),
        ("rating", 3.0, "Moderate competency level"),
        ("sentiment", 3.2, "Neutral to slightly positive tone"),
        ("keyword", 1.0, "Limited domain-specific language"),
        ("depth", 4.2, "Highly detailed and specific responses"),
    ])
    def test_interpret(self, component, value, expected):
        assert interpret(component, value) == expected

    def test_dominance_margin(self):
        assert dominance_margin({"a": _score(4.0), "b": _score(3.0)}) == pytest.approx(25.0)
        assert dominance_margin({"a": _score(4.0)}) == 100.0
        assert dominance_margin({}) is None

    def test_rank_competencies(self):
        ranking = rank_competencies({
            "team_culture": _score(2.5),
            "finance_analytics": _score(3.456),
            "sales_marketing": _score(4.1),
        })
        assert [r.competency for r in ranking] == ["sales_marketing", "finance_analytics", "team_culture"]
        assert [r.rank for r in ranking] == [1, 2, 3]
        assert ranking[1].composite_score == 3.46

    def test_matched_terms_capped(self):
        terms = matched_terms("sales_marketing", SALES_EVIDENCE)
        assert "revenue" in terms
        assert len(terms) == MAX_MATCHED_TERMS

    def test_achievement_terms(self):
        assert achievement_terms(SALES_EVIDENCE) == [
            "built", "delivered", "exceeded", "improved", "increased", "led",
        ]

    def test_depth_metrics(self):
        metrics = depth_metrics("Grew the region by a third. Hired nine people! ok.")
        assert metrics["sentence_count"] == 2
        assert metrics["word_count"] == 10
        assert depth_metrics("")["average_sentence_length"] == 0

    def test_data_quality_recommendations(self):
        assert len(data_quality_recommendations(0.4)) == 3
        assert data_quality_recommendations(0.8) == ["Data quality is sufficient for reliable analysis"]


class TestBuildTransparency:
    def test_local_breakdown(self, submission, local_result):
        report = build_transparency(local_result.archetype, local_result.confidence_scores, submission)
        assert report.analysis_type == LOCAL_ANALYSIS
        assert report.formula == FORMULA
        assert set(report.components) == {"rating", "sentiment", "keyword", "confidence", "depth"}
        rating = report.components["rating"]
        assert rating.value == 5.0
        assert rating.weight == 0.3
        assert rating.contribution == pytest.approx(1.5)
        assert rating.interpretation == "Expert level self-assessment"
        assert "led" in report.achievement_terms
        assert report.depth_metrics["word_count"] == len(SALES_EVIDENCE.split())
        assert len(report.ranking) == 5
        assert report.ranking[0].competency == local_result.archetype.key
        assert report.dominance_margin > 0
        assert report.limitations == list(LIMITATIONS)

    def test_contributions_sum_to_composite(self, submission):
        archetype = ArchetypeScorer().score(submission)
        report = build_transparency(archetype, _confidence(0.8), submission)
        total = sum(c.contribution for c in report.components.values())
        assert total == pytest.approx(archetype.composite_score, abs=0.03)

    def test_remote_archetype_has_no_breakdown(self, submission):
        archetype = archetype_stub("team_culture", composite_score=4.0, confidence=0.7)
        report = build_transparency(archetype, _confidence(0.5), submission, methodology="SWOT note")
        assert report.analysis_type == REMOTE_ANALYSIS
        assert report.formula is None
        assert report.components == {}
        assert report.ranking == []
        assert report.methodology == "SWOT note"
        assert len(report.data_quality_recommendations) == 3

    def test_explicit_scores_and_type(self, submission, local_result):
        stub = archetype_stub("sales_marketing")
        report = build_transparency(stub, _confidence(0.9), submission,
                                    scores=local_result.archetype.scores, analysis_type="Hybrid")
        assert report.analysis_type == "Hybrid"
        assert report.components["rating"].value == 5.0
