"""Pydantic models for analysis inputs, results and the HTTP API."""
from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

COMPETENCIES: tuple[str, ...] = (
    "sales_marketing",
    "operations_systems",
    "finance_analytics",
    "team_culture",
    "product_technology",
)

CompetencyKey = Literal[
    "sales_marketing",
    "operations_systems",
    "finance_analytics",
    "team_culture",
    "product_technology",
]


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_money(value: float) -> str:
    return f"${_round_half_up(value):,}"


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


class CompetencyEvidence(BaseModel):
    model_config = ConfigDict(frozen=True)

    competency_key: CompetencyKey
    self_rating: int
    evidence_text: str


class CompetencyScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    rating: float
    sentiment_score: float
    keyword_score: float
    confidence_score: float
    depth_score: float
    composite_score: float


class Archetype(BaseModel):
    key: CompetencyKey
    title: str
    leverage_thesis: str
    composite_score: float = 3.0
    # Confidence-language signal of the winning evidence, normalized to [0, 1]
    confidence: float = 0.5
    scores: dict[str, CompetencyScore] = {}
    evidence: str = ""


class IndustryMatch(BaseModel):
    industry: str
    relevance_score: float
    confidence: float


class FinancialParameters(BaseModel):
    max_purchase_price: float
    sde_min: float
    sde_max: float
    industry_multiple: float
    industry_confidence: float
    total_liquid_capital: float
    potential_loan_amount: float
    required_sde: float
    range_inverted: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def sde_range(self) -> str:
        return f"{format_money(self.sde_min)} - {format_money(self.sde_max)}"


class ConfidenceScores(BaseModel):
    overall: float
    archetype: float
    industry: float
    data_quality: float


class BuyboxRow(BaseModel):
    criterion: str
    target: str
    rationale: str


class Insights(BaseModel):
    key_strengths: list[str] = []
    recommendations: list[str] = []
    risks: list[str] = []


class ScoreComponent(BaseModel):
    value: float
    weight: float
    contribution: float
    interpretation: str


class CompetencyRank(BaseModel):
    rank: int
    competency: CompetencyKey
    composite_score: float


class TransparencyReport(BaseModel):
    """How an archetype was reached and how far the result can be trusted."""

    analysis_type: str
    formula: str | None = None
    # Lead of the winning composite over the runner-up, in percent of the winner
    dominance_margin: float | None = None
    components: dict[str, ScoreComponent] = {}
    matched_terms: list[str] = []
    achievement_terms: list[str] = []
    depth_metrics: dict[str, int] = {}
    ranking: list[CompetencyRank] = []
    data_quality: float
    data_quality_recommendations: list[str] = []
    methodology: str | None = None
    limitations: list[str] = []


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class AnalysisResult(BaseModel):
    archetype: Archetype
    leverage_thesis: str
    industry_matches: list[IndustryMatch]
    financial_parameters: FinancialParameters
    confidence_scores: ConfidenceScores
    narrative_thesis: str
    buybox_rows: list[BuyboxRow]
    engine_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    processing_time_ms: float | None = None
    fallback: bool = False
    insights: Insights = Field(default_factory=Insights)
    transparency: TransparencyReport | None = None
    raw_response: str | None = None


class ValidationReport(BaseModel):
    ok: bool
    errors: list[str] = []


class EngineDescriptor(BaseModel):
    engine_id: str
    name: str
    kind: Literal["local", "remote", "hybrid"]
    provider: str | None = None
    model: str | None = None
    capabilities: list[str] = []
    requirements: list[str] = []
    available: bool


class MethodologyInfo(BaseModel):
    key: str
    name: str
    author: str
    description: str


class EngineComparison(BaseModel):
    engine_count: int
    archetype_agreement: float
    archetypes: list[str]
    industry_overlap_percentage: float
    common_industries: list[str]
    confidence_average: float
    confidence_variance: float
    confidence_consistency: Literal["High", "Medium", "Low"]
    processing_times: dict[str, float | None] = {}
    recommendation_text: list[str] = []


class BatchResult(BaseModel):
    results: dict[str, AnalysisResult] = {}
    errors: dict[str, str] = {}


# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------


class AnalyzeRequest(BaseModel):
    user_data: dict[str, Any]
    engine: str | None = None
    save: bool = True


class CompareRequest(BaseModel):
    user_data: dict[str, Any]
    engines: list[str] = Field(min_length=2)


class CompareResponse(BaseModel):
    results: dict[str, AnalysisResult]
    errors: dict[str, str]
    comparison: EngineComparison | None = None


class ReportSummary(BaseModel):
    id: int
    engine_id: str
    archetype_title: str
    overall_confidence: float
    created_at: str | None = None


class ReportDetail(ReportSummary):
    user_data: dict[str, Any]
    result: dict[str, Any]
