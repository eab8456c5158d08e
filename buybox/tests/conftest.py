from __future__ import annotations

import asyncio
import copy

import pytest

from buybox.engines import AnalysisEngine, LocalEngine
from buybox.schemas import AnalysisResult
from buybox.scorer import archetype_stub

SALES_EVIDENCE = (
    "I led the sales and marketing team that increased revenue by 45% in two years. "
    "We built a new lead funnel, ran paid campaigns and improved conversion rates across "
    "every channel. Specifically, I delivered a customer acquisition program that added "
    "1,200 customers and exceeded our growth targets each quarter."
)
OPERATIONS_EVIDENCE = (
    "I worked on process documentation and helped streamline the warehouse workflow. "
    "We introduced some automation for order picking and reduced errors. The systems were "
    "improved over time and operations became more efficient, which supported lower costs "
    "for the business overall."
)
FINANCE_EVIDENCE = (
    "I supported monthly budget reviews and prepared financial reports for the leadership "
    "group. I contributed to forecasting models and tracked a few metrics on profit by "
    "product line. The analysis helped managers understand where the business was spending "
    "money each month."
)
TEAM_EVIDENCE = (
    "I participated in hiring for my department and assisted with onboarding new people. "
    "I am interested in leadership and plan to learn more about building culture. I want to "
    "improve collaboration and mentoring practices so the team can grow and retention gets "
    "better over the next year."
)
PRODUCT_EVIDENCE = (
    "I attempted to learn some software development in my spare time and tried a few online "
    "courses. I hope to understand product features and technical platform architecture "
    "better. I am studying engineering topics and would like to work closer with the "
    "technology group at my company."
)

# Sentiment-neutral, vocabulary-free sentence used to force exact composite ties
NEUTRAL_SENTENCE = "The committee reviewed the quarterly schedule for the regional office on Tuesday morning. "

SUBMISSION = {
    "sales_marketing": {"rating": 5, "evidence": SALES_EVIDENCE},
    "operations_systems": {"rating": 3, "evidence": OPERATIONS_EVIDENCE},
    "finance_analytics": {"rating": 3, "evidence": FINANCE_EVIDENCE},
    "team_culture": {"rating": 2, "evidence": TEAM_EVIDENCE},
    "product_technology": {"rating": 2, "evidence": PRODUCT_EVIDENCE},
    "interests_topics": "software platforms, saas tools and digital automation for small businesses",
    "recent_books": "The Lean Startup and Zero to One about technology startups",
    "problem_to_solve": "help service businesses modernize customer support with better software",
    "customer_affinity": "b2b",
    "total_liquid_capital": 100000,
    "potential_loan_amount": 50000,
    "min_annual_income": 80000,
    "time_commitment": 40,
    "location_preference": "fully_remote",
    "risk_tolerance": "moderate",
}


@pytest.fixture()
def submission() -> dict:
    """A complete, valid form submission (fresh copy per test)."""
    return copy.deepcopy(SUBMISSION)


@pytest.fixture()
def neutral_submission() -> dict:
    """Submission whose five competencies have identical ratings and evidence."""
    submission = copy.deepcopy(SUBMISSION)
    text = NEUTRAL_SENTENCE * 3
    for key in ("sales_marketing", "operations_systems", "finance_analytics",
                "team_culture", "product_technology"):
        submission[key] = {"rating": 3, "evidence": text}
    return submission


@pytest.fixture()
def local_result(submission) -> AnalysisResult:
    return LocalEngine().analyze(submission)


def with_archetype(result: AnalysisResult, key: str, composite: float, confidence: float) -> AnalysisResult:
    """Copy of *result* with a different archetype and archetype confidence."""
    archetype = archetype_stub(key, composite_score=composite, confidence=confidence)
    scores = result.confidence_scores.model_copy(update={"archetype": confidence})
    return result.model_copy(update={"archetype": archetype, "confidence_scores": scores})


class FakeEngine(AnalysisEngine):
    """Engine returning a canned result (or raising) after an optional delay."""

    kind = "remote"

    def __init__(self, engine_id: str, result: AnalysisResult | None = None,
                 exc: Exception | None = None, delay: float = 0.0, available: bool = True):
        self.engine_id = engine_id
        self.name = engine_id
        self.result = result
        self.exc = exc
        self.delay = delay
        self.available = available
        self.calls = 0
        self.cancelled = False

    def is_available(self) -> bool:
        return self.available

    async def _process(self, raw):
        self.calls += 1
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.exc is not None:
            raise self.exc
        return self.result.model_copy(update={"engine_id": self.engine_id})
