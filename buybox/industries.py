"""Industry classification over a three-tier keyword table."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from buybox.heuristics import candidate_terms, phrase_matches
from buybox.schemas import IndustryMatch

MAX_MATCHES = 5

TIER_WEIGHTS = {"primary": 3, "secondary": 2, "context": 1}

INDUSTRY_TERMS: dict[str, dict[str, tuple[str, ...]]] = {
    "technology": {
        "primary": ("tech", "software", "ai", "digital", "platform", "saas", "app",
                    "system", "code", "development"),
        "secondary": ("innovation", "startup", "disrupt", "automation", "cloud", "data",
                      "algorithm", "api"),
        "context": ("scale", "growth", "venture", "silicon", "technical", "engineering",
                    "product"),
    },
    "healthcare": {
        "primary": ("health", "medical", "wellness", "fitness", "therapy", "care",
                    "hospital", "clinic", "patient"),
        "secondary": ("treatment", "diagnosis", "medicine", "pharmaceutical", "doctor",
                      "nurse", "telehealth"),
        "context": ("outcome", "quality", "safety", "compliance", "regulation", "insurance"),
    },
    "finance": {
        "primary": ("finance", "financial", "money", "investment", "banking", "accounting",
                    "credit", "loan"),
        "secondary": ("wealth", "portfolio", "trading", "market", "capital", "fund",
                      "asset", "risk"),
        "context": ("regulation", "compliance", "audit", "strategy", "advisory", "planning"),
    },
    "education": {
        "primary": ("education", "learning", "teaching", "training", "school", "university",
                    "course", "student"),
        "secondary": ("curriculum", "instructor", "knowledge", "skill", "development",
                      "certification"),
        "context": ("online", "remote", "assessment", "accreditation", "outcome", "engagement"),
    },
    "retail": {
        "primary": ("retail", "shopping", "consumer", "store", "merchandise", "brand",
                    "customer", "sales"),
        "secondary": ("inventory", "supply", "logistics", "distribution", "wholesale", "vendor"),
        "context": ("experience", "loyalty", "omnichannel", "seasonal", "trend", "margin"),
    },
    "ecommerce": {
        "primary": ("ecommerce", "online", "marketplace", "digital", "website", "platform",
                    "cart", "checkout"),
        "secondary": ("fulfillment", "shipping", "payment", "conversion", "traffic", "seo"),
        "context": ("growth", "acquisition", "retention", "automation", "analytics",
                    "optimization"),
    },
    "service": {
        "primary": ("service", "consulting", "professional", "agency", "support", "client",
                    "project"),
        "secondary": ("expertise", "advisory", "implementation", "strategy", "solution",
                      "delivery"),
        "context": ("relationship", "quality", "efficiency", "scalability", "expertise", "value"),
    },
    "manufacturing": {
        "primary": ("manufacturing", "production", "factory", "industrial", "supply",
                    "equipment", "machinery"),
        "secondary": ("quality", "efficiency", "automation", "lean", "safety", "compliance"),
        "context": ("capacity", "output", "waste", "maintenance", "logistics", "standards"),
    },
    "real_estate": {
        "primary": ("real estate", "property", "housing", "construction", "development",
                    "commercial", "residential"),
        "secondary": ("investment", "management", "leasing", "valuation", "market", "location"),
        "context": ("appreciation", "yield", "occupancy", "maintenance", "regulation", "zoning"),
    },
}

INDUSTRY_TEXT_FIELDS = ("interests_topics", "recent_books", "problem_to_solve")


def fallback_matches() -> list[IndustryMatch]:
    return [IndustryMatch(industry="service", relevance_score=1, confidence=0.3)]


def industry_text(raw: Mapping[str, Any]) -> str:
    """Join the free-text interest fields of a submission."""
    return " ".join(str(raw.get(field) or "") for field in INDUSTRY_TEXT_FIELDS)


class IndustryClassifier:
    """Rank industries by weighted keyword hits in free text."""

    def __init__(self, table: Mapping[str, Mapping[str, tuple[str, ...]]] | None = None):
        self.table = table or INDUSTRY_TERMS

    def raw_scores(self, free_text: str) -> dict[str, int]:
        terms = candidate_terms(free_text)
        scores: dict[str, int] = {}
        if not terms:
            return scores
        for industry, tiers in self.table.items():
            score = 0
            for tier, weight in TIER_WEIGHTS.items():
                for keyword in tiers.get(tier, ()):
                    if phrase_matches(keyword, terms):
                        score += weight
            if score > 0:
                scores[industry] = score
        return scores

    def classify(self, free_text: str) -> list[IndustryMatch]:
        scores = self.raw_scores(free_text)
        # sorted() is stable, so equal scores keep table order
        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)[:MAX_MATCHES]
        if not ranked:
            return fallback_matches()
        return [
            IndustryMatch(industry=industry, relevance_score=score, confidence=min(1.0, score / 10))
            for industry, score in ranked
        ]
