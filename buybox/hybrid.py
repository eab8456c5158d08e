"""Hybrid engine: local heuristics and one remote engine, reconciled into one result.

Both engines run concurrently.  The local result carries 60% of the weight,
the remote one 40%:

- archetype: on agreement the composite scores are blended and confidence is
  boosted (capped at 0.95); on disagreement the higher weighted composite wins
  and confidence drops to 80% of the larger weight;
- industries: union of both lists, agreeing industries averaged and boosted,
  single-source ones discounted by 10%, top 5 by relevance x confidence;
- confidence: 60/40 blend, data quality is the better of the two;
- financials: the conservative pair (higher SDE floor, lower SDE ceiling).
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from buybox.engines import AnalysisEngine, LocalEngine, ResultBuilder
from buybox.errors import AnalysisError
from buybox.schemas import (
    AnalysisResult,
    Archetype,
    ConfidenceScores,
    FinancialParameters,
    IndustryMatch,
)
from buybox.transparency import build_transparency

log = logging.getLogger(__name__)

LOCAL_WEIGHT = 0.6
REMOTE_WEIGHT = 0.4
MAX_INDUSTRIES = 5
HYBRID_ANALYSIS = "Hybrid heuristic and language-model assessment"


def select_archetype(local: AnalysisResult, remote: AnalysisResult) -> tuple[Archetype, bool]:
    """Confidence-weighted archetype vote. Returns (archetype, agreement)."""
    local_arch, remote_arch = local.archetype, remote.archetype
    local_w = local.confidence_scores.archetype * LOCAL_WEIGHT
    remote_w = remote.confidence_scores.archetype * REMOTE_WEIGHT

    if local_arch.key == remote_arch.key:
        total = local_w + remote_w
        if total > 0:
            composite = (local_arch.composite_score * local_w + remote_arch.composite_score * remote_w) / total
        else:
            composite = (local_arch.composite_score + remote_arch.composite_score) / 2
        merged = local_arch.model_copy(update={
            "composite_score": composite,
            "confidence": min(0.95, total / 2 + 0.1),
        })
        return merged, True

    local_total = local_arch.composite_score * local_w
    remote_total = remote_arch.composite_score * remote_w
    winner = local_arch if local_total >= remote_total else remote_arch
    log.info(
        "Hybrid disagreement: local %s (%.2f) vs remote %s (%.2f), keeping %s",
        local_arch.key, local_total, remote_arch.key, remote_total, winner.key,
    )
    return winner.model_copy(update={"confidence": max(local_w, remote_w) * 0.8}), False


def merge_industries(local: list[IndustryMatch], remote: list[IndustryMatch]) -> list[IndustryMatch]:
    merged: dict[str, dict[str, Any]] = {}
    for matches in (local, remote):
        for m in matches:
            entry = merged.setdefault(m.industry, {"relevance": [], "confidence": []})
            entry["relevance"].append(m.relevance_score)
            entry["confidence"].append(m.confidence)

    combined = []
    for industry, entry in merged.items():
        agreement = len(entry["confidence"]) > 1
        relevance = sum(entry["relevance"]) / len(entry["relevance"])
        confidence = sum(entry["confidence"]) / len(entry["confidence"])
        confidence = min(0.95, confidence + 0.1) if agreement else confidence * 0.9
        combined.append(IndustryMatch(industry=industry, relevance_score=relevance, confidence=confidence))
    combined.sort(key=lambda m: m.relevance_score * m.confidence, reverse=True)
    return combined[:MAX_INDUSTRIES]


def consensus_confidence(local: ConfidenceScores, remote: ConfidenceScores) -> ConfidenceScores:
    return ConfidenceScores(
        overall=local.overall * LOCAL_WEIGHT + remote.overall * REMOTE_WEIGHT,
        archetype=local.archetype * LOCAL_WEIGHT + remote.archetype * REMOTE_WEIGHT,
        industry=local.industry * LOCAL_WEIGHT + remote.industry * REMOTE_WEIGHT,
        data_quality=max(local.data_quality, remote.data_quality),
    )


def conservative_financials(local: FinancialParameters, remote: FinancialParameters) -> FinancialParameters:
    sde_min = max(local.sde_min, remote.sde_min)
    sde_max = min(local.sde_max, remote.sde_max)
    return local.model_copy(update={
        "max_purchase_price": min(local.max_purchase_price, remote.max_purchase_price),
        "sde_min": sde_min,
        "sde_max": sde_max,
        "industry_multiple": (local.industry_multiple + remote.industry_multiple) / 2,
        "industry_confidence": max(local.industry_confidence, remote.industry_confidence),
        "range_inverted": sde_min > sde_max,
    })


class HybridEngine(AnalysisEngine):
    """Run the local engine and a remote engine side by side and reconcile them."""

    kind = "hybrid"
    capabilities = (
        "Local heuristics and language-model analysis combined",
        "Agreement-aware confidence",
        "Conservative financial parameters",
    )

    def __init__(
        self,
        local: LocalEngine,
        remote: AnalysisEngine,
        engine_id: str = "hybrid",
        name: str = "Hybrid analysis",
        enabled: bool = True,
        builder: ResultBuilder | None = None,
    ):
        self.engine_id = engine_id
        self.name = name
        self.local = local
        self.remote = remote
        self.enabled = enabled
        self.builder = builder or local.builder
        self.requirements = tuple(remote.requirements)

    def is_available(self) -> bool:
        return self.enabled and self.local.is_available() and self.remote.is_available()

    async def _process(self, raw: Mapping[str, Any]) -> AnalysisResult:
        # A failure in either half cancels the other one.
        try:
            async with asyncio.TaskGroup() as group:
                local_task = group.create_task(self.local.process(raw))
                remote_task = group.create_task(self.remote.process(raw))
        except ExceptionGroup as failures:
            exc = failures.exceptions[0]
            raise AnalysisError(self.engine_id, f"component engine failed: {exc}",
                                retryable=getattr(exc, "retryable", False)) from exc
        return self.synthesize(local_task.result(), remote_task.result(), raw)

    def synthesize(self, local: AnalysisResult, remote: AnalysisResult,
                   raw: Mapping[str, Any]) -> AnalysisResult:
        archetype, agreement = select_archetype(local, remote)
        matches = merge_industries(local.industry_matches, remote.industry_matches)
        scores = consensus_confidence(local.confidence_scores, remote.confidence_scores)
        financials = conservative_financials(local.financial_parameters, remote.financial_parameters)

        composer = self.builder.composer
        composed = composer.compose(archetype, matches, financials, raw, scores)
        if agreement:
            lead = (f"CONSENSUS: the local and {self.remote.engine_id} analyses both identify "
                    f"you as {archetype.title}.")
        else:
            other = remote.archetype if archetype.key == local.archetype.key else local.archetype
            lead = (f"WEIGHTED SELECTION: the analyses disagree ({archetype.title} vs "
                    f"{other.title}); the confidence-weighted choice is shown. Review manually "
                    f"before acting on it.")
        insights = composer.insights(archetype, matches, scores)
        if remote.fallback:
            insights.risks.insert(0, f"{self.remote.engine_id} response could not be parsed; "
                                     f"its contribution is a low-confidence default")

        return AnalysisResult(
            archetype=archetype,
            leverage_thesis=archetype.leverage_thesis,
            industry_matches=matches,
            financial_parameters=financials,
            confidence_scores=scores,
            narrative_thesis=f"{lead}\n\n{composed.narrative_thesis}",
            buybox_rows=composed.buybox_rows,
            engine_id=self.engine_id,
            insights=insights,
            transparency=build_transparency(
                archetype, scores, raw,
                methodology=remote.transparency.methodology if remote.transparency else None,
                scores=local.archetype.scores,
                analysis_type=HYBRID_ANALYSIS,
            ),
            raw_response=remote.raw_response,
        )
