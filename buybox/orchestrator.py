"""Engine registry, single and concurrent dispatch, cross-engine comparison."""
from __future__ import annotations

import asyncio
import logging
import statistics
import time
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from buybox.engines import AnalysisEngine
from buybox.errors import AnalysisError, OrchestrationError
from buybox.schemas import (
    AnalysisResult,
    BatchResult,
    EngineComparison,
    EngineDescriptor,
    ValidationReport,
)
from buybox.validation import ensure_valid, validate_submission

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0
MISSING_CONFIDENCE = 0.5


def _consistency(stddev: float) -> str:
    if stddev < 0.10:
        return "High"
    if stddev < 0.20:
        return "Medium"
    return "Low"


class EngineOrchestrator:
    """Dispatch submissions to a fixed set of engines.

    The registry is passed in at construction; nothing is looked up globally.
    Each engine call is bounded by ``timeout`` seconds (``None`` disables it).
    """

    def __init__(
        self,
        engines: Mapping[str, AnalysisEngine],
        default_engine: str | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
    ):
        self.engines: dict[str, AnalysisEngine] = dict(engines)
        if default_engine is not None and default_engine not in self.engines:
            raise OrchestrationError(f"Default engine '{default_engine}' is not registered")
        self.default_engine = default_engine or next(iter(self.engines), None)
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def list_engines(self) -> list[EngineDescriptor]:
        return [engine.describe() for engine in self.engines.values()]

    def available_engines(self) -> list[str]:
        return [engine_id for engine_id, engine in self.engines.items() if engine.is_available()]

    def get(self, engine_id: str | None) -> AnalysisEngine:
        engine_id = engine_id or self.default_engine
        if engine_id is None or engine_id not in self.engines:
            raise OrchestrationError(f"Unknown engine: {engine_id!r}")
        return self.engines[engine_id]

    def validate(self, raw: Any) -> ValidationReport:
        return validate_submission(raw)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def run_one(self, engine_id: str | None, raw: Mapping[str, Any]) -> AnalysisResult:
        engine = self.get(engine_id)
        ensure_valid(raw)
        started = time.perf_counter()
        try:
            if self.timeout is None:
                result = await engine.process(raw)
            else:
                result = await asyncio.wait_for(engine.process(raw), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise AnalysisError(
                engine.engine_id, f"timed out after {self.timeout:g}s", retryable=True,
            ) from exc
        result.processing_time_ms = round((time.perf_counter() - started) * 1000, 1)
        log.info("Engine %s finished in %.1f ms", engine.engine_id, result.processing_time_ms)
        return result

    async def run_many(self, engine_ids: Iterable[str], raw: Mapping[str, Any]) -> BatchResult:
        """Run several engines concurrently; per-engine failures land in ``errors``."""
        ensure_valid(raw)
        ids = list(dict.fromkeys(engine_ids))
        outcomes = await asyncio.gather(
            *(self.run_one(engine_id, raw) for engine_id in ids),
            return_exceptions=True,
        )
        batch = BatchResult()
        for engine_id, outcome in zip(ids, outcomes):
            if isinstance(outcome, AnalysisResult):
                batch.results[engine_id] = outcome
            else:
                log.warning("Engine %s failed: %s", engine_id, outcome)
                batch.errors[engine_id] = str(outcome) or type(outcome).__name__
        return batch

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def compare(self, results: Mapping[str, AnalysisResult] | Sequence[AnalysisResult]) -> EngineComparison:
        if isinstance(results, Mapping):
            items = list(results.items())
        else:
            items = [(r.engine_id, r) for r in results]
        if len(items) < 2:
            raise OrchestrationError("Comparison needs at least two results")
        return compare_results(items)


def compare_results(items: Sequence[tuple[str, AnalysisResult]]) -> EngineComparison:
    count = len(items)
    archetypes = [result.archetype.key for _, result in items]
    titles = {result.archetype.key: result.archetype.title for _, result in items}
    tally = Counter(archetypes)
    top_count = max(tally.values())
    # earliest engine wins a tie for the modal archetype
    modal = next(key for key in archetypes if tally[key] == top_count)
    agreement = top_count / count
    unique_archetypes = list(dict.fromkeys(archetypes))

    industry_lists = [[m.industry for m in result.industry_matches] for _, result in items]
    all_industries = list(dict.fromkeys(i for lst in industry_lists for i in lst))
    common = [i for i in all_industries if all(i in lst for lst in industry_lists)]
    overlap = len(common) / len(all_industries) * 100 if all_industries else 0.0

    confidences = [
        result.confidence_scores.overall if result.confidence_scores else MISSING_CONFIDENCE
        for _, result in items
    ]
    average = sum(confidences) / count
    stddev = statistics.pstdev(confidences)
    consistency = _consistency(stddev)

    recommendations = []
    if len(unique_archetypes) == 1:
        recommendations.append(f"Strong consensus: All {count} engines agree on {titles[modal]} archetype")
    else:
        recommendations.append(
            f"Mixed results: {len(unique_archetypes)} different archetypes identified "
            f"- recommend additional analysis"
        )
    overlap_pct = round(overlap)
    if overlap > 60:
        recommendations.append(f"Good industry alignment: {overlap_pct}% overlap across engines")
    else:
        recommendations.append(
            f"Industry variation detected: Only {overlap_pct}% overlap - consider broader search"
        )
    if consistency == "High":
        recommendations.append(
            f"High confidence consistency: {consistency} variation (±{round(stddev * 100)}%)"
        )
    else:
        recommendations.append(
            f"Variable confidence levels: {consistency} consistency - validate findings carefully"
        )

    return EngineComparison(
        engine_count=count,
        archetype_agreement=agreement,
        archetypes=unique_archetypes,
        industry_overlap_percentage=overlap,
        common_industries=common,
        confidence_average=average,
        confidence_variance=stddev,
        confidence_consistency=consistency,  # type: ignore[arg-type]
        processing_times={engine_id: result.processing_time_ms for engine_id, result in items},
        recommendation_text=recommendations,
    )
