"""Analysis engines: one contract, local heuristic and remote completion variants.

Every engine exposes ``is_available()``, ``validate(raw)`` and the async
``process(raw)``.  Validation is the single shared ``validate_submission``;
engines never re-implement it.  ``process`` raises ``EngineUnavailableError``
for a disabled engine, ``ValidationError`` for a bad submission and
``AnalysisError`` for anything that goes wrong inside the engine.  Remote
engines never fail on an unparseable answer: they return a low-confidence
fallback result instead.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from buybox.errors import AnalysisError, BuyboxError, EngineUnavailableError
from buybox.financials import FinancialModel
from buybox.industries import IndustryClassifier, fallback_matches, industry_text
from buybox.llm import CompletionClient, LLMCallError
from buybox.prompts import METHODOLOGIES, build_analysis_prompt, get_methodology, system_prompt
from buybox.report import ReportComposer, assess_data_quality, average_confidence, confidence_scores
from buybox.responses import ParsedResponse, ResponseAdapter, get_adapter
from buybox.schemas import (
    AnalysisResult,
    Archetype,
    BuyboxRow,
    ConfidenceScores,
    EngineDescriptor,
    IndustryMatch,
    Insights,
    ValidationReport,
)
from buybox.scorer import ArchetypeScorer, archetype_stub
from buybox.transparency import build_transparency
from buybox.validation import ensure_valid, validate_submission

log = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.3
FALLBACK_ARCHETYPE = "operations_systems"
FALLBACK_THESIS = (
    "The automated analysis response could not be interpreted, so this report falls back "
    "to a conservative default profile. Treat it as a starting point only and re-run the "
    "analysis or compare with another engine before acting on it."
)
DEFAULT_REMOTE_SCORE = 3.5
DEFAULT_REMOTE_CONFIDENCE = 0.75


class AnalysisEngine:
    """Base capability shared by all engines."""

    engine_id: str = ""
    name: str = ""
    kind: str = "local"
    capabilities: tuple[str, ...] = ()
    requirements: tuple[str, ...] = ()

    def is_available(self) -> bool:
        return True

    def validate(self, raw: Any) -> ValidationReport:
        return validate_submission(raw)

    async def process(self, raw: Mapping[str, Any]) -> AnalysisResult:
        if not self.is_available():
            raise EngineUnavailableError(self.engine_id)
        ensure_valid(raw)
        try:
            return await self._process(raw)
        except BuyboxError:
            raise
        except Exception as exc:
            log.warning("%s: analysis failed: %s", self.engine_id, exc)
            raise AnalysisError(self.engine_id, f"{type(exc).__name__}: {exc}") from exc

    async def _process(self, raw: Mapping[str, Any]) -> AnalysisResult:
        raise NotImplementedError

    def describe(self) -> EngineDescriptor:
        return EngineDescriptor(
            engine_id=self.engine_id,
            name=self.name or self.engine_id,
            kind=self.kind,  # type: ignore[arg-type]
            capabilities=list(self.capabilities),
            requirements=list(self.requirements),
            available=self.is_available(),
        )


# ---------------------------------------------------------------------------
# Result assembly
# ---------------------------------------------------------------------------


class ResultBuilder:
    """Turn an archetype and industry list into a full ``AnalysisResult``."""

    def __init__(
        self,
        financial_model: FinancialModel | None = None,
        composer: ReportComposer | None = None,
    ):
        self.financial_model = financial_model or FinancialModel()
        self.composer = composer or ReportComposer()

    def build(
        self,
        engine_id: str,
        archetype: Archetype,
        industry_matches: Sequence[IndustryMatch],
        raw: Mapping[str, Any],
        scores: ConfidenceScores | None = None,
        narrative: str | None = None,
        buybox_rows: Sequence[BuyboxRow] | None = None,
        fallback: bool = False,
        raw_response: str | None = None,
        methodology: str | None = None,
    ) -> AnalysisResult:
        matches = list(industry_matches) or fallback_matches()
        financials = self.financial_model.compute(
            raw.get("total_liquid_capital") or 0,
            raw.get("potential_loan_amount") or 0,
            raw.get("min_annual_income") or 0,
            matches,
        )
        if scores is None:
            scores = confidence_scores(archetype, matches, raw)
        composed = self.composer.compose(archetype, matches, financials, raw, scores)
        return AnalysisResult(
            archetype=archetype,
            leverage_thesis=archetype.leverage_thesis,
            industry_matches=matches,
            financial_parameters=financials,
            confidence_scores=scores,
            narrative_thesis=narrative or composed.narrative_thesis,
            buybox_rows=list(buybox_rows) if buybox_rows else composed.buybox_rows,
            engine_id=engine_id,
            fallback=fallback,
            insights=self.composer.insights(archetype, matches, scores),
            transparency=build_transparency(archetype, scores, raw, methodology),
            raw_response=raw_response,
        )

    def fallback(self, engine_id: str, raw: Mapping[str, Any], raw_response: str | None,
                 reason: str, methodology: str | None = None) -> AnalysisResult:
        archetype = archetype_stub(FALLBACK_ARCHETYPE, composite_score=3.0,
                                   confidence=FALLBACK_CONFIDENCE)
        scores = ConfidenceScores(
            overall=FALLBACK_CONFIDENCE,
            archetype=FALLBACK_CONFIDENCE,
            industry=FALLBACK_CONFIDENCE,
            data_quality=FALLBACK_CONFIDENCE,
        )
        result = self.build(
            engine_id, archetype, fallback_matches(), raw,
            scores=scores, narrative=FALLBACK_THESIS, fallback=True, raw_response=raw_response,
            methodology=methodology,
        )
        result.insights = Insights(
            key_strengths=[],
            recommendations=["Re-run the analysis or compare against another engine"],
            risks=[f"Response parsing failed, using fallback analysis ({reason})"],
        )
        return result


# ---------------------------------------------------------------------------
# Local heuristic engine
# ---------------------------------------------------------------------------


class LocalEngine(AnalysisEngine):
    """Composite heuristic scoring, keyword industry matching, deterministic templates."""

    kind = "local"
    capabilities = (
        "Sentiment, keyword, confidence and depth scoring of evidence",
        "Three-tier keyword industry classification",
        "Industry-weighted SDE modeling",
    )
    requirements = ("None (runs locally)",)

    def __init__(
        self,
        engine_id: str = "traditional",
        name: str = "Local heuristic analysis",
        scorer: ArchetypeScorer | None = None,
        classifier: IndustryClassifier | None = None,
        builder: ResultBuilder | None = None,
    ):
        self.engine_id = engine_id
        self.name = name
        self.scorer = scorer or ArchetypeScorer()
        self.classifier = classifier or IndustryClassifier()
        self.builder = builder or ResultBuilder()

    def analyze(self, raw: Mapping[str, Any]) -> AnalysisResult:
        """Run the full local pipeline synchronously on a validated submission."""
        archetype = self.scorer.score(raw)
        matches = self.classifier.classify(industry_text(raw))
        return self.builder.build(self.engine_id, archetype, matches, raw)

    async def _process(self, raw: Mapping[str, Any]) -> AnalysisResult:
        return self.analyze(raw)


# ---------------------------------------------------------------------------
# Remote completion engine
# ---------------------------------------------------------------------------


class CompletionEngine(AnalysisEngine):
    """Prompt a text-completion model and parse its answer back into a result."""

    kind = "remote"
    capabilities = (
        "Language-model evaluation of evidence quality",
        "Free-form acquisition thesis",
    )

    def __init__(
        self,
        engine_id: str,
        client: CompletionClient | None,
        name: str = "",
        response_format: str = "sections",
        enabled: bool = True,
        requirements: Sequence[str] = ("API key", "Internet connectivity"),
        builder: ResultBuilder | None = None,
        adapter: ResponseAdapter | None = None,
        methodology: str | None = None,
    ):
        self.engine_id = engine_id
        self.name = name or engine_id
        self.client = client
        self.enabled = enabled
        self.response_format = response_format
        if methodology:
            get_methodology(methodology)
        self.methodology = methodology
        self.adapter = adapter or get_adapter(response_format)
        self.requirements = tuple(requirements)
        self.builder = builder or ResultBuilder()

    def is_available(self) -> bool:
        return self.enabled and self.client is not None

    def describe(self) -> EngineDescriptor:
        descriptor = super().describe()
        if self.client is not None:
            descriptor.provider = self.client.provider
            descriptor.model = self.client.model
        return descriptor

    async def check_health(self) -> bool:
        if not self.is_available():
            return False
        return await self.client.health_check()

    def methodology_for(self, raw: Mapping[str, Any]) -> str | None:
        """The submission's ``analysis_methodology`` if given, else the engine default."""
        return raw.get("analysis_methodology") or self.methodology

    async def _process(self, raw: Mapping[str, Any]) -> AnalysisResult:
        methodology = self.methodology_for(raw)
        note = METHODOLOGIES[methodology].transparency_text if methodology else None
        prompt = build_analysis_prompt(raw, self.response_format, methodology)
        log.info("Dispatching analysis to %s (%s)", self.engine_id, self.client.model)
        try:
            text = await self.client.complete(prompt, system=system_prompt())
        except LLMCallError as exc:
            raise AnalysisError(self.engine_id, str(exc), retryable=exc.retryable) from exc

        try:
            parsed = self.adapter.parse(text)
            return self._from_parsed(parsed, raw, text, note)
        except Exception as exc:
            log.warning("%s: could not parse response, using fallback (%s)", self.engine_id, exc)
            return self.builder.fallback(self.engine_id, raw, text, str(exc), methodology=note)

    def _from_parsed(self, parsed: ParsedResponse, raw: Mapping[str, Any], text: str,
                     methodology: str | None = None) -> AnalysisResult:
        archetype = archetype_stub(
            parsed.archetype_key,
            composite_score=parsed.composite_score or DEFAULT_REMOTE_SCORE,
            confidence=(parsed.archetype_confidence if parsed.archetype_confidence is not None
                        else DEFAULT_REMOTE_CONFIDENCE),
            evidence=parsed.narrative[:500] if parsed.narrative else "",
        )
        matches = parsed.industries or fallback_matches()
        scores = None
        if parsed.overall_confidence is not None:
            scores = ConfidenceScores(
                overall=parsed.overall_confidence,
                archetype=archetype.confidence,
                industry=average_confidence(matches),
                data_quality=assess_data_quality(raw),
            )
        return self.builder.build(
            self.engine_id, archetype, matches, raw,
            scores=scores,
            narrative=parsed.narrative,
            buybox_rows=parsed.buybox_rows,
            raw_response=text,
            methodology=methodology,
        )
