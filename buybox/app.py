from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Generator

from fastapi import Depends, FastAPI, HTTPException, Query
from sqlalchemy.orm import Session

from buybox import services
from buybox.config import Settings, build_orchestrator
from buybox.db import init_db, session_scope
from buybox.engines import CompletionEngine
from buybox.errors import (
    AnalysisError,
    BuyboxError,
    EngineUnavailableError,
    OrchestrationError,
    ValidationError,
)
from buybox.orchestrator import EngineOrchestrator
from buybox.prompts import METHODOLOGIES
from buybox.schemas import (
    AnalyzeRequest,
    CompareRequest,
    CompareResponse,
    EngineDescriptor,
    MethodologyInfo,
    ReportDetail,
    ReportSummary,
    ValidationReport,
)

log = logging.getLogger(__name__)

_orchestrator: EngineOrchestrator | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    init_db(settings.data_dir / "buybox.db")
    yield


app = FastAPI(
    title="Buybox Advisor",
    version="0.1.0",
    description=(
        "Acquisition-strategy analysis. Submit competencies, interests and financial "
        "constraints; get an operator archetype, target industries, SDE range and buybox "
        "criteria from one engine or several side by side."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Engines", "description": "Configured analysis engines and their availability."},
        {"name": "Analysis", "description": "Run one engine or compare several."},
        {"name": "Reports", "description": "Previously generated reports."},
    ],
)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    with session_scope() as session:
        yield session


def get_orchestrator() -> EngineOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator


def _http_error(exc: BuyboxError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(422, {"message": "Invalid submission", "errors": exc.errors})
    if isinstance(exc, OrchestrationError):
        return HTTPException(400, str(exc))
    if isinstance(exc, EngineUnavailableError):
        return HTTPException(503, str(exc))
    if isinstance(exc, AnalysisError):
        return HTTPException(502, f"Analysis failed: {exc}")
    return HTTPException(500, f"Analysis failed: {exc}")


def _get_report_or_404(session: Session, report_id: int):
    report = services.get_report(session, report_id)
    if report is None:
        raise HTTPException(404, "Report not found")
    return report


# ---------------------------------------------------------------------------
# Routes: Engines
# ---------------------------------------------------------------------------


@app.get("/api/engines", tags=["Engines"], summary="List configured engines")
async def list_engines(orchestrator: EngineOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    engines: list[EngineDescriptor] = orchestrator.list_engines()
    return {
        "engines": [e.model_dump() for e in engines],
        "default": orchestrator.default_engine,
        "available": orchestrator.available_engines(),
    }


@app.get("/api/engines/{engine_id}/health", tags=["Engines"], summary="Check a remote engine's endpoint")
async def engine_health(engine_id: str, orchestrator: EngineOrchestrator = Depends(get_orchestrator)):
    try:
        engine = orchestrator.get(engine_id)
    except OrchestrationError as exc:
        raise HTTPException(404, str(exc)) from exc
    healthy = engine.is_available()
    if healthy and isinstance(engine, CompletionEngine):
        healthy = await engine.check_health()
    return {"engine_id": engine_id, "available": engine.is_available(), "healthy": healthy}


@app.get("/api/methodologies", response_model=list[MethodologyInfo], tags=["Engines"],
         summary="List analysis frameworks remote engines can follow")
async def list_methodologies():
    return [
        MethodologyInfo(key=m.key, name=m.name, author=m.author, description=m.description)
        for m in METHODOLOGIES.values()
    ]


# ---------------------------------------------------------------------------
# Routes: Analysis
# ---------------------------------------------------------------------------


@app.post("/api/validate", response_model=ValidationReport, tags=["Analysis"],
          summary="Check a submission without running an engine")
async def validate(body: dict[str, Any], orchestrator: EngineOrchestrator = Depends(get_orchestrator)):
    return orchestrator.validate(body)


@app.post("/api/analyze", tags=["Analysis"], summary="Analyze a submission with one engine")
async def analyze(
    body: AnalyzeRequest,
    orchestrator: EngineOrchestrator = Depends(get_orchestrator),
    session: Session = Depends(db_session),
) -> dict[str, Any]:
    try:
        result = await orchestrator.run_one(body.engine, body.user_data)
    except BuyboxError as exc:
        raise _http_error(exc) from exc
    report_id = None
    if body.save:
        report_id = services.save_report(session, body.user_data, result).id
    return {"result": result.model_dump(mode="json"), "report_id": report_id}


@app.post("/api/analyze/compare", response_model=CompareResponse, tags=["Analysis"],
          summary="Run several engines concurrently and compare their results")
async def analyze_compare(body: CompareRequest, orchestrator: EngineOrchestrator = Depends(get_orchestrator)):
    try:
        batch = await orchestrator.run_many(body.engines, body.user_data)
    except BuyboxError as exc:
        raise _http_error(exc) from exc
    comparison = orchestrator.compare(batch.results) if len(batch.results) >= 2 else None
    return CompareResponse(results=batch.results, errors=batch.errors, comparison=comparison)


# ---------------------------------------------------------------------------
# Routes: Reports
# ---------------------------------------------------------------------------


@app.get("/api/reports", response_model=list[ReportSummary], tags=["Reports"], summary="List saved reports")
async def list_reports(
    limit: int = Query(50, ge=1, le=500),
    engine: str | None = Query(None, description="Only reports produced by this engine"),
    session: Session = Depends(db_session),
):
    return [services.report_summary(r) for r in services.list_reports(session, limit, engine)]


@app.get("/api/reports/{report_id}", response_model=ReportDetail, tags=["Reports"], summary="Get one saved report")
async def get_report(report_id: int, session: Session = Depends(db_session)):
    return services.report_detail(_get_report_or_404(session, report_id))


@app.delete("/api/reports/{report_id}", tags=["Reports"], summary="Delete a saved report")
async def delete_report(report_id: int, session: Session = Depends(db_session)):
    _get_report_or_404(session, report_id)
    services.delete_report(session, report_id)
    return {"ok": True}


def main():
    import uvicorn
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    uvicorn.run(
        "buybox.app:app",
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "8001")),
    )


if __name__ == "__main__":
    main()
