"""Report history: save, list, fetch and delete generated analyses."""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from buybox.models import Report
from buybox.schemas import AnalysisResult

log = logging.getLogger(__name__)


def _load_json(value: str | None) -> dict[str, Any]:
    try:
        data = json.loads(value or "{}")
    except json.JSONDecodeError:
        log.warning("Stored report JSON is corrupt, returning empty object")
        return {}
    return data if isinstance(data, dict) else {}


def save_report(session: Session, user_data: Mapping[str, Any], result: AnalysisResult) -> Report:
    report = Report(
        engine_id=result.engine_id,
        archetype_key=result.archetype.key,
        archetype_title=result.archetype.title,
        overall_confidence=result.confidence_scores.overall,
        fallback=result.fallback,
        user_data_json=json.dumps(dict(user_data), default=str),
        result_json=result.model_dump_json(),
    )
    session.add(report)
    session.commit()
    session.refresh(report)
    log.info("Saved report %d (%s, %s)", report.id, report.engine_id, report.archetype_key)
    return report


def list_reports(session: Session, limit: int = 50, engine_id: str | None = None) -> list[Report]:
    stmt = select(Report).order_by(Report.created_at.desc(), Report.id.desc()).limit(limit)
    if engine_id:
        stmt = stmt.where(Report.engine_id == engine_id)
    return list(session.execute(stmt).scalars().all())


def get_report(session: Session, report_id: int) -> Report | None:
    return session.execute(select(Report).where(Report.id == report_id)).scalars().first()


def delete_report(session: Session, report_id: int) -> bool:
    report = get_report(session, report_id)
    if report is None:
        return False
    session.delete(report)
    session.commit()
    return True


def report_summary(report: Report) -> dict[str, Any]:
    return {
        "id": report.id,
        "engine_id": report.engine_id,
        "archetype_title": report.archetype_title,
        "overall_confidence": report.overall_confidence,
        "created_at": report.created_at.isoformat() if report.created_at else None,
    }


def report_detail(report: Report) -> dict[str, Any]:
    return {
        **report_summary(report),
        "user_data": _load_json(report.user_data_json),
        "result": _load_json(report.result_json),
    }
