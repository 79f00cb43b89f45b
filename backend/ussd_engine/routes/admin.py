"""
Admin Routes — USSD session statistics, session log and CSV export.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ussd_engine.database import get_db
from ussd_engine.schemas.schemas import (
    DailySummary, MenuStat, UssdSessionDetail, UssdSessionPage, UssdSessionSummary, UssdStatsResponse,
)
from ussd_engine.services.stats_service import UssdStatsService
from ussd_engine.utils.clock import utcnow

router = APIRouter(prefix="/api/ussd/stats", tags=["USSD Stats"])


def get_stats_service() -> UssdStatsService:
    return UssdStatsService()


def _page(result: dict) -> UssdSessionPage:
    sessions = [UssdSessionSummary.model_validate(s) for s in result["sessions"]]
    return UssdSessionPage(**{**result, "sessions": sessions})


@router.get("", response_model=UssdStatsResponse)
def get_statistics(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    role: Optional[str] = None,
    language: Optional[str] = None,
    network: Optional[str] = None,
    db: Session = Depends(get_db),
    stats: UssdStatsService = Depends(get_stats_service),
):
    """Aggregated session metrics for the dashboard."""
    return stats.statistics(
        db,
        network=network,
        start_date=start_date,
        end_date=end_date,
        role=role,
        language=language,
    )


@router.get("/sessions", response_model=UssdSessionPage)
def list_sessions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    is_active: Optional[bool] = None,
    role: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Session log, newest first."""
    result = UssdStatsService.list_sessions(db, page=page, limit=limit, is_active=is_active, role=role)
    return _page(result)


@router.get("/sessions/phone/{phone_number}", response_model=UssdSessionPage)
def list_sessions_by_phone(
    phone_number: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """All sessions dialled from one phone number."""
    result = UssdStatsService.list_sessions(db, page=page, limit=limit, phone_number=phone_number)
    return _page(result)


@router.get("/sessions/{row_id}", response_model=UssdSessionDetail)
def get_session(row_id: str, db: Session = Depends(get_db)):
    session = UssdStatsService.get_session(db, row_id)
    if not session:
        raise HTTPException(status_code=404, detail=f"Session {row_id} not found")
    return UssdSessionDetail.model_validate(session)


@router.get("/summary/daily", response_model=list[DailySummary])
def daily_summary(
    days: int = Query(7, ge=1, le=365),
    db: Session = Depends(get_db),
    stats: UssdStatsService = Depends(get_stats_service),
):
    return stats.daily_summary(db, days=days)


@router.get("/summary/menus", response_model=list[MenuStat])
def menu_statistics(db: Session = Depends(get_db)):
    return UssdStatsService.menu_statistics(db)


@router.get("/export")
def export_sessions(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    role: Optional[str] = None,
    language: Optional[str] = None,
    network: Optional[str] = None,
    db: Session = Depends(get_db),
    stats: UssdStatsService = Depends(get_stats_service),
):
    """CSV download of the session log."""
    body = stats.export_csv(
        db,
        network=network,
        start_date=start_date,
        end_date=end_date,
        role=role,
        language=language,
    )
    filename = f"ussd-sessions-{utcnow().strftime('%Y%m%d')}.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
