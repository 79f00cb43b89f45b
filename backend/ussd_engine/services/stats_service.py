"""
USSD Stats Service — reporting over the session log.

Read-only. Counts come from SQL where the filter can be expressed in SQL;
network lives inside the JSON metadata column, so that filter and the
per-network breakdown run in Python over the selected rows.
"""
import csv
import io
from calendar import monthrange
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Query, Session

from ussd_engine.models.ussd_session import UssdSession
from ussd_engine.utils.clock import utcnow

TOP_MENUS_LIMIT = 10

CSV_HEADERS = [
    "Session ID",
    "Phone Number",
    "User Type",
    "Language",
    "Menu State",
    "Step Count",
    "Is Active",
    "Created At",
    "Last Interaction",
    "Completed At",
    "Duration (seconds)",
    "Network",
    "Error Count",
]


def _month_before(day: date) -> date:
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    return day.replace(year=year, month=month, day=min(day.day, monthrange(year, month)[1]))


def _network(row: UssdSession) -> Optional[str]:
    return (row.session_metadata or {}).get("network_code")


def _error_count(row: UssdSession) -> int:
    return int((row.session_metadata or {}).get("error_count") or 0)


def _average(values: List[float]) -> float:
    return round(sum(values) / len(values), 1) if values else 0.0


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


class UssdStatsService:
    """Aggregates for the admin dashboard and CSV export."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    # ──────────────── Filtering ────────────────

    @staticmethod
    def _filtered(
        db: Session,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        role: Optional[str] = None,
        language: Optional[str] = None,
    ) -> Query:
        query = db.query(UssdSession)
        if start_date:
            query = query.filter(UssdSession.created_at >= start_date)
        if end_date:
            query = query.filter(UssdSession.created_at <= end_date)
        if role:
            query = query.filter(UssdSession.user_role == role)
        if language:
            query = query.filter(UssdSession.language == language)
        return query

    def _rows(self, db: Session, network: Optional[str] = None, **filters) -> List[UssdSession]:
        rows = self._filtered(db, **filters).order_by(UssdSession.created_at.desc()).all()
        if network:
            rows = [r for r in rows if _network(r) == network]
        return rows

    # ──────────────── Dashboard ────────────────

    def statistics(self, db: Session, network: Optional[str] = None, **filters) -> Dict:
        rows = self._rows(db, network=network, **filters)
        total = len(rows)

        today = datetime.combine(self.clock().date(), datetime.min.time())
        week_ago = today - timedelta(days=7)
        month_ago = datetime.combine(_month_before(today.date()), datetime.min.time())

        completed = [r for r in rows if r.completed_at is not None]
        durations = [r.duration_seconds for r in completed if r.duration_seconds is not None]

        top_menus = Counter(r.menu_state for r in rows).most_common(TOP_MENUS_LIMIT)
        peak_hours = Counter(r.created_at.hour for r in rows)

        return {
            "total_sessions": total,
            "active_sessions": sum(1 for r in rows if r.is_active),
            "completed_sessions": len(completed),
            "sessions_today": sum(1 for r in rows if r.created_at >= today),
            "sessions_this_week": sum(1 for r in rows if r.created_at >= week_ago),
            "sessions_this_month": sum(1 for r in rows if r.created_at >= month_ago),
            "average_steps": _average([r.step_count or 0 for r in rows]),
            "average_duration_seconds": _average(durations),
            "by_role": dict(Counter(r.user_role or "unknown" for r in rows)),
            "by_language": dict(Counter(r.language or "unknown" for r in rows)),
            "by_network": dict(Counter(_network(r) or "unknown" for r in rows)),
            "completion_rate": _percent(len(completed), total),
            "error_rate": _percent(sum(1 for r in rows if _error_count(r) > 0), total),
            "top_menus": [{"menu": menu, "count": count} for menu, count in top_menus],
            "peak_hours": [{"hour": hour, "count": peak_hours[hour]} for hour in sorted(peak_hours)],
        }

    # ──────────────── Session lists ────────────────

    @staticmethod
    def list_sessions(
        db: Session,
        page: int = 1,
        limit: int = 20,
        is_active: Optional[bool] = None,
        role: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> Dict:
        query = db.query(UssdSession)
        if is_active is not None:
            query = query.filter(UssdSession.is_active.is_(is_active))
        if role:
            query = query.filter(UssdSession.user_role == role)
        if phone_number:
            query = query.filter(UssdSession.phone_number == phone_number)

        total = query.count()
        sessions = (
            query.order_by(UssdSession.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": (total + limit - 1) // limit if limit else 0,
            "sessions": sessions,
        }

    @staticmethod
    def get_session(db: Session, row_id: str) -> Optional[UssdSession]:
        return db.query(UssdSession).filter(UssdSession.id == row_id).first()

    # ──────────────── Summaries ────────────────

    def daily_summary(self, db: Session, days: int = 7) -> List[Dict]:
        start = datetime.combine(self.clock().date() - timedelta(days=days), datetime.min.time())
        rows = db.query(UssdSession).filter(UssdSession.created_at >= start).all()

        by_day: Dict[str, List[UssdSession]] = defaultdict(list)
        for row in rows:
            by_day[row.created_at.date().isoformat()].append(row)

        return [
            {
                "date": day,
                "total": len(day_rows),
                "completed": sum(1 for r in day_rows if r.completed_at is not None),
                "active": sum(1 for r in day_rows if r.is_active),
                "errors": sum(_error_count(r) for r in day_rows),
                "average_steps": _average([r.step_count or 0 for r in day_rows]),
            }
            for day, day_rows in sorted(by_day.items(), reverse=True)
        ]

    @staticmethod
    def menu_statistics(db: Session) -> List[Dict]:
        """Where sessions currently sit (or ended), with time spent up to the last turn."""
        rows = db.query(UssdSession).all()
        total = len(rows)

        by_menu: Dict[str, List[UssdSession]] = defaultdict(list)
        for row in rows:
            by_menu[row.menu_state].append(row)

        stats = [
            {
                "menu": menu,
                "sessions": len(menu_rows),
                "percentage": _percent(len(menu_rows), total),
                "currently_active": sum(1 for r in menu_rows if r.is_active),
                "ended_here": sum(1 for r in menu_rows if not r.is_active),
                "average_seconds": _average([
                    (r.last_interaction_at - r.created_at).total_seconds() for r in menu_rows
                ]),
            }
            for menu, menu_rows in by_menu.items()
        ]
        return sorted(stats, key=lambda s: (-s["sessions"], s["menu"]))

    # ──────────────── Export ────────────────

    def export_csv(self, db: Session, network: Optional[str] = None, **filters) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)

        for row in self._rows(db, network=network, **filters):
            duration = row.duration_seconds
            writer.writerow([
                row.session_id,
                row.phone_number,
                row.user_role or "",
                row.language,
                row.menu_state,
                row.step_count,
                "Yes" if row.is_active else "No",
                row.created_at.isoformat(),
                row.last_interaction_at.isoformat(),
                row.completed_at.isoformat() if row.completed_at else "",
                duration if duration is not None else "",
                _network(row) or "",
                _error_count(row),
            ])
        return buffer.getvalue()
