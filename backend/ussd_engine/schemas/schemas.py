"""
Pydantic Schemas — Request/Response validation for all API endpoints.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─── USSD Gateway ────────────────────────────────────────────────────

class UssdRequest(BaseModel):
    """One gateway callback. Field names follow the gateway's camelCase form fields."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=255)
    phone_number: str = Field(..., alias="phoneNumber", min_length=1, max_length=20)
    service_code: str = Field(..., alias="serviceCode", min_length=1, max_length=50)
    text: str = Field("", description="Full '*'-joined input chain for this session")
    network_code: Optional[str] = Field(None, alias="networkCode")

    @field_validator("text", mode="before")
    @classmethod
    def null_text_is_empty(cls, value):
        return "" if value is None else value

    def metadata(self) -> Dict:
        return {"service_code": self.service_code, "network_code": self.network_code}


# ─── Stats ───────────────────────────────────────────────────────────

class MenuVisit(BaseModel):
    menu: str
    count: int


class HourCount(BaseModel):
    hour: int
    count: int


class UssdStatsResponse(BaseModel):
    total_sessions: int
    active_sessions: int
    completed_sessions: int
    sessions_today: int
    sessions_this_week: int
    sessions_this_month: int
    average_steps: float
    average_duration_seconds: float
    by_role: Dict[str, int]
    by_language: Dict[str, int]
    by_network: Dict[str, int]
    completion_rate: float
    error_rate: float
    top_menus: List[MenuVisit]
    peak_hours: List[HourCount]


class UssdSessionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    phone_number: str
    menu_state: str
    user_id: Optional[str] = None
    user_role: Optional[str] = None
    language: str
    step_count: int
    is_active: bool
    created_at: datetime
    last_interaction_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None


class UssdSessionDetail(UssdSessionSummary):
    beneficiary_id: Optional[str] = None
    expires_at: datetime
    flow_data: Optional[Dict] = None
    session_metadata: Optional[Dict] = None


class UssdSessionPage(BaseModel):
    total: int
    page: int
    limit: int
    pages: int
    sessions: List[UssdSessionSummary]


class DailySummary(BaseModel):
    date: str
    total: int
    completed: int
    active: int
    errors: int
    average_steps: float


class MenuStat(BaseModel):
    menu: str
    sessions: int
    percentage: float
    currently_active: int
    ended_here: int
    average_seconds: float


# ─── Health ──────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    database: str
    gateways: str
