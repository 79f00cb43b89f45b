"""
Case-Management API Gateways — REST adapters for the collaborator interfaces.

Talks to the NGO case-management backend over HTTP with a service token.
Payloads on the wire use the backend's camelCase field names; this module
owns the translation to and from the engine's records. Calls are made once;
there is no retry here, a failed submit surfaces to the menu engine as a
GatewayError and the caller starts over on a fresh session.
"""
from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

import httpx
import structlog

from ussd_engine.constants import Language, UserRole
from ussd_engine.gateways.base import (
    BeneficiaryGateway, ContactGateway, ContactRecord, GatewayRejected,
    GatewayUnavailable, Gateways, GoalGateway, GoalRecord, IdentityGateway,
    NewContact, NewGoal, TrackingGateway, TrackingPayload, TrackingRecord,
    UserRecord,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CaseApiClient:
    """Thin JSON client shared by the REST gateways."""

    def __init__(self, base_url: str, token: str = "", timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def request(self, method: str, path: str, *, allow_404: bool = False, **kwargs) -> Any:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("case_api_unreachable", method=method, path=path, error=str(e))
            raise GatewayUnavailable(f"{method} {path}: {e}") from e

        if allow_404 and response.status_code == 404:
            return None
        if response.status_code >= 500:
            logger.error("case_api_server_error", method=method, path=path, status=response.status_code)
            raise GatewayUnavailable(f"{method} {path}: HTTP {response.status_code}")
        if response.status_code >= 400:
            logger.warning("case_api_rejected", method=method, path=path,
                           status=response.status_code, body=response.text[:200])
            raise GatewayRejected(f"{method} {path}: HTTP {response.status_code}")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error("case_api_bad_json", method=method, path=path, error=str(e))
            raise GatewayUnavailable(f"{method} {path}: response is not JSON") from e

    def close(self) -> None:
        self.client.close()


def _unwrap(result: Any) -> Any:
    """The backend wraps most payloads as {"data": ...}."""
    if isinstance(result, dict) and "data" in result:
        return result["data"]
    return result


def _parse(build: Callable[[Any], T], raw: Any, record: str) -> T:
    """Map a wire payload; a payload the records cannot hold is a collaborator failure."""
    try:
        return build(raw)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.error("case_api_bad_payload", record=record, error=str(e))
        raise GatewayUnavailable(f"malformed {record} payload: {e}") from e


def _user_from_wire(raw: dict) -> UserRecord:
    return UserRecord(
        id=str(raw["id"]),
        phone=raw["phone"],
        role=UserRole(raw.get("userType", raw.get("role"))),
        language=Language(raw["language"]) if raw.get("language") else None,
    )


def _goal_from_wire(raw: dict) -> GoalRecord:
    return GoalRecord(
        id=str(raw["id"]),
        type=raw.get("type", "personal"),
        description=raw.get("description", ""),
        target_amount=float(raw.get("targetAmount") or 0),
        current_progress=float(raw.get("currentProgress") or 0),
        status=raw.get("status", "not_started"),
        target_date=str(raw.get("targetDate", ""))[:10],
    )


def _contact_from_wire(raw: dict) -> ContactRecord:
    return ContactRecord(
        id=str(raw["id"]),
        name=raw.get("name", ""),
        phone=raw.get("phone", ""),
        relationship=raw.get("relationship") or "",
        address=raw.get("address") or "",
        is_primary=bool(raw.get("isPrimary")),
    )


class HttpIdentityGateway(IdentityGateway):

    def __init__(self, api: CaseApiClient):
        self.api = api

    def find_by_phone(self, phone: str) -> Optional[UserRecord]:
        raw = _unwrap(self.api.request("GET", f"/users/by-phone/{phone}", allow_404=True))
        if not raw:
            return None
        return _parse(lambda r: _user_from_wire({"phone": phone, **r}), raw, "user")

    def update_language(self, user_id: str, language: Language) -> None:
        self.api.request("PATCH", f"/users/{user_id}", json={"language": language.value})


class HttpBeneficiaryGateway(BeneficiaryGateway):

    def __init__(self, api: CaseApiClient):
        self.api = api

    def find_beneficiary_by_user_id(self, user_id: str) -> Optional[str]:
        raw = _unwrap(self.api.request("GET", f"/beneficiaries/by-user/{user_id}", allow_404=True))
        return _parse(lambda r: str(r["id"]), raw, "beneficiary") if raw else None


class HttpGoalGateway(GoalGateway):

    def __init__(self, api: CaseApiClient):
        self.api = api

    def list_recent(self, beneficiary_id: str, limit: int) -> list[GoalRecord]:
        raw = _unwrap(self.api.request(
            "GET", f"/beneficiaries/{beneficiary_id}/goals", params={"page": 1, "limit": limit},
        ))
        return _parse(lambda items: [_goal_from_wire(i) for i in items or []], raw, "goal list")[:limit]

    def create(self, beneficiary_id: str, goal: NewGoal) -> GoalRecord:
        raw = _unwrap(self.api.request(
            "POST", f"/beneficiaries/{beneficiary_id}/goals",
            json={
                "type": goal.type.value,
                "description": goal.description,
                "targetAmount": goal.target_amount,
                "targetDate": goal.target_date,
            },
        ))
        return _parse(_goal_from_wire, raw, "goal")


class HttpContactGateway(ContactGateway):

    def __init__(self, api: CaseApiClient):
        self.api = api

    def list_recent(self, beneficiary_id: str, limit: int) -> list[ContactRecord]:
        raw = _unwrap(self.api.request(
            "GET", f"/beneficiaries/{beneficiary_id}/emergency-contacts",
            params={"page": 1, "limit": limit},
        ))
        return _parse(lambda items: [_contact_from_wire(i) for i in items or []], raw, "contact list")[:limit]

    def create(self, beneficiary_id: str, contact: NewContact) -> ContactRecord:
        raw = _unwrap(self.api.request(
            "POST", f"/beneficiaries/{beneficiary_id}/emergency-contacts",
            json={
                "name": contact.name,
                "phone": contact.phone,
                "relationship": contact.relationship,
                "address": contact.address,
                "isPrimary": contact.is_primary,
            },
        ))
        return _parse(_contact_from_wire, raw, "contact")

    def set_primary(self, contact_id: str) -> None:
        self.api.request("PUT", f"/beneficiaries/emergency-contacts/set-primary/{contact_id}")


class HttpTrackingGateway(TrackingGateway):

    def __init__(self, api: CaseApiClient):
        self.api = api

    def submit(
        self,
        beneficiary_id: str,
        payload: TrackingPayload,
        submitter_id: str,
        submitter_role: UserRole,
    ) -> TrackingRecord:
        raw = _unwrap(self.api.request(
            "POST", f"/beneficiaries/{beneficiary_id}/tracking",
            json={
                "weekEnding": payload.week_ending,
                "attendance": payload.attendance.value,
                "incomeThisWeek": payload.income_this_week,
                "expensesThisWeek": payload.expenses_this_week,
                "currentCapital": payload.current_capital,
                "challenges": payload.challenges,
                "solutionsImplemented": payload.solutions_implemented,
                "notes": payload.notes,
                "isOfflineSync": payload.is_offline_sync,
                "submittedBy": submitter_id,
                "submitterRole": submitter_role.value,
            },
        ))
        return TrackingRecord(
            id=_parse(lambda r: str((r or {}).get("id", "")), raw, "tracking"),
            beneficiary_id=beneficiary_id,
            submitted_by=submitter_id,
            submitter_role=submitter_role,
            payload=payload,
        )


def http_gateways(api: CaseApiClient) -> Gateways:
    return Gateways(
        identity=HttpIdentityGateway(api),
        beneficiaries=HttpBeneficiaryGateway(api),
        goals=HttpGoalGateway(api),
        contacts=HttpContactGateway(api),
        tracking=HttpTrackingGateway(api),
    )
