"""
USSD Routes — the gateway callback.

The gateway posts form fields (sessionId, phoneNumber, serviceCode, text,
networkCode); JSON bodies with the same fields are accepted too. The reply
is plain text starting with CON or END.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ussd_engine.database import get_db
from ussd_engine.schemas.schemas import UssdRequest
from ussd_engine.services.ussd_service import UssdService, get_ussd_service

router = APIRouter(prefix="/api/ussd", tags=["USSD"])


async def _read_payload(request: Request) -> dict:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        body = await request.json()
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Expected a JSON object")
        return body
    form = await request.form()
    return dict(form)


@router.post("", response_class=PlainTextResponse)
async def ussd_callback(
    request: Request,
    db: Session = Depends(get_db),
    service: UssdService = Depends(get_ussd_service),
):
    """Process one USSD turn and return the CON/END text."""
    try:
        payload = UssdRequest.model_validate(await _read_payload(request))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    text = await run_in_threadpool(service.handle, db, payload)
    return PlainTextResponse(text)
