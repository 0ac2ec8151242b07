"""Lead capture endpoints, including the Wix Automations adapter."""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from realty_gateway.dependencies import get_capture_service
from realty_gateway.services.lead_capture import CaptureService, LeadCaptureError, LeadCaptureNotFoundError

router = APIRouter()
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def read_payload(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Bad payload") from exc


def unwrap_wix(payload: Any) -> dict[str, Any]:
    """Wix wraps the form fields in ``{"data": {...}}``; accept both shapes."""

    data = payload
    if isinstance(payload, dict) and payload.get("data") is not None:
        data = payload["data"]
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Bad payload")
    return data


async def _capture(service: CaptureService, api_key: str, data: dict[str, Any]) -> dict[str, Any]:
    if not api_key.strip():
        raise HTTPException(status_code=400, detail="No API key provided.")
    try:
        # Firebase calls are blocking
        result = await run_in_threadpool(service.capture, api_key, data)
    except LeadCaptureNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except LeadCaptureError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.debug("Captured lead %s (%s)", result.lead_id, result.outcome)
    return {"success": True}


# ---------------------------------------------------------------------------
# POST endpoints
# ---------------------------------------------------------------------------


@router.post("/api/v1/LeadCapture/{api_key}")
async def capture_lead(api_key: str, request: Request, service: CaptureService = Depends(get_capture_service)):
    payload = await read_payload(request)
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Bad payload")
    return await _capture(service, api_key, payload)


@router.post("/api/v1/LeadCaptureWix/{api_key}")
async def capture_lead_from_wix(
    api_key: str, request: Request, service: CaptureService = Depends(get_capture_service)
):
    payload = await read_payload(request)
    logger.debug("Wix payload: %s", payload)
    return await _capture(service, api_key, unwrap_wix(payload))
