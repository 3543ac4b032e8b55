"""
Email Membership Check

POST /api/validate-sheet-email {"email": "..."}
    -> {"valid": true, "member": {...}} or {"valid": false, "error": "..."}

Unauthenticated, rate limited per client IP.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.dependencies import get_validator, read_json_body
from services.membership import MembershipValidator, client_ip_from_headers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Members"])


@router.post("/validate-sheet-email")
async def validate_sheet_email(
    request: Request,
    validator: MembershipValidator = Depends(get_validator),
):
    """Check whether an email belongs to a registered society member."""
    client_id = client_ip_from_headers(request.headers)

    body, ok = await read_json_body(request)
    if not ok:
        return JSONResponse(status_code=400, content={"valid": False, "error": "Invalid request body"})

    try:
        outcome = await run_in_threadpool(validator.validate, body.get("email"), client_id)
    except Exception:
        logger.exception("Error validating email")
        return JSONResponse(
            status_code=500,
            content={"valid": False, "error": "An error occurred. Please try again."},
        )

    return JSONResponse(status_code=outcome.status_code, content=outcome.to_dict())
