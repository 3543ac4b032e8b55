"""
Member Sync Endpoint

POST /api/sheets-sync
    {"action": "read"}  -> members and synthesized bills from the member sheet
    {"action": "write"} -> not available without service account credentials

Requires a bearer token. Every read fetches the sheet afresh and
rebuilds the whole member/bill collection.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.auth import AuthUser, get_current_user
from api.dependencies import get_feed_client, read_json_body
from core.config import get_config
from services.feed_client import FeedClient, FeedUnavailableError
from services.reconciler import reconcile, summarize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Members"])

MSG_UNAUTHORIZED = "Unauthorized"
MSG_BAD_BODY = "Invalid request body"
MSG_INVALID_ACTION = "Invalid action"
MSG_UNAVAILABLE = "Unable to sync member data at this time. Please try again later."
MSG_INTERNAL = "An error occurred. Please try again."
MSG_WRITE_UNSUPPORTED = (
    "Write operations require Google Service Account credentials. "
    "Please add GOOGLE_SERVICE_ACCOUNT_KEY secret to enable write functionality."
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.post("/sheets-sync")
async def sheets_sync(
    request: Request,
    user: Optional[AuthUser] = Depends(get_current_user),
    feed_client: FeedClient = Depends(get_feed_client),
):
    """
    Sync members from the society spreadsheet.

    Returns members in sheet order, bills derived from each member's
    maintenance status and dues, and dashboard dues figures.
    """
    if user is None:
        return _error(401, MSG_UNAUTHORIZED)

    body, ok = await read_json_body(request)
    if not ok:
        return _error(400, MSG_BAD_BODY)

    action = body.get("action", "read")

    if action == "write":
        return JSONResponse(content={
            "success": False,
            "message": MSG_WRITE_UNSUPPORTED,
            "requiresSecret": True,
        })

    if action != "read":
        return _error(400, MSG_INVALID_ACTION)

    try:
        rows = await run_in_threadpool(feed_client.fetch_rows)
    except FeedUnavailableError:
        logger.error("Member sync failed: member feed unavailable")
        return _error(503, MSG_UNAVAILABLE)

    try:
        result = reconcile(rows, default_amount=get_config().feed.default_maintenance_amount)
        summary = summarize(result.members)
    except Exception:
        logger.exception("Member sync failed while reconciling feed rows")
        return _error(500, MSG_INTERNAL)

    logger.info(f"Synced {len(result.members)} members and {len(result.bills)} bills for {user.user_id[:8]}")

    return {
        "success": True,
        "members": [m.to_dict() for m in result.members],
        "bills": [b.to_dict() for b in result.bills],
        "summary": summary.to_dict(),
    }
