"""Request-scoped helpers shared by the route modules."""

import json
from typing import Any, Optional

from fastapi import Request

from services.feed_client import FeedClient
from services.membership import MembershipValidator


def get_feed_client(request: Request) -> FeedClient:
    """Feed client created at startup."""
    return request.app.state.feed_client


def get_validator(request: Request) -> MembershipValidator:
    """Membership validator (cache + rate limiter) created at startup."""
    return request.app.state.validator


async def read_json_body(request: Request) -> tuple[Optional[dict[str, Any]], bool]:
    """
    Parse the request body as a JSON object.

    Returns (body, ok). An empty body is ({}, True); anything that is not
    a JSON object is (None, False).
    """
    raw = await request.body()
    if not raw.strip():
        return {}, True

    try:
        body = json.loads(raw)
    except ValueError:
        return None, False

    if not isinstance(body, dict):
        return None, False
    return body, True
