"""Services for the housing society backend."""

from services.feed_parser import parse_feed, split_fields, normalize_header
from services.feed_client import FeedClient, FeedUnavailableError
from services.feed_cache import FeedCache
from services.rate_limiter import RateLimiter
from services.reconciler import (
    collect_sheet_members,
    normalize_status,
    reconcile,
    summarize,
)
from services.membership import (
    MembershipValidator,
    ValidationOutcome,
    client_ip_from_headers,
)

__all__ = [
    # Feed
    "parse_feed",
    "split_fields",
    "normalize_header",
    "FeedClient",
    "FeedUnavailableError",
    "FeedCache",
    # Reconciliation
    "reconcile",
    "summarize",
    "normalize_status",
    "collect_sheet_members",
    # Membership
    "RateLimiter",
    "MembershipValidator",
    "ValidationOutcome",
    "client_ip_from_headers",
]
