"""
Email membership validation.

Answers "is this email a registered society member" against the member
feed, returning the minimal profile projection on success. Lookups go
through a TTL cache of the parsed feed and are rate limited per client.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from core.config import AppConfig
from core.logging_config import mask_email
from models.society import SheetMember
from services.feed_cache import FeedCache
from services.feed_client import FeedClient, FeedUnavailableError
from services.rate_limiter import RateLimiter
from services.reconciler import collect_sheet_members

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

UNKNOWN_CLIENT = "unknown"

MSG_RATE_LIMITED = "Too many requests. Please try again later."
MSG_EMAIL_REQUIRED = "Email is required"
MSG_INVALID_FORMAT = "Invalid email format"
MSG_UNAVAILABLE = "Unable to verify email at this time. Please try again later."
# Same wording whether or not the address exists anywhere else
MSG_NOT_REGISTERED = (
    "This email is not registered with the society. "
    "Please contact your society manager."
)


@dataclass
class ValidationOutcome:
    """Result of a membership check, with the HTTP status it maps to."""
    status_code: int
    valid: bool
    member: Optional[SheetMember] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        body: dict = {"valid": self.valid}
        if self.member is not None:
            body["member"] = self.member.to_dict()
        if self.error:
            body["error"] = self.error
        return body


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.fullmatch(email))


def client_ip_from_headers(headers: Mapping[str, str]) -> str:
    """Client identifier from proxy headers; all unidentified clients share one bucket."""
    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (headers.get("x-real-ip") or "").strip()
    return real_ip or UNKNOWN_CLIENT


class MembershipValidator:
    """Check candidate emails against the member feed."""

    def __init__(self, feed_client: FeedClient, cache: FeedCache, rate_limiter: RateLimiter):
        self.feed_client = feed_client
        self.cache = cache
        self.rate_limiter = rate_limiter

    @classmethod
    def from_config(cls, config: AppConfig) -> "MembershipValidator":
        return cls(
            feed_client=FeedClient.from_config(config.feed),
            cache=FeedCache(ttl_seconds=config.feed.cache_ttl_seconds),
            rate_limiter=RateLimiter(
                max_requests=config.rate_limit.max_requests,
                window_seconds=config.rate_limit.window_seconds,
            ),
        )

    def _load_members(self) -> list[SheetMember]:
        rows = self.feed_client.fetch_rows()
        members = collect_sheet_members(rows)
        logger.info(f"Loaded {len(members)} member emails from feed")
        return members

    def sheet_members(self) -> list[SheetMember]:
        """Cached member projections. Raises FeedUnavailableError on upstream failure."""
        return self.cache.get_or_load(self._load_members)

    def find_member(self, email: str) -> Optional[SheetMember]:
        """Case-insensitive exact lookup, without rate limiting."""
        normalized = email.strip().lower()
        for member in self.sheet_members():
            if member.email == normalized:
                return member
        return None

    def validate(self, email: Any, client_id: str = UNKNOWN_CLIENT) -> ValidationOutcome:
        """Rate limit, validate format, then look up ``email``."""
        if not self.rate_limiter.allow(client_id):
            return ValidationOutcome(status_code=429, valid=False, error=MSG_RATE_LIMITED)

        if not email or not isinstance(email, str):
            return ValidationOutcome(status_code=400, valid=False, error=MSG_EMAIL_REQUIRED)

        # Format is checked on the raw value; surrounding whitespace is rejected
        if not is_valid_email(email):
            return ValidationOutcome(status_code=400, valid=False, error=MSG_INVALID_FORMAT)

        normalized = email.strip().lower()

        try:
            member = self.find_member(normalized)
        except FeedUnavailableError:
            logger.error("Membership check failed: member feed unavailable")
            return ValidationOutcome(status_code=503, valid=False, error=MSG_UNAVAILABLE)

        if member is None:
            logger.info(f"Membership check miss for {mask_email(normalized)}")
            return ValidationOutcome(status_code=200, valid=False, error=MSG_NOT_REGISTERED)

        logger.info(f"Membership check hit for {mask_email(normalized)}")
        return ValidationOutcome(status_code=200, valid=True, member=member)
