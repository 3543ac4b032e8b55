"""Tests for email membership validation, the feed cache and the rate limiter."""

import threading

import pytest

from services.feed_cache import FeedCache
from services.feed_client import FeedUnavailableError
from services.membership import (
    MSG_EMAIL_REQUIRED,
    MSG_INVALID_FORMAT,
    MSG_NOT_REGISTERED,
    MSG_RATE_LIMITED,
    MSG_UNAVAILABLE,
    MembershipValidator,
    client_ip_from_headers,
    is_valid_email,
)
from services.rate_limiter import RateLimiter


@pytest.fixture
def make_validator(fake_clock):
    def _make(feed, max_requests=5, window_seconds=60, ttl_seconds=300):
        return MembershipValidator(
            feed_client=feed,
            cache=FeedCache(ttl_seconds=ttl_seconds, clock=fake_clock),
            rate_limiter=RateLimiter(max_requests, window_seconds, clock=fake_clock),
        )
    return _make


class TestRateLimiter:
    """Tests for the fixed-window limiter."""

    def test_allows_up_to_limit(self, fake_clock):
        limiter = RateLimiter(max_requests=3, window_seconds=60, clock=fake_clock)
        assert [limiter.allow("1.2.3.4") for _ in range(4)] == [True, True, True, False]

    def test_keys_are_independent(self, fake_clock):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=fake_clock)
        assert limiter.allow("a")
        assert not limiter.allow("a")
        assert limiter.allow("b")

    def test_window_resets(self, fake_clock):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=fake_clock)
        assert limiter.allow("a")
        fake_clock.advance(59)
        assert not limiter.allow("a")
        fake_clock.advance(1)
        assert limiter.allow("a")

    def test_rejections_do_not_extend_window(self, fake_clock):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=fake_clock)
        limiter.allow("a")
        for _ in range(10):
            fake_clock.advance(5)
            limiter.allow("a")
        fake_clock.advance(10)
        assert limiter.allow("a")

    def test_expired_windows_pruned(self, fake_clock):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=fake_clock)
        limiter.allow("a")
        fake_clock.advance(61)
        limiter.allow("b")
        assert set(limiter._windows) == {"b"}

    def test_reset(self, fake_clock):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=fake_clock)
        limiter.allow("a")
        limiter.reset()
        assert limiter.allow("a")


class TestFeedCache:
    """Tests for the single-slot TTL cache."""

    def test_loads_once_within_ttl(self, fake_clock):
        cache = FeedCache(ttl_seconds=300, clock=fake_clock)
        calls = []

        def loader():
            calls.append(1)
            return ["row"]

        assert cache.get_or_load(loader) == ["row"]
        fake_clock.advance(299)
        assert cache.get_or_load(loader) == ["row"]
        assert len(calls) == 1

    def test_reloads_after_expiry(self, fake_clock):
        cache = FeedCache(ttl_seconds=300, clock=fake_clock)
        values = iter([["old"], ["new"]])

        assert cache.get_or_load(lambda: next(values)) == ["old"]
        fake_clock.advance(300)
        assert cache.get_or_load(lambda: next(values)) == ["new"]

    def test_failed_load_not_cached(self, fake_clock):
        cache = FeedCache(ttl_seconds=300, clock=fake_clock)

        def failing():
            raise FeedUnavailableError("Unable to fetch member data")

        with pytest.raises(FeedUnavailableError):
            cache.get_or_load(failing)
        assert cache.get_or_load(lambda: ["ok"]) == ["ok"]

    def test_concurrent_callers_share_one_load(self, fake_clock):
        """A caller arriving mid-load waits for it instead of fetching again."""
        cache = FeedCache(ttl_seconds=300, clock=fake_clock)
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow_loader():
            calls.append(1)
            started.set()
            release.wait(timeout=5)
            return ["row"]

        results = []
        first = threading.Thread(target=lambda: results.append(cache.get_or_load(slow_loader)))
        first.start()
        started.wait(timeout=5)
        second = threading.Thread(target=lambda: results.append(cache.get_or_load(slow_loader)))
        second.start()
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert results == [["row"], ["row"]]
        assert len(calls) == 1

    def test_invalidate(self, fake_clock):
        cache = FeedCache(ttl_seconds=300, clock=fake_clock)
        cache.get_or_load(lambda: ["old"])
        cache.invalidate()
        assert cache.get_or_load(lambda: ["new"]) == ["new"]


class TestHelpers:
    """Tests for email format and client identification."""

    @pytest.mark.parametrize("email", ["a@b.co", "first.last+tag@society.example.in"])
    def test_valid_emails(self, email):
        assert is_valid_email(email)

    @pytest.mark.parametrize("email", ["plain", "a@b", "a b@c.com", "@b.com", "a@.com@"])
    def test_invalid_emails(self, email):
        assert not is_valid_email(email)

    def test_client_ip_forwarded_first_entry(self):
        headers = {"x-forwarded-for": "203.0.113.7, 10.0.0.1"}
        assert client_ip_from_headers(headers) == "203.0.113.7"

    def test_client_ip_real_ip(self):
        assert client_ip_from_headers({"x-real-ip": "198.51.100.2"}) == "198.51.100.2"

    def test_client_ip_unknown(self):
        assert client_ip_from_headers({}) == "unknown"


class TestMembershipValidator:
    """Tests for MembershipValidator.validate."""

    def test_hit_is_case_insensitive(self, fake_feed, make_validator):
        validator = make_validator(fake_feed)
        outcome = validator.validate("ASHA@example.COM", "1.1.1.1")

        assert outcome.status_code == 200
        assert outcome.valid is True
        assert outcome.member.member_id == "M001"
        assert outcome.to_dict()["member"]["flatNo"] == "101"

    def test_miss_is_generic(self, fake_feed, make_validator):
        outcome = make_validator(fake_feed).validate("nobody@example.com", "1.1.1.1")
        assert outcome.status_code == 200
        assert outcome.to_dict() == {"valid": False, "error": MSG_NOT_REGISTERED}

    def test_unknown_name_row_still_a_member(self, fake_feed, make_validator):
        """Membership only needs an email on the sheet."""
        outcome = make_validator(fake_feed).validate("ghost@example.com", "1.1.1.1")
        assert outcome.valid is True

    @pytest.mark.parametrize("email", [None, "", 42])
    def test_missing_email(self, fake_feed, make_validator, email):
        outcome = make_validator(fake_feed).validate(email, "1.1.1.1")
        assert outcome.status_code == 400
        assert outcome.error == MSG_EMAIL_REQUIRED
        assert fake_feed.calls == 0

    @pytest.mark.parametrize("email", ["not-an-email", "   ", " asha@example.com ", "asha@example.com\n"])
    def test_invalid_format(self, fake_feed, make_validator, email):
        """The format check runs on the value as sent, so padded addresses are rejected."""
        outcome = make_validator(fake_feed).validate(email, "1.1.1.1")
        assert outcome.status_code == 400
        assert outcome.error == MSG_INVALID_FORMAT
        assert fake_feed.calls == 0

    def test_sixth_request_rate_limited(self, fake_feed, make_validator):
        validator = make_validator(fake_feed)
        outcomes = [validator.validate("asha@example.com", "9.9.9.9") for _ in range(6)]

        assert [o.status_code for o in outcomes] == [200] * 5 + [429]
        assert outcomes[-1].error == MSG_RATE_LIMITED

    def test_rate_limit_checked_before_body(self, fake_feed, make_validator):
        """An over-limit client gets 429 even for a malformed request."""
        validator = make_validator(fake_feed, max_requests=1)
        validator.validate("asha@example.com", "9.9.9.9")
        assert validator.validate(None, "9.9.9.9").status_code == 429

    def test_rate_limit_resets_after_window(self, fake_feed, fake_clock, make_validator):
        validator = make_validator(fake_feed, max_requests=1)
        validator.validate("asha@example.com", "9.9.9.9")
        assert validator.validate("asha@example.com", "9.9.9.9").status_code == 429

        fake_clock.advance(60)
        assert validator.validate("asha@example.com", "9.9.9.9").status_code == 200

    def test_single_fetch_within_ttl(self, fake_feed, make_validator):
        validator = make_validator(fake_feed)
        validator.validate("asha@example.com", "a")
        validator.validate("vikram@example.com", "b")
        validator.validate("nobody@example.com", "c")
        assert fake_feed.calls == 1

    def test_refetch_after_ttl(self, fake_feed, fake_clock, make_validator):
        validator = make_validator(fake_feed)
        validator.validate("asha@example.com", "a")
        fake_clock.advance(301)
        validator.validate("asha@example.com", "a")
        assert fake_feed.calls == 2

    def test_feed_failure_is_503(self, feed_factory, make_validator):
        feed = feed_factory(error=FeedUnavailableError("Unable to fetch member data"))
        outcome = make_validator(feed).validate("asha@example.com", "1.1.1.1")

        assert outcome.status_code == 503
        assert outcome.to_dict() == {"valid": False, "error": MSG_UNAVAILABLE}

    def test_feed_failure_not_cached(self, feed_factory, sample_feed_text, make_validator):
        feed = feed_factory(error=FeedUnavailableError("Unable to fetch member data"))
        validator = make_validator(feed)
        assert validator.validate("asha@example.com", "1.1.1.1").status_code == 503

        feed.error = None
        feed.text = sample_feed_text
        assert validator.validate("asha@example.com", "1.1.1.1").valid is True

    def test_find_member(self, fake_feed, make_validator):
        validator = make_validator(fake_feed)
        assert validator.find_member("Meena@Example.com").name == "Iyer, Meena"
        assert validator.find_member("nobody@example.com") is None
