"""Tests for fixed-window rate limiting and client IP keys."""
import threading

import pytest

from persona_proxy.api.middleware import normalize_ip, session_rate_key
from persona_proxy.services.rate_limiter import FixedWindowRateLimiter, RateLimitExceeded


class TestFixedWindow:
    def test_admits_up_to_limit_then_rejects(self, clock):
        limiter = FixedWindowRateLimiter(10, 3600, clock=clock)
        assert all(limiter.hit("1.2.3.4") for _ in range(10))
        assert limiter.hit("1.2.3.4") is False

    def test_new_window_after_expiry(self, clock):
        limiter = FixedWindowRateLimiter(10, 3600, clock=clock)
        for _ in range(11):
            limiter.hit("ip")
        clock.advance(3600)
        # Exactly at the boundary the old window is still in force
        assert limiter.hit("ip") is False
        clock.advance(1)
        assert limiter.hit("ip") is True

    def test_window_restarts_at_next_arrival(self, clock):
        limiter = FixedWindowRateLimiter(2, 60, clock=clock)
        limiter.hit("k")
        clock.advance(100)
        assert limiter.hit("k")  # opens a window at t+100
        clock.advance(50)
        assert limiter.hit("k")
        assert not limiter.hit("k")
        clock.advance(11)
        assert limiter.hit("k")

    def test_keys_are_independent(self, clock):
        limiter = FixedWindowRateLimiter(1, 60, clock=clock)
        assert limiter.hit("a")
        assert not limiter.hit("a")
        assert limiter.hit("b")

    def test_check_raises_with_fixed_retry_after(self, clock):
        limiter = FixedWindowRateLimiter(1, 60, clock=clock)
        limiter.check("k")
        clock.advance(59)
        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("k")
        # Advisory value, not the time actually remaining
        assert exc_info.value.retry_after == 60

    def test_prune_expired(self, clock):
        limiter = FixedWindowRateLimiter(5, 60, clock=clock)
        limiter.hit("old")
        clock.advance(30)
        limiter.hit("fresh")
        clock.advance(31)
        assert limiter.prune_expired() == 1
        assert len(limiter) == 1

    def test_max_keys_evicts_least_recent(self, clock):
        limiter = FixedWindowRateLimiter(1, 60, max_keys=2, clock=clock)
        limiter.hit("a")
        limiter.hit("b")
        limiter.hit("c")
        assert len(limiter) == 2
        # "a" was evicted, so it starts over
        assert limiter.hit("a")

    def test_reset_clears_windows(self, clock):
        limiter = FixedWindowRateLimiter(1, 60, clock=clock)
        limiter.hit("k")
        limiter.reset()
        assert limiter.hit("k")

    @pytest.mark.parametrize("limit,window", [(0, 60), (1, 0)])
    def test_rejects_invalid_configuration(self, limit, window):
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(limit, window)

    def test_concurrent_hits_never_over_admit(self):
        limiter = FixedWindowRateLimiter(50, 3600)
        admitted = []
        lock = threading.Lock()

        def worker():
            for _ in range(25):
                ok = limiter.hit("shared")
                with lock:
                    admitted.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert admitted.count(True) == 50
        assert admitted.count(False) == 150


class TestClientKeys:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("203.0.113.7", "203.0.113.7"),
            (" 203.0.113.7 ", "203.0.113.7"),
            ("::ffff:203.0.113.7", "203.0.113.7"),
            ("2001:db8:1:2:3:4:5:6", "2001:db8:1:2::/64"),
            ("2001:db8:1:2:ffff::1", "2001:db8:1:2::/64"),
            (None, "unknown"),
            ("", "unknown"),
            ("testclient", "testclient"),
        ],
    )
    def test_normalize_ip(self, raw, expected):
        assert normalize_ip(raw) == expected

    def test_session_key_uses_session_id(self):
        assert session_rate_key("abc", "1.2.3.4") == "session:abc"

    @pytest.mark.parametrize("session_id", [None, "", 42, ["abc"]])
    def test_session_key_falls_back_to_ip(self, session_id):
        assert session_rate_key(session_id, "1.2.3.4") == "ip:1.2.3.4"
