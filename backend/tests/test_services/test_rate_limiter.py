"""Tests for the in-memory fixed-window rate limiter."""

from types import SimpleNamespace

from stayfinder.ratelimit import RateLimiter, client_ip


class TestRateLimiter:
    def test_counts_down_then_blocks(self):
        limiter = RateLimiter()
        results = [limiter.hit("auth:1.2.3.4", limit=2, window_seconds=60, now=1000.0) for _ in range(3)]

        assert [r.allowed for r in results] == [True, True, False]
        assert [r.remaining for r in results] == [1, 0, 0]
        assert results[2].reset_at == 1060.0

    def test_window_resets(self):
        limiter = RateLimiter()
        limiter.hit("k", limit=1, window_seconds=60, now=1000.0)
        assert not limiter.hit("k", limit=1, window_seconds=60, now=1030.0).allowed
        assert limiter.hit("k", limit=1, window_seconds=60, now=1061.0).allowed

    def test_keys_are_independent(self):
        limiter = RateLimiter()
        limiter.hit("auth:a", limit=1, window_seconds=60, now=0.0)
        assert limiter.hit("auth:b", limit=1, window_seconds=60, now=0.0).allowed
        assert limiter.hit("general:a", limit=1, window_seconds=60, now=0.0).allowed

    def test_purge_expired(self):
        limiter = RateLimiter()
        limiter.hit("old", limit=5, window_seconds=10, now=0.0)
        limiter.hit("new", limit=5, window_seconds=100, now=0.0)

        assert limiter.purge_expired(now=50.0) == 1
        assert len(limiter) == 1


class TestClientIp:
    def test_forwarded_for_first_hop(self):
        request = SimpleNamespace(
            headers={"x-forwarded-for": "203.0.113.9, 10.0.0.1"},
            client=SimpleNamespace(host="10.0.0.1"),
        )
        assert client_ip(request) == "203.0.113.9"

    def test_falls_back_to_peer(self):
        request = SimpleNamespace(headers={}, client=SimpleNamespace(host="198.51.100.4"))
        assert client_ip(request) == "198.51.100.4"

    def test_unknown(self):
        assert client_ip(SimpleNamespace(headers={}, client=None)) == "unknown"
