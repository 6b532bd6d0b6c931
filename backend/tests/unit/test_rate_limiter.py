# backend/tests/unit/test_rate_limiter.py

from djula.utils.rate_limiter import OutboundRateLimiter


def test_sixteenth_send_in_a_window_is_flagged():
    limiter = OutboundRateLimiter(limit=15, window_seconds=60)
    flags = [limiter.register_send("+2250701020304") for _ in range(16)]

    assert flags[:15] == [False] * 15
    assert flags[15] is True
    assert limiter.count("+2250701020304") == 16


def test_customers_are_counted_separately():
    limiter = OutboundRateLimiter(limit=1, window_seconds=60)
    assert limiter.register_send("+2250701020304") is False
    assert limiter.register_send("+2210771234567") is False
    assert limiter.register_send("+2250701020304") is True


def test_reset_clears_every_counter():
    limiter = OutboundRateLimiter(limit=15, window_seconds=60)
    for _ in range(20):
        limiter.register_send("+2250701020304")

    limiter.reset()

    assert limiter.count("+2250701020304") == 0
    assert limiter.register_send("+2250701020304") is False
