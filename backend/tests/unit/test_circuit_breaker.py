# backend/tests/unit/test_circuit_breaker.py

import pytest
from unittest.mock import AsyncMock

from djula.utils.circuit_breaker import CircuitBreaker, CircuitState
from djula.utils.errors import CircuitOpenError


@pytest.mark.asyncio
async def test_opens_after_consecutive_failures():
    breaker = CircuitBreaker("test", failure_threshold=2, timeout=60)
    failing = AsyncMock(side_effect=ConnectionError("down"))

    for _ in range(2):
        with pytest.raises(ConnectionError):
            await breaker.call(failing)

    assert breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        await breaker.call(failing)
    assert failing.await_count == 2


@pytest.mark.asyncio
async def test_half_open_closes_after_successes():
    breaker = CircuitBreaker("test", failure_threshold=1, timeout=0, success_threshold=2)
    with pytest.raises(ConnectionError):
        await breaker.call(AsyncMock(side_effect=ConnectionError("down")))

    ok = AsyncMock(return_value="pong")
    assert await breaker.call(ok) == "pong"
    assert breaker.state == CircuitState.HALF_OPEN
    await breaker.call(ok)
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    breaker = CircuitBreaker("test", failure_threshold=2)
    with pytest.raises(ConnectionError):
        await breaker.call(AsyncMock(side_effect=ConnectionError("down")))
    await breaker.call(AsyncMock(return_value=1))

    assert breaker.failure_count == 0
    assert breaker.state == CircuitState.CLOSED
