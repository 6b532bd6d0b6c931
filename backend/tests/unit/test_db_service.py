# backend/tests/unit/test_db_service.py

import asyncio
import pytest

from djula.services.db_service import DatabaseService
from djula.utils.circuit_breaker import CircuitBreaker, CircuitState
from djula.utils.errors import CircuitOpenError


@pytest.fixture
def store():
    service = DatabaseService("mongodb://localhost:27017/djula_test")
    service.timeout = 0.01
    service.circuit_breaker = CircuitBreaker("database", failure_threshold=2)
    yield service
    service.client.close()


async def _hanging_operation():
    await asyncio.sleep(1)


@pytest.mark.asyncio
async def test_store_timeouts_open_the_circuit(store):
    for _ in range(2):
        with pytest.raises(asyncio.TimeoutError):
            await store._db_call("get_session_state", _hanging_operation)

    assert store.circuit_breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        await store._db_call("get_session_state", _hanging_operation)


@pytest.mark.asyncio
async def test_safe_operation_returns_default_on_timeout(store):
    assert await store._safe_db_operation("log_message", _hanging_operation, default_return="fallback") == "fallback"
    assert store.circuit_breaker.failure_count == 1


@pytest.mark.asyncio
async def test_successful_call_returns_result(store):
    async def operation():
        return {"status": "active"}

    assert await store._db_call("get_session_state", operation) == {"status": "active"}
    assert store.circuit_breaker.failure_count == 0
