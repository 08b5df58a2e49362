"""
Failure Injection Tests.

Validates resilience against storage and database failures.
"""

import httpx
import pytest
from sqlalchemy.exc import SQLAlchemyError

from fleet_backend.app.core.exceptions import BackendWriteError, StorageError, TripValidationError
from fleet_backend.app.core.reliability import CircuitBreaker, CircuitOpenError, storage_circuit_breaker
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_enums import DbServiceType, SenderType, TripStatus
from fleet_backend.app.services.activity_log import log_activity
from fleet_backend.app.services.storage import StorageClient, attach_trip_document, safe_filename
from fleet_backend.app.services.trip_messages import send_message
from fleet_backend.app.services.trip_status import set_trip_status


@pytest.fixture(autouse=True)
def reset_storage_circuit():
    storage_circuit_breaker.reset_state()
    yield
    storage_circuit_breaker.reset_state()


async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker("test", failure_threshold=2, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


async def test_circuit_breaker_half_open_recovers(mocker):
    cb = CircuitBreaker("test", failure_threshold=1, reset_timeout=10)
    clock = mocker.patch("fleet_backend.app.core.reliability.time.time", return_value=1000.0)

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    clock.return_value = 1011.0
    assert await cb.call(ok_func) == "ok"
    assert cb.state == "CLOSED"


async def test_storage_upload_failure_raises_storage_error(mocker):
    storage = StorageClient("http://storage.test", "service-key")
    mocker.patch.object(StorageClient, "_put", side_effect=httpx.ConnectError("refused"))

    with pytest.raises(StorageError):
        await storage.upload("trip-documents", "t/passport/a.pdf", b"%PDF")


async def test_storage_circuit_opens_after_repeated_failures(mocker):
    storage = StorageClient("http://storage.test", "service-key")
    put = mocker.patch.object(StorageClient, "_put", side_effect=httpx.ConnectError("refused"))

    for _ in range(storage_circuit_breaker.failure_threshold):
        with pytest.raises(StorageError):
            await storage.upload("trip-documents", "key", b"data")

    with pytest.raises(StorageError):
        await storage.upload("trip-documents", "key", b"data")

    assert put.await_count == storage_circuit_breaker.failure_threshold


async def test_storage_upload_returns_public_url(mocker):
    storage = StorageClient("http://storage.test/", "service-key")
    mocker.patch.object(StorageClient, "_put", return_value=None)

    url = await storage.upload("trip-documents", "t1/passport/doc.pdf", b"%PDF")

    assert url == "http://storage.test/object/public/trip-documents/t1/passport/doc.pdf"


async def test_document_is_appended_to_airport_trip(db_session, make_trip, mocker, session_factory):
    trip = await make_trip(service_type=DbServiceType.AIRPORT_PICKUP)
    storage = mocker.Mock()
    storage.upload = mocker.AsyncMock(return_value="https://files.test/passport.pdf")

    documents = await attach_trip_document(
        db_session, storage, trip.id, "passport", "passport scan.pdf", b"%PDF", passenger_name="A. Guest"
    )

    assert documents == [
        {"name": "passport scan.pdf", "url": "https://files.test/passport.pdf", "passenger_name": "A. Guest"}
    ]
    async with session_factory() as session:
        assert (await session.get(Trip, trip.id)).passport_documents == documents


async def test_documents_rejected_for_non_airport_trip(db_session, make_trip, mocker):
    trip = await make_trip()
    storage = mocker.Mock()
    storage.upload = mocker.AsyncMock()

    with pytest.raises(TripValidationError):
        await attach_trip_document(db_session, storage, trip.id, "passport", "p.pdf", b"%PDF")
    storage.upload.assert_not_awaited()


def test_safe_filename():
    assert safe_filename("../etc/passwd") == "etc_passwd"
    assert safe_filename("") == "document"


async def test_status_write_failure_is_rolled_back(db_session, make_trip, mocker, session_factory):
    trip = await make_trip()
    trip_id = trip.id
    mocker.patch.object(db_session, "commit", side_effect=SQLAlchemyError("deadlock"))

    with pytest.raises(BackendWriteError):
        await set_trip_status(db_session, trip_id, TripStatus.IN_PROGRESS)

    async with session_factory() as session:
        assert (await session.get(Trip, trip_id)).status == TripStatus.SCHEDULED


async def test_message_write_failure_raises(db_session, make_trip, mocker):
    trip = await make_trip()
    mocker.patch.object(db_session, "commit", side_effect=SQLAlchemyError("deadlock"))

    with pytest.raises(BackendWriteError):
        await send_message(db_session, trip.id, SenderType.ADMIN, "Desk", "Hello")


async def test_activity_log_failure_is_swallowed(db_session, mocker):
    mocker.patch.object(db_session, "commit", side_effect=SQLAlchemyError("deadlock"))

    assert await log_activity(db_session, title="Trip updated") is None
