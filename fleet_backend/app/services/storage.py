"""
Document storage.

Passport and invitation documents for airport trips are uploaded to the
hosted object storage API and referenced from the trip by public URL.
"""

import logging
import re
from typing import List, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from fleet_backend.app.core.config import settings
from fleet_backend.app.core.exceptions import (
    BackendWriteError, ResourceNotFoundError, StorageError, TripValidationError
)
from fleet_backend.app.core.reliability import CircuitOpenError, storage_circuit_breaker
from fleet_backend.app.models.trip import Trip, new_id
from fleet_backend.app.services.realtime import ChangeEvent
from fleet_backend.app.services.service_type_mapping import is_airport_service

logger = logging.getLogger("fleet.storage")

DOCUMENT_KINDS = {
    "passport": "passport_documents",
    "invitation": "invitation_documents",
}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", filename or "").strip("._")
    return cleaned or "document"


class StorageClient:
    """Thin client for the storage HTTP API, authenticated with the service key."""

    def __init__(self, base_url: str, service_key: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "StorageClient":
        return cls(
            base_url=settings.storage_url,
            service_key=settings.storage_service_key,
            timeout=settings.storage_timeout_seconds,
        )

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.base_url}/object/public/{bucket}/{key}"

    async def _put(self, bucket: str, key: str, content: bytes, content_type: str) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/object/{bucket}/{key}",
                content=content,
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "Content-Type": content_type,
                    "x-upsert": "false",
                },
            )
            response.raise_for_status()

    async def upload(
        self,
        bucket: str,
        key: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        Upload an object and return its public URL.

        Raises:
            StorageError: the API failed or the circuit is open
        """
        try:
            await storage_circuit_breaker.call(self._put, bucket, key, content, content_type)
        except CircuitOpenError:
            logger.warning("Storage circuit open, rejecting upload of %s/%s", bucket, key)
            raise StorageError()
        except httpx.HTTPError as exc:
            logger.error("Upload of %s/%s failed: %s", bucket, key, exc)
            raise StorageError(f"Failed to upload document: {exc}")

        return self.public_url(bucket, key)


async def attach_trip_document(
    db: AsyncSession,
    storage: StorageClient,
    trip_id: str,
    kind: str,
    filename: str,
    content: bytes,
    content_type: Optional[str] = None,
    passenger_name: Optional[str] = None,
    notifier=None,
) -> List[dict]:
    """
    Upload a travel document and append it to the trip.

    Args:
        kind: "passport" or "invitation"

    Returns:
        The trip's documents of that kind after the append

    Raises:
        TripValidationError: unknown kind, empty file or not an airport trip
        ResourceNotFoundError: unknown trip
        StorageError: upload failed
        BackendWriteError: the trip could not be updated
    """
    column = DOCUMENT_KINDS.get(kind)
    if column is None:
        raise TripValidationError(f"Unknown document kind: {kind}", field="kind")
    if not content:
        raise TripValidationError("Uploaded file is empty", field="file")

    trip = await db.get(Trip, trip_id)
    if trip is None:
        raise ResourceNotFoundError("Trip", trip_id)
    if not is_airport_service(trip.service_type.value):
        raise TripValidationError("Travel documents are only kept for airport trips", field="kind")

    key = f"{trip_id}/{kind}/{new_id()}-{safe_filename(filename)}"
    url = await storage.upload(
        settings.storage_documents_bucket,
        key,
        content,
        content_type or "application/octet-stream",
    )

    document = {"name": filename, "url": url, "passenger_name": passenger_name}
    # Reassign so the JSON column is flagged dirty
    documents = list(getattr(trip, column) or []) + [document]
    setattr(trip, column, documents)

    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to attach %s document to trip %s", kind, trip_id)
        raise BackendWriteError("Failed to save document reference")

    logger.info("Attached %s document to trip %s", kind, trip_id)

    if notifier is not None:
        await notifier.publish("trips", ChangeEvent.UPDATE, [trip_id])

    return documents
