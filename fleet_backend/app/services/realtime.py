"""
Realtime sync.

Writers publish a change event per table on Redis (``realtime:<table>``).
Every process runs one ``RealtimeSyncBridge`` that listens on those
channels, invalidates cached views changed by other processes and forwards
the events to connected WebSocket clients, which then re-read.
"""

import asyncio
import json
import logging
import uuid
from typing import Callable, Dict, Iterable, List, Optional, Set

from fastapi import WebSocket
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from fleet_backend.app.core.clock import utc_now
from fleet_backend.app.core.config import settings
from fleet_backend.app.db.session import AsyncSessionLocal
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_assignment import TripAssignment
from fleet_backend.app.models.trip_message import TripMessage
from fleet_backend.app.services.cache import ViewCache

logger = logging.getLogger("fleet.realtime")

CHANNEL_PREFIX = "realtime:"
WATCHED_TABLES = ("trips", "trip_assignments", "trip_messages", "alerts", "activities")
DRIVER_TABLES = ("trips", "trip_assignments", "trip_messages")

# Identifies events published by this process
PROCESS_ORIGIN = uuid.uuid4().hex


def channel_for(table: str) -> str:
    return f"{CHANNEL_PREFIX}{table}"


class ChangeEvent:
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeNotifier:
    """
    Publishes change events after a committed write.

    Publishing is best effort: a Redis failure is logged and the write
    stands; other sessions catch up on their next read.
    """

    def __init__(self, redis):
        self.redis = redis
        self.cache = ViewCache(redis)

    async def publish(self, table: str, event: str, record_ids: Iterable[str] = ()) -> None:
        await self.cache.invalidate(table)

        message = {
            "table": table,
            "event": event,
            "record_ids": list(record_ids),
            "origin": PROCESS_ORIGIN,
            "at": utc_now().isoformat(),
        }
        try:
            await self.redis.publish(channel_for(table), json.dumps(message))
        except RedisError:
            logger.warning("Could not publish %s on %s", event, table, exc_info=True)


class ConnectionManager:
    """
    WebSocket clients interested in change events, per table.

    Driver connections only watch ``DRIVER_TABLES`` and only hear about
    their own trips: record ids are narrowed to rows tied to the driver
    and an event with nothing left is not delivered.
    """

    def __init__(self, session_factory: Optional[Callable] = None) -> None:
        self.connections: Dict[WebSocket, Set[str]] = {}
        self.driver_scopes: Dict[WebSocket, str] = {}
        self.session_factory = session_factory
        self._lock = asyncio.Lock()

    async def connect(
        self,
        ws: WebSocket,
        tables: Optional[Iterable[str]] = None,
        driver_id: Optional[str] = None,
    ) -> List[str]:
        """Accept ``ws`` and register it; returns the tables it will hear about."""
        await ws.accept()
        watched = list(tables or WATCHED_TABLES)
        if driver_id is not None:
            watched = [name for name in watched if name in DRIVER_TABLES]
        async with self._lock:
            if driver_id is not None:
                self.driver_scopes[ws] = driver_id
            self.connections[ws] = set(watched)
        return watched

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            self.connections.pop(ws, None)
            self.driver_scopes.pop(ws, None)

    async def _safe_send(self, ws: WebSocket, payload: dict) -> bool:
        try:
            await ws.send_json(payload)
            return True
        except Exception:
            return False

    async def _driver_record_ids(self, table: str, record_ids: List[str], driver_id: str) -> List[str]:
        if self.session_factory is None:
            return []

        if table == "trips":
            stmt = select(Trip.id).where(Trip.id.in_(record_ids), Trip.driver_id == driver_id)
        elif table == "trip_assignments":
            stmt = select(TripAssignment.id).where(
                TripAssignment.id.in_(record_ids), TripAssignment.driver_id == driver_id
            )
        else:
            stmt = (
                select(TripMessage.id)
                .join(Trip, TripMessage.trip_id == Trip.id)
                .where(TripMessage.id.in_(record_ids), Trip.driver_id == driver_id)
            )

        try:
            async with self.session_factory() as db:
                return list((await db.execute(stmt)).scalars().all())
        except SQLAlchemyError:
            logger.warning("Could not scope %s event for driver %s", table, driver_id, exc_info=True)
            return []

    async def broadcast(self, event: dict) -> int:
        """Send ``event`` to clients watching its table; returns deliveries."""
        table = event.get("table")
        async with self._lock:
            targets = [
                (ws, self.driver_scopes.get(ws))
                for ws, tables in self.connections.items()
                if table in tables
            ]

        record_ids = list(event.get("record_ids") or [])
        scoped: Dict[str, List[str]] = {}

        delivered = 0
        dead = []
        for ws, driver_id in targets:
            payload = {"type": "change", **event}
            if driver_id is not None and record_ids:
                if driver_id not in scoped:
                    scoped[driver_id] = await self._driver_record_ids(table, record_ids, driver_id)
                if not scoped[driver_id]:
                    continue
                payload["record_ids"] = scoped[driver_id]

            if await self._safe_send(ws, payload):
                delivered += 1
            else:
                dead.append(ws)

        for ws in dead:
            await self.disconnect(ws)
        return delivered


class RealtimeSyncBridge:
    """
    One Redis pub/sub listener per process.

    Listener failures are logged and retried after
    ``settings.realtime_reconnect_seconds``; clients keep their last
    snapshot in the meantime.
    """

    def __init__(
        self,
        redis,
        manager: ConnectionManager,
        tables: Iterable[str] = WATCHED_TABLES,
        reconnect_seconds: Optional[float] = None,
    ):
        self.redis = redis
        self.manager = manager
        self.tables = tuple(tables)
        self.reconnect_seconds = reconnect_seconds or settings.realtime_reconnect_seconds
        self.cache = ViewCache(redis)
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="realtime-sync-bridge")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def handle_message(self, raw) -> Optional[dict]:
        """Apply one pub/sub payload; returns the decoded event or None."""
        try:
            event = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        except ValueError:
            logger.warning("Dropping malformed change event: %r", raw)
            return None

        if not isinstance(event, dict) or event.get("table") not in self.tables:
            return None

        # Writers in this process already invalidated before publishing
        if event.get("origin") != PROCESS_ORIGIN:
            await self.cache.invalidate(event["table"])

        await self.manager.broadcast(event)
        return event

    async def _listen_once(self) -> None:
        pubsub = self.redis.pubsub()
        channels = [channel_for(table) for table in self.tables]
        await pubsub.subscribe(*channels)
        logger.info("Realtime bridge subscribed to %s", ", ".join(channels))

        try:
            async for msg in pubsub.listen():
                if msg.get("type") != "message":
                    continue
                await self.handle_message(msg.get("data"))
        finally:
            try:
                await pubsub.unsubscribe(*channels)
                await pubsub.aclose()
            except RedisError:
                logger.debug("Realtime bridge pubsub close failed", exc_info=True)

    async def _run(self) -> None:
        while True:
            try:
                await self._listen_once()
            except asyncio.CancelledError:
                raise
            except (RedisError, OSError):
                logger.error(
                    "Realtime channel failed; retrying in %ss", self.reconnect_seconds, exc_info=True
                )
            await asyncio.sleep(self.reconnect_seconds)


manager = ConnectionManager(AsyncSessionLocal)
