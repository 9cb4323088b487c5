"""Progress events: best-effort fan-out to subscribers plus a JSONL sink."""
import asyncio
import logging
from collections import defaultdict, deque
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiofiles
import orjson
from pydantic import BaseModel, Field

from enforcement_scraper.config import PROGRESS_FILE
from enforcement_scraper.parse.models import Agency, DataType, utcnow

logger = logging.getLogger(__name__)

GLOBAL_TOPIC = "*"


class ProgressEvent(BaseModel):
    session_id: str
    agency: Agency
    data_type: DataType = DataType.CASE
    page: Optional[int] = None
    found: int = 0
    created: int = 0
    existing: int = 0
    failed: int = 0
    errors: int = 0
    status: str
    ts: datetime = Field(default_factory=utcnow)


class ProgressBroadcaster:
    """Delivers events to per-session and global subscribers.

    Each subscriber gets a bounded queue; when it is full the event is
    dropped for that subscriber only.
    """

    def __init__(self, maxsize: int = 100, sink_path: Optional[Path] = PROGRESS_FILE):
        self.maxsize = maxsize
        self.sink_path = sink_path
        self.dropped = 0
        self._subscribers: dict[str, list[asyncio.Queue]] = defaultdict(list)

    def subscribe(self, session_id: Optional[str] = None) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.maxsize)
        self._subscribers[session_id or GLOBAL_TOPIC].append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue, session_id: Optional[str] = None) -> None:
        topic = session_id or GLOBAL_TOPIC
        if queue in self._subscribers.get(topic, []):
            self._subscribers[topic].remove(queue)

    async def publish(self, event: ProgressEvent) -> None:
        for queue in self._subscribers.get(event.session_id, []) + self._subscribers.get(GLOBAL_TOPIC, []):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                self.dropped += 1
                logger.debug(f"Subscriber queue full, dropped event for session {event.session_id}")

        if self.sink_path is not None:
            await self._append(event)

    async def _append(self, event: ProgressEvent) -> None:
        line = orjson.dumps(event.model_dump(mode="json")).decode() + "\n"
        try:
            async with aiofiles.open(self.sink_path, "a") as f:
                await f.write(line)
        except OSError as e:
            logger.warning(f"Could not write progress event to {self.sink_path}: {e}")

    async def tail(self, limit: int = 50, session_id: Optional[str] = None) -> list[dict]:
        """Last events from the JSONL sink, oldest first."""
        if self.sink_path is None or not self.sink_path.exists():
            return []
        events: deque = deque(maxlen=limit)
        async with aiofiles.open(self.sink_path, "r") as f:
            async for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    event = orjson.loads(line)
                except orjson.JSONDecodeError:
                    continue
                if session_id is None or event.get("session_id") == session_id:
                    events.append(event)
        return list(events)
