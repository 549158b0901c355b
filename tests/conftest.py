from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from pytraffic._constants import Stream
from pytraffic._mqtt import PushCallback, SubscriptionHandle
from pytraffic.exceptions import TrafficTransportError

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


def iso(seconds: float = 0.0) -> str:
    return (BASE_TIME + timedelta(seconds=seconds)).isoformat()


def sample_row(row_id: int | str, seconds: float = 0.0, **fields: Any) -> dict[str, Any]:
    row: dict[str, Any] = {"id": row_id, "created_at": iso(seconds), "event_type": "update"}
    row.update(fields)
    return row


def config_row(row_id: int | str, green: int, yellow: int, seconds: float = 0.0) -> dict[str, Any]:
    return {"id": row_id, "normal_green_ms": green, "yellow_ms": yellow, "updated_at": iso(seconds)}


class FakeClock:
    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeDataSource:
    """Scripted in-memory row store.

    ``rows[stream]`` is returned newest first, truncated to *limit*.
    ``fail[stream]`` makes the next queries raise; ``gate[stream]`` blocks
    queries until the event is set.
    """

    def __init__(self) -> None:
        self.rows: dict[Stream, list[dict[str, Any]]] = {Stream.SAMPLES: [], Stream.CONFIGURATION: []}
        self.fail: dict[Stream, int] = {}
        self.gate: dict[Stream, asyncio.Event] = {}
        self.queries: list[tuple[Stream, int]] = []
        self.inserted: list[tuple[Stream, dict[str, Any]]] = []
        self.insert_error: Exception | None = None
        self.insert_gate: asyncio.Event | None = None

    async def query_latest(
        self,
        stream: Stream,
        *,
        limit: int,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        self.queries.append((stream, limit))
        gate = self.gate.get(stream)
        if gate is not None:
            await gate.wait()
        if self.fail.get(stream, 0) > 0:
            self.fail[stream] -= 1
            raise TrafficTransportError("scripted failure", status_code=503)
        return [dict(row) for row in self.rows[stream][:limit]]

    async def insert(self, stream: Stream, record: Mapping[str, Any]) -> None:
        if self.insert_gate is not None:
            await self.insert_gate.wait()
        if self.insert_error is not None:
            raise self.insert_error
        self.inserted.append((stream, dict(record)))


class FakePushSource:
    def __init__(self) -> None:
        self.handles: list[SubscriptionHandle] = []
        self.unsubscribed: list[SubscriptionHandle] = []

    def subscribe(self, stream: Stream, callback: PushCallback) -> SubscriptionHandle:
        handle = SubscriptionHandle(stream=stream, topic=f"traffic/{stream}", callback=callback)
        self.handles.append(handle)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        self.handles.remove(handle)
        self.unsubscribed.append(handle)

    def push(self, stream: Stream, row: dict[str, Any]) -> None:
        for handle in list(self.handles):
            if handle.stream == stream:
                handle.callback(row)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def data_source() -> FakeDataSource:
    return FakeDataSource()


@pytest.fixture
def push_source() -> FakePushSource:
    return FakePushSource()
