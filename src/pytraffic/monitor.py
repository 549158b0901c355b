"""Live monitor: wires the pull and push channels to the state components."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import aiohttp

from pytraffic._constants import Stream
from pytraffic._mqtt import MqttPushSource, PushSource
from pytraffic._redact import redact_for_log
from pytraffic._transport import DataSource, RestDataSource
from pytraffic.config import TrafficConfig
from pytraffic.exceptions import (
    TrafficCommitInProgressError,
    TrafficError,
    TrafficInvalidEditError,
)
from pytraffic.ingestion.pull import fetch_alert_window, fetch_latest_config, fetch_latest_sample
from pytraffic.ingestion.push import config_from_push, sample_from_push
from pytraffic.models.config_record import TimingValues
from pytraffic.models.snapshot import DashboardSnapshot
from pytraffic.state.alert_log import AlertLogAggregator
from pytraffic.state.config_resolver import ConfigurationResolver
from pytraffic.state.reconciler import StreamReconciler
from pytraffic.state.signals import compute_signals

_logger = logging.getLogger(__name__)

UpdateCallback = Callable[[DashboardSnapshot], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class _Liveness:
    """Set up once per :meth:`TrafficMonitor.start`; retired on stop."""

    __slots__ = ("alive",)

    def __init__(self) -> None:
        self.alive = True


class TrafficMonitor:
    """Keeps a live view of one installation.

    Usage::

        async with TrafficMonitor(config, source, push) as monitor:
            snapshot = monitor.snapshot()

    Pull responses that arrive after :meth:`stop` are discarded, so a slow
    query issued by a torn-down monitor never touches state.
    """

    def __init__(
        self,
        config: TrafficConfig,
        data_source: DataSource,
        push_source: PushSource | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        on_update: UpdateCallback | None = None,
    ) -> None:
        self._config = config
        self._source = data_source
        self._push = push_source
        self._clock = clock
        self._on_update = on_update

        self._reconciler = StreamReconciler(clock=clock)
        self._alert_log = AlertLogAggregator(capacity=config.alert_capacity, pull_limit=config.alert_pull_limit)
        self._resolver = ConfigurationResolver(clock=clock)

        self._token: _Liveness | None = None
        self._stack: contextlib.AsyncExitStack | None = None
        self._background: set[asyncio.Future[Any]] = set()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TrafficMonitor:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def config(self) -> TrafficConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._token is not None and self._token.alive

    @property
    def reconciler(self) -> StreamReconciler:
        return self._reconciler

    @property
    def alert_log(self) -> AlertLogAggregator:
        return self._alert_log

    @property
    def resolver(self) -> ConfigurationResolver:
        return self._resolver

    async def start(self) -> None:
        """Initial pulls, push subscriptions, then the periodic timers.

        Everything acquired is released again if a later step fails.
        """
        if self.is_running:
            return
        token = _Liveness()
        self._token = token
        stack = contextlib.AsyncExitStack()
        try:
            stack.push_async_callback(self._cancel_background)

            await asyncio.gather(self.refresh_latest(), self.refresh_alerts(), self.refresh_config())

            if self._push is not None:
                samples = self._push.subscribe(Stream.SAMPLES, self._on_sample_push)
                stack.callback(self._push.unsubscribe, samples)
                configuration = self._push.subscribe(Stream.CONFIGURATION, self._on_config_push)
                stack.callback(self._push.unsubscribe, configuration)

            timers = (
                ("latest", self._config.poll_interval, self.refresh_latest),
                ("alerts", self._config.alert_poll_interval, self.refresh_alerts),
                ("config", self._config.config_poll_interval, self.refresh_config),
            )
            for name, interval, refresh in timers:
                task = asyncio.create_task(self._run_periodic(token, interval, refresh), name=f"pytraffic-{name}")
                stack.push_async_callback(_cancel_task, task)
        except BaseException:
            token.alive = False
            self._token = None
            await stack.aclose()
            raise

        self._stack = stack
        _logger.debug("Monitor started push=%s", self._push is not None)
        self._notify()

    async def stop(self) -> None:
        """Retire the liveness token and release timers and subscriptions."""
        token = self._token
        stack = self._stack
        self._stack = None
        if token is not None:
            token.alive = False
        if stack is not None:
            await stack.aclose()
            _logger.debug("Monitor stopped")

    async def _run_periodic(
        self,
        token: _Liveness,
        interval: float,
        refresh: Callable[[], Awaitable[bool]],
    ) -> None:
        while token.alive:
            await asyncio.sleep(interval)
            if not token.alive:
                return
            try:
                changed = await refresh()
            except Exception:
                _logger.warning("Periodic refresh failed unexpectedly", exc_info=True)
                changed = False
            if not changed and token.alive:
                # Health is time-based and must be re-evaluated each tick.
                self._notify()

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Future[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.warning("Background refresh failed unexpectedly", exc_info=exc)

    async def _cancel_background(self) -> None:
        tasks = list(self._background)
        self._background.clear()
        for task in tasks:
            await _cancel_task(task)

    def _is_live(self, token: _Liveness | None) -> bool:
        return token is not None and token.alive

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    async def refresh_latest(self) -> bool:
        """Pull the most recent sample; returns whether state changed."""
        token = self._token
        try:
            sample = await fetch_latest_sample(self._source)
        except TrafficError:
            _logger.debug("Latest-sample pull failed; keeping last value", exc_info=True)
            return False
        if not self._is_live(token):
            _logger.debug("Discarding latest-sample pull completed after teardown")
            return False
        if sample is None:
            return False
        self._reconciler.apply_pull(sample)
        self._notify()
        return True

    async def refresh_alerts(self) -> bool:
        """Pull the alert window and replace the log with it."""
        token = self._token
        try:
            rows = await fetch_alert_window(self._source, limit=self._alert_log.pull_limit)
        except TrafficError:
            _logger.debug("Alert pull failed; keeping last log", exc_info=True)
            return False
        if not self._is_live(token):
            _logger.debug("Discarding alert pull completed after teardown")
            return False
        if not self._alert_log.replace_from_pull(rows):
            return False
        self._notify()
        return True

    async def refresh_config(self) -> bool:
        """Pull the latest configuration record."""
        token = self._token
        try:
            record = await fetch_latest_config(self._source)
        except TrafficError:
            _logger.debug("Configuration pull failed; keeping active record", exc_info=True)
            return False
        if not self._is_live(token):
            _logger.debug("Discarding configuration pull completed after teardown")
            return False
        if record is None or not self._resolver.observe(record):
            return False
        self._notify()
        return True

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def _on_sample_push(self, row: dict[str, Any]) -> None:
        if not self.is_running:
            return
        sample = sample_from_push(row)
        if sample is None:
            return
        self._reconciler.apply_push(sample)
        self._alert_log.apply_push(sample)
        self._notify()

    def _on_config_push(self, row: dict[str, Any]) -> None:
        if not self.is_running:
            return
        record = config_from_push(row)
        if record is not None and self._resolver.observe(record):
            self._notify()
        self._spawn(self.refresh_config())

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def set_green_ms(self, value: int) -> int:
        """Stage a green duration; raises :class:`TrafficInvalidEditError`."""
        result = self._resolver.set_green_ms(value)
        self._notify()
        return result

    def set_yellow_ms(self, value: int) -> int:
        """Stage a yellow duration; raises :class:`TrafficInvalidEditError`."""
        result = self._resolver.set_yellow_ms(value)
        self._notify()
        return result

    def discard_edits(self) -> None:
        self._resolver.discard_edits()
        self._notify()

    async def save_timing(self) -> bool:
        """Append the displayed timing as a new configuration record.

        Returns False if the write failed or could not be started; the
        edits are kept and nothing is retried.
        """

        async def _insert(values: TimingValues) -> None:
            self._notify()
            # The store stamps updated_at; the local clock may be skewed.
            await self._source.insert(Stream.CONFIGURATION, values.to_insert_row())

        try:
            values = await self._resolver.commit(_insert)
        except TrafficCommitInProgressError:
            _logger.debug("Save requested while a save is outstanding")
            return False
        except TrafficInvalidEditError as exc:
            _logger.warning("Timing not saved: %s", exc)
            return False
        except TrafficError as exc:
            _logger.warning("Saving timing failed: %s", exc)
            self._notify()
            return False

        _logger.debug("Saved timing green_ms=%s yellow_ms=%s", values.green_ms, values.yellow_ms)
        self._notify()
        return True

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self, now: datetime | None = None) -> DashboardSnapshot:
        """Everything needed to render the dashboard at *now*."""
        now = now or self._clock()
        current = self._reconciler.current
        return DashboardSnapshot(
            generated_at=now,
            current=current,
            observed_at=self._reconciler.observed_at,
            alerts=self._alert_log.entries,
            config=self._resolver.view(),
            signals=compute_signals(current, now, health_window=self._config.health_window),
        )

    def _notify(self) -> None:
        callback = self._on_update
        if callback is None:
            return
        try:
            callback(self.snapshot())
        except Exception:
            _logger.debug("on_update callback failed", exc_info=True)


async def _cancel_task(task: asyncio.Task[Any]) -> None:
    if task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


@contextlib.asynccontextmanager
async def open_monitor(
    config: TrafficConfig | None = None,
    *,
    session: aiohttp.ClientSession | None = None,
    on_update: UpdateCallback | None = None,
) -> AsyncIterator[TrafficMonitor]:
    """Build a monitor on the REST store and, if enabled, the MQTT channel.

    An externally supplied *session* is left open on exit.
    """
    config = config or TrafficConfig.from_env()
    _logger.debug("Opening monitor config=%s", redact_for_log(config))
    loop = asyncio.get_running_loop()
    async with contextlib.AsyncExitStack() as stack:
        http = session if session is not None else await stack.enter_async_context(aiohttp.ClientSession())
        source = RestDataSource(config, http)

        push: MqttPushSource | None = None
        if config.mqtt_enabled:
            push = MqttPushSource(config, loop=loop)
            push.start()
            # loop_stop joins the network thread.
            stack.push_async_callback(asyncio.to_thread, push.stop)

        monitor = TrafficMonitor(config, source, push, on_update=on_update)
        yield await stack.enter_async_context(monitor)
