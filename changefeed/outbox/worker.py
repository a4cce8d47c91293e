"""Polling consumer loop on top of a batch dispatcher.

Claims are committed before the handler runs, and a batch is marked processed
only after the handler returns. A crash in between leaves the batch claimed
until abandonment frees it, so handlers must tolerate redelivery.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Awaitable, Callable

from changefeed.config.manager import ConfigManager
from changefeed.config.models import ChangefeedConfig, DispatcherConfig
from changefeed.outbox.dispatcher import BatchDispatcher
from changefeed.outbox.models import EventLogEntry

logger = logging.getLogger(__name__)

BatchHandler = Callable[[list[EventLogEntry]], Awaitable[None]]


class BatchWorker:
    """Claim -> handle -> mark processed, in a background task."""

    def __init__(
        self,
        dispatcher: BatchDispatcher,
        handler: BatchHandler,
        *,
        name: str = "worker",
        batch_size: int = 100,
        poll_interval_seconds: float = 1.0,
        release_on_error: bool = True,
    ) -> None:
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
            raise ValueError("batch_size must be a positive integer")
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be a positive number")
        normalized_name = name.strip()
        if not normalized_name:
            raise ValueError("name must be a non-empty string")
        if len(normalized_name) > 60:
            raise ValueError("name must be at most 60 characters")
        self._dispatcher = dispatcher
        self._handler = handler
        self._name = normalized_name
        self._batch_size = batch_size
        self._poll_interval = float(poll_interval_seconds)
        self._release_on_error = release_on_error
        self._task: asyncio.Task[None] | None = None
        self.processed_events = 0
        self.failed_batches = 0

    @classmethod
    def from_config(
        cls,
        dispatcher: BatchDispatcher,
        handler: BatchHandler,
        config: DispatcherConfig,
        *,
        name: str = "worker",
    ) -> BatchWorker:
        return cls(
            dispatcher,
            handler,
            name=name,
            batch_size=config.batch_size,
            poll_interval_seconds=config.poll_interval_seconds,
            release_on_error=config.release_on_error,
        )

    @classmethod
    def follow(
        cls,
        dispatcher: BatchDispatcher,
        handler: BatchHandler,
        manager: ConfigManager,
        *,
        name: str = "worker",
    ) -> BatchWorker:
        """Worker built from the manager's dispatcher section that picks up later reloads."""
        worker = cls.from_config(dispatcher, handler, manager.get().dispatcher, name=name)

        def _on_change(old: ChangefeedConfig, new: ChangefeedConfig) -> None:
            if old.dispatcher != new.dispatcher:
                worker.apply_config(new.dispatcher)

        manager.on_change(_on_change)
        return worker

    def apply_config(self, config: DispatcherConfig) -> None:
        """Adopt new batch settings; the batch in flight finishes with the old ones."""
        self._batch_size = config.batch_size
        self._poll_interval = float(config.poll_interval_seconds)
        self._release_on_error = config.release_on_error
        logger.info(
            "batch worker %s: batch_size=%d poll_interval=%.2fs release_on_error=%s",
            self._name,
            self._batch_size,
            self._poll_interval,
            self._release_on_error,
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def new_batch_id(self) -> str:
        return f"{self._name}-{uuid.uuid4().hex}"

    async def run_once(self) -> int:
        """Process one batch; returns the number of events handled.

        Handler errors are re-raised after the batch is released (or left
        for abandonment when ``release_on_error`` is off).
        """
        batch_id = self.new_batch_id()
        entries = await self._dispatcher.claim(self._batch_size, batch_id)
        if not entries:
            return 0
        try:
            await self._handler(entries)
        except Exception:
            self.failed_batches += 1
            if self._release_on_error:
                try:
                    await self._dispatcher.release(batch_id)
                except Exception:
                    logger.warning(
                        "batch %s: release after handler failure failed; claims wait for abandonment",
                        batch_id,
                        exc_info=True,
                    )
            raise
        marked = await self._dispatcher.mark_processed(batch_id)
        if marked < len(entries):
            logger.warning(
                "batch %s: %d of %d claims were abandoned before completion; events may be redelivered",
                batch_id,
                len(entries) - marked,
                len(entries),
            )
        self.processed_events += len(entries)
        return len(entries)

    async def start(self) -> None:
        """Start the background polling task."""
        if self.running:
            logger.warning("batch worker %s already running", self._name)
            return
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Stop the background polling task."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _run_loop(self) -> None:
        while True:
            try:
                handled = await self.run_once()
            except Exception as exc:
                logger.warning("batch worker %s: batch failed: %s", self._name, exc)
                handled = 0
            if handled == 0:
                await asyncio.sleep(self._poll_interval)
