"""Watch mode: re-run the translation whenever the source file changes."""
import asyncio
import logging
import os
from typing import Awaitable, Callable, Optional, Tuple

from autotranslate.errors import AutotranslateError

logger = logging.getLogger("autotranslate")

POLL_INTERVAL = 0.1
STABILITY_THRESHOLD = 0.3

FileSignature = Optional[Tuple[float, int]]


class RunScheduler:
    """
    Serializes runs and coalesces triggers.

    A trigger while a run is in progress does not start a second run. It marks
    the scheduler as pending and exactly one more run follows the current one,
    however many triggers arrived in the meantime.
    """

    def __init__(self, run: Callable[[], Awaitable[object]]):
        self._run = run
        self._running = False
        self._pending = False
        self._task: Optional[asyncio.Task] = None
        self.completed_runs = 0

    @property
    def running(self) -> bool:
        return self._running

    def trigger(self) -> None:
        if self._running:
            logger.debug("Run in progress; scheduling another run when it finishes")
            self._pending = True
            return
        self._running = True
        self._task = asyncio.ensure_future(self._run_until_idle())

    async def wait_idle(self) -> None:
        while self._task is not None and not self._task.done():
            await self._task

    async def _run_until_idle(self) -> None:
        try:
            while True:
                self._pending = False
                try:
                    await self._run()
                    logger.info("Translations updated successfully")
                except AutotranslateError as e:
                    logger.error("Translation update failed: %s", e)
                except Exception:
                    logger.exception("Translation update failed with an unexpected error")
                self.completed_runs += 1
                if not self._pending:
                    break
        finally:
            self._running = False


def file_signature(file_path: str) -> FileSignature:
    try:
        stat = os.stat(file_path)
    except OSError:
        return None
    return stat.st_mtime, stat.st_size


async def watch_file(
        file_path: str,
        on_change: Callable[[], None],
        stop_event: Optional[asyncio.Event] = None,
        poll_interval: float = POLL_INTERVAL,
        stability_threshold: float = STABILITY_THRESHOLD
) -> None:
    """
    Poll ``file_path`` and call ``on_change`` once a modification has settled.

    A change is reported only after the file's size and modification time
    have stayed the same for ``stability_threshold`` seconds, so a file that
    is still being written triggers a single callback. A file that exists
    when watching starts is reported once, like a newly added file.
    """
    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()

    last_seen: FileSignature = None
    changed_at: Optional[float] = None

    while not stop_event.is_set():
        current = file_signature(file_path)
        if current != last_seen:
            last_seen = current
            changed_at = loop.time()
        elif changed_at is not None and loop.time() - changed_at >= stability_threshold:
            changed_at = None
            if current is not None:
                on_change()

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=poll_interval)
        except asyncio.TimeoutError:
            pass


async def run_watch_mode(
        source_file: str,
        run: Callable[[], Awaitable[object]],
        stop_event: Optional[asyncio.Event] = None
) -> RunScheduler:
    """Run ``run`` for the current source file and again after every change until stopped."""
    logger.info("Watching: %s", source_file)
    logger.info("Press Ctrl+C to stop.")

    scheduler = RunScheduler(run)
    await watch_file(source_file, scheduler.trigger, stop_event=stop_event)
    await scheduler.wait_idle()
    logger.debug("Stopped watching %s", source_file)
    return scheduler
