"""Job scheduler registry - one scheduler per backing database."""

import asyncio
import signal
from typing import Awaitable, Callable, Optional

from domains.reminders.scheduler import JobScheduler
from domains.reminders.store import JobStore
from logger import logger


class SchedulerRegistry:
    """Owns every JobScheduler in the process and stops them on shutdown."""

    def __init__(self):
        self._schedulers: dict[str, JobScheduler] = {}  # db path → scheduler
        self._shutdown_installed = False
        self._shutting_down = False
        # Shutdown tasks started from signal handlers
        self._signal_tasks: set[asyncio.Task] = set()

    def acquire(self, db_path: str, poll_seconds: int = 60) -> JobScheduler:
        """Get the scheduler for a database, creating it on first use.

        The scheduler is not started.
        """
        existing = self._schedulers.get(db_path)
        if existing is not None:
            logger.info(f"Found existing job scheduler for {db_path}")
            return existing

        logger.info(f"Creating new job scheduler for {db_path}")
        job_scheduler = JobScheduler(JobStore(db_path), poll_seconds=poll_seconds)
        self._schedulers[db_path] = job_scheduler
        return job_scheduler

    def all_schedulers(self) -> list[JobScheduler]:
        """Get all registered schedulers."""
        return list(self._schedulers.values())

    async def shutdown_all(self) -> None:
        """Stop every scheduler, logging each result."""
        names = list(self._schedulers)
        results = await asyncio.gather(
            *(self._schedulers[name].stop() for name in names),
            return_exceptions=True
        )
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error(f"Job scheduler for {name} failed to stop: {result}")
            else:
                logger.info(f"Job scheduler for {name} stopped")

    def install_shutdown_handlers(
        self,
        loop: asyncio.AbstractEventLoop,
        on_stopped: Optional[Callable[[], Awaitable[None]]] = None
    ) -> bool:
        """Stop all schedulers on SIGINT, SIGTERM or SIGHUP.

        Only the first call installs handlers.

        Args:
            loop: Running event loop
            on_stopped: Awaited once the schedulers have settled (e.g. bot.close)

        Returns:
            True if handlers were installed by this call
        """
        if self._shutdown_installed:
            return False
        self._shutdown_installed = True

        for name in ("SIGTERM", "SIGINT", "SIGHUP"):
            sig = getattr(signal, name, None)
            if sig is None:
                continue  # SIGHUP does not exist on Windows

            def _trigger(sig=sig):
                task = asyncio.ensure_future(self._handle_signal(sig, on_stopped), loop=loop)
                self._signal_tasks.add(task)
                task.add_done_callback(self._signal_tasks.discard)

            try:
                loop.add_signal_handler(sig, _trigger)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler
                signal.signal(sig, lambda *_, trigger=_trigger: loop.call_soon_threadsafe(trigger))

        return True

    async def _handle_signal(
        self,
        sig: signal.Signals,
        on_stopped: Optional[Callable[[], Awaitable[None]]]
    ) -> None:
        if self._shutting_down:
            return
        self._shutting_down = True

        logger.info(f"Got {sig.name}, shutting down all job schedulers")
        try:
            await self.shutdown_all()
        finally:
            if on_stopped is not None:
                await on_stopped()
