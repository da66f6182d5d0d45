"""Reconciliation scheduler driving the engine one pass at a time."""
import asyncio
import logging
from typing import Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    wait_exponential,
)

from .config_engine.engine import ConfigEngine
from .config_engine.schema import ReconcileResult

logger = logging.getLogger(__name__)


class AgentRunner:
    """
    Runs reconciliation passes for a single node, never concurrently.

    Failed passes are retried with exponential backoff; successful passes
    are repeated after the delay they request.
    """

    def __init__(
        self,
        engine: ConfigEngine,
        retry_min_wait: float = 1.0,
        retry_max_wait: float = 300.0,
    ):
        self.engine = engine
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait
        self.passes = 0
        self._stopping = asyncio.Event()

    def stop(self) -> None:
        """Ask a running loop to exit after the current pass."""
        self._stopping.set()

    async def run_once(self) -> ReconcileResult:
        """Run a single pass without retrying."""
        self.passes += 1
        return await self.engine.reconcile()

    async def run_forever(self, max_passes: Optional[int] = None) -> None:
        """
        Reconcile until stopped.

        Args:
            max_passes: Stop after this many successful passes (for tests and one-shot use)
        """
        completed = 0
        while not self._stopping.is_set():
            try:
                result = await self._run_with_backoff()
            except Exception as e:
                # Only reached once stop() was called during backoff
                logger.warning(f"Stopping with failed reconciliation: {e}")
                return

            completed += 1
            if max_passes is not None and completed >= max_passes:
                return

            delay = result.requeue_after or self.engine.sync_period
            logger.debug(f"Next reconciliation in {delay}s")
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    def _should_stop(self, retry_state: RetryCallState) -> bool:
        return self._stopping.is_set()

    async def _run_with_backoff(self) -> ReconcileResult:
        retrying = AsyncRetrying(
            stop=self._should_stop,
            wait=wait_exponential(
                multiplier=self.retry_min_wait,
                min=self.retry_min_wait,
                max=self.retry_max_wait,
            ),
            retry=retry_if_exception_type(Exception),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                result = await self.run_once()
        return result
