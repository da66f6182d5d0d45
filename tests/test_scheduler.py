"""Tests for the reconciliation scheduler."""
import asyncio

import pytest

from node_agent.config_engine import ReconcileOutcome, ReconcileResult
from node_agent.scheduler import AgentRunner


class FakeEngine:
    """Engine stand-in returning scripted results."""

    def __init__(self, results, sync_period=0.01):
        self.results = list(results)
        self.sync_period = sync_period
        self.calls = 0

    async def reconcile(self):
        self.calls += 1
        item = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(item, Exception):
            raise item
        return item


def _applied(requeue_after=0.01):
    return ReconcileResult(outcome=ReconcileOutcome.APPLIED, requeue_after=requeue_after)


class TestAgentRunner:
    """Tests for AgentRunner."""

    @pytest.mark.asyncio
    async def test_run_once(self):
        engine = FakeEngine([_applied()])

        result = await AgentRunner(engine).run_once()

        assert result.outcome == ReconcileOutcome.APPLIED
        assert engine.calls == 1

    @pytest.mark.asyncio
    async def test_run_once_propagates_errors(self):
        engine = FakeEngine([RuntimeError("boom")])

        with pytest.raises(RuntimeError, match="boom"):
            await AgentRunner(engine).run_once()

    @pytest.mark.asyncio
    async def test_requeues_until_max_passes(self):
        engine = FakeEngine([_applied()])

        await asyncio.wait_for(AgentRunner(engine).run_forever(max_passes=3), timeout=2)

        assert engine.calls == 3

    @pytest.mark.asyncio
    async def test_absent_result_uses_sync_period(self):
        """Results without a requeue delay wait for the sync period."""
        engine = FakeEngine([ReconcileResult(outcome=ReconcileOutcome.ABSENT)], sync_period=0.01)

        await asyncio.wait_for(AgentRunner(engine).run_forever(max_passes=2), timeout=2)

        assert engine.calls == 2

    @pytest.mark.asyncio
    async def test_failures_are_retried_with_backoff(self):
        engine = FakeEngine([RuntimeError("first"), RuntimeError("second"), _applied()])
        runner = AgentRunner(engine, retry_min_wait=0.01, retry_max_wait=0.02)

        await asyncio.wait_for(runner.run_forever(max_passes=1), timeout=2)

        assert engine.calls == 3
        assert runner.passes == 3

    @pytest.mark.asyncio
    async def test_stop_during_backoff(self):
        engine = FakeEngine([RuntimeError("always")])
        runner = AgentRunner(engine, retry_min_wait=0.01, retry_max_wait=0.02)
        asyncio.get_running_loop().call_later(0.05, runner.stop)

        await asyncio.wait_for(runner.run_forever(), timeout=2)

        assert engine.calls >= 1

    @pytest.mark.asyncio
    async def test_stop_during_requeue_wait(self):
        engine = FakeEngine([_applied(requeue_after=30)])
        runner = AgentRunner(engine)
        asyncio.get_running_loop().call_later(0.05, runner.stop)

        await asyncio.wait_for(runner.run_forever(), timeout=2)

        assert engine.calls == 1
