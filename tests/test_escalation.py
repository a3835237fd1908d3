"""Escalation scheduler."""

import asyncio
from datetime import timedelta

import pytest

from civicdesk.escalation import EscalationScheduler
from civicdesk.models import IssueStatus, Priority

from conftest import photo


@pytest.fixture
def stale_issue(lifecycle, citizen, clock):
    issue = lifecycle.create(citizen.id, "broken streetlight", Priority.HIGH, media=photo(50_000))
    clock.advance(days=8)
    return issue


class TestTick:
    def test_tick_escalates(self, lifecycle, stale_issue):
        scheduler = EscalationScheduler(lifecycle)
        assert scheduler.tick() == 1
        issue = lifecycle.get(stale_issue.id)
        assert issue.status == IssueStatus.ASSIGNED
        assert issue.department == "Commissioner"

    def test_tick_uses_configured_window(self, lifecycle, stale_issue):
        scheduler = EscalationScheduler(lifecycle, stale_after=timedelta(days=30))
        assert scheduler.tick() == 0
        assert lifecycle.get(stale_issue.id).status == IssueStatus.REPORTED

    def test_tick_twice_keeps_department(self, lifecycle, stale_issue):
        scheduler = EscalationScheduler(lifecycle, department="Zonal Office")
        scheduler.tick()
        scheduler.tick()
        assert lifecycle.get(stale_issue.id).department == "Zonal Office"


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, lifecycle, stale_issue):
        scheduler = EscalationScheduler(lifecycle, interval=0.01)
        scheduler.start()
        assert scheduler.running
        for _ in range(100):
            if lifecycle.get(stale_issue.id).status == IssueStatus.ASSIGNED:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()
        assert not scheduler.running
        assert lifecycle.get(stale_issue.id).status == IssueStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, lifecycle):
        scheduler = EscalationScheduler(lifecycle, interval=60)
        task = scheduler.start()
        assert scheduler.start() is task
        await scheduler.stop()
        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_failing_tick_keeps_loop_alive(self, lifecycle, monkeypatch):
        calls = []

        def flaky(**kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return 0

        monkeypatch.setattr(lifecycle, "escalate_stale", flaky)
        scheduler = EscalationScheduler(lifecycle, interval=0.01)
        scheduler.start()
        for _ in range(100):
            if len(calls) >= 2:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()
        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self, lifecycle):
        await EscalationScheduler(lifecycle).stop()
