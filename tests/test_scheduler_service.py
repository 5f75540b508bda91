"""Tests for the background publish loop."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from contentforge.services.scheduler_service import SchedulerService


@pytest.mark.asyncio
async def test_loop_publishes_due_posts_until_stopped():
    orchestrator = MagicMock()
    orchestrator.publish_due_posts = AsyncMock(return_value=[])
    scheduler = SchedulerService(orchestrator, check_interval=0.01)

    scheduler.start_background()
    await asyncio.sleep(0.05)
    await scheduler.stop()

    assert orchestrator.publish_due_posts.await_count >= 2
    assert scheduler.running is False


@pytest.mark.asyncio
async def test_errors_do_not_stop_the_loop():
    orchestrator = MagicMock()
    orchestrator.publish_due_posts = AsyncMock(side_effect=[RuntimeError("database is locked"), [], []])
    scheduler = SchedulerService(orchestrator, check_interval=60)

    await scheduler.run_once()
    await scheduler.run_once()

    assert orchestrator.publish_due_posts.await_count == 2


@pytest.mark.asyncio
async def test_start_is_idempotent():
    orchestrator = MagicMock()
    orchestrator.publish_due_posts = AsyncMock(return_value=[])
    scheduler = SchedulerService(orchestrator, check_interval=60)

    scheduler.start_background()
    await asyncio.sleep(0)
    # Already running: returns immediately instead of starting a second loop
    await asyncio.wait_for(scheduler.start(), timeout=1)
    await scheduler.stop()

    assert orchestrator.publish_due_posts.await_count == 1
