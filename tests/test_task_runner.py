"""Tests for the detached background task runner."""

import logging

import pytest

from adapters.external.task_runner import AsyncioTaskRunner


@pytest.mark.asyncio
async def test_failures_are_logged_not_raised(logger, caplog):
    caplog.set_level(logging.INFO, logger="gmail_watch_test")
    runner = AsyncioTaskRunner(logger)
    finished = []

    async def succeed():
        finished.append("ok")

    async def fail():
        raise RuntimeError("webhook down")

    runner.spawn("succeed", succeed)
    runner.spawn("fail", fail)
    assert runner.pending_count == 2

    await runner.drain()

    assert finished == ["ok"]
    assert runner.pending_count == 0
    messages = [record.getMessage() for record in caplog.records]
    assert any("백그라운드 작업 완료: succeed" in m for m in messages)
    assert any("백그라운드 작업 실패: fail" in m and "webhook down" in m for m in messages)
