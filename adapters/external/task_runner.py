"""
백그라운드 작업 실행 어댑터

요청 처리와 분리된 부가 작업(구독 설정, 등록 알림)을 asyncio 태스크로 실행합니다.
작업 결과와 오류는 로그로만 보고됩니다.
"""

import asyncio
from typing import Any, Awaitable, Callable, Set

from core.domain.ports import BackgroundTaskPort, LoggerPort


class AsyncioTaskRunner(BackgroundTaskPort):
    """asyncio 기반 백그라운드 작업 실행기"""

    def __init__(self, logger: LoggerPort):
        self.logger = logger
        # 실행 중인 태스크가 가비지 컬렉션되지 않도록 참조 유지
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, name: str, factory: Callable[[], Awaitable[Any]]) -> None:
        """작업을 분리 실행합니다."""
        task = asyncio.create_task(factory(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        self.logger.debug(f"백그라운드 작업 시작: {name}")

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        name = task.get_name()

        if task.cancelled():
            self.logger.warning(f"백그라운드 작업 취소됨: {name}")
            return

        error = task.exception()
        if error is not None:
            self.logger.error(f"백그라운드 작업 실패: {name} - {type(error).__name__}: {str(error)}")
        else:
            self.logger.info(f"백그라운드 작업 완료: {name}")

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """실행 중인 모든 작업이 끝날 때까지 대기합니다. (종료 시 사용)"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
