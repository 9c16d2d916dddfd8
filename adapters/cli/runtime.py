"""
CLI 실행 환경

명령마다 데이터베이스와 어댑터 팩토리를 초기화하고 종료 시 정리합니다.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from adapters.db.database import initialize_database
from adapters.factory import AdapterFactory, initialize_adapter_factory
from config.adapters import get_config


@asynccontextmanager
async def open_factory() -> AsyncIterator[AdapterFactory]:
    """초기화된 어댑터 팩토리를 제공합니다."""
    config = get_config()
    db_adapter = initialize_database(config)
    await db_adapter.initialize()

    factory = initialize_adapter_factory(config, database=db_adapter)
    try:
        yield factory
    finally:
        await factory.create_task_runner().drain()
        await db_adapter.close()
