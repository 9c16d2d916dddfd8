"""Pytest configuration and shared fixtures.

테스트 전용 설정, 임시 파일 SQLite 저장소, 외부 연동 가짜 구현을 제공합니다.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple
from urllib.parse import urlencode

import pytest
import pytest_asyncio

from adapters.db.database import DatabaseAdapter
from adapters.db.repositories import AccountRepositoryAdapter
from adapters.external.encryption_service import EncryptionServiceAdapter
from adapters.factory import AdapterFactory
from adapters.logger import LoggerAdapter
from config.adapters import TestingConfig as _TestingConfig
from core.domain.entities import (
    Account,
    Credentials,
    DeliveryOutcome,
    DeliveryStatus,
    NotificationEvent,
    Subscription,
    utc_now,
)
from core.domain.exceptions import ProviderError
from core.domain.ports import BackgroundTaskPort, GoogleApiClientPort, NotifierPort, TopicProvisionerPort


class FakeGoogleApiClient(GoogleApiClientPort):
    """Google API 가짜 구현. 호출 내역을 기록합니다."""

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.token_response: Dict[str, Any] = {
            "access_token": "exchanged-access-token",
            "refresh_token": "exchanged-refresh-token",
            "expires_in": 3600,
        }
        self.refresh_response: Dict[str, Any] = {
            "access_token": "refreshed-access-token",
            "expires_in": 3600,
        }
        self.user_email = "mailbox@gmail.com"
        self.watch_lifetime = timedelta(days=7)
        self.history_id = "9876"
        # 이 액세스 토큰으로 watch 요청 시 실패
        self.failing_access_tokens: Set[str] = set()
        self.fail_exchange = False
        # watch 요청 처리 시간과 동시 실행 수 추적
        self.watch_delay = 0.0
        self.active_watches = 0
        self.max_concurrent_watches = 0

    def calls_to(self, name: str) -> List[Dict[str, Any]]:
        return [kwargs for call_name, kwargs in self.calls if call_name == name]

    def get_authorization_url(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: Sequence[str],
        state: str,
    ) -> str:
        self.calls.append(("get_authorization_url", {"scopes": list(scopes), "state": state}))
        query = urlencode({"client_id": client_id, "redirect_uri": redirect_uri, "state": state})
        return f"https://accounts.google.com/o/oauth2/v2/auth?{query}"

    async def exchange_code_for_token(self, client_id, client_secret, redirect_uri, code) -> dict:
        self.calls.append(("exchange_code_for_token", {"code": code}))
        if self.fail_exchange:
            raise ProviderError("토큰 교환 실패: 400 - invalid_grant", status_code=400)
        return dict(self.token_response)

    async def refresh_token(self, client_id, client_secret, refresh_token) -> dict:
        self.calls.append(("refresh_token", {"refresh_token": refresh_token}))
        return dict(self.refresh_response)

    async def revoke_token(self, token: str) -> None:
        self.calls.append(("revoke_token", {"token": token}))

    async def get_user_info(self, access_token: str) -> dict:
        self.calls.append(("get_user_info", {"access_token": access_token}))
        return {"email": self.user_email, "name": "Mailbox Owner"}

    async def watch_mailbox(self, access_token: str, topic_name: str, label_ids: Sequence[str]) -> dict:
        self.calls.append((
            "watch_mailbox",
            {"access_token": access_token, "topic_name": topic_name, "label_ids": list(label_ids)},
        ))
        self.active_watches += 1
        self.max_concurrent_watches = max(self.max_concurrent_watches, self.active_watches)
        try:
            await asyncio.sleep(self.watch_delay)
        finally:
            self.active_watches -= 1

        if access_token in self.failing_access_tokens:
            raise ProviderError("Gmail watch 등록 실패: 403 - forbidden", status_code=403)

        expiration = utc_now() + self.watch_lifetime
        expiration_ms = int((expiration - datetime(1970, 1, 1)).total_seconds() * 1000)
        return {"historyId": self.history_id, "expiration": str(expiration_ms)}

    async def stop_watch(self, access_token: str) -> None:
        self.calls.append(("stop_watch", {"access_token": access_token}))


class FakeTopicProvisioner(TopicProvisionerPort):
    """토픽 생성 대신 요청된 경로를 기록합니다."""

    def __init__(self):
        self.ensured: List[str] = []
        self.existing: Set[str] = set()
        self.fail = False

    async def ensure_topic(self, topic_path: str) -> bool:
        self.ensured.append(topic_path)
        if self.fail:
            raise ProviderError("Pub/Sub 토픽 생성 실패: 403 - permission denied", status_code=403)
        created = topic_path not in self.existing
        self.existing.add(topic_path)
        return created


class RecordingNotifier(NotifierPort):
    """전송 대신 이벤트를 기록하는 Notifier"""

    def __init__(self):
        self.events: List[Tuple[NotificationEvent, Dict[str, Any], bool]] = []

    async def notify(self, event, payload, test=False) -> DeliveryOutcome:
        self.events.append((event, payload, test))
        return DeliveryOutcome(status=DeliveryStatus.DELIVERED, event=event, attempts=1, status_code=200)

    def get_status(self) -> Dict[str, Any]:
        return {"registrationWebhook": {"configured": True, "url": None}}


class RecordingTaskRunner(BackgroundTaskPort):
    """작업을 바로 실행하지 않고 기록하는 실행기"""

    def __init__(self):
        self.spawned: List[Tuple[str, Callable[[], Awaitable[Any]]]] = []

    def spawn(self, name, factory) -> None:
        self.spawned.append((name, factory))

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.spawned]

    async def run_all(self) -> List[Any]:
        results = []
        for _, factory in self.spawned:
            results.append(await factory())
        self.spawned.clear()
        return results

    async def drain(self) -> None:
        await self.run_all()


@pytest.fixture
def test_config(tmp_path):
    """임시 파일 SQLite를 사용하는 테스트 설정"""
    return _TestingConfig(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        registration_webhook_url=None,
        renewal_webhook_url=None,
    )


@pytest.fixture
def logger():
    return LoggerAdapter(name="gmail_watch_test", level="DEBUG")


@pytest.fixture
def encryption_service(test_config, logger):
    return EncryptionServiceAdapter(test_config.get_encryption_key(), logger)


@pytest_asyncio.fixture
async def database(test_config):
    """테이블이 생성된 데이터베이스 어댑터"""
    db_adapter = DatabaseAdapter(test_config)
    await db_adapter.initialize()
    await db_adapter.create_tables()

    yield db_adapter

    await db_adapter.close()


@pytest_asyncio.fixture
async def session(database):
    async with database.get_session() as session:
        yield session


@pytest.fixture
def repository(session, encryption_service):
    return AccountRepositoryAdapter(session, encryption_service)


@pytest.fixture
def google_client():
    return FakeGoogleApiClient()


@pytest.fixture
def topic_provisioner():
    return FakeTopicProvisioner()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def task_runner():
    return RecordingTaskRunner()


@pytest.fixture
def factory(test_config, database, google_client, topic_provisioner, notifier, task_runner):
    """가짜 외부 연동을 주입한 어댑터 팩토리"""
    return AdapterFactory(
        test_config,
        database=database,
        google_api_client=google_client,
        topic_provisioner=topic_provisioner,
        notifier=notifier,
        task_runner=task_runner,
    )


@pytest.fixture
def make_account():
    """테스트용 계정 엔티티 생성 함수"""

    def _make_account(
        mailbox_address: str = "user@gmail.com",
        access_token: str = "access-token",
        refresh_token: Optional[str] = "refresh-token",
        token_expires_in: Optional[timedelta] = timedelta(hours=1),
        subscription_expires_in: Optional[timedelta] = None,
        **overrides,
    ) -> Account:
        now = utc_now()
        subscription = None
        if subscription_expires_in is not None:
            subscription = Subscription(
                cursor="1000",
                expires_at=now + subscription_expires_in,
                channel_name="gmail-watch-existing",
            )

        fields = dict(
            owner_email="owner@example.com",
            owner_name="홍길동",
            owner_org="Example",
            mailbox_address=mailbox_address,
            credentials=Credentials(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=now + token_expires_in if token_expires_in is not None else None,
            ),
            subscription=subscription,
            registered_at=now,
        )
        fields.update(overrides)
        return Account(**fields)

    return _make_account
