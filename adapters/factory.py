"""
어댑터 팩토리

모든 어댑터들을 생성하고 의존성을 주입하는 팩토리 클래스입니다.
클린 아키텍처의 의존성 역전 원칙을 구현합니다.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.entities import RenewalResult
from core.domain.ports import (
    AccountRepositoryPort,
    BackgroundTaskPort,
    ConfigPort,
    EncryptionServicePort,
    GoogleApiClientPort,
    LoggerPort,
    NotifierPort,
    TopicProvisionerPort,
)
from core.usecases.credentials import AccountLocks, CredentialManagementUseCase
from core.usecases.push_notifications import PushNotificationUseCase
from core.usecases.registration import RegistrationUseCase
from core.usecases.watch_management import WatchManagementUseCase
from core.usecases.watch_renewal import WatchRenewalUseCase

from .db.database import DatabaseAdapter, get_database_adapter
from .db.repositories import AccountRepositoryAdapter
from .external.encryption_service import EncryptionServiceAdapter
from .external.google_api_client import GoogleApiClientAdapter
from .external.pubsub_topic_service import PubSubTopicAdapter
from .external.task_runner import AsyncioTaskRunner
from .external.webhook_notifier import WebhookNotifierAdapter
from .logger import LoggerAdapter
from config.adapters import get_config


class AdapterFactory:
    """어댑터 팩토리

    transport를 지정하면 모든 외부 HTTP 호출이 해당 httpx 전송 계층을 사용합니다.
    외부 연동 어댑터를 직접 주입하면 생성 대신 주입된 인스턴스를 사용합니다.
    """

    def __init__(
        self,
        config: Optional[ConfigPort] = None,
        database: Optional[DatabaseAdapter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        google_api_client: Optional[GoogleApiClientPort] = None,
        topic_provisioner: Optional[TopicProvisionerPort] = None,
        notifier: Optional[NotifierPort] = None,
        task_runner: Optional[BackgroundTaskPort] = None,
    ):
        self.config = config or get_config()
        self._database = database
        self._transport = transport
        self._logger: Optional[LoggerPort] = None
        self._encryption_service: Optional[EncryptionServicePort] = None
        self._google_api_client = google_api_client
        self._topic_provisioner = topic_provisioner
        self._notifier = notifier
        self._task_runner = task_runner
        self.locks = AccountLocks()

    def get_database(self) -> DatabaseAdapter:
        if self._database is None:
            self._database = get_database_adapter()
        return self._database

    @asynccontextmanager
    async def session_scope(self) -> AsyncIterator[AsyncSession]:
        """요청과 무관한 작업(백그라운드, 배치)용 독립 세션"""
        async with self.get_database().get_session() as session:
            yield session

    def create_logger(self) -> LoggerPort:
        """로거 어댑터를 생성합니다."""
        if self._logger is None:
            self._logger = LoggerAdapter(
                name="gmail_watch",
                level=self.config.get_log_level(),
                format_string=self.config.get_log_format(),
            )
        return self._logger

    def create_encryption_service(self) -> EncryptionServicePort:
        """암호화 서비스 어댑터를 생성합니다."""
        if self._encryption_service is None:
            self._encryption_service = EncryptionServiceAdapter(
                encryption_key=self.config.get_encryption_key(),
                logger=self.create_logger(),
            )
        return self._encryption_service

    def create_google_api_client(self) -> GoogleApiClientPort:
        """Google API 클라이언트 어댑터를 생성합니다."""
        if self._google_api_client is None:
            self._google_api_client = GoogleApiClientAdapter(
                logger=self.create_logger(),
                timeout=self.config.get_http_timeout_seconds(),
                transport=self._transport,
            )
        return self._google_api_client

    def create_topic_provisioner(self) -> TopicProvisionerPort:
        """Pub/Sub 토픽 프로비저닝 어댑터를 생성합니다."""
        if self._topic_provisioner is None:
            self._topic_provisioner = PubSubTopicAdapter(
                logger=self.create_logger(),
                credentials_file=self.config.get_pubsub_credentials_file(),
                timeout=self.config.get_http_timeout_seconds(),
                transport=self._transport,
            )
        return self._topic_provisioner

    def create_notifier(self) -> NotifierPort:
        """웹훅 알림 어댑터를 생성합니다."""
        if self._notifier is None:
            self._notifier = WebhookNotifierAdapter(
                logger=self.create_logger(),
                registration_url=self.config.get_registration_webhook_url(),
                renewal_url=self.config.get_renewal_webhook_url(),
                max_attempts=self.config.get_webhook_max_attempts(),
                retry_delay=self.config.get_webhook_retry_delay_seconds(),
                timeout=self.config.get_http_timeout_seconds(),
                transport=self._transport,
            )
        return self._notifier

    def create_task_runner(self) -> BackgroundTaskPort:
        """백그라운드 작업 실행기를 생성합니다."""
        if self._task_runner is None:
            self._task_runner = AsyncioTaskRunner(logger=self.create_logger())
        return self._task_runner

    def create_account_repository(self, session: AsyncSession) -> AccountRepositoryPort:
        """계정 Repository 어댑터를 생성합니다."""
        return AccountRepositoryAdapter(session, self.create_encryption_service())

    def create_credential_management_usecase(self, session: AsyncSession) -> CredentialManagementUseCase:
        """자격 증명 관리 유즈케이스를 생성합니다."""
        return CredentialManagementUseCase(
            account_repository=self.create_account_repository(session),
            google_api_client=self.create_google_api_client(),
            config=self.config,
            logger=self.create_logger(),
            locks=self.locks,
        )

    def create_watch_management_usecase(self, session: AsyncSession) -> WatchManagementUseCase:
        """Gmail watch 관리 유즈케이스를 생성합니다."""
        return WatchManagementUseCase(
            account_repository=self.create_account_repository(session),
            google_api_client=self.create_google_api_client(),
            topic_provisioner=self.create_topic_provisioner(),
            credential_management=self.create_credential_management_usecase(session),
            config=self.config,
            logger=self.create_logger(),
            locks=self.locks,
        )

    async def establish_in_new_session(self, account_id: str):
        """독립 세션에서 Gmail watch를 설정합니다."""
        async with self.session_scope() as session:
            return await self.create_watch_management_usecase(session).establish(account_id)

    async def renew_in_new_session(self, account_id: str) -> RenewalResult:
        """독립 세션에서 Gmail watch를 갱신합니다."""
        async with self.session_scope() as session:
            return await self.create_watch_management_usecase(session).renew(account_id)

    def create_watch_renewal_usecase(self, session: AsyncSession) -> WatchRenewalUseCase:
        """Gmail watch 갱신 배치 유즈케이스를 생성합니다."""
        return WatchRenewalUseCase(
            account_repository=self.create_account_repository(session),
            renew_one=self.renew_in_new_session,
            notifier=self.create_notifier(),
            logger=self.create_logger(),
        )

    def create_registration_usecase(self, session: AsyncSession) -> RegistrationUseCase:
        """등록 유즈케이스를 생성합니다."""
        return RegistrationUseCase(
            account_repository=self.create_account_repository(session),
            google_api_client=self.create_google_api_client(),
            notifier=self.create_notifier(),
            task_runner=self.create_task_runner(),
            config=self.config,
            logger=self.create_logger(),
            establish_subscription=self.establish_in_new_session,
        )

    def create_push_notification_usecase(self, session: AsyncSession) -> PushNotificationUseCase:
        """푸시 알림 수신 유즈케이스를 생성합니다."""
        return PushNotificationUseCase(
            account_repository=self.create_account_repository(session),
            logger=self.create_logger(),
        )

    def get_config(self) -> ConfigPort:
        """설정 객체를 반환합니다."""
        return self.config


# 전역 팩토리 인스턴스
_factory: Optional[AdapterFactory] = None


def get_adapter_factory() -> AdapterFactory:
    """전역 어댑터 팩토리 인스턴스를 반환합니다."""
    global _factory
    if _factory is None:
        _factory = AdapterFactory()
    return _factory


def initialize_adapter_factory(
    config: Optional[ConfigPort] = None,
    database: Optional[DatabaseAdapter] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AdapterFactory:
    """어댑터 팩토리를 초기화합니다."""
    global _factory
    _factory = AdapterFactory(config, database=database, transport=transport)
    return _factory
