"""
Gmail watch 관리 유즈케이스

계정 단위 푸시 알림 구독(watch)의 생성, 갱신, 해제를 담당합니다.
establish와 renew는 같은 제공자 호출을 사용하며 오류 처리 정책만 다릅니다.
- establish: 오류 전파
- renew: 오류를 실패 결과로 변환 (배치 컨텍스트)
"""

from datetime import datetime, timezone

from ..domain.entities import Account, RenewalResult, Subscription, utc_now
from ..domain.exceptions import (
    AccountNotFoundError,
    DecryptionError,
    MissingOfflineGrantError,
    ProviderError,
    StoreError,
)
from ..domain.ports import (
    AccountRepositoryPort,
    ConfigPort,
    GoogleApiClientPort,
    LoggerPort,
    TopicProvisionerPort,
)
from .credentials import AccountLocks, CredentialManagementUseCase


def expiration_to_datetime(expiration_ms) -> datetime:
    """Gmail watch 만료 값(epoch 밀리초)을 UTC datetime으로 변환합니다."""
    try:
        seconds = int(expiration_ms) / 1000
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise ProviderError(f"Gmail watch 만료 값이 올바르지 않습니다: {expiration_ms}") from e


def classify_error(error: Exception) -> str:
    """갱신 실패 결과에 기록할 오류 종류"""
    if isinstance(error, MissingOfflineGrantError):
        return "missing_offline_grant"
    if isinstance(error, AccountNotFoundError):
        return "account_not_found"
    if isinstance(error, ProviderError):
        return "provider_error"
    if isinstance(error, DecryptionError):
        return "decryption_error"
    if isinstance(error, StoreError):
        return "store_error"
    return "unexpected_error"


class WatchManagementUseCase:
    """Gmail watch 관리 유즈케이스"""

    def __init__(
        self,
        account_repository: AccountRepositoryPort,
        google_api_client: GoogleApiClientPort,
        topic_provisioner: TopicProvisionerPort,
        credential_management: CredentialManagementUseCase,
        config: ConfigPort,
        logger: LoggerPort,
        locks: AccountLocks,
    ):
        self.account_repository = account_repository
        self.google_api_client = google_api_client
        self.topic_provisioner = topic_provisioner
        self.credential_management = credential_management
        self.config = config
        self.logger = logger
        self.locks = locks

    def channel_name_for(self, account_id: str) -> str:
        """계정별 Pub/Sub 토픽 이름"""
        return f"{self.config.get_pubsub_topic_prefix()}{account_id}"

    def topic_path_for(self, channel_name: str) -> str:
        return f"projects/{self.config.get_gcp_project_id()}/topics/{channel_name}"

    async def _load_account(self, account_id: str) -> Account:
        account = await self.account_repository.get_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def _establish(self, account: Account) -> Subscription:
        """계정 락을 잡은 상태에서 토픽을 준비하고 watch를 등록하여 저장합니다."""
        credentials = await self.credential_management.get_usable_credentials(account)
        channel_name = self.channel_name_for(account.id)
        topic_path = self.topic_path_for(channel_name)
        await self.topic_provisioner.ensure_topic(topic_path)

        response = await self.google_api_client.watch_mailbox(
            access_token=credentials.access_token,
            topic_name=topic_path,
            label_ids=self.config.get_watch_label_ids(),
        )

        expires_at = expiration_to_datetime(response["expiration"])
        if expires_at <= utc_now():
            raise ProviderError(f"Gmail watch 만료 시간이 과거입니다: {expires_at.isoformat()}")

        subscription = Subscription(
            cursor=str(response["historyId"]),
            expires_at=expires_at,
            channel_name=channel_name,
        )
        await self.account_repository.update_subscription(account.id, subscription)
        return subscription

    async def establish(self, account_id: str) -> Subscription:
        """
        계정의 Gmail watch를 등록합니다.

        Args:
            account_id: 계정 ID

        Returns:
            저장된 구독 정보

        Raises:
            AccountNotFoundError: 계정이 없는 경우
            MissingOfflineGrantError: 토큰이 만료되었고 리프레시 토큰이 없는 경우
            ProviderError: Gmail API 호출 실패
            StoreError: 저장 실패
        """
        self.logger.info(f"Gmail watch 설정 시작: {account_id}")

        async with self.locks.get(account_id):
            account = await self._load_account(account_id)
            subscription = await self._establish(account)

        self.logger.info(
            f"Gmail watch 설정 완료: {account.mailbox_address}, 만료={subscription.expires_at.isoformat()}"
        )
        return subscription

    async def renew(self, account_id: str) -> RenewalResult:
        """
        계정의 Gmail watch를 갱신합니다. 예외를 발생시키지 않습니다.

        Returns:
            성공 또는 실패 결과
        """
        mailbox_address = None
        try:
            async with self.locks.get(account_id):
                account = await self._load_account(account_id)
                mailbox_address = account.mailbox_address

                if not account.can_auto_renew():
                    raise MissingOfflineGrantError(
                        f"오프라인 접근 권한(리프레시 토큰)이 없습니다: {mailbox_address}"
                    )

                subscription = await self._establish(account)

        except Exception as e:
            self.logger.error(f"Gmail watch 갱신 실패: {account_id} - {str(e)}")
            return RenewalResult(
                success=False,
                account_id=account_id,
                mailbox_address=mailbox_address,
                error=str(e),
                error_type=classify_error(e),
            )

        self.logger.info(f"Gmail watch 갱신 완료: {mailbox_address}")
        return RenewalResult(
            success=True,
            account_id=account_id,
            mailbox_address=mailbox_address,
            new_expiry=subscription.expires_at,
        )

    async def teardown(self, account_id: str) -> None:
        """
        계정의 Gmail watch를 중지하고 구독 정보를 삭제합니다.

        Raises:
            AccountNotFoundError: 계정이 없는 경우
            ProviderError: Gmail API 호출 실패
            StoreError: 저장 실패
        """
        self.logger.info(f"Gmail watch 중지 시작: {account_id}")

        async with self.locks.get(account_id):
            account = await self._load_account(account_id)
            credentials = await self.credential_management.get_usable_credentials(account)
            await self.google_api_client.stop_watch(credentials.access_token)
            await self.account_repository.update_subscription(account_id, None)

        self.logger.info(f"Gmail watch 중지 완료: {account.mailbox_address}")
