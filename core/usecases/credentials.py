"""
자격 증명 관리 유즈케이스

Gmail API 호출 전에 사용할 수 있는 액세스 토큰을 보장합니다.
- 만료 임박 토큰 갱신 및 재암호화 저장
- 토큰 폐기
- 계정 단위 직렬화 (같은 프로세스 내)
"""

import asyncio
import weakref
from datetime import timedelta
from typing import Optional

from ..domain.entities import Account, Credentials, utc_now
from ..domain.exceptions import AccountNotFoundError, MissingOfflineGrantError, ProviderError
from ..domain.ports import (
    AccountRepositoryPort,
    ConfigPort,
    GoogleApiClientPort,
    LoggerPort,
)

# 만료까지 이 시간(초) 이내로 남으면 갱신
REFRESH_LEEWAY_SECONDS = 60


class AccountLocks:
    """계정 ID별 asyncio.Lock 모음

    락을 잡거나 기다리는 코루틴이 없으면 항목이 자동으로 제거됩니다.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


def credentials_from_token_response(
    token_data: dict,
    previous_refresh_token: Optional[str] = None,
) -> Credentials:
    """토큰 엔드포인트 응답을 Credentials로 변환합니다.

    응답에 refresh_token이 없으면 기존 값을 유지합니다.
    """
    expires_at = None
    if token_data.get("expires_in") is not None:
        expires_at = utc_now() + timedelta(seconds=int(token_data["expires_in"]))

    return Credentials(
        access_token=token_data["access_token"],
        refresh_token=token_data.get("refresh_token") or previous_refresh_token,
        expires_at=expires_at,
    )


class CredentialManagementUseCase:
    """자격 증명 관리 유즈케이스"""

    def __init__(
        self,
        account_repository: AccountRepositoryPort,
        google_api_client: GoogleApiClientPort,
        config: ConfigPort,
        logger: LoggerPort,
        locks: AccountLocks,
    ):
        self.account_repository = account_repository
        self.google_api_client = google_api_client
        self.config = config
        self.logger = logger
        self.locks = locks

    async def _load_account(self, account_id: str) -> Account:
        account = await self.account_repository.get_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def get_usable_credentials(self, account: Account) -> Credentials:
        """
        API 호출에 사용할 수 있는 자격 증명을 반환합니다.

        호출자가 계정 락을 이미 잡고 있다고 가정합니다.

        Raises:
            MissingOfflineGrantError: 토큰이 만료되었으나 리프레시 토큰이 없는 경우
            ProviderError: 토큰 갱신 실패
        """
        credentials = account.credentials
        if not credentials.is_expired(REFRESH_LEEWAY_SECONDS):
            return credentials

        if not credentials.can_refresh():
            raise MissingOfflineGrantError(
                f"액세스 토큰이 만료되었고 리프레시 토큰이 없습니다: {account.mailbox_address}"
            )

        return await self._refresh(account)

    async def _refresh(self, account: Account) -> Credentials:
        self.logger.info(f"토큰 갱신 시작: {account.id}")

        token_data = await self.google_api_client.refresh_token(
            client_id=self.config.get_google_client_id(),
            client_secret=self.config.get_google_client_secret(),
            refresh_token=account.credentials.refresh_token,
        )
        if not token_data.get("access_token"):
            raise ProviderError("토큰 갱신 응답에 액세스 토큰이 없습니다")

        credentials = credentials_from_token_response(
            token_data,
            previous_refresh_token=account.credentials.refresh_token,
        )
        await self.account_repository.update_credentials(account.id, credentials)
        account.credentials = credentials

        self.logger.info(f"토큰 갱신 완료: {account.id}, 만료={credentials.expires_at}")
        return credentials

    async def refresh(self, account_id: str) -> Credentials:
        """
        만료 여부와 관계없이 토큰을 강제로 갱신합니다.

        Raises:
            AccountNotFoundError: 계정이 없는 경우
            MissingOfflineGrantError: 리프레시 토큰이 없는 경우
            ProviderError: 토큰 갱신 실패
        """
        async with self.locks.get(account_id):
            account = await self._load_account(account_id)

            if not account.can_auto_renew():
                raise MissingOfflineGrantError(
                    f"리프레시 토큰이 없어 갱신할 수 없습니다: {account.mailbox_address}"
                )

            return await self._refresh(account)

    async def revoke(self, account_id: str) -> None:
        """
        제공자 측 토큰을 폐기합니다. 계정 레코드는 유지됩니다.

        Raises:
            AccountNotFoundError: 계정이 없는 경우
            ProviderError: 폐기 요청 실패
        """
        async with self.locks.get(account_id):
            account = await self._load_account(account_id)
            await self.google_api_client.revoke_token(account.credentials.access_token)

        self.logger.info(f"토큰 폐기 완료: {account_id}")
