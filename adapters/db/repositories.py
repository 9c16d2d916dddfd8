"""
데이터베이스 Repository 어댑터

Core 레이어의 AccountRepositoryPort를 구현하는 SQLAlchemy 기반 어댑터입니다.
토큰 필드는 기록 전에 암호화하고, 조회 후 복호화하여 반환합니다.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, List, Optional, Tuple

from sqlalchemy import delete, desc, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from core.domain.entities import Account, AccountStats, Credentials, Subscription, utc_now
from core.domain.exceptions import StoreError
from core.domain.ports import AccountRepositoryPort, EncryptionServicePort
from .models import AccountModel


class AccountRepositoryAdapter(AccountRepositoryPort):
    """계정 Repository 어댑터"""

    def __init__(self, session: AsyncSession, encryption_service: EncryptionServicePort):
        self.session = session
        self.encryption_service = encryption_service

    @asynccontextmanager
    async def _store_operation(self, action: str) -> AsyncIterator[None]:
        """SQLAlchemy 오류를 StoreError로 변환합니다."""
        try:
            yield
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StoreError(f"{action} 실패: {str(e)}") from e

    async def upsert(self, account: Account) -> Account:
        """계정을 생성하거나 전체 문서를 교체합니다."""
        encrypted_access = await self.encryption_service.encrypt(account.credentials.access_token)
        encrypted_refresh = None
        if account.credentials.refresh_token:
            encrypted_refresh = await self.encryption_service.encrypt(account.credentials.refresh_token)

        async with self._store_operation("계정 저장"):
            model = await self.session.get(AccountModel, account.id)
            if model is None:
                model = AccountModel(id=account.id)
                self.session.add(model)

            model.owner_email = account.owner_email
            model.owner_name = account.owner_name
            model.owner_org = account.owner_org
            model.mailbox_address = account.mailbox_address
            model.access_token = encrypted_access
            model.refresh_token = encrypted_refresh
            model.token_expires_at = account.credentials.expires_at
            self._apply_subscription(model, account.subscription)
            model.registered_at = account.registered_at
            model.last_renewed_at = account.last_renewed_at
            model.updated_at = utc_now()

            await self.session.commit()

        return account

    async def get_by_id(self, account_id: str) -> Optional[Account]:
        """ID로 계정을 조회합니다."""
        async with self._store_operation("계정 조회"):
            model = await self.session.get(AccountModel, account_id, populate_existing=True)

        if model is None:
            return None

        return await self._model_to_entity(model)

    async def get_by_mailbox(self, mailbox_address: str) -> Optional[Account]:
        """메일박스 주소로 계정을 조회합니다.

        대소문자를 구분하지 않으며, 같은 주소의 계정이 여러 개면 가장 최근에 등록된 계정을 반환합니다.
        """
        stmt = (
            select(AccountModel)
            .where(func.lower(AccountModel.mailbox_address) == mailbox_address.lower())
            .order_by(desc(AccountModel.registered_at))
            .limit(1)
        )
        async with self._store_operation("메일박스 조회"):
            result = await self.session.execute(stmt)
            model = result.scalar_one_or_none()

        if model is None:
            return None

        return await self._model_to_entity(model)

    async def list_expiring_before(self, threshold: datetime) -> List[Account]:
        """구독 만료 시간이 threshold 이하인 계정을 조회합니다."""
        stmt = (
            select(AccountModel)
            .where(AccountModel.subscription_expires_at.is_not(None))
            .where(AccountModel.subscription_expires_at <= threshold)
            .order_by(AccountModel.subscription_expires_at)
        )
        async with self._store_operation("만료 임박 구독 조회"):
            result = await self.session.execute(stmt)
            models = result.scalars().all()

        return [await self._model_to_entity(model) for model in models]

    async def list_expiring_ids_before(self, threshold: datetime) -> List[Tuple[str, str]]:
        """구독 만료 시간이 threshold 이하인 계정의 ID와 메일박스 주소를 조회합니다.

        토큰 컬럼은 읽지 않으므로 손상된 암호문이 있어도 실패하지 않습니다.
        """
        stmt = (
            select(AccountModel.id, AccountModel.mailbox_address)
            .where(AccountModel.subscription_expires_at.is_not(None))
            .where(AccountModel.subscription_expires_at <= threshold)
            .order_by(AccountModel.subscription_expires_at)
        )
        async with self._store_operation("만료 임박 구독 조회"):
            result = await self.session.execute(stmt)
            rows = result.all()

        return [(row.id, row.mailbox_address) for row in rows]

    async def update_subscription(
        self,
        account_id: str,
        subscription: Optional[Subscription],
    ) -> None:
        """구독 정보를 업데이트합니다."""
        async with self._store_operation("구독 정보 업데이트"):
            model = await self.session.get(AccountModel, account_id)
            if model is None:
                raise StoreError(f"계정을 찾을 수 없습니다: {account_id}")

            self._apply_subscription(model, subscription)
            if subscription is not None:
                model.last_renewed_at = utc_now()
            model.updated_at = utc_now()

            await self.session.commit()

    async def update_credentials(self, account_id: str, credentials: Credentials) -> None:
        """토큰 정보를 다시 암호화하여 업데이트합니다."""
        encrypted_access = await self.encryption_service.encrypt(credentials.access_token)
        encrypted_refresh = None
        if credentials.refresh_token:
            encrypted_refresh = await self.encryption_service.encrypt(credentials.refresh_token)

        async with self._store_operation("토큰 업데이트"):
            model = await self.session.get(AccountModel, account_id)
            if model is None:
                raise StoreError(f"계정을 찾을 수 없습니다: {account_id}")

            model.access_token = encrypted_access
            model.refresh_token = encrypted_refresh
            model.token_expires_at = credentials.expires_at
            model.updated_at = utc_now()

            await self.session.commit()

    async def list_all(self, skip: int = 0, limit: int = 100) -> List[Account]:
        """모든 계정을 조회합니다."""
        stmt = (
            select(AccountModel)
            .order_by(desc(AccountModel.registered_at))
            .offset(skip)
            .limit(limit)
        )
        async with self._store_operation("계정 목록 조회"):
            result = await self.session.execute(stmt)
            models = result.scalars().all()

        return [await self._model_to_entity(model) for model in models]

    async def delete(self, account_id: str) -> bool:
        """계정을 삭제합니다."""
        async with self._store_operation("계정 삭제"):
            result = await self.session.execute(
                delete(AccountModel).where(AccountModel.id == account_id)
            )
            await self.session.commit()

        return result.rowcount > 0

    async def get_stats(self) -> AccountStats:
        """계정 통계를 조회합니다."""
        now = utc_now()

        async with self._store_operation("통계 조회"):
            total = await self._count()
            registered_today = await self._count(
                AccountModel.registered_at >= now - timedelta(days=1)
            )
            registered_this_week = await self._count(
                AccountModel.registered_at >= now - timedelta(days=7)
            )
            active_subscriptions = await self._count(
                AccountModel.subscription_expires_at > now
            )

        return AccountStats(
            total_accounts=total,
            registered_today=registered_today,
            registered_this_week=registered_this_week,
            active_subscriptions=active_subscriptions,
        )

    async def _count(self, *conditions) -> int:
        stmt = select(func.count()).select_from(AccountModel)
        for condition in conditions:
            stmt = stmt.where(condition)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    @staticmethod
    def _apply_subscription(model: AccountModel, subscription: Optional[Subscription]) -> None:
        if subscription is None:
            model.subscription_cursor = None
            model.subscription_expires_at = None
            model.channel_name = None
        else:
            model.subscription_cursor = subscription.cursor
            model.subscription_expires_at = subscription.expires_at
            model.channel_name = subscription.channel_name

    async def _model_to_entity(self, model: AccountModel) -> Account:
        """모델을 엔티티로 변환합니다. (토큰 복호화)"""
        access_token = await self.encryption_service.decrypt(model.access_token)
        refresh_token = None
        if model.refresh_token:
            refresh_token = await self.encryption_service.decrypt(model.refresh_token)

        subscription = None
        if model.subscription_expires_at is not None:
            subscription = Subscription(
                cursor=model.subscription_cursor,
                expires_at=model.subscription_expires_at,
                channel_name=model.channel_name,
            )

        return Account(
            id=model.id,
            owner_email=model.owner_email,
            owner_name=model.owner_name,
            owner_org=model.owner_org or "",
            mailbox_address=model.mailbox_address,
            credentials=Credentials(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=model.token_expires_at,
            ),
            subscription=subscription,
            registered_at=model.registered_at,
            last_renewed_at=model.last_renewed_at,
        )
