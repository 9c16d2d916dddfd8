"""
Gmail watch 갱신 배치 유즈케이스

만료가 임박한 구독을 조회하여 동시에 갱신하고, 배치 결과를 한 번에 알립니다.
"""

import asyncio
from datetime import timedelta
from typing import Awaitable, Callable, List

from ..domain.entities import BatchSummary, NotificationEvent, RenewalResult, utc_now
from ..domain.ports import AccountRepositoryPort, LoggerPort, NotifierPort
from .watch_management import classify_error

RenewOne = Callable[[str], Awaitable[RenewalResult]]


class WatchRenewalUseCase:
    """Gmail watch 갱신 배치 유즈케이스

    renew_one은 계정 하나를 독립된 저장소 세션에서 갱신하는 호출 가능 객체입니다.
    """

    def __init__(
        self,
        account_repository: AccountRepositoryPort,
        renew_one: RenewOne,
        notifier: NotifierPort,
        logger: LoggerPort,
    ):
        self.account_repository = account_repository
        self.renew_one = renew_one
        self.notifier = notifier
        self.logger = logger

    async def run_batch(self, horizon_hours: int = 48) -> BatchSummary:
        """
        만료 임박 구독 갱신 배치를 실행합니다.

        Args:
            horizon_hours: 현재 시각부터 이 시간 이내에 만료되는 구독을 갱신

        Returns:
            배치 요약 (개별 실패는 결과 목록에 기록)

        Raises:
            StoreError: 만료 임박 계정 조회 실패
        """
        threshold = utc_now() + timedelta(hours=horizon_hours)
        self.logger.info(f"Gmail watch 갱신 배치 시작: 기준={threshold.isoformat()}")

        accounts = await self.account_repository.list_expiring_ids_before(threshold)
        self.logger.info(f"갱신 대상 계정: {len(accounts)}개")

        outcomes = await asyncio.gather(
            *(self.renew_one(account_id) for account_id, _ in accounts),
            return_exceptions=True,
        )

        results: List[RenewalResult] = []
        for (account_id, mailbox_address), outcome in zip(accounts, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.error(f"계정 갱신 중 예상치 못한 오류: {account_id} - {str(outcome)}")
                outcome = RenewalResult(
                    success=False,
                    account_id=account_id,
                    mailbox_address=mailbox_address,
                    error=str(outcome),
                    error_type=classify_error(outcome),
                )
            results.append(outcome)

        summary = BatchSummary.from_results(results)
        self.logger.info(
            f"Gmail watch 갱신 배치 완료: 전체={summary.total_processed}, "
            f"성공={summary.successful}, 실패={summary.failed}"
        )

        outcome = await self.notifier.notify(NotificationEvent.RENEWAL_BATCH, summary.to_payload())
        self.logger.info(f"갱신 배치 알림 결과: {outcome.status.value}")

        return summary
