"""
도메인 엔티티 정의

비즈니스 핵심 개념을 나타내는 엔티티들을 정의합니다.
모든 엔티티는 Pydantic 모델을 기반으로 하여 타입 안정성을 보장합니다.
시간 값은 모두 tzinfo가 없는 UTC 기준입니다.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """현재 UTC 시간을 반환합니다."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_account_id() -> str:
    """새 계정 ID를 생성합니다."""
    return str(uuid4())


class NotificationEvent(str, Enum):
    """Notifier 이벤트 종류"""
    REGISTRATION = "client_registered"
    RENEWAL_BATCH = "watch_renewal_batch"


class DeliveryStatus(str, Enum):
    """알림 전송 결과"""
    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"


class Credentials(BaseModel):
    """OAuth 토큰 묶음 (메모리에서는 항상 평문)"""

    access_token: str = Field(..., description="액세스 토큰")
    refresh_token: Optional[str] = Field(None, description="리프레시 토큰 (오프라인 권한 미부여 시 없음)")
    expires_at: Optional[datetime] = Field(None, description="액세스 토큰 만료 시간")

    def is_expired(self, leeway_seconds: int = 60) -> bool:
        """토큰이 만료되었거나 곧 만료될지 확인"""
        if self.expires_at is None:
            return False
        return utc_now() + timedelta(seconds=leeway_seconds) >= self.expires_at

    def can_refresh(self) -> bool:
        """토큰 갱신 가능한지 확인"""
        return bool(self.refresh_token)


class Subscription(BaseModel):
    """Gmail 푸시 알림 구독 (watch)"""

    cursor: str = Field(..., description="Gmail historyId")
    expires_at: datetime = Field(..., description="구독 만료 시간")
    channel_name: str = Field(..., description="Pub/Sub 토픽 이름")

    def is_near_expiry(self, hours: int = 48) -> bool:
        """구독이 곧 만료될지 확인"""
        return utc_now() + timedelta(hours=hours) >= self.expires_at


class Account(BaseModel):
    """Gmail 위임 권한 계정 엔티티"""

    id: str = Field(default_factory=new_account_id, description="계정 고유 ID")
    owner_email: str = Field(..., description="등록자 이메일")
    owner_name: str = Field(..., description="등록자 이름")
    owner_org: str = Field(default="", description="등록자 소속")
    mailbox_address: str = Field(..., description="인증된 Gmail 주소")
    credentials: Credentials
    subscription: Optional[Subscription] = None
    registered_at: datetime = Field(default_factory=utc_now, description="등록 시간")
    last_renewed_at: Optional[datetime] = Field(None, description="마지막 구독 갱신 시간")

    @field_validator("mailbox_address")
    @classmethod
    def validate_mailbox_address(cls, v):
        """메일박스 주소 형식 검증"""
        if "@" not in v:
            raise ValueError("유효한 이메일 주소가 아닙니다")
        return v

    def has_subscription(self) -> bool:
        return self.subscription is not None

    def can_auto_renew(self) -> bool:
        """리프레시 토큰이 있어야 자동 갱신 가능"""
        return self.credentials.can_refresh()


class RenewalResult(BaseModel):
    """계정 단위 구독 갱신 결과"""

    success: bool
    account_id: str
    mailbox_address: Optional[str] = None
    new_expiry: Optional[datetime] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    renewed_at: datetime = Field(default_factory=utc_now)

    def to_payload(self) -> Dict[str, Any]:
        """웹훅 페이로드용 딕셔너리로 변환합니다."""
        payload: Dict[str, Any] = {
            "success": self.success,
            "accountId": self.account_id,
            "mailboxAddress": self.mailbox_address,
            "renewedAt": self.renewed_at.isoformat(),
        }
        if self.success:
            payload["newExpiry"] = self.new_expiry.isoformat() if self.new_expiry else None
        else:
            payload["error"] = self.error
            payload["errorType"] = self.error_type
        return payload


class BatchSummary(BaseModel):
    """갱신 배치 요약"""

    total_processed: int = 0
    successful: int = 0
    failed: int = 0
    results: List[RenewalResult] = Field(default_factory=list)

    @classmethod
    def from_results(cls, results: List[RenewalResult]) -> "BatchSummary":
        successful = sum(1 for result in results if result.success)
        return cls(
            total_processed=len(results),
            successful=successful,
            failed=len(results) - successful,
            results=results,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "totalProcessed": self.total_processed,
            "successful": self.successful,
            "failed": self.failed,
            "results": [result.to_payload() for result in self.results],
        }


class DeliveryOutcome(BaseModel):
    """Notifier 전송 결과"""

    status: DeliveryStatus
    event: NotificationEvent
    attempts: int = 0
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED


class PendingRegistration(BaseModel):
    """세션에 바인딩되는 진행 중 등록 정보"""

    state: str
    email: str
    name: str
    company: str = ""


class AccountStats(BaseModel):
    """계정 통계"""

    total_accounts: int = 0
    registered_today: int = 0
    registered_this_week: int = 0
    active_subscriptions: int = 0
