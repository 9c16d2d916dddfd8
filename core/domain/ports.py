"""
포트 인터페이스 정의

클린 아키텍처의 핵심으로, Core 레이어와 외부 어댑터 간의 계약을 정의합니다.
모든 포트는 추상 기본 클래스(ABC)로 정의되어 구현을 강제합니다.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from .entities import (
    Account,
    AccountStats,
    Credentials,
    DeliveryOutcome,
    NotificationEvent,
    Subscription,
)


class AccountRepositoryPort(ABC):
    """계정 저장소 포트

    모든 메서드는 백엔드 장애 시 StoreError를 발생시키며 내부적으로 재시도하지 않습니다.
    """

    @abstractmethod
    async def upsert(self, account: Account) -> Account:
        """계정 전체 문서 저장 (암호화 후 기록)"""
        pass

    @abstractmethod
    async def get_by_id(self, account_id: str) -> Optional[Account]:
        """ID로 계정 조회 (복호화 후 반환)"""
        pass

    @abstractmethod
    async def get_by_mailbox(self, mailbox_address: str) -> Optional[Account]:
        """메일박스 주소로 계정 조회"""
        pass

    @abstractmethod
    async def list_expiring_before(self, threshold: datetime) -> List[Account]:
        """구독 만료 시간이 threshold 이하인 계정 목록 조회"""
        pass

    @abstractmethod
    async def list_expiring_ids_before(self, threshold: datetime) -> List[Tuple[str, str]]:
        """구독 만료 시간이 threshold 이하인 계정의 (ID, 메일박스 주소) 목록 조회 (복호화 없음)"""
        pass

    @abstractmethod
    async def update_subscription(
        self,
        account_id: str,
        subscription: Optional[Subscription],
    ) -> None:
        """구독 정보 부분 업데이트 (설정 시 last_renewed_at 기록)"""
        pass

    @abstractmethod
    async def update_credentials(self, account_id: str, credentials: Credentials) -> None:
        """토큰 정보 부분 업데이트"""
        pass

    @abstractmethod
    async def list_all(self, skip: int = 0, limit: int = 100) -> List[Account]:
        """모든 계정 목록 조회"""
        pass

    @abstractmethod
    async def delete(self, account_id: str) -> bool:
        """계정 삭제 (관리 작업)"""
        pass

    @abstractmethod
    async def get_stats(self) -> AccountStats:
        """계정 통계 조회"""
        pass


class EncryptionServicePort(ABC):
    """암호화 서비스 포트"""

    @abstractmethod
    async def encrypt(self, data: str) -> str:
        """데이터 암호화"""
        pass

    @abstractmethod
    async def decrypt(self, encrypted_data: str) -> str:
        """데이터 복호화 (실패 시 DecryptionError)"""
        pass


class GoogleApiClientPort(ABC):
    """Google OAuth / Gmail API 클라이언트 포트

    자격 증명은 공유 상태로 보관하지 않고 매 호출마다 인자로 전달합니다.
    """

    @abstractmethod
    def get_authorization_url(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: Sequence[str],
        state: str,
    ) -> str:
        """동의 화면 URL 생성"""
        pass

    @abstractmethod
    async def exchange_code_for_token(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        code: str,
    ) -> dict:
        """인증 코드를 토큰으로 교환"""
        pass

    @abstractmethod
    async def refresh_token(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
    ) -> dict:
        """토큰 갱신"""
        pass

    @abstractmethod
    async def revoke_token(self, token: str) -> None:
        """토큰 폐기"""
        pass

    @abstractmethod
    async def get_user_info(self, access_token: str) -> dict:
        """사용자 프로필 조회"""
        pass

    @abstractmethod
    async def watch_mailbox(
        self,
        access_token: str,
        topic_name: str,
        label_ids: Sequence[str],
    ) -> dict:
        """Gmail watch 등록 (historyId, expiration 반환)"""
        pass

    @abstractmethod
    async def stop_watch(self, access_token: str) -> None:
        """Gmail watch 중지"""
        pass


class TopicProvisionerPort(ABC):
    """Pub/Sub 토픽 프로비저닝 포트"""

    @abstractmethod
    async def ensure_topic(self, topic_path: str) -> bool:
        """토픽이 없으면 생성하고 Gmail 게시 권한 부여 (생성 여부 반환)"""
        pass


class NotifierPort(ABC):
    """외부 자동화 시스템 알림 포트

    notify는 절대 예외를 발생시키지 않고 DeliveryOutcome을 반환합니다.
    """

    @abstractmethod
    async def notify(
        self,
        event: NotificationEvent,
        payload: Dict[str, Any],
        test: bool = False,
    ) -> DeliveryOutcome:
        """이벤트 전송"""
        pass

    @abstractmethod
    def get_status(self) -> Dict[str, Any]:
        """채널 설정 상태 조회"""
        pass


class BackgroundTaskPort(ABC):
    """요청 생명주기와 분리된 백그라운드 작업 실행 포트"""

    @abstractmethod
    def spawn(self, name: str, factory: Callable[[], Awaitable[Any]]) -> None:
        """작업을 분리 실행합니다. 결과와 오류는 로그로만 보고됩니다."""
        pass

    @abstractmethod
    async def drain(self) -> None:
        """실행 중인 작업이 모두 끝날 때까지 대기"""
        pass


class LoggerPort(ABC):
    """로거 포트"""

    @abstractmethod
    def info(self, message: str, **kwargs) -> None:
        """정보 로그"""
        pass

    @abstractmethod
    def warning(self, message: str, **kwargs) -> None:
        """경고 로그"""
        pass

    @abstractmethod
    def error(self, message: str, **kwargs) -> None:
        """오류 로그"""
        pass

    @abstractmethod
    def debug(self, message: str, **kwargs) -> None:
        """디버그 로그"""
        pass

    @abstractmethod
    def critical(self, message: str, **kwargs) -> None:
        """치명 로그"""
        pass


class ConfigPort(ABC):
    """설정 포트"""

    # 환경 설정
    @abstractmethod
    def get_environment(self) -> str:
        """환경 조회 (development, production, testing)"""
        pass

    @abstractmethod
    def is_debug(self) -> bool:
        """디버그 모드 여부"""
        pass

    @abstractmethod
    def is_production(self) -> bool:
        """운영 환경 여부"""
        pass

    # 데이터베이스 설정
    @abstractmethod
    def get_database_url(self) -> str:
        """데이터베이스 URL 조회"""
        pass

    # Google OAuth 설정
    @abstractmethod
    def get_google_client_id(self) -> str:
        """OAuth 클라이언트 ID 조회"""
        pass

    @abstractmethod
    def get_google_client_secret(self) -> str:
        """OAuth 클라이언트 시크릿 조회"""
        pass

    @abstractmethod
    def get_google_redirect_uri(self) -> str:
        """OAuth 리다이렉트 URI 조회"""
        pass

    # Pub/Sub 설정
    @abstractmethod
    def get_gcp_project_id(self) -> str:
        """GCP 프로젝트 ID 조회"""
        pass

    @abstractmethod
    def get_pubsub_topic_prefix(self) -> str:
        """Pub/Sub 토픽 이름 접두사 조회"""
        pass

    @abstractmethod
    def get_pubsub_credentials_file(self) -> Optional[str]:
        """Pub/Sub 서비스 계정 키 파일 경로 조회 (없으면 기본 자격 증명)"""
        pass

    @abstractmethod
    def get_watch_label_ids(self) -> List[str]:
        """감시할 Gmail 라벨 목록 조회"""
        pass

    @abstractmethod
    def get_watch_renewal_horizon_hours(self) -> int:
        """갱신 배치 기본 범위(시간) 조회"""
        pass

    # 웹훅 설정
    @abstractmethod
    def get_registration_webhook_url(self) -> Optional[str]:
        """등록 이벤트 웹훅 URL 조회"""
        pass

    @abstractmethod
    def get_renewal_webhook_url(self) -> Optional[str]:
        """갱신 배치 이벤트 웹훅 URL 조회"""
        pass

    @abstractmethod
    def get_webhook_max_attempts(self) -> int:
        """웹훅 최대 시도 횟수 조회"""
        pass

    @abstractmethod
    def get_webhook_retry_delay_seconds(self) -> float:
        """웹훅 재시도 기본 지연(초) 조회"""
        pass

    @abstractmethod
    def get_http_timeout_seconds(self) -> float:
        """외부 호출 타임아웃(초) 조회"""
        pass

    # 보안 설정
    @abstractmethod
    def get_session_secret(self) -> str:
        """세션 서명 키 조회"""
        pass

    @abstractmethod
    def get_encryption_key(self) -> Optional[str]:
        """필드 암호화 키 조회"""
        pass

    # 로깅 설정
    @abstractmethod
    def get_log_level(self) -> str:
        """로그 레벨 조회"""
        pass

    @abstractmethod
    def get_log_format(self) -> str:
        """로그 포맷 조회"""
        pass

    # 웹 서버 설정
    @abstractmethod
    def get_web_host(self) -> str:
        """웹 서버 호스트 조회"""
        pass

    @abstractmethod
    def get_web_port(self) -> int:
        """웹 서버 포트 조회"""
        pass

    @abstractmethod
    def get_web_workers(self) -> int:
        """웹 서버 워커 수 조회"""
        pass
