"""
도메인 예외 정의

Core 레이어와 어댑터가 공유하는 오류 분류입니다.
어댑터는 외부 라이브러리 예외를 이 예외들로 변환하여 전달합니다.
"""

from typing import Optional


class WatchServiceError(Exception):
    """모든 도메인 예외의 기본 클래스"""


class ConfigurationError(WatchServiceError):
    """필수 설정 누락 또는 잘못된 설정"""


class CsrfError(WatchServiceError):
    """OAuth state 불일치 또는 세션 바인딩 누락"""


class ProviderError(WatchServiceError):
    """Google OAuth / Gmail API 호출 실패"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OAuthDeniedError(ProviderError):
    """인증 제공자가 콜백에 error 코드를 반환한 경우"""


class MissingOfflineGrantError(ProviderError):
    """리프레시 토큰이 없어 자동 갱신이 불가능한 계정"""


class AccountNotFoundError(WatchServiceError):
    """계정을 찾을 수 없음"""

    def __init__(self, account_id: str):
        super().__init__(f"계정을 찾을 수 없습니다: {account_id}")
        self.account_id = account_id


class StoreError(WatchServiceError):
    """영속 저장소 백엔드 실패"""


class DecryptionError(WatchServiceError):
    """손상되었거나 다른 키로 암호화된 암호문"""


class DeliveryError(WatchServiceError):
    """알림 엔드포인트 전송 실패 (Notifier 내부에서만 사용)"""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
