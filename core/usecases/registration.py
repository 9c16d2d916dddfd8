"""
등록 유즈케이스

Google OAuth 2.0 Authorization Code Flow로 메일박스 위임 권한을 등록합니다.
- 동의 화면 URL 생성 및 state 발급
- 콜백 검증, 토큰 교환, 계정 생성
- 구독 설정과 등록 알림은 백그라운드로 분리 실행
"""

import secrets
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from ..domain.entities import (
    Account,
    NotificationEvent,
    PendingRegistration,
    new_account_id,
    utc_now,
)
from ..domain.exceptions import CsrfError, OAuthDeniedError
from ..domain.ports import (
    AccountRepositoryPort,
    BackgroundTaskPort,
    ConfigPort,
    GoogleApiClientPort,
    LoggerPort,
    NotifierPort,
)
from .credentials import credentials_from_token_response

GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.compose",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


def build_registration_payload(account: Account) -> Dict[str, Any]:
    """등록 이벤트 웹훅 페이로드"""
    credentials = account.credentials
    return {
        "accountId": account.id,
        "name": account.owner_name,
        "email": account.owner_email,
        "company": account.owner_org,
        "mailboxAddress": account.mailbox_address,
        "registeredAt": account.registered_at.isoformat(),
        "tokens": {
            "accessToken": credentials.access_token,
            "refreshToken": credentials.refresh_token,
            "expiry": credentials.expires_at.isoformat() if credentials.expires_at else None,
        },
    }


class RegistrationUseCase:
    """등록 유즈케이스"""

    def __init__(
        self,
        account_repository: AccountRepositoryPort,
        google_api_client: GoogleApiClientPort,
        notifier: NotifierPort,
        task_runner: BackgroundTaskPort,
        config: ConfigPort,
        logger: LoggerPort,
        establish_subscription: Callable[[str], Awaitable[Any]],
    ):
        self.account_repository = account_repository
        self.google_api_client = google_api_client
        self.notifier = notifier
        self.task_runner = task_runner
        self.config = config
        self.logger = logger
        self.establish_subscription = establish_subscription

    def start_registration(
        self,
        email: str,
        name: str,
        company: str = "",
    ) -> Tuple[str, PendingRegistration]:
        """
        등록을 시작합니다.

        Args:
            email: 등록자 이메일
            name: 등록자 이름
            company: 등록자 소속

        Returns:
            (authorization_url, 세션에 바인딩할 PendingRegistration) 튜플
        """
        state = secrets.token_urlsafe(32)
        pending = PendingRegistration(state=state, email=email, name=name, company=company)

        authorization_url = self.google_api_client.get_authorization_url(
            client_id=self.config.get_google_client_id(),
            redirect_uri=self.config.get_google_redirect_uri(),
            scopes=GMAIL_SCOPES,
            state=state,
        )

        self.logger.info(f"등록 시작: {email}, state={state[:8]}...")
        return authorization_url, pending

    async def complete_registration(
        self,
        pending: Optional[PendingRegistration],
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
    ) -> Account:
        """
        OAuth 콜백을 처리하여 등록을 완료합니다.

        Args:
            pending: 세션에 바인딩된 등록 정보 (없으면 None)
            code: 인증 코드
            state: 콜백으로 돌아온 state
            error: 제공자가 반환한 오류 코드

        Returns:
            생성된 계정

        Raises:
            OAuthDeniedError: 제공자가 오류를 반환한 경우
            CsrfError: state 불일치 또는 세션 바인딩 누락
            ProviderError: 토큰 교환 또는 프로필 조회 실패
            StoreError: 계정 저장 실패
        """
        if error:
            self.logger.warning(f"OAuth 인증 거부: {error}")
            raise OAuthDeniedError(f"인증이 거부되었습니다: {error}")

        if pending is None:
            self.logger.warning("세션에 진행 중인 등록 정보가 없습니다")
            raise CsrfError("세션에 진행 중인 등록 정보가 없습니다")

        if not state or not secrets.compare_digest(state, pending.state):
            self.logger.warning(f"state 불일치: {(state or '')[:8]}...")
            raise CsrfError("유효하지 않은 state입니다")

        if not code:
            raise CsrfError("인증 코드가 없습니다")

        self.logger.info(f"토큰 교환 시작: code={code[:8]}...")
        token_data = await self.google_api_client.exchange_code_for_token(
            client_id=self.config.get_google_client_id(),
            client_secret=self.config.get_google_client_secret(),
            redirect_uri=self.config.get_google_redirect_uri(),
            code=code,
        )
        credentials = credentials_from_token_response(token_data)

        if not credentials.refresh_token:
            self.logger.warning(f"리프레시 토큰이 발급되지 않았습니다: {pending.email}")

        # 메일박스 주소는 클라이언트 입력이 아닌 제공자 프로필에서 가져옴
        user_info = await self.google_api_client.get_user_info(credentials.access_token)

        account = Account(
            id=new_account_id(),
            owner_email=pending.email,
            owner_name=pending.name,
            owner_org=pending.company,
            mailbox_address=user_info["email"],
            credentials=credentials,
            registered_at=utc_now(),
        )
        await self.account_repository.upsert(account)
        self.logger.info(f"계정 등록 완료: {account.mailbox_address} ({account.id})")

        self.task_runner.spawn(
            f"establish-watch:{account.id}",
            lambda: self.establish_subscription(account.id),
        )
        payload = build_registration_payload(account)
        self.task_runner.spawn(
            f"notify-registration:{account.id}",
            lambda: self.notifier.notify(NotificationEvent.REGISTRATION, payload),
        )

        return account
