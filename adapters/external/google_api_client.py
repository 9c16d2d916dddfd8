"""
Google API 클라이언트 어댑터

Google OAuth 2.0 및 Gmail API와의 통신을 담당하는 어댑터입니다.
클라이언트는 상태를 갖지 않으며, 토큰은 매 호출마다 인자로 전달받습니다.
"""

from typing import Optional, Sequence
from urllib.parse import urlencode

import httpx

from core.domain.exceptions import ProviderError
from core.domain.ports import GoogleApiClientPort, LoggerPort

AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
REVOKE_ENDPOINT = "https://oauth2.googleapis.com/revoke"
USERINFO_ENDPOINT = "https://www.googleapis.com/oauth2/v2/userinfo"
GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1"


class GoogleApiClientAdapter(GoogleApiClientPort):
    """Google OAuth / Gmail API 클라이언트 어댑터"""

    def __init__(
        self,
        logger: LoggerPort,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.logger = logger
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _request(self, description: str, method: str, url: str, **kwargs) -> httpx.Response:
        """요청을 전송하고 실패를 ProviderError로 변환합니다."""
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            error_msg = f"{description} 시간 초과 ({self.timeout}초)"
            self.logger.error(error_msg)
            raise ProviderError(error_msg) from e
        except httpx.HTTPError as e:
            error_msg = f"{description} 요청 실패: {str(e)}"
            self.logger.error(error_msg)
            raise ProviderError(error_msg) from e

        if response.status_code >= 400:
            error_msg = f"{description} 실패: {response.status_code} - {self._error_detail(response)}"
            self.logger.error(error_msg)
            raise ProviderError(error_msg, status_code=response.status_code)

        return response

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        """오류 응답에서 토큰이 포함되지 않은 설명만 추출합니다."""
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase

        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message") or error.get("status") or response.reason_phrase
        description = body.get("error_description")
        if error and description:
            return f"{error}: {description}"
        return str(error or response.reason_phrase)

    def get_authorization_url(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: Sequence[str],
        state: str,
    ) -> str:
        """인증 URL을 생성합니다.

        리프레시 토큰을 받기 위해 오프라인 접근을 요청하고,
        재방문 사용자에게도 리프레시 토큰이 재발급되도록 동의 화면을 강제합니다.
        """
        params = {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "scope": " ".join(scopes),
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }

        url = f"{AUTHORIZATION_ENDPOINT}?{urlencode(params)}"
        self.logger.debug(f"인증 URL 생성: client_id={client_id}")
        return url

    async def exchange_code_for_token(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        code: str,
    ) -> dict:
        """인증 코드를 토큰으로 교환합니다."""
        self.logger.debug(f"토큰 교환: client_id={client_id}")

        response = await self._request(
            "토큰 교환",
            "POST",
            TOKEN_ENDPOINT,
            data={
                "client_id": client_id,
                "client_secret": client_secret,
                "code": code,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
        )

        result = response.json()
        if not result.get("access_token"):
            raise ProviderError("토큰 교환 응답에 액세스 토큰이 없습니다")

        self.logger.debug(f"토큰 교환 성공: refresh_token={'있음' if result.get('refresh_token') else '없음'}")
        return result

    async def refresh_token(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
    ) -> dict:
        """토큰을 갱신합니다."""
        self.logger.debug(f"토큰 갱신: client_id={client_id}")

        response = await self._request(
            "토큰 갱신",
            "POST",
            TOKEN_ENDPOINT,
            data={
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )

        self.logger.debug("토큰 갱신 성공")
        return response.json()

    async def revoke_token(self, token: str) -> None:
        """토큰을 폐기합니다."""
        self.logger.debug("토큰 폐기")

        await self._request(
            "토큰 폐기",
            "POST",
            REVOKE_ENDPOINT,
            data={"token": token},
        )

        self.logger.debug("토큰 폐기 성공")

    async def get_user_info(self, access_token: str) -> dict:
        """사용자 프로필을 조회합니다."""
        self.logger.debug("사용자 프로필 조회")

        response = await self._request(
            "사용자 프로필 조회",
            "GET",
            USERINFO_ENDPOINT,
            headers={"Authorization": f"Bearer {access_token}"},
        )

        result = response.json()
        if not result.get("email"):
            raise ProviderError("사용자 프로필에 이메일 주소가 없습니다")

        self.logger.debug(f"사용자 프로필 조회 성공: {result['email']}")
        return result

    async def watch_mailbox(
        self,
        access_token: str,
        topic_name: str,
        label_ids: Sequence[str],
    ) -> dict:
        """Gmail watch를 등록합니다. 기존 watch가 있으면 만료 시간이 갱신됩니다."""
        self.logger.debug(f"Gmail watch 등록: topic={topic_name}")

        response = await self._request(
            "Gmail watch 등록",
            "POST",
            f"{GMAIL_API_BASE}/users/me/watch",
            headers={"Authorization": f"Bearer {access_token}"},
            json={
                "topicName": topic_name,
                "labelIds": list(label_ids),
                "labelFilterAction": "include",
            },
        )

        result = response.json()
        if "historyId" not in result or "expiration" not in result:
            raise ProviderError("Gmail watch 응답 형식이 올바르지 않습니다")

        self.logger.debug(f"Gmail watch 등록 성공: historyId={result['historyId']}")
        return result

    async def stop_watch(self, access_token: str) -> None:
        """Gmail watch를 중지합니다."""
        self.logger.debug("Gmail watch 중지")

        await self._request(
            "Gmail watch 중지",
            "POST",
            f"{GMAIL_API_BASE}/users/me/stop",
            headers={"Authorization": f"Bearer {access_token}"},
        )

        self.logger.debug("Gmail watch 중지 성공")
