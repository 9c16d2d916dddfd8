"""
Pub/Sub 토픽 프로비저닝 어댑터

계정별 Gmail watch 토픽이 없으면 생성하고 Gmail 푸시 서비스 계정에 게시 권한을 부여합니다.
호출은 Pub/Sub REST API를 httpx로 보내며, 서비스 자격 증명은 google-auth로 발급받습니다.
사용자 OAuth 토큰이 아닌 서비스(프로젝트) 자격 증명을 사용합니다.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import google.auth
import httpx
from google.auth import exceptions as google_auth_exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from core.domain.exceptions import ProviderError
from core.domain.ports import LoggerPort, TopicProvisionerPort

PUBSUB_API_BASE = "https://pubsub.googleapis.com/v1"
PUBSUB_SCOPE = "https://www.googleapis.com/auth/pubsub"
GMAIL_PUSH_MEMBER = "serviceAccount:gmail-api-push@system.gserviceaccount.com"
PUBLISHER_ROLE = "roles/pubsub.publisher"

TokenProvider = Callable[[], Awaitable[str]]


class PubSubTopicAdapter(TopicProvisionerPort):
    """Pub/Sub 토픽 프로비저닝 어댑터

    credentials_file이 없으면 애플리케이션 기본 자격 증명(ADC)을 사용합니다.
    token_provider를 지정하면 google-auth 대신 해당 함수로 액세스 토큰을 얻습니다.
    """

    def __init__(
        self,
        logger: LoggerPort,
        credentials_file: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token_provider: Optional[TokenProvider] = None,
    ):
        self.logger = logger
        self.credentials_file = credentials_file
        self.timeout = timeout
        self._transport = transport
        self._token_provider = token_provider
        self._credentials = None
        self._token_lock = asyncio.Lock()

    def _load_credentials(self):
        if self.credentials_file:
            return service_account.Credentials.from_service_account_file(
                self.credentials_file, scopes=[PUBSUB_SCOPE]
            )
        credentials, _ = google.auth.default(scopes=[PUBSUB_SCOPE])
        return credentials

    def _refresh_access_token(self) -> str:
        """블로킹 호출이므로 스레드 풀에서 실행됩니다."""
        if self._credentials is None:
            self._credentials = self._load_credentials()
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return self._credentials.token

    async def _get_access_token(self) -> str:
        if self._token_provider is not None:
            return await self._token_provider()

        async with self._token_lock:
            try:
                return await asyncio.to_thread(self._refresh_access_token)
            except (google_auth_exceptions.GoogleAuthError, OSError) as e:
                error_msg = f"Pub/Sub 서비스 자격 증명 발급 실패: {type(e).__name__}"
                self.logger.error(error_msg)
                raise ProviderError(error_msg) from e

    async def _request(self, description: str, method: str, url: str, **kwargs) -> httpx.Response:
        """요청을 전송합니다. 전송 계층 오류만 ProviderError로 변환합니다."""
        headers = {"Authorization": f"Bearer {await self._get_access_token()}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                return await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            error_msg = f"{description} 시간 초과 ({self.timeout}초)"
            self.logger.error(error_msg)
            raise ProviderError(error_msg) from e
        except httpx.HTTPError as e:
            error_msg = f"{description} 요청 실패: {str(e)}"
            self.logger.error(error_msg)
            raise ProviderError(error_msg) from e

    def _raise_for_status(self, description: str, response: httpx.Response) -> None:
        if response.status_code < 400:
            return

        detail = response.reason_phrase
        try:
            error = response.json().get("error")
        except ValueError:
            error = None
        if isinstance(error, dict):
            detail = error.get("message") or error.get("status") or detail

        error_msg = f"{description} 실패: {response.status_code} - {detail}"
        self.logger.error(error_msg)
        raise ProviderError(error_msg, status_code=response.status_code)

    async def ensure_topic(self, topic_path: str) -> bool:
        """
        토픽이 없으면 생성하고 Gmail 푸시 게시 권한을 부여합니다.

        Args:
            topic_path: projects/{project}/topics/{name} 형식의 토픽 경로

        Returns:
            새로 생성했으면 True, 이미 있었으면 False

        Raises:
            ProviderError: 토픽 생성 또는 권한 부여 실패
        """
        response = await self._request("Pub/Sub 토픽 생성", "PUT", f"{PUBSUB_API_BASE}/{topic_path}", json={})

        if response.status_code == 409:
            self.logger.debug(f"Pub/Sub 토픽이 이미 존재합니다: {topic_path}")
            return False

        self._raise_for_status("Pub/Sub 토픽 생성", response)
        self.logger.info(f"Pub/Sub 토픽 생성: {topic_path}")

        policy = {
            "policy": {
                "bindings": [
                    {"role": PUBLISHER_ROLE, "members": [GMAIL_PUSH_MEMBER]},
                ]
            }
        }
        response = await self._request(
            "Pub/Sub 게시 권한 부여",
            "POST",
            f"{PUBSUB_API_BASE}/{topic_path}:setIamPolicy",
            json=policy,
        )
        self._raise_for_status("Pub/Sub 게시 권한 부여", response)
        self.logger.info(f"Gmail 푸시 게시 권한 부여 완료: {topic_path}")

        return True
