"""
웹훅 알림 어댑터

등록 및 구독 갱신 배치 이벤트를 외부 자동화 시스템의 웹훅으로 전송합니다.
실패 시 지수 백오프로 재시도하며, 어떤 경우에도 예외를 발생시키지 않습니다.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from core.domain.entities import DeliveryOutcome, DeliveryStatus, NotificationEvent, utc_now
from core.domain.exceptions import DeliveryError
from core.domain.ports import LoggerPort, NotifierPort


class WebhookNotifierAdapter(NotifierPort):
    """웹훅 알림 어댑터"""

    def __init__(
        self,
        logger: LoggerPort,
        registration_url: Optional[str] = None,
        renewal_url: Optional[str] = None,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.logger = logger
        self.urls = {
            NotificationEvent.REGISTRATION: registration_url,
            NotificationEvent.RENEWAL_BATCH: renewal_url,
        }
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """attempt번째 시도 실패 후 대기 시간 (초)"""
        return self.retry_delay * (2 ** (attempt - 1))

    async def notify(
        self,
        event: NotificationEvent,
        payload: Dict[str, Any],
        test: bool = False,
    ) -> DeliveryOutcome:
        """이벤트를 전송합니다."""
        url = self.urls.get(event)
        if not url:
            self.logger.warning(f"웹훅 URL이 설정되지 않아 전송을 건너뜁니다: {event.value}")
            return DeliveryOutcome(status=DeliveryStatus.SKIPPED, event=event)

        body: Dict[str, Any] = {
            "event": event.value,
            "timestamp": utc_now().isoformat() + "Z",
            "data": payload,
        }
        if test:
            body["test"] = True

        last_error: Optional[DeliveryError] = None
        attempt = 0
        for attempt in range(1, self.max_attempts + 1):
            self.logger.info(f"웹훅 전송 시도 ({attempt}/{self.max_attempts}): {event.value}")
            try:
                status_code = await self._post(url, body)
                self.logger.info(f"웹훅 전송 성공: {event.value}, status={status_code}")
                return DeliveryOutcome(
                    status=DeliveryStatus.DELIVERED,
                    event=event,
                    attempts=attempt,
                    status_code=status_code,
                )
            except DeliveryError as e:
                last_error = e
                self.logger.warning(f"웹훅 전송 실패 ({attempt}/{self.max_attempts}): {str(e)}")
                if not e.retryable:
                    break

            if attempt < self.max_attempts:
                delay = self.backoff_delay(attempt)
                self.logger.debug(f"{delay}초 후 재시도")
                await self._sleep(delay)

        self.logger.error(f"웹훅 전송 최종 실패: {event.value}, {attempt}회 시도")
        return DeliveryOutcome(
            status=DeliveryStatus.FAILED,
            event=event,
            attempts=attempt,
            status_code=last_error.status_code if last_error else None,
            error=str(last_error) if last_error else None,
        )

    async def _post(self, url: str, body: Dict[str, Any]) -> int:
        """단일 전송 시도. 실패는 DeliveryError로 변환합니다."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=body)
        except httpx.TimeoutException as e:
            raise DeliveryError(f"웹훅 응답 시간 초과 ({self.timeout}초)") from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"웹훅 연결 실패: {str(e)}") from e
        except httpx.InvalidURL as e:
            raise DeliveryError(f"웹훅 URL이 올바르지 않습니다: {str(e)}", retryable=False) from e
        except (TypeError, ValueError) as e:
            raise DeliveryError(f"웹훅 본문 인코딩 실패: {str(e)}", retryable=False) from e

        if not response.is_success:
            raise DeliveryError(
                f"웹훅 응답 오류: {response.status_code}",
                status_code=response.status_code,
            )
        return response.status_code

    def get_status(self) -> Dict[str, Any]:
        """채널 설정 상태를 조회합니다."""

        def describe(url: Optional[str]) -> Dict[str, Any]:
            return {
                "configured": bool(url),
                "url": f"{url[:30]}..." if url else None,
            }

        return {
            "registrationWebhook": describe(self.urls[NotificationEvent.REGISTRATION]),
            "renewalWebhook": describe(self.urls[NotificationEvent.RENEWAL_BATCH]),
            "retryConfig": {
                "maxAttempts": self.max_attempts,
                "initialDelaySeconds": self.retry_delay,
            },
        }
