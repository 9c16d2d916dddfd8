"""
FastAPI 웹훅 라우터

Notifier 채널 설정 확인과 테스트 전송 기능을 제공합니다.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from core.domain.entities import NotificationEvent, utc_now
from adapters.factory import AdapterFactory, get_adapter_factory
from adapters.logger import create_logger
from .responses import json_error

router = APIRouter(prefix="/webhook", tags=["webhook"])
logger = create_logger("webhook_router")

WEBHOOK_TYPES = {
    "registration": NotificationEvent.REGISTRATION,
    "renewal": NotificationEvent.RENEWAL_BATCH,
}


class WebhookTestRequest(BaseModel):
    webhookType: Optional[str] = None


def build_test_payload(event: NotificationEvent) -> dict:
    """테스트 전송용 샘플 페이로드"""
    now = utc_now().isoformat()
    if event == NotificationEvent.REGISTRATION:
        return {
            "accountId": "test-account",
            "name": "테스트 사용자",
            "email": "test@example.com",
            "company": "Test",
            "mailboxAddress": "test@example.com",
            "registeredAt": now,
            "tokens": {"accessToken": None, "refreshToken": None, "expiry": None},
        }
    return {
        "totalProcessed": 0,
        "successful": 0,
        "failed": 0,
        "results": [],
    }


@router.get("/status")
async def webhook_status(factory: AdapterFactory = Depends(get_adapter_factory)):
    """웹훅 채널 설정 상태를 조회합니다."""
    return factory.create_notifier().get_status()


@router.post("/test")
async def webhook_test(
    body: Optional[WebhookTestRequest] = Body(None),
    factory: AdapterFactory = Depends(get_adapter_factory),
):
    """웹훅 채널로 테스트 이벤트를 전송합니다."""
    webhook_type = body.webhookType if body else None
    event = WEBHOOK_TYPES.get(webhook_type or "")
    if event is None:
        return json_error(
            400,
            "InvalidWebhookType",
            f"webhookType은 {', '.join(WEBHOOK_TYPES)} 중 하나여야 합니다",
        )

    logger.info(f"웹훅 테스트 전송: {webhook_type}")
    outcome = await factory.create_notifier().notify(event, build_test_payload(event), test=True)

    return {
        "success": outcome.success,
        "status": outcome.status.value,
        "attempts": outcome.attempts,
        "statusCode": outcome.status_code,
        "error": outcome.error,
    }
