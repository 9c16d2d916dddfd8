"""
FastAPI Gmail watch 라우터

구독 설정/중지 및 Pub/Sub 푸시 엔드포인트를 제공합니다.
"""

import json
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.exceptions import WatchServiceError
from adapters.db.database import get_db_session
from adapters.factory import AdapterFactory, get_adapter_factory
from adapters.logger import create_logger
from .auth_routes import AccountRequest
from .responses import error_response, json_error

router = APIRouter(tags=["subscription"])
logger = create_logger("watch_router")


@router.post("/subscription/setup")
async def setup_subscription(
    body: Optional[AccountRequest] = Body(None),
    session: AsyncSession = Depends(get_db_session),
    factory: AdapterFactory = Depends(get_adapter_factory),
):
    """계정의 Gmail watch를 설정합니다."""
    if body is None or not body.accountId:
        return json_error(400, "MissingAccountId", "accountId가 필요합니다")

    watch_management = factory.create_watch_management_usecase(session)
    try:
        subscription = await watch_management.establish(body.accountId)
    except WatchServiceError as e:
        logger.error(f"Gmail watch 설정 실패: {body.accountId} - {str(e)}")
        return error_response(e)

    return {
        "success": True,
        "historyId": subscription.cursor,
        "expiration": subscription.expires_at.isoformat(),
        "channelName": subscription.channel_name,
    }


@router.post("/subscription/stop")
async def stop_subscription(
    body: Optional[AccountRequest] = Body(None),
    session: AsyncSession = Depends(get_db_session),
    factory: AdapterFactory = Depends(get_adapter_factory),
):
    """계정의 Gmail watch를 중지합니다."""
    if body is None or not body.accountId:
        return json_error(400, "MissingAccountId", "accountId가 필요합니다")

    watch_management = factory.create_watch_management_usecase(session)
    try:
        await watch_management.teardown(body.accountId)
    except WatchServiceError as e:
        logger.error(f"Gmail watch 중지 실패: {body.accountId} - {str(e)}")
        return error_response(e)

    return {"success": True}


@router.post("/push-endpoint")
async def push_endpoint(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    factory: AdapterFactory = Depends(get_adapter_factory),
):
    """Pub/Sub 푸시 알림을 수신합니다.

    2xx가 아니면 브로커가 재전송하므로 처리 결과와 무관하게 200으로 응답합니다.
    """
    try:
        envelope = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("푸시 알림 본문이 JSON이 아닙니다")
        return {"received": True}

    push_notifications = factory.create_push_notification_usecase(session)
    notification = await push_notifications.acknowledge(envelope)

    return {
        "received": True,
        "emailAddress": notification.email_address if notification else None,
    }
