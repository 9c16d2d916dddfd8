"""
푸시 알림 수신 유즈케이스

Pub/Sub 푸시 봉투를 해석하고 대상 계정을 확인합니다.
메일 본문은 처리하지 않으며, 수신 확인 외의 작업은 하지 않습니다.
"""

import base64
import binascii
import json
from typing import Any, Dict, Optional

from pydantic import BaseModel

from ..domain.exceptions import DecryptionError, StoreError
from ..domain.ports import AccountRepositoryPort, LoggerPort


class PushNotification(BaseModel):
    """해석된 Gmail 푸시 알림"""

    email_address: Optional[str] = None
    history_id: Optional[str] = None
    message_id: Optional[str] = None
    account_id: Optional[str] = None


def decode_push_envelope(envelope: Dict[str, Any]) -> PushNotification:
    """
    Pub/Sub 푸시 봉투를 해석합니다.

    Raises:
        ValueError: 봉투 형식이 올바르지 않은 경우
    """
    message = envelope.get("message") if isinstance(envelope, dict) else None
    if not isinstance(message, dict) or not message.get("data"):
        raise ValueError("message.data 필드가 없습니다")

    try:
        decoded = base64.b64decode(message["data"]).decode("utf-8")
        data = json.loads(decoded)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"message.data 해석 실패: {str(e)}") from e

    if not isinstance(data, dict):
        raise ValueError("message.data가 JSON 객체가 아닙니다")

    history_id = data.get("historyId")
    return PushNotification(
        email_address=data.get("emailAddress"),
        history_id=str(history_id) if history_id is not None else None,
        message_id=message.get("messageId") or message.get("message_id"),
    )


class PushNotificationUseCase:
    """푸시 알림 수신 유즈케이스"""

    def __init__(self, account_repository: AccountRepositoryPort, logger: LoggerPort):
        self.account_repository = account_repository
        self.logger = logger

    async def acknowledge(self, envelope: Dict[str, Any]) -> Optional[PushNotification]:
        """
        푸시 알림을 해석하고 기록합니다.

        해석 실패나 조회 실패는 로그만 남기고 None을 반환합니다.
        브로커는 2xx가 아니면 재전송하므로 호출자는 항상 성공으로 응답해야 합니다.
        """
        try:
            notification = decode_push_envelope(envelope)
        except ValueError as e:
            self.logger.warning(f"잘못된 푸시 알림: {str(e)}")
            return None

        self.logger.info(
            f"푸시 알림 수신: {notification.email_address}, historyId={notification.history_id}"
        )

        if notification.email_address:
            try:
                account = await self.account_repository.get_by_mailbox(notification.email_address)
            except (StoreError, DecryptionError) as e:
                self.logger.error(f"푸시 알림 계정 조회 실패: {str(e)}")
                return notification

            if account is None:
                self.logger.warning(f"등록되지 않은 메일박스의 푸시 알림: {notification.email_address}")
            else:
                notification.account_id = account.id

        return notification
