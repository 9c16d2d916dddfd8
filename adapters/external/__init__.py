"""
외부 서비스 어댑터 패키지

외부 API, 서비스와의 통신을 담당하는 어댑터들을 포함합니다.
"""

from .encryption_service import EncryptionServiceAdapter
from .google_api_client import GoogleApiClientAdapter
from .pubsub_topic_service import PubSubTopicAdapter
from .task_runner import AsyncioTaskRunner
from .webhook_notifier import WebhookNotifierAdapter

__all__ = [
    "EncryptionServiceAdapter",
    "GoogleApiClientAdapter",
    "PubSubTopicAdapter",
    "AsyncioTaskRunner",
    "WebhookNotifierAdapter",
]
