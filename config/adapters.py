"""
설정 어댑터

Pydantic Settings 기반으로 ConfigPort를 구현합니다.
ENVIRONMENT 값에 따라 개발/테스트/운영 설정 클래스를 선택합니다.
"""

import os
from typing import List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.exceptions import ConfigurationError
from core.domain.ports import ConfigPort


class BaseConfig(BaseSettings, ConfigPort):
    """기본 설정 클래스"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # 환경 설정
    environment: str = "development"
    debug: bool = False

    # 데이터베이스 설정
    database_url: str

    # Google OAuth 설정
    google_client_id: str
    google_client_secret: str
    google_redirect_uri: str = "http://localhost:8080/auth/callback"

    # Pub/Sub 설정
    gcp_project_id: str
    pubsub_topic_prefix: str = "gmail-watch-"
    pubsub_credentials_file: Optional[str] = None
    watch_label_ids: List[str] = Field(default_factory=lambda: ["INBOX"])
    watch_renewal_horizon_hours: int = 48

    # 웹훅 설정 (채널별로 선택 사항)
    registration_webhook_url: Optional[str] = None
    renewal_webhook_url: Optional[str] = None
    webhook_max_attempts: int = 3
    webhook_retry_delay_seconds: float = 2.0
    http_timeout_seconds: float = 10.0

    # 보안 설정
    session_secret: str
    encryption_key: Optional[str] = None

    # 로깅 설정
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # 웹 서버 설정
    web_host: str = "0.0.0.0"
    web_port: int = 8080
    web_workers: int = 1

    @field_validator(
        "registration_webhook_url",
        "renewal_webhook_url",
        "encryption_key",
        "pubsub_credentials_file",
        mode="before",
    )
    @classmethod
    def empty_to_none(cls, v):
        """빈 문자열은 미설정으로 취급"""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """로그 레벨 검증"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"로그 레벨은 {valid_levels} 중 하나여야 합니다")
        return v.upper()

    @field_validator("webhook_max_attempts")
    @classmethod
    def validate_max_attempts(cls, v):
        if v < 1:
            raise ValueError("웹훅 최대 시도 횟수는 1 이상이어야 합니다")
        return v

    # ConfigPort 인터페이스 구현
    def get_environment(self) -> str:
        return self.environment

    def is_debug(self) -> bool:
        return self.debug

    def is_production(self) -> bool:
        return self.environment == "production"

    def get_database_url(self) -> str:
        return self.database_url

    def get_google_client_id(self) -> str:
        return self.google_client_id

    def get_google_client_secret(self) -> str:
        return self.google_client_secret

    def get_google_redirect_uri(self) -> str:
        return self.google_redirect_uri

    def get_gcp_project_id(self) -> str:
        return self.gcp_project_id

    def get_pubsub_topic_prefix(self) -> str:
        return self.pubsub_topic_prefix

    def get_pubsub_credentials_file(self) -> Optional[str]:
        return self.pubsub_credentials_file

    def get_watch_label_ids(self) -> List[str]:
        return list(self.watch_label_ids)

    def get_watch_renewal_horizon_hours(self) -> int:
        return self.watch_renewal_horizon_hours

    def get_registration_webhook_url(self) -> Optional[str]:
        return self.registration_webhook_url

    def get_renewal_webhook_url(self) -> Optional[str]:
        return self.renewal_webhook_url

    def get_webhook_max_attempts(self) -> int:
        return self.webhook_max_attempts

    def get_webhook_retry_delay_seconds(self) -> float:
        return self.webhook_retry_delay_seconds

    def get_http_timeout_seconds(self) -> float:
        return self.http_timeout_seconds

    def get_session_secret(self) -> str:
        return self.session_secret

    def get_encryption_key(self) -> Optional[str]:
        return self.encryption_key

    def get_log_level(self) -> str:
        return self.log_level

    def get_log_format(self) -> str:
        return self.log_format

    def get_web_host(self) -> str:
        return self.web_host

    def get_web_port(self) -> int:
        return self.web_port

    def get_web_workers(self) -> int:
        return self.web_workers

    def get_web_config(self) -> dict:
        """웹 서버 설정 조회"""
        return {
            "host": self.web_host,
            "port": self.web_port,
            "workers": self.web_workers,
        }


class DevelopmentConfig(BaseConfig):
    """개발 환경 설정"""

    environment: str = "development"
    debug: bool = True
    log_level: str = "DEBUG"

    # 개발용 기본값들
    database_url: str = "sqlite+aiosqlite:///./dev_database.db"

    # 개발용 더미 값들 (실제 사용 시 .env 파일에서 설정)
    google_client_id: str = "dev_client_id"
    google_client_secret: str = "dev_client_secret"
    gcp_project_id: str = "dev-project"
    session_secret: str = "dev_session_secret"


class ProductionConfig(BaseConfig):
    """운영 환경 설정"""

    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"

    # 운영 환경에서는 더 많은 워커 사용
    web_workers: int = 4

    @field_validator("database_url")
    @classmethod
    def validate_production_database_url(cls, v):
        """운영 환경에서는 SQLite를 허용하지 않음"""
        if not v or v.startswith("sqlite"):
            raise ValueError("운영 환경에서는 PostgreSQL 데이터베이스가 필요합니다")
        return v

    @field_validator("google_client_secret", "session_secret", "encryption_key")
    @classmethod
    def validate_production_secrets(cls, v):
        """운영 환경에서는 모든 시크릿이 필수"""
        if not v or v.startswith("dev_"):
            raise ValueError("운영 환경에서는 실제 시크릿 값이 필요합니다")
        return v


class TestingConfig(BaseConfig):
    """테스트 환경 설정"""

    environment: str = "testing"
    debug: bool = True
    log_level: str = "WARNING"

    # 테스트용 기본값들
    database_url: str = "sqlite+aiosqlite:///:memory:"

    # 테스트용 더미 값들
    google_client_id: str = "test_client_id"
    google_client_secret: str = "test_client_secret"
    google_redirect_uri: str = "http://testserver/auth/callback"
    gcp_project_id: str = "test-project"
    session_secret: str = "test_session_secret"
    encryption_key: Optional[str] = "test_encryption_key_32_bytes_long"
    webhook_retry_delay_seconds: float = 0.0


class ConfigAdapter:
    """설정 어댑터 팩토리"""

    @staticmethod
    def create_config() -> ConfigPort:
        """환경에 따른 설정 객체를 생성합니다."""
        environment = os.getenv("ENVIRONMENT", "development").lower()

        try:
            if environment == "production":
                config = ProductionConfig()
                # 필드 미설정 시 검증기가 실행되지 않으므로 명시적으로 확인
                if not config.encryption_key:
                    raise ConfigurationError("운영 환경에서는 ENCRYPTION_KEY가 필요합니다")
                return config
            elif environment == "testing":
                return TestingConfig()
            else:
                return DevelopmentConfig()
        except ValidationError as e:
            raise ConfigurationError(f"설정 검증 실패: {e}") from e


# 전역 설정 인스턴스
_config: Optional[ConfigPort] = None


def get_config() -> ConfigPort:
    """전역 설정 인스턴스를 반환합니다."""
    global _config
    if _config is None:
        _config = ConfigAdapter.create_config()
    return _config


def initialize_config() -> ConfigPort:
    """설정을 초기화합니다."""
    global _config
    _config = ConfigAdapter.create_config()
    return _config
