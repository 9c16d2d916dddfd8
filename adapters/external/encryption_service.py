"""
암호화 서비스 어댑터

토큰 및 민감한 데이터의 암호화/복호화를 담당하는 어댑터입니다.
Fernet 대칭 암호화를 사용합니다.

키가 없으면 평문 통과 모드로 동작하며, 호출마다 CRITICAL 로그를 남깁니다.
운영 환경에서는 설정 단계에서 키 누락이 차단됩니다.
"""

import base64
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from core.domain.exceptions import DecryptionError
from core.domain.ports import EncryptionServicePort, LoggerPort

# 키 유도용 고정 salt (키가 바뀌면 기존 암호문은 모두 복호화 불가)
KDF_SALT = b"gmail_watch_credential_vault"
KDF_ITERATIONS = 100000


class EncryptionServiceAdapter(EncryptionServicePort):
    """암호화 서비스 어댑터"""

    def __init__(self, encryption_key: Optional[str], logger: LoggerPort):
        self.logger = logger
        self._fernet = self._create_fernet(encryption_key) if encryption_key else None

        if self._fernet is None:
            self.logger.critical("ENCRYPTION_KEY가 설정되지 않았습니다. 토큰이 평문으로 저장됩니다!")

    @property
    def is_passthrough(self) -> bool:
        """평문 통과 모드 여부"""
        return self._fernet is None

    def _create_fernet(self, password: str) -> Fernet:
        """암호화 키로부터 Fernet 인스턴스를 생성합니다."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=KDF_SALT,
            iterations=KDF_ITERATIONS,
        )

        key = base64.urlsafe_b64encode(kdf.derive(password.encode()))
        return Fernet(key)

    async def encrypt(self, data: str) -> str:
        """데이터를 암호화합니다."""
        if self._fernet is None:
            self.logger.critical("암호화 키 없음: 데이터를 암호화하지 않고 저장합니다")
            return data

        result = self._fernet.encrypt(data.encode()).decode()
        self.logger.debug("데이터 암호화 성공")
        return result

    async def decrypt(self, encrypted_data: str) -> str:
        """암호화된 데이터를 복호화합니다."""
        if self._fernet is None:
            self.logger.critical("암호화 키 없음: 저장된 데이터를 그대로 반환합니다")
            return encrypted_data

        try:
            result = self._fernet.decrypt(encrypted_data.encode()).decode()
        except (InvalidToken, ValueError) as e:
            self.logger.error(f"데이터 복호화 실패: {type(e).__name__}")
            raise DecryptionError("암호문이 손상되었거나 다른 키로 암호화되었습니다") from e

        self.logger.debug("데이터 복호화 성공")
        return result
