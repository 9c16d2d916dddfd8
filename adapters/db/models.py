"""
SQLAlchemy 데이터베이스 모델

도메인 엔티티와 매핑되는 데이터베이스 테이블 모델을 정의합니다.
토큰 컬럼에는 항상 암호문만 저장됩니다.
"""

from sqlalchemy import Column, DateTime, Index, String, Text
from sqlalchemy.orm import declarative_base

from core.domain.entities import new_account_id, utc_now

Base = declarative_base()


class AccountModel(Base):
    """계정 테이블 모델"""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=new_account_id)

    # 등록 시 입력된 메타데이터
    owner_email = Column(String(255), nullable=False)
    owner_name = Column(String(255), nullable=False)
    owner_org = Column(String(255), nullable=False, default="")

    # 인증 제공자 프로필에서 가져온 주소
    mailbox_address = Column(String(255), nullable=False, index=True)

    # 토큰 (암호화된 값)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text)
    token_expires_at = Column(DateTime)

    # 구독 정보 (없으면 모두 NULL)
    subscription_cursor = Column(String(255))
    subscription_expires_at = Column(DateTime, index=True)
    channel_name = Column(String(255))

    registered_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    last_renewed_at = Column(DateTime)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # 복합 인덱스
    __table_args__ = (
        Index("idx_accounts_mailbox_registered", "mailbox_address", "registered_at"),
    )
