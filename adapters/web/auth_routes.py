"""
FastAPI 인증 라우터

Google OAuth 2.0 등록 핸드셰이크와 토큰 관리를 위한 웹 인터페이스입니다.
"""

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.entities import PendingRegistration, utc_now
from core.domain.exceptions import WatchServiceError
from adapters.db.database import get_db_session
from adapters.factory import AdapterFactory, get_adapter_factory
from adapters.logger import create_logger
from .responses import error_response, json_error, render_failure_page

router = APIRouter(prefix="/auth", tags=["authentication"])
logger = create_logger("auth_router")

PENDING_REGISTRATION_KEY = "pending_registration"


class AccountRequest(BaseModel):
    """계정 ID를 받는 요청 본문"""
    accountId: Optional[str] = None


@router.get("/start")
async def start_auth(
    request: Request,
    email: str = Query(..., description="등록자 이메일"),
    name: str = Query(..., description="등록자 이름"),
    company: str = Query("", description="등록자 소속"),
    session: AsyncSession = Depends(get_db_session),
    factory: AdapterFactory = Depends(get_adapter_factory),
):
    """등록 핸드셰이크를 시작합니다."""
    logger.info(f"등록 시작 요청: email={email}")

    registration = factory.create_registration_usecase(session)
    authorization_url, pending = registration.start_registration(
        email=email,
        name=name,
        company=company,
    )

    request.session[PENDING_REGISTRATION_KEY] = pending.model_dump()
    return RedirectResponse(url=authorization_url, status_code=302)


@router.get("/callback")
async def auth_callback(
    request: Request,
    code: Optional[str] = Query(None, description="인증 코드"),
    state: Optional[str] = Query(None, description="State 값"),
    error: Optional[str] = Query(None, description="오류 코드"),
    session: AsyncSession = Depends(get_db_session),
    factory: AdapterFactory = Depends(get_adapter_factory),
):
    """OAuth 콜백을 처리합니다."""
    logger.info(f"인증 콜백 수신: code={code[:8] if code else None}..., error={error}")

    stored = request.session.get(PENDING_REGISTRATION_KEY)
    pending = PendingRegistration(**stored) if stored else None

    registration = factory.create_registration_usecase(session)
    try:
        account = await registration.complete_registration(
            pending=pending,
            code=code,
            state=state,
            error=error,
        )
    except WatchServiceError as e:
        logger.error(f"등록 실패: {type(e).__name__} - {str(e)}")
        return render_failure_page(e)

    request.session.pop(PENDING_REGISTRATION_KEY, None)

    query = urlencode({
        "gmail": account.mailbox_address,
        "timestamp": utc_now().isoformat(),
    })
    return RedirectResponse(url=f"/success?{query}", status_code=302)


@router.post("/refresh")
async def refresh_token(
    body: Optional[AccountRequest] = Body(None),
    session: AsyncSession = Depends(get_db_session),
    factory: AdapterFactory = Depends(get_adapter_factory),
):
    """계정의 액세스 토큰을 갱신합니다."""
    if body is None or not body.accountId:
        return json_error(400, "MissingAccountId", "accountId가 필요합니다")

    credential_management = factory.create_credential_management_usecase(session)
    try:
        credentials = await credential_management.refresh(body.accountId)
    except WatchServiceError as e:
        logger.error(f"토큰 갱신 실패: {body.accountId} - {str(e)}")
        return error_response(e)

    return {
        "success": True,
        "expiry": credentials.expires_at.isoformat() if credentials.expires_at else None,
    }


@router.post("/revoke")
async def revoke_token(
    body: Optional[AccountRequest] = Body(None),
    session: AsyncSession = Depends(get_db_session),
    factory: AdapterFactory = Depends(get_adapter_factory),
):
    """계정의 토큰을 폐기합니다."""
    if body is None or not body.accountId:
        return json_error(400, "MissingAccountId", "accountId가 필요합니다")

    credential_management = factory.create_credential_management_usecase(session)
    try:
        await credential_management.revoke(body.accountId)
    except WatchServiceError as e:
        logger.error(f"토큰 폐기 실패: {body.accountId} - {str(e)}")
        return error_response(e)

    return {"success": True}
