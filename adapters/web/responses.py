"""
웹 응답 헬퍼

도메인 예외를 HTTP 응답으로 변환하고 간단한 HTML 페이지를 렌더링합니다.
"""

from html import escape
from typing import Optional

from fastapi.responses import HTMLResponse, JSONResponse

from core.domain.exceptions import (
    AccountNotFoundError,
    CsrfError,
    MissingOfflineGrantError,
    OAuthDeniedError,
    ProviderError,
)

PAGE_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <title>{title}</title>
    <style>
        body {{ font-family: Arial; padding: 40px; max-width: 600px; margin: 0 auto; }}
        .success {{ color: #2e7d32; background: #e8f5e9; padding: 20px; border-radius: 8px; }}
        .error {{ color: #d32f2f; background: #ffebee; padding: 20px; border-radius: 8px; }}
        .info {{ background: #f0f0f0; padding: 20px; border-radius: 8px; margin-top: 20px; }}
    </style>
</head>
<body>
    <h1>{title}</h1>
    <div class="{css_class}">
        {body}
    </div>
</body>
</html>
"""


def render_page(title: str, body: str, css_class: str = "info", status_code: int = 200) -> HTMLResponse:
    """HTML 페이지 응답 (body는 이미 이스케이프된 HTML이어야 함)"""
    content = PAGE_TEMPLATE.format(title=escape(title), css_class=css_class, body=body)
    return HTMLResponse(content=content, status_code=status_code)


def render_failure_page(error: Exception) -> HTMLResponse:
    """등록 실패 페이지. 오류 종류마다 다른 안내 문구를 사용합니다."""
    if isinstance(error, OAuthDeniedError):
        title, status_code = "인증이 거부되었습니다", 400
        message = "Google 계정 접근 권한이 부여되지 않았습니다. 다시 시도해주세요."
    elif isinstance(error, CsrfError):
        title, status_code = "보안 검증 실패", 400
        message = "요청이 만료되었거나 유효하지 않습니다. 등록을 처음부터 다시 시작해주세요."
    elif isinstance(error, ProviderError):
        title, status_code = "토큰 교환 실패", 502
        message = "Google 인증 서버와 통신하는 중 오류가 발생했습니다. 잠시 후 다시 시도해주세요."
    else:
        title, status_code = "등록 실패", 500
        message = "등록 정보를 저장하는 중 오류가 발생했습니다. 관리자에게 문의하세요."

    body = f"<p>{escape(message)}</p>"
    return render_page(title, body, css_class="error", status_code=status_code)


def error_status_code(error: Exception) -> int:
    """도메인 예외에 대응하는 HTTP 상태 코드"""
    if isinstance(error, AccountNotFoundError):
        return 404
    if isinstance(error, MissingOfflineGrantError):
        return 409
    if isinstance(error, ProviderError):
        return 502
    # StoreError, DecryptionError 및 기타 오류
    return 500


def error_response(error: Exception) -> JSONResponse:
    """도메인 예외를 구조화된 JSON 오류 응답으로 변환합니다."""
    return json_error(error_status_code(error), type(error).__name__, str(error))


def json_error(status_code: int, error: str, message: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message or error},
    )
