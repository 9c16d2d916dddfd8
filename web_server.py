"""
FastAPI 웹 서버

Gmail 위임 권한 등록과 watch 관리를 위한 웹 인터페이스를 제공합니다.
"""

from html import escape
from typing import Optional

import uvicorn
from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from starlette.middleware.sessions import SessionMiddleware

from core.domain.entities import utc_now
from core.domain.ports import ConfigPort
from adapters.db.database import initialize_database
from adapters.factory import get_adapter_factory, initialize_adapter_factory
from adapters.logger import create_logger
from adapters.web.auth_routes import router as auth_router
from adapters.web.responses import render_page
from adapters.web.watch_routes import router as watch_router
from adapters.web.webhook_routes import router as webhook_router
from config.adapters import get_config

# 로거 설정
logger = create_logger("web_server")

# 세션 쿠키 유효 시간 (등록 핸드셰이크 1회분)
SESSION_MAX_AGE_SECONDS = 3600


def create_app(config: Optional[ConfigPort] = None) -> FastAPI:
    """FastAPI 앱을 생성합니다."""
    config = config or get_config()

    app = FastAPI(
        title="Gmail Watch 서비스",
        description="Gmail 푸시 알림 구독 및 토큰 관리를 위한 웹 인터페이스",
        version="1.0.0",
    )

    # CORS 설정
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 등록 핸드셰이크 state 바인딩용 서명 쿠키 세션
    app.add_middleware(
        SessionMiddleware,
        secret_key=config.get_session_secret(),
        max_age=SESSION_MAX_AGE_SECONDS,
        https_only=config.is_production(),
    )

    # 라우터 등록
    app.include_router(auth_router)
    app.include_router(watch_router)
    app.include_router(webhook_router)

    @app.on_event("startup")
    async def startup_event():
        """서버 시작 시 실행되는 이벤트"""
        logger.info("FastAPI 웹 서버 시작")

        # 데이터베이스 초기화
        db_adapter = initialize_database(config)
        await db_adapter.initialize()
        await db_adapter.create_tables()
        initialize_adapter_factory(config, database=db_adapter)

        logger.info(f"환경: {config.get_environment()}")
        logger.info("웹 서버 준비 완료")

    @app.on_event("shutdown")
    async def shutdown_event():
        """서버 종료 시 실행되는 이벤트"""
        logger.info("FastAPI 웹 서버 종료")

        factory = get_adapter_factory()
        # 진행 중인 구독 설정/등록 알림이 끝날 때까지 대기
        await factory.create_task_runner().drain()
        await factory.get_database().close()

    @app.get("/health")
    async def health():
        """상태 확인"""
        return {"status": "healthy", "timestamp": utc_now().isoformat()}

    @app.get("/success", response_class=HTMLResponse)
    async def success_page(
        gmail: str = Query("", description="등록된 Gmail 주소"),
        timestamp: str = Query("", description="등록 시간"),
    ):
        """등록 완료 페이지"""
        body = f"""
        <p>Gmail 계정이 성공적으로 등록되었습니다.</p>
        <p><strong>Gmail:</strong> {escape(gmail)}</p>
        <p><strong>등록 시간:</strong> {escape(timestamp)}</p>
        <p>새 메일 알림 구독은 백그라운드에서 설정됩니다. 이 창을 닫아도 됩니다.</p>
        """
        return render_page("등록 완료", body, css_class="success")

    return app


app = create_app()


if __name__ == "__main__":
    # 설정 로드
    config = get_config()

    # 서버 실행
    uvicorn.run(
        "web_server:app",
        host=config.get_web_host(),
        port=config.get_web_port(),
        workers=config.get_web_workers(),
        reload=config.is_debug(),
        log_level=config.get_log_level().lower(),
    )
