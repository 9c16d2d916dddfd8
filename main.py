"""
Gmail Watch 서비스

메인 진입점 파일입니다.
"""

import asyncio
import typer
from rich.console import Console

from adapters.cli.account_commands import app as account_app
from adapters.cli.watch_commands import app as watch_app
from adapters.db.database import initialize_database
from core.domain.exceptions import WatchServiceError
from config.adapters import get_config

# 메인 CLI 앱
app = typer.Typer(
    name="gmail-watch",
    help="Gmail 푸시 알림 구독 및 토큰 관리 서비스",
    no_args_is_help=True,
)

# 서브 명령어 추가
app.add_typer(account_app, name="account")
app.add_typer(watch_app, name="watch")

console = Console()


@app.command("init-db")
def init_database(
    drop_existing: bool = typer.Option(False, "--drop", help="기존 테이블을 삭제하고 재생성"),
):
    """데이터베이스를 초기화합니다."""

    async def _init_db():
        config = get_config()
        console.print(f"[blue]환경: {config.get_environment()}[/blue]")

        # 데이터베이스 어댑터 초기화
        db_adapter = initialize_database(config)
        await db_adapter.initialize()

        try:
            if drop_existing:
                console.print("[yellow]기존 테이블을 삭제하는 중...[/yellow]")
                await db_adapter.drop_tables()

            console.print("[blue]데이터베이스 테이블을 생성하는 중...[/blue]")
            await db_adapter.create_tables()
        finally:
            await db_adapter.close()

        console.print("[green]✓ 데이터베이스가 성공적으로 초기화되었습니다![/green]")

    try:
        asyncio.run(_init_db())
    except WatchServiceError as e:
        console.print(f"[red]오류: {str(e)}[/red]")
        raise typer.Exit(1)


@app.command("version")
def show_version():
    """버전 정보를 표시합니다."""
    console.print("[bold]Gmail Watch 서비스[/bold]")
    console.print("버전: 1.0.0")


@app.command("config")
def show_config():
    """현재 설정을 표시합니다. 비밀 값은 설정 여부만 표시합니다."""
    try:
        config = get_config()
    except WatchServiceError as e:
        console.print(f"[red]오류: {str(e)}[/red]")
        raise typer.Exit(1)

    def configured(value) -> str:
        return "[green]설정됨[/green]" if value else "[red]없음[/red]"

    console.print("[bold]현재 설정[/bold]")
    console.print(f"환경: {config.get_environment()}")
    console.print(f"디버그 모드: {config.is_debug()}")
    console.print(f"OAuth 클라이언트 ID: {config.get_google_client_id()}")
    console.print(f"OAuth 리다이렉트 URI: {config.get_google_redirect_uri()}")
    console.print(f"GCP 프로젝트: {config.get_gcp_project_id()}")
    console.print(f"Pub/Sub 토픽 접두사: {config.get_pubsub_topic_prefix()}")
    console.print(f"Pub/Sub 자격 증명 파일: {config.get_pubsub_credentials_file() or '기본 자격 증명(ADC)'}")
    console.print(f"감시 라벨: {', '.join(config.get_watch_label_ids())}")
    console.print(f"갱신 범위(시간): {config.get_watch_renewal_horizon_hours()}")
    console.print(f"등록 웹훅: {configured(config.get_registration_webhook_url())}")
    console.print(f"갱신 웹훅: {configured(config.get_renewal_webhook_url())}")
    console.print(f"웹훅 최대 시도: {config.get_webhook_max_attempts()}")
    console.print(f"암호화 키: {configured(config.get_encryption_key())}")
    console.print(f"웹 서버: {config.get_web_host()}:{config.get_web_port()}")
    console.print(f"로그 레벨: {config.get_log_level()}")


if __name__ == "__main__":
    app()
