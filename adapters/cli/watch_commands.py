"""
Gmail watch CLI 명령어

갱신 배치 실행과 계정 단위 watch 설정/중지를 CLI 명령으로 노출하는 어댑터입니다.
주기적 갱신은 외부 스케줄러(cron 등)가 `python main.py watch renew`를 호출하여 수행합니다.
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from core.domain.exceptions import WatchServiceError
from core.domain.ports import ConfigPort
from .runtime import open_factory

# CLI 앱 생성
app = typer.Typer(name="watch", help="Gmail watch 관리 명령어")
console = Console()


def resolve_horizon_hours(horizon: Optional[int], config: ConfigPort) -> int:
    """--horizon 값이 없으면 설정의 기본 범위를 사용합니다. (0도 유효한 값)"""
    if horizon is None:
        return config.get_watch_renewal_horizon_hours()
    return horizon


@app.command("renew")
def renew_watches(
    horizon: Optional[int] = typer.Option(None, "--horizon", help="이 시간(시간 단위) 이내에 만료되는 구독을 갱신"),
):
    """만료 임박 Gmail watch를 일괄 갱신합니다."""

    async def _renew():
        try:
            async with open_factory() as factory:
                horizon_hours = resolve_horizon_hours(horizon, factory.get_config())
                console.print(f"[blue]{horizon_hours}시간 이내 만료 구독 갱신 중...[/blue]")

                async with factory.session_scope() as session:
                    usecase = factory.create_watch_renewal_usecase(session)
                    summary = await usecase.run_batch(horizon_hours)

        except WatchServiceError as e:
            console.print(f"[red]오류: {str(e)}[/red]")
            raise typer.Exit(1)

        if summary.total_processed == 0:
            console.print("[yellow]갱신할 구독이 없습니다.[/yellow]")
            return

        table = Table(title="Gmail watch 갱신 결과")
        table.add_column("계정 ID", style="cyan")
        table.add_column("메일박스", style="magenta")
        table.add_column("결과")
        table.add_column("새 만료 시간 / 오류")

        for result in summary.results:
            if result.success:
                table.add_row(
                    result.account_id,
                    result.mailbox_address or "-",
                    "[green]성공[/green]",
                    result.new_expiry.strftime("%Y-%m-%d %H:%M:%S") if result.new_expiry else "-",
                )
            else:
                table.add_row(
                    result.account_id,
                    result.mailbox_address or "-",
                    f"[red]실패 ({result.error_type})[/red]",
                    result.error or "-",
                )

        console.print(table)
        console.print(
            f"전체: {summary.total_processed}, "
            f"[green]성공: {summary.successful}[/green], "
            f"[red]실패: {summary.failed}[/red]"
        )

        if summary.failed:
            raise typer.Exit(2)

    asyncio.run(_renew())


@app.command("setup")
def setup_watch(
    account_id: str = typer.Argument(..., help="계정 ID"),
):
    """계정의 Gmail watch를 설정합니다."""

    async def _setup():
        try:
            async with open_factory() as factory:
                async with factory.session_scope() as session:
                    usecase = factory.create_watch_management_usecase(session)
                    subscription = await usecase.establish(account_id)

        except WatchServiceError as e:
            console.print(f"[red]오류: {str(e)}[/red]")
            raise typer.Exit(1)

        console.print("[green]✓ Gmail watch가 설정되었습니다![/green]")
        console.print(f"채널: {subscription.channel_name}")
        console.print(f"historyId: {subscription.cursor}")
        console.print(f"만료: {subscription.expires_at.strftime('%Y-%m-%d %H:%M:%S UTC')}")

    asyncio.run(_setup())


@app.command("stop")
def stop_watch(
    account_id: str = typer.Argument(..., help="계정 ID"),
):
    """계정의 Gmail watch를 중지합니다."""

    async def _stop():
        try:
            async with open_factory() as factory:
                async with factory.session_scope() as session:
                    usecase = factory.create_watch_management_usecase(session)
                    await usecase.teardown(account_id)

        except WatchServiceError as e:
            console.print(f"[red]오류: {str(e)}[/red]")
            raise typer.Exit(1)

        console.print("[green]✓ Gmail watch가 중지되었습니다.[/green]")

    asyncio.run(_stop())
