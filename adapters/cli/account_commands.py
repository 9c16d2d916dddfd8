"""
계정 관리 CLI 명령어

계정 저장소의 관리 작업(조회, 삭제, 통계)을 CLI 명령으로 노출하는 어댑터입니다.
계정 생성은 웹 등록 핸드셰이크로만 가능합니다.
"""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from core.domain.exceptions import AccountNotFoundError, WatchServiceError
from .runtime import open_factory

# CLI 앱 생성
app = typer.Typer(name="account", help="계정 관리 명령어")
console = Console()


@app.command("list")
def list_accounts(
    limit: int = typer.Option(20, help="조회할 계정 수"),
    skip: int = typer.Option(0, help="건너뛸 계정 수"),
):
    """등록된 계정 목록을 조회합니다."""

    async def _list():
        try:
            async with open_factory() as factory:
                async with factory.session_scope() as session:
                    repository = factory.create_account_repository(session)
                    accounts = await repository.list_all(skip=skip, limit=limit)

        except WatchServiceError as e:
            console.print(f"[red]오류: {str(e)}[/red]")
            raise typer.Exit(1)

        if not accounts:
            console.print("[yellow]등록된 계정이 없습니다.[/yellow]")
            return

        table = Table(title="등록된 계정 목록")
        table.add_column("ID", style="cyan")
        table.add_column("메일박스", style="magenta")
        table.add_column("등록자")
        table.add_column("자동 갱신")
        table.add_column("구독 만료")

        for account in accounts:
            expiry = "-"
            if account.subscription:
                expiry = account.subscription.expires_at.strftime("%Y-%m-%d %H:%M")
            table.add_row(
                account.id,
                account.mailbox_address,
                f"{account.owner_name} <{account.owner_email}>",
                "[green]가능[/green]" if account.can_auto_renew() else "[red]불가[/red]",
                expiry,
            )

        console.print(table)

    asyncio.run(_list())


@app.command("show")
def show_account(
    account_id: str = typer.Argument(..., help="계정 ID"),
):
    """계정 상세 정보를 조회합니다. 토큰 값은 표시하지 않습니다."""

    async def _show():
        try:
            async with open_factory() as factory:
                async with factory.session_scope() as session:
                    repository = factory.create_account_repository(session)
                    account = await repository.get_by_id(account_id)
                    if account is None:
                        raise AccountNotFoundError(account_id)

        except WatchServiceError as e:
            console.print(f"[red]오류: {str(e)}[/red]")
            raise typer.Exit(1)

        console.print(f"[bold]계정 정보: {account.mailbox_address}[/bold]")
        console.print(f"ID: {account.id}")
        console.print(f"등록자: {account.owner_name} <{account.owner_email}>")
        console.print(f"소속: {account.owner_org or '-'}")
        console.print(f"등록 시간: {account.registered_at.strftime('%Y-%m-%d %H:%M:%S UTC')}")
        console.print(f"리프레시 토큰: {'있음' if account.can_auto_renew() else '없음 (자동 갱신 불가)'}")

        expires_at = account.credentials.expires_at
        console.print(f"토큰 만료: {expires_at.strftime('%Y-%m-%d %H:%M:%S UTC') if expires_at else '-'}")

        if account.subscription:
            subscription = account.subscription
            console.print(f"구독 채널: {subscription.channel_name}")
            console.print(f"구독 만료: {subscription.expires_at.strftime('%Y-%m-%d %H:%M:%S UTC')}")
            console.print(f"historyId: {subscription.cursor}")
        else:
            console.print("구독: [yellow]없음[/yellow]")

        if account.last_renewed_at:
            console.print(f"마지막 갱신: {account.last_renewed_at.strftime('%Y-%m-%d %H:%M:%S UTC')}")

    asyncio.run(_show())


@app.command("delete")
def delete_account(
    account_id: str = typer.Argument(..., help="계정 ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="확인 없이 삭제"),
):
    """계정을 삭제합니다. 제공자 측 watch는 중지되지 않습니다."""
    if not yes:
        typer.confirm(f"계정 {account_id}을(를) 삭제하시겠습니까?", abort=True)

    async def _delete():
        try:
            async with open_factory() as factory:
                async with factory.session_scope() as session:
                    repository = factory.create_account_repository(session)
                    deleted = await repository.delete(account_id)

        except WatchServiceError as e:
            console.print(f"[red]오류: {str(e)}[/red]")
            raise typer.Exit(1)

        if not deleted:
            console.print(f"[red]계정을 찾을 수 없습니다: {account_id}[/red]")
            raise typer.Exit(1)

        console.print(f"[green]✓ 계정이 삭제되었습니다: {account_id}[/green]")

    asyncio.run(_delete())


@app.command("stats")
def account_stats():
    """계정 통계를 조회합니다."""

    async def _stats():
        try:
            async with open_factory() as factory:
                async with factory.session_scope() as session:
                    repository = factory.create_account_repository(session)
                    stats = await repository.get_stats()

        except WatchServiceError as e:
            console.print(f"[red]오류: {str(e)}[/red]")
            raise typer.Exit(1)

        table = Table(title="계정 통계")
        table.add_column("항목", style="cyan")
        table.add_column("값", justify="right")
        table.add_row("전체 계정", str(stats.total_accounts))
        table.add_row("최근 24시간 등록", str(stats.registered_today))
        table.add_row("최근 7일 등록", str(stats.registered_this_week))
        table.add_row("활성 구독", str(stats.active_subscriptions))

        console.print(table)

    asyncio.run(_stats())
