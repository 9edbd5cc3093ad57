"""Typer CLI for Gatehouse."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="gatehouse", help="Gatehouse: multi-tenant identity and access service")
console = Console()


@app.command()
def serve(
    host: str = typer.Option(None, help="Bind host (defaults to GATEHOUSE_HOST)"),
    port: int = typer.Option(None, help="Bind port (defaults to GATEHOUSE_PORT)"),
):
    """Start the Gatehouse API server."""
    import uvicorn
    from gatehouse.app import create_app
    from gatehouse.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting Gatehouse on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


async def _cleanup_tokens() -> tuple[int, int]:
    from gatehouse.deps import get_db, get_password_reset_flow, get_session_manager

    db = get_db()
    await db.init()
    await db.create_all()
    try:
        async with db.get_session() as session:
            refresh = await get_session_manager().cleanup_expired(session)
            reset = await get_password_reset_flow().cleanup_expired(session)
    finally:
        await db.close()
    return refresh, reset


@app.command("cleanup-tokens")
def cleanup_tokens():
    """Purge expired/revoked refresh tokens and expired reset tokens."""
    refresh, reset = asyncio.run(_cleanup_tokens())
    table = Table(title="Token cleanup")
    table.add_column("Kind")
    table.add_column("Deleted", justify="right")
    table.add_row("refresh", str(refresh))
    table.add_row("password reset", str(reset))
    console.print(table)


async def _register(tenant_name: str, slug: str, email: str, password: str, name: str):
    from gatehouse.deps import get_auth_service, get_db
    from gatehouse.notifications.email_delivery import deliver

    db = get_db()
    await db.init()
    await db.create_all()
    try:
        async with db.get_session() as session:
            result = await get_auth_service().register(
                session,
                tenant_name=tenant_name,
                slug=slug,
                admin_email=email,
                admin_password=password,
                admin_name=name,
            )
        if result.notification is not None:
            await deliver(result.notification)
        return result.tenant.id, result.user.id
    finally:
        await db.close()


@app.command()
def register(
    tenant_name: str = typer.Argument(..., help="Organization display name"),
    slug: str = typer.Argument(..., help="Tenant slug (lowercase, 3-63 chars)"),
    email: str = typer.Option(..., "--email", help="First administrator's email"),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, confirmation_prompt=True,
    ),
    name: str = typer.Option("", "--name", help="First administrator's name"),
):
    """Bootstrap a tenant together with its first administrator."""
    from gatehouse.common.exceptions import GatehouseError

    try:
        tenant_id, user_id = asyncio.run(_register(tenant_name, slug, email, password, name))
    except GatehouseError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)
    console.print(f"[bold green]Tenant created[/bold green] {slug} ({tenant_id})")
    console.print(f"  Admin user: {email} ({user_id})")


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Gatehouse server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] — v{data['version']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
