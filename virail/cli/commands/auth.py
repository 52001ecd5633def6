"""Session commands: login, logout, status and account helpers."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Annotated, Any, TypeVar

import httpx
import structlog
import typer
from rich import box
from rich.console import Console
from rich.table import Table

from virail.auth.exceptions import NotAuthenticatedError, SessionExpiredError
from virail.auth.mode import AuthMode
from virail.auth.models import LoginRequest, RegisterRequest, SessionRecord
from virail.auth.redirect import BrowserRedirector, LoggingRedirector
from virail.auth.service import AuthService
from virail.config.settings import ConfigurationError, Settings
from virail.core.errors import VirailError
from virail.core.logging import get_logger, setup_logging
from virail.services.factories import create_api_client, create_auth_service


app = typer.Typer(name="auth", help="Sign in to Virail Studio and manage the session")

console = Console()
logger = get_logger(__name__)

T = TypeVar("T")


def _load_settings(ctx: typer.Context) -> Settings:
    config_path = (ctx.obj or {}).get("config_path")
    try:
        settings = Settings.from_config(config_path)
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1) from e

    if not structlog.is_configured():
        setup_logging(
            json_logs=settings.logging.json_logs,
            log_level=settings.logging.level,
        )
    return settings


def _run(
    ctx: typer.Context,
    action: Callable[[AuthService, Settings], Awaitable[T]],
    *,
    browser: bool = False,
) -> T:
    """Run ``action`` against a freshly built service, mapping errors to exit 1."""
    settings = _load_settings(ctx)
    redirector = (
        BrowserRedirector(settings.auth.app_url) if browser else LoggingRedirector()
    )

    async def _main() -> T:
        async with create_auth_service(settings, redirector=redirector) as service:
            service.initialize()
            return await action(service, settings)

    try:
        return asyncio.run(_main())
    except (NotAuthenticatedError, SessionExpiredError) as e:
        console.print(f"[red]✗[/red] {e.message}")
        console.print("  Run 'virail auth login' to sign in")
        raise typer.Exit(1) from e
    except VirailError as e:
        console.print(f"[red]✗[/red] {e.message}")
        raise typer.Exit(1) from e
    except httpx.HTTPError as e:
        logger.debug("cli_connection_error", error=str(e), exc_info=e)
        console.print(f"[red]✗[/red] Connection error: {e}")
        raise typer.Exit(1) from e


def _render_profile_table(profile: dict[str, Any], title: str = "Account") -> None:
    """Two-column table of the non-empty profile fields."""
    table = Table(show_header=False, box=box.SIMPLE, title=title)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    def _val(v: Any) -> str:
        if isinstance(v, bool):
            return "Yes" if v else "No"
        return str(v)

    for label, key in (
        ("ID", "id"),
        ("Username", "username"),
        ("Email", "email"),
        ("Admin", "is_admin"),
        ("Active", "is_active"),
        ("Verified", "is_verified"),
        ("Created", "created_at"),
    ):
        if profile.get(key) not in (None, ""):
            table.add_row(label, _val(profile[key]))

    console.print(table)


def _render_sessions_table(sessions: list[SessionRecord]) -> None:
    table = Table(box=box.SIMPLE, title="Active sessions")
    table.add_column("ID")
    table.add_column("Device")
    table.add_column("IP")
    table.add_column("Created")
    table.add_column("Last active")
    table.add_column("Current")

    for session in sessions:
        table.add_row(
            str(session.id or ""),
            session.device_name or session.user_agent or "",
            session.ip or "",
            session.created_at or "",
            session.last_active_at or "",
            "✓" if session.current else "",
        )
    console.print(table)


@app.command(name="login")
def login_command(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="Account username")],
    password: Annotated[
        str, typer.Option("--password", "-p", prompt=True, hide_input=True)
    ],
) -> None:
    """Sign in with a username and password."""

    async def _login(service: AuthService, settings: Settings) -> str:
        await service.login(LoginRequest(username=username, password=password))
        return service.context.mode.value

    mode = _run(ctx, _login)
    console.print(f"[green]✓[/green] Signed in as [bold]{username}[/bold] ({mode} mode)")


@app.command(name="register")
def register_command(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="Account username")],
    email: Annotated[str, typer.Option("--email", "-e", help="Account email")],
    password: Annotated[
        str,
        typer.Option(
            "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True
        ),
    ],
) -> None:
    """Create an account and sign in."""

    async def _register(service: AuthService, settings: Settings) -> None:
        await service.register(
            RegisterRequest(email=email, username=username, password=password)
        )

    _run(ctx, _register)
    console.print(f"[green]✓[/green] Account created for [bold]{username}[/bold]")


@app.command(name="google-login")
def google_login_command(
    ctx: typer.Context,
    no_browser: Annotated[
        bool,
        typer.Option("--no-browser", help="Print the consent URL instead of opening it"),
    ] = False,
) -> None:
    """Start a Google sign-in in the browser."""

    async def _google(service: AuthService, settings: Settings) -> str:
        return await service.login_with_google()

    url = _run(ctx, _google, browser=not no_browser)
    console.print("Continue the Google sign-in at:")
    console.print(f"  [link={url}]{url}[/link]")


@app.command(name="logout")
def logout_command(ctx: typer.Context) -> None:
    """Sign out and forget the local session."""

    async def _logout(service: AuthService, settings: Settings) -> None:
        await service.logout()

    _run(ctx, _logout)
    console.print("[green]✓[/green] Signed out")


@app.command(name="status")
def status_command(ctx: typer.Context) -> None:
    """Show whether a local session exists and how it authenticates."""

    async def _status(service: AuthService, settings: Settings) -> None:
        if service.is_authenticated():
            user = service.credentials.get_user()
            name = user.username if user else "unknown"
            console.print(f"[green]✓[/green] Signed in as [bold]{name}[/bold]")
        else:
            console.print("[red]✗[/red] Not signed in")
            console.print("  Run 'virail auth login' to sign in")

        console.print(f"  {service.describe_auth_mode()}")
        console.print(f"  API: {settings.api.base_url}")
        console.print(f"  Stored at: {service.credentials.store.get_location()}")

    _run(ctx, _status)


@app.command(name="whoami")
def whoami_command(
    ctx: typer.Context,
    remote: Annotated[
        bool,
        typer.Option("--remote", "-r", help="Ask the backend instead of the local cache"),
    ] = False,
) -> None:
    """Show the signed-in user's profile."""

    async def _whoami(service: AuthService, settings: Settings) -> dict[str, Any]:
        if remote:
            client = create_api_client(settings, service.transport)
            return await client.get_me()
        return service.get_user_profile().model_dump()

    profile = _run(ctx, _whoami)
    _render_profile_table(profile, title="Backend profile" if remote else "Profile")


@app.command(name="refresh")
def refresh_command(ctx: typer.Context) -> None:
    """Renew the access token now."""

    async def _refresh(service: AuthService, settings: Settings) -> bool:
        return await service.refresh_access_token() is not None

    if not _run(ctx, _refresh):
        console.print("[red]✗[/red] Session could not be renewed; signed out")
        raise typer.Exit(1)
    console.print("[green]✓[/green] Session renewed")


@app.command(name="sessions")
def sessions_command(ctx: typer.Context) -> None:
    """List the account's active sessions."""

    async def _sessions(service: AuthService, settings: Settings) -> list[SessionRecord]:
        return await service.get_sessions()

    sessions = _run(ctx, _sessions)
    if not sessions:
        console.print("No active sessions found")
        return
    _render_sessions_table(sessions)


@app.command(name="check")
def check_command(
    ctx: typer.Context,
    mode: Annotated[
        AuthMode | None,
        typer.Option("--mode", "-m", help="Force an auth mode before checking"),
    ] = None,
) -> None:
    """Ask the backend whether it accepts the session's credentials."""

    async def _check(service: AuthService, settings: Settings) -> tuple[bool, str]:
        if mode is not None:
            service.force_auth_mode(mode)
        ok = await service.check_backend_auth()
        return ok, service.describe_auth_mode()

    ok, description = _run(ctx, _check)

    if ok:
        console.print(f"[green]✓[/green] Backend accepted the credentials ({description})")
    else:
        console.print(f"[red]✗[/red] Backend rejected the credentials ({description})")
        raise typer.Exit(1)


@app.command(name="forgot-password")
def forgot_password_command(
    ctx: typer.Context,
    email: Annotated[str, typer.Argument(help="Account email")],
) -> None:
    """Send a password reset email."""

    async def _forgot(service: AuthService, settings: Settings) -> tuple[bool, str]:
        result = await service.forgot_password(email)
        return result.success, result.message

    success, message = _run(ctx, _forgot)
    if not success:
        console.print(f"[red]✗[/red] {message}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {message}")


@app.command(name="reset-password")
def reset_password_command(
    ctx: typer.Context,
    token: Annotated[str, typer.Argument(help="Token from the reset email")],
    new_password: Annotated[
        str,
        typer.Option(
            "--new-password",
            "-p",
            prompt=True,
            hide_input=True,
            confirmation_prompt=True,
        ),
    ],
) -> None:
    """Choose a new password with a reset token."""

    async def _reset(service: AuthService, settings: Settings) -> tuple[bool, str]:
        result = await service.reset_password(token, new_password)
        return result.success, result.message

    success, message = _run(ctx, _reset)
    if not success:
        console.print(f"[red]✗[/red] {message}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {message}")

