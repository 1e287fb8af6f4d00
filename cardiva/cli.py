"""Cardiva CLI.

Commands:
- init: Initialize database schema (and change-notification triggers)
- serve: Run the API server
- create-user: Create an approved user account
- upload-rfps: Upload tender PDFs through the bounded upload queue
- auto-accept: Accept every exact match of an RFP
- review-status: Show review progress of an RFP
- export: Write the Excel export of an RFP
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy import select

from cardiva.admin.accounts import hash_password
from cardiva.config import get_config
from cardiva.db.connection import close_db, get_engine, get_session, init_db
from cardiva.db.models import Base, ProfileModel
from cardiva.ingestion.rfp_uploads import trigger_rfp_upload
from cardiva.models import AuthenticatedUser, UserRole
from cardiva.realtime.upload_queue import QueueFullError, UploadEntry, UploadQueue, UploadState
from cardiva.reporting.rfp_export import build_job_export
from cardiva.review.repository import fetch_job, fetch_job_items
from cardiva.review.service import auto_accept_exact_matches
from cardiva.review.status import derive_job_review_status, review_progress

app = typer.Typer(
    name="cardiva",
    help="Cardiva - RFP item matching and review",
    no_args_is_help=True,
)

console = Console()

STATE_STYLES = {
    UploadState.QUEUED: "dim",
    UploadState.UPLOADING: "yellow",
    UploadState.SUBMITTED: "green",
    UploadState.FAILED: "red",
}


async def _load_user(session, email: str) -> AuthenticatedUser:
    profile = (
        await session.execute(select(ProfileModel).where(ProfileModel.email == email.lower()))
    ).scalar_one_or_none()
    if profile is None or not profile.is_active:
        raise typer.BadParameter(f"No active user with email {email}")
    return AuthenticatedUser(id=profile.id, email=profile.email, role=UserRole(profile.role))


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
    triggers: bool = typer.Option(
        True, "--triggers/--no-triggers", help="Install change-notification triggers (Postgres)"
    ),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        if drop:
            console.print("[yellow]Dropping existing tables...[/yellow]")
            async with get_engine().begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
        console.print("[green]Creating tables...[/green]")
        await init_db(install_triggers=triggers)
        await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the API server."""
    import uvicorn

    typer.echo(f"Starting Cardiva API on http://{host}:{port}")
    uvicorn.run("cardiva.web.app:app", host=host, port=port, reload=reload, workers=1)


@app.command(name="create-user")
def create_user(
    email: str = typer.Argument(..., help="Login e-mail"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    role: UserRole = typer.Option(UserRole.USER, "--role", help="user, admin or automation"),
    full_name: str | None = typer.Option(None, "--name", help="Display name"),
):
    """Create an approved user account."""

    async def _create():
        async with get_session() as session:
            existing = await session.execute(
                select(ProfileModel.id).where(ProfileModel.email == email.lower())
            )
            if existing.scalar_one_or_none() is not None:
                console.print(f"[red]✗[/red] User {email} already exists")
                raise typer.Exit(code=1)

            session.add(
                ProfileModel(
                    email=email.lower(),
                    password_hash=hash_password(password),
                    full_name=full_name,
                    role=role.value,
                    is_active=True,
                    approved_at=datetime.now(timezone.utc),
                )
            )
        await close_db()

    asyncio.run(_create())
    console.print(f"[bold green]✓[/bold green] Created {role.value} {email}")


@app.command(name="upload-rfps")
def upload_rfps(
    files: list[Path] = typer.Argument(..., help="Tender PDF files"),
    user_email: str = typer.Option(..., "--user", help="Uploading user's e-mail"),
):
    """Upload tender PDFs (queued, staggered, limited concurrency)."""
    config = get_config()

    def _report(entry: UploadEntry) -> None:
        style = STATE_STYLES[entry.state]
        detail = entry.error or entry.warning or ""
        console.print(f"  [{style}]{entry.state.value:<10}[/{style}] {entry.file_name} {detail}")

    async def _upload():
        async with get_session() as session:
            user = await _load_user(session, user_email)

        async def upload_one(file_name: str, content: bytes):
            async with get_session() as session:
                return await trigger_rfp_upload(session, user, file_name, content)

        queue = UploadQueue.from_config(upload_one, config.upload_queue, on_change=_report)
        for path in files:
            try:
                queue.add(path.name, path.read_bytes())
            except QueueFullError as e:
                console.print(f"[yellow]⚠[/yellow] {e} Skipping {path.name}")

        entries = await queue.drain()
        await close_db()
        return entries

    entries = asyncio.run(_upload())
    submitted = sum(1 for entry in entries if entry.state == UploadState.SUBMITTED)
    console.print(f"\n[bold green]✓[/bold green] {submitted}/{len(entries)} files submitted")


@app.command(name="auto-accept")
def auto_accept(
    job_id: UUID = typer.Argument(..., help="RFP job ID"),
    user_email: str = typer.Option(..., "--user", help="Reviewer e-mail"),
):
    """Accept the exact match of every pending item."""

    async def _accept():
        async with get_session() as session:
            user = await _load_user(session, user_email)
            result = await auto_accept_exact_matches(session, user, job_id)
        await close_db()
        return result

    result = asyncio.run(_accept())
    if not result.success:
        console.print(f"[red]✗[/red] {result.error}")
        raise typer.Exit(code=1)
    console.print(f"[bold green]✓[/bold green] {result.accepted_count} exact matches accepted")


@app.command(name="review-status")
def review_status(
    job_id: UUID = typer.Argument(..., help="RFP job ID"),
):
    """Show review progress of an RFP."""

    async def _status():
        async with get_session() as session:
            job = await fetch_job(session, job_id)
            if job is None:
                return None, None, None
            items = await fetch_job_items(session, job_id)
        await close_db()
        return job, items, derive_job_review_status(job.status, job.confirmed_at, items)

    job, items, status = asyncio.run(_status())
    if job is None:
        console.print(f"[red]✗[/red] RFP {job_id} not found")
        raise typer.Exit(code=1)

    progress = review_progress(items)
    table = Table(title=f"{job.file_name} ({job.status})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("Review status", status.value if status else "-")
    table.add_row("Items", str(progress.total))
    table.add_row("To review", str(progress.por_rever))
    table.add_row("Matched", str(progress.matched))
    table.add_row("No match", str(progress.no_match))
    table.add_row("Reviewed", f"{progress.percent_reviewed}%")

    console.print(table)


@app.command()
def export(
    job_id: UUID = typer.Argument(..., help="RFP job ID"),
    output: Path | None = typer.Option(None, "--out", "-o", help="Output .xlsx file"),
    confirmed_only: bool = typer.Option(False, "--confirmed-only", help="Only selected matches"),
):
    """Write the Excel export of an RFP."""

    async def _export():
        async with get_session() as session:
            if await fetch_job(session, job_id) is None:
                return None
            result = await build_job_export(session, job_id, confirmed_only=confirmed_only)
        await close_db()
        return result

    result = asyncio.run(_export())
    if result is None:
        console.print(f"[red]✗[/red] RFP {job_id} not found")
        raise typer.Exit(code=1)

    path = output or Path(result.file_name)
    path.write_bytes(result.content)
    summary = result.summary
    console.print(
        f"[bold green]✓[/bold green] Wrote {path} "
        f"({summary.total_items} items, {summary.confirmed_count + summary.manual_count} selected)"
    )


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
