"""Command-line interface: run the API server, apply migrations, register users, import legacy dumps."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import click

from notedly import __version__
from notedly.config import settings

logger = logging.getLogger(__name__)

BACKEND_ROOT = Path(__file__).resolve().parents[1]


def alembic_config():
    """Alembic config pointing at this package's migrations, independent of the cwd."""
    from alembic.config import Config

    cfg = Config()
    cfg.set_main_option("script_location", str(BACKEND_ROOT / "alembic"))
    cfg.attributes["configure_logger"] = False
    return cfg


@click.group()
@click.version_option(__version__, prog_name="notedly")
def cli() -> None:
    """Notedly: boards, notes and per-board permissions."""
    pass


@cli.command()
@click.option("--host", "-h", default=settings.backend_host, show_default=True, help="Bind address.")
@click.option("--port", "-p", default=settings.backend_port, show_default=True, type=int, help="Port to listen on.")
@click.option("--debug", is_flag=True, help="Log at DEBUG level.")
@click.option("--silent", is_flag=True, help="Log warnings and errors only.")
def serve(host: str, port: int, debug: bool, silent: bool) -> None:
    """Run the HTTP API with uvicorn."""
    if debug and silent:
        raise click.UsageError("--debug and --silent are mutually exclusive.")

    import uvicorn

    from notedly.main import create_app

    level: Optional[str] = "DEBUG" if debug else "WARNING" if silent else None
    app = create_app(log_level=level)
    uvicorn.run(app, host=host, port=port, log_level=(level or settings.log_level).lower())


@cli.command()
@click.option("--revision", "-r", default="head", show_default=True, help="Target Alembic revision.")
def migrate(revision: str) -> None:
    """Apply database migrations."""
    from alembic import command

    from notedly.main import setup_logging

    setup_logging()
    logger.info("Running database migrations to %s", revision)
    command.upgrade(alembic_config(), revision)
    logger.info("Database migrations complete.")


@cli.command()
@click.option("--provider", required=True, help="Identity provider, e.g. github.")
@click.option("--provider-id", required=True, help="The user's id at the provider.")
@click.option("--email", required=True, help="Email address verified by the provider.")
@click.option(
    "--token",
    envvar="NOTEDLY_ACCESS_TOKEN",
    default=None,
    help="Provider access token to accept as the user's bearer token.",
)
@click.option("--accept-email-change", is_flag=True, help="Rebind the identity to a new email.")
def register(provider: str, provider_id: str, email: str, token: Optional[str], accept_email_change: bool) -> None:
    """Register or refresh a user from a verified provider assertion."""
    from notedly.database import dispose_engine, run_in_transaction
    from notedly.exceptions import NotedlyError
    from notedly.main import setup_logging
    from notedly.schemas.user import IdentityAssertion
    from notedly.services.identity_service import identity_service

    setup_logging()
    assertion = IdentityAssertion(
        provider=provider,
        provider_id=provider_id,
        email=email,
        access_token=token,
    )

    async def _run():
        try:
            return await run_in_transaction(
                lambda db: identity_service.register(db, assertion, accept_email_change=accept_email_change)
            )
        finally:
            await dispose_engine()

    try:
        user = asyncio.run(_run())
    except NotedlyError as e:
        raise click.ClickException(e.message)

    click.echo(f"User {user.id}: {user.email} ({user.provider})")


@cli.command("import-legacy")
@click.argument("dump", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--provider",
    default="github",
    show_default=True,
    help="Identity provider the legacy users signed in with.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the import report as JSON.")
def import_legacy(dump: Path, provider: str, as_json: bool) -> None:
    """Import a JSON dump of a revision 1, 2 or 3 database.

    Runs in a single transaction: either every importable row is written,
    or nothing is.
    """
    from notedly.database import dispose_engine, run_in_transaction
    from notedly.exceptions import NotedlyError
    from notedly.main import setup_logging
    from notedly.services.legacy_import import import_dump

    setup_logging()
    try:
        data = json.loads(dump.read_text(encoding="utf-8"))
    except ValueError as e:
        raise click.ClickException(f"{dump} is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise click.ClickException(f"{dump} must contain a JSON object")

    async def _run():
        try:
            return await run_in_transaction(
                lambda db: import_dump(db, data, settings, provider=provider)
            )
        finally:
            await dispose_engine()

    try:
        report = asyncio.run(_run())
    except NotedlyError as e:
        raise click.ClickException(e.message)

    if as_json:
        click.echo(report.model_dump_json(indent=2))
        return

    click.echo(f"Imported revision {report.revision} dump from {dump}")
    click.echo(f"  users:       {report.users}")
    click.echo(f"  boards:      {report.boards}")
    click.echo(f"  notes:       {report.notes}")
    click.echo(f"  permissions: {report.permissions}")
    if report.skipped:
        click.echo(f"  skipped:     {len(report.skipped)}")
        for reason in report.skipped:
            click.echo(f"    - {reason}")


if __name__ == "__main__":
    cli()
