# ruff: noqa: I001
"""CLI for the ``finance_ledger`` package.

A thin Typer console over :class:`finance_ledger.api.FinanceLedger`, meant
for scheduled jobs (``process-due``) and operator tasks. Environment
variables (notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs. Results are printed to stdout as
JSON with money rendered as floats; ledger errors are printed to stderr as
``KIND: message`` with exit status 1.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging
from .money import to_display
from .settings import Settings


# ---- Small module-level helpers used by CLI commands -------------------------


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return to_display(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"not JSON serializable: {type(value).__name__}")


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, default=_json_default, ensure_ascii=False, indent=2))


@contextmanager
def _ledger(ctx: typer.Context) -> Iterator[Any]:
    """Open a client for the invocation and close it when the command ends."""

    # Deferred imports to keep CLI startup fast
    from db.client import DatabaseClient

    from .api import FinanceLedger

    settings: Settings = ctx.obj["settings"]
    try:
        client = DatabaseClient.from_url(ctx.obj.get("database_url") or settings.database_url)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from None
    try:
        yield FinanceLedger(client)
    finally:
        client.close()


def _run(ctx: typer.Context, op: Callable[[Any], Any]) -> None:
    from .errors import LedgerError

    with _ledger(ctx) as ledger:
        try:
            result = op(ledger)
        except LedgerError as e:
            print(str(e), file=sys.stderr)
            raise typer.Exit(1) from None
    _emit(result)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Personal finance ledger: process recurring transactions and maintain "
        "monthly budgets. Loads DATABASE_URL from a local .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
USER_ID_OPTION: OptionInfo = typer.Option(..., "--user-id", help="Owner of the data.")
MONTH_OPTION: OptionInfo = typer.Option(..., "--month", help="Calendar month (1-12).")
YEAR_OPTION: OptionInfo = typer.Option(..., "--year", help="Calendar year.")
DAYS_OPTION: OptionInfo = typer.Option(
    None, "--days", help="Window in days (defaults to FINANCE_LEDGER_UPCOMING_DAYS or 30)."
)
START_OPTION: OptionInfo = typer.Option(..., "--start", help="Range start (ISO date/time).")
END_OPTION: OptionInfo = typer.Option(
    ..., "--end", help="Range end, inclusive (ISO date/time; a bare date covers the whole day)."
)
EMAIL_OPTION: OptionInfo = typer.Option(..., "--email", help="Email address of the new user.")
NAME_OPTION: OptionInfo = typer.Option(None, "--name", help="Display name.")
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)


@app.command("init-db")
def init_db_cmd(ctx: typer.Context) -> None:
    """Create all tables from the ORM metadata (development databases)."""

    with _ledger(ctx) as ledger:
        ledger.client.create_all()
        _emit({"database": ledger.client.url, "status": "initialized"})


@app.command("register-user")
def register_user_cmd(
    ctx: typer.Context,
    email: str = EMAIL_OPTION,
    name: str | None = NAME_OPTION,
) -> None:
    """Create a user with the default category set."""

    _run(ctx, lambda ledger: ledger.register_user(email, name))


@app.command("process-due")
def process_due_cmd(ctx: typer.Context, user_id: str = USER_ID_OPTION) -> None:
    """Generate the transactions for every recurrence due now."""

    _run(ctx, lambda ledger: ledger.process_due(user_id))


@app.command("upcoming")
def upcoming_cmd(
    ctx: typer.Context,
    user_id: str = USER_ID_OPTION,
    days: int | None = DAYS_OPTION,
) -> None:
    """List active recurrences due within the window."""

    settings: Settings = ctx.obj["settings"]
    window = days if days is not None else settings.upcoming_days
    _run(ctx, lambda ledger: ledger.get_upcoming(user_id, days=window))


@app.command("budgets")
def budgets_cmd(
    ctx: typer.Context,
    user_id: str = USER_ID_OPTION,
    month: int = MONTH_OPTION,
    year: int = YEAR_OPTION,
) -> None:
    """Show one month's budgets with totals."""

    _run(ctx, lambda ledger: ledger.list_budgets(user_id, month=month, year=year))


@app.command("recalculate")
def recalculate_cmd(
    ctx: typer.Context,
    user_id: str = USER_ID_OPTION,
    month: int = MONTH_OPTION,
    year: int = YEAR_OPTION,
) -> None:
    """Rebuild ``spent`` for one month's budgets from transactions."""

    _run(ctx, lambda ledger: ledger.recalculate_spent(user_id, month=month, year=year))


@app.command("copy-budgets")
def copy_budgets_cmd(
    ctx: typer.Context,
    user_id: str = USER_ID_OPTION,
    month: int = MONTH_OPTION,
    year: int = YEAR_OPTION,
) -> None:
    """Copy the previous month's budgets into the given month."""

    _run(
        ctx,
        lambda ledger: ledger.copy_budgets_from_previous_month(
            user_id, target_month=month, target_year=year
        ),
    )


@app.command("summary")
def summary_cmd(
    ctx: typer.Context,
    user_id: str = USER_ID_OPTION,
    start: str = START_OPTION,
    end: str = END_OPTION,
) -> None:
    """Income, expenses and per-category spending over a date range."""

    _run(ctx, lambda ledger: ledger.get_summary(user_id, start=start, end=end))


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context, database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables), configures logging and snapshots the
    settings for the subcommand.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    try:
        settings = Settings.from_env()
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from None

    # Central logging setup so child loggers inherit configuration
    configure_logging(settings.log_level)
    ctx.obj = {"settings": settings, "database_url": database_url}

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
