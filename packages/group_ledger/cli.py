# ruff: noqa: I001
"""CLI for the ``group_ledger`` package.

Command handlers (``cmd_*``) take plain arguments, print results to stdout and
errors to stderr, and return a process exit code. The Typer commands below
only parse options and delegate. Environment variables (``DATABASE_URL``,
``OPENAI_API_KEY``, ``GROUP_LEDGER_LOG_LEVEL``...) are loaded from a local
``.env`` with ``python-dotenv`` before any command runs.

Every command reads from one store: a JSON export given with ``--snapshot`` or
the SQL document table at ``--database-url`` / ``DATABASE_URL``.
"""

from __future__ import annotations

import json
import sys
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging, get_logger
from .models import Lateness

_logger = get_logger("group_ledger.cli")


# ---- Small module-level helpers used by CLI commands -------------------------


def _open_store(snapshot: Path | None, database_url: str | None):
    """Return the store selected by the global options."""

    from .store import SqlRecordSource, load_snapshot_file

    if snapshot is not None:
        _logger.debug("cli:store kind=snapshot path=%s", snapshot)
        return load_snapshot_file(snapshot)
    return SqlRecordSource(database_url=database_url)


def _save_store(store: Any, snapshot: Path | None) -> None:
    # Writes against a JSON export go back to the same file
    if snapshot is not None:
        from .store import dump_snapshot_file

        dump_snapshot_file(store, snapshot)


def _as_date(value: datetime | None) -> date | None:
    return None if value is None else value.date()


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _actor(actor_id: str, actor_name: str | None):
    from .contributions import Actor

    return Actor(user_id=actor_id, user_name=actor_name or actor_id)


# ---- Command handlers ----------------------------------------------------------


def cmd_member_statement(
    member_id: str,
    *,
    snapshot: Path | None = None,
    database_url: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> int:
    from .api import build_member_statement

    try:
        store = _open_store(snapshot, database_url)
        report = build_member_statement(store, member_id, start, end)
    except Exception as e:  # noqa: BLE001
        print(f"Error: member statement failed: {e}", file=sys.stderr)
        return 1
    _print_json(report.to_dict())
    return 0


def cmd_financial_activity(
    *,
    snapshot: Path | None = None,
    database_url: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> int:
    from .api import build_financial_activity_summary

    try:
        store = _open_store(snapshot, database_url)
        report = build_financial_activity_summary(store, start, end)
    except Exception as e:  # noqa: BLE001
        print(f"Error: financial activity summary failed: {e}", file=sys.stderr)
        return 1
    _print_json(report.to_dict())
    return 0


def cmd_tax_summary(
    year: int,
    *,
    snapshot: Path | None = None,
    database_url: str | None = None,
) -> int:
    from .api import build_annual_tax_summary

    try:
        store = _open_store(snapshot, database_url)
        report = build_annual_tax_summary(store, year)
    except Exception as e:  # noqa: BLE001
        print(f"Error: tax summary failed: {e}", file=sys.stderr)
        return 1
    _print_json(report.to_dict())
    return 0


def cmd_contribution_details(
    *,
    snapshot: Path | None = None,
    database_url: str | None = None,
    start: date | None = None,
    end: date | None = None,
    member_id: str | None = None,
    lateness: Lateness | None = None,
) -> int:
    from .api import build_contribution_details

    try:
        store = _open_store(snapshot, database_url)
        report = build_contribution_details(
            store, start, end, member_id=member_id, lateness=lateness
        )
    except Exception as e:  # noqa: BLE001
        print(f"Error: contribution details failed: {e}", file=sys.stderr)
        return 1
    _print_json(report.to_dict())
    return 0


def cmd_classify(
    contribution_id: str,
    *,
    snapshot: Path | None = None,
    database_url: str | None = None,
) -> int:
    from .api import classify_lateness
    from .errors import MalformedRecordError

    try:
        store = _open_store(snapshot, database_url)
        doc = store.get("contributions", contribution_id)
    except Exception as e:  # noqa: BLE001
        print(f"Error: failed to read contribution: {e}", file=sys.stderr)
        return 1
    if doc is None:
        print(f"Error: contribution not found: {contribution_id}", file=sys.stderr)
        return 1
    try:
        verdict = classify_lateness(doc)
    except MalformedRecordError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    _print_json({"id": contribution_id, "lateness": verdict.value, "label": verdict.label})
    return 0


def cmd_void_contribution(
    contribution_id: str,
    *,
    actor_id: str,
    actor_name: str | None = None,
    reason: str | None = None,
    snapshot: Path | None = None,
    database_url: str | None = None,
) -> int:
    from .contributions import void_contribution
    from .errors import LedgerError

    try:
        store = _open_store(snapshot, database_url)
        doc = void_contribution(
            store, contribution_id, actor=_actor(actor_id, actor_name), reason=reason
        )
        _save_store(store, snapshot)
    except LedgerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:  # noqa: BLE001
        print(f"Error: void failed: {e}", file=sys.stderr)
        return 1
    _print_json(doc)
    return 0


def cmd_edit_contribution(
    contribution_id: str,
    changes: dict[str, Any],
    *,
    actor_id: str,
    actor_name: str | None = None,
    snapshot: Path | None = None,
    database_url: str | None = None,
) -> int:
    from .contributions import edit_contribution
    from .errors import LedgerError
    from .settings import load_settings

    if not changes:
        print("Error: nothing to change; pass at least one field option.", file=sys.stderr)
        return 1
    try:
        store = _open_store(snapshot, database_url)
        doc = edit_contribution(
            store,
            contribution_id,
            changes,
            actor=_actor(actor_id, actor_name),
            settings=load_settings(store),
        )
        _save_store(store, snapshot)
    except (LedgerError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:  # noqa: BLE001
        print(f"Error: edit failed: {e}", file=sys.stderr)
        return 1
    _print_json(doc)
    return 0


def cmd_load_snapshot(
    snapshot: Path,
    *,
    database_url: str | None = None,
    create_schema: bool = False,
) -> int:
    from .store import SqlRecordSource, import_collections, load_snapshot_file

    try:
        source = load_snapshot_file(snapshot)
    except FileNotFoundError:
        print(f"Error: File not found: {snapshot}", file=sys.stderr)
        return 1
    except (ValueError, json.JSONDecodeError) as e:
        print(f"Error: Failed to parse snapshot: {e}", file=sys.stderr)
        return 1

    try:
        if create_schema:
            from db import Base
            from db.client import get_engine

            Base.metadata.create_all(bind=get_engine(database_url=database_url))
        count = import_collections(
            SqlRecordSource(database_url=database_url), source, source.collections()
        )
    except Exception as e:  # noqa: BLE001
        print(f"Error: import failed: {e}", file=sys.stderr)
        return 1
    print(f"Imported {count} document(s) from {snapshot}")
    return 0


def cmd_ai_summary(
    role: str,
    *,
    as_of: date | None = None,
    snapshot: Path | None = None,
    database_url: str | None = None,
) -> int:
    import os

    if not os.getenv("OPENAI_API_KEY"):
        print("Error: OPENAI_API_KEY is not set in the environment.", file=sys.stderr)
        return 1

    from .ai_summary import summarize_for_role
    from .dashboard import compute_dashboard_metrics
    from .settings import load_settings
    from .store import fetch_ledger_snapshot

    day = as_of or datetime.now(UTC).date()
    try:
        store = _open_store(snapshot, database_url)
        metrics = compute_dashboard_metrics(
            fetch_ledger_snapshot(store),
            store.fetch("milestones"),
            as_of=datetime(day.year, day.month, day.day, tzinfo=UTC),
        )
        settings = load_settings(store)
    except Exception as e:  # noqa: BLE001
        print(f"Error: failed to compute dashboard metrics: {e}", file=sys.stderr)
        return 1

    try:
        summary = summarize_for_role(role, metrics, currency_symbol=settings.currency_symbol)
    except Exception as e:  # noqa: BLE001
        print(f"Error: AI summary failed: {e}", file=sys.stderr)
        return 1
    _print_json({"role": role, "metrics": metrics.model_dump(mode="json", by_alias=True)})
    print(summary)
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Member statements, financial summaries and contribution audits for an "
        "investment group. Loads .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter defaults).
# They are used through Annotated, so defaults live on the parameters.
SNAPSHOT_OPTION: OptionInfo = typer.Option(
    "--snapshot",
    help="Read records from a JSON export instead of the database.",
    dir_okay=False,
    file_okay=True,
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
START_OPTION: OptionInfo = typer.Option(
    "--start", formats=["%Y-%m-%d"], help="Window start date (inclusive)."
)
END_OPTION: OptionInfo = typer.Option(
    "--end", formats=["%Y-%m-%d"], help="Window end date (inclusive)."
)
ACTOR_ID_OPTION: OptionInfo = typer.Option(
    "--actor-id", help="User id recorded in the audit log."
)
ACTOR_NAME_OPTION: OptionInfo = typer.Option(
    "--actor-name", help="User name recorded in the audit log."
)

Snapshot = Annotated[Path | None, SNAPSHOT_OPTION]
DatabaseUrl = Annotated[str | None, DATABASE_URL_OPTION]
Start = Annotated[datetime | None, START_OPTION]
End = Annotated[datetime | None, END_OPTION]


@app.command("member-statement")
def member_statement_cmd(
    member_id: str,
    *,
    snapshot: Snapshot = None,
    database_url: DatabaseUrl = None,
    start: Start = None,
    end: End = None,
) -> None:
    """Running-balance statement for one member."""

    code = cmd_member_statement(
        member_id,
        snapshot=snapshot,
        database_url=database_url,
        start=_as_date(start),
        end=_as_date(end),
    )
    raise typer.Exit(code)


@app.command("financial-activity")
def financial_activity_cmd(
    *,
    snapshot: Snapshot = None,
    database_url: DatabaseUrl = None,
    start: Start = None,
    end: End = None,
) -> None:
    """Income and expenditure by category for a window."""

    code = cmd_financial_activity(
        snapshot=snapshot,
        database_url=database_url,
        start=_as_date(start),
        end=_as_date(end),
    )
    raise typer.Exit(code)


@app.command("tax-summary")
def tax_summary_cmd(
    year: int,
    *,
    snapshot: Snapshot = None,
    database_url: DatabaseUrl = None,
) -> None:
    """Annual financial summary with company and member tax PINs."""

    raise typer.Exit(cmd_tax_summary(year, snapshot=snapshot, database_url=database_url))


@app.command("contribution-details")
def contribution_details_cmd(
    *,
    snapshot: Snapshot = None,
    database_url: DatabaseUrl = None,
    start: Start = None,
    end: End = None,
    member_id: Annotated[
        str | None, typer.Option("--member-id", help="Only this member's contributions.")
    ] = None,
    lateness: Annotated[
        Lateness | None, typer.Option("--lateness", help="Only contributions with this status.")
    ] = None,
) -> None:
    """Contribution audit listing (voided rows shown, not totalled)."""

    code = cmd_contribution_details(
        snapshot=snapshot,
        database_url=database_url,
        start=_as_date(start),
        end=_as_date(end),
        member_id=member_id,
        lateness=lateness,
    )
    raise typer.Exit(code)


@app.command("classify")
def classify_cmd(
    contribution_id: str,
    *,
    snapshot: Snapshot = None,
    database_url: DatabaseUrl = None,
) -> None:
    """Classify one contribution as on time, late or voided."""

    raise typer.Exit(
        cmd_classify(contribution_id, snapshot=snapshot, database_url=database_url)
    )


@app.command("void-contribution")
def void_contribution_cmd(
    contribution_id: str,
    *,
    actor_id: Annotated[str, ACTOR_ID_OPTION],
    actor_name: Annotated[str | None, ACTOR_NAME_OPTION] = None,
    reason: Annotated[str | None, typer.Option("--reason", help="Why it is voided.")] = None,
    snapshot: Snapshot = None,
    database_url: DatabaseUrl = None,
) -> None:
    """Void a contribution (terminal; excluded from every total)."""

    code = cmd_void_contribution(
        contribution_id,
        actor_id=actor_id,
        actor_name=actor_name,
        reason=reason,
        snapshot=snapshot,
        database_url=database_url,
    )
    raise typer.Exit(code)


@app.command("edit-contribution")
def edit_contribution_cmd(
    contribution_id: str,
    *,
    actor_id: Annotated[str, ACTOR_ID_OPTION],
    actor_name: Annotated[str | None, ACTOR_NAME_OPTION] = None,
    amount: Annotated[str | None, typer.Option("--amount")] = None,
    months: Annotated[
        str | None, typer.Option("--months", help="Comma-separated YYYY-MM list.")
    ] = None,
    penalty_paid: Annotated[str | None, typer.Option("--penalty-paid")] = None,
    notes: Annotated[str | None, typer.Option("--notes")] = None,
    date_paid: Annotated[
        str | None, typer.Option("--date-paid", help="ISO-8601 date or timestamp.")
    ] = None,
    snapshot: Snapshot = None,
    database_url: DatabaseUrl = None,
) -> None:
    """Edit an active contribution and recompute its late flag."""

    changes: dict[str, Any] = {}
    if amount is not None:
        changes["amount"] = amount
    if months is not None:
        changes["monthsCovered"] = [m.strip() for m in months.split(",") if m.strip()]
    if penalty_paid is not None:
        changes["penaltyPaidAmount"] = penalty_paid
    if notes is not None:
        changes["notes"] = notes
    if date_paid is not None:
        changes["datePaid"] = date_paid
    code = cmd_edit_contribution(
        contribution_id,
        changes,
        actor_id=actor_id,
        actor_name=actor_name,
        snapshot=snapshot,
        database_url=database_url,
    )
    raise typer.Exit(code)


@app.command("load-snapshot")
def load_snapshot_cmd(
    snapshot: Annotated[Path, typer.Argument(help="JSON export to import.")],
    *,
    database_url: DatabaseUrl = None,
    create_schema: Annotated[
        bool, typer.Option("--create-schema", help="Create tables before importing.")
    ] = False,
) -> None:
    """Import a JSON export into the SQL document store."""

    raise typer.Exit(
        cmd_load_snapshot(snapshot, database_url=database_url, create_schema=create_schema)
    )


@app.command("ai-summary")
def ai_summary_cmd(
    role: Annotated[str, typer.Option("--role", help="Admin, Member or Finance Professional.")],
    *,
    as_of: Annotated[
        datetime | None,
        typer.Option("--as-of", formats=["%Y-%m-%d"], help="Dashboard month (default today)."),
    ] = None,
    snapshot: Snapshot = None,
    database_url: DatabaseUrl = None,
) -> None:
    """Role-tailored summary of the dashboard metrics (OpenAI)."""

    code = cmd_ai_summary(
        role, as_of=_as_date(as_of), snapshot=snapshot, database_url=database_url
    )
    raise typer.Exit(code)


@app.callback()
def _root(
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Log level (default: GROUP_LEDGER_LOG_LEVEL or INFO)."),
    ] = None,
) -> None:
    """Load ``.env`` from the working directory and configure logging."""

    # override=False keeps already-set environment variables
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
