"""Ruleloom CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from ruleloom import __version__

if TYPE_CHECKING:
    import sqlite3

    from ruleloom.config import RuleloomConfig
    from ruleloom.infrastructure.schema_store import SchemaStore
    from ruleloom.session import ConfiguratorSession

_PROJECT_OPTION = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)

_STATUS_STYLES = {
    "blocked": "red",
    "incompatible": "magenta",
    "selected": "green",
    "normal": "",
}


@click.group()
@click.version_option(version=__version__, prog_name="ruleloom")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Ruleloom - product configurator rule engine and schema store."""
    from ruleloom.config import setup_logging

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    if verbose:
        setup_logging(logging.DEBUG)
    elif quiet:
        setup_logging(logging.ERROR)
    else:
        setup_logging(logging.WARNING)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_session(
    payload_path: Path, ruleset: str | None, default_ruleset: str | None = None
) -> ConfiguratorSession:
    """Read a schema document and build a session; exits 2 on bad input.

    *ruleset* must exist in the document.  *default_ruleset* (from
    ``config.yml``) is only used when *ruleset* is None and is ignored when
    the document has no such ruleset.
    """
    from ruleloom.catalog.payload import PayloadError, load_payload_file
    from ruleloom.session import ConfiguratorSession

    try:
        document = load_payload_file(payload_path)
    except PayloadError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    session = ConfiguratorSession.from_payload(document, active_ruleset=default_ruleset)
    if ruleset is not None:
        try:
            session.set_active_ruleset(ruleset)
        except KeyError:
            click.echo(f"Error: unknown ruleset '{ruleset}'", err=True)
            sys.exit(2)
    return session


def _load_config(ctx: click.Context, project: Path | None) -> RuleloomConfig:
    from ruleloom.config import load_config, setup_logging

    config = load_config(project or Path.cwd())
    obj = ctx.obj or {}
    if not obj.get("verbose") and not obj.get("quiet"):
        setup_logging(config.log_level)
    return config


def _open_store(config: RuleloomConfig) -> tuple[sqlite3.Connection, SchemaStore]:
    from ruleloom.infrastructure.db import create_schema, open_db
    from ruleloom.infrastructure.schema_store import SchemaStore

    config.db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = open_db(config.db_path)
    create_schema(conn)
    return conn, SchemaStore(conn)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@main.command()
@click.argument("payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--ruleset", default=None, help="Lint only this ruleset (default: all).")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Exit 1 if errors found.",
)
def lint(*, payload: Path, ruleset: str | None, fmt: str | None, strict: bool) -> None:
    """Check the rulesets of a schema document for static inconsistencies.

    Reports unknown ids, duplicates, self references, contradictions and
    cycles.  Exit codes: 0 = clean or issues without --strict,
    1 = errors with --strict, 2 = unreadable document or unknown ruleset.
    """
    from ruleloom.rules.linter import (
        LintSummary,
        format_json,
        format_porcelain,
        format_rich,
        lint_all_rulesets,
    )

    session = _load_session(payload, ruleset)

    if ruleset is not None:
        report = session.lint()
        summary = LintSummary(
            by_ruleset={ruleset: report},
            totals={
                "total": report.counts["total"],
                "error": report.counts.get("error", 0),
                "warning": report.counts.get("warning", 0),
            },
        )
    else:
        summary = lint_all_rulesets(session.catalog.known_ids(), session.rulesets)

    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    if fmt == "rich":
        output = format_rich(summary, session.catalog.labels)
    elif fmt == "json":
        output = format_json(summary)
    else:
        output = format_porcelain(summary)
    if output:
        click.echo(output)

    if strict and summary.has_errors:
        sys.exit(1)


@main.command()
@click.argument("payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--select",
    "selections",
    multiple=True,
    help="Toggle this option id (repeatable, applied in order).",
)
@click.option("--ruleset", default=None, help="Ruleset to evaluate with (default: active).")
@click.option("--json", "as_json", is_flag=True, help="JSON output.")
@click.option("--explain", is_flag=True, help="Show diagnostic lines per option.")
@_PROJECT_OPTION
@click.pass_context
def evaluate(
    ctx: click.Context,
    *,
    payload: Path,
    selections: tuple[str, ...],
    ruleset: str | None,
    as_json: bool,
    explain: bool,
    project: Path | None,
) -> None:
    """Toggle options in order and show the status of every option."""
    from ruleloom.rules.satisfaction import describe_evaluation

    config = _load_config(ctx, project)
    session = _load_session(payload, ruleset, config.default_ruleset)

    auto_added: list[str] = []
    for option_id in selections:
        result = session.toggle(option_id)
        auto_added.extend(result.newly_added)

    evaluations = session.evaluate_all()
    labels = session.catalog.labels

    if as_json:
        output = {
            "ruleset": session.active_ruleset,
            "selection": sorted(session.selection),
            "auto_added": auto_added,
            "options": {
                option_id: {
                    "status": ev.status.value,
                    "missing_groups": [
                        {"min": g.min, "of": list(g.of), "missing": list(g.missing)}
                        for g in ev.missing_groups
                    ],
                    "incompatible_with": list(ev.incompatible_with),
                    "incompatible_groups": [
                        {
                            "min": g.min,
                            "of": list(g.of),
                            "present": list(g.present),
                            "active": g.active,
                        }
                        for g in ev.incompatible_group_states
                    ],
                }
                for option_id, ev in evaluations.items()
            },
        }
        click.echo(json.dumps(output, ensure_ascii=False, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title=f"Ruleset: {session.active_ruleset}")
    table.add_column("Option")
    table.add_column("Label")
    table.add_column("Status")
    if explain:
        table.add_column("Details")
    for option_id, ev in evaluations.items():
        style = _STATUS_STYLES.get(ev.status.value, "")
        status_cell = f"[{style}]{ev.status.value}[/]" if style else ev.status.value
        row = [option_id, session.catalog.label_of(option_id), status_cell]
        if explain:
            row.append("\n".join(describe_evaluation(ev, labels)))
        table.add_row(*row)
    console.print(table)

    if auto_added:
        names = ", ".join(session.catalog.label_of(i) for i in auto_added)
        console.print(f"[bold]Auto-added:[/] {names}")


@main.command()
@click.argument("payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("option_id")
@click.option("--ruleset", default=None, help="Ruleset to use (default: active).")
@click.option("--json", "as_json", is_flag=True, help="JSON output.")
@_PROJECT_OPTION
@click.pass_context
def closure(
    ctx: click.Context,
    *,
    payload: Path,
    option_id: str,
    ruleset: str | None,
    as_json: bool,
    project: Path | None,
) -> None:
    """Show every option forced in by selecting OPTION_ID."""
    config = _load_config(ctx, project)
    session = _load_session(payload, ruleset, config.default_ruleset)
    result = sorted(session.closure(option_id))

    if as_json:
        click.echo(json.dumps({"option": option_id, "mandatory": result}, indent=2))
        return
    if not result:
        click.echo(f"{option_id}: no mandatory options")
        return
    click.echo(f"{option_id} forces:")
    for target in result:
        click.echo(f"  {target} ({session.catalog.label_of(target)})")


# ---------------------------------------------------------------------------
# Schema store
# ---------------------------------------------------------------------------


@main.group()
def schema() -> None:
    """Manage saved schemas (SQLite store with audit history)."""


@schema.command("save")
@click.argument("payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", default=None, help="Schema name (default: file stem).")
@click.option("--id", "schema_id", type=int, default=None, help="Update this schema id.")
@_PROJECT_OPTION
@click.pass_context
def schema_save(
    ctx: click.Context,
    *,
    payload: Path,
    name: str | None,
    schema_id: int | None,
    project: Path | None,
) -> None:
    """Create or update a schema from a JSON/YAML document."""
    from ruleloom.catalog.payload import PayloadError, load_payload_file
    from ruleloom.infrastructure.schema_store import SchemaStoreError

    config = _load_config(ctx, project)
    try:
        document = load_payload_file(payload)
    except PayloadError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    conn, store = _open_store(config)
    try:
        record = store.save(
            name or payload.stem, document, schema_id=schema_id, actor=config.actor
        )
    except SchemaStoreError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    finally:
        conn.close()

    click.echo(f"{record.status}: #{record.id} {record.name}")


@schema.command("list")
@click.option("--archived", "only_archived", is_flag=True, help="Only archived schemas.")
@click.option("--all", "include_all", is_flag=True, help="Active and archived schemas.")
@click.option("--json", "as_json", is_flag=True, help="JSON output.")
@_PROJECT_OPTION
@click.pass_context
def schema_list(
    ctx: click.Context,
    *,
    only_archived: bool,
    include_all: bool,
    as_json: bool,
    project: Path | None,
) -> None:
    """List saved schemas, most recently updated first."""
    config = _load_config(ctx, project)
    archived: bool | None = None if include_all else only_archived
    conn, store = _open_store(config)
    try:
        records = store.list_schemas(archived=archived)
    finally:
        conn.close()

    if as_json:
        items = [
            {
                "id": r.id,
                "name": r.name,
                "archived": r.archived,
                "created_at": r.created_at,
                "updated_at": r.updated_at,
            }
            for r in records
        ]
        click.echo(json.dumps({"items": items}, ensure_ascii=False, indent=2))
        return

    if not records:
        click.echo("No schemas.")
        return

    from rich.console import Console
    from rich.table import Table

    table = Table()
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Archived")
    table.add_column("Updated")
    for r in records:
        table.add_row(str(r.id), r.name, "yes" if r.archived else "", r.updated_at)
    Console().print(table)


@schema.command("show")
@click.argument("schema_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print the stored document.")
@_PROJECT_OPTION
@click.pass_context
def schema_show(ctx: click.Context, *, schema_id: int, as_json: bool, project: Path | None) -> None:
    """Show a saved schema: rulesets and lint totals, or the raw document."""
    from ruleloom.infrastructure.schema_store import SchemaStoreError
    from ruleloom.session import ConfiguratorSession

    config = _load_config(ctx, project)
    conn, store = _open_store(config)
    try:
        record = store.get(schema_id)
    except SchemaStoreError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    finally:
        conn.close()

    if as_json:
        click.echo(json.dumps(record.payload, ensure_ascii=False, indent=2))
        return

    session = ConfiguratorSession.from_payload(record.payload)
    summary = session.lint_all()
    click.echo(f"#{record.id} {record.name}{' (archived)' if record.archived else ''}")
    click.echo(f"Options: {len(session.catalog.known_ids())}")
    for name, ruleset in session.rulesets.items():
        marker = "*" if name == session.active_ruleset else " "
        report = summary.by_ruleset[name]
        click.echo(
            f" {marker} {name}: {len(ruleset.rules)} rules, "
            f"{report.counts.get('error', 0)} errors, {report.counts.get('warning', 0)} warnings"
        )


@schema.command("archive")
@click.argument("schema_id", type=int)
@click.option("--restore", is_flag=True, help="Un-archive instead.")
@_PROJECT_OPTION
@click.pass_context
def schema_archive(
    ctx: click.Context, *, schema_id: int, restore: bool, project: Path | None
) -> None:
    """Archive (soft-delete) or restore a schema."""
    from ruleloom.infrastructure.schema_store import SchemaStoreError

    config = _load_config(ctx, project)
    conn, store = _open_store(config)
    try:
        record = store.set_archived(schema_id, not restore, actor=config.actor)
    except SchemaStoreError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    finally:
        conn.close()
    click.echo(f"{record.status}: #{record.id} {record.name}")


@schema.command("delete")
@click.argument("schema_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@_PROJECT_OPTION
@click.pass_context
def schema_delete(ctx: click.Context, *, schema_id: int, yes: bool, project: Path | None) -> None:
    """Delete a schema permanently (the audit log keeps a snapshot)."""
    from ruleloom.infrastructure.schema_store import SchemaStoreError

    if not yes:
        click.confirm(f"Delete schema #{schema_id}?", abort=True)

    config = _load_config(ctx, project)
    conn, store = _open_store(config)
    try:
        store.delete(schema_id, actor=config.actor)
    except SchemaStoreError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    finally:
        conn.close()
    click.echo(f"deleted: #{schema_id}")


@schema.command("audit")
@click.argument("schema_id", type=int, required=False)
@click.option("--json", "as_json", is_flag=True, help="JSON output.")
@_PROJECT_OPTION
@click.pass_context
def schema_audit(
    ctx: click.Context, *, schema_id: int | None, as_json: bool, project: Path | None
) -> None:
    """Show the audit history of a schema, or the latest event of every schema."""
    from ruleloom.infrastructure.schema_store import SchemaStoreError

    config = _load_config(ctx, project)
    conn, store = _open_store(config)
    try:
        if schema_id is None:
            rows: list[dict[str, object]] = [
                {
                    "schema_id": s.schema_id,
                    "name": s.name,
                    "action": s.action,
                    "actor": s.actor,
                    "created_at": s.created_at,
                    "exists": s.exists,
                    "archived": s.archived,
                }
                for s in store.audit_summaries()
            ]
        else:
            rows = [
                {
                    "id": e.id,
                    "schema_id": e.schema_id,
                    "name": e.name,
                    "action": e.action,
                    "actor": e.actor,
                    "created_at": e.created_at,
                }
                for e in store.audit(schema_id)
            ]
    except SchemaStoreError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    finally:
        conn.close()

    if as_json:
        click.echo(json.dumps({"events": rows}, ensure_ascii=False, indent=2))
        return
    if not rows:
        click.echo("No audit events.")
        return
    for row in rows:
        actor = row.get("actor") or "-"
        click.echo(
            f"{row['created_at']}  #{row['schema_id']} {row['name']}  {row['action']}  {actor}"
        )


@schema.command("export")
@click.argument("schema_id", type=int)
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@_PROJECT_OPTION
@click.pass_context
def schema_export(
    ctx: click.Context, *, schema_id: int, output: Path, project: Path | None
) -> None:
    """Write a saved schema to OUTPUT (.json, .yml or .yaml), normalized."""
    from ruleloom.catalog.payload import dump_payload_file
    from ruleloom.infrastructure.schema_store import SchemaStoreError
    from ruleloom.session import ConfiguratorSession

    config = _load_config(ctx, project)
    conn, store = _open_store(config)
    try:
        record = store.get(schema_id)
    except SchemaStoreError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    finally:
        conn.close()

    session = ConfiguratorSession.from_payload(
        record.payload, active_ruleset=config.default_ruleset
    )
    dump_payload_file(session.to_payload(), output)
    click.echo(f"exported: #{record.id} {record.name} -> {output}")
