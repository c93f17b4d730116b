"""Console entry point for the Pluto ORM demos.

Commands:
- migrate: Apply or revert the migration history and show the schema
- seed: Add-or-update seed data (default seed or a JSON file)
- queries: Run the query catalog against the sample catalog
- loading: Compare store accesses of lazy and eager loading
- sql: Show the SQL generated for the query catalog

Every command works on a fresh in-memory database.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from pluto_orm.application.catalog import QUERY_CATALOG, SAMPLE_CATALOG
from pluto_orm.application.context import PlutoContext
from pluto_orm.application.expressions import F
from pluto_orm.application.seeding import DEFAULT_SEED, load_seed_file
from pluto_orm.domain.exceptions import PlutoError, UntranslatableQuery
from pluto_orm.domain.value_objects import LoadingMode
from pluto_orm.infrastructure.config import get_config
from pluto_orm.infrastructure.logging import setup_logging
from pluto_orm.infrastructure.tracing import setup_tracing

app = typer.Typer(
    name="pluto",
    help="In-memory ORM demos: migrations, seeding, queries and loading strategies.",
    no_args_is_help=True,
)

console = Console()


def _open_context(migrate: bool = True) -> PlutoContext:
    config = get_config()
    setup_logging(config.observability.log_level, config.observability.log_format)
    if config.observability.otel_endpoint:
        setup_tracing(config.observability.otel_service_name, config.observability.otel_endpoint)
    if not migrate:
        config = config.model_copy(
            update={"store": config.store.model_copy(update={"migrate_on_start": False})}
        )
    ctx = PlutoContext(config)
    ctx.start()
    return ctx


def _as_record(ctx: PlutoContext, row: Any) -> dict[str, Any]:
    if isinstance(row, dict):
        return row
    if hasattr(row, "loaded"):
        etype = ctx.model.entity(row)
        return {name: getattr(row, name) for name in etype.property_names()}
    return {"value": row}


def _print_rows(ctx: PlutoContext, title: str, rows: list[Any]) -> None:
    records = [_as_record(ctx, row) for row in rows]
    table = Table(title=title)
    columns = list(records[0]) if records else ["(no rows)"]
    for column in columns:
        table.add_column(str(column))
    for record in records:
        table.add_row(*(str(record.get(c, "")) for c in columns))
    console.print(table)


@app.command()
def migrate(
    target: str | None = typer.Option(None, "--target", "-t", help="Migration to stop at"),
    down: bool = typer.Option(False, "--down", help="Apply everything, then revert to --target"),
) -> None:
    """Apply (or revert) schema migrations and show the resulting tables."""
    ctx = _open_context(migrate=False)
    try:
        if down:
            ctx.migrator.upgrade()
            reverted = ctx.migrator.downgrade(target)
            console.print(f"[yellow]Reverted:[/yellow] {', '.join(reverted) or '(nothing)'}")
        else:
            applied = ctx.migrator.upgrade(target)
            console.print(f"[green]✓ Applied:[/green] {', '.join(applied) or '(nothing)'}")
    except PlutoError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    history = Table(title="Migrations")
    history.add_column("Migration")
    history.add_column("Status")
    applied_names = set(ctx.migrator.applied())
    for migration in ctx.migrator.migrations:
        history.add_row(migration.name, "applied" if migration.name in applied_names else "pending")
    console.print(history)

    tables = Table(title="Tables")
    tables.add_column("Table")
    tables.add_column("Columns")
    for schema in ctx.store.snapshot().schemas.values():
        tables.add_row(schema.name, ", ".join(schema.column_names))
    console.print(tables)


@app.command()
def seed(
    file: Path | None = typer.Option(None, "--file", "-f", help="JSON list of authors with courses"),
    key: str = typer.Option("name", "--key", "-k", help="Author property matched by add-or-update"),
) -> None:
    """Add or update seed data (runs twice to show it is idempotent)."""
    try:
        seeds = load_seed_file(file) if file else list(DEFAULT_SEED)
    except (OSError, ValidationError) as e:
        console.print(f"[red]✗ Invalid seed file: {e}[/red]")
        raise typer.Exit(code=1)

    ctx = _open_context()
    try:
        first = ctx.seed(seeds, key=key)
        second = ctx.seed(seeds, key=key)
    except PlutoError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(
        f"[green]✓ First run:[/green] {first.authors_added} author(s) added, "
        f"{first.courses_added} course(s) added"
    )
    console.print(
        f"[green]✓ Second run:[/green] {second.authors_updated} author(s) updated, "
        f"{second.authors_added} added"
    )
    _print_rows(ctx, "Authors", ctx.authors.sort(F.id).to_list())
    _print_rows(ctx, "Courses", ctx.courses.sort(F.id).to_list())


@app.command()
def queries() -> None:
    """Run the query catalog against the sample catalog."""
    ctx = _open_context()
    ctx.seed(SAMPLE_CATALOG)

    for entry in QUERY_CATALOG:
        _print_rows(ctx, entry.title, entry.build(ctx).to_list())

    courses = ctx.courses
    summary = Table(title="Terminal operations")
    summary.add_column("Operation")
    summary.add_column("Result")
    summary.add_row("count()", str(courses.count()))
    summary.add_row("count(level == 1)", str(courses.count(F.level == 1)))
    summary.add_row("any(level == 1)", str(courses.any(F.level == 1)))
    summary.add_row("all(price > 10)", str(courses.all(F.price > 10)))
    summary.add_row("max(price)", str(courses.max(F.price)))
    summary.add_row("min(price)", str(courses.min(F.price)))
    summary.add_row("average(price)", f"{courses.average(F.price):.2f}")
    summary.add_row("first(price > 50).name", courses.sort(F.id).first(F.price > 50).name)
    summary.add_row("first_or_default(price > 500)", str(courses.first_or_default(F.price > 500)))
    summary.add_row("single(id == 1).name", courses.single(F.id == 1).name)
    summary.add_row("last().name (sorted by name)", courses.sort(F.name).last().name)
    console.print(summary)


@app.command()
def loading() -> None:
    """Compare store accesses of lazy (N+1), eager and explicit loading."""
    ctx = _open_context()
    ctx.seed(SAMPLE_CATALOG)

    before = ctx.get_stats().accesses
    lazy_courses = ctx.courses.to_list()
    lazy = [(c.name, ctx.resolve(c, "author", LoadingMode.LAZY).name) for c in lazy_courses]
    lazy_accesses = ctx.get_stats().accesses - before

    before = ctx.get_stats().accesses
    eager_courses = ctx.courses.include("author").to_list()
    eager = [(c.name, ctx.resolve(c, "author", LoadingMode.EAGER).name) for c in eager_courses]
    eager_accesses = ctx.get_stats().accesses - before

    authors = ctx.authors.to_list()
    before = ctx.get_stats().accesses
    free = [c for a in authors for c in ctx.load(a, "courses", F.price == 0)]
    explicit_accesses = ctx.get_stats().accesses - before

    table = Table(title="Loading strategies")
    table.add_column("Strategy")
    table.add_column("Courses")
    table.add_column("Store accesses")
    table.add_row("lazy (resolve per course)", str(len(lazy)), str(lazy_accesses))
    table.add_row("eager (include author)", str(len(eager)), str(eager_accesses))
    table.add_row("explicit (free courses per author)", str(len(free)), str(explicit_accesses))
    console.print(table)
    if sorted(lazy) == sorted(eager):
        console.print("[green]✓ Both strategies returned the same authors[/green]")


@app.command()
def sql() -> None:
    """Show the SQL generated for each catalog query."""
    ctx = _open_context()
    table = Table(title=f"Generated SQL ({ctx.config.loading.sql_dialect})")
    table.add_column("Query")
    table.add_column("SQL")
    for entry in QUERY_CATALOG:
        try:
            text = entry.build(ctx).to_sql()
        except UntranslatableQuery as e:
            text = f"[dim](not translatable: {e})[/dim]"
        table.add_row(entry.title, text)
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
