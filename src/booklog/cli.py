"""booklog CLI: record store backed by an append-only transaction log.

Commands:
    booklog init [NAME]                create booklog.toml + .booklog/
    booklog register USERNAME          create a USER account
    booklog import FILE [--query Q]    store scraped records (JSONL)
    booklog edit ID --title/--author   change a stored record
    booklog get ID                     show one record
    booklog delete ID                  delete a record
    booklog search --title KW          offline title search
    booklog search --from MS --to MS   offline time-range search
    booklog favorite ID                toggle a favorite
    booklog favorites                  list favorites
    booklog note ID [TEXT]             show or set a note
    booklog log                        dump the transaction log (admin)
    booklog rebuild                    rebuild storage from the log (admin)
    booklog stats                      storage stats (admin)
    booklog analytics                  search/insert/user aggregates
    booklog shell                      interactive session, one workspace

Every invocation restores the store by replaying the transaction log, so
one-shot commands see the state left by earlier ones. Favorites and notes
live in the metadata snapshot, not the log.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import click

from booklog import analytics
from booklog.app import Workspace
from booklog.config import BookLogConfig, init_config, load_config
from booklog.models import Record
from booklog.service import AccessDeniedError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from booklog.rebuild import RebuildResult

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@dataclass
class _Options:
    user: str | None
    password: str | None
    start_empty: bool
    initial_data: Path | None
    verbose: bool


def _load_cfg() -> BookLogConfig:
    try:
        return load_config()
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


def _setup_logging(cfg: BookLogConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, cfg.logging.level, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _ws(ctx: click.Context) -> Workspace:
    """Workspace for this invocation; opened on first use."""
    root = ctx.find_root()
    if isinstance(root.obj, Workspace):
        return root.obj
    opts: _Options = root.obj

    cfg = _load_cfg()
    _setup_logging(cfg, opts.verbose)
    try:
        ws = Workspace.open(cfg, start_empty=opts.start_empty, initial_data=opts.initial_data)
    except OSError as exc:
        raise click.ClickException(str(exc)) from exc
    if opts.initial_data is not None:
        click.echo(f"Loaded {ws.initial_loaded} records from initial data file.", err=True)

    if opts.user:
        password = opts.password
        if password is None:
            password = click.prompt(f"Password for {opts.user}", hide_input=True)
        if ws.login(opts.user, password) is None:
            raise click.ClickException("Invalid username or password")
    else:
        ws.session.guest()

    root.obj = ws
    ctx.obj = ws
    return ws


def _print_records(records: list[Record], title: str) -> None:
    from rich.console import Console
    from rich.table import Table

    if not records:
        click.echo("No records found.")
        return
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("ID", no_wrap=True)
    table.add_column("Title")
    table.add_column("Author")
    table.add_column("Fetched at", justify="right")
    table.add_column("By", style="dim")
    for r in records:
        table.add_row(r.id, r.title, r.author, str(r.fetched_at), r.fetched_by_user)
    Console().print(table)


def _iter_jsonl(path: Path) -> Iterator[tuple[int, dict]]:
    with path.open(encoding="utf-8") as f:
        for n, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                click.echo(f"  line {n}: not valid JSON, skipped", err=True)
                continue
            if isinstance(obj, dict):
                yield n, obj


def _echo_rebuild(result: RebuildResult) -> None:
    click.echo(result.summary())
    if result.error_count:
        click.echo(f"  {result.error_count} line(s) skipped, run with --verbose for details", err=True)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="booklog")
@click.option("--user", "-u", envvar="BOOKLOG_USER", default=None, help="Log in as this user (default: guest)")
@click.option("--password", envvar="BOOKLOG_PASSWORD", default=None, help="Password (prompted if omitted)")
@click.option("--start-empty", is_flag=True, help="Do not restore the store from the transaction log")
@click.option(
    "--load-initial-data", "initial_data", default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Seed the store from a bootstrap file (INSERT lines only)",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging to stderr")
@click.pass_context
def cli(
    ctx: click.Context,
    user: str | None,
    password: str | None,
    start_empty: bool,
    initial_data: Path | None,
    verbose: bool,
) -> None:
    """booklog: record store with a replayable transaction log."""
    if isinstance(ctx.obj, Workspace):
        # running inside `booklog shell`
        return
    ctx.obj = _Options(user, password, start_empty, initial_data, verbose)


# ---------------------------------------------------------------------------
# booklog init / register
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
def init(name: str | None, root: str) -> None:
    """Create booklog.toml and the data directory."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, name=name)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("booklog.toml already exists, skipping init")

    cfg = load_config(root_path)
    cfg.ensure_dirs()
    click.echo(f"Data dir : {cfg.data_dir}")
    click.echo(f"Log      : {cfg.log_path}")


@cli.command()
@click.argument("username")
@click.password_option()
@click.pass_context
def register(ctx: click.Context, username: str, password: str) -> None:
    """Create a USER account."""
    ws = _ws(ctx)
    try:
        created = ws.accounts.register_user(username, password)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    if not created:
        raise click.ClickException(f"User already exists: {username}")
    click.echo(f"Registered {username.strip()}")


# ---------------------------------------------------------------------------
# booklog import / edit / get / delete
# ---------------------------------------------------------------------------


@cli.command(name="import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--query", "-q", default=None, help="Online search that produced these records")
@click.pass_context
def import_cmd(ctx: click.Context, file: Path, query: str | None) -> None:
    """Store scraped records from a JSONL file (one record object per line).

    Records whose id is already stored are updated (logged as MODIFY),
    the rest are inserted (logged as INSERT).
    """
    ws = _ws(ctx)
    if not ws.session.can_store_data:
        raise click.ClickException("Guests cannot store records; log in with --user")

    records: list[Record] = []
    for n, obj in _iter_jsonl(file):
        obj.setdefault("fetched_by_user", ws.session.username)
        try:
            records.append(Record.from_dict(obj))
        except (TypeError, ValueError) as exc:
            click.echo(f"  line {n}: {exc}, skipped", err=True)

    with ws.lock:
        stored = ws.users.store_search_results(records, query=query)
    click.echo(f"Stored {stored} of {len(records)} records")


@cli.command()
@click.argument("record_id")
@click.option("--title", default=None)
@click.option("--author", default=None)
@click.pass_context
def edit(ctx: click.Context, record_id: str, title: str | None, author: str | None) -> None:
    """Change the title and/or author of a stored record."""
    ws = _ws(ctx)
    if title is None and author is None:
        raise click.ClickException("Provide --title and/or --author")
    if not ws.session.can_store_data:
        raise click.ClickException("Guests cannot modify records; log in with --user")
    existing = ws.users.get_record(record_id)
    if existing is None:
        raise click.ClickException(f"Record not found: {record_id}")
    updated = existing.copy()
    if title is not None:
        updated.title = title
    if author is not None:
        updated.author = author
    with ws.lock:
        ws.users.store_search_results([updated])
    click.echo(f"Updated {updated.id}")


@cli.command()
@click.argument("record_id")
@click.pass_context
def get(ctx: click.Context, record_id: str) -> None:
    """Show one record."""
    ws = _ws(ctx)
    record = ws.users.get_record(record_id)
    if record is None:
        raise click.ClickException(f"Record not found: {record_id}")
    for key, value in record.to_dict().items():
        click.echo(f"{key:16} {value}")
    if ws.session.is_logged_in:
        if ws.meta.is_favorite(ws.session.username, record.id):
            click.echo(f"{'favorite':16} yes")
        note = ws.users.get_note(record.id)
        if note:
            click.echo(f"{'note':16} {note}")


@cli.command()
@click.argument("record_id")
@click.pass_context
def delete(ctx: click.Context, record_id: str) -> None:
    """Delete a record (logged as DELETE)."""
    ws = _ws(ctx)
    if not ws.session.can_store_data:
        raise click.ClickException("Guests cannot delete records; log in with --user")
    with ws.lock:
        deleted = ws.users.delete_record(record_id)
    if not deleted:
        raise click.ClickException(f"Record not found: {record_id}")
    click.echo(f"Deleted {record_id}")


# ---------------------------------------------------------------------------
# booklog search
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--title", "keyword", default=None, help="Case-insensitive title substring")
@click.option("--from", "start", type=int, default=None, help="Start of fetched_at range (ms, inclusive)")
@click.option("--to", "end", type=int, default=None, help="End of fetched_at range (ms, inclusive)")
@click.pass_context
def search(ctx: click.Context, keyword: str | None, start: int | None, end: int | None) -> None:
    """Search stored records by title or by fetch time.

    \b
    Examples:
      booklog search --title dune
      booklog search --from 1700000000000 --to 1800000000000
    """
    if keyword is None and start is None and end is None:
        raise click.ClickException("Provide --title or --from/--to")
    if keyword is not None and (start is not None or end is not None):
        raise click.ClickException("Use either --title or --from/--to, not both")
    ws = _ws(ctx)
    if keyword is not None:
        _print_records(ws.users.query_by_title(keyword), f"Title contains {keyword!r}")
        return
    lo = start if start is not None else 0
    hi = end if end is not None else 2**63 - 1
    if lo > hi:
        raise click.ClickException("--from must not be after --to")
    _print_records(ws.users.query_by_time_range(lo, hi), "Most recent first")


# ---------------------------------------------------------------------------
# booklog favorite / favorites / note
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("record_id")
@click.pass_context
def favorite(ctx: click.Context, record_id: str) -> None:
    """Toggle RECORD_ID in your favorites."""
    ws = _ws(ctx)
    if ws.users.get_record(record_id) is None:
        raise click.ClickException(f"Record not found: {record_id}")
    with ws.lock:
        now_favorite = ws.users.toggle_favorite(record_id)
        ws.save()
    click.echo(f"{'Added' if now_favorite else 'Removed'} {record_id} {'to' if now_favorite else 'from'} favorites")


@cli.command()
@click.pass_context
def favorites(ctx: click.Context) -> None:
    """List your favorite records."""
    ws = _ws(ctx)
    _print_records(ws.users.get_favorites(), f"Favorites of {ws.session.username}")


@cli.command()
@click.argument("record_id")
@click.argument("text", required=False)
@click.pass_context
def note(ctx: click.Context, record_id: str, text: str | None) -> None:
    """Show your note on RECORD_ID, or replace it with TEXT."""
    ws = _ws(ctx)
    if text is None:
        click.echo(ws.users.get_note(record_id) or "(no note)")
        return
    with ws.lock:
        ws.users.update_note(record_id, text)
        ws.save()
    click.echo(f"Note saved for {record_id}")


# ---------------------------------------------------------------------------
# Admin: log / rebuild / stats
# ---------------------------------------------------------------------------


@cli.command(name="log")
@click.pass_context
def log_cmd(ctx: click.Context) -> None:
    """Print the raw transaction log (admin only)."""
    ws = _ws(ctx)
    try:
        text = ws.admin.read_transaction_log()
    except AccessDeniedError as exc:
        raise click.ClickException(f"Access denied: {exc}") from exc
    click.echo(text or "Transaction log is empty.", nl=not text.endswith("\n"))


@cli.command()
@click.confirmation_option(
    prompt="Rebuild clears storage and discards all favorites and notes. Continue?"
)
@click.pass_context
def rebuild(ctx: click.Context) -> None:
    """Clear storage and replay the transaction log (admin only)."""
    ws = _ws(ctx)
    try:
        result = ws.rebuild()
    except AccessDeniedError as exc:
        raise click.ClickException(f"Access denied: {exc}") from exc
    except OSError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_rebuild(result)


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show storage stats (admin only)."""
    from rich.console import Console
    from rich.table import Table

    ws = _ws(ctx)
    try:
        st = ws.admin.storage_stats()
    except AccessDeniedError as exc:
        raise click.ClickException(f"Access denied: {exc}") from exc

    table = Table(title=f"booklog: {ws.cfg.name}", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")
    table.add_row("Total records", str(st.total_records))
    table.add_row("Storage empty", str(st.is_empty))
    table.add_row("Metadata rows", str(st.metadata_rows))
    table.add_row("Log", str(ws.cfg.log_path))
    if ws.restored is not None:
        table.add_row("Restored", ws.restored.summary())
        if ws.restored.error_count:
            table.add_row("  Bad log lines", f"[yellow]⚠ {ws.restored.error_count}[/yellow]")
    Console().print(table)


# ---------------------------------------------------------------------------
# booklog analytics
# ---------------------------------------------------------------------------


@cli.command(name="analytics")
@click.option("--top", "top_n", default=10, show_default=True, help="Number of search queries to show")
@click.option("--days", default=7, show_default=True, help="Window for active users")
def analytics_cmd(top_n: int, days: int) -> None:
    """Top online searches, records inserted per day, active users."""
    from rich.console import Console
    from rich.table import Table

    cfg = _load_cfg()
    console = Console()

    queries = analytics.top_search_queries(cfg.log_path, top_n)
    qt = Table(title="Top search queries", show_header=True, header_style="bold")
    qt.add_column("Query")
    qt.add_column("Count", justify="right")
    for q in queries:
        qt.add_row(q.query, str(q.count))
    console.print(qt)

    daily = analytics.records_per_day(cfg.log_path)
    dt = Table(title="Records inserted per day", show_header=True, header_style="bold")
    dt.add_column("Day")
    dt.add_column("Inserted", justify="right")
    for day, count in daily.items():
        dt.add_row(day, str(count))
    console.print(dt)

    active = analytics.active_users_count(cfg.log_path, days)
    click.echo(f"Active users (last {days} days): {active}")


# ---------------------------------------------------------------------------
# booklog shell
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def shell(ctx: click.Context) -> None:
    """Interactive session: every command runs against one in-memory workspace."""
    import shlex

    ws = _ws(ctx)
    click.echo(f"booklog shell, logged in as {ws.session.username}. Type 'help' or 'exit'.")
    while True:
        try:
            line = click.prompt("booklog", prompt_suffix="> ", default="", show_default=False)
        except click.exceptions.Abort:
            break
        line = line.strip()
        if not line:
            continue
        if line in ("exit", "quit"):
            break
        try:
            args = shlex.split(line)
        except ValueError as exc:
            click.echo(f"Error: {exc}", err=True)
            continue
        if args[0] == "help":
            args = ["--help"]
        if args[0] in ("shell", "init"):
            click.echo(f"'{args[0]}' is not available inside the shell", err=True)
            continue
        try:
            cli.main(args=args, prog_name="booklog", obj=ws, standalone_mode=False)
        except click.ClickException as exc:
            exc.show()
        except click.exceptions.Abort:
            click.echo("Aborted.", err=True)
    ws.save()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
