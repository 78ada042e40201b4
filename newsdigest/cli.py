"""
newsdigest CLI.

Usage:
    newsdigest run --user ID                # Generate + deliver one user's digest now
    newsdigest run --user ID --format json  # Same, print the digest as JSON
    newsdigest tick                         # One scheduler tick: every user due this minute
    newsdigest tick --at 2025-01-06T08:00Z  # Tick evaluated at a fixed time
    newsdigest schedule                     # Print the per-minute cron entry
    newsdigest schedule --install           # Install it into the user crontab
    newsdigest schedule --status            # Show the installed cron block
    newsdigest test --all                   # Test catalog feeds for reachability/parseability
    newsdigest sources --sync               # Load config/sources.yaml into the catalog
    newsdigest users add --name Ada --email ada@example.com --keyword LLM
    newsdigest digests --user ID --search agents
    newsdigest read --user ID ITEM          # Mark a digest item read
    newsdigest track --user ID ITEM --action share  # Record a click or share
    newsdigest stats --user ID              # Reading analytics
    newsdigest config                       # Verify configuration
"""

import json
from datetime import UTC, datetime
from pathlib import Path

import click
import typer
from dateutil.parser import ParserError
from dateutil.parser import parse as parse_date
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table

from newsdigest.config import XDG_CONFIG_PATH, Settings, SourceCatalog, get_settings
from newsdigest.logging_config import setup_logging
from newsdigest.models import (
    Digest,
    DigestConfiguration,
    DigestFrequency,
    DigestLength,
    EngagementAction,
    SourceType,
    SummaryDepth,
)
from newsdigest.scheduler import (
    build_cron_line,
    build_plan,
    get_cron_managed_block,
    install_cron,
    remove_cron,
)
from newsdigest.storage.db import Database, DigestItemNotFoundError, UserNotFoundError

__version__ = "0.1.0"

console = Console()
DEFAULT_PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_SCHEDULE_LOG_FILE = Path("logs/scheduler.log")
DEFAULT_CRON_LABEL = "default"

FormatChoice = typer.Option(
    "rich",
    "--format",
    "-f",
    help="Output format: rich (terminal), text (plain), or json",
)
UserOption = typer.Option(..., "--user", "-u", help="User id")

# Global state
state = {"verbose": False}


def _load_settings() -> Settings:
    """Load settings with a user-friendly error on failure."""
    try:
        return get_settings()
    except ValidationError as e:
        console.print(
            "[red]Configuration error.[/red] "
            "Check your config file or environment variables.\n"
        )
        for error in e.errors():
            loc = ".".join(str(part) for part in error["loc"])
            console.print(f"  [red]✗[/red] {loc}: {error['msg']}")
        console.print("\n[dim]Run 'newsdigest config' to verify.[/dim]")
        raise typer.Exit(code=1) from None


def _open_db(settings: Settings) -> Database:
    return Database(settings.db_path)


def _build_assembler(settings: Settings, db: Database, no_cache: bool = False):
    """Wire fetcher, summarizer and email sender from settings."""
    from newsdigest.analyze import Summarizer
    from newsdigest.deliver import EmailSender
    from newsdigest.digest import DigestAssembler
    from newsdigest.ingest import SourceFetcher

    def record_status(result) -> None:
        db.update_feed_status(result.feed_url, result.source_label, success=result.success, error=result.error)

    fetcher = SourceFetcher(
        db,
        timeout=settings.feed_timeout_seconds,
        max_workers=settings.fetch_workers,
        on_source_result=record_status,
    )
    summarizer = Summarizer.from_settings(settings, use_cache=not no_cache)
    sender = EmailSender(api_key=settings.resend_api_key, from_address=settings.email_from)

    return DigestAssembler(
        db=db,
        fetcher=fetcher,
        summarizer=summarizer,
        email_sender=sender,
        summary_timeout=settings.summary_timeout_seconds,
        delivery_timeout=settings.delivery_timeout_seconds,
        max_workers=settings.summary_workers,
    )


def _parse_when(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        parsed = parse_date(value)
    except (ParserError, ValueError, OverflowError):
        console.print(f"[red]Invalid timestamp: {value}[/red]")
        raise typer.Exit(code=1) from None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"newsdigest v{__version__}")
        raise typer.Exit()


_QUICK_REF_ITEMS = [
    ("run", "--user ID [--format rich|text|json] [--no-cache]"),
    ("tick", "[--at ISO8601] [--no-cache]"),
    ("schedule", "[--status | --install | --remove] [--label NAME]"),
    ("test", "[--url URL | --name NAME | --all] [--strict] [--timeout N]"),
    ("sources", "[--sync]"),
    ("users", "add | list | prefs | keyword | source | email"),
    ("digests", "--user ID [--search TEXT] [--limit N] [--json]"),
    ("read", "--user ID ITEM"),
    ("bookmark", "--user ID ITEM [--remove]"),
    ("track", "--user ID ITEM --action click|share"),
    ("stats", "--user ID [--json]"),
    ("config", ""),
    ("cache", "[--clear]"),
]


class _HelpGroup(typer.core.TyperGroup):
    """Custom group that adds a boxed quick-reference section to --help."""

    def format_help(self, ctx, formatter):
        if not typer.core.HAS_RICH or self.rich_markup_mode is None:
            super().format_help(ctx, formatter)
            with formatter.section("Quick Reference"):
                formatter.write_dl(_QUICK_REF_ITEMS)
            return

        from typer import rich_utils

        rich_utils.rich_format_help(
            obj=self,
            ctx=ctx,
            markup_mode=self.rich_markup_mode,
        )

        quick_commands = [
            click.Command(name=command, help=usage, short_help=usage)
            for command, usage in _QUICK_REF_ITEMS
        ]
        rich_utils._print_commands_panel(
            name="Quick Reference",
            commands=quick_commands,
            markup_mode=self.rich_markup_mode,
            console=rich_utils._get_rich_console(),
            cmd_len=max(len(command) for command, _ in _QUICK_REF_ITEMS),
        )


app = typer.Typer(
    name="newsdigest",
    help="newsdigest - personalized news digests",
    no_args_is_help=True,
    add_completion=False,
    cls=_HelpGroup,
    rich_markup_mode="markdown",
)
users_app = typer.Typer(help="Manage users, interests and delivery preferences", no_args_is_help=True)
app.add_typer(users_app, name="users")


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging output."
    ),
    version: bool | None = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit."
    ),
):
    """
    newsdigest - personalized news digests
    """
    state["verbose"] = verbose
    setup_logging("DEBUG" if verbose else "INFO")


def _print_digest(digest: Digest, output_format: str, user_name: str | None = None) -> None:
    """Print digest to terminal in specified format."""
    if output_format == "json":
        print(json.dumps(digest.model_dump(mode="json"), indent=2))
    elif output_format == "text":
        from newsdigest.deliver import EmailRenderer, settings_urls

        preferences_url, unsubscribe_url = settings_urls(get_settings().app_base_url)
        print(EmailRenderer().render_text(digest, user_name, preferences_url, unsubscribe_url))
    else:  # rich
        _print_digest_rich(digest)


def _print_digest_rich(digest: Digest) -> None:
    """Print digest with Rich formatting."""
    status_style = {"SENT": "green", "FAILED": "red"}.get(digest.status.value, "yellow")
    header_text = (
        f"[bold]Digest[/bold] - {digest.generated_at.strftime('%B %d, %Y %H:%M')} UTC\n"
        f"{len(digest.items)} items · status [{status_style}]{digest.status.value}[/{status_style}]"
    )
    console.print(Panel(header_text, border_style="blue"))

    for position, item in enumerate(digest.items, start=1):
        console.print()
        console.print(Rule(f"[bold]{position}. {item.title}[/bold]", style="dim", align="left"))
        meta = f"{item.source_label} · score {item.relevance_score:.2f}"
        if item.topic:
            meta += f" · {item.topic}"
        console.print(f"[dim]{meta}[/dim]")
        console.print(item.summary)
        console.print(f"[blue]{item.url}[/blue]")


@app.command()
def run(
    user: str = UserOption,
    output_format: str = FormatChoice,
    no_cache: bool = typer.Option(False, "--no-cache", help="Skip cache, re-summarize all"),
) -> None:
    """Generate and deliver one user's digest now."""
    settings = _load_settings()
    db = _open_db(settings)
    assembler = _build_assembler(settings, db, no_cache=no_cache)

    try:
        with console.status(f"Building digest for {user}..."):
            digest = assembler.generate_for_user(user, settings.app_base_url)
    except UserNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    _print_digest(digest, output_format, db.get_user(user).name)


@app.command()
def tick(
    at: str | None = typer.Option(None, "--at", help="Evaluate the tick at this ISO-8601 time"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Skip cache, re-summarize all"),
) -> None:
    """Run one scheduler tick: generate digests for every user due now."""
    from newsdigest.digest import run_scheduler_tick

    settings = _load_settings()
    db = _open_db(settings)
    assembler = _build_assembler(settings, db, no_cache=no_cache)

    result = run_scheduler_tick(db, assembler, settings.app_base_url, now=_parse_when(at))

    console.print(
        f"Tick {result.at.isoformat()}: {result.checked} checked, {result.due} due, "
        f"{result.generated} generated, {result.failed} failed"
    )
    for user_id, error in result.errors.items():
        console.print(f"  [red]✗[/red] {user_id}: {error}")


@app.command()
def schedule(
    status: bool = typer.Option(False, "--status", help="Show the installed cron block"),
    install: bool = typer.Option(False, "--install", help="Install the tick into the user crontab"),
    remove: bool = typer.Option(False, "--remove", help="Remove the managed cron block"),
    label: str = typer.Option(DEFAULT_CRON_LABEL, "--label", help="Cron block marker label"),
    project_root: Path = typer.Option(DEFAULT_PROJECT_ROOT, "--project-root", help="Working directory for the tick"),
    runner: str | None = typer.Option(
        None,
        "--runner",
        help="Command used to invoke newsdigest (default: newsdigest)",
    ),
    log_file: Path = typer.Option(
        DEFAULT_SCHEDULE_LOG_FILE,
        "--log-file",
        help="Log path for cron output (absolute or project-relative)",
    ),
) -> None:
    """Generate, inspect, or install the per-minute `newsdigest tick` cron job."""
    if sum([status, install, remove]) > 1:
        console.print("[red]Use only one of --status, --install, or --remove.[/red]")
        raise typer.Exit(code=1)

    try:
        plan = build_plan(
            project_root=project_root,
            runner_override=runner,
            log_file=log_file,
            label=label,
        )
    except ValueError as exc:
        console.print(f"[red]Invalid schedule options:[/red] {exc}")
        raise typer.Exit(code=1) from None

    if status:
        try:
            block = get_cron_managed_block(plan.label)
        except RuntimeError as exc:
            console.print(f"[red]Failed to read cron status:[/red] {exc}")
            raise typer.Exit(code=1) from None

        if not block:
            console.print("[yellow]No managed cron schedule found for this label.[/yellow]")
            console.print("[dim]Install with: newsdigest schedule --install[/dim]")
            return
        console.print("[green]✓ Managed cron schedule found[/green]")
        console.print(block)
        return

    if remove:
        if remove_cron(plan.label):
            console.print("[green]✓ Removed cron schedule[/green]")
        else:
            console.print("[yellow]No managed cron schedule found for this label.[/yellow]")
        return

    schedule_table = Table(title="Schedule Plan")
    schedule_table.add_column("Setting", style="cyan")
    schedule_table.add_column("Value", style="green")
    schedule_table.add_row("Runner", plan.runner)
    schedule_table.add_row("Project root", str(plan.project_root))
    schedule_table.add_row("Log file", str(plan.log_file))
    schedule_table.add_row("Label", plan.label)
    console.print(schedule_table)

    if not install:
        console.print("\n[bold]Cron entry:[/bold]")
        console.print(build_cron_line(plan))
        console.print("\n[dim]Use --install to write this managed block into your user crontab.[/dim]")
        return

    try:
        install_cron(plan)
    except (RuntimeError, OSError) as exc:
        console.print(f"[red]Failed to install cron schedule:[/red] {exc}")
        raise typer.Exit(code=1) from None

    console.print("\n[green]✓ Installed cron schedule[/green]")
    console.print("[dim]Verify with: crontab -l[/dim]")
    console.print(f"[dim]Logs: {plan.log_file}[/dim]")


def _load_catalog(settings: Settings) -> SourceCatalog:
    catalog_path = settings.config_dir / "sources.yaml"
    try:
        return SourceCatalog(catalog_path)
    except ValueError as e:
        console.print(f"[red]Failed to load source catalog ({catalog_path}): {e}[/red]")
        raise typer.Exit(code=1) from None


@app.command("test")
def test_feeds(
    url: str | None = typer.Option(None, "--url", help="Test a one-off feed URL"),
    name: str | None = typer.Option(None, "--name", help="Test one catalog source by name"),
    all_feeds: bool = typer.Option(
        False,
        "--all",
        help="Test every source in sources.yaml (default when no selector is provided)",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Fail if parser warning occurs or feed has zero entries",
    ),
    timeout: int = typer.Option(20, "--timeout", min=1, help="HTTP timeout in seconds"),
) -> None:
    """Test feed URLs and parser health before adding them."""
    from newsdigest.ingest import fetch_feed

    selectors_used = sum([bool(url), bool(name), bool(all_feeds)])
    if selectors_used > 1:
        console.print("[red]Use only one of --url, --name, or --all.[/red]")
        raise typer.Exit(code=1)

    if url:
        targets = [("ad-hoc", url)]
    else:
        sources = _load_catalog(_load_settings()).sources
        if not sources:
            console.print("[yellow]No sources configured in sources.yaml[/yellow]")
            raise typer.Exit(code=1)
        if name:
            if name not in sources:
                console.print(f"[red]Source '{name}' not found in sources.yaml[/red]")
                raise typer.Exit(code=1)
            targets = [(name, sources[name]["url"])]
        else:
            targets = [(source_name, entry["url"]) for source_name, entry in sources.items()]

    console.print(f"[bold]Testing {len(targets)} feed(s)...[/bold]")
    results = [
        fetch_feed(feed_url=feed_url, source_label=label, timeout=timeout)
        for label, feed_url in targets
    ]

    table = Table(title="Feed Test Results")
    table.add_column("Feed", style="cyan", no_wrap=True)
    table.add_column("Result", style="bold", no_wrap=True)
    table.add_column("HTTP", style="green", no_wrap=True)
    table.add_column("Entries", style="green", no_wrap=True)
    table.add_column("Details", style="dim", overflow="fold")

    failures: list[str] = []
    for result in results:
        strict_reasons: list[str] = []
        if strict and result.entry_count == 0:
            strict_reasons.append("zero entries")
        if strict and result.bozo:
            strict_reasons.append("parser warning")

        passed = result.success and not strict_reasons
        details_parts: list[str] = []
        if result.content_type:
            details_parts.append(result.content_type.split(";")[0])
        if result.response_time_ms is not None:
            details_parts.append(f"{result.response_time_ms:.0f} ms")
        if result.attempts > 1:
            details_parts.append(f"{result.attempts} attempts")
        if result.final_url and result.final_url != result.feed_url:
            details_parts.append(f"redirected to {result.final_url}")
        if result.bozo_exception:
            details_parts.append(f"parser: {result.bozo_exception}")
        if strict_reasons:
            details_parts.append("strict: " + ", ".join(strict_reasons))
        if result.error:
            details_parts.append(result.error)

        table.add_row(
            result.source_label,
            "[green]PASS[/green]" if passed else "[red]FAIL[/red]",
            str(result.status_code) if result.status_code is not None else "-",
            str(result.entry_count),
            " | ".join(details_parts) if details_parts else "-",
        )
        if not passed:
            failures.append(f"{result.source_label}: {result.error or ', '.join(strict_reasons)}")

    console.print(table)

    if failures:
        console.print("\n[red]Feed test failures:[/red]")
        for failure in failures:
            console.print(f"  • {failure}")
        raise typer.Exit(code=1)

    console.print("\n[green]✓ All feed tests passed[/green]")


@app.command()
def sources(
    sync: bool = typer.Option(False, "--sync", help="Upsert sources.yaml into the catalog"),
) -> None:
    """List the source catalog, optionally syncing sources.yaml into it."""
    settings = _load_settings()
    db = _open_db(settings)

    if sync:
        catalog = _load_catalog(settings)
        for source_name, entry in catalog.sources.items():
            db.upsert_catalog_source(source_name, entry["url"], entry["category"])
        console.print(f"[green]✓ Synced {len(catalog.sources)} sources[/green]")

    table = Table(title="Source Catalog")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Category", style="green")
    table.add_column("URL", style="dim", overflow="fold")
    for source in db.list_catalog_sources():
        table.add_row(source.id[:8], source.name, source.category, source.url)
    console.print(table)

    failing = db.get_failing_feeds()
    if failing:
        console.print("\n[yellow]Failing feeds:[/yellow]")
        for row in failing:
            console.print(f"  • {row['feed_name']}: {row['consecutive_failures']}x - {row['last_error']}")


@users_app.command("add")
def users_add(
    name: str | None = typer.Option(None, "--name", help="Display name"),
    email: str | None = typer.Option(None, "--email", help="Account and primary delivery email"),
    keyword: list[str] = typer.Option([], "--keyword", "-k", help="Interest keyword (repeatable)"),
    source: list[str] = typer.Option([], "--source", "-s", help="Catalog source name to enable (repeatable)"),
) -> None:
    """Create a user with interests and enabled catalog sources."""
    db = _open_db(_load_settings())
    account = db.create_user(name=name, email=email)
    if email:
        db.add_delivery_email(account.id, email, primary=True)
    for kw in keyword:
        db.add_keyword(account.id, kw)

    catalog = {entry.name: entry for entry in db.list_catalog_sources()}
    for source_name in source:
        if source_name not in catalog:
            console.print(f"[yellow]⚠ Unknown catalog source '{source_name}' (run 'newsdigest sources --sync')[/yellow]")
            continue
        db.enable_catalog_source(account.id, catalog[source_name].id)

    db.save_preferences(account.id, DigestConfiguration())
    console.print(f"[green]✓ Created user {account.id}[/green]")


@users_app.command("list")
def users_list() -> None:
    """List users and their delivery schedule."""
    db = _open_db(_load_settings())
    table = Table(title="Users")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Delivery", style="green")
    table.add_column("Schedule")
    table.add_column("Keywords", style="dim")

    for account in db.list_users():
        prefs = db.get_preferences(account.id)
        schedule_label = "-"
        if prefs:
            schedule_label = f"{prefs.frequency.value} {prefs.delivery_time} {prefs.timezone}"
            if prefs.is_paused:
                schedule_label += " (paused)"
        table.add_row(
            account.id,
            account.name or "-",
            db.get_primary_email(account.id) or "-",
            schedule_label,
            ", ".join(db.get_keywords(account.id)) or "-",
        )
    console.print(table)


@users_app.command("prefs")
def users_prefs(
    user: str = UserOption,
    frequency: DigestFrequency | None = typer.Option(None, "--frequency", case_sensitive=False),
    time: str | None = typer.Option(None, "--time", help="Delivery time, 24h HH:MM"),
    timezone: str | None = typer.Option(None, "--timezone", help="IANA timezone"),
    weekly_day: int | None = typer.Option(None, "--weekly-day", min=0, max=6, help="Sunday=0"),
    length: DigestLength | None = typer.Option(None, "--length", case_sensitive=False),
    depth: SummaryDepth | None = typer.Option(None, "--depth", case_sensitive=False),
    language: str | None = typer.Option(None, "--language"),
    paused: bool | None = typer.Option(None, "--pause/--resume", help="Pause or resume delivery"),
    resume_date: str | None = typer.Option(None, "--resume-date", help="Suppress digests until this ISO-8601 time"),
) -> None:
    """Update a user's delivery preferences."""
    db = _open_db(_load_settings())
    try:
        db.get_user(user)
    except UserNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    current = db.get_preferences(user) or DigestConfiguration()
    updates = {
        "frequency": frequency,
        "delivery_time": time,
        "timezone": timezone,
        "weekly_day": weekly_day,
        "digest_length": length,
        "summary_depth": depth,
        "language": language,
        "is_paused": paused,
        "resume_date": _parse_when(resume_date),
    }
    merged = current.model_dump() | {key: value for key, value in updates.items() if value is not None}

    try:
        config_model = DigestConfiguration.model_validate(merged)
    except ValidationError as e:
        for error in e.errors():
            loc = ".".join(str(part) for part in error["loc"])
            console.print(f"  [red]✗[/red] {loc}: {error['msg']}")
        raise typer.Exit(code=1) from None

    db.save_preferences(user, config_model)
    console.print(f"[green]✓ Preferences saved for {user}[/green]")


@users_app.command("keyword")
def users_keyword(
    user: str = UserOption,
    keyword: list[str] = typer.Argument(..., help="Keywords to add"),
) -> None:
    """Add interest keywords for a user."""
    db = _open_db(_load_settings())
    for kw in keyword:
        db.add_keyword(user, kw)
    console.print(f"[green]✓ Keywords: {', '.join(db.get_keywords(user))}[/green]")


@users_app.command("source")
def users_source(
    user: str = UserOption,
    name: str = typer.Option(..., "--name", help="Display name"),
    source_type: SourceType = typer.Option(SourceType.RSS, "--type", case_sensitive=False),
    value: str = typer.Argument(..., help="Feed URL, page URL, or keyword"),
) -> None:
    """Add a custom source (RSS, URL or KEYWORD) for a user."""
    db = _open_db(_load_settings())
    source = db.add_custom_source(user, name=name, type=source_type, value=value)
    console.print(f"[green]✓ Added {source.type.value} source {source.id}[/green]")


@users_app.command("email")
def users_email(
    user: str = UserOption,
    email: str = typer.Argument(..., help="Delivery address"),
    primary: bool = typer.Option(True, "--primary/--secondary"),
) -> None:
    """Add a delivery address for a user."""
    db = _open_db(_load_settings())
    db.add_delivery_email(user, email, primary=primary)
    console.print(f"[green]✓ Added {email}[/green]")


@app.command()
def digests(
    user: str = UserOption,
    search: str | None = typer.Option(None, "--search", help="Match item title, summary or topic"),
    limit: int = typer.Option(20, "--limit", min=1),
    json_format: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List a user's past digests."""
    db = _open_db(_load_settings())
    history = db.list_digests(user, search=search, limit=limit)

    if json_format:
        print(json.dumps([digest.model_dump(mode="json") for digest in history], indent=2))
        return

    if not history:
        console.print("[dim]No digests found[/dim]")
        return

    table = Table(title="Digests")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Generated", style="cyan")
    table.add_column("Status")
    table.add_column("Items", style="green")
    table.add_column("Top item", max_width=50)
    for digest in history:
        table.add_row(
            digest.id[:8],
            digest.generated_at.strftime("%Y-%m-%d %H:%M"),
            digest.status.value,
            str(len(digest.items)),
            digest.items[0].title if digest.items else "-",
        )
    console.print(table)


@app.command()
def read(
    user: str = UserOption,
    item: str = typer.Argument(..., help="Digest item id"),
) -> None:
    """Mark a digest item as read."""
    db = _open_db(_load_settings())
    try:
        db.mark_read(user, item)
    except DigestItemNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None
    console.print(f"[green]✓ Marked {item} read[/green]")


@app.command()
def bookmark(
    user: str = UserOption,
    item: str = typer.Argument(..., help="Digest item id"),
    remove: bool = typer.Option(False, "--remove", help="Remove the bookmark instead"),
) -> None:
    """Bookmark a digest item, or remove its bookmark."""
    db = _open_db(_load_settings())
    if remove:
        db.unbookmark_item(user, item)
        console.print(f"[green]✓ Removed bookmark {item}[/green]")
        return
    try:
        db.bookmark_item(user, item)
    except DigestItemNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None
    console.print(f"[green]✓ Bookmarked {item}[/green]")


@app.command()
def track(
    user: str = UserOption,
    item: str = typer.Argument(..., help="Digest item id"),
    action: EngagementAction = typer.Option(..., "--action", case_sensitive=False, help="CLICK or SHARE"),
) -> None:
    """Record a click or share on a digest item."""
    if action in (EngagementAction.READ, EngagementAction.BOOKMARK):
        console.print(f"[red]Use 'newsdigest {action.value.lower()}' for {action.value}[/red]")
        raise typer.Exit(code=1)

    db = _open_db(_load_settings())
    try:
        db.track_engagement(user, item, action)
    except DigestItemNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None
    console.print(f"[green]✓ Recorded {action.value} on {item}[/green]")


@app.command()
def stats(
    user: str = UserOption,
    json_format: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show reading analytics for a user."""
    db = _open_db(_load_settings())
    analytics = db.analytics(user)

    if json_format:
        print(json.dumps(analytics.model_dump(mode="json"), indent=2))
        return

    summary = Table(title="Reading Stats")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="green")
    summary.add_row("Items read", str(analytics.read_count))
    summary.add_row("Bookmarks", str(analytics.bookmark_count))
    summary.add_row("Read streak (days)", str(analytics.streak_days))
    console.print(summary)

    if analytics.top_topics:
        console.print("\n[bold]Top topics[/bold]")
        for topic in analytics.top_topics:
            console.print(f"  • {topic.topic}: {topic.count}")
    if analytics.most_read_sources:
        console.print("\n[bold]Most-read sources[/bold]")
        for source in analytics.most_read_sources:
            console.print(f"  • {source.source}: {source.count}")


@app.command()
def config() -> None:
    """Verify configuration and show settings."""
    console.print("[bold]Verifying configuration...[/bold]\n")

    console.print("[dim]Config search paths:[/dim]")
    xdg_config = XDG_CONFIG_PATH / "config.env"
    xdg_status = "[green](exists)[/green]" if xdg_config.exists() else "[dim](not found)[/dim]"
    console.print(f"  1. {xdg_config} {xdg_status}")
    local_env = Path(".env")
    local_status = "[green](exists)[/green]" if local_env.exists() else "[dim](not found)[/dim]"
    console.print(f"  2. {local_env.absolute()} {local_status}")
    console.print()

    errors: list[str] = []
    settings = _load_settings()
    console.print("[green]✓[/green] Settings loaded")

    if settings.llm_api_key:
        console.print(f"  LLM API key: {settings.llm_api_key[:10]}...")
    else:
        console.print("  [yellow]⚠ No LLM_API_KEY: summaries use truncated content[/yellow]")

    if settings.resend_api_key:
        console.print(f"  Resend API key: {settings.resend_api_key[:10]}...")
    else:
        console.print("  [yellow]⚠ No RESEND_API_KEY: delivery is logged, not sent[/yellow]")

    console.print(f"  Email from: {settings.email_from}")
    console.print(f"  App base URL: {settings.app_base_url}")
    console.print(f"  LLM provider: {settings.llm_provider}")
    console.print(f"  LLM model: {settings.llm_model}")

    console.print()
    try:
        catalog = SourceCatalog(settings.config_dir / "sources.yaml")
        if catalog.sources:
            console.print(f"[green]✓[/green] Catalog sources configured: {len(catalog.sources)}")
            for source_name, entry in list(catalog.sources.items())[:5]:
                console.print(f"  • {source_name}: {entry.get('category', 'Uncategorized')}")
            if len(catalog.sources) > 5:
                console.print(f"  ... and {len(catalog.sources) - 5} more")
        else:
            errors.append(f"No sources configured in {settings.config_dir / 'sources.yaml'}")
    except ValueError as e:
        errors.append(f"Source catalog error: {e}")

    console.print()
    console.print(f"[green]✓[/green] Config dir: {settings.config_dir}")
    console.print(f"[green]✓[/green] Database: {settings.db_path}")

    console.print()
    if errors:
        console.print("[red]Configuration errors:[/red]")
        for error in errors:
            console.print(f"  [red]✗[/red] {error}")
        raise typer.Exit(code=1)
    console.print("[green]✓ Configuration valid[/green]")


@app.command("cache")
def cache_cmd(
    clear: bool = typer.Option(False, "--clear", help="Clear all cached summaries"),
) -> None:
    """Show cache statistics or clear cached summaries."""
    from newsdigest.storage.cache import SummaryCache

    settings = _load_settings()
    cache = SummaryCache(settings.db_path, default_ttl_days=settings.cache_ttl_days)

    if clear:
        count = cache.clear()
        console.print(f"[green]Cleared {count} cached entries[/green]")
        return

    cache_stats = cache.stats()
    table = Table(title="Cache Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total entries", str(cache_stats["total_entries"]))
    table.add_row("Expired entries", str(cache_stats["expired_entries"]))
    console.print(table)


def cli() -> None:
    """Entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[dim]Aborted.[/dim]")
        raise SystemExit(130) from None
    except Exception as e:
        console.print(f"\n[red]Unexpected error:[/red] {e}")
        console.print("[dim]Run with --verbose for more details.[/dim]")
        raise SystemExit(1) from e


if __name__ == "__main__":
    cli()
