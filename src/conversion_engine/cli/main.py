"""Main CLI entry point for leadscore command."""

import logging
import click
from pathlib import Path
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from typing import Dict, Optional, Tuple

from ..core.catalog import ENGAGEMENT_ACTIONS, TriggerKind
from ..core.config import ConfigManager, EngineConfig
from ..core.engine import LeadScoringEngine, new_session_id
from ..core.status import STATUS_FLOW, VisitorStatus
from ..storage.kv import FileKeyValueStore
from ..storage.profile_store import ProfileStore
from ..tracking.attribution import PageContext
from ..tracking.telemetry import TelemetryEmitter

console = Console()

STATUS_COLORS = {
    VisitorStatus.VISITOR: "dim",
    VisitorStatus.COLD_LEAD: "blue",
    VisitorStatus.CANDIDATE: "yellow",
    VisitorStatus.HOT_LEAD: "red",
}


def build_engine(config: EngineConfig, page_context: Optional[PageContext] = None) -> LeadScoringEngine:
    """Wire an engine to file storage and the configured telemetry sink."""
    kv = FileKeyValueStore(config.data_dir, max_bytes=config.storage_quota_bytes)
    store = ProfileStore(
        kv,
        namespace=config.namespace,
        persisted_activity_cap=config.persisted_activity_cap,
        retention_count=config.retention_count,
        minimal_activity_tail=config.minimal_activity_tail,
    )
    telemetry = TelemetryEmitter(config.telemetry_url, timeout=config.telemetry_timeout)
    return LeadScoringEngine(store=store, telemetry=telemetry, config=config, page_context=page_context)


def parse_meta_options(values: Tuple[str, ...]) -> Dict[str, str]:
    """Turn repeated ``key=value`` options into a dict."""
    meta = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {item!r}", param_hint="--meta")
        meta[key.strip()] = value.strip()
    return meta


def _status_label(status: VisitorStatus) -> str:
    style = STATUS_COLORS.get(status, "")
    return f"[{style}]{status.display_name}[/{style}]"


def _engine(ctx: click.Context, page_context: Optional[PageContext] = None) -> LeadScoringEngine:
    engine = build_engine(ctx.obj["config"], page_context)
    ctx.call_on_close(engine.telemetry.wait)
    return engine


@click.group()
@click.version_option(version="1.0.0", prog_name="leadscore")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Custom config file path")
@click.option("--data-dir", help="Directory holding stored profiles")
@click.option("--telemetry-url", help="Collector endpoint for scoring events")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path: Optional[str], data_dir: Optional[str], telemetry_url: Optional[str], verbose: bool):
    """Lead Scoring Engine - progressive visitor classification.

    \b
    Quick Start:
      leadscore new-session                             # Start a browsing session
      leadscore track SESSION tool_usage                # Score a visitor action
      leadscore show SESSION                            # View the profile
      leadscore insights SESSION                        # Next steps for the visitor
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    manager = ConfigManager(Path(config_path) if config_path else None)
    config = manager.config
    if data_dir:
        config.data_dir = Path(data_dir)
    if telemetry_url:
        config.telemetry_url = telemetry_url

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command("new-session")
def new_session():
    """Print a fresh session id."""
    click.echo(new_session_id())


@cli.command()
def triggers():
    """List scoreable visitor actions."""
    table = Table(title="Engagement Triggers")
    table.add_column("Trigger", style="cyan")
    table.add_column("Points", justify="right", style="bold")
    table.add_column("Weight", justify="right")
    table.add_column("Category")
    table.add_column("Description")

    for action in ENGAGEMENT_ACTIONS.values():
        table.add_row(
            action.trigger.value,
            str(action.points),
            f"{action.weight:.1f}",
            action.category.value,
            action.description,
        )

    console.print(table)


@cli.command()
@click.argument("session_id")
@click.argument("trigger", type=click.Choice([t.value for t in TriggerKind]))
@click.option("--meta", "-m", multiple=True, help="Trigger metadata as key=value (repeatable)")
@click.option("--url", default="", help="Current page URL")
@click.option("--referrer", default="", help="Referring page URL")
@click.pass_context
def track(ctx, session_id: str, trigger: str, meta: Tuple[str, ...], url: str, referrer: str):
    """Score a visitor action for a session."""
    metadata = parse_meta_options(meta)
    engine = _engine(ctx, PageContext(url=url, referrer=referrer))

    try:
        profile = engine.apply_trigger(session_id, trigger, metadata)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        ctx.exit(1)

    activity = profile.activities[-1]
    console.print(
        f"[green]✓ {trigger}[/green] +{activity.points:g} points → "
        f"score [bold]{profile.engagement_score:g}[/bold], status {_status_label(profile.status)}"
    )


@cli.command()
@click.argument("session_id")
@click.option("--limit", "-n", default=10, help="Number of recent activities to show")
@click.pass_context
def show(ctx, session_id: str, limit: int):
    """Display a session's lead profile."""
    engine = _engine(ctx)
    profile = engine.get_current_profile(session_id)

    if profile is None:
        console.print(f"[yellow]No profile for {session_id} (visitor, score 0)[/yellow]")
        return

    info_lines = [
        f"[bold]Status:[/bold] {_status_label(profile.status)}",
        f"[bold]Engagement:[/bold] {profile.engagement_score:g}",
        f"[bold]Behavioral:[/bold] {profile.behavioral_score:g}",
        f"[bold]Demographic:[/bold] {profile.demographic_score:g}",
        f"[bold]Readiness:[/bold] {profile.conversion_readiness}/100",
        f"[bold]Source:[/bold] {profile.source}",
        f"[bold]Created:[/bold] {profile.created_at:%Y-%m-%d %H:%M}",
        f"[bold]Last activity:[/bold] {profile.last_activity:%Y-%m-%d %H:%M}",
    ]
    console.print(Panel("\n".join(info_lines), title=f"Lead {profile.id}"))

    if profile.activities:
        table = Table(title=f"Recent Activity ({len(profile.activities)})")
        table.add_column("Time", style="dim")
        table.add_column("Trigger", style="cyan")
        table.add_column("Points", justify="right", style="bold")
        table.add_column("Page", max_width=40)

        for activity in profile.activities[-limit:]:
            table.add_row(
                f"{activity.timestamp:%Y-%m-%d %H:%M:%S}",
                activity.trigger.value,
                f"{activity.points:g}",
                activity.page_url[:40],
            )
        console.print(table)


@cli.command()
@click.argument("session_id")
@click.pass_context
def insights(ctx, session_id: str):
    """Show progress and recommended next steps for a session."""
    engine = _engine(ctx)
    data = engine.get_status_insights(session_id)

    upcoming = data["next_status"]
    lines = [
        f"[bold]Status:[/bold] {_status_label(data['current_status'])}",
        f"[bold]Next:[/bold] {_status_label(upcoming) if upcoming else '[dim]top of funnel[/dim]'}",
        f"[bold]Progress:[/bold] {data['progress_to_next']:.1f}%",
        f"[bold]Conversion probability:[/bold] {data['conversion_probability']:.0%}",
        f"[bold]Time to conversion:[/bold] {data['time_to_conversion']} days",
        f"[bold]Next best action:[/bold] {data['next_best_action']}",
        "",
        "[bold]Recommendations:[/bold]",
    ]
    lines.extend(f"  • {rec}" for rec in data["recommendations"])
    console.print(Panel("\n".join(lines), title=f"Insights: {session_id}"))


@cli.command()
@click.argument("session_id")
@click.argument("status", type=click.Choice([s.value for s in VisitorStatus]))
@click.pass_context
def override(ctx, session_id: str, status: str):
    """Force a session into a status."""
    engine = _engine(ctx)
    profile = engine.manual_status_override(session_id, status)
    console.print(
        f"[green]✓ {session_id} set to[/green] {_status_label(profile.status)} "
        f"(score {profile.engagement_score:g})"
    )


@cli.command()
@click.pass_context
def distribution(ctx):
    """Profile counts per status and funnel conversion."""
    engine = _engine(ctx)
    counts = engine.get_status_distribution()
    funnel = engine.get_conversion_funnel()

    table = Table(title="Status Distribution")
    table.add_column("Status")
    table.add_column("Profiles", justify="right", style="bold")
    for status in STATUS_FLOW:
        table.add_row(_status_label(status), str(counts[status]))
    console.print(table)

    console.print(Panel.fit(
        "\n".join(f"{name.replace('_', ' ')}: {ratio:.1%}" for name, ratio in funnel.items()),
        title="Conversion Funnel"
    ))


if __name__ == "__main__":
    cli()
