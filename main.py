#!/usr/bin/env python3
"""Metric Watch - CLI Entry Point."""
import sys
import json
import functools
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from __version__ import __version__
from models.enums import Comparator
from utils.errors import MetricWatchError

console = Console()


def build_components(config, clock=None):
    """Wire the database, engines and auth provider from a loaded config."""
    from models.database import Database
    from alerts.engine import AlertEngine
    from alerts.rules_manager import RulesManager
    from alerts.events import EventLog
    from monitor.monitor import MetricMonitor
    from web.auth import TokenAuthProvider
    from utils.timeutil import utc_now

    clock = clock or utc_now
    db = Database(config["database"]["path"])
    db.connect()

    rules = RulesManager(db, clock=clock)
    events = EventLog(db,
                      default_page_size=config["events"]["default_page_size"],
                      max_page_size=config["events"]["max_page_size"])
    alert_engine = AlertEngine(rules, events, db, clock=clock)
    monitor = MetricMonitor(db, alert_engine, clock=clock,
                            name_scan_limit=config["names"]["scan_limit"])
    auth = TokenAuthProvider(config["auth"].get("tokens"))

    return {
        "config": config, "db": db, "alert_engine": alert_engine,
        "monitor": monitor, "rules": rules, "events": events, "auth": auth,
    }


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config

    config = load_config(config_path)
    setup_logging("DEBUG" if verbose else config["logging"]["level"], config["logging"].get("file"))
    return build_components(config)


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="metricwatch")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Metric Watch - Metric samples, threshold alerts & firing history."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        ctx.obj["_components"] = _init_components(ctx.obj.get("config_path"), ctx.obj.get("verbose"))
    return ctx.obj["_components"]


def handle_errors(func):
    """Print MetricWatchError messages in red and exit with status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except MetricWatchError as e:
            console.print(f"[red]✗[/red] {escape(e.message)}")
            raise click.exceptions.Exit(1)
    return wrapper


user_option = click.option("--user", "user_id", required=True, envvar="METRICWATCH_USER",
                           help="User id to act as (or set METRICWATCH_USER)")


# ──────────────────────────────────────────────────────
# SETUP
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
@handle_errors
def init(ctx):
    """Create the database schema."""
    c = _get_components(ctx)
    console.print(f"[green]✓[/green] Database initialized at {escape(c['db'].db_path)}")


# ──────────────────────────────────────────────────────
# INGEST
# ──────────────────────────────────────────────────────
@cli.command()
@user_option
@click.option("--metric", "metric_name", required=True, help="Metric name")
@click.option("--value", required=True, help="Numeric value")
@click.option("--timestamp", default=None, help="ISO-8601 time of the sample (default: now)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def ingest(ctx, user_id, metric_name, value, timestamp, as_json):
    """Record a metric sample and evaluate alert rules against it."""
    c = _get_components(ctx)
    summary = c["monitor"].ingest(user_id, metric_name, value, timestamp)

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return

    console.print(
        f"{escape(summary.message)}: evaluated [bold]{summary.evaluated}[/bold], "
        f"triggered [bold]{summary.triggered}[/bold], "
        f"cooldown skipped [bold]{summary.cooldown_skipped}[/bold]"
    )
    for a in summary.triggered_alerts:
        console.print(f"  [bold yellow]![/bold yellow] {escape(a.metric_name)}: {escape(a.message)}")


# ──────────────────────────────────────────────────────
# ALERTS
# ──────────────────────────────────────────────────────
@cli.group()
def alerts():
    """Alert rule management and firing history."""
    pass


@alerts.command("list")
@user_option
@click.pass_context
@handle_errors
def alerts_list(ctx, user_id):
    """List alert rules, newest first."""
    from utils.formatters import format_condition, format_cooldown, time_ago
    c = _get_components(ctx)
    rules = c["rules"].list_rules(user_id)
    if not rules:
        console.print("[dim]No alert rules[/dim]")
        return
    table = Table(title="Alert Rules", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Condition")
    table.add_column("Message")
    table.add_column("Cooldown")
    table.add_column("Last Fired")
    for r in rules:
        table.add_row(r.id, escape(format_condition(r.metric_name, r.comparator, r.threshold)),
                      escape(r.message), format_cooldown(r.cooldown_seconds),
                      time_ago(r.last_triggered_at))
    console.print(table)


@alerts.command("create")
@user_option
@click.option("--metric", "metric_name", required=True, help="Metric name to watch")
@click.option("--comparator", required=True, type=click.Choice([c.value for c in Comparator]))
@click.option("--threshold", required=True, help="Threshold value")
@click.option("--message", required=True, help="Message recorded when the rule fires")
@click.option("--cooldown", "cooldown_seconds", default=0, type=float,
              help="Seconds to suppress re-firing (0 = never suppress)")
@click.pass_context
@handle_errors
def alerts_create(ctx, user_id, metric_name, comparator, threshold, message, cooldown_seconds):
    """Create an alert rule."""
    c = _get_components(ctx)
    rule = c["rules"].create_rule(user_id, {
        "metric_name": metric_name,
        "comparator": comparator,
        "threshold": threshold,
        "message": message,
        "cooldown_seconds": cooldown_seconds,
    })
    console.print(f"[green]✓[/green] Created rule {rule.id}")


@alerts.command("update")
@user_option
@click.option("--id", "rule_id", required=True, help="Rule id")
@click.option("--metric", "metric_name", default=None)
@click.option("--comparator", default=None, type=click.Choice([c.value for c in Comparator]))
@click.option("--threshold", default=None)
@click.option("--message", default=None)
@click.option("--cooldown", "cooldown_seconds", default=None, type=float)
@click.pass_context
@handle_errors
def alerts_update(ctx, user_id, rule_id, metric_name, comparator, threshold, message, cooldown_seconds):
    """Change fields of an alert rule."""
    c = _get_components(ctx)
    body = {
        "metric_name": metric_name,
        "comparator": comparator,
        "threshold": threshold,
        "message": message,
        "cooldown_seconds": cooldown_seconds,
    }
    rule = c["rules"].update_rule(user_id, rule_id, {k: v for k, v in body.items() if v is not None})
    console.print(f"[green]✓[/green] Updated rule {rule.id}")


@alerts.command("delete")
@user_option
@click.option("--id", "rule_id", required=True, help="Rule id")
@click.pass_context
@handle_errors
def alerts_delete(ctx, user_id, rule_id):
    """Delete an alert rule. Its events are kept."""
    c = _get_components(ctx)
    c["rules"].delete_rule(user_id, rule_id)
    console.print(f"[green]✓[/green] Deleted rule {rule_id}")


@alerts.command("events")
@user_option
@click.option("--metric", "metric_name", default=None, help="Filter by metric name substring")
@click.option("--alert-id", default=None, help="Filter by rule id")
@click.option("--limit", default=None, help="Page size (1-500, default 4)")
@click.option("--cursor", default=None, help="Timestamp cursor from a previous page")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_errors
def alerts_events(ctx, user_id, metric_name, alert_id, limit, cursor, as_json):
    """Show alert firings, newest first."""
    from utils.formatters import format_timestamp, format_value
    c = _get_components(ctx)
    page = c["events"].list_page(user_id, metric_name=metric_name, alert_id=alert_id,
                                 cursor=cursor, limit=limit)
    if as_json:
        click.echo(json.dumps(page.to_dict(), indent=2))
        return
    if not page.events:
        console.print("[dim]No alert events[/dim]")
        return
    table = Table(title="Alert Events", show_header=True)
    table.add_column("Time", style="dim")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_column("Message")
    for e in page.events:
        table.add_row(format_timestamp(e.timestamp), escape(e.metric_name),
                      format_value(e.metric_value), escape(e.alert_message))
    console.print(table)
    if page.has_more:
        console.print(f"[dim]More events: --cursor {page.next_cursor}[/dim]")


# ──────────────────────────────────────────────────────
# METRICS
# ──────────────────────────────────────────────────────
@cli.group()
def metrics():
    """Metric samples and names."""
    pass


@metrics.command("names")
@user_option
@click.option("--search", default=None, help="Case-insensitive substring filter")
@click.pass_context
@handle_errors
def metrics_names(ctx, user_id, search):
    """List known metric names from samples and rules."""
    c = _get_components(ctx)
    names = c["monitor"].list_metric_names(user_id, search=search)
    if not names:
        console.print("[dim]No metric names[/dim]")
        return
    for name in names:
        console.print(escape(name))


@metrics.command("recent")
@user_option
@click.option("--metric", "metric_name", default=None, help="Only this metric (case-insensitive)")
@click.option("--limit", default=20, type=click.IntRange(1, 500))
@click.pass_context
@handle_errors
def metrics_recent(ctx, user_id, metric_name, limit):
    """Show the most recently recorded samples."""
    from utils.formatters import format_timestamp, format_value
    c = _get_components(ctx)
    samples = c["monitor"].recent_samples(user_id, metric_name=metric_name, limit=limit)
    if not samples:
        console.print("[dim]No samples recorded[/dim]")
        return
    table = Table(title="Recent Samples", show_header=True)
    table.add_column("Recorded", style="dim")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for s in samples:
        table.add_row(format_timestamp(s.recorded_at), escape(s.metric_name), format_value(s.value))
    console.print(table)


# ──────────────────────────────────────────────────────
# WEB
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--host", default=None, type=str, help="Host to bind to")
@click.pass_context
def web(ctx, port, host):
    """Serve the JSON API."""
    from web.app import create_app

    c = _get_components(ctx)
    web_cfg = c["config"].get("web", {})
    host = host or web_cfg.get("host", "127.0.0.1")
    port = port or web_cfg.get("port", 5000)

    if not c["auth"].tokens:
        console.print("[yellow]No API tokens configured (auth.tokens); every request will be rejected.[/yellow]")

    app = create_app(c["config"], c)
    console.print(f"[bold]Metric Watch API[/bold] on http://{host}:{port}")
    app.run(host=host, port=port)


if __name__ == "__main__":
    cli()
