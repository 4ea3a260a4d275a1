"""CLI for the pulselog journal analytics."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import click

from pulselog.config import configure_logging, get_config
from pulselog.errors import PulselogError
from pulselog.analytics.periods import MONTHLY_FAMILIES, MetricFamily, PeriodStats
from pulselog.timeutil import format_duration, parse_timestamp

FAMILIES = [f.value for f in MetricFamily]


def _query(ctx: click.Context, file: str, week_offset: int = 0, month_offset: int = 0):
    """Load *file* and build a query for the group's --now / --tz."""
    from pulselog.analytics.pipeline import ViewQuery, load_snapshot
    from pulselog.store import load_store

    opts = ctx.obj
    try:
        store = load_store(file)
    except (PulselogError, json.JSONDecodeError) as e:
        raise click.ClickException(str(e)) from e
    snapshot = load_snapshot(store, opts["fetch_limit"])
    return ViewQuery(
        snapshot,
        now=opts["now"],
        tz=opts["tz"],
        week_offset=week_offset,
        month_offset=month_offset,
        horizon_days=opts["horizon_days"],
    )


def _echo_stats(stats: PeriodStats, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(stats.to_dict(), indent=2))
        return
    period = stats.period.label() if stats.period else "all time"
    click.echo(f"{stats.family.value} · {period}")
    if not stats.items:
        click.echo("  no data")
    for item in stats.items:
        unit = f" {item.unit}" if item.unit else ""
        badge = f"  [{item.badge.text}, {item.badge.color.value}]" if item.badge else ""
        category = f"  ({item.category})" if item.category else ""
        click.echo(f"  {item.label:<16} {item.value}{unit}{category}{badge}")


def _resolve_tz(name: str | None) -> tzinfo | None:
    if name is None:
        return get_config().tzinfo
    if name.upper() in {"UTC", "Z"}:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise click.BadParameter(f"unknown timezone: {name}", param_hint="--tz") from None


@click.group()
@click.option("--tz", "tz_name", default=None, help="IANA timezone (default: PULSELOG_TIMEZONE or system).")
@click.option("--now", "now_text", default=None, help="Reference instant, ISO-8601 (default: current time).")
@click.option("--log-level", default=None,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Override LOG_LEVEL.")
@click.pass_context
def main(ctx: click.Context, tz_name: str | None, now_text: str | None, log_level: str | None) -> None:
    """pulselog: arrhythmia journal analytics."""
    try:
        config = get_config()
    except PulselogError as e:
        raise click.ClickException(str(e)) from e

    logging_config = config.logging
    if log_level:
        logging_config = logging_config.model_copy(update={"level": log_level.upper()})
    configure_logging(logging_config)

    try:
        now = parse_timestamp(now_text) if now_text else datetime.now(timezone.utc)
    except ValueError:
        raise click.BadParameter(f"not an ISO timestamp: {now_text}", param_hint="--now") from None

    ctx.obj = {
        "tz": _resolve_tz(tz_name),
        "now": now,
        "fetch_limit": config.fetch_limit,
        "horizon_days": config.horizon_days,
    }


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.argument("family", type=click.Choice(FAMILIES))
@click.option("--week-offset", "-w", default=0, help="Weeks back from the current one.")
@click.option("--json", "as_json", is_flag=True, help="Print JSON.")
@click.pass_context
def stats(ctx: click.Context, file: str, family: str, week_offset: int, as_json: bool) -> None:
    """Week-over-week stats for one metric family."""
    query = _query(ctx, file, week_offset=week_offset)
    _echo_stats(query.period_stats(family), as_json)


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.argument("family", type=click.Choice(sorted(f.value for f in MONTHLY_FAMILIES)))
@click.option("--month-offset", "-m", default=0, help="Months back from the current one.")
@click.option("--json", "as_json", is_flag=True, help="Print JSON.")
@click.pass_context
def monthly(ctx: click.Context, file: str, family: str, month_offset: int, as_json: bool) -> None:
    """Month-over-month comparison (arrhythmia, inhaler)."""
    query = _query(ctx, file, month_offset=month_offset)
    _echo_stats(query.monthly(family), as_json)


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Print JSON.")
@click.pass_context
def triggers(ctx: click.Context, file: str, as_json: bool) -> None:
    """Ranked trigger factors over the trailing horizon."""
    query = _query(ctx, file)
    ranked = query.triggers()
    if as_json:
        click.echo(json.dumps([t.to_dict() for t in ranked], indent=2))
        return
    if not ranked:
        click.echo("Insufficient data: no closed episodes in the last "
                   f"{query.horizon_days} days.")
        return
    for t in ranked:
        bar = "█" * (t.percent // 5)
        click.echo(f"  {t.label:<32} {t.percent:>3}%  {bar}  ({t.count})")


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Print JSON.")
@click.pass_context
def compare(ctx: click.Context, file: str, as_json: bool) -> None:
    """Daily metrics on episode days vs non-episode days."""
    rows = _query(ctx, file).day_comparison()
    if as_json:
        click.echo(json.dumps([r.to_dict() for r in rows], indent=2))
        return

    def fmt(v: float | None) -> str:
        return "—" if v is None else f"{v:g}"

    click.echo(f"  {'metric':<22} {'episode days':>13} {'other days':>11}")
    for r in rows:
        click.echo(f"  {r.label + ' (' + r.unit + ')':<22} {fmt(r.episode_mean):>13} "
                   f"{fmt(r.non_episode_mean):>11}")


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--limit", "-n", default=10, help="Number of episodes to show.")
@click.option("--json", "as_json", is_flag=True, help="Print JSON.")
@click.pass_context
def episodes(ctx: click.Context, file: str, limit: int, as_json: bool) -> None:
    """Annotated cards for recent episodes, newest first."""
    cards = _query(ctx, file).episode_cards(limit)
    if as_json:
        click.echo(json.dumps([c.to_dict() for c in cards], indent=2))
        return
    if not cards:
        click.echo("No closed episodes.")
    for card in cards:
        click.echo(card.headline())
        if card.context is not None:
            click.echo(f"    context:  {', '.join(card.context.labels())}")
        if card.onset_tags:
            click.echo(f"    onset:    {', '.join(card.onset_tags)}")
        if card.symptoms:
            click.echo(f"    symptoms: {', '.join(card.symptoms)}")
        if card.prior_sleep_min is not None:
            click.echo(f"    sleep:    {format_duration(card.prior_sleep_min)}")


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--day", "-d", default=None, help="Local date, YYYY-MM-DD (default: today).")
@click.option("--output", "-o", default=None, help="Also write the summary JSON here.")
@click.pass_context
def summary(ctx: click.Context, file: str, day: str | None, output: str | None) -> None:
    """Daily summary as JSON."""
    try:
        target = date.fromisoformat(day) if day else None
    except ValueError:
        raise click.BadParameter(f"not a date: {day}", param_hint="--day") from None
    result = _query(ctx, file).daily_summary(target)
    text = result.to_json()
    click.echo(text)
    if output:
        with open(output, "w") as f:
            f.write(text)
        click.echo(f"\nSaved to {output}", err=True)


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--limit", "-n", default=20, help="Number of readings to show.")
@click.pass_context
def readings(ctx: click.Context, file: str, limit: int) -> None:
    """Recent BP/HR readings with their context labels."""
    query = _query(ctx, file)
    for reading, context in query.reading_contexts(limit):
        local = reading.timestamp.astimezone(query.tz)
        bp = f"{reading.systolic or '—'}/{reading.diastolic or '—'}"
        hr = f" HR {reading.heart_rate}" if reading.heart_rate else ""
        category = f" {context.category.label}" if context.category else ""
        click.echo(f"{local:%Y-%m-%d %H:%M}  {bp}{hr}{category}  [{context.slot.value}]  "
                   f"{', '.join(context.labels())}")


if __name__ == "__main__":
    main()
