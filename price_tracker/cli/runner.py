# price_tracker/cli/runner.py

"""Headless command runners; each returns a process exit code."""

import json
import logging
import sys
from collections.abc import Callable
from decimal import Decimal

from rich.console import Console
from rich.table import Table

from price_tracker.config.settings import Settings
from price_tracker.errors import PriceTrackerError
from price_tracker.models.scrape_log import ScrapeStatus
from price_tracker.models.tracker import TrackerWithProduct
from price_tracker.services.alert_evaluator import AlertEvaluator
from price_tracker.services.batch_scheduler import BatchScheduler
from price_tracker.services.product_service import ProductService
from price_tracker.services.tracker_service import TrackerService
from price_tracker.storage.chart_exporter import export_price_chart
from price_tracker.storage.price_store import PriceStore

logger = logging.getLogger("price_tracker.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _fmt_price(currency: str, price: Decimal | None) -> str:
    if price is None:
        return "—"
    if price <= 0:
        return "N/A"
    return f"{currency} {price:,.2f}"


def _dump_json(payload: object) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _guarded(action: Callable[[PriceStore], int], settings: Settings) -> int:
    """Open the store, run *action*, and turn domain errors into exit 1."""
    store = PriceStore(settings.DB_PATH)
    try:
        return action(store)
    except PriceTrackerError as exc:
        logger.warning("Command failed: %s", exc.message)
        _err.print(f"[red]Error ({exc.status_code}): {exc.message}[/red]")
        return 1
    finally:
        store.close()


def _print_trackers(items: list[TrackerWithProduct]) -> None:
    """Render a Rich table of trackers to stdout."""
    table = Table(
        title="Tracked Products",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("ID", style="dim", width=5)
    table.add_column("Product", max_width=50)
    table.add_column("Platform", style="magenta")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Target", justify="right")
    table.add_column("Stock", justify="center")
    table.add_column("Active", justify="center")

    for item in items:
        p, t = item.product, item.tracker
        hit = (
            t.target_price is not None
            and 0 < p.latest_price <= t.target_price
        )
        target = _fmt_price(p.currency, t.target_price)
        table.add_row(
            str(t.id),
            p.name[:50],
            p.platform.value,
            _fmt_price(p.currency, p.latest_price),
            f"[bold green]{target}[/bold green]" if hit else target,
            "✅" if p.is_available else "❌",
            "yes" if t.is_active else "[dim]paused[/dim]",
        )

    Console().print(table)


# ── Tracker commands ─────────────────────────────────────


def run_track(
    settings: Settings,
    user_id: str,
    url: str,
    target_price: str | None,
    wait: bool,
    output_format: str,
) -> int:
    """Start tracking a product URL.

    With ``wait=False`` the tracker is printed as soon as it exists, but the
    process still drains the queued first scrape before exiting.
    """
    def action(store: PriceStore) -> int:
        service = TrackerService(settings, store)
        try:
            item = service.create_tracker(
                user_id, url, target_price, wait=wait,
            )
            if output_format == "json":
                _dump_json(item.to_dict())
            else:
                _err.print(
                    f"[green]✓ Tracking #{item.tracker.id}:[/green] "
                    f"{item.product.name}"
                )
                _print_trackers([item])
            sys.stdout.flush()
        finally:
            service.close()
        return 0

    return _guarded(action, settings)


def run_list(settings: Settings, user_id: str, output_format: str) -> int:
    """List the user's trackers."""
    def action(store: PriceStore) -> int:
        items = TrackerService(settings, store).list_trackers(user_id)
        if output_format == "json":
            _dump_json([i.to_dict() for i in items])
        elif not items:
            _err.print("[yellow]No tracked products.[/yellow]")
        else:
            _print_trackers(items)
        return 0

    return _guarded(action, settings)


def run_untrack(settings: Settings, user_id: str, tracker_id: int) -> int:
    """Delete one of the user's trackers."""
    def action(store: PriceStore) -> int:
        TrackerService(settings, store).delete_tracker(user_id, tracker_id)
        _err.print(f"[green]✓ Tracker #{tracker_id} deleted[/green]")
        return 0

    return _guarded(action, settings)


def run_set_active(
    settings: Settings, user_id: str, tracker_id: int, active: bool,
) -> int:
    """Pause or resume a tracker."""
    def action(store: PriceStore) -> int:
        TrackerService(settings, store).set_active(
            user_id, tracker_id, active,
        )
        verb = "resumed" if active else "paused"
        _err.print(f"[green]✓ Tracker #{tracker_id} {verb}[/green]")
        return 0

    return _guarded(action, settings)


def run_set_target(
    settings: Settings,
    user_id: str,
    tracker_id: int,
    target_price: str | None,
) -> int:
    """Change or clear a tracker's target price."""
    def action(store: PriceStore) -> int:
        tracker = TrackerService(settings, store).set_target_price(
            user_id, tracker_id, target_price,
        )
        _err.print(
            f"[green]✓ Tracker #{tracker_id} target: "
            f"{tracker.target_price if tracker.target_price else 'none'}"
            "[/green]"
        )
        return 0

    return _guarded(action, settings)


# ── Product commands ─────────────────────────────────────


def run_show(
    settings: Settings,
    user_id: str,
    product_id: int,
    days: int,
    output_format: str,
    chart: bool,
) -> int:
    """Show product detail with price history and statistics."""
    def action(store: PriceStore) -> int:
        detail = ProductService(settings, store).get_product_detail(
            user_id, product_id, days=days,
        )
        if output_format == "json":
            _dump_json(detail.to_dict())
        else:
            p, stats = detail.product, detail.statistics
            _err.print(f"[bold]{p.name}[/bold]  [dim]{p.url}[/dim]")
            _err.print(
                f"Now {_fmt_price(p.currency, p.latest_price)} · "
                f"low {_fmt_price(p.currency, stats.lowest_price)} · "
                f"high {_fmt_price(p.currency, stats.highest_price)} · "
                f"avg {_fmt_price(p.currency, stats.avg_price)}"
            )
            table = Table(title=f"Last {days} days", title_style="bold cyan")
            table.add_column("When", style="dim")
            table.add_column("Price", justify="right", style="green")
            table.add_column("Stock", justify="center")
            for snap in detail.price_history:
                table.add_row(
                    snap.snapshot_at.strftime("%Y-%m-%d %H:%M"),
                    _fmt_price(snap.currency, snap.price),
                    "✅" if snap.is_available else "❌",
                )
            Console().print(table)

        if chart:
            target = detail.tracker.target_price if detail.tracker else None
            path = export_price_chart(
                product_id, store, settings,
                days=days, target_price=target, open_browser=True,
            )
            if path is None:
                _err.print("[yellow]Not enough history for a chart.[/yellow]")
            else:
                _err.print(f"[dim]Chart → {path}[/dim]")
        return 0

    return _guarded(action, settings)


# ── Admin commands ───────────────────────────────────────


async def run_update_all(settings: Settings) -> int:
    """Run one batch pass over every tracked product."""
    store = PriceStore(settings.DB_PATH)
    try:
        _err.print("[bold]Updating tracked products...[/bold]")
        result = await BatchScheduler(settings, store).run()
    except PriceTrackerError as exc:
        logger.error("Batch pass aborted: %s", exc, exc_info=True)
        _err.print(f"[red]Error ({exc.status_code}): {exc.message}[/red]")
        return 1
    finally:
        store.close()

    _dump_json(result.to_dict())
    colour = "green" if result.failed == 0 else "yellow"
    _err.print(
        f"[{colour}]✓ {result.updated} updated, {result.failed} failed"
        f" of {result.total}[/{colour}]"
    )
    if result.alerts is not None:
        _err.print(
            f"[dim]{result.alerts.alerts_sent} alerts sent, "
            f"{result.alerts.errors} alert errors[/dim]"
        )
    return 0


def run_check_alerts(settings: Settings) -> int:
    """Evaluate alerts against the stored prices."""
    def action(store: PriceStore) -> int:
        result = AlertEvaluator(settings, store).check_alerts()
        _dump_json({
            "alertsSent": result.alerts_sent,
            "errors": result.errors,
        })
        return 0

    return _guarded(action, settings)


def run_stats(settings: Settings, output_format: str) -> int:
    """Print the admin dashboard counters."""
    def action(store: PriceStore) -> int:
        stats = ProductService(settings, store).get_dashboard_stats()
        if output_format == "json":
            _dump_json(stats.to_dict())
            return 0

        summary = Table(title="Dashboard", title_style="bold cyan")
        summary.add_column("Metric", style="bold")
        summary.add_column("Value", justify="right")
        summary.add_row("Users", str(stats.total_users))
        summary.add_row("Active trackers", str(stats.total_trackers))
        summary.add_row("Products", str(stats.total_products))
        summary.add_row("Failed scrapes (24h)", str(stats.failed_scrapes_24h))
        summary.add_row("Total savings", f"{stats.total_savings:,.2f}")

        recent = Table(title="Recent scrapes", show_lines=False)
        recent.add_column("When", style="dim")
        recent.add_column("Product", max_width=40)
        recent.add_column("Platform", style="magenta")
        recent.add_column("Status", justify="center")
        recent.add_column("Error", style="dim", overflow="fold")
        for log in stats.recent_scrapes:
            ok = log.status == ScrapeStatus.SUCCESS
            recent.add_row(
                log.scraped_at.strftime("%Y-%m-%d %H:%M"),
                (log.product_name or "—")[:40],
                log.platform or "—",
                "[green]OK[/green]" if ok else "[red]FAILED[/red]",
                log.error_message or "",
            )

        console = Console()
        console.print(summary)
        console.print(recent)
        return 0

    return _guarded(action, settings)
