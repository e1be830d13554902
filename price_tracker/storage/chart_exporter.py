# price_tracker/storage/chart_exporter.py

"""Generate interactive Plotly HTML charts from price history."""

import importlib
import logging
import re
import webbrowser
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from types import ModuleType
from typing import Any

from price_tracker.config.settings import Settings
from price_tracker.models.price_snapshot import PriceSnapshot
from price_tracker.storage.price_store import PriceStore, utcnow

logger = logging.getLogger("price_tracker.chart")

_SLUG_RE = re.compile(r"[^A-Za-z0-9]+")


def _get_plotly_go() -> ModuleType:
    """Import plotly.graph_objects lazily."""
    return importlib.import_module("plotly.graph_objects")


def _build_chart(
    snapshots: list[PriceSnapshot],
    title: str,
    target_price: Decimal | None = None,
) -> Any:
    """Build a Plotly line chart for one product."""
    go = _get_plotly_go()
    dates = [s.snapshot_at for s in snapshots]
    prices = [float(s.price) for s in snapshots]
    currency = snapshots[0].currency

    fig: Any = go.Figure()
    fig.add_trace(go.Scatter(
        x=dates,
        y=prices,
        mode="lines+markers",
        name=title[:50],
        hovertemplate=(
            "%{x|%Y-%m-%d %H:%M}<br>"
            f"Price: %{{y:.2f}} {currency}"
            "<extra></extra>"
        ),
    ))

    min_price = min(prices)
    max_price = max(prices)
    min_idx = prices.index(min_price)
    max_idx = prices.index(max_price)

    fig.add_annotation(
        x=dates[min_idx], y=min_price,
        text=f"Min: {min_price:,.2f}",
        showarrow=True, arrowhead=2,
    )
    fig.add_annotation(
        x=dates[max_idx], y=max_price,
        text=f"Max: {max_price:,.2f}",
        showarrow=True, arrowhead=2,
    )

    if target_price is not None:
        fig.add_hline(
            y=float(target_price),
            line_dash="dash",
            line_color="green",
            annotation_text=f"Target: {target_price:,.2f}",
        )

    fig.update_layout(
        title=f"Price History: {title[:60]}",
        xaxis_title="Date",
        yaxis_title=f"Price ({currency})",
        hovermode="x unified",
        template="plotly_white",
    )
    return fig


def export_price_chart(
    product_id: int,
    store: PriceStore,
    settings: Settings,
    days: int = 30,
    target_price: Decimal | None = None,
    open_browser: bool = False,
) -> Path | None:
    """Export one product's price chart as HTML; None if too few points."""
    product = store.get_product(product_id)
    if product is None:
        logger.warning("No product %d to chart", product_id)
        return None

    since = utcnow() - timedelta(days=days)
    snapshots = store.query_history(product_id, since=since)
    if len(snapshots) < 2:
        logger.warning(
            "Not enough data points for chart: product %d (%d)",
            product_id,
            len(snapshots),
        )
        return None

    fig = _build_chart(snapshots, product.name, target_price)

    charts_dir = settings.CHARTS_DIR
    charts_dir.mkdir(parents=True, exist_ok=True)
    slug = _SLUG_RE.sub("_", product.name[:30]).strip("_") or "product"
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = charts_dir / f"{product_id}_{slug}_{stamp}.html"
    fig.write_html(str(filepath))
    logger.info("Chart saved to %s", filepath)

    if open_browser:
        webbrowser.open(filepath.as_uri())

    return filepath
