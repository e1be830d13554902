# price_tracker/storage/price_store.py

"""SQLite-backed store for products, trackers, price history and alerts.

This module is the only place that sees raw rows; every public method
returns the typed records from :mod:`price_tracker.models`.
"""

import logging
import re
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from price_tracker.errors import (
    DuplicateTrackerError,
    NotFoundError,
    PriceTrackerError,
    StoreError,
)
from price_tracker.models.alert import Alert, AlertStatus
from price_tracker.models.price_snapshot import PriceSnapshot
from price_tracker.models.product import (
    PLACEHOLDER_NAME,
    Platform,
    Product,
    ScrapedProduct,
)
from price_tracker.models.scrape_log import ScrapeLog, ScrapeStatus
from price_tracker.models.tracker import Tracker, TrackerWithProduct

logger = logging.getLogger("price_tracker.store")

# Session/tracking params that vary per visit on the supported sites
_TRACKING_PARAMS: frozenset[str] = frozenset({
    # Amazon
    "ref", "ref_", "dib", "dib_tag", "qid", "sr", "spc",
    "sp_csd", "xpid", "aref", "sp_cr", "psc", "crid", "sprefix",
    "keywords", "pd_rd_i", "pd_rd_r", "pd_rd_w",
    "pd_rd_wg", "pf_rd_i", "pf_rd_m", "pf_rd_p",
    "pf_rd_r", "pf_rd_s", "pf_rd_t", "th", "tag",
    # Flipkart
    "lid", "marketplace", "store", "srno", "otracker", "otracker1",
    "fm", "iid", "ppt", "ppn", "ssid", "qh", "spotlighttagid",
    "affid", "affextparam1", "affextparam2",
    # Generic campaign params
    "utm_source", "utm_medium", "utm_campaign", "utm_term",
    "utm_content", "gclid", "fbclid",
})

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    name         TEXT    NOT NULL,
    platform     TEXT    NOT NULL,
    url          TEXT    NOT NULL UNIQUE,
    latest_price TEXT    NOT NULL DEFAULT '0',
    currency     TEXT    NOT NULL DEFAULT 'INR',
    image_url    TEXT,
    is_available INTEGER NOT NULL DEFAULT 1,
    created_at   TEXT    NOT NULL,
    updated_at   TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS trackers (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id      TEXT    NOT NULL,
    product_id   INTEGER NOT NULL
                 REFERENCES products(id) ON DELETE CASCADE,
    target_price TEXT,
    is_active    INTEGER NOT NULL DEFAULT 1,
    created_at   TEXT    NOT NULL,
    updated_at   TEXT    NOT NULL,
    UNIQUE (user_id, product_id)
);

CREATE TABLE IF NOT EXISTS price_snapshots (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id   INTEGER NOT NULL
                 REFERENCES products(id) ON DELETE CASCADE,
    price        TEXT    NOT NULL,
    currency     TEXT    NOT NULL DEFAULT 'INR',
    is_available INTEGER NOT NULL DEFAULT 1,
    snapshot_at  TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS alerts (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id      TEXT    NOT NULL,
    tracker_id   INTEGER NOT NULL
                 REFERENCES trackers(id) ON DELETE CASCADE,
    old_price    TEXT,
    new_price    TEXT    NOT NULL,
    status       TEXT    NOT NULL DEFAULT 'PENDING'
                 CHECK (status IN ('PENDING', 'SENT', 'FAILED')),
    triggered_at TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS scrape_logs (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id    INTEGER
                  REFERENCES products(id) ON DELETE CASCADE,
    status        TEXT    NOT NULL
                  CHECK (status IN ('SUCCESS', 'FAILED')),
    error_message TEXT,
    scraped_at    TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_products_platform
    ON products(platform);
CREATE INDEX IF NOT EXISTS idx_trackers_user_id
    ON trackers(user_id);
CREATE INDEX IF NOT EXISTS idx_trackers_product_id
    ON trackers(product_id);
CREATE INDEX IF NOT EXISTS idx_snapshots_product_id
    ON price_snapshots(product_id);
CREATE INDEX IF NOT EXISTS idx_snapshots_snapshot_at
    ON price_snapshots(snapshot_at);
CREATE INDEX IF NOT EXISTS idx_alerts_user_id
    ON alerts(user_id);
CREATE INDEX IF NOT EXISTS idx_alerts_status
    ON alerts(status);
CREATE INDEX IF NOT EXISTS idx_scrape_logs_scraped_at
    ON scrape_logs(scraped_at);
"""

_PRODUCT_COLUMNS = (
    "p.id AS p_id, p.name AS p_name, p.platform AS p_platform, "
    "p.url AS p_url, p.latest_price AS p_latest_price, "
    "p.currency AS p_currency, p.image_url AS p_image_url, "
    "p.is_available AS p_is_available, p.created_at AS p_created_at, "
    "p.updated_at AS p_updated_at"
)

_TRACKER_COLUMNS = (
    "t.id AS t_id, t.user_id AS t_user_id, t.product_id AS t_product_id, "
    "t.target_price AS t_target_price, t.is_active AS t_is_active, "
    "t.created_at AS t_created_at, t.updated_at AS t_updated_at"
)


def normalize_url(raw_url: str) -> str:
    """Strip tracking/session query params to get a stable product URL."""
    parsed = urlparse(raw_url.strip())

    # Strip Amazon path-based tracking (e.g. /ref=sr_1_243)
    path = re.sub(r"/ref=[^/]*", "", parsed.path)

    params = parse_qs(parsed.query, keep_blank_values=True)
    cleaned = {
        k: v for k, v in params.items()
        if k.lower() not in _TRACKING_PARAMS
    }
    new_query = urlencode(cleaned, doseq=True) if cleaned else ""
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        path,
        parsed.params,
        new_query,
        "",  # drop fragment
    ))


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _ts(value: datetime) -> str:
    """Fixed-width ISO timestamp so text order equals time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _dt(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _dec(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


# ── Row mapping ──────────────────────────────────────────


def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        id=row["p_id"],
        name=row["p_name"],
        platform=Platform(row["p_platform"]),
        url=row["p_url"],
        latest_price=Decimal(row["p_latest_price"]),
        currency=row["p_currency"],
        image_url=row["p_image_url"],
        is_available=bool(row["p_is_available"]),
        created_at=_dt(row["p_created_at"]),
        updated_at=_dt(row["p_updated_at"]),
    )


def _row_to_tracker(row: sqlite3.Row) -> Tracker:
    return Tracker(
        id=row["t_id"],
        user_id=row["t_user_id"],
        product_id=row["t_product_id"],
        target_price=_dec(row["t_target_price"]),
        is_active=bool(row["t_is_active"]),
        created_at=_dt(row["t_created_at"]),
        updated_at=_dt(row["t_updated_at"]),
    )


def _row_to_snapshot(row: sqlite3.Row) -> PriceSnapshot:
    return PriceSnapshot(
        id=row["id"],
        product_id=row["product_id"],
        price=Decimal(row["price"]),
        currency=row["currency"],
        is_available=bool(row["is_available"]),
        snapshot_at=_dt(row["snapshot_at"]),
    )


def _row_to_alert(row: sqlite3.Row) -> Alert:
    return Alert(
        id=row["id"],
        user_id=row["user_id"],
        tracker_id=row["tracker_id"],
        old_price=_dec(row["old_price"]),
        new_price=Decimal(row["new_price"]),
        status=AlertStatus(row["status"]),
        triggered_at=_dt(row["triggered_at"]),
    )


def _row_to_scrape_log(row: sqlite3.Row) -> ScrapeLog:
    keys = row.keys()
    return ScrapeLog(
        id=row["id"],
        product_id=row["product_id"],
        status=ScrapeStatus(row["status"]),
        error_message=row["error_message"],
        scraped_at=_dt(row["scraped_at"]),
        product_name=row["product_name"] if "product_name" in keys else None,
        platform=row["platform"] if "platform" in keys else None,
    )


class PriceStore:
    """SQLite-backed store for the five price tracker relations.

    One connection is shared by the scheduler's worker threads; a lock
    serialises access so each public call is its own transaction.
    """

    def __init__(self, db_path: Path) -> None:
        if str(db_path) != ":memory:":
            db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(
            str(db_path), check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        logger.debug("PriceStore opened at %s", db_path)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the body under the lock; commit on success, else roll back."""
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as exc:
                self._rollback()
                raise StoreError(f"Database error: {exc}") from exc
            except BaseException:
                self._rollback()
                raise

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except sqlite3.Error as exc:
            logger.debug("Rollback failed: %s", exc)

    # ── Products ─────────────────────────────────────────

    def get_or_create_product_by_url(
        self, url: str, platform: Platform,
    ) -> tuple[int, bool]:
        """Return ``(product_id, created)`` for the normalised *url*.

        New products start as placeholders (``Product loading...`` at
        price 0) until their first successful scrape.
        """
        normalized = normalize_url(url)
        now = _ts(utcnow())
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT INTO products "
                "(name, platform, url, latest_price, created_at, updated_at) "
                "VALUES (?, ?, ?, '0', ?, ?) "
                "ON CONFLICT(url) DO NOTHING",
                (PLACEHOLDER_NAME, platform.value, normalized, now, now),
            )
            created = cur.rowcount == 1
            product_id: int = conn.execute(
                "SELECT id FROM products WHERE url = ?", (normalized,),
            ).fetchone()[0]
        if created:
            logger.info(
                "Created placeholder product %d for %s",
                product_id,
                normalized,
            )
        return product_id, created

    def get_product(self, product_id: int) -> Product | None:
        """Return one product, or None."""
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products p WHERE p.id = ?",
                (product_id,),
            ).fetchone()
        return _row_to_product(row) if row else None

    def get_products(self, product_ids: list[int]) -> list[Product]:
        """Return the products with the given ids, ordered by id."""
        if not product_ids:
            return []
        placeholders = ", ".join("?" for _ in product_ids)
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products p "
                f"WHERE p.id IN ({placeholders}) ORDER BY p.id",
                tuple(product_ids),
            ).fetchall()
        return [_row_to_product(r) for r in rows]

    def list_products(self) -> list[Product]:
        """All products, most recently updated first."""
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products p "
                "ORDER BY p.updated_at DESC, p.id DESC",
            ).fetchall()
        return [_row_to_product(r) for r in rows]

    def delete_product(self, product_id: int) -> bool:
        """Delete a product with its trackers, history and logs."""
        with self._transaction() as conn:
            cur = conn.execute(
                "DELETE FROM products WHERE id = ?", (product_id,),
            )
        if cur.rowcount:
            logger.info("Deleted product %d", product_id)
        return cur.rowcount > 0

    def upsert_product_data(
        self, product_id: int, scraped: ScrapedProduct,
    ) -> None:
        """Overwrite the product's scraped fields and bump ``updated_at``."""
        with self._transaction() as conn:
            self._update_product(conn, product_id, scraped)

    @staticmethod
    def _update_product(
        conn: sqlite3.Connection,
        product_id: int,
        scraped: ScrapedProduct,
    ) -> None:
        cur = conn.execute(
            "UPDATE products SET name = ?, latest_price = ?, currency = ?, "
            "image_url = ?, is_available = ?, updated_at = ? "
            "WHERE id = ?",
            (
                scraped.name,
                str(scraped.price),
                scraped.currency,
                scraped.image_url,
                int(scraped.is_available),
                _ts(utcnow()),
                product_id,
            ),
        )
        if cur.rowcount == 0:
            raise NotFoundError("Product", product_id)

    # ── Price snapshots ──────────────────────────────────

    def append_snapshot(
        self,
        product_id: int,
        price: Decimal,
        currency: str,
        is_available: bool,
        snapshot_at: datetime | None = None,
    ) -> int:
        """Append one price observation and return its id."""
        with self._transaction() as conn:
            return self._insert_snapshot(
                conn, product_id, price, currency, is_available, snapshot_at,
            )

    @staticmethod
    def _insert_snapshot(
        conn: sqlite3.Connection,
        product_id: int,
        price: Decimal,
        currency: str,
        is_available: bool,
        snapshot_at: datetime | None,
    ) -> int:
        cur = conn.execute(
            "INSERT INTO price_snapshots "
            "(product_id, price, currency, is_available, snapshot_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                product_id,
                str(price),
                currency,
                int(is_available),
                _ts(snapshot_at or utcnow()),
            ),
        )
        return int(cur.lastrowid or 0)

    def record_scrape_success(
        self, product_id: int, scraped: ScrapedProduct,
    ) -> int:
        """Upsert product data, append a snapshot and log SUCCESS atomically.

        Returns the new snapshot id.
        """
        now = utcnow()
        with self._transaction() as conn:
            self._update_product(conn, product_id, scraped)
            snapshot_id = self._insert_snapshot(
                conn,
                product_id,
                scraped.price,
                scraped.currency,
                scraped.is_available,
                now,
            )
            conn.execute(
                "INSERT INTO scrape_logs (product_id, status, scraped_at) "
                "VALUES (?, ?, ?)",
                (product_id, ScrapeStatus.SUCCESS.value, _ts(now)),
            )
        return snapshot_id

    def query_history(
        self, product_id: int, since: datetime | None = None,
    ) -> list[PriceSnapshot]:
        """Return snapshots for a product, oldest first."""
        sql = "SELECT * FROM price_snapshots WHERE product_id = ?"
        params: tuple[object, ...] = (product_id,)
        if since is not None:
            sql += " AND snapshot_at >= ?"
            params = (product_id, _ts(since))
        sql += " ORDER BY snapshot_at ASC, id ASC"
        with self._transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_snapshot(r) for r in rows]

    def get_recent_prices(
        self, product_id: int, limit: int = 2,
    ) -> list[Decimal]:
        """Most recent snapshot prices, newest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT price FROM price_snapshots WHERE product_id = ? "
                "ORDER BY snapshot_at DESC, id DESC LIMIT ?",
                (product_id, limit),
            ).fetchall()
        return [Decimal(r["price"]) for r in rows]

    # ── Scrape logs ──────────────────────────────────────

    def record_scrape_result(
        self,
        product_id: int | None,
        status: ScrapeStatus,
        error_message: str | None = None,
    ) -> None:
        """Append a scrape log entry.

        Never raises: a failing log write must not hide the scrape error
        the caller is about to report.
        """
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO scrape_logs "
                    "(product_id, status, error_message, scraped_at) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        product_id,
                        status.value,
                        error_message,
                        _ts(utcnow()),
                    ),
                )
        except (PriceTrackerError, sqlite3.Error) as exc:
            logger.error(
                "Failed to write scrape log for product %s (%s): %s",
                product_id,
                status.value,
                exc,
                exc_info=True,
            )

    def list_scrape_logs(
        self,
        limit: int = 10,
        product_id: int | None = None,
    ) -> list[ScrapeLog]:
        """Newest scrape logs with product name and platform."""
        sql = (
            "SELECT l.*, p.name AS product_name, p.platform AS platform "
            "FROM scrape_logs l LEFT JOIN products p ON p.id = l.product_id"
        )
        params: tuple[object, ...] = ()
        if product_id is not None:
            sql += " WHERE l.product_id = ?"
            params = (product_id,)
        sql += " ORDER BY l.scraped_at DESC, l.id DESC LIMIT ?"
        with self._transaction() as conn:
            rows = conn.execute(sql, (*params, limit)).fetchall()
        return [_row_to_scrape_log(r) for r in rows]

    def count_failed_scrapes(self, since: datetime) -> int:
        """Number of FAILED scrape logs at or after *since*."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM scrape_logs "
                "WHERE status = ? AND scraped_at >= ?",
                (ScrapeStatus.FAILED.value, _ts(since)),
            ).fetchone()
        return int(row[0])

    # ── Trackers ─────────────────────────────────────────

    def create_tracker(
        self,
        user_id: str,
        product_id: int,
        target_price: Decimal | None,
    ) -> Tracker:
        """Insert an active tracker.

        Raises:
            DuplicateTrackerError: the user already tracks this product.
        """
        now = _ts(utcnow())
        with self._transaction() as conn:
            try:
                cur = conn.execute(
                    "INSERT INTO trackers "
                    "(user_id, product_id, target_price, is_active, "
                    " created_at, updated_at) "
                    "VALUES (?, ?, ?, 1, ?, ?)",
                    (
                        user_id,
                        product_id,
                        str(target_price) if target_price is not None else None,
                        now,
                        now,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                if "UNIQUE" not in str(exc).upper():
                    raise
                raise DuplicateTrackerError(user_id, product_id) from exc
            row = conn.execute(
                f"SELECT {_TRACKER_COLUMNS} FROM trackers t WHERE t.id = ?",
                (cur.lastrowid,),
            ).fetchone()
        return _row_to_tracker(row)

    def get_tracker(self, tracker_id: int, user_id: str) -> Tracker | None:
        """Return the tracker only if it belongs to *user_id*."""
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT {_TRACKER_COLUMNS} FROM trackers t "
                "WHERE t.id = ? AND t.user_id = ?",
                (tracker_id, user_id),
            ).fetchone()
        return _row_to_tracker(row) if row else None

    def get_tracker_for_user_product(
        self, user_id: str, product_id: int,
    ) -> Tracker | None:
        """Return the user's tracker on a product, if any."""
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT {_TRACKER_COLUMNS} FROM trackers t "
                "WHERE t.user_id = ? AND t.product_id = ?",
                (user_id, product_id),
            ).fetchone()
        return _row_to_tracker(row) if row else None

    def list_trackers_for_user(
        self, user_id: str,
    ) -> list[TrackerWithProduct]:
        """All of a user's trackers with product state, newest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT {_TRACKER_COLUMNS}, {_PRODUCT_COLUMNS} "
                "FROM trackers t JOIN products p ON p.id = t.product_id "
                "WHERE t.user_id = ? "
                "ORDER BY t.created_at DESC, t.id DESC",
                (user_id,),
            ).fetchall()
        return [
            TrackerWithProduct(_row_to_tracker(r), _row_to_product(r))
            for r in rows
        ]

    def delete_tracker(self, tracker_id: int, user_id: str) -> bool:
        """Delete a tracker scoped to its owner; False if nothing matched."""
        with self._transaction() as conn:
            cur = conn.execute(
                "DELETE FROM trackers WHERE id = ? AND user_id = ?",
                (tracker_id, user_id),
            )
        return cur.rowcount > 0

    def set_tracker_active(
        self, tracker_id: int, user_id: str, active: bool,
    ) -> bool:
        """Pause or resume a tracker; False if the user has no such tracker."""
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE trackers SET is_active = ?, updated_at = ? "
                "WHERE id = ? AND user_id = ?",
                (int(active), _ts(utcnow()), tracker_id, user_id),
            )
        return cur.rowcount > 0

    def set_tracker_target(
        self, tracker_id: int, user_id: str, target_price: Decimal | None,
    ) -> bool:
        """Replace (or clear) a tracker's target price."""
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE trackers SET target_price = ?, updated_at = ? "
                "WHERE id = ? AND user_id = ?",
                (
                    str(target_price) if target_price is not None else None,
                    _ts(utcnow()),
                    tracker_id,
                    user_id,
                ),
            )
        return cur.rowcount > 0

    def list_active_tracked_product_ids(self) -> list[int]:
        """Distinct product ids referenced by at least one active tracker."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT DISTINCT product_id FROM trackers "
                "WHERE is_active = 1 ORDER BY product_id",
            ).fetchall()
        return [int(r[0]) for r in rows]

    def list_alertable_trackers(self) -> list[TrackerWithProduct]:
        """Active trackers that have a target price, with their product."""
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT {_TRACKER_COLUMNS}, {_PRODUCT_COLUMNS} "
                "FROM trackers t JOIN products p ON p.id = t.product_id "
                "WHERE t.is_active = 1 AND t.target_price IS NOT NULL "
                "ORDER BY t.id",
            ).fetchall()
        return [
            TrackerWithProduct(_row_to_tracker(r), _row_to_product(r))
            for r in rows
        ]

    # ── Alerts ───────────────────────────────────────────

    def create_alert(
        self,
        user_id: str,
        tracker_id: int,
        old_price: Decimal | None,
        new_price: Decimal,
        status: AlertStatus = AlertStatus.PENDING,
    ) -> Alert:
        """Insert an alert row and return it."""
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT INTO alerts "
                "(user_id, tracker_id, old_price, new_price, status, "
                " triggered_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    user_id,
                    tracker_id,
                    str(old_price) if old_price is not None else None,
                    str(new_price),
                    status.value,
                    _ts(utcnow()),
                ),
            )
            row = conn.execute(
                "SELECT * FROM alerts WHERE id = ?", (cur.lastrowid,),
            ).fetchone()
        return _row_to_alert(row)

    def update_alert_status(self, alert_id: int, status: AlertStatus) -> None:
        """Move an alert to a new delivery status."""
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE alerts SET status = ? WHERE id = ?",
                (status.value, alert_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("Alert", alert_id)

    def get_latest_alert_for_tracker(self, tracker_id: int) -> Alert | None:
        """Most recent alert raised for a tracker."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM alerts WHERE tracker_id = ? "
                "ORDER BY triggered_at DESC, id DESC LIMIT 1",
                (tracker_id,),
            ).fetchone()
        return _row_to_alert(row) if row else None

    def list_alerts_for_user(
        self, user_id: str, status: AlertStatus | None = None,
    ) -> list[Alert]:
        """A user's alerts, newest first, optionally by status."""
        sql = "SELECT * FROM alerts WHERE user_id = ?"
        params: tuple[object, ...] = (user_id,)
        if status is not None:
            sql += " AND status = ?"
            params = (user_id, status.value)
        sql += " ORDER BY triggered_at DESC, id DESC"
        with self._transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_alert(r) for r in rows]

    # ── Dashboard aggregates ─────────────────────────────

    def count_products(self) -> int:
        """Total number of products."""
        with self._transaction() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM products").fetchone()[0])

    def count_active_trackers(self) -> int:
        """Number of active trackers."""
        with self._transaction() as conn:
            return int(conn.execute(
                "SELECT COUNT(*) FROM trackers WHERE is_active = 1",
            ).fetchone()[0])

    def count_distinct_users(self) -> int:
        """Number of users that own at least one tracker."""
        with self._transaction() as conn:
            return int(conn.execute(
                "SELECT COUNT(DISTINCT user_id) FROM trackers",
            ).fetchone()[0])

    def total_savings(self) -> Decimal:
        """Sum of (old - new) over all alerts; a missing old price counts 0."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT old_price, new_price FROM alerts",
            ).fetchall()
        total = Decimal("0")
        for r in rows:
            old = Decimal(r["old_price"]) if r["old_price"] is not None else Decimal("0")
            total += old - Decimal(r["new_price"])
        return total
