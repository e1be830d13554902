# price_tracker/services/batch_scheduler.py

"""Periodic re-scrape of every actively tracked product."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from price_tracker.config.settings import Settings
from price_tracker.models.product import Product, ScrapedProduct
from price_tracker.services.alert_evaluator import (
    AlertCheckResult,
    AlertEvaluator,
)
from price_tracker.services.scrape_pipeline import ScrapePipeline
from price_tracker.storage.price_store import PriceStore

logger = logging.getLogger("price_tracker.scheduler")


class SchedulerState(str, Enum):
    """Lifecycle of one batch pass."""

    IDLE = "IDLE"
    ENUMERATING = "ENUMERATING"
    BATCHING = "BATCHING"
    COMPLETED = "COMPLETED"


@dataclass
class BatchResult:
    """Outcome of a batch pass."""

    updated: int = 0
    failed: int = 0
    total: int = 0
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )
    alerts: AlertCheckResult | None = None

    def to_dict(self) -> dict[str, int]:
        return {
            "updated": self.updated,
            "failed": self.failed,
            "total": self.total,
        }


def _chunk(items: list[Product], size: int) -> list[list[Product]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchScheduler:
    """Scrapes tracked products in paced batches, then checks alerts.

    Items of one batch run concurrently on worker threads and are joined
    with settle-all semantics, so one failing product never cancels its
    siblings. Batches run one after another with ``BATCH_DELAY`` seconds
    between them.
    """

    def __init__(
        self,
        settings: Settings,
        store: PriceStore,
        pipeline: ScrapePipeline | None = None,
        evaluator: AlertEvaluator | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.pipeline = pipeline or ScrapePipeline(settings, store)
        self.evaluator = evaluator or AlertEvaluator(settings, store)
        self.state = SchedulerState.IDLE

    # ── Private helpers ──────────────────────────────────

    def _enumerate(self) -> list[Product]:
        """Distinct products referenced by at least one active tracker."""
        product_ids = self.store.list_active_tracked_product_ids()
        return self.store.get_products(product_ids)

    async def _run_batch(
        self, batch: list[Product], result: BatchResult,
    ) -> None:
        tasks = [
            asyncio.to_thread(self.pipeline.scrape, product)
            for product in batch
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        for product, outcome in zip(batch, outcomes):
            if isinstance(outcome, ScrapedProduct):
                result.updated += 1
            elif isinstance(outcome, BaseException):
                result.failed += 1
                result.errors.append(f"{product.url}: {outcome}")
                logger.error(
                    "Batch item failed for product %d: %s",
                    product.id,
                    outcome,
                    exc_info=outcome,
                )

    # ── Public API ───────────────────────────────────────

    async def run(self) -> BatchResult:
        """Run one full pass and return the counts."""
        result = BatchResult()

        self.state = SchedulerState.ENUMERATING
        products = self._enumerate()
        result.total = len(products)
        logger.info("Batch pass starting: %d products", result.total)

        self.state = SchedulerState.BATCHING
        batches = _chunk(products, max(1, self.settings.BATCH_SIZE))
        try:
            for index, batch in enumerate(batches):
                logger.debug(
                    "Batch %d/%d (%d items)",
                    index + 1,
                    len(batches),
                    len(batch),
                )
                await self._run_batch(batch, result)
                if index < len(batches) - 1:
                    await asyncio.sleep(self.settings.BATCH_DELAY)
        finally:
            self.pipeline.close()

        try:
            result.alerts = await asyncio.to_thread(self.evaluator.check_alerts)
        except Exception as exc:
            result.errors.append(f"alert check: {exc}")
            logger.error("Alert check failed: %s", exc, exc_info=True)

        self.state = SchedulerState.COMPLETED
        logger.info(
            "Batch pass complete: %d updated, %d failed of %d",
            result.updated,
            result.failed,
            result.total,
        )
        return result
